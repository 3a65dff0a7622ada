from flask import Blueprint, flash, redirect, render_template, request, session, url_for
from flask_login import login_user, logout_user
from sqlalchemy.exc import IntegrityError

from ellarises.app_extensions import limiter
from ellarises.config.improved_logging_config import LogCategory, get_smart_logger
from ellarises.database import get_db
from ellarises.services.account_guard import account_guard
from ellarises.services.auth_models import COMMON, SESSION_IDENTITY_KEY, SessionIdentity
from ellarises.services.auth_service import InvalidCredentials, auth_service
from ellarises.services.user_management import user_manager
from ellarises.utils.errors import ValidationError
from ellarises.utils.redirects import is_auth_page, return_to_target, safe_redirect_target

logger = get_smart_logger(__name__, LogCategory.SECURITY)

auth_bp = Blueprint('auth_bp', __name__)

RETURN_TO_KEY = 'return_to'
INVALID_CREDENTIALS_MESSAGE = 'Incorrect email or password.'
LOCKED_MESSAGE = 'Too many failed attempts. Try again later.'
MIN_PASSWORD_LENGTH = 6


def _capture_return_to():
    """Remember where to go after login, unless a guard already did."""
    if session.get(RETURN_TO_KEY):
        return
    target = (return_to_target(request.args.get('returnTo'), request.host_url)
              or return_to_target(request.referrer, request.host_url))
    if target:
        session[RETURN_TO_KEY] = target


@auth_bp.route('/login', methods=['GET', 'POST'])
@limiter.limit('15 per minute', methods=['POST'])
def login():
    if request.method == 'GET':
        _capture_return_to()
        return render_template('login.html')

    email = (request.form.get('email') or '').strip()
    password = request.form.get('password') or ''
    client_ip = request.remote_addr or 'unknown'

    if not email or not password:
        flash(INVALID_CREDENTIALS_MESSAGE, 'error')
        return redirect(url_for('auth_bp.login'))

    locked, _ = account_guard.is_locked(email, client_ip)
    if locked:
        logger.security_event("Login attempt while locked", f"ip={client_ip}")
        flash(LOCKED_MESSAGE, 'error')
        return redirect(url_for('auth_bp.login'))

    db = get_db()
    try:
        user = auth_service.authenticate_user(db, email, password)
    except InvalidCredentials:
        failures, lock_duration = account_guard.register_failure(email, client_ip)
        logger.security_event("Failed login", f"ip={client_ip} failures={failures}")
        flash(LOCKED_MESSAGE if lock_duration else INVALID_CREDENTIALS_MESSAGE, 'error')
        return redirect(url_for('auth_bp.login'))

    account_guard.reset(email, client_ip)
    return_to = safe_redirect_target(session.get(RETURN_TO_KEY))

    # New session for the authenticated visitor
    session.clear()
    identity = SessionIdentity.from_user(user)
    login_user(identity, fresh=True)
    session[SESSION_IDENTITY_KEY] = identity.to_snapshot()
    session.permanent = True

    logger.info(f"User {identity.id} logged in")
    flash(f'Welcome back, {identity.first_name}!', 'success')
    return redirect(return_to or url_for('home_bp.index'))


def _validate_registration(form):
    first_name = (form.get('first_name') or '').strip()
    last_name = (form.get('last_name') or '').strip()
    email = (form.get('email') or '').strip()
    password = form.get('password') or ''
    confirm_password = form.get('confirm_password') or ''

    if not all([first_name, last_name, email, password, confirm_password]):
        raise ValidationError('All fields are required.')
    if password != confirm_password:
        raise ValidationError('Passwords do not match.')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long.')
    return first_name, last_name, email, password


@auth_bp.route('/register', methods=['GET', 'POST'])
@limiter.limit('10 per hour', methods=['POST'])
def register():
    if request.method == 'GET':
        return render_template('register.html', form_data={})

    # Never echo passwords back into the form
    form_data = {key: value for key, value in request.form.items() if 'password' not in key}
    try:
        first_name, last_name, email, password = _validate_registration(request.form)
    except ValidationError as error:
        return render_template('register.html', error=error.message, form_data=form_data)

    db = get_db()
    if user_manager.get_user_by_email(db, email):
        return render_template('register.html', error='An account with that email already exists.',
                               form_data=form_data)
    try:
        user = user_manager.create_user(db, first_name, last_name, email, password, COMMON)
    except IntegrityError:
        db.rollback()
        return render_template('register.html', error='An account with that email already exists.',
                               form_data=form_data)

    logger.business_event("User registered", f"user_id={user.userid}")
    flash('Registration successful! Please log in.', 'success')
    return redirect(url_for('auth_bp.login'))


@auth_bp.route('/logout')
def logout():
    target = safe_redirect_target(request.args.get('redirect'))
    if not target:
        referrer = safe_redirect_target(request.referrer, request.host_url)
        target = referrer if referrer and not is_auth_page(referrer) else None

    logout_user()
    session.clear()
    flash('You have been logged out.', 'info')
    return redirect(target or url_for('home_bp.index'))
