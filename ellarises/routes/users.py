from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from ellarises.config.improved_logging_config import LogCategory, get_smart_logger
from ellarises.database import User, get_db
from ellarises.services.auth_models import ALLOWED_ROLES, COMMON
from ellarises.services.guards import MANAGER_ONLY
from ellarises.services.search import SearchFields
from ellarises.services.user_management import user_manager
from ellarises.utils.decorators import auth_required, role_required
from ellarises.utils.errors import ValidationError
from ellarises.utils.listing import list_page
from ellarises.utils.request_parsing import require_text

logger = get_smart_logger(__name__, LogCategory.SECURITY)

users_bp = Blueprint('users_bp', __name__)

SEARCH_FIELDS = SearchFields(
    columns=(User.userfirstname, User.userlastname, User.useremail),
    first_name=User.userfirstname,
    last_name=User.userlastname,
)

DUPLICATE_EMAIL_MESSAGE = 'A user with that email already exists.'
SELF_DELETE_MESSAGE = 'You cannot delete your own account.'
ROLES = sorted(ALLOWED_ROLES)


def _user_fields(form, *, password_required: bool) -> dict:
    require_text(form, 'first_name', 'last_name', 'email',
                 message='First name, last name and email are required.')
    role = (form.get('role') or COMMON).strip()
    if role not in ALLOWED_ROLES:
        raise ValidationError('Please select a valid role.')
    password = form.get('password') or ''
    if password_required and not password:
        raise ValidationError('A password is required for new users.')
    return {
        'first_name': form['first_name'].strip(),
        'last_name': form['last_name'].strip(),
        'email': form['email'].strip(),
        'role': role,
        'password': password or None,
    }


def _form_values(form) -> dict:
    return {key: value for key, value in form.items() if key != 'password'}


@users_bp.route('/', strict_slashes=False)
@auth_required
@role_required(MANAGER_ONLY)
def index():
    db = get_db()
    query = db.query(User).order_by(User.userid)
    result = list_page(query, SEARCH_FIELDS)
    return render_template('users/index.html', result=result)


@users_bp.route('/add', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def add():
    if request.method == 'GET':
        return render_template('users/add.html', roles=ROLES, form_data={})

    try:
        fields = _user_fields(request.form, password_required=True)
    except ValidationError as error:
        return render_template('users/add.html', roles=ROLES, error=error.message,
                               form_data=_form_values(request.form))

    db = get_db()
    try:
        user = user_manager.create_user(db, fields['first_name'], fields['last_name'], fields['email'],
                                        fields['password'], fields['role'])
    except IntegrityError:
        db.rollback()
        return render_template('users/add.html', roles=ROLES, error=DUPLICATE_EMAIL_MESSAGE,
                               form_data=_form_values(request.form))

    logger.security_event("User created", f"by={current_user.get_id()} user={user.userid} role={user.userrole}")
    flash('User added successfully!', 'success')
    return redirect(url_for('users_bp.index'))


@users_bp.route('/edit/<int:user_id>', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def edit(user_id):
    db = get_db()
    user = user_manager.get_user_by_id(db, user_id)
    if user is None:
        return redirect(url_for('users_bp.index'))

    if request.method == 'GET':
        form_data = {
            'first_name': user.userfirstname,
            'last_name': user.userlastname,
            'email': user.useremail,
            'role': user.userrole,
        }
        return render_template('users/edit.html', user_id=user_id, roles=ROLES, form_data=form_data)

    try:
        fields = _user_fields(request.form, password_required=False)
        updated = user_manager.update_user(db, user_id, **fields)
    except ValidationError as error:
        return render_template('users/edit.html', user_id=user_id, roles=ROLES, error=error.message,
                               form_data=_form_values(request.form))
    except IntegrityError:
        db.rollback()
        return render_template('users/edit.html', user_id=user_id, roles=ROLES, error=DUPLICATE_EMAIL_MESSAGE,
                               form_data=_form_values(request.form))

    if updated:
        logger.security_event("User updated", f"by={current_user.get_id()} user={user_id} role={fields['role']}")
        flash('User updated successfully!', 'success')
    return redirect(url_for('users_bp.index'))


@users_bp.route('/delete/<int:user_id>', methods=['POST'])
@auth_required
@role_required(MANAGER_ONLY)
def delete(user_id):
    if current_user.id == user_id:
        logger.security_event("Self-delete refused", f"user={user_id}")
        flash(SELF_DELETE_MESSAGE, 'error')
        return redirect(url_for('users_bp.index'))

    db = get_db()
    if user_manager.delete_user(db, user_id):
        logger.security_event("User deleted", f"by={current_user.get_id()} user={user_id}")
        flash('User deleted successfully!', 'success')
    return redirect(url_for('users_bp.index'))
