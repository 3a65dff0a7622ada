from functools import wraps

from flask import current_app, flash, redirect, request, session, url_for
from flask_login import current_user, logout_user

from ellarises.config.improved_logging_config import LogCategory, get_smart_logger
from ellarises.database import get_db
from ellarises.services.auth_models import SESSION_IDENTITY_KEY, SessionIdentity
from ellarises.services.guards import (
    GuardDecision, RoleRequirement, auth_guard, listing_guard, role_guard,
)
from ellarises.services.user_management import user_manager

logger = get_smart_logger(__name__, LogCategory.SECURITY)

FORBIDDEN_MESSAGE = 'You do not have permission to view this resource.'


def _apply_decision(decision: GuardDecision):
    """Turn a non-PROCEED decision into the matching redirect."""
    if decision is GuardDecision.LOGIN:
        # Flask-Login's unauthorized handler stores return_to and flashes
        return current_app.login_manager.unauthorized()
    logger.security_event("Role denied", f"user={current_user.get_id()} path={request.path}")
    flash(FORBIDDEN_MESSAGE, 'error')
    return redirect(url_for('home_bp.index'))


def auth_required(f):
    """Strict login gate, every HTTP method included."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        decision = auth_guard(current_user)
        if decision is not GuardDecision.PROCEED:
            return _apply_decision(decision)
        return f(*args, **kwargs)
    return decorated_function


def _stored_identity():
    """Re-read the signed-in user, so a demoted or deleted manager loses access at once."""
    user = user_manager.get_user_by_id(get_db(), current_user.id)
    if user is None:
        return None
    identity = SessionIdentity.from_user(user)
    if identity.role != current_user.role:
        session[SESSION_IDENTITY_KEY] = identity.to_snapshot()
    return identity


def role_required(requirement: RoleRequirement):
    """
    Decorator to restrict access to endpoints based on user roles.
    The role is checked against the users table, not only the session snapshot.
    Args:
        requirement (RoleRequirement): the set of roles allowed through.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            decision = role_guard(current_user, requirement)
            if decision is GuardDecision.PROCEED:
                identity = _stored_identity()
                if identity is None:
                    logger.security_event("Session for removed user ended", f"user={current_user.get_id()}")
                    logout_user()
                    session.clear()
                    decision = GuardDecision.LOGIN
                else:
                    decision = role_guard(identity, requirement)
            if decision is not GuardDecision.PROCEED:
                return _apply_decision(decision)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def listing_required(resource: str):
    """Gate a list page unless the deployment made it public."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            public = current_app.config.get('PUBLIC_LISTINGS', frozenset())
            decision = listing_guard(current_user, resource, public)
            if decision is not GuardDecision.PROCEED:
                return _apply_decision(decision)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
