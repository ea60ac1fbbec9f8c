"""Middleware for authentication and role checks."""
from functools import wraps

from flask import current_app, g, session

from estate.database import get_session
from estate.exceptions import ForbiddenError, UnauthorizedError
from estate.models import AppUser


def load_user():
    """
    Load the current user into g (Flask's per-request global).

    Called before each request. Sets g.user and g.user_role when the
    session cookie carries the id of an active user.
    """
    g.user = None
    g.user_role = None

    user_id = session.get('user_id')
    if not user_id:
        return

    db_session = get_session()
    if not db_session:
        return

    user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
    if user:
        g.user = user
        g.user_role = user.role
    else:
        current_app.logger.info(f"Dropping session of unknown or inactive user {user_id}")
        session.pop('user_id', None)


def require_login(f):
    """Decorator: require an authenticated user (401 otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError()
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('ADMIN')
        @require_role('ADMIN', 'MANAGER')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('user') is None:
                raise UnauthorizedError()
            if g.get('user_role') not in allowed_roles:
                raise ForbiddenError()
            return f(*args, **kwargs)
        return decorated_function
    return decorator


BACK_OFFICE_ROLES = ('ADMIN', 'MANAGER')
