"""
Authentication blueprint.

Session-cookie identity: login stores the user id in the Flask session,
the middleware loads it into g.user on every request.
"""
import logging

from flask import Blueprint, g, jsonify, request, session
from sqlalchemy import func

from estate.database import get_session
from estate.exceptions import UnauthorizedError
from estate.middleware import require_login
from estate.models import AppUser
from estate.schemas import LoginIn

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def serialize_user(user: AppUser) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'role': user.role,
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Check credentials and open a session."""
    data = LoginIn.model_validate(request.get_json(silent=True) or {})
    db_session = get_session()

    user = db_session.query(AppUser).filter(
        func.lower(AppUser.email) == data.email.strip().lower(),
        AppUser.active.is_(True)
    ).first()
    if not user or not user.check_password(data.password):
        logger.info(f"Failed login for {data.email}")
        raise UnauthorizedError('Invalid email or password')

    session.clear()
    session['user_id'] = user.id
    session.permanent = True
    logger.info(f"User {user.id} logged in")
    return jsonify({'user': serialize_user(user)})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/me', methods=['GET'])
@require_login
def me():
    return jsonify({'user': serialize_user(g.user)})
