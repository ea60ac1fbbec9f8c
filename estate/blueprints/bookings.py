"""
Bookings blueprint - a guest's own stays and activity bookings.

Stays live under /api/bookings, activity bookings under
/api/activity-bookings; both share the same views.
"""
from flask import Blueprint, current_app, g, jsonify, request

from estate.database import get_session
from estate.middleware import require_login
from estate.services import booking_service
from estate.services.booking_service import ACTIVITY, STAY
from estate.utils.pagination import parse_page_args

bookings_bp = Blueprint('bookings', __name__, url_prefix='/api')


@bookings_bp.route('/bookings', methods=['GET'], defaults={'kind': STAY})
@bookings_bp.route('/activity-bookings', methods=['GET'], defaults={'kind': ACTIVITY})
@require_login
def list_bookings(kind: str):
    page, limit = parse_page_args(request.args)
    result = booking_service.list_bookings(
        get_session(), kind, page, limit,
        user_id=g.user.id,
        status=request.args.get('status'),
    )
    return jsonify(result)


@bookings_bp.route('/bookings/<int:booking_id>', methods=['GET'], defaults={'kind': STAY})
@bookings_bp.route('/activity-bookings/<int:booking_id>', methods=['GET'], defaults={'kind': ACTIVITY})
@require_login
def get_booking(kind: str, booking_id: int):
    booking = booking_service.get_booking(get_session(), kind, booking_id, user_id=g.user.id)
    return jsonify({'booking': booking_service.serialize(kind, booking)})


@bookings_bp.route('/bookings/<int:booking_id>/cancel', methods=['POST'], defaults={'kind': STAY})
@bookings_bp.route('/activity-bookings/<int:booking_id>/cancel', methods=['POST'], defaults={'kind': ACTIVITY})
@require_login
def cancel_booking(kind: str, booking_id: int):
    """Cancel one of the caller's bookings ahead of its start date."""
    booking = booking_service.cancel_booking(
        get_session(), kind, booking_id, g.user.id,
        notice_hours=current_app.config.get('BOOKING_CANCELLATION_NOTICE_HOURS', 24),
    )
    return jsonify({'message': 'Booking cancelled', 'booking': booking_service.serialize(kind, booking)})
