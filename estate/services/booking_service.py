"""
Booking service - reads and status changes of stays and activity bookings.

Bookings are created with their order (see order_service). Guests can
list their own bookings and cancel them ahead of time; the back office
lists every booking by start date and moves them along the status table.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from estate.exceptions import BusinessLogicError, ConflictError, ForbiddenError, NotFoundError
from estate.models import ActivityBooking, Booking, BookingStatus, PaymentStatus
from estate.utils.dates import utcnow
from estate.utils.pagination import build_pagination

logger = logging.getLogger(__name__)

STAY = 'stay'
ACTIVITY = 'activity'

# Allowed status changes; completed and cancelled are terminal
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value},
    BookingStatus.COMPLETED.value: set(),
    BookingStatus.CANCELLED.value: set(),
}


def _guest(user) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {'id': user.id, 'name': user.name, 'email': user.email}


def serialize_booking(booking: Booking, include_guest: bool = False) -> Dict[str, Any]:
    data = {
        'id': booking.id,
        'orderId': booking.order_id,
        'orderNumber': booking.order.order_number if booking.order else None,
        'propertyId': booking.property_id,
        'propertyName': booking.property.name if booking.property else None,
        'checkIn': booking.check_in.isoformat(),
        'checkOut': booking.check_out.isoformat(),
        'nights': (booking.check_out - booking.check_in).days,
        'guests': booking.guests,
        'totalAmount': booking.total_amount,
        'status': booking.status,
        'paymentMethod': booking.payment_method,
        'paymentStatus': booking.payment_status,
        'createdAt': booking.created_at.isoformat() if booking.created_at else None,
    }
    if include_guest:
        data['guest'] = _guest(booking.user)
    return data


def serialize_activity_booking(booking: ActivityBooking, include_guest: bool = False) -> Dict[str, Any]:
    data = {
        'id': booking.id,
        'orderId': booking.order_id,
        'orderNumber': booking.order.order_number if booking.order else None,
        'activityId': booking.activity_id,
        'activityName': booking.activity.name if booking.activity else None,
        'activityDate': booking.activity_date.isoformat(),
        'participants': booking.participants,
        'totalAmount': booking.total_amount,
        'status': booking.status,
        'paymentMethod': booking.payment_method,
        'paymentStatus': booking.payment_status,
        'createdAt': booking.created_at.isoformat() if booking.created_at else None,
    }
    if include_guest:
        data['guest'] = _guest(booking.user)
    return data


_KINDS = {
    STAY: (Booking, Booking.check_in, serialize_booking, 'property_id'),
    ACTIVITY: (ActivityBooking, ActivityBooking.activity_date, serialize_activity_booking, 'activity_id'),
}


def _kind(kind: str):
    if kind not in _KINDS:
        raise BusinessLogicError(f'Unknown booking kind "{kind}"')
    return _KINDS[kind]


def _start_of(booking) -> date:
    return booking.check_in if isinstance(booking, Booking) else booking.activity_date


def serialize(kind: str, booking, include_guest: bool = False) -> Dict[str, Any]:
    return _kind(kind)[2](booking, include_guest=include_guest)


def list_bookings(session: Session, kind: str, page: int, limit: int, user_id: Optional[int] = None,
                  status: Optional[str] = None, target_id: Optional[int] = None,
                  date_from: Optional[date] = None, date_to: Optional[date] = None,
                  include_guest: bool = False) -> Dict[str, Any]:
    """
    Paginated stays or activity bookings, earliest start first.

    target_id filters on the property (stays) or the activity.
    date_from/date_to bound the start date, both inclusive.
    """
    model, start_column, serializer, target_field = _kind(kind)
    query = session.query(model)
    if user_id is not None:
        query = query.filter(model.user_id == user_id)
    if status and status != 'all':
        query = query.filter(model.status == status)
    if target_id is not None:
        query = query.filter(getattr(model, target_field) == target_id)
    if date_from is not None:
        query = query.filter(start_column >= date_from)
    if date_to is not None:
        query = query.filter(start_column <= date_to)

    total_count = query.order_by(None).with_entities(func.count(model.id)).scalar()
    related = model.property if kind == STAY else model.activity
    bookings = (query.options(selectinload(related), selectinload(model.order), selectinload(model.user))
                .order_by(start_column.asc(), model.id.asc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all())

    return {
        'bookings': [serializer(b, include_guest=include_guest) for b in bookings],
        'pagination': build_pagination(page, limit, total_count),
    }


def get_booking(session: Session, kind: str, booking_id: int, user_id: Optional[int] = None):
    """Booking by id; with user_id, other guests' bookings are reported as missing."""
    model = _kind(kind)[0]
    query = session.query(model).filter(model.id == booking_id)
    if user_id is not None:
        query = query.filter(model.user_id == user_id)
    booking = query.first()
    if not booking:
        raise NotFoundError('Booking not found')
    return booking


def cancel_booking(session: Session, kind: str, booking_id: int, user_id: int, notice_hours: int = 24,
                   now: Optional[datetime] = None):
    """
    Guest cancellation of their own booking.

    Allowed while the booking is pending or confirmed and the stay or
    activity starts at least notice_hours from now (start of day, UTC).
    Cancelled bookings stop holding dates and capacity.
    """
    model = _kind(kind)[0]
    booking = session.query(model).filter(model.id == booking_id).with_for_update().first()
    if not booking:
        raise NotFoundError('Booking not found')
    if booking.user_id != user_id:
        raise ForbiddenError('You can only cancel your own bookings')
    if BookingStatus.CANCELLED.value not in BOOKING_TRANSITIONS[booking.status]:
        raise ConflictError(f'A {booking.status} booking cannot be cancelled')

    starts_at = datetime.combine(_start_of(booking), time.min, tzinfo=timezone.utc)
    if starts_at - (now or utcnow()) < timedelta(hours=notice_hours):
        raise ConflictError(f'Cancellation not allowed within {notice_hours} hours of the booking')

    booking.status = BookingStatus.CANCELLED.value
    session.commit()
    logger.info(f"[BOOKING] {kind} booking {booking.id} cancelled by user={user_id}")
    return booking


def update_booking_status(session: Session, kind: str, booking_id: int, status: Optional[str] = None,
                          payment_status: Optional[str] = None):
    """Back-office status and/or payment status change of one booking."""
    if status is None and payment_status is None:
        raise BusinessLogicError('Nothing to update')

    model = _kind(kind)[0]
    booking = session.query(model).filter(model.id == booking_id).with_for_update().first()
    if not booking:
        raise NotFoundError('Booking not found')

    if payment_status is not None:
        if payment_status not in {s.value for s in PaymentStatus}:
            raise BusinessLogicError(f'Unknown payment status "{payment_status}"')
        booking.payment_status = payment_status

    if status is not None and status != booking.status:
        if status not in BOOKING_TRANSITIONS:
            raise BusinessLogicError(f'Unknown booking status "{status}"')
        if status not in BOOKING_TRANSITIONS[booking.status]:
            raise ConflictError(f'Cannot change booking status from {booking.status} to {status}')
        logger.info(f"[BOOKING] {kind} booking {booking.id}: {booking.status} -> {status}")
        booking.status = status

    session.commit()
    return booking
