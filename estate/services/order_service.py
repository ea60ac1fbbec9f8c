"""
Order service - checkout of products, stays and activities.

create_order() works in two phases:
1. pre-validation of every item (no writes, fail fast)
2. one transaction creating the order and its children. Stock is
   decremented with a conditional UPDATE, stays and activities are
   re-checked after locking their row, so concurrent checkouts cannot
   oversell. Any failure rolls back every write of the call.
"""
import logging
import secrets
import string
import time
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from estate.blueprints.metrics import orders_created_total
from estate.exceptions import (
    BusinessLogicError, ConflictError, EstateError, InsufficientStockError, NotFoundError,
)
from estate.models import (
    Activity, ActivityBooking, BlockedDate, Booking, BookingStatus, Order, OrderItem,
    OrderStatus, OrderType, PaymentStatus, Product, ProductVariant, Property, BLOCKING_STATUSES,
)
from estate.services.cart_service import clear_cart
from estate.services.catalog_service import booked_participants, effective_price
from estate.services.pricing_service import calculate_order_totals, items_subtotal
from estate.services.promo_service import deactivate_user_promos
from estate.services.settings_service import get_setting_values
from estate.utils.money import round_money, to_decimal
from estate.utils.pagination import build_pagination

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_uppercase
MINIMUM_STAY_KEY = 'booking.minimumStay'

# Allowed admin transitions; completed and cancelled are terminal
ORDER_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.PENDING_PAYMENT.value, OrderStatus.CONFIRMED.value,
                                OrderStatus.PROCESSING.value, OrderStatus.CANCELLED.value},
    OrderStatus.PENDING_PAYMENT.value: {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value,
                                        OrderStatus.CANCELLED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.PROCESSING.value, OrderStatus.SHIPPED.value,
                                  OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value},
    OrderStatus.PROCESSING.value: {OrderStatus.SHIPPED.value, OrderStatus.COMPLETED.value,
                                   OrderStatus.CANCELLED.value},
    OrderStatus.SHIPPED.value: {OrderStatus.COMPLETED.value},
    OrderStatus.COMPLETED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}

# Booking status that follows an order status change
BOOKING_STATUS_FOR_ORDER = {
    OrderStatus.CONFIRMED.value: BookingStatus.CONFIRMED.value,
    OrderStatus.COMPLETED.value: BookingStatus.COMPLETED.value,
    OrderStatus.CANCELLED.value: BookingStatus.CANCELLED.value,
}


def generate_order_number(prefix: str = 'ZE', now_ms: Optional[int] = None) -> str:
    """Prefix + last 6 digits of the epoch milliseconds + 6 random base36 characters."""
    timestamp = str(now_ms if now_ms is not None else int(time.time() * 1000))
    suffix = ''.join(secrets.choice(BASE36) for _ in range(6))
    return f"{prefix}{timestamp[-6:]}{suffix}"


def initial_statuses(payment_method: str) -> Tuple[str, str]:
    """(order status, payment status) of a new order."""
    if payment_method == 'bank_transfer':
        return OrderStatus.PENDING_PAYMENT.value, PaymentStatus.PENDING.value
    return OrderStatus.PENDING.value, PaymentStatus.PROCESSING.value


# =====================================================
# PRE-VALIDATION (no writes)
# =====================================================

def _overlapping_booking(session: Session, property_id: int, check_in: date, check_out: date) -> Optional[Booking]:
    """A pending/confirmed booking whose stay intersects [check_in, check_out)."""
    return session.query(Booking).filter(
        Booking.property_id == property_id,
        Booking.status.in_(BLOCKING_STATUSES),
        Booking.check_in < check_out,
        Booking.check_out > check_in
    ).first()


def _has_blocked_day(session: Session, start: date, end: date, property_id=None, activity_id=None) -> bool:
    query = session.query(BlockedDate.id)
    if property_id is not None:
        query = query.filter(BlockedDate.property_id == property_id, BlockedDate.date >= start,
                             BlockedDate.date < end)
    else:
        query = query.filter(BlockedDate.activity_id == activity_id, BlockedDate.date == start)
    return query.first() is not None


def _line_stock(product: Product, variant: Optional[ProductVariant]) -> Optional[int]:
    """Stock an order line draws from: the variant's alone when one is named (None = unlimited)."""
    if variant is not None:
        return variant.stock_quantity
    return product.stock_quantity


def _price_mismatch(name: str, expected, submitted, **ids) -> ConflictError:
    return ConflictError(
        f'The price of {name} has changed',
        payload={
            'reason': 'price_mismatch',
            **ids,
            'expectedPrice': round_money(expected),
            'submittedPrice': round_money(submitted),
        }
    )


def _minimum_stay(session: Session) -> int:
    value = get_setting_values(session, [MINIMUM_STAY_KEY]).get(MINIMUM_STAY_KEY)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 1:
        return int(value)
    return 1


def _validate_product_item(session: Session, item: Dict[str, Any]) -> Tuple[Product, Optional[ProductVariant]]:
    if not item.get('product_id'):
        raise BusinessLogicError('Product ID is required for product orders')

    product = session.query(Product).filter(
        Product.id == item['product_id'], Product.is_active.is_(True)
    ).first()
    if not product:
        raise NotFoundError('Product not found or inactive')

    variant = None
    name = product.name
    if item.get('variant_id'):
        variant = session.query(ProductVariant).filter(
            ProductVariant.id == item['variant_id'],
            ProductVariant.product_id == product.id,
            ProductVariant.is_active.is_(True)
        ).first()
        if not variant:
            raise NotFoundError('Product variant not found or inactive')
        name = f"{product.name} ({variant.name})"

    stock = _line_stock(product, variant)
    if stock is not None and item['quantity'] > stock:
        raise InsufficientStockError(name, item['quantity'], stock)

    catalog_price = effective_price(product, variant)
    if round_money(item['price']) != round_money(catalog_price):
        raise _price_mismatch(name, catalog_price, item['price'],
                              productId=product.id, variantId=variant.id if variant else None)
    return product, variant


def _validate_property_item(session: Session, item: Dict[str, Any]) -> Property:
    if not item.get('property_id') or not item.get('check_in') or not item.get('check_out'):
        raise BusinessLogicError('Property ID, check-in, and check-out dates are required for property bookings')
    if item['check_out'] <= item['check_in']:
        raise BusinessLogicError('Check-out date must be after check-in date')
    minimum = _minimum_stay(session)
    if (item['check_out'] - item['check_in']).days < minimum:
        raise BusinessLogicError(f'Stays must be at least {minimum} night(s)')

    prop = session.query(Property).filter(
        Property.id == item['property_id'], Property.is_active.is_(True)
    ).first()
    if not prop:
        raise NotFoundError('Property not found or inactive')

    if item['quantity'] > prop.max_guests:
        raise BusinessLogicError(f'{prop.name} accommodates at most {prop.max_guests} guests')

    if (_overlapping_booking(session, prop.id, item['check_in'], item['check_out'])
            or _has_blocked_day(session, item['check_in'], item['check_out'], property_id=prop.id)):
        raise BusinessLogicError('Property is not available for the selected dates')
    return prop


def _validate_activity_item(session: Session, item: Dict[str, Any]) -> Activity:
    if not item.get('activity_id') or not item.get('activity_date') or not item.get('participants'):
        raise BusinessLogicError('Activity ID, date, and participants are required for activity bookings')

    activity = session.query(Activity).filter(
        Activity.id == item['activity_id'], Activity.is_active.is_(True)
    ).first()
    if not activity:
        raise NotFoundError('Activity not found or inactive')

    if round_money(item['price']) != round_money(activity.price):
        raise _price_mismatch(activity.name, activity.price, item['price'], activityId=activity.id)

    participants = item['participants']
    if participants < activity.min_participants or participants > activity.max_participants:
        raise BusinessLogicError(
            f'Activity requires {activity.min_participants}-{activity.max_participants} participants'
        )

    if _has_blocked_day(session, item['activity_date'], item['activity_date'], activity_id=activity.id):
        raise BusinessLogicError('Activity is not available on the selected date')

    remaining = activity.max_participants - booked_participants(session, activity.id, item['activity_date'])
    if participants > remaining:
        raise BusinessLogicError(
            'Not enough places left for the selected date',
            payload={'remainingCapacity': max(remaining, 0)}
        )
    return activity


def validate_order_items(session: Session, order_type: str, items: List[Dict[str, Any]]) -> List[Tuple]:
    """Check every item; returns (item, entity, variant) tuples. Raises on the first failure."""
    if not items:
        raise BusinessLogicError('Order must contain at least one item')

    checked = []
    for item in items:
        if order_type == OrderType.PRODUCT.value:
            product, variant = _validate_product_item(session, item)
            checked.append((item, product, variant))
        elif order_type == OrderType.PROPERTY.value:
            checked.append((item, _validate_property_item(session, item), None))
        elif order_type == OrderType.ACTIVITY.value:
            checked.append((item, _validate_activity_item(session, item), None))
        else:
            raise BusinessLogicError(f'Unknown order type "{order_type}"')
    return checked


# =====================================================
# TRANSACTION STEPS
# =====================================================

def _insert_order(session: Session, order_fields: Dict[str, Any], prefix: str, max_attempts: int) -> Order:
    """Insert the order row, regenerating the order number on a uniqueness conflict."""
    for attempt in range(1, max_attempts + 1):
        order = Order(order_number=generate_order_number(prefix), **order_fields)
        try:
            with session.begin_nested():
                session.add(order)
                session.flush()
            return order
        except IntegrityError:
            logger.warning(f"[ORDER] Order number collision ({order.order_number}), attempt {attempt}/{max_attempts}")
            if attempt == max_attempts:
                raise
    raise EstateError('Could not allocate an order number')


def _decrement_stock(session: Session, product: Product, variant: Optional[ProductVariant], quantity: int) -> None:
    """
    Decrement the row the line draws from: the variant when one is named.

    The WHERE clause re-checks availability atomically; zero affected rows
    means a concurrent checkout took the stock. A NULL stock stays NULL.
    """
    if variant is not None:
        model, target, name = ProductVariant, variant, f"{product.name} ({variant.name})"
    else:
        model, target, name = Product, product, product.name

    result = session.execute(
        update(model)
        .where(model.id == target.id,
               or_(model.stock_quantity.is_(None), model.stock_quantity >= quantity))
        .values(stock_quantity=model.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        available = session.query(model.stock_quantity).filter(model.id == target.id).scalar()
        raise InsufficientStockError(name, quantity, available or 0, status_code=409)
    session.expire(target, ['stock_quantity'])


def _book_property(session: Session, order: Order, user_id: int, item: Dict[str, Any], prop: Property) -> None:
    # Serializes bookings of the same property
    session.query(Property).filter(Property.id == prop.id).with_for_update().one()
    if _overlapping_booking(session, prop.id, item['check_in'], item['check_out']):
        raise ConflictError('Property is not available for the selected dates')

    session.add(Booking(
        order_id=order.id,
        user_id=user_id,
        property_id=prop.id,
        check_in=item['check_in'],
        check_out=item['check_out'],
        guests=item['quantity'],
        total_amount=round_money(to_decimal(item['price']) * item['quantity']),
        status=BookingStatus.PENDING.value,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
    ))
    session.flush()


def _book_activity(session: Session, order: Order, user_id: int, item: Dict[str, Any], activity: Activity) -> None:
    session.query(Activity).filter(Activity.id == activity.id).with_for_update().one()
    booked = booked_participants(session, activity.id, item['activity_date'])
    if booked + item['participants'] > activity.max_participants:
        raise ConflictError(
            'Not enough places left for the selected date',
            payload={'remainingCapacity': max(activity.max_participants - booked, 0)}
        )

    session.add(ActivityBooking(
        order_id=order.id,
        user_id=user_id,
        activity_id=activity.id,
        activity_date=item['activity_date'],
        participants=item['participants'],
        total_amount=round_money(to_decimal(item['price']) * item['quantity']),
        status=BookingStatus.PENDING.value,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
    ))
    session.flush()


def create_order(session: Session, user_id: int, data: Dict[str, Any], config) -> Order:
    """
    Create an order with its children atomically.

    data: {type, items, shipping_address, billing_address, payment_method,
    payment_details, notes}. Items carry product_id/variant_id,
    property_id/check_in/check_out or activity_id/activity_date/participants,
    plus quantity and price.
    """
    order_type = data['type']
    items = data['items']
    checked = validate_order_items(session, order_type, items)

    totals = calculate_order_totals(items_subtotal(items), order_type)
    status, payment_status = initial_statuses(data['payment_method'])

    order_fields = {
        'user_id': user_id,
        'type': order_type,
        'status': status,
        'subtotal': totals['subtotal'],
        'tax': totals['tax'],
        'shipping': totals['shipping'],
        'total': totals['total'],
        'payment_method': data['payment_method'],
        'payment_status': payment_status,
        'shipping_address': data.get('shipping_address'),
        'billing_address': data.get('billing_address'),
        'notes': data.get('notes'),
    }

    try:
        order = _insert_order(
            session, order_fields,
            prefix=config.get('ORDER_NUMBER_PREFIX', 'ZE'),
            max_attempts=config.get('ORDER_NUMBER_MAX_ATTEMPTS', 5),
        )

        for item, entity, variant in checked:
            if order_type == OrderType.PRODUCT.value:
                session.add(OrderItem(
                    order_id=order.id,
                    product_id=entity.id,
                    variant_id=variant.id if variant else None,
                    quantity=item['quantity'],
                    price=round_money(item['price']),
                ))
                _decrement_stock(session, entity, variant, item['quantity'])
            elif order_type == OrderType.PROPERTY.value:
                _book_property(session, order, user_id, item, entity)
            else:
                _book_activity(session, order, user_id, item, entity)

        if order_type == OrderType.PRODUCT.value:
            clear_cart(session, user_id)
            deactivate_user_promos(session, user_id)

        session.commit()
    except EstateError as e:
        session.rollback()
        logger.info(f"[ORDER] Checkout rejected for user={user_id}: {e.message}")
        raise
    except Exception:
        session.rollback()
        logger.exception(f"[ORDER] Checkout failed for user={user_id}")
        raise

    orders_created_total.labels(type=order_type).inc()
    logger.info(f"[ORDER] Created {order.order_number} type={order_type} total={order.total} user={user_id}")
    return order


# =====================================================
# READS
# =====================================================

def serialize_order(order: Order, include_children: bool = True) -> Dict[str, Any]:
    data = {
        'id': order.id,
        'orderNumber': order.order_number,
        'userId': order.user_id,
        'type': order.type,
        'status': order.status,
        'subtotal': order.subtotal,
        'tax': order.tax,
        'shipping': order.shipping,
        'total': order.total,
        'paymentMethod': order.payment_method,
        'paymentStatus': order.payment_status,
        'shippingAddress': order.shipping_address,
        'billingAddress': order.billing_address,
        'notes': order.notes,
        'createdAt': order.created_at.isoformat() if order.created_at else None,
    }
    if include_children:
        data['items'] = [{
            'id': i.id,
            'productId': i.product_id,
            'variantId': i.variant_id,
            'quantity': i.quantity,
            'price': i.price,
            'productName': i.product.name if i.product else None,
            'variantName': i.variant.name if i.variant else None,
        } for i in order.items]
        data['bookings'] = [{
            'id': b.id,
            'propertyId': b.property_id,
            'propertyName': b.property.name if b.property else None,
            'checkIn': b.check_in.isoformat(),
            'checkOut': b.check_out.isoformat(),
            'guests': b.guests,
            'totalAmount': b.total_amount,
            'status': b.status,
            'paymentStatus': b.payment_status,
        } for b in order.bookings]
        data['activityBookings'] = [{
            'id': a.id,
            'activityId': a.activity_id,
            'activityName': a.activity.name if a.activity else None,
            'activityDate': a.activity_date.isoformat(),
            'participants': a.participants,
            'totalAmount': a.total_amount,
            'status': a.status,
            'paymentStatus': a.payment_status,
        } for a in order.activity_bookings]
    return data


def list_orders(session: Session, page: int, limit: int, user_id: Optional[int] = None,
                status: Optional[str] = None, order_type: Optional[str] = None) -> Dict[str, Any]:
    """Paginated orders, newest first. user_id=None lists every user's orders."""
    query = session.query(Order)
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    if status:
        query = query.filter(Order.status == status)
    if order_type:
        query = query.filter(Order.type == order_type)

    total_count = query.order_by(None).with_entities(func.count(Order.id)).scalar()
    orders = (query.options(
                  selectinload(Order.items).selectinload(OrderItem.product),
                  selectinload(Order.items).selectinload(OrderItem.variant),
                  selectinload(Order.bookings).selectinload(Booking.property),
                  selectinload(Order.activity_bookings).selectinload(ActivityBooking.activity))
              .order_by(Order.created_at.desc(), Order.id.desc())
              .offset((page - 1) * limit)
              .limit(limit)
              .all())

    return {
        'orders': [serialize_order(o) for o in orders],
        'pagination': build_pagination(page, limit, total_count),
    }


def get_order(session: Session, order_id: int, user_id: Optional[int] = None) -> Order:
    """Order by id; with user_id, orders of other users are reported as missing."""
    query = session.query(Order).filter(Order.id == order_id)
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    order = query.first()
    if not order:
        raise NotFoundError('Order not found')
    return order


# =====================================================
# ADMIN STATUS CHANGES
# =====================================================

def _restock(session: Session, order: Order) -> None:
    for item in order.items:
        target = item.variant if item.variant_id is not None else item.product
        if target is not None and target.stock_quantity is not None:
            target.stock_quantity += item.quantity


def update_order_status(session: Session, order_id: int, status: Optional[str] = None,
                        payment_status: Optional[str] = None) -> Order:
    """
    Move an order along the status table and/or set its payment status.

    Child bookings follow confirm/complete/cancel; cancelling a product
    order puts its stock back.
    """
    if status is None and payment_status is None:
        raise BusinessLogicError('Nothing to update')

    order = session.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFoundError('Order not found')

    if payment_status is not None:
        if payment_status not in {s.value for s in PaymentStatus}:
            raise BusinessLogicError(f'Unknown payment status "{payment_status}"')
        order.payment_status = payment_status
        for booking in list(order.bookings) + list(order.activity_bookings):
            booking.payment_status = payment_status

    if status is not None and status != order.status:
        if status not in ORDER_TRANSITIONS:
            raise BusinessLogicError(f'Unknown order status "{status}"')
        if status not in ORDER_TRANSITIONS[order.status]:
            raise ConflictError(f'Cannot change order status from {order.status} to {status}')

        if status == OrderStatus.CANCELLED.value and order.type == OrderType.PRODUCT.value:
            _restock(session, order)
        booking_status = BOOKING_STATUS_FOR_ORDER.get(status)
        if booking_status:
            for booking in list(order.bookings) + list(order.activity_bookings):
                booking.status = booking_status
        logger.info(f"[ORDER] {order.order_number}: {order.status} -> {status}")
        order.status = status

    session.commit()
    return order
