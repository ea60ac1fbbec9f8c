"""
Admin blueprint - back-office orders, bookings, promo codes and catalog.

Every route requires the ADMIN or MANAGER role.
"""
from flask import Blueprint, current_app, jsonify, request

from estate.database import get_session
from estate.exceptions import ValidationError
from estate.middleware import BACK_OFFICE_ROLES, require_role
from estate.models import Activity, Property
from estate.schemas import (
    ActivityIn, ActivityUpdate, BookingStatusUpdate, OrderStatusUpdate, ProductIn, ProductUpdate,
    PromoCodeIn, PromoCodeUpdate, PropertyIn, PropertyUpdate, VariantUpdate,
)
from estate.services import booking_service, catalog_service, order_service, promo_service
from estate.services.booking_service import ACTIVITY, STAY
from estate.utils.dates import parse_iso_date
from estate.utils.pagination import parse_page_args

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _body() -> dict:
    return request.get_json(silent=True) or {}


# ============================================================================
# ORDERS
# ============================================================================

@admin_bp.route('/orders', methods=['GET'])
@require_role(*BACK_OFFICE_ROLES)
def list_orders():
    page, limit = parse_page_args(request.args, default_limit=20)
    user_id = request.args.get('userId', type=int)
    result = order_service.list_orders(
        get_session(), page, limit,
        user_id=user_id,
        status=request.args.get('status'),
        order_type=request.args.get('type'),
    )
    return jsonify(result)


@admin_bp.route('/orders/<int:order_id>', methods=['GET'])
@require_role(*BACK_OFFICE_ROLES)
def get_order(order_id: int):
    order = order_service.get_order(get_session(), order_id)
    return jsonify({'order': order_service.serialize_order(order)})


@admin_bp.route('/orders/<int:order_id>/status', methods=['PATCH'])
@require_role(*BACK_OFFICE_ROLES)
def update_order_status(order_id: int):
    data = OrderStatusUpdate.model_validate(_body())
    order = order_service.update_order_status(get_session(), order_id, data.status, data.payment_status)
    current_app.logger.info(f"Order {order.order_number} now {order.status}/{order.payment_status}")
    return jsonify({'message': 'Order updated', 'order': order_service.serialize_order(order)})


# ============================================================================
# PROMO CODES
# ============================================================================

@admin_bp.route('/promo-codes', methods=['GET'])
@require_role(*BACK_OFFICE_ROLES)
def list_promo_codes():
    active = request.args.get('active')
    active_filter = None if active is None else active.lower() == 'true'
    return jsonify({'promoCodes': promo_service.list_promo_codes(get_session(), active_filter)})


@admin_bp.route('/promo-codes', methods=['POST'])
@require_role(*BACK_OFFICE_ROLES)
def create_promo_code():
    data = PromoCodeIn.model_validate(_body())
    promo = promo_service.create_promo_code(get_session(), data.model_dump())
    return jsonify({'promoCode': promo_service.serialize_promo_code(promo)}), 201


@admin_bp.route('/promo-codes/<int:promo_id>', methods=['PATCH'])
@require_role(*BACK_OFFICE_ROLES)
def update_promo_code(promo_id: int):
    data = PromoCodeUpdate.model_validate(_body())
    promo = promo_service.update_promo_code(get_session(), promo_id, data.model_dump(exclude_unset=True))
    return jsonify({'promoCode': promo_service.serialize_promo_code(promo)})


# ============================================================================
# PRODUCTS
# ============================================================================

@admin_bp.route('/products', methods=['POST'])
@require_role(*BACK_OFFICE_ROLES)
def create_product():
    data = ProductIn.model_validate(_body())
    product = catalog_service.create_product(get_session(), data.model_dump())
    return jsonify({'product': catalog_service.serialize_product(product)}), 201


@admin_bp.route('/products/<int:product_id>', methods=['PATCH'])
@require_role(*BACK_OFFICE_ROLES)
def update_product(product_id: int):
    data = ProductUpdate.model_validate(_body())
    product = catalog_service.update_product(get_session(), product_id, data.model_dump(exclude_unset=True))
    return jsonify({'product': catalog_service.serialize_product(product)})


@admin_bp.route('/variants/<int:variant_id>', methods=['PATCH'])
@require_role(*BACK_OFFICE_ROLES)
def update_variant(variant_id: int):
    data = VariantUpdate.model_validate(_body())
    variant = catalog_service.set_variant_state(
        get_session(), variant_id,
        is_active=data.is_active,
        stock_quantity=data.stock_quantity,
        clear_stock=data.unlimited_stock,
    )
    return jsonify({'variant': catalog_service.serialize_variant(variant)})


# ============================================================================
# STAYS AND ACTIVITIES
# ============================================================================

@admin_bp.route('/properties', methods=['POST'])
@require_role(*BACK_OFFICE_ROLES)
def create_property():
    data = PropertyIn.model_validate(_body())
    prop = catalog_service.create_property(get_session(), data.model_dump())
    return jsonify({'property': catalog_service.serialize_property(prop)}), 201


@admin_bp.route('/properties/<int:property_id>', methods=['PATCH'])
@require_role(*BACK_OFFICE_ROLES)
def update_property(property_id: int):
    data = PropertyUpdate.model_validate(_body())
    prop = catalog_service.update_property(get_session(), property_id, data.model_dump(exclude_unset=True))
    return jsonify({'property': catalog_service.serialize_property(prop)})


@admin_bp.route('/properties/<int:property_id>', methods=['DELETE'])
@require_role(*BACK_OFFICE_ROLES)
def deactivate_property(property_id: int):
    prop = catalog_service.deactivate_listing(get_session(), Property, property_id)
    return jsonify({'message': 'Property deactivated', 'property': catalog_service.serialize_property(prop)})


@admin_bp.route('/activities', methods=['POST'])
@require_role(*BACK_OFFICE_ROLES)
def create_activity():
    data = ActivityIn.model_validate(_body())
    activity = catalog_service.create_activity(get_session(), data.model_dump())
    return jsonify({'activity': catalog_service.serialize_activity(activity)}), 201


@admin_bp.route('/activities/<int:activity_id>', methods=['PATCH'])
@require_role(*BACK_OFFICE_ROLES)
def update_activity(activity_id: int):
    data = ActivityUpdate.model_validate(_body())
    activity = catalog_service.update_activity(get_session(), activity_id, data.model_dump(exclude_unset=True))
    return jsonify({'activity': catalog_service.serialize_activity(activity)})


@admin_bp.route('/activities/<int:activity_id>', methods=['DELETE'])
@require_role(*BACK_OFFICE_ROLES)
def deactivate_activity(activity_id: int):
    activity = catalog_service.deactivate_listing(get_session(), Activity, activity_id)
    return jsonify({'message': 'Activity deactivated', 'activity': catalog_service.serialize_activity(activity)})


# ============================================================================
# BOOKINGS
# ============================================================================

def _date_arg(name: str):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f'{name} must be a date (YYYY-MM-DD)', errors=[f'{name}: invalid date'])


@admin_bp.route('/bookings', methods=['GET'])
@require_role(*BACK_OFFICE_ROLES)
def list_bookings():
    """
    Every guest's stays (kind=stay, default) or activity bookings
    (kind=activity), earliest start first.

    Filters: status, userId, propertyId/activityId, from, to.
    """
    kind = request.args.get('kind', STAY)
    target_arg = 'activityId' if kind == ACTIVITY else 'propertyId'
    page, limit = parse_page_args(request.args, default_limit=50)
    result = booking_service.list_bookings(
        get_session(), kind, page, limit,
        user_id=request.args.get('userId', type=int),
        status=request.args.get('status'),
        target_id=request.args.get(target_arg, type=int),
        date_from=_date_arg('from'),
        date_to=_date_arg('to'),
        include_guest=True,
    )
    return jsonify(result)


@admin_bp.route('/bookings/<int:booking_id>', methods=['PATCH'], defaults={'kind': STAY})
@admin_bp.route('/activity-bookings/<int:booking_id>', methods=['PATCH'], defaults={'kind': ACTIVITY})
@require_role(*BACK_OFFICE_ROLES)
def update_booking(kind: str, booking_id: int):
    data = BookingStatusUpdate.model_validate(_body())
    booking = booking_service.update_booking_status(get_session(), kind, booking_id,
                                                    data.status, data.payment_status)
    return jsonify({'message': 'Booking updated',
                    'booking': booking_service.serialize(kind, booking, include_guest=True)})
