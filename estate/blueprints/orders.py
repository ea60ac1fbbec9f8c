"""
Orders blueprint - checkout and the customer's order history.
"""
from flask import Blueprint, current_app, g, jsonify, request

from estate.database import get_session
from estate.middleware import require_login
from estate.schemas import OrderCreateIn
from estate.services import order_service
from estate.services.payment_service import build_payment_instructions
from estate.utils.pagination import parse_page_args

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


@orders_bp.route('', methods=['POST'])
@require_login
def create_order():
    """
    Create an order (product purchase, property stay or activity booking).

    The response carries payment instructions tagged by 'kind'.
    """
    payload = OrderCreateIn.model_validate(request.get_json(silent=True) or {})
    order = order_service.create_order(get_session(), g.user.id, payload.to_service_data(),
                                       current_app.config)

    current_app.logger.info(f"Order {order.order_number} created by user {g.user.id}")
    return jsonify({
        'message': 'Order created successfully',
        'order': {
            'id': order.id,
            'orderNumber': order.order_number,
            'status': order.status,
            'total': order.total,
            'paymentMethod': order.payment_method,
        },
        'payment': build_payment_instructions(order, current_app.config),
    })


@orders_bp.route('', methods=['GET'])
@require_login
def list_orders():
    page, limit = parse_page_args(request.args)
    result = order_service.list_orders(
        get_session(), page, limit,
        user_id=g.user.id,
        status=request.args.get('status'),
        order_type=request.args.get('type'),
    )
    return jsonify(result)


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_login
def get_order(order_id: int):
    order = order_service.get_order(get_session(), order_id, user_id=g.user.id)
    return jsonify({'order': order_service.serialize_order(order)})
