"""
Cart blueprint - cart lines, summary, validation and promo codes.
"""
from flask import Blueprint, g, jsonify, request

from estate.database import get_session
from estate.middleware import require_login
from estate.schemas import CartItemDelete, CartItemIn, CartItemUpdate, PromoApplyIn
from estate.services import cart_service, promo_service

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


@cart_bp.route('', methods=['GET'])
@require_login
def get_cart():
    return jsonify(cart_service.get_cart(get_session(), g.user.id))


@cart_bp.route('', methods=['POST'])
@require_login
def add_item():
    data = CartItemIn.model_validate(_json_body())
    item = cart_service.add_to_cart(get_session(), g.user.id, data.product_id,
                                    data.variant_id, data.quantity)
    return jsonify({
        'message': 'Item added to cart',
        'item': cart_service.serialize_cart_item(item),
    }), 201


@cart_bp.route('', methods=['PUT'])
@require_login
def update_item():
    data = CartItemUpdate.model_validate(_json_body())
    item = cart_service.update_cart_item(get_session(), g.user.id, data.item_id, data.quantity)
    return jsonify({
        'message': 'Cart item updated',
        'item': cart_service.serialize_cart_item(item),
    })


@cart_bp.route('', methods=['DELETE'])
@require_login
def delete_item():
    data = CartItemDelete.model_validate(_json_body())
    cart_service.remove_cart_item(get_session(), g.user.id, data.item_id)
    return jsonify({'message': 'Item removed from cart'})


@cart_bp.route('/summary', methods=['GET'])
@require_login
def summary():
    """Cart totals. Runs promo reconciliation first (may deactivate an expired promo)."""
    _reconciliation, result = promo_service.get_cart_summary(get_session(), g.user.id)
    return jsonify(result)


@cart_bp.route('/validate', methods=['POST'])
@require_login
def validate():
    """Validate the cart before checkout. Invalid lines are removed as a side effect."""
    result = cart_service.validate_cart(get_session(), g.user.id)
    return jsonify(result), (200 if result['valid'] else 400)


@cart_bp.route('/promo', methods=['POST'])
@require_login
def apply_promo():
    data = PromoApplyIn.model_validate(_json_body())
    return jsonify(promo_service.apply_promo_code(get_session(), g.user.id, data.code))


@cart_bp.route('/promo', methods=['DELETE'])
@require_login
def remove_promo():
    return jsonify(promo_service.remove_promo_code(get_session(), g.user.id))
