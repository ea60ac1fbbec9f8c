"""
Cart service - cart lines and pre-checkout validation.

Validation is self-healing: lines whose product or variant is gone, or
whose stock ran out, are deleted from the cart (and the deletion committed)
even when the validation as a whole fails.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from estate.blueprints.metrics import cart_lines_removed_total
from estate.exceptions import BusinessLogicError, InsufficientStockError, NotFoundError
from estate.models import CartItem, Product, ProductVariant
from estate.services.catalog_service import effective_price, effective_stock
from estate.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)

MAX_QUANTITY_PER_LINE = 10

# Issue types. The first three remove the line.
PRODUCT_INACTIVE = 'product_inactive'
VARIANT_INACTIVE = 'variant_inactive'
OUT_OF_STOCK = 'out_of_stock'
INSUFFICIENT_STOCK = 'insufficient_stock'
MAX_QUANTITY_EXCEEDED = 'max_quantity_exceeded'
TERMINAL_ISSUES = (PRODUCT_INACTIVE, VARIANT_INACTIVE, OUT_OF_STOCK)


def load_cart_items(session: Session, user_id: int) -> List[CartItem]:
    """Cart lines of a user with product and variant loaded."""
    return (session.query(CartItem)
            .options(joinedload(CartItem.product), joinedload(CartItem.variant))
            .filter(CartItem.user_id == user_id)
            .order_by(CartItem.created_at, CartItem.id)
            .all())


def _display_name(item: CartItem) -> str:
    if item.variant is not None:
        return f"{item.product.name} ({item.variant.name})"
    return item.product.name


def serialize_cart_item(item: CartItem) -> Dict[str, Any]:
    price = effective_price(item.product, item.variant)
    return {
        'id': item.id,
        'productId': item.product_id,
        'variantId': item.variant_id,
        'quantity': item.quantity,
        'price': price,
        'lineTotal': round_money(price * item.quantity),
        'name': item.product.name,
        'variantName': item.variant.name if item.variant is not None else None,
        'isActive': item.product.is_active and (item.variant is None or item.variant.is_active),
        'stockQuantity': effective_stock(item.product, item.variant),
    }


# =====================================================
# CART LINES
# =====================================================

def get_cart(session: Session, user_id: int) -> Dict[str, Any]:
    items = load_cart_items(session, user_id)
    return {
        'items': [serialize_cart_item(i) for i in items],
        'itemCount': len(items),
        'totalQuantity': sum(i.quantity for i in items),
    }


def _check_line_quantity(product: Product, variant: Optional[ProductVariant], quantity: int) -> None:
    if quantity < 1:
        raise BusinessLogicError('Quantity must be at least 1')
    if quantity > MAX_QUANTITY_PER_LINE:
        raise BusinessLogicError(f'Maximum {MAX_QUANTITY_PER_LINE} items per product')
    if product.max_quantity_per_order is not None and quantity > product.max_quantity_per_order:
        max_qty = product.max_quantity_per_order
        raise BusinessLogicError(
            f'Maximum {max_qty} {_items(max_qty)} allowed per order for {product.name}',
            payload={'maxQuantity': product.max_quantity_per_order}
        )
    stock = effective_stock(product, variant)
    if stock is not None and quantity > stock:
        name = f"{product.name} ({variant.name})" if variant is not None else product.name
        raise InsufficientStockError(name, quantity, stock)


def add_to_cart(session: Session, user_id: int, product_id: int,
                variant_id: Optional[int] = None, quantity: int = 1) -> CartItem:
    """Add a product to the cart, merging into an existing line for the same product/variant."""
    product = session.query(Product).filter(Product.id == product_id, Product.is_active.is_(True)).first()
    if not product:
        raise NotFoundError('Product not found or inactive')

    variant = None
    if variant_id is not None:
        variant = session.query(ProductVariant).filter(
            ProductVariant.id == variant_id,
            ProductVariant.product_id == product_id,
            ProductVariant.is_active.is_(True)
        ).first()
        if not variant:
            raise NotFoundError('Product variant not found or inactive')

    item = session.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.product_id == product_id,
        CartItem.variant_id.is_(None) if variant_id is None else CartItem.variant_id == variant_id
    ).first()

    new_quantity = (item.quantity if item else 0) + quantity
    _check_line_quantity(product, variant, new_quantity)

    if item:
        item.quantity = new_quantity
    else:
        item = CartItem(user_id=user_id, product_id=product_id, variant_id=variant_id, quantity=quantity)
        session.add(item)
    session.commit()
    logger.info(f"[CART] user={user_id} product={product_id} variant={variant_id} qty={new_quantity}")
    return item


def _get_own_item(session: Session, user_id: int, item_id: int) -> CartItem:
    item = session.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user_id).first()
    if not item:
        raise NotFoundError('Cart item not found')
    return item


def update_cart_item(session: Session, user_id: int, item_id: int, quantity: int) -> CartItem:
    item = _get_own_item(session, user_id, item_id)
    _check_line_quantity(item.product, item.variant, quantity)
    item.quantity = quantity
    session.commit()
    return item


def remove_cart_item(session: Session, user_id: int, item_id: int) -> None:
    item = _get_own_item(session, user_id, item_id)
    session.delete(item)
    session.commit()


def clear_cart(session: Session, user_id: int) -> int:
    """Delete every line of a user's cart. Does not commit."""
    return session.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)


# =====================================================
# VALIDATION
# =====================================================

def _items(count: int) -> str:
    return 'item' if count == 1 else 'items'


def _classify(item: CartItem) -> List[Dict[str, Any]]:
    """
    Issues of a cart line, in check order.

    A terminal issue is always alone in the list; the two advisory
    issues may both be reported for the same line.
    """
    product = item.product
    variant = item.variant
    if product is None or not product.is_active:
        name = product.name if product is not None else 'Product'
        return [{'type': PRODUCT_INACTIVE, 'message': f'{name} is no longer available',
                 'productName': name}]

    if item.variant_id is not None and (variant is None or not variant.is_active):
        variant_name = variant.name if variant is not None else 'variant'
        return [{'type': VARIANT_INACTIVE,
                 'message': f'{product.name} ({variant_name}) is no longer available',
                 'productName': product.name, 'variantName': variant_name}]

    issues = []
    stock = effective_stock(product, variant)
    if stock is not None and item.quantity > stock:
        context = {
            'productName': product.name,
            'variantName': variant.name if variant is not None else None,
            'requestedQuantity': item.quantity,
            'availableQuantity': max(stock, 0),
        }
        if stock <= 0:
            return [dict(context, type=OUT_OF_STOCK, message=f'{_display_name(item)} is out of stock')]
        issues.append(dict(
            context,
            type=INSUFFICIENT_STOCK,
            message=f'Only {stock} {_items(stock)} available for {_display_name(item)}',
            suggestedAction='reduce_quantity',
        ))

    max_qty = product.max_quantity_per_order
    if max_qty is not None and item.quantity > max_qty:
        issues.append({
            'type': MAX_QUANTITY_EXCEEDED,
            'message': f'Maximum {max_qty} {_items(max_qty)} allowed per order for {product.name}',
            'productName': product.name,
            'requestedQuantity': item.quantity,
            'maxQuantity': max_qty,
            'suggestedAction': 'reduce_quantity',
        })
    return issues


def validate_cart(session: Session, user_id: int) -> Dict[str, Any]:
    """
    Check every cart line against the current catalog state.

    Returns {valid, itemCount, subtotal, issues, validItems, removedItems}
    (plus 'error' for an empty cart). Lines with a terminal issue are
    deleted and the deletion is committed before returning.
    """
    items = load_cart_items(session, user_id)
    if not items:
        return {
            'valid': False,
            'error': 'Your cart is empty',
            'itemCount': 0,
            'subtotal': ZERO,
            'issues': [],
            'validItems': [],
            'removedItems': 0,
        }

    issues = []
    valid_items = []
    removed = []
    subtotal = ZERO

    for item in items:
        line_issues = _classify(item)
        for issue in line_issues:
            issue['itemId'] = item.id
            issue['productId'] = item.product_id
            issue['variantId'] = item.variant_id
        issues.extend(line_issues)
        if line_issues and line_issues[0]['type'] in TERMINAL_ISSUES:
            removed.append((item, line_issues[0]['type']))
            continue

        price = effective_price(item.product, item.variant)
        subtotal += price * item.quantity
        valid_items.append({
            'id': item.id,
            'productId': item.product_id,
            'variantId': item.variant_id,
            'quantity': item.quantity,
            'price': price,
            'name': item.product.name,
            'variantName': item.variant.name if item.variant is not None else None,
        })

    if removed:
        try:
            for item, _reason in removed:
                session.delete(item)
            session.commit()
        except Exception:
            session.rollback()
            raise
        for _item, reason in removed:
            cart_lines_removed_total.labels(reason=reason).inc()
        logger.info(f"[CART] Validation removed {len(removed)} line(s) for user={user_id}")

    return {
        'valid': bool(valid_items) and not removed,
        'itemCount': len(valid_items),
        'subtotal': round_money(subtotal),
        'issues': issues,
        'validItems': valid_items,
        'removedItems': len(removed),
    }
