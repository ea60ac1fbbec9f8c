"""
Pricing service - pure money computations.

Two distinct policies live here:
- cart policy (preview shown in the cart and in promo responses)
- order policy (amounts committed on an order)
Both round half-up to cents.
"""
from decimal import Decimal
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from estate.models import CartItem, DiscountType, OrderType, PromoCode
from estate.services.catalog_service import effective_price
from estate.utils.dates import is_expired
from estate.utils.money import ZERO, round_money, to_decimal

# Cart policy
TAX_RATE = Decimal('0.15')
FREE_SHIPPING_THRESHOLD = Decimal('50.00')
STANDARD_SHIPPING_RATE = Decimal('5.99')

# Order policy
PRODUCT_ORDER_TAX_RATE = Decimal('0.15')
SERVICE_ORDER_TAX_RATE = Decimal('0.10')
ORDER_SHIPPING_THRESHOLD = Decimal('50.00')
ORDER_SHIPPING_RATE = Decimal('5.99')


def is_line_priceable(item: CartItem) -> bool:
    """A cart line counts when its product (and variant, if any) is active."""
    if item.product is None or not item.product.is_active:
        return False
    if item.variant_id is not None:
        return item.variant is not None and item.variant.is_active
    return True


def line_total(item: CartItem) -> Decimal:
    return effective_price(item.product, item.variant) * item.quantity


def calculate_subtotal(cart_items: Iterable[CartItem]) -> Decimal:
    """Undiscounted subtotal of the priceable lines."""
    subtotal = sum((line_total(i) for i in cart_items if is_line_priceable(i)), ZERO)
    return round_money(subtotal)


def is_promo_usable(promo: Optional[PromoCode], now: Optional[datetime] = None) -> bool:
    """Active and not expired. Usage rules are enforced when the promo is applied."""
    return promo is not None and promo.is_active and not is_expired(promo.expires_at, now)


def promo_applies(promo: Optional[PromoCode], subtotal, now: Optional[datetime] = None) -> bool:
    """Usable and the subtotal reaches the minimum amount, if any."""
    if not is_promo_usable(promo, now):
        return False
    return promo.minimum_amount is None or to_decimal(subtotal) >= to_decimal(promo.minimum_amount)


def calculate_discount(promo: Optional[PromoCode], subtotal, now: Optional[datetime] = None) -> Decimal:
    """
    Discount granted by a promo on a subtotal, rounded to cents.

    Zero when the promo is missing, inactive, expired or the minimum
    amount is not reached.
    """
    subtotal = to_decimal(subtotal)
    if not promo_applies(promo, subtotal, now):
        return ZERO

    value = to_decimal(promo.discount_value)
    if promo.discount_type == DiscountType.PERCENTAGE.value:
        discount = subtotal * value / Decimal('100')
        if promo.maximum_discount is not None:
            discount = min(discount, to_decimal(promo.maximum_discount))
    else:
        discount = min(value, subtotal)
    return round_money(max(discount, ZERO))


def calculate_cart_totals(subtotal, discount=ZERO) -> Dict[str, Decimal]:
    """Shipping, tax and total for a cart (cart policy)."""
    subtotal = round_money(subtotal)
    discount = round_money(discount)
    discounted = subtotal - discount

    shipping = ZERO if discounted >= FREE_SHIPPING_THRESHOLD else STANDARD_SHIPPING_RATE
    tax = round_money(discounted * TAX_RATE)
    return {
        'subtotal': subtotal,
        'discount': discount,
        'shipping': shipping,
        'tax': tax,
        'total': round_money(discounted + shipping + tax),
    }


def calculate_cart_summary(
    cart_items: Iterable[CartItem],
    promo: Optional[PromoCode] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Full cart summary.

    Returns {subtotal, discount, shipping, tax, total, itemCount,
    totalQuantity, freeShippingThreshold, appliedPromo}.
    """
    lines = [i for i in cart_items if is_line_priceable(i)]
    subtotal = calculate_subtotal(lines)
    discount = calculate_discount(promo, subtotal, now)
    totals = calculate_cart_totals(subtotal, discount)

    totals.update({
        'itemCount': len(lines),
        'totalQuantity': sum(i.quantity for i in lines),
        'freeShippingThreshold': FREE_SHIPPING_THRESHOLD,
        'appliedPromo': promo.code if promo_applies(promo, subtotal, now) else None,
    })
    return totals


def calculate_order_totals(subtotal, order_type: str) -> Dict[str, Decimal]:
    """
    Totals committed on an order (order policy).

    Tax is 15% for product orders and 10% for stays and activities; shipping
    only applies to product orders under the threshold.
    """
    subtotal = round_money(subtotal)
    is_product = order_type == OrderType.PRODUCT.value
    rate = PRODUCT_ORDER_TAX_RATE if is_product else SERVICE_ORDER_TAX_RATE
    tax = round_money(subtotal * rate)
    shipping = ORDER_SHIPPING_RATE if is_product and subtotal < ORDER_SHIPPING_THRESHOLD else ZERO
    return {
        'subtotal': subtotal,
        'tax': tax,
        'shipping': shipping,
        'total': round_money(subtotal + tax + shipping),
    }


def items_subtotal(items: Iterable[Dict[str, Any]]) -> Decimal:
    """Σ price × quantity of order request items."""
    return round_money(sum((to_decimal(i['price']) * i['quantity'] for i in items), ZERO))
