"""
Unit tests for the pricing policies (no database needed).
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from estate.models import CartItem, Product, ProductVariant, PromoCode
from estate.services.pricing_service import (
    calculate_cart_summary, calculate_cart_totals, calculate_discount, calculate_order_totals,
    items_subtotal, FREE_SHIPPING_THRESHOLD
)


def _line(price, quantity, active=True, variant_price=None, variant_active=True):
    product = Product(name='Item', price=Decimal(price), is_active=active)
    item = CartItem(product=product, quantity=quantity)
    if variant_price is not None:
        variant = ProductVariant(id=99, name='Large', price=Decimal(variant_price), is_active=variant_active)
        item.variant = variant
        item.variant_id = 99
    return item


def _promo(discount_type='fixed', value='10', **kwargs):
    kwargs.setdefault('is_active', True)
    return PromoCode(code='CODE', discount_type=discount_type, discount_value=Decimal(value), **kwargs)


class TestCartSummary:
    """Cart policy: 15% tax, free shipping from 50, 5.99 otherwise."""

    def test_subtotal_40_without_promo(self):
        """40.00 -> shipping 5.99, tax 6.00, total 51.99."""
        summary = calculate_cart_summary([_line('10.00', 4)])

        assert summary['subtotal'] == Decimal('40.00')
        assert summary['discount'] == Decimal('0.00')
        assert summary['shipping'] == Decimal('5.99')
        assert summary['tax'] == Decimal('6.00')
        assert summary['total'] == Decimal('51.99')
        assert summary['itemCount'] == 1
        assert summary['totalQuantity'] == 4
        assert summary['freeShippingThreshold'] == FREE_SHIPPING_THRESHOLD
        assert summary['appliedPromo'] is None

    def test_subtotal_60_with_fixed_10_reaches_free_shipping_exactly(self):
        """60.00 - 10 = 50.00 -> free shipping, tax 7.50, total 57.50."""
        summary = calculate_cart_summary([_line('20.00', 3)], _promo('fixed', '10'))

        assert summary['discount'] == Decimal('10.00')
        assert summary['shipping'] == Decimal('0')
        assert summary['tax'] == Decimal('7.50')
        assert summary['total'] == Decimal('57.50')
        assert summary['appliedPromo'] == 'CODE'

    def test_inactive_lines_are_ignored(self):
        lines = [
            _line('10.00', 1),
            _line('99.00', 1, active=False),
            _line('5.00', 1, variant_price='7.00', variant_active=False),
        ]
        summary = calculate_cart_summary(lines)

        assert summary['subtotal'] == Decimal('10.00')
        assert summary['itemCount'] == 1

    def test_variant_price_overrides_product_price(self):
        summary = calculate_cart_summary([_line('5.00', 2, variant_price='7.50')])
        assert summary['subtotal'] == Decimal('15.00')

    def test_empty_cart(self):
        summary = calculate_cart_summary([])
        assert summary['subtotal'] == Decimal('0.00')
        assert summary['shipping'] == Decimal('5.99')
        assert summary['itemCount'] == 0

    @pytest.mark.parametrize('price,quantity,promo', [
        ('33.35', 1, _promo('percentage', '10')),
        ('19.99', 3, _promo('fixed', '4.99')),
        ('12.47', 4, _promo('percentage', '12.5')),
        ('50.00', 1, None),
    ])
    def test_total_is_sum_of_parts(self, price, quantity, promo):
        s = calculate_cart_summary([_line(price, quantity)], promo)

        assert s['total'] == (s['subtotal'] - s['discount']) + s['shipping'] + s['tax']
        assert (s['shipping'] == 0) == (s['subtotal'] - s['discount'] >= Decimal('50'))

    def test_half_up_rounding(self):
        """10% of 33.35 = 3.335 -> 3.34; tax of 30.01 = 4.5015 -> 4.50."""
        s = calculate_cart_summary([_line('33.35', 1)], _promo('percentage', '10'))

        assert s['discount'] == Decimal('3.34')
        assert s['tax'] == Decimal('4.50')
        assert s['total'] == Decimal('40.50')


class TestDiscount:
    """Promo discount rules."""

    def test_percentage_capped_by_maximum_discount(self):
        promo = _promo('percentage', '20', maximum_discount=Decimal('15.00'))
        assert calculate_discount(promo, Decimal('100.00')) == Decimal('15.00')

    def test_fixed_never_exceeds_subtotal(self):
        assert calculate_discount(_promo('fixed', '25'), Decimal('18.00')) == Decimal('18.00')

    def test_minimum_amount_not_reached(self):
        promo = _promo('fixed', '5', minimum_amount=Decimal('30.00'))
        assert calculate_discount(promo, Decimal('29.99')) == Decimal('0.00')
        assert calculate_discount(promo, Decimal('30.00')) == Decimal('5.00')

    def test_minimum_not_reached_means_no_applied_promo(self):
        promo = _promo('fixed', '5', minimum_amount=Decimal('30.00'))
        summary = calculate_cart_summary([_line('10.00', 1)], promo)
        assert summary['appliedPromo'] is None

    def test_expired_promo_gives_nothing(self):
        now = datetime(2026, 5, 1, tzinfo=timezone.utc)
        promo = _promo('fixed', '5', expires_at=now - timedelta(minutes=1))
        assert calculate_discount(promo, Decimal('40.00'), now=now) == Decimal('0.00')

    def test_naive_expiry_is_treated_as_utc(self):
        now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
        promo = _promo('fixed', '5', expires_at=datetime(2026, 5, 1, 13, 0))
        assert calculate_discount(promo, Decimal('40.00'), now=now) == Decimal('5.00')

    def test_inactive_promo_gives_nothing(self):
        assert calculate_discount(_promo('fixed', '5', is_active=False), Decimal('40.00')) == Decimal('0.00')


class TestCartTotals:
    def test_threshold_uses_discounted_subtotal(self):
        totals = calculate_cart_totals(Decimal('55.00'), Decimal('5.01'))
        assert totals['shipping'] == Decimal('5.99')


class TestOrderTotals:
    """Order policy: tax by order type, shipping only for small product orders."""

    def test_small_product_order_pays_shipping(self):
        totals = calculate_order_totals(Decimal('40.00'), 'product')
        assert totals['tax'] == Decimal('6.00')
        assert totals['shipping'] == Decimal('5.99')
        assert totals['total'] == Decimal('51.99')

    def test_large_product_order_ships_free(self):
        totals = calculate_order_totals(Decimal('50.00'), 'product')
        assert totals['shipping'] == Decimal('0')
        assert totals['total'] == Decimal('57.50')

    @pytest.mark.parametrize('order_type', ['property', 'activity'])
    def test_services_pay_ten_percent_and_no_shipping(self, order_type):
        totals = calculate_order_totals(Decimal('40.00'), order_type)
        assert totals['tax'] == Decimal('4.00')
        assert totals['shipping'] == Decimal('0')
        assert totals['total'] == Decimal('44.00')

    def test_items_subtotal(self):
        items = [{'price': Decimal('12.50'), 'quantity': 2}, {'price': Decimal('0.99'), 'quantity': 3}]
        assert items_subtotal(items) == Decimal('27.97')
