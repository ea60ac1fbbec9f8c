"""
Unit tests for order numbers, initial statuses, status transitions and
payment instructions.
"""

import re
import pytest
from decimal import Decimal

from config import TestingConfig
from estate.models import Order
from estate.services.order_service import (
    BASE36, ORDER_TRANSITIONS, generate_order_number, initial_statuses
)
from estate.services.payment_service import build_payment_instructions
from estate.utils.money import format_money

CONFIG = {k: getattr(TestingConfig, k) for k in dir(TestingConfig) if k.isupper()}


class TestOrderNumber:

    def test_format(self):
        number = generate_order_number(now_ms=1717171717123)

        assert number.startswith('ZE717123')
        assert len(number) == 14
        assert all(c in BASE36 for c in number[8:])

    def test_custom_prefix(self):
        assert re.fullmatch(r'XX\d{6}[0-9A-Z]{6}', generate_order_number('XX'))

    def test_numbers_differ(self):
        numbers = {generate_order_number(now_ms=1) for _ in range(50)}
        assert len(numbers) == 50


class TestInitialStatuses:

    def test_bank_transfer_waits_for_payment(self):
        assert initial_statuses('bank_transfer') == ('pending_payment', 'pending')

    @pytest.mark.parametrize('method', ['card', 'paynow', 'cash'])
    def test_other_methods(self, method):
        assert initial_statuses(method) == ('pending', 'processing')


class TestTransitions:

    @pytest.mark.parametrize('terminal', ['completed', 'cancelled'])
    def test_terminal_statuses(self, terminal):
        assert ORDER_TRANSITIONS[terminal] == set()

    def test_shipped_can_only_complete(self):
        assert ORDER_TRANSITIONS['shipped'] == {'completed'}

    def test_pending_payment_can_be_confirmed(self):
        assert 'confirmed' in ORDER_TRANSITIONS['pending_payment']


def _order(method):
    return Order(order_number='ZE123456ABCDEF', payment_method=method, total=Decimal('57.5'))


class TestPaymentInstructions:

    def test_bank_transfer(self):
        result = build_payment_instructions(_order('bank_transfer'), CONFIG)

        assert result['kind'] == 'bank_transfer'
        assert result['reference'] == 'ZE123456ABCDEF'
        assert result['amount'] == '$57.50 USD'
        assert result['bankDetails']['accountNumber'] == CONFIG['BANK_ACCOUNT_NUMBER']
        assert len(result['steps']) == 4
        assert CONFIG['PAYMENTS_EMAIL'] in result['steps'][2]

    def test_paynow(self):
        result = build_payment_instructions(_order('paynow'), CONFIG)

        assert result['kind'] == 'paynow'
        assert result['amount'] == Decimal('57.50')
        assert result['qrCode'].endswith('&amount=57.50&ref=ZE123456ABCDEF')

    def test_cash(self):
        result = build_payment_instructions(_order('cash'), CONFIG)

        assert result['kind'] == 'cash'
        assert len(result['steps']) == 5
        assert len(result['notes']) == 2

    def test_card_gets_no_instructions(self):
        assert build_payment_instructions(_order('card'), CONFIG) == {'kind': 'other'}

    def test_bank_transfer_amount_rounds_half_up(self):
        order = Order(order_number='ZE123456ABCDEF', payment_method='bank_transfer', total=Decimal('10.005'))
        assert build_payment_instructions(order, CONFIG)['amount'] == '$10.01 USD'


class TestFormatMoney:

    @pytest.mark.parametrize('value,expected', [
        (Decimal('17.49'), '$17.49'),
        (3, '$3.00'),
        ('0.125', '$0.13'),
        (None, '$0.00'),
    ])
    def test_format(self, value, expected):
        assert format_money(value) == expected
