"""
Payment instructions returned after an order is committed.

Instructions are informational only: nothing here talks to a payment
gateway or changes order state. The result is tagged by 'kind'.
"""
from typing import Any, Dict, Mapping

from estate.models import Order
from estate.utils.money import format_money, round_money

PAYMENT_METHODS = ('card', 'paynow', 'bank_transfer', 'cash')

CASH_STEPS = [
    'Your booking is confirmed and reserved for 24 hours',
    'Please bring the exact amount in cash upon arrival',
    'Payment must be made at check-in',
    'We accept USD, ZWL, and South African Rand',
    'A receipt will be provided upon payment',
]
CASH_NOTES = [
    'Booking will be cancelled if payment is not received within 24 hours of arrival',
    'Please contact us if you need to arrange alternative payment',
]
BANK_TRANSFER_NOTES = [
    'Bank transfers may take 1-3 business days to process',
    'Please include the reference number in your transfer',
    'Contact us if you need assistance with the transfer',
]


def _paynow(order: Order, config: Mapping[str, Any]) -> Dict[str, Any]:
    amount = round_money(order.total)
    merchant = config.get('PAYNOW_MERCHANT_ID', 'ZIMUNDA')
    return {
        'kind': 'paynow',
        'reference': order.order_number,
        'amount': amount,
        'qrCode': f'paynow://pay?merchant={merchant}&amount={amount}&ref={order.order_number}',
    }


def _bank_transfer(order: Order, config: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'kind': 'bank_transfer',
        'title': 'Bank Transfer Instructions',
        'bankDetails': {
            'bankName': config.get('BANK_NAME'),
            'accountName': config.get('BANK_ACCOUNT_NAME'),
            'accountNumber': config.get('BANK_ACCOUNT_NUMBER'),
            'branchCode': config.get('BANK_BRANCH_CODE'),
            'swiftCode': config.get('BANK_SWIFT_CODE'),
        },
        'amount': f'{format_money(order.total)} USD',
        'reference': order.order_number,
        'steps': [
            'Transfer the exact amount to the bank account above',
            'Use the provided reference number',
            f"Send proof of payment to {config.get('PAYMENTS_EMAIL')}",
            'Your order will be confirmed once payment is verified',
        ],
        'notes': list(BANK_TRANSFER_NOTES),
    }


def _cash(order: Order, config: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'kind': 'cash',
        'title': 'Cash Payment Instructions',
        'steps': list(CASH_STEPS),
        'notes': list(CASH_NOTES),
    }


_BUILDERS = {
    'paynow': _paynow,
    'bank_transfer': _bank_transfer,
    'cash': _cash,
}


def build_payment_instructions(order: Order, config: Mapping[str, Any]) -> Dict[str, Any]:
    """Instructions for the order's payment method; {'kind': 'other'} when none apply."""
    builder = _BUILDERS.get(order.payment_method)
    if builder is None:
        return {'kind': 'other'}
    return builder(order, config)
