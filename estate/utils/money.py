"""Money helpers - all amounts are Decimals rounded half-up to cents."""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value) -> Decimal:
    """Convert numbers coming from the ORM or JSON into Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Round to 2 decimals, half-up (0.005 -> 0.01)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value) -> str:
    """Format an amount as '$12.50'."""
    return f"${round_money(value):.2f}"
