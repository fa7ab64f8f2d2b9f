"""Money and number parsing utilities."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CENTS = Decimal('0.01')

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Quantize a number to cents (ROUND_HALF_UP)."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_amount(value, field: str = 'amount', allow_none: bool = True) -> Optional[Decimal]:
    """
    Parse a monetary amount coming from a JSON body.

    Accepts numbers and numeric strings. Negative amounts are rejected.

    Raises:
        ValueError: if the value is not a valid non-negative number.
    """
    if value is None or value == '':
        if allow_none:
            return None
        raise ValueError(f'{field} is required')

    if isinstance(value, bool):
        raise ValueError(f'{field} must be a number')

    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f'{field} must be a number')

    if not amount.is_finite():
        raise ValueError(f'{field} must be a number')
    if amount < 0:
        raise ValueError(f'{field} cannot be negative')

    return to_money(amount)


def parse_int(value, field: str, default: Optional[int] = None, minimum: Optional[int] = None,
              maximum: Optional[int] = None) -> Optional[int]:
    """Parse an integer (query string or JSON) with optional bounds."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValueError(f'{field} must be an integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'{field} must be an integer')
    if minimum is not None and number < minimum:
        raise ValueError(f'{field} must be at least {minimum}')
    if maximum is not None and number > maximum:
        raise ValueError(f'{field} must be at most {maximum}')
    return number


def money_str(value) -> Optional[str]:
    """Render a Decimal as a fixed two-decimal string for JSON payloads."""
    if value is None:
        return None
    return str(to_money(value))


def to_cents(value: Number) -> int:
    """Convert an amount to integer minor units for gateway APIs."""
    return int((to_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))
