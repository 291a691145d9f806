"""Money helpers: parsing, rounding and display."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Optional

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_money(value: Union[int, float, Decimal, str, None]) -> Decimal:
    """
    Convert a number to a Decimal rounded to cents.

    Floats go through str() so 0.1 becomes Decimal('0.10') and not its binary
    expansion.

    Raises:
        ValueError: if the value is empty or not a number.
    """
    if value is None or value == '':
        raise ValueError('Amount is required')
    if isinstance(value, bool):
        raise ValueError(f'Invalid amount: {value!r}')
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f'Invalid amount: {value!r}')
    if not amount.is_finite():
        raise ValueError(f'Invalid amount: {value!r}')
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format an amount with thousands separators for receipts and reports.

    Whole amounts print without decimals unless `decimals` is given.

    Examples:
        format_money(1200) -> "1,200"
        format_money(Decimal('1500.50')) -> "1,500.50"
        format_money(None) -> "-"
    """
    if value is None or value == '':
        return '-'
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return '-'

    if decimals is None:
        decimals = 0 if amount == amount.to_integral_value() else 2
    return f"{amount:,.{decimals}f}"
