"""
Display formatting for amounts.

Amounts are stored at full precision and only rounded here, for messages
and display fields.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union


def money_2(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount with exactly 2 decimals and comma thousands separators.

    Examples:
        money_2(Decimal('1100')) -> "1,100.00"
        money_2(Decimal('-0.005')) -> "-0.01"
        money_2(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    return f"{sign}{abs(num):,.2f}"
