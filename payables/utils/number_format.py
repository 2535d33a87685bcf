"""Number and date parsing utilities for wire payloads."""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from payables.exceptions import ValidationError

ZERO = Decimal('0')


def parse_decimal(value, field=None, default=None):
    """
    Parse a decimal value coming from JSON or a form.

    Accepts Decimal, int, float and numeric strings. Floats go through str()
    so that 0.1 becomes Decimal('0.1') and not its binary expansion.

    Raises:
        ValidationError: if the value is not a number.
    """
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f'Invalid number for {field or "value"}', field=field)
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid number for {field or "value"}: {value!r}', field=field)


def parse_int(value, field=None, default=None):
    """Parse an integer id or day count."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError(f'Invalid integer for {field or "value"}', field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid integer for {field or "value"}: {value!r}', field=field)


def parse_date(value, field=None):
    """Parse an ISO calendar date (time of day is dropped)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'Invalid date for {field or "value"}: {value!r}', field=field)


def decimal_to_str(value):
    """Serialize a Decimal at full precision (None stays None)."""
    if value is None:
        return None
    return str(value)


def date_to_str(value):
    if value is None:
        return None
    return value.isoformat()
