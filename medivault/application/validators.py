from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from .errors import ValidationError

MONEY_QUANTUM = Decimal('0.01')
# Numeric(10, 2) and 32-bit INTEGER columns
MAX_MONEY = Decimal('99999999.99')
MAX_INT = 2 ** 31 - 1

TIME_FORMATS = ('%H:%M', '%H:%M:%S')


def require(fields, *names):
    """Raise ValidationError listing every name whose value is missing or blank."""
    missing = [
        name for name in names
        if fields.get(name) is None or (isinstance(fields.get(name), str) and not fields.get(name).strip())
    ]
    if missing:
        raise ValidationError(
            message="Missing required fields",
            detail=[f"{name}: This field is required." for name in missing],
        )


def parse_money(value, field, default=None):
    if value is None or value == '':
        if default is not None:
            return default
        raise ValidationError(detail=f"{field}: This field is required.")
    if isinstance(value, bool):
        raise ValidationError(detail=f"{field}: must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(detail=f"{field}: must be a number")
    if not amount.is_finite():
        raise ValidationError(detail=f"{field}: must be a number")
    if amount < 0:
        raise ValidationError(detail=f"{field}: must not be negative")
    if amount > MAX_MONEY:
        raise ValidationError(detail=f"{field}: must be at most {MAX_MONEY}")
    return amount.quantize(MONEY_QUANTUM)


def parse_int(value, field, minimum=None, maximum=MAX_INT):
    if isinstance(value, bool):
        raise ValidationError(detail=f"{field}: must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(detail=f"{field}: must be an integer")
    if isinstance(value, float) and value != number:
        raise ValidationError(detail=f"{field}: must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(detail=f"{field}: must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(detail=f"{field}: must be at most {maximum}")
    return number


def parse_date(value, field):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(detail=f"{field}: expected a date in YYYY-MM-DD format")


def parse_time(value, field):
    """Normalise a clock time to zero-padded HH:MM so it sorts as text."""
    if isinstance(value, time):
        return value.strftime('%H:%M')
    if value is None or not str(value).strip():
        raise ValidationError(detail=f"{field}: This field is required.")
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(str(value).strip(), fmt).strftime('%H:%M')
        except ValueError:
            continue
    raise ValidationError(detail=f"{field}: expected a time in HH:MM format")
