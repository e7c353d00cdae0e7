"""Pointledger utility functions."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import DecimalValidator
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


def to_decimal(value) -> Decimal | None:
    """Convert int/float/str to Decimal without float noise. None if invalid."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def parse_moment(value, end_of_day: bool = False) -> datetime | None:
    """
    Parse a datetime/date/ISO string into an aware datetime.

    Date-only values resolve to the start of that day, or to the last
    instant of it when end_of_day is set. Returns None for empty or
    unparseable input.
    """
    if value in (None, ""):
        return None

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = _day_bound(value, end_of_day)
    else:
        text = str(value).strip()
        try:
            # parse_datetime() also accepts bare dates (as midnight)
            day = parse_date(text)
            moment = _day_bound(day, end_of_day) if day else parse_datetime(text)
        except ValueError:
            return None
        if moment is None:
            return None

    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


def _day_bound(day: date, end_of_day: bool) -> datetime:
    start = datetime.combine(day, time.min)
    if end_of_day:
        return start + timedelta(days=1) - timedelta(microseconds=1)
    return start


def column_error(model, field_name: str, number: Decimal) -> str | None:
    """
    Why `number` cannot be stored in a DecimalField of `model`, or None.

    Trailing zeros do not count against decimal_places.
    """
    column = model._meta.get_field(field_name)
    try:
        DecimalValidator(column.max_digits, column.decimal_places)(number.normalize())
    except DjangoValidationError as exc:
        return " ".join(exc.messages).rstrip(".").lower()
    return None
