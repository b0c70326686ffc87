# utils/dates.py
from datetime import date, datetime, timedelta

from dateutil import parser as date_parser

from utils.errors import ValidationError


def parse_date(value, field: str = "date") -> date:
    """Accept date/datetime objects or loosely formatted strings ("2025-01-11", "11 Jan 2025")."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not str(value).strip():
        raise ValidationError(field, "Date is required.")
    try:
        return date_parser.parse(str(value), yearfirst=True).date()
    except (ValueError, OverflowError):
        raise ValidationError(field, f"Invalid date: {value}") from None


def date_range(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
