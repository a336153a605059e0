"""Date manipulation utilities"""

from datetime import date, datetime, timezone

from organitto_ops.domain.exceptions import ValidationError


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def parse_calendar_date(value) -> date:
    """Accept a date or an ISO YYYY-MM-DD string; reject anything else"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError as e:
            raise ValidationError(f"Invalid calendar date: {value!r}") from e
    raise ValidationError(f"Invalid calendar date: {value!r}")
