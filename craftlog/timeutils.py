"""
Local-time helpers.

All stored datetimes represent the LOCAL time the craftsman experienced
("I started at 8:00"), serialized as ISO-8601 with the local UTC offset
appended, e.g. ``2025-06-15T08:00:00+02:00``. We never store UTC-shifted
values.
"""

from datetime import date, datetime
from typing import Union

from craftlog.exceptions import InvalidInputError


def parse_timestamp(value: Union[str, datetime], label: str = "timestamp") -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Naive values are interpreted in the local timezone. A trailing ``Z``
    is accepted as UTC.

    Raises:
        InvalidInputError: If the value is not a parseable timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidInputError(
                f'Invalid {label}: "{value}"', field=label
            ) from None
    else:
        raise InvalidInputError(f'Invalid {label}: "{value}"', field=label)

    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def is_valid_timestamp(value: object) -> bool:
    """True if value is a non-empty string holding a parseable timestamp."""
    if not isinstance(value, str) or not value:
        return False
    try:
        parse_timestamp(value)
    except InvalidInputError:
        return False
    return True


def to_local_iso(moment: datetime) -> str:
    """Convert a datetime to an ISO string with local timezone offset."""
    return moment.astimezone().replace(microsecond=0).isoformat()


def now_local_iso() -> str:
    """Current time as ISO string WITH local offset."""
    return to_local_iso(datetime.now().astimezone())


def to_local_date(value: Union[str, datetime, date]) -> str:
    """
    Extract the local YYYY-MM-DD date from a date-like value.

    Uses the wall-clock date of the value's own offset, so 23:30 CET
    stays on the same day.
    """
    if isinstance(value, datetime):
        return parse_timestamp(value).date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return parse_timestamp(value).date().isoformat()


def parse_calendar_date(value: object, label: str = "date") -> date:
    """Parse a strict YYYY-MM-DD calendar day."""
    if isinstance(value, str) and len(value) == 10:
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise InvalidInputError(f'Invalid {label}: "{value}"', field=label)
