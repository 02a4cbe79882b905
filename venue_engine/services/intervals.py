"""
Interval arithmetic for booking windows.

All instants are naive UTC datetimes. Local venue wall time is converted with
a fixed UTC offset (VENUE_UTC_OFFSET_HOURS); daylight saving is not modelled.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from ..config import VENUE_UTC_OFFSET_HOURS
from ..exceptions import BookingValidationError

DAILY_SENTINEL_START = time(0, 0, 0)
DAILY_SENTINEL_END = time(23, 59, 59)


def to_instant(
    day: date, time_of_day: time, offset_hours: int = VENUE_UTC_OFFSET_HOURS
) -> datetime:
    """Venue-local date + time of day -> naive UTC instant"""
    # Orlando 09:00 at UTC-5 is 14:00 UTC
    return datetime.combine(day, time_of_day) - timedelta(hours=offset_hours)


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """Half-open overlap; [10:00, 12:00) and [12:00, 14:00) do not overlap"""
    return a_start < b_end and a_end > b_start


def date_within_span(day: date, span_start: date, span_end: date) -> bool:
    """Inclusive on both ends"""
    return span_start <= day <= span_end


def local_now(now: datetime, offset_hours: int = VENUE_UTC_OFFSET_HOURS) -> datetime:
    return now + timedelta(hours=offset_hours)


def local_today(now: datetime, offset_hours: int = VENUE_UTC_OFFSET_HOURS) -> date:
    """Calendar date at the venue for a UTC instant"""
    return local_now(now, offset_hours).date()


def parse_time(value: Optional[Union[str, time]], field: str = "time") -> Optional[time]:
    """Parse HH:MM or HH:MM:SS; None passes through"""
    if value is None or isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        raise BookingValidationError(f"{field} must be in HH:MM format", field=field)
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise BookingValidationError(f"{field} must be in HH:MM format", field=field, value=value)


def parse_date(value: Optional[Union[str, date]], field: str = "event_date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise BookingValidationError(f"{field} is required", field=field)
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise BookingValidationError(
            f"{field} must be in YYYY-MM-DD format", field=field, value=value
        ) from e
