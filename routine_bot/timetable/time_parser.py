"""
Parsing of the timetable's time-range strings, e.g. "9.00AM-10.20AM" or "1PM-2.30PM".

Each endpoint is <hour>[.<minute>]<AM|PM> on a 12-hour clock.
"""
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Tuple

_ENDPOINT_RE = re.compile(r"^\s*(\d{1,2})(?:\.(\d{1,2}))?\s*([AaPp][Mm])\s*$")


class MalformedTimeString(ValueError):
    """Raised for a time string that does not follow <hour>[.<minute>]<AM|PM>."""


def _parse_endpoint(value: str) -> Tuple[int, int, str]:
    match = _ENDPOINT_RE.match(value or "")
    if not match:
        raise MalformedTimeString(f"Invalid time '{value}'")
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    period = match.group(3).upper()
    if not 1 <= hour <= 12 or not 0 <= minute <= 59:
        raise MalformedTimeString(f"Time out of range '{value}'")
    return hour, minute, period


def _to_24h(hour: int, period: str) -> int:
    hour = hour % 12
    if period == "PM":
        hour += 12
    return hour


def split_range(range_text: str) -> Tuple[str, str]:
    parts = (range_text or "").split("-")
    if len(parts) != 2:
        raise MalformedTimeString(f"Invalid time range '{range_text}'")
    return parts[0], parts[1]


def parse_range(range_text: str) -> Tuple[time, time]:
    """Returns (start, end) wall-clock times; both endpoints are validated."""
    start_text, end_text = split_range(range_text)
    bounds = []
    for endpoint in (start_text, end_text):
        hour, minute, period = _parse_endpoint(endpoint)
        bounds.append(time(_to_24h(hour, period), minute))
    return bounds[0], bounds[1]


def to_minutes_of_day(range_text: str) -> int:
    """Minutes since midnight of the range's start; used only as a sort key."""
    start_text, _ = split_range(range_text)
    hour, minute, period = _parse_endpoint(start_text)
    return _to_24h(hour, period) * 60 + minute


def week_start(anchor: date) -> date:
    """The Sunday on or before `anchor`."""
    # date.weekday(): Monday=0 .. Sunday=6
    return anchor - timedelta(days=(anchor.weekday() + 1) % 7)


def to_instants(range_text: str, day_offset: int, week_anchor: date, tz: tzinfo) -> Tuple[datetime, datetime]:
    """
    Resolves both endpoints onto the day `week_start(week_anchor) + day_offset`
    (0 = Sunday .. 6 = Saturday) as timezone-aware datetimes in `tz`.
    """
    if not 0 <= day_offset <= 6:
        raise ValueError(f"day_offset must be 0..6, got {day_offset}")
    start_time, end_time = parse_range(range_text)
    day = week_start(week_anchor) + timedelta(days=day_offset)
    start = datetime.combine(day, start_time, tzinfo=tz)
    end = datetime.combine(day, end_time, tzinfo=tz)
    return start, end
