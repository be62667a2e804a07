import logging
import re
import time as time_module
from datetime import date, datetime, time, tzinfo
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from dateutil import rrule as dateutil_rrule
from icalendar import Calendar, Event

from routine_bot.timetable.models import (
    DAY_KEYS,
    CalendarEvent,
    ClassOccupant,
    MealOccupant,
    WeeklySlot,
)
from routine_bot.timetable.time_parser import to_instants, week_start

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")

PRODID = "-//RS Routine//Weekly Routine Export//EN"
UID_DOMAIN = "rs-routine"
DEFAULT_DINING_HALL = "Dining Hall"
DEFAULT_CALENDAR_NAME = "RS Routine"
DEFAULT_SEMESTER_END = date(2026, 12, 31)

_UNSAFE_RE = re.compile(r"[^0-9A-Za-z]+")
# "." and "-" keep their own marks so "1.10AM-2PM" and "11.0AM-2PM" stay distinct.
_TIME_MARKS = str.maketrans({".": "_", "-": "x"})
_UID_UNSAFE_RE = re.compile(r"[^0-9A-Za-z_]+")


def _sanitize(value: str) -> str:
    return _UNSAFE_RE.sub("", value or "")


def _uid_time(time_range: str) -> str:
    return _UID_UNSAFE_RE.sub("", (time_range or "").translate(_TIME_MARKS))


def _until_utc(until: date, tz: tzinfo) -> datetime:
    # Last second of the semester's final day, local time.
    return datetime.combine(until, time(23, 59, 59), tzinfo=tz).astimezone(UTC)


def _tz_label(tz: tzinfo) -> str:
    return getattr(tz, "key", None) or str(tz)


def _describe(occupant, time_range: str, dining_hall: str) -> tuple[str, str, str]:
    if isinstance(occupant, ClassOccupant):
        return (
            f"{occupant.subject} - Class",
            f"Instructor: {occupant.faculty}\nSection: {occupant.section}",
            f"Room {occupant.room}",
        )
    if isinstance(occupant, MealOccupant):
        return occupant.meal, f"Dining time: {occupant.time_range or time_range}", dining_hall
    raise TypeError(f"Unsupported occupant {type(occupant).__name__}")


def build_events(
    slots: Iterable[WeeklySlot],
    *,
    week_anchor: date,
    tz: tzinfo,
    until: date = DEFAULT_SEMESTER_END,
    uid_stamp: Optional[int] = None,
    dining_hall: str = DEFAULT_DINING_HALL,
) -> List[CalendarEvent]:
    """
    One event per occupied (row, day), rows in grid order and days Sunday..Saturday.
    Events land in the week containing `week_anchor` and repeat weekly until `until`.
    """
    if uid_stamp is None:
        uid_stamp = time_module.time_ns()
    rule = {"FREQ": "WEEKLY", "UNTIL": _until_utc(until, tz)}
    label = _tz_label(tz)

    events: List[CalendarEvent] = []
    for slot in slots:
        for day_offset in range(len(DAY_KEYS)):
            occupant = slot.occupant(day_offset)
            if occupant is None:
                continue
            start, end = to_instants(slot.time, day_offset, week_anchor, tz)
            title, description, location = _describe(occupant, slot.time, dining_hall)
            events.append(
                CalendarEvent(
                    uid=f"{day_offset}-{_uid_time(slot.time)}-{uid_stamp}@{UID_DOMAIN}",
                    title=title,
                    description=description,
                    location=location,
                    start=start,
                    end=end,
                    recurrence_rule=dict(rule),
                    timezone_label=label,
                )
            )
    return events


def _to_vevent(event: CalendarEvent, stamp: datetime) -> Event:
    ev = Event()
    ev.add("uid", event.uid)
    ev.add("dtstart", event.start.astimezone(UTC).replace(microsecond=0))
    ev.add("dtend", event.end.astimezone(UTC).replace(microsecond=0))
    ev.add("rrule", event.recurrence_rule)
    ev.add("summary", event.title)
    ev.add("description", event.description)
    ev.add("location", event.location)
    ev.add("dtstamp", stamp)
    ev.add("created", stamp)
    ev.add("status", "CONFIRMED")
    ev.add("transp", "OPAQUE")
    return ev


def serialize(
    slots: Iterable[WeeklySlot],
    *,
    tz_name: str,
    now: Optional[datetime] = None,
    until: date = DEFAULT_SEMESTER_END,
    dining_hall: str = DEFAULT_DINING_HALL,
    calendar_name: str = DEFAULT_CALENDAR_NAME,
    uid_stamp: Optional[int] = None,
) -> str:
    """
    Renders the weekly grid as an iCalendar (RFC 5545) document.

    All instants are written in UTC (YYYYMMDDTHHMMSSZ); `tz_name` is the zone the
    grid's wall-clock times belong to and is recorded as X-WR-TIMEZONE.
    `now` picks the week the events start in and stamps DTSTAMP/CREATED.
    """
    tz = ZoneInfo(tz_name)
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)
    stamp = now.astimezone(UTC).replace(microsecond=0)

    events = build_events(
        slots,
        week_anchor=now.date(),
        tz=tz,
        until=until,
        uid_stamp=uid_stamp,
        dining_hall=dining_hall,
    )

    cal = Calendar()
    cal.add("version", "2.0")
    cal.add("prodid", PRODID)
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", calendar_name)
    labels = {event.timezone_label for event in events} or {_tz_label(tz)}
    cal.add("x-wr-timezone", labels.pop())
    for event in events:
        cal.add_component(_to_vevent(event, stamp))

    logger.debug("Serialized %d events (until=%s, tz=%s)", len(events), until, tz_name)
    return cal.to_ical().decode("utf-8")


def count_weeks(week_anchor: date, until: date) -> int:
    """How many weekly occurrences each exported event has."""
    start = datetime.combine(week_start(week_anchor), time.min)
    end = datetime.combine(until, time.max)
    if end < start:
        return 0
    return dateutil_rrule.rrule(dateutil_rrule.WEEKLY, dtstart=start, until=end).count()


def export_filename(section: str) -> str:
    return f"routine-{_sanitize(section) or 'section'}.ics"
