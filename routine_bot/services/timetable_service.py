import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from routine_bot.config import settings
from routine_bot.ical.exporter import count_weeks, export_filename, serialize
from routine_bot.timetable.loader import load_dataset
from routine_bot.timetable.models import TimetableDataset, WeeklySlot
from routine_bot.timetable.resolver import count_occupied_cells, find_section, resolve
from routine_bot.services.date_service import get_local_now, get_week_window_from

logger = logging.getLogger(__name__)

_dataset: Optional[TimetableDataset] = None


@dataclass
class Routine:
    section: str
    rows: List[WeeklySlot]


@dataclass
class CalendarExport:
    filename: str
    content: str
    events: int
    weeks: int
    week_from: date
    week_to: date


def init_dataset(dataset: Optional[TimetableDataset] = None) -> TimetableDataset:
    """Loads the configured timetable once; tests may inject their own dataset."""
    global _dataset
    if dataset is not None:
        _dataset = dataset
    elif _dataset is None:
        _dataset = load_dataset(settings.CLASSES_PATH, settings.DINING_PATH)
    return _dataset


def get_dataset() -> TimetableDataset:
    return init_dataset()


def build_routine(section_code: str) -> Optional[Routine]:
    dataset = get_dataset()
    rows = resolve(dataset, section_code, settings.SECTION_PREFIX)
    if rows is None:
        return None
    # Display the code exactly as the dataset spells it.
    index = find_section(dataset, section_code, settings.SECTION_PREFIX)
    return Routine(section=dataset.sections[index], rows=rows)


def build_export(routine: Routine, now: Optional[datetime] = None) -> CalendarExport:
    now = now or get_local_now(settings.TZ)
    # Week window, weeks and the events themselves all come from this one local "now".
    tz = ZoneInfo(settings.TZ)
    now = now.replace(tzinfo=tz) if now.tzinfo is None else now.astimezone(tz)
    content = serialize(
        routine.rows,
        tz_name=settings.TZ,
        now=now,
        until=settings.SEMESTER_END,
        dining_hall=settings.DINING_HALL_LABEL,
        calendar_name=f"{settings.CALENDAR_NAME} {routine.section}",
    )
    events = count_occupied_cells(routine.rows)
    weeks = count_weeks(now.date(), settings.SEMESTER_END)
    if weeks == 0:
        logger.warning(
            "SEMESTER_END=%s is before the export week; section=%s events will not recur",
            settings.SEMESTER_END, routine.section,
        )
    logger.info("Calendar built for section=%s events=%d weeks=%d", routine.section, events, weeks)
    week_from, week_to = get_week_window_from(now.date())
    return CalendarExport(
        filename=export_filename(routine.section),
        content=content,
        events=events,
        weeks=weeks,
        week_from=week_from,
        week_to=week_to,
    )
