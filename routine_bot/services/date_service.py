from datetime import datetime, date, timedelta
import zoneinfo

from routine_bot.timetable.time_parser import week_start


def get_local_now(tz: str) -> datetime:
    return datetime.now(zoneinfo.ZoneInfo(tz))

def get_week_window_from(today: date) -> tuple[date, date]:
    """
    Returns the inclusive window of the calendar week containing `today`.

    Routine convention: the week runs Sunday..Saturday, the same week the
    exported events are anchored to.
    """
    start = week_start(today)
    return start, start + timedelta(days=6)

def format_day(value: date) -> str:
    return value.strftime("%d.%m.%Y")
