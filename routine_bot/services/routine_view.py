import html
from typing import Iterable, List, Sequence

from routine_bot.timetable.models import (
    DAY_KEYS,
    DAY_LABELS,
    ClassOccupant,
    MealOccupant,
    WeeklySlot,
)

class ParseMode:
    HTML = "HTML"

WEEKDAYS = {
    0: "Sunday",
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
}

MEAL_ICONS = {
    "breakfast": "🍳",
    "lunch": "🍛",
    "dinner": "🍽",
}
DEFAULT_MEAL_ICON = "☕"

STATUS_HAS_CLASSES = "🟧"
STATUS_NO_CLASSES = "🟩"

NO_CLASSES_TEXT = "No classes 🎉"


def meal_icon(meal: str) -> str:
    return MEAL_ICONS.get((meal or "").strip().lower(), DEFAULT_MEAL_ICON)


def _build_cell(time_range: str, occupant) -> str:
    block_lines: List[str] = [f"🕘 {html.escape(time_range)}"]

    if isinstance(occupant, ClassOccupant):
        block_lines.append(f"<b>{html.escape(occupant.subject)}</b>")
        if occupant.faculty:
            block_lines.append(f"Instructor: {html.escape(occupant.faculty)}")
        if occupant.room:
            block_lines.append(f"🏛 Room {html.escape(occupant.room)}")
    elif isinstance(occupant, MealOccupant):
        block_lines.append(f"{meal_icon(occupant.meal)} {html.escape(occupant.meal)}")

    return "\n".join(block_lines)


def _day_has_classes(rows: Sequence[WeeklySlot], day_offset: int) -> bool:
    return any(isinstance(row.occupant(day_offset), ClassOccupant) for row in rows)


def build_day_message(day_offset: int, rows: Sequence[WeeklySlot]) -> str:
    """
    One day of the routine.
    Format example (Telegram render):
    📅 Monday

    🕘 9.00AM-10.20AM
    CSE110
    Instructor: Dr. X
    🏛 Room 301
    """
    header = f"📅 <b>{WEEKDAYS[day_offset]}</b>"
    cells = [
        _build_cell(row.time, row.occupant(day_offset))
        for row in rows
        if row.occupant(day_offset) is not None
    ]
    if not _day_has_classes(rows, day_offset):
        cells.insert(0, NO_CLASSES_TEXT)
    return (header + "\n\n" + "\n\n".join(cells)).strip()


def build_week_brief_message(rows: Sequence[WeeklySlot]) -> str:
    """
    Summary line with per-day status (🟩 free of classes / 🟧 has classes)
    plus the number of classes on each busy day.
    """
    summary_parts: List[str] = []
    busy_parts: List[str] = []
    for day_offset, abbr in enumerate(DAY_LABELS):
        classes = sum(1 for row in rows if isinstance(row.occupant(day_offset), ClassOccupant))
        if classes:
            summary_parts.append(f"{abbr}{STATUS_HAS_CLASSES}")
            busy_parts.append(f"{abbr} {classes}")
        else:
            summary_parts.append(f"{abbr}{STATUS_NO_CLASSES}")

    summary_line = "  ".join(summary_parts)
    busy_line = "Classes: " + ", ".join(busy_parts) if busy_parts else NO_CLASSES_TEXT
    return summary_line + "\n" + busy_line


def build_routine_message(section: str, rows: Sequence[WeeklySlot]) -> str:
    """
    Full weekly routine: title, brief summary, then one block per day that has
    anything scheduled (classes or meals).
    """
    title = f"🗓 <b>Weekly Routine</b>\nSection: <b>{html.escape(section)}</b>"
    blocks: List[str] = []
    for day_offset in range(len(DAY_KEYS)):
        if not any(row.occupant(day_offset) is not None for row in rows):
            continue
        blocks.append(build_day_message(day_offset, rows))

    if not blocks:
        return (title + "\n\n" + NO_CLASSES_TEXT).strip()

    return (title + "\n" + build_week_brief_message(rows) + "\n\n\n" + "\n\n\n".join(blocks)).strip()


def sample_sections(sections: Iterable[str], preferred: Sequence[str] = ("S01", "S02", "S03", "S10", "S25")) -> List[str]:
    known = {s.strip().upper() for s in sections}
    return [code for code in preferred if code in known]


def section_range_hint(sections: Sequence[str]) -> str:
    if not sections:
        return ""
    return f"{sections[0]} - {sections[-1]}"


def split_telegram(text: str, limit: int = 4096) -> list[str]:
    """
    Splits text into chunks of at most `limit` characters,
    preferring to split at line breaks.
    """
    if len(text) <= limit:
        return [text]

    chunks = []
    current_chunk = ""

    lines = text.splitlines(keepends=True)

    for line in lines:
        if len(current_chunk) + len(line) > limit:
            if current_chunk:
                chunks.append(current_chunk)
                current_chunk = ""

            # A single line longer than the limit is hard split.
            while len(line) > limit:
                chunks.append(line[:limit])
                line = line[limit:]
            current_chunk = line
        else:
            current_chunk += line

    if current_chunk:
        chunks.append(current_chunk)

    return chunks
