import logging
from typing import Dict, Iterable, List, Optional

from routine_bot.timetable.models import (
    KIND_CLASS,
    KIND_MEAL,
    ClassOccupant,
    MealOccupant,
    TimetableDataset,
    WeeklySlot,
)
from routine_bot.timetable.time_parser import to_minutes_of_day

logger = logging.getLogger(__name__)

DEFAULT_SECTION_PREFIX = "S"


def normalize_section_code(raw: str, prefix: str = DEFAULT_SECTION_PREFIX) -> str:
    """
    "1" -> "S01", "12" -> "S12", "s03" -> "S03".
    Bare digits are zero-padded to two places and prefixed; anything else is only upper-cased.
    """
    value = (raw or "").strip()
    if value.isdigit():
        value = f"{prefix}{value.zfill(2)}"
    return value.upper()


def find_section(dataset: TimetableDataset, raw: str, prefix: str = DEFAULT_SECTION_PREFIX) -> Optional[int]:
    code = normalize_section_code(raw, prefix)
    if not code:
        return None
    for index, section in enumerate(dataset.sections):
        if section.strip().upper() == code:
            return index
    return None


def _class_rows(dataset: TimetableDataset, section_index: int) -> List[WeeklySlot]:
    classes = dataset.classes
    rows: List[WeeklySlot] = []
    by_time: Dict[str, WeeklySlot] = {}

    for pattern in classes.patterns:
        if not pattern.days:
            continue
        for assignment in pattern.assignments:
            if assignment.section != section_index:
                continue
            time_range = classes.slot(assignment.slot)
            occupant = ClassOccupant(
                subject=classes.subject(assignment.subject),
                faculty=classes.faculty(assignment.faculty),
                room=classes.room(assignment.room),
                section=classes.section(assignment.section),
            )

            row = by_time.get(time_range)
            if row is None:
                row = WeeklySlot(time=time_range, kind=KIND_CLASS)
                by_time[time_range] = row
                rows.append(row)

            for day_index in pattern.days:
                offset = classes.day_offset(day_index)
                if offset in row.days:
                    logger.debug(
                        "Section %s: %s on day %d overwritten by %s",
                        occupant.section, row.days[offset], offset, occupant.subject,
                    )
                row.days[offset] = occupant
    return rows


def _dining_rows(dataset: TimetableDataset) -> List[WeeklySlot]:
    dining = dataset.dining
    rows: List[WeeklySlot] = []
    by_time: Dict[str, WeeklySlot] = {}

    for pattern in dining.patterns:
        if not pattern.days:
            continue
        for slot_index in pattern.slots:
            time_range = dining.time_range(slot_index)
            # Meal name comes from where this slot first appears in the pattern's own list.
            position = pattern.slots.index(slot_index)
            occupant = MealOccupant(meal=dining.meal_for_position(position), time_range=time_range)

            row = by_time.get(time_range)
            if row is None:
                row = WeeklySlot(time=time_range, kind=KIND_MEAL)
                by_time[time_range] = row
                rows.append(row)

            for day_index in pattern.days:
                row.days[dining.day_offset(day_index)] = occupant
    return rows


def _merge_rows(class_rows: List[WeeklySlot], dining_rows: List[WeeklySlot]) -> List[WeeklySlot]:
    merged = list(class_rows)
    class_by_time = {row.time: row for row in class_rows}
    for row in dining_rows:
        target = class_by_time.get(row.time)
        if target is None:
            merged.append(row)
            continue
        for offset, occupant in row.days.items():
            if offset in target.days:
                logger.warning(
                    "Meal %s at %s on day %d clashes with class %s; keeping the class",
                    occupant.meal, row.time, offset, target.days[offset].subject,
                )
                continue
            target.days[offset] = occupant
    return merged


def resolve(
    dataset: TimetableDataset,
    section: str,
    prefix: str = DEFAULT_SECTION_PREFIX,
) -> Optional[List[WeeklySlot]]:
    """
    Builds the weekly grid for one section: its classes plus the shared dining
    times, ordered by start time. Returns None when the section is unknown.
    """
    section_index = find_section(dataset, section, prefix)
    if section_index is None:
        logger.info("Section not found: %r", section)
        return None

    rows = _merge_rows(_class_rows(dataset, section_index), _dining_rows(dataset))
    # list.sort is stable, so equal start times keep class-before-dining order.
    rows.sort(key=lambda row: to_minutes_of_day(row.time))
    return rows


def count_occupied_cells(rows: Iterable[WeeklySlot]) -> int:
    return sum(len(row.days) for row in rows)
