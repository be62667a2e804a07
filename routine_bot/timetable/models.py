from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

# Grid columns, Sunday first. Offsets 0..6 are used everywhere a day is stored.
DAY_KEYS = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
DAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

KIND_CLASS = "class"
KIND_MEAL = "meal"


class DatasetError(ValueError):
    """Raised when a timetable document is structurally invalid."""


class DatasetIntegrityError(DatasetError):
    """Raised when a pattern refers to a row that does not exist."""


def _lookup(table: Tuple[str, ...], index: int, name: str) -> str:
    if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(table):
        raise DatasetIntegrityError(f"{name} index {index!r} out of range (0..{len(table) - 1})")
    return table[index]


def _day_offsets(days: Tuple[str, ...]) -> Tuple[int, ...]:
    offsets = []
    for name in days:
        key = (name or "").strip().lower()
        if key not in DAY_KEYS:
            raise DatasetError(f"Unknown day name '{name}'")
        offsets.append(DAY_KEYS.index(key))
    if len(set(offsets)) != len(offsets):
        raise DatasetError(f"Day names repeat: {list(days)}")
    return tuple(offsets)


@dataclass(frozen=True)
class ClassAssignment:
    section: int
    subject: int
    faculty: int
    room: int
    slot: int


@dataclass(frozen=True)
class ClassPattern:
    days: Tuple[int, ...]
    assignments: Tuple[ClassAssignment, ...]


@dataclass(frozen=True)
class DiningPattern:
    days: Tuple[int, ...]
    slots: Tuple[int, ...]


@dataclass(frozen=True)
class ClassTimetable:
    days: Tuple[str, ...]
    slots: Tuple[str, ...]
    subjects: Tuple[str, ...]
    faculties: Tuple[str, ...]
    rooms: Tuple[str, ...]
    sections: Tuple[str, ...]
    patterns: Tuple[ClassPattern, ...] = ()
    _offsets: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_offsets", _day_offsets(self.days))

    def slot(self, index: int) -> str:
        return _lookup(self.slots, index, "slot")

    def subject(self, index: int) -> str:
        return _lookup(self.subjects, index, "subject")

    def faculty(self, index: int) -> str:
        return _lookup(self.faculties, index, "faculty")

    def room(self, index: int) -> str:
        return _lookup(self.rooms, index, "room")

    def section(self, index: int) -> str:
        return _lookup(self.sections, index, "section")

    def day_offset(self, index: int) -> int:
        _lookup(self.days, index, "day")
        return self._offsets[index]


@dataclass(frozen=True)
class DiningTimetable:
    days: Tuple[str, ...]
    time_ranges: Tuple[str, ...]
    meals: Tuple[str, ...]
    patterns: Tuple[DiningPattern, ...] = ()
    _offsets: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_offsets", _day_offsets(self.days))

    def time_range(self, index: int) -> str:
        return _lookup(self.time_ranges, index, "timeRange")

    def meal_for_position(self, position: int) -> str:
        # Fallback to the first meal when the pattern lists more slots than there are meals.
        if 0 <= position < len(self.meals) and self.meals[position]:
            return self.meals[position]
        return _lookup(self.meals, 0, "meal")

    def day_offset(self, index: int) -> int:
        _lookup(self.days, index, "day")
        return self._offsets[index]


@dataclass(frozen=True)
class TimetableDataset:
    classes: ClassTimetable
    dining: DiningTimetable

    @property
    def sections(self) -> Tuple[str, ...]:
        return self.classes.sections


@dataclass(frozen=True)
class ClassOccupant:
    subject: str
    faculty: str
    room: str
    section: str


@dataclass(frozen=True)
class MealOccupant:
    meal: str
    time_range: str


Occupant = Union[ClassOccupant, MealOccupant]


@dataclass
class WeeklySlot:
    """One grid row: a time range and whoever occupies it on each day."""
    time: str
    kind: str
    days: Dict[int, Occupant] = field(default_factory=dict)

    def occupant(self, day_offset: int) -> Optional[Occupant]:
        return self.days.get(day_offset)

    def occupied_days(self) -> List[int]:
        return sorted(self.days)


@dataclass(frozen=True)
class CalendarEvent:
    uid: str
    title: str
    description: str
    location: str
    start: datetime
    end: datetime
    recurrence_rule: Dict[str, object]
    timezone_label: str
