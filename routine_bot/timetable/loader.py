"""
Loading of the two static timetable documents (classes.json, dining.json).

Both are parsed with pydantic for shape, then every cross-reference is checked
so a broken index fails at startup instead of while somebody is looking at
their routine.
"""
import json
import logging
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from routine_bot.timetable.models import (
    ClassAssignment,
    ClassPattern,
    ClassTimetable,
    DatasetError,
    DatasetIntegrityError,
    DiningPattern,
    DiningTimetable,
    TimetableDataset,
)
from routine_bot.timetable.time_parser import MalformedTimeString, parse_range

logger = logging.getLogger(__name__)


class AssignmentDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    section: int
    subject: int
    faculty: int
    room: int
    slot: int


class ClassPatternDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    days: List[int]
    assignments: List[AssignmentDocument] = Field(default_factory=list)


class ClassesDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    days: List[str]
    slots: List[str]
    subjects: List[str]
    faculties: List[str]
    rooms: List[str]
    sections: List[str]
    patterns: List[ClassPatternDocument] = Field(default_factory=list)


class DiningPatternDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    days: List[int]
    slots: List[int]


class DiningDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    days: List[str]
    time_ranges: List[str] = Field(alias="timeRanges")
    meals: List[str]
    patterns: List[DiningPatternDocument] = Field(default_factory=list)


def _check_index(value: int, size: int, ctx: str) -> None:
    if not 0 <= value < size:
        raise DatasetIntegrityError(f"{ctx}={value} is out of range (table has {size} rows)")


def _check_times(values: List[str], ctx: str) -> None:
    for i, value in enumerate(values):
        try:
            parse_range(value)
        except MalformedTimeString as exc:
            raise DatasetError(f"{ctx}[{i}]: {exc}") from exc


def _check_unique_sections(sections: List[str]) -> None:
    seen: set = set()
    dupes: set = set()
    for section in sections:
        key = section.strip().upper()
        if not key:
            raise DatasetError("Empty section code in sections")
        if key in seen:
            dupes.add(key)
        seen.add(key)
    if dupes:
        raise DatasetIntegrityError(f"Duplicate sections: {sorted(dupes)}")


def _check_days(days: List[str], ctx: str) -> None:
    if len(days) != 7:
        raise DatasetError(f"{ctx} must list 7 day names, got {len(days)}")


def build_classes(doc: ClassesDocument) -> ClassTimetable:
    _check_days(doc.days, "classes.days")
    _check_times(doc.slots, "classes.slots")
    _check_unique_sections(doc.sections)

    patterns = []
    for p_idx, pattern in enumerate(doc.patterns):
        for day in pattern.days:
            _check_index(day, len(doc.days), f"patterns[{p_idx}].days")
        assignments = []
        for a_idx, a in enumerate(pattern.assignments):
            ctx = f"patterns[{p_idx}].assignments[{a_idx}]"
            _check_index(a.section, len(doc.sections), f"{ctx}.section")
            _check_index(a.subject, len(doc.subjects), f"{ctx}.subject")
            _check_index(a.faculty, len(doc.faculties), f"{ctx}.faculty")
            _check_index(a.room, len(doc.rooms), f"{ctx}.room")
            _check_index(a.slot, len(doc.slots), f"{ctx}.slot")
            assignments.append(ClassAssignment(
                section=a.section, subject=a.subject, faculty=a.faculty, room=a.room, slot=a.slot,
            ))
        patterns.append(ClassPattern(days=tuple(pattern.days), assignments=tuple(assignments)))

    return ClassTimetable(
        days=tuple(doc.days),
        slots=tuple(doc.slots),
        subjects=tuple(doc.subjects),
        faculties=tuple(doc.faculties),
        rooms=tuple(doc.rooms),
        sections=tuple(doc.sections),
        patterns=tuple(patterns),
    )


def build_dining(doc: DiningDocument) -> DiningTimetable:
    _check_days(doc.days, "dining.days")
    _check_times(doc.time_ranges, "dining.timeRanges")
    if not doc.meals:
        raise DatasetError("dining.meals must not be empty")

    patterns = []
    for p_idx, pattern in enumerate(doc.patterns):
        for day in pattern.days:
            _check_index(day, len(doc.days), f"dining.patterns[{p_idx}].days")
        for slot in pattern.slots:
            _check_index(slot, len(doc.time_ranges), f"dining.patterns[{p_idx}].slots")
        patterns.append(DiningPattern(days=tuple(pattern.days), slots=tuple(pattern.slots)))

    return DiningTimetable(
        days=tuple(doc.days),
        time_ranges=tuple(doc.time_ranges),
        meals=tuple(doc.meals),
        patterns=tuple(patterns),
    )


def _read_json(path: Path) -> object:
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise DatasetError(f"{path}: invalid JSON ({exc})") from exc
    except UnicodeDecodeError as exc:
        raise DatasetError(f"{path}: not UTF-8 text ({exc})") from exc


def parse_dataset(classes_raw: object, dining_raw: object) -> TimetableDataset:
    try:
        classes_doc = ClassesDocument.model_validate(classes_raw)
        dining_doc = DiningDocument.model_validate(dining_raw)
    except ValidationError as exc:
        raise DatasetError(str(exc)) from exc
    return TimetableDataset(classes=build_classes(classes_doc), dining=build_dining(dining_doc))


def load_dataset(classes_path: str | Path, dining_path: str | Path) -> TimetableDataset:
    """Load and validate both timetable documents."""
    dataset = parse_dataset(_read_json(Path(classes_path)), _read_json(Path(dining_path)))
    logger.info(
        "Timetable loaded: sections=%d class_patterns=%d dining_patterns=%d",
        len(dataset.classes.sections),
        len(dataset.classes.patterns),
        len(dataset.dining.patterns),
    )
    return dataset
