from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from routine_bot.services import timetable_service


@pytest.fixture(autouse=True)
def _dataset(monkeypatch, dataset):
    monkeypatch.setattr(timetable_service, "_dataset", dataset)


def test_build_routine_uses_dataset_spelling():
    routine = timetable_service.build_routine("2")

    assert routine.section == "S02"
    assert [row.time for row in routine.rows][:2] == ["7.00AM-7.50AM", "9.00AM-10.20AM"]


def test_build_routine_unknown_section():
    assert timetable_service.build_routine("S99") is None


def test_build_routine_respects_configured_prefix(monkeypatch):
    monkeypatch.setattr(timetable_service.settings, "SECTION_PREFIX", "G")
    assert timetable_service.build_routine("1") is None
    assert timetable_service.build_routine("S01").section == "S01"


def test_build_export(monkeypatch):
    monkeypatch.setattr(timetable_service.settings, "TZ", "Asia/Dhaka")
    monkeypatch.setattr(timetable_service.settings, "SEMESTER_END", date(2026, 12, 31))
    monkeypatch.setattr(timetable_service.settings, "CALENDAR_NAME", "RS Routine")
    routine = timetable_service.build_routine("S01")

    export = timetable_service.build_export(routine, now=datetime(2026, 10, 14, 9, 0, tzinfo=ZoneInfo("Asia/Dhaka")))

    assert export.filename == "routine-S01.ics"
    assert export.events == 21
    assert export.weeks == 12
    assert "X-WR-CALNAME:RS Routine S01" in export.content
    assert "LOCATION:Dining Hall" in export.content


def test_init_dataset_loads_configured_files_once(monkeypatch, tmp_path):
    calls = []

    def fake_load(classes_path, dining_path):
        calls.append((classes_path, dining_path))
        return "dataset"

    monkeypatch.setattr(timetable_service, "_dataset", None)
    monkeypatch.setattr(timetable_service, "load_dataset", fake_load)
    monkeypatch.setattr(timetable_service.settings, "CLASSES_PATH", tmp_path / "c.json")
    monkeypatch.setattr(timetable_service.settings, "DINING_PATH", tmp_path / "d.json")

    assert timetable_service.get_dataset() == "dataset"
    assert timetable_service.get_dataset() == "dataset"
    assert calls == [(tmp_path / "c.json", tmp_path / "d.json")]


def test_build_export_reads_now_once_in_local_time(monkeypatch):
    monkeypatch.setattr(timetable_service.settings, "TZ", "Asia/Dhaka")
    monkeypatch.setattr(timetable_service.settings, "SEMESTER_END", date(2026, 12, 31))
    routine = timetable_service.build_routine("S01")
    # Saturday 20:00 UTC is already Sunday 02:00 in Dhaka
    now = datetime(2026, 10, 17, 20, 0, tzinfo=ZoneInfo("UTC"))

    export = timetable_service.build_export(routine, now=now)

    assert (export.week_from, export.week_to) == (date(2026, 10, 18), date(2026, 10, 24))
    assert export.weeks == 11
    # Sunday breakfast of that same week, 07:00 Dhaka
    assert "DTSTART:20261018T010000Z" in export.content


def test_build_export_warns_when_semester_is_over(monkeypatch, caplog):
    monkeypatch.setattr(timetable_service.settings, "SEMESTER_END", date(2026, 1, 31))
    routine = timetable_service.build_routine("S01")

    export = timetable_service.build_export(routine, now=datetime(2026, 10, 14, 9, 0, tzinfo=ZoneInfo("Asia/Dhaka")))

    assert export.weeks == 0
    assert "will not recur" in caplog.text
