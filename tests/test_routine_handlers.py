from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import InlineKeyboardMarkup

from routine_bot.bot.handlers import routine, start
from routine_bot.bot.states.routine import RoutineStates
from routine_bot.services import timetable_service


class DummySession:
    def __init__(self):
        self.commit = AsyncMock()


class DummySessionContext:
    async def __aenter__(self):
        return DummySession()

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummyChatStateRepo:
    store: dict = {}

    def __init__(self, session):
        self.session = session

    async def get_last_section(self, chat_id):
        return self.store.get(chat_id)

    async def save_last_section(self, chat_id, section):
        self.store[chat_id] = section

    async def clear_last_section(self, chat_id):
        self.store.pop(chat_id, None)


@pytest.fixture(autouse=True)
def _wire(monkeypatch, dataset):
    DummyChatStateRepo.store = {}
    monkeypatch.setattr(timetable_service, "_dataset", dataset)
    monkeypatch.setattr(routine.settings, "SUBMIT_DELAY_SECONDS", 0)
    for module in (routine, start):
        monkeypatch.setattr(module, "async_session_maker", lambda: DummySessionContext())
        monkeypatch.setattr(module, "ChatStateRepo", DummyChatStateRepo)


def _state(chat_id: int = 1) -> FSMContext:
    return FSMContext(storage=MemoryStorage(), key=StorageKey(bot_id=42, chat_id=chat_id, user_id=chat_id))


def _message(text: str = "", chat_id: int = 1, username: str | None = "routine_test_bot"):
    bot = SimpleNamespace(
        get_me=AsyncMock(return_value=SimpleNamespace(username=username)),
        send_chat_action=AsyncMock(),
    )
    return SimpleNamespace(
        text=text,
        chat=SimpleNamespace(id=chat_id, type="private"),
        bot=bot,
        answer=AsyncMock(),
        answer_document=AsyncMock(),
    )


def _buttons(markup: InlineKeyboardMarkup):
    return [button for row in markup.inline_keyboard for button in row]


def test_extract_command_arg():
    assert routine.extract_command_arg("/routine S01") == "S01"
    assert routine.extract_command_arg("/start   7 ") == "7"
    assert routine.extract_command_arg("/start") is None
    assert routine.extract_command_arg(None) is None


@pytest.mark.asyncio
async def test_submit_known_section_shows_routine_and_caches_it():
    message = _message("1")
    state = _state()

    await routine.section_submitted(message, state)

    assert await state.get_state() == RoutineStates.schedule.state
    assert (await state.get_data())["section"] == "S01"
    assert DummyChatStateRepo.store == {1: "S01"}

    message.bot.send_chat_action.assert_awaited_once_with(chat_id=1, action="typing")
    message.answer.assert_awaited_once()
    text = message.answer.call_args.args[0]
    assert "Section: <b>S01</b>" in text
    assert "CSE110" in text

    buttons = _buttons(message.answer.call_args.kwargs["reply_markup"])
    assert [b.callback_data for b in buttons if b.callback_data] == [routine.CB_EXPORT, routine.CB_BACK]
    assert [b.url for b in buttons if b.url] == ["https://t.me/routine_test_bot?start=S01"]


@pytest.mark.asyncio
async def test_submit_unknown_section_stays_in_input_without_caching():
    message = _message("S99")
    state = _state()

    await routine.section_submitted(message, state)

    assert await state.get_state() == RoutineStates.input.state
    assert DummyChatStateRepo.store == {}
    message.answer.assert_awaited_once_with(routine.SECTION_NOT_FOUND_TEXT)


@pytest.mark.asyncio
async def test_submit_ignores_commands_and_blank_text():
    for text in ("/unknown", "   "):
        message = _message(text)
        await routine.section_submitted(message, _state())
        message.answer.assert_not_awaited()


@pytest.mark.asyncio
async def test_share_button_omitted_without_username():
    message = _message("S02", username=None)
    await routine.section_submitted(message, _state())

    buttons = _buttons(message.answer.call_args.kwargs["reply_markup"])
    assert all(b.url is None for b in buttons)


@pytest.mark.asyncio
async def test_back_clears_cache_and_prompts():
    DummyChatStateRepo.store = {1: "S01"}
    message = _message("/back")
    state = _state()
    await state.set_state(RoutineStates.schedule)
    await state.update_data(section="S01")

    await routine.back_command(message, state)

    assert await state.get_state() == RoutineStates.input.state
    assert await state.get_data() == {}
    assert DummyChatStateRepo.store == {}
    text = message.answer.call_args.args[0]
    assert "Enter your section code" in text
    assert "S01 - S03" in text
    samples = _buttons(message.answer.call_args.kwargs["reply_markup"])
    assert [b.callback_data for b in samples] == [f"{routine.CB_SAMPLE_PREFIX}{code}" for code in ("S01", "S02", "S03")]


@pytest.mark.asyncio
async def test_start_with_payload_opens_section():
    message = _message("/start 2", chat_id=5)
    state = _state(5)

    await start.start(message, state)

    assert await state.get_state() == RoutineStates.schedule.state
    assert DummyChatStateRepo.store == {5: "S02"}


@pytest.mark.asyncio
async def test_start_restores_cached_section():
    DummyChatStateRepo.store = {5: "S03"}
    message = _message("/start", chat_id=5)
    state = _state(5)

    await start.start(message, state)

    assert (await state.get_data())["section"] == "S03"
    assert "Section: <b>S03</b>" in message.answer.call_args.args[0]


@pytest.mark.asyncio
async def test_start_with_stale_cache_prompts():
    DummyChatStateRepo.store = {5: "S77"}
    message = _message("/start", chat_id=5)
    state = _state(5)

    await start.start(message, state)

    assert await state.get_state() == RoutineStates.input.state
    texts = [call.args[0] for call in message.answer.call_args_list]
    assert texts[0] == routine.SECTION_NOT_FOUND_TEXT
    assert "Enter your section code" in texts[-1]


@pytest.mark.asyncio
async def test_start_without_anything_prompts():
    message = _message("/start", chat_id=6)
    state = _state(6)

    await start.start(message, state)

    assert await state.get_state() == RoutineStates.input.state
    message.answer.assert_awaited_once()


@pytest.mark.asyncio
async def test_export_sends_ics_document():
    message = _message("/export")
    state = _state()
    await state.update_data(section="S01")

    await routine.export_command(message, state)

    message.answer_document.assert_awaited_once()
    document = message.answer_document.call_args.args[0]
    assert document.filename == "routine-S01.ics"
    content = document.data.decode("utf-8")
    assert content.startswith("BEGIN:VCALENDAR")
    assert content.count("BEGIN:VEVENT") == 21
    caption = message.answer_document.call_args.kwargs["caption"]
    assert caption.startswith("21 events for section S01")


@pytest.mark.asyncio
async def test_export_falls_back_to_cached_section():
    DummyChatStateRepo.store = {1: "S02"}
    message = _message("/export")

    await routine.export_command(message, _state())

    assert message.answer_document.call_args.args[0].filename == "routine-S02.ics"


@pytest.mark.asyncio
async def test_export_without_section():
    message = _message("/export")

    await routine.export_command(message, _state())

    message.answer_document.assert_not_awaited()
    message.answer.assert_awaited_once_with(routine.NO_SECTION_TEXT)


@pytest.mark.asyncio
async def test_export_failure_is_reported(monkeypatch):
    def boom(_routine, now=None):
        raise RuntimeError("disk full")

    monkeypatch.setattr(routine, "build_export", boom)
    message = _message("/export")
    state = _state()
    await state.update_data(section="S01")

    await routine.export_command(message, state)

    message.answer_document.assert_not_awaited()
    message.answer.assert_awaited_once_with(routine.EXPORT_FAILED_TEXT)


@pytest.mark.asyncio
async def test_callback_buttons():
    message = _message()
    callback = SimpleNamespace(data=f"{routine.CB_SAMPLE_PREFIX}S03", message=message, answer=AsyncMock())
    state = _state()

    await routine.sample_pressed(callback, state)
    assert (await state.get_data())["section"] == "S03"

    callback.data = routine.CB_EXPORT
    await routine.export_pressed(callback, state)
    assert message.answer_document.call_args.args[0].filename == "routine-S03.ics"

    callback.data = routine.CB_BACK
    await routine.back_pressed(callback, state)
    assert await state.get_state() == RoutineStates.input.state
    assert callback.answer.await_count == 3


@pytest.mark.asyncio
async def test_text_in_schedule_hints_back():
    message = _message("S02")
    await routine.text_in_schedule(message, _state())
    message.answer.assert_awaited_once_with(routine.IN_SCHEDULE_HINT_TEXT)


@pytest.mark.asyncio
async def test_export_caption_flags_past_semester_end(monkeypatch):
    monkeypatch.setattr(routine.settings, "SEMESTER_END", date(2020, 1, 31))
    message = _message("/export")
    state = _state()
    await state.update_data(section="S01")

    await routine.export_command(message, state)

    caption = message.answer_document.call_args.kwargs["caption"]
    assert "(0 weeks)" in caption
    assert caption.endswith(routine.SEMESTER_OVER_TEXT)
