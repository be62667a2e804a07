import asyncio
import html
import logging

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import (
    BufferedInputFile,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
)

from routine_bot.bot.states.routine import RoutineStates
from routine_bot.config import settings
from routine_bot.db.connection import async_session_maker
from routine_bot.db.repos.chat_state_repo import ChatStateRepo
from routine_bot.services.date_service import format_day
from routine_bot.services.routine_view import (
    ParseMode,
    build_routine_message,
    sample_sections,
    section_range_hint,
    split_telegram,
)
from routine_bot.services.timetable_service import build_export, build_routine, get_dataset

router = Router()
logger = logging.getLogger(__name__)

CB_EXPORT = "routine:export"
CB_BACK = "routine:back"
CB_SAMPLE_PREFIX = "routine:sample:"

SECTION_NOT_FOUND_TEXT = "Section not found! Please try a valid section like S01, S02, etc."
EXPORT_FAILED_TEXT = "Failed to export the calendar. Please try again."
NO_SECTION_TEXT = "No section selected yet. Send your section code first."
IN_SCHEDULE_HINT_TEXT = "Press «Back» to look up another section."
SEMESTER_OVER_TEXT = "⚠️ The semester end date has already passed, so these events will not show up in your calendar."


def extract_command_arg(text: str | None) -> str | None:
    parts = (text or "").strip().split(maxsplit=1)
    if len(parts) < 2:
        return None
    return parts[1].strip() or None


def prompt_text() -> str:
    sections = get_dataset().sections
    hint = section_range_hint(sections)
    lines = ["<b>RS Routine Viewer</b>", "Enter your section code to see your weekly classes and dining times."]
    if hint:
        lines.append(f"Section codes: {html.escape(hint)}")
    return "\n".join(lines)


def prompt_keyboard() -> InlineKeyboardMarkup | None:
    samples = sample_sections(get_dataset().sections)
    if not samples:
        return None
    return InlineKeyboardMarkup(
        inline_keyboard=[[
            InlineKeyboardButton(text=code, callback_data=f"{CB_SAMPLE_PREFIX}{code}") for code in samples
        ]]
    )


async def _share_link(message: Message, section: str) -> str | None:
    try:
        me = await message.bot.get_me()
    except Exception:
        logger.debug("get_me failed; no share link", exc_info=True)
        return None
    if not me.username:
        return None
    return f"https://t.me/{me.username}?start={section}"


async def routine_keyboard(message: Message, section: str) -> InlineKeyboardMarkup:
    rows = [[
        InlineKeyboardButton(text="📥 Export .ics", callback_data=CB_EXPORT),
        InlineKeyboardButton(text="⬅️ Back", callback_data=CB_BACK),
    ]]
    link = await _share_link(message, section)
    if link:
        rows.append([InlineKeyboardButton(text="🔗 Share", url=link)])
    return InlineKeyboardMarkup(inline_keyboard=rows)


async def prompt_section(message: Message, state: FSMContext) -> None:
    await state.set_state(RoutineStates.input)
    await message.answer(prompt_text(), reply_markup=prompt_keyboard(), parse_mode=ParseMode.HTML)


async def _loading_pause(message: Message, chat_id: int) -> None:
    try:
        await message.bot.send_chat_action(chat_id=chat_id, action="typing")
    except Exception:
        logger.debug("send_chat_action failed", exc_info=True)
    if settings.SUBMIT_DELAY_SECONDS:
        await asyncio.sleep(settings.SUBMIT_DELAY_SECONDS)


async def show_routine(message: Message, state: FSMContext, section_code: str, chat_id: int) -> bool:
    """
    Input -> Schedule transition. On success the section is cached for the chat
    and the routine is sent; on NotFound the chat stays in Input and nothing is cached.
    """
    await _loading_pause(message, chat_id)

    routine = build_routine(section_code)
    if routine is None:
        await state.set_state(RoutineStates.input)
        await message.answer(SECTION_NOT_FOUND_TEXT)
        return False

    async with async_session_maker() as session:
        repo = ChatStateRepo(session)
        await repo.save_last_section(chat_id, routine.section)
        await session.commit()

    await state.set_state(RoutineStates.schedule)
    await state.update_data(section=routine.section)

    chunks = split_telegram(build_routine_message(routine.section, routine.rows))
    keyboard = await routine_keyboard(message, routine.section)
    for i, chunk in enumerate(chunks):
        markup = keyboard if i == len(chunks) - 1 else None
        await message.answer(chunk, reply_markup=markup, parse_mode=ParseMode.HTML)
    logger.info("Routine shown chat_id=%s section=%s rows=%d", chat_id, routine.section, len(routine.rows))
    return True


async def go_back(message: Message, state: FSMContext, chat_id: int) -> None:
    """Schedule -> Input transition: forget the section and ask again."""
    await state.clear()
    async with async_session_maker() as session:
        repo = ChatStateRepo(session)
        await repo.clear_last_section(chat_id)
        await session.commit()
    await prompt_section(message, state)


async def _current_section(state: FSMContext, chat_id: int) -> str | None:
    data = await state.get_data()
    section = data.get("section")
    if section:
        return section
    async with async_session_maker() as session:
        repo = ChatStateRepo(session)
        return await repo.get_last_section(chat_id)


async def send_export(message: Message, state: FSMContext, chat_id: int) -> bool:
    section = await _current_section(state, chat_id)
    if not section:
        await message.answer(NO_SECTION_TEXT)
        return False

    routine = build_routine(section)
    if routine is None:
        await message.answer(SECTION_NOT_FOUND_TEXT)
        return False

    try:
        export = build_export(routine)
        caption = (
            f"{export.events} events for section {html.escape(routine.section)}, "
            f"starting {format_day(export.week_from)}–{format_day(export.week_to)} and repeating weekly "
            f"until {format_day(settings.SEMESTER_END)} ({export.weeks} weeks)."
        )
        if export.weeks == 0:
            caption += "\n" + SEMESTER_OVER_TEXT
        document = BufferedInputFile(export.content.encode("utf-8"), filename=export.filename)
        await message.answer_document(document, caption=caption, parse_mode=ParseMode.HTML)
    except Exception:
        logger.exception("Calendar export failed chat_id=%s section=%s", chat_id, section)
        await message.answer(EXPORT_FAILED_TEXT)
        return False
    return True


@router.message(Command("routine"))
async def routine_command(message: Message, state: FSMContext) -> None:
    code = extract_command_arg(message.text)
    if not code:
        await prompt_section(message, state)
        return
    await show_routine(message, state, code, message.chat.id)


@router.message(Command("back"))
async def back_command(message: Message, state: FSMContext) -> None:
    await go_back(message, state, message.chat.id)


@router.message(Command("export"))
async def export_command(message: Message, state: FSMContext) -> None:
    await send_export(message, state, message.chat.id)


@router.callback_query(F.data == CB_BACK)
async def back_pressed(callback: CallbackQuery, state: FSMContext) -> None:
    await callback.answer()
    if callback.message is None:
        return
    await go_back(callback.message, state, callback.message.chat.id)


@router.callback_query(F.data == CB_EXPORT)
async def export_pressed(callback: CallbackQuery, state: FSMContext) -> None:
    await callback.answer("Preparing calendar…")
    if callback.message is None:
        return
    await send_export(callback.message, state, callback.message.chat.id)


@router.callback_query(F.data.startswith(CB_SAMPLE_PREFIX))
async def sample_pressed(callback: CallbackQuery, state: FSMContext) -> None:
    await callback.answer()
    if callback.message is None:
        return
    code = (callback.data or "")[len(CB_SAMPLE_PREFIX):]
    await show_routine(callback.message, state, code, callback.message.chat.id)


@router.message(RoutineStates.schedule, F.chat.type == "private", F.text)
async def text_in_schedule(message: Message, state: FSMContext) -> None:
    text = (message.text or "").strip()
    if text.startswith("/"):
        return
    await message.answer(IN_SCHEDULE_HINT_TEXT)


@router.message(F.chat.type == "private", F.text)
async def section_submitted(message: Message, state: FSMContext) -> None:
    """Input state (or no state after a restart): any plain text is a section code."""
    text = (message.text or "").strip()
    if not text or text.startswith("/"):
        return
    await show_routine(message, state, text, message.chat.id)
