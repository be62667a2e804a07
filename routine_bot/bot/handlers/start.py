import logging

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from routine_bot.bot.handlers.routine import extract_command_arg, prompt_section, show_routine
from routine_bot.db.connection import async_session_maker
from routine_bot.db.repos.chat_state_repo import ChatStateRepo

router = Router()
logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Send your section code (for example <code>S01</code> or just <code>1</code>) "
    "to see your weekly routine.\n"
    "/routine S01 - show a section\n"
    "/export - download the routine as a calendar (.ics)\n"
    "/back - pick another section"
)


@router.message(CommandStart())
async def start(message: Message, state: FSMContext) -> None:
    """
    /start S05 comes from a shared link and opens that section directly.
    Plain /start restores the section this chat looked at last, if any.
    """
    chat_id = message.chat.id
    payload = extract_command_arg(message.text)
    logger.info("Received /start chat_id=%s payload=%r", chat_id, payload)

    if payload:
        await show_routine(message, state, payload, chat_id)
        return

    async with async_session_maker() as session:
        repo = ChatStateRepo(session)
        cached = await repo.get_last_section(chat_id)

    if cached and await show_routine(message, state, cached, chat_id):
        return
    await prompt_section(message, state)


@router.message(Command("help"))
async def help_command(message: Message) -> None:
    await message.answer(HELP_TEXT)
