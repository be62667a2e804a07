import asyncio
import logging
import sys

from aiogram.types import (
    BotCommand,
    BotCommandScopeAllGroupChats,
    BotCommandScopeDefault,
)
from aiogram.exceptions import TelegramNetworkError

from routine_bot.logging_setup import setup_logging
from routine_bot.config import settings
from routine_bot.db.connection import ensure_schema
from routine_bot.services.timetable_service import init_dataset
from routine_bot.timetable.models import DatasetError

COMMANDS = [
    BotCommand(command="start", description="Open your routine"),
    BotCommand(command="routine", description="Show a section, e.g. /routine S01"),
    BotCommand(command="export", description="Download the routine as .ics"),
    BotCommand(command="back", description="Pick another section"),
    BotCommand(command="help", description="How to use the bot"),
]


async def main():
    # 1. Setup Logging
    setup_logging()
    logging.info("Initializing Routine Bot...")

    # 2. Load the timetable; a broken dataset is a deployment error, not a runtime one.
    try:
        dataset = init_dataset()
    except (DatasetError, OSError) as e:
        logging.error("Failed to load timetable (%s, %s): %s", settings.CLASSES_PATH, settings.DINING_PATH, e)
        sys.exit(1)
    logging.info("Sections available: %d", len(dataset.sections))

    from routine_bot.bot.dispatcher import bot, dp

    # 3. Verify bot token
    try:
        bot_info = await bot.get_me()
        logging.info(f"Bot verified: @{bot_info.username} (id={bot_info.id})")
    except TelegramNetworkError as e:
        logging.error(f"Failed to verify bot token due to network error: {e}")
        logging.error("If api.telegram.org is blocked, set TELEGRAM_PROXY in .env.")
    except Exception as e:
        logging.error(f"Failed to verify bot token: {e}")
        logging.error("Please check your BOT_TOKEN in .env file")
        raise

    # 4. Init DB
    await ensure_schema()

    # 5. Set bot commands (shows up in UI)
    try:
        await bot.set_my_commands(COMMANDS, scope=BotCommandScopeDefault())
        await bot.set_my_commands(COMMANDS, scope=BotCommandScopeAllGroupChats())
        logging.info("Bot commands updated.")
    except Exception:
        logging.exception("Failed to set bot commands.")

    # 6. Start Polling
    logging.info("Starting polling...")
    await bot.delete_webhook(drop_pending_updates=True)
    await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())

def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Bot stopped by user!")
    except SystemExit:
        logging.info("Bot stopped!")
        raise
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    run()
