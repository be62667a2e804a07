from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.client.session.aiohttp import AiohttpSession
from aiogram.fsm.storage.memory import MemoryStorage

from routine_bot.bot.handlers import routine, start
from routine_bot.bot.middlewares import LoggingMiddleware
from routine_bot.config import settings

if settings.TELEGRAM_PROXY:
    session = AiohttpSession(proxy=settings.TELEGRAM_PROXY)
    bot = Bot(token=settings.BOT_TOKEN, default=DefaultBotProperties(parse_mode="HTML"), session=session)
else:
    bot = Bot(token=settings.BOT_TOKEN, default=DefaultBotProperties(parse_mode="HTML"))
storage = MemoryStorage()
dp = Dispatcher(storage=storage)

dp.message.middleware(LoggingMiddleware())

# start first: /start must not be swallowed by the free-text section handler.
dp.include_router(start.router)
dp.include_router(routine.router)
