import asyncio
import contextlib
import logging
from typing import Tuple

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.fsm.storage.redis import RedisStorage
from aiogram.client.session.aiohttp import AiohttpSession

# ВАЖНО: сначала загружаем конфиг (.env), потом инициализируем Redis
from bot.config import BOT_TOKEN, LOG_LEVEL, REDIS_URL, USE_WEBHOOK, load_gate_settings
from bot.services import redis_conn

from bot.database.session import async_session, init_db
from bot.middleware.db_session import DbSessionMiddleware
from bot.middleware.gate_services import GateServicesMiddleware
from bot.middleware.structured_logging import StructuredLoggingMiddleware
from bot.handlers import handlers_router
from bot.services.platform import AiogramChatPlatform
from bot.services.captcha import (
    AdmissionController,
    ChallengeGenerator,
    MemoryChallengeStore,
    RedisChallengeStore,
    Sweeper,
)
from bot.services.captcha.generator_service import EMOJI_POOL
from bot.services.group_policy import SqlGroupPolicyStore
from bot.webhook import ALLOWED_UPDATES, run_webhook


def setup_logging():
    """Консольный лог + приглушённые логгеры aiogram"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    root.addHandler(console_handler)

    # Апдейты логирует StructuredLoggingMiddleware, встроенные логи aiogram не нужны
    for logger_name in ("aiogram", "aiogram.dispatcher", "aiogram.event"):
        log = logging.getLogger(logger_name)
        log.setLevel(logging.ERROR)


async def create_storages():
    """
    Хранилища FSM и капч.

    Если Redis недоступен - MemoryStorage и MemoryChallengeStore
    (данные теряются при перезапуске, но бот работает).
    """
    try:
        await redis_conn.test_connection()
        return RedisStorage.from_url(REDIS_URL), RedisChallengeStore(redis_conn.redis)
    except Exception as e:
        logging.warning(f"⚠️ Ошибка подключения к Redis: {e}")
        logging.info("ℹ️ Используется MemoryStorage (капчи будут утеряны при перезапуске)")
        return MemoryStorage(), MemoryChallengeStore()


def build_dispatcher(bot: Bot, storage, challenge_store) -> Tuple[Dispatcher, Sweeper]:
    """Собирает сервисы, middleware и роутеры"""
    settings = load_gate_settings()
    platform = AiogramChatPlatform(bot)
    generator = ChallengeGenerator(EMOJI_POOL, settings.option_count)
    policy_store = SqlGroupPolicyStore(async_session, settings.verified_ttl_seconds)
    admission = AdmissionController(platform, challenge_store, policy_store, generator, settings)
    sweeper = Sweeper(platform, challenge_store, settings)

    dp = Dispatcher(storage=storage)

    # ✅ Сессия БД и сервисы капчи прокидываются в каждый хендлер
    dp.update.middleware(DbSessionMiddleware(async_session))
    dp.update.middleware(GateServicesMiddleware(admission, policy_store, generator, sweeper))
    dp.update.middleware(StructuredLoggingMiddleware())

    dp.include_router(handlers_router)
    return dp, sweeper


async def stop_task(task: asyncio.Task) -> None:
    """Отменяет фоновую задачу и дожидается её завершения"""
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


# главная асинхронная функция, запускающая бота
async def main():
    setup_logging()

    storage, challenge_store = await create_storages()

    # ✅ Создаём таблицы в БД (миграции alembic - для продакшна)
    await init_db()

    # ✅ Создание бота по токену из .env
    session = AiohttpSession(timeout=60.0)
    bot = Bot(token=BOT_TOKEN, session=session)

    dp, sweeper = build_dispatcher(bot, storage, challenge_store)
    sweep_task = asyncio.create_task(sweeper.run_periodic())

    logging.info("🤖 Бот успешно запущен и готов к работе.")
    try:
        if USE_WEBHOOK:
            await run_webhook(bot, dp, sweeper)
        else:
            await bot.delete_webhook(drop_pending_updates=True)
            await dp.start_polling(bot, allowed_updates=ALLOWED_UPDATES)
    finally:
        await stop_task(sweep_task)
        await bot.session.close()
        logging.info("🛑 Бот остановлен")


def run():
    """Точка входа для скрипта joingate-bot"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("🛑 Бот остановлен пользователем")


if __name__ == "__main__":
    run()
