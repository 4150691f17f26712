"""
Webhook режим: приём апдейтов, health check и ручной запуск очистки капч
"""
import asyncio
import hmac
import logging
from typing import Optional

from aiohttp import web
from aiogram import Bot, Dispatcher
from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application
from aiogram.exceptions import TelegramRetryAfter

from bot.config import WEBHOOK_URL, WEBHOOK_PATH, WEBHOOK_PORT, WEBHOOK_SECRET, SWEEP_SECRET
from bot.services.captcha import Sweeper

logger = logging.getLogger(__name__)

SWEEP_SECRET_HEADER = "X-Sweep-Secret"
ALLOWED_UPDATES = ["message", "callback_query", "chat_join_request", "chat_member", "my_chat_member"]
SWEEPER_KEY = web.AppKey("sweeper", Sweeper)
SWEEP_SECRET_KEY = web.AppKey("sweep_secret", str)


async def health_check(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "service": "join_gate_bot"})


async def sweep_endpoint(request: web.Request) -> web.Response:
    """
    POST /sweep - внешний планировщик запускает очистку.

    401 без заголовка секрета, 403 при неверном секрете.
    """
    expected = request.app.get(SWEEP_SECRET_KEY)
    provided = request.headers.get(SWEEP_SECRET_HEADER)
    if not expected:
        logger.warning("⚠️ [SWEEP] SWEEP_SECRET не задан, ручная очистка отключена")
        return web.json_response({"error": "sweep disabled"}, status=403)
    if not provided:
        return web.json_response({"error": "missing secret"}, status=401)
    if not hmac.compare_digest(provided, expected):
        logger.warning("⚠️ [SWEEP] Неверный секрет в запросе очистки")
        return web.json_response({"error": "forbidden"}, status=403)

    removed = await request.app[SWEEPER_KEY].sweep()
    return web.json_response({"status": "ok", "removed": removed})


def create_app(bot: Bot, dp: Dispatcher, sweeper: Sweeper, sweep_secret: Optional[str] = SWEEP_SECRET) -> web.Application:
    """Создание веб-приложения с webhook, /health и /sweep"""
    app = web.Application()
    app[SWEEPER_KEY] = sweeper
    if sweep_secret:
        app[SWEEP_SECRET_KEY] = sweep_secret

    webhook_requests_handler = SimpleRequestHandler(
        dispatcher=dp,
        bot=bot,
        secret_token=WEBHOOK_SECRET,
    )
    webhook_requests_handler.register(app, path=WEBHOOK_PATH)
    setup_application(app, dp, bot=bot)

    app.router.add_get("/health", health_check)
    app.router.add_post("/sweep", sweep_endpoint)
    return app


async def setup_webhook(bot: Bot, max_attempts: int = 5):
    """Настройка webhook для бота (с повтором при flood control)"""
    if not WEBHOOK_URL:
        logger.error("❌ WEBHOOK_URL не установлен в конфигурации! Проверьте .env файл.")
        raise ValueError("WEBHOOK_URL не установлен")

    for attempt in range(1, max_attempts + 1):
        try:
            await bot.delete_webhook(drop_pending_updates=True)
            await bot.set_webhook(
                url=WEBHOOK_URL,
                drop_pending_updates=True,
                secret_token=WEBHOOK_SECRET,
                allowed_updates=ALLOWED_UPDATES,
            )
            webhook_info = await bot.get_webhook_info()
            if webhook_info.url != WEBHOOK_URL:
                logger.warning(f"⚠️ Webhook установлен, но URL не совпадает: {webhook_info.url}")
            if webhook_info.last_error_date:
                logger.warning(f"⚠️ Последняя ошибка webhook: {webhook_info.last_error_message}")
            logger.info(f"✅ Webhook установлен: {WEBHOOK_URL}")
            return
        except TelegramRetryAfter as e:
            wait_seconds = max(int(getattr(e, "retry_after", 1)), 1)
            logger.warning(
                f"⚠️ Попытка {attempt}/{max_attempts} - flood control на set_webhook, "
                f"повтор через {wait_seconds} сек."
            )
            if attempt == max_attempts:
                raise
            await asyncio.sleep(wait_seconds)


async def run_webhook(bot: Bot, dp: Dispatcher, sweeper: Sweeper):
    """Запуск webhook сервера (SSL на стороне nginx)"""
    app = create_app(bot, dp, sweeper)
    await setup_webhook(bot)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host='0.0.0.0', port=WEBHOOK_PORT)
    await site.start()
    logger.info(f"🚀 Webhook сервер запущен на порту {WEBHOOK_PORT}")

    try:
        await asyncio.Future()  # Бесконечный цикл
    finally:
        await runner.cleanup()
