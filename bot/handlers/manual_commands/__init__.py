# ═══════════════════════════════════════════════════════════════════════════
# МОДУЛЬ ХЕНДЛЕРОВ РУЧНЫХ КОМАНД МОДЕРАЦИИ
# ═══════════════════════════════════════════════════════════════════════════
# member_commands - /ban /unban /kick /mute /unmute
# warn_commands   - /warn /unwarn /warnings
# chat_commands   - /purge /pin /unpin /lock /unlock /help
# ═══════════════════════════════════════════════════════════════════════════

from aiogram import Router

# Создаём роутер для модуля ручных команд
manual_commands_router = Router(name="manual_commands")

from bot.handlers.manual_commands.member_commands import member_router
from bot.handlers.manual_commands.warn_commands import warn_router
from bot.handlers.manual_commands.chat_commands import chat_router

# Регистрируем sub-роутеры
manual_commands_router.include_router(member_router)
manual_commands_router.include_router(warn_router)
manual_commands_router.include_router(chat_router)

# Экспортируем главный роутер
__all__ = ['manual_commands_router']
