# bot/handlers/captcha/__init__.py
"""
Модуль хендлеров капчи - единая точка входа для всех событий капчи.

Архитектура:
- captcha_coordinator.py - заявки на вступление (chat_join_request)
- captcha_callbacks.py - нажатия кнопок капчи, приветствия и /test
- captcha_fsm_handler.py - /start, /test и текстовые ответы в личке

Вся логика - в bot/services/captcha/, хендлеры только переводят
события Telegram в вызовы AdmissionController.
"""

from aiogram import Router

# Создаём главный роутер модуля капчи
captcha_router = Router(name="captcha")

from bot.handlers.captcha.captcha_coordinator import coordinator_router
from bot.handlers.captcha.captcha_callbacks import callbacks_router
from bot.handlers.captcha.captcha_fsm_handler import fsm_router

# Порядок: fsm_router ловит любой текст в личке, поэтому последним
captcha_router.include_router(coordinator_router)
captcha_router.include_router(callbacks_router)
captcha_router.include_router(fsm_router)

__all__ = ["captcha_router"]
