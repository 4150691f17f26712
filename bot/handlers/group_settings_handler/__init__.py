from aiogram import Router

from bot.handlers.group_settings_handler.config_commands import config_router
from bot.handlers.group_settings_handler.service_messages import service_messages_router

group_settings_router = Router(name="group_settings")
group_settings_router.include_router(config_router)
# Служебные сообщения - после команд
group_settings_router.include_router(service_messages_router)

__all__ = ["group_settings_router"]
