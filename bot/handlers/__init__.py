# Импорт всех роутеров для удобного подключения
from aiogram import Router

# Капча заявок на вступление (единая точка входа)
from .captcha import captcha_router
# Ручные команды модерации
from .manual_commands import manual_commands_router
# Федерации групп
from .federation import federation_router
# Настройки группы и служебные сообщения
from .group_settings_handler import group_settings_router


def create_handlers_router() -> Router:
    """
    Собирает корневой роутер.

    Порядок важен: команды раньше хендлеров, ловящих любой текст
    (ответы на капчу в личке и служебные сообщения в группах).
    """
    router = Router(name="handlers")
    router.include_router(manual_commands_router)
    router.include_router(federation_router)
    router.include_router(group_settings_router)
    router.include_router(captcha_router)
    return router


# Объединяем все роутеры в один
handlers_router = create_handlers_router()
