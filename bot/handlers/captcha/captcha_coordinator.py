# bot/handlers/captcha/captcha_coordinator.py
"""
Координатор капчи - ЕДИНАЯ ТОЧКА ВХОДА для заявок на вступление.

Перехватывает chat_join_request и передаёт решение контроллеру допуска.
Сам хендлер ничего не решает: чёрный/белый список, капча и доставка
живут в AdmissionController.
"""

import logging

from aiogram import Router
from aiogram.types import ChatJoinRequest

from bot.services.captcha import AdmissionController


# Логгер для отслеживания работы координатора
logger = logging.getLogger(__name__)

# Роутер координатора
coordinator_router = Router(name="captcha_coordinator")


def _display_name(event: ChatJoinRequest) -> str:
    user = event.from_user
    if user.username:
        return f"@{user.username}"
    return user.full_name or str(user.id)


@coordinator_router.chat_join_request()
async def handle_join_request(event: ChatJoinRequest, admission: AdmissionController) -> None:
    """
    Единая точка входа для chat_join_request.

    Args:
        event: Событие запроса на вступление
        admission: Контроллер допуска (инжектится middleware)
    """
    user = event.from_user
    chat = event.chat

    logger.info(
        f"📥 [COORDINATOR] chat_join_request: "
        f"user_id={user.id}, chat_id={chat.id}, "
        f"username=@{user.username or 'none'}"
    )

    # user_chat_id есть только у заявок - личный чат, куда можно писать до /start
    user_chat_id = event.user_chat_id or user.id

    outcome = await admission.on_join_request(
        chat_id=chat.id,
        user_id=user.id,
        user_chat_id=user_chat_id,
        display_name=_display_name(event),
        chat_title=chat.title,
    )
    logger.info(f"📋 [COORDINATOR] Решение по заявке: user_id={user.id}, decision={outcome.decision.value}")
