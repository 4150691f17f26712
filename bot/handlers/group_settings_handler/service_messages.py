# bot/handlers/group_settings_handler/service_messages.py
"""
Удаление служебных сообщений (вход, выход, закрепление и т.д.),
если в группе включено /delserv on.
"""

import logging

from aiogram import F, Router
from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message

from bot.services.group_policy import SqlGroupPolicyStore


logger = logging.getLogger(__name__)

service_messages_router = Router(name="service_messages")

SERVICE_FIELDS = (
    "new_chat_members",
    "left_chat_member",
    "new_chat_title",
    "new_chat_photo",
    "delete_chat_photo",
    "group_chat_created",
    "supergroup_chat_created",
    "channel_chat_created",
    "message_auto_delete_timer_changed",
    "pinned_message",
)


def is_service_message(message: Message) -> bool:
    return any(getattr(message, name, None) for name in SERVICE_FIELDS)


@service_messages_router.message(F.chat.type.in_({"group", "supergroup"}), is_service_message)
async def delete_service_message(message: Message, policy_store: SqlGroupPolicyStore) -> None:
    policy = await policy_store.read(message.chat.id)
    if not policy.delete_service_messages:
        return

    try:
        await message.delete()
        logger.debug(f"🗑️ [SERVICE_MSG] Удалено служебное сообщение {message.message_id} в {message.chat.id}")
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [SERVICE_MSG] Не удалось удалить сообщение в {message.chat.id}: {e}")
