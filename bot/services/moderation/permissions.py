# bot/services/moderation/permissions.py
"""
Проверки прав для команд модерации и наборы ChatPermissions.
"""

import logging
from typing import Iterable, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ChatPermissions, Message


logger = logging.getLogger(__name__)

ADMIN_STATUSES = {"administrator", "creator"}
GROUP_CHAT_TYPES = {"group", "supergroup"}

PERMISSION_LABELS = {
    "can_restrict_members": "ограничение участников",
    "can_delete_messages": "удаление сообщений",
    "can_pin_messages": "закрепление сообщений",
    "can_manage_chat": "управление чатом",
}

TEXT_GROUP_ONLY = "❌ Эта команда работает только в группах."
TEXT_ADMINS_ONLY = "❌ Команда доступна только администраторам."
TEXT_BOT_RIGHTS_UNKNOWN = "❌ Не удалось проверить мои права администратора."


def _permissions(allowed: bool) -> ChatPermissions:
    return ChatPermissions(
        can_send_messages=allowed,
        can_send_audios=allowed,
        can_send_documents=allowed,
        can_send_photos=allowed,
        can_send_videos=allowed,
        can_send_video_notes=allowed,
        can_send_voice_notes=allowed,
        can_send_polls=allowed,
        can_send_other_messages=allowed,
        can_add_web_page_previews=allowed,
    )


# Мут участника и блокировка всего чата закрывают одни и те же права
MUTE_PERMISSIONS = _permissions(False)
UNMUTE_PERMISSIONS = _permissions(True)
LOCK_PERMISSIONS = _permissions(False)
UNLOCK_PERMISSIONS = _permissions(True)


async def is_chat_admin(bot: Bot, chat_id: int, user_id: int) -> bool:
    try:
        member = await bot.get_chat_member(chat_id, user_id)
    except TelegramAPIError as e:
        logger.error(f"❌ [PERMISSIONS] Не удалось проверить статус {user_id} в {chat_id}: {e}")
        return False
    return member.status in ADMIN_STATUSES


async def ensure_group_admin(message: Message) -> Optional[int]:
    """
    Проверяет, что команда вызвана админом в группе.

    Returns:
        chat_id группы или None (ответ пользователю уже отправлен)
    """
    if message.chat.type not in GROUP_CHAT_TYPES:
        await message.answer(TEXT_GROUP_ONLY)
        return None
    if message.from_user is None:
        return None

    if await is_chat_admin(message.bot, message.chat.id, message.from_user.id):
        return message.chat.id

    await message.answer(TEXT_ADMINS_ONLY)
    return None


def _has_right(member, right: str) -> bool:
    if member.status == "creator":
        return True
    if member.status != "administrator":
        return False
    return bool(getattr(member, right, False))


async def ensure_bot_permissions(message: Message, chat_id: int, required: Iterable[str]) -> bool:
    """
    Проверяет права бота в чате; при нехватке сообщает, каких прав нет.
    """
    try:
        me = await message.bot.me()
        member = await message.bot.get_chat_member(chat_id, me.id)
    except TelegramAPIError as e:
        logger.error(f"❌ [PERMISSIONS] Не удалось получить права бота в {chat_id}: {e}")
        await message.answer(TEXT_BOT_RIGHTS_UNKNOWN)
        return False

    missing = [right for right in required if not _has_right(member, right)]
    if not missing:
        return True

    labels = ", ".join(PERMISSION_LABELS.get(right, right) for right in missing)
    await message.answer(f"❌ Мне не хватает прав: {labels}. Выдайте права администратора.")
    return False
