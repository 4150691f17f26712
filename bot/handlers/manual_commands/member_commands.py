# ═══════════════════════════════════════════════════════════════════════════
# ХЕНДЛЕРЫ КОМАНД /ban /unban /kick /mute /unmute
# ═══════════════════════════════════════════════════════════════════════════
# Цель: ответом на сообщение, @username или user_id.
#   /ban [цель] [причина]
#   /kick [цель] [причина]        → бан + разбан (можно вернуться)
#   /mute [цель] [10m|2h|1d] [причина]
#   /unban [цель], /unmute [цель]
# ═══════════════════════════════════════════════════════════════════════════

import logging
import time
from typing import List, Optional, Tuple

from aiogram import Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from bot.services.moderation import (
    MUTE_PERMISSIONS,
    UNMUTE_PERMISSIONS,
    TargetUser,
    ensure_bot_permissions,
    ensure_group_admin,
    format_duration,
    parse_optional_duration,
    resolve_target_args,
    split_args,
)

# Создаём роутер для команд над участниками
member_router = Router(name="member_commands")

# Настраиваем логгер
logger = logging.getLogger(__name__)

RESTRICT_RIGHTS = ("can_restrict_members",)


def _with_reason(text: str, reason: str) -> str:
    return f"{text} Причина: {reason}" if reason else text


async def _prepare(
    message: Message,
    command: CommandObject,
    usage: str,
) -> Optional[Tuple[int, TargetUser, List[str]]]:
    """
    Общие проверки: админ в группе, права бота, цель.

    Returns:
        (chat_id, цель, остальные токены) или None (ответ уже отправлен)
    """
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return None
    if not await ensure_bot_permissions(message, chat_id, RESTRICT_RIGHTS):
        return None

    target, rest = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer(usage)
        return None
    return chat_id, target, rest


# ═══════════════════════════════════════════════════════════════════════════
# /ban и /unban
# ═══════════════════════════════════════════════════════════════════════════
@member_router.message(Command("ban"))
async def ban_command(message: Message, command: CommandObject) -> None:
    prepared = await _prepare(message, command, "Использование: /ban <user_id или @username> [причина] или ответом на сообщение.")
    if prepared is None:
        return
    chat_id, target, rest = prepared
    reason = " ".join(rest).strip()

    try:
        await message.bot.ban_chat_member(chat_id, target.user_id)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка бана {target.user_id} в {chat_id}: {e}")
        await message.answer("❌ Не удалось забанить пользователя.")
        return

    logger.info(f"🚫 [MODERATION] Бан: chat_id={chat_id}, user_id={target.user_id}, by={message.from_user.id}")
    await message.answer(_with_reason(f"🚫 {target.label} забанен.", reason))


@member_router.message(Command("unban"))
async def unban_command(message: Message, command: CommandObject) -> None:
    prepared = await _prepare(message, command, "Использование: /unban <user_id или @username> или ответом на сообщение.")
    if prepared is None:
        return
    chat_id, target, _ = prepared

    try:
        await message.bot.unban_chat_member(chat_id, target.user_id, only_if_banned=True)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка разбана {target.user_id} в {chat_id}: {e}")
        await message.answer("❌ Не удалось разбанить пользователя.")
        return

    await message.answer(f"✅ {target.label} разбанен.")


# ═══════════════════════════════════════════════════════════════════════════
# /kick
# ═══════════════════════════════════════════════════════════════════════════
@member_router.message(Command("kick"))
async def kick_command(message: Message, command: CommandObject) -> None:
    prepared = await _prepare(message, command, "Использование: /kick <user_id или @username> [причина] или ответом на сообщение.")
    if prepared is None:
        return
    chat_id, target, rest = prepared
    reason = " ".join(rest).strip()

    try:
        # Кик = бан + разбан, после него можно снова вступить
        await message.bot.ban_chat_member(chat_id, target.user_id)
        await message.bot.unban_chat_member(chat_id, target.user_id)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка кика {target.user_id} в {chat_id}: {e}")
        await message.answer("❌ Не удалось исключить пользователя.")
        return

    await message.answer(_with_reason(f"👢 {target.label} исключён.", reason))


# ═══════════════════════════════════════════════════════════════════════════
# /mute и /unmute
# ═══════════════════════════════════════════════════════════════════════════
@member_router.message(Command("mute"))
async def mute_command(message: Message, command: CommandObject) -> None:
    prepared = await _prepare(message, command, "Использование: /mute <user_id или @username> [10m|2h|1d] [причина]")
    if prepared is None:
        return
    chat_id, target, rest = prepared

    duration, rest = parse_optional_duration(rest)
    if duration.error:
        await message.answer(duration.error)
        return
    reason = " ".join(rest).strip()
    until_date = int(time.time()) + duration.seconds if duration.seconds else None

    try:
        await message.bot.restrict_chat_member(
            chat_id, target.user_id, permissions=MUTE_PERMISSIONS, until_date=until_date,
        )
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка мута {target.user_id} в {chat_id}: {e}")
        await message.answer("❌ Не удалось замутить пользователя.")
        return

    duration_text = f" на {format_duration(duration.seconds)}" if duration.seconds else " бессрочно"
    await message.answer(_with_reason(f"🔇 {target.label} замучен{duration_text}.", reason))


@member_router.message(Command("unmute"))
async def unmute_command(message: Message, command: CommandObject) -> None:
    prepared = await _prepare(message, command, "Использование: /unmute <user_id или @username> или ответом на сообщение.")
    if prepared is None:
        return
    chat_id, target, _ = prepared

    try:
        await message.bot.restrict_chat_member(chat_id, target.user_id, permissions=UNMUTE_PERMISSIONS)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка размута {target.user_id} в {chat_id}: {e}")
        await message.answer("❌ Не удалось снять мут.")
        return

    await message.answer(f"🔊 {target.label} снова может писать.")
