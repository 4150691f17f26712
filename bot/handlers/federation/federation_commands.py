# ═══════════════════════════════════════════════════════════════════════════
# ХЕНДЛЕРЫ КОМАНД ФЕДЕРАЦИИ
# ═══════════════════════════════════════════════════════════════════════════
# Управление (админы):
#   /fedadd <chat_id>      - в хаб-чате: привязать группу (создаёт федерацию)
#   /fedremove <chat_id>   - в хаб-чате: отвязать группу
#   /fedlist               - в хаб-чате: список групп
#   /fedset <hub_chat_id>  - в группе: привязать её к существующей федерации
#   /fedinfo               - сведения о федерации (хаб или привязка)
#
# Действия по всем группам федерации (в хаб-чате):
#   /fban /funban /fmute [10m|2h|1d] /funmute
# ═══════════════════════════════════════════════════════════════════════════

import logging
import time
from typing import Optional

from aiogram import Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from bot.services.federation import (
    FederationInfo,
    add_federation_ban,
    add_federation_chat,
    apply_to_all,
    build_federation_summary,
    get_federation,
    get_federation_for_chat,
    remove_federation_ban,
    remove_federation_chat,
)
from bot.services.moderation import (
    MUTE_PERMISSIONS,
    UNMUTE_PERMISSIONS,
    ensure_bot_permissions,
    ensure_group_admin,
    format_duration,
    parse_int_arg,
    parse_optional_duration,
    resolve_target_args,
    split_args,
)
from bot.services.platform import AiogramChatPlatform
from bot.utils.logger import log_federation_action

federation_router = Router(name="federation_commands")

logger = logging.getLogger(__name__)

FED_CHAT_TYPES = {"group", "supergroup"}

TEXT_NOT_A_HUB = "❌ Этот чат не является федерацией. Используйте /fedadd в хаб-чате."


async def _chat_type(message: Message, chat_id: int) -> Optional[str]:
    try:
        chat = await message.bot.get_chat(chat_id)
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [FEDERATION] Чат {chat_id} не найден: {e}")
        return None
    return chat.type


def _info_text(record: FederationInfo) -> str:
    return (
        f"🌐 Федерация: {record.hub_chat_id} | Групп: {len(record.linked_chats)} | "
        f"Федеративных банов: {len(record.banned_users)}"
    )


async def _require_hub(message: Message, session: AsyncSession) -> Optional[FederationInfo]:
    """Админ в хаб-чате с правами бота на ограничение участников"""
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return None
    if not await ensure_bot_permissions(message, chat_id, ("can_restrict_members",)):
        return None

    record = await get_federation(session, chat_id)
    if record is None:
        await message.answer(TEXT_NOT_A_HUB)
    return record


# ═══════════════════════════════════════════════════════════════════════════
# УПРАВЛЕНИЕ ФЕДЕРАЦИЕЙ
# ═══════════════════════════════════════════════════════════════════════════
@federation_router.message(Command("fedset"))
async def fedset_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return

    args = split_args(command.args)
    hub_chat_id = parse_int_arg(args[0]) if args else None
    if hub_chat_id is None:
        await message.answer("Использование: /fedset <hub_chat_id>")
        return

    if await get_federation(session, hub_chat_id) is None:
        await message.answer("❌ Федерация не найдена. Создайте её командой /fedadd в хаб-чате.")
        return

    hub_type = await _chat_type(message, hub_chat_id)
    if hub_type is None:
        await message.answer("❌ Хаб-чат не найден.")
        return
    if hub_type not in FED_CHAT_TYPES:
        await message.answer("❌ Хаб федерации должен быть группой или супергруппой.")
        return

    await add_federation_chat(session, hub_chat_id, chat_id)
    await message.answer(f"✅ Группа привязана к федерации {hub_chat_id}.")


@federation_router.message(Command("fedadd"))
async def fedadd_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    hub_chat_id = await ensure_group_admin(message)
    if hub_chat_id is None:
        return

    args = split_args(command.args)
    chat_id = parse_int_arg(args[0]) if args else None
    if chat_id is None:
        await message.answer("Использование: /fedadd <chat_id>")
        return

    chat_type = await _chat_type(message, chat_id)
    if chat_type is None:
        await message.answer("❌ Чат не найден.")
        return
    if chat_type not in FED_CHAT_TYPES:
        await message.answer("❌ Добавлять можно только группы и супергруппы.")
        return

    updated = await add_federation_chat(session, hub_chat_id, chat_id)
    await message.answer(f"✅ Федерация обновлена. Групп: {len(updated.linked_chats)}.")


@federation_router.message(Command("fedremove"))
async def fedremove_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    hub_chat_id = await ensure_group_admin(message)
    if hub_chat_id is None:
        return

    args = split_args(command.args)
    chat_id = parse_int_arg(args[0]) if args else None
    if chat_id is None:
        await message.answer("Использование: /fedremove <chat_id>")
        return

    updated = await remove_federation_chat(session, hub_chat_id, chat_id)
    await message.answer(f"✅ Федерация обновлена. Групп: {len(updated.linked_chats)}.")


@federation_router.message(Command("fedlist"))
async def fedlist_command(message: Message, session: AsyncSession) -> None:
    hub_chat_id = await ensure_group_admin(message)
    if hub_chat_id is None:
        return

    record = await get_federation(session, hub_chat_id)
    if record is None or not record.linked_chats:
        await message.answer("ℹ️ Привязанных групп нет.")
        return

    chats = ", ".join(str(chat_id) for chat_id in record.linked_chats)
    await message.answer(f"🔗 Привязанные группы ({len(record.linked_chats)}): {chats}")


@federation_router.message(Command("fedinfo"))
async def fedinfo_command(message: Message, session: AsyncSession) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return

    record = await get_federation_for_chat(session, chat_id)
    if record is None:
        await message.answer("ℹ️ Эта группа не входит ни в одну федерацию.")
        return
    await message.answer(_info_text(record))


# ═══════════════════════════════════════════════════════════════════════════
# ФЕДЕРАТИВНЫЕ ДЕЙСТВИЯ
# ═══════════════════════════════════════════════════════════════════════════
@federation_router.message(Command("fban"))
async def fban_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    record = await _require_hub(message, session)
    if record is None:
        return

    target, rest = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer("Использование: /fban <user_id или @username> [причина]")
        return
    reason = " ".join(rest).strip() or None

    updated = await add_federation_ban(session, record.hub_chat_id, target.user_id)
    platform = AiogramChatPlatform(message.bot)
    result = await apply_to_all(
        updated.linked_chats,
        lambda chat_id: platform.ban_member(chat_id, target.user_id),
    )

    log_federation_action("fban", target.user_id, record.hub_chat_id, result.success_count, result.failed_count)
    await message.answer(build_federation_summary("fban", target.label, result, reason))


@federation_router.message(Command("funban"))
async def funban_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    record = await _require_hub(message, session)
    if record is None:
        return

    target, _ = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer("Использование: /funban <user_id или @username>")
        return

    updated = await remove_federation_ban(session, record.hub_chat_id, target.user_id)
    platform = AiogramChatPlatform(message.bot)
    result = await apply_to_all(
        updated.linked_chats,
        lambda chat_id: platform.unban_member(chat_id, target.user_id, only_if_banned=True),
    )

    log_federation_action("funban", target.user_id, record.hub_chat_id, result.success_count, result.failed_count)
    await message.answer(build_federation_summary("funban", target.label, result))


@federation_router.message(Command("fmute"))
async def fmute_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    record = await _require_hub(message, session)
    if record is None:
        return

    target, rest = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer("Использование: /fmute <user_id или @username> [10m|2h|1d] [причина]")
        return

    duration, rest = parse_optional_duration(rest)
    if duration.error:
        await message.answer(duration.error)
        return
    reason = " ".join(rest).strip() or None
    until_date = int(time.time()) + duration.seconds if duration.seconds else None

    platform = AiogramChatPlatform(message.bot)
    result = await apply_to_all(
        record.linked_chats,
        lambda chat_id: platform.restrict_member(chat_id, target.user_id, MUTE_PERMISSIONS, until=until_date),
    )

    duration_text = f" на {format_duration(duration.seconds)}" if duration.seconds else " бессрочно"
    log_federation_action("fmute", target.user_id, record.hub_chat_id, result.success_count, result.failed_count)
    await message.answer(build_federation_summary(f"fmute{duration_text}", target.label, result, reason))


@federation_router.message(Command("funmute"))
async def funmute_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    record = await _require_hub(message, session)
    if record is None:
        return

    target, _ = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer("Использование: /funmute <user_id или @username>")
        return

    platform = AiogramChatPlatform(message.bot)
    result = await apply_to_all(
        record.linked_chats,
        lambda chat_id: platform.restrict_member(chat_id, target.user_id, UNMUTE_PERMISSIONS),
    )

    log_federation_action("funmute", target.user_id, record.hub_chat_id, result.success_count, result.failed_count)
    await message.answer(build_federation_summary("funmute", target.label, result))
