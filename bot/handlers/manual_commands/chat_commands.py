# ═══════════════════════════════════════════════════════════════════════════
# ХЕНДЛЕРЫ КОМАНД ЧАТА: /purge /pin /unpin /lock /unlock /help
# ═══════════════════════════════════════════════════════════════════════════

import logging

from aiogram import Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from bot.services.moderation import (
    LOCK_PERMISSIONS,
    UNLOCK_PERMISSIONS,
    ensure_bot_permissions,
    ensure_group_admin,
    parse_int_arg,
    split_args,
)

chat_router = Router(name="chat_commands")

logger = logging.getLogger(__name__)

# Максимум сообщений за один /purge
MAX_PURGE = 100

HELP_TEXT = "\n".join([
    "ℹ️ Справка",
    "",
    "Модерация (админы):",
    "/ban /unban /kick",
    "/mute /unmute [10m|2h|1d]",
    "/warn /unwarn /warnings",
    "/purge <количество>",
    "/pin /unpin (ответом)",
    "/lock /unlock",
    "",
    "Федерация:",
    "/fedset <hub_chat_id>",
    "/fedadd <chat_id> | /fedremove <chat_id> | /fedlist",
    "/fban /funban /fmute /funmute",
    "/fedinfo",
    "",
    "Настройки:",
    "/config",
    "/setwelcome /setrules /showwelcome /showrules",
    "/allow /deny /unallow /undeny /listallow /listdeny",
    "/delserv on|off",
    "",
    "Тренировочная капча: /test",
])


@chat_router.message(Command("purge"))
async def purge_command(message: Message, command: CommandObject) -> None:
    """Удаляет N сообщений вверх от команды (включая её саму)"""
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return
    if not await ensure_bot_permissions(message, chat_id, ("can_delete_messages",)):
        return

    args = split_args(command.args)
    requested = parse_int_arg(args[0]) if args else None
    if requested is None or requested <= 0:
        await message.answer("Использование: /purge <количество>")
        return

    count = min(MAX_PURGE, requested)
    deleted = 0
    for offset in range(count):
        message_id = message.message_id - offset
        if message_id <= 0:
            break
        try:
            await message.bot.delete_message(chat_id, message_id)
            deleted += 1
        except TelegramAPIError as e:
            # Сообщения может уже не быть
            logger.debug(f"[PURGE] Не удалено сообщение {message_id}: {e}")

    logger.info(f"🧹 [PURGE] chat_id={chat_id}: удалено {deleted} из {count}")
    suffix = f" (максимум {MAX_PURGE})" if requested > MAX_PURGE else ""
    await message.answer(f"🧹 Удалено сообщений: {deleted}{suffix}.")


@chat_router.message(Command("pin"))
async def pin_command(message: Message) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return
    if not await ensure_bot_permissions(message, chat_id, ("can_pin_messages",)):
        return

    if message.reply_to_message is None:
        await message.answer("Использование: /pin ответом на сообщение.")
        return

    try:
        await message.bot.pin_chat_message(chat_id, message.reply_to_message.message_id)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка закрепления в {chat_id}: {e}")
        await message.answer("❌ Не удалось закрепить сообщение.")
        return
    await message.answer("📌 Сообщение закреплено.")


@chat_router.message(Command("unpin"))
async def unpin_command(message: Message) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return
    if not await ensure_bot_permissions(message, chat_id, ("can_pin_messages",)):
        return

    if message.reply_to_message is None:
        await message.answer("Использование: /unpin ответом на закреплённое сообщение.")
        return

    try:
        await message.bot.unpin_chat_message(chat_id, message_id=message.reply_to_message.message_id)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка открепления в {chat_id}: {e}")
        await message.answer("❌ Не удалось открепить сообщение.")
        return
    await message.answer("✅ Сообщение откреплено.")


@chat_router.message(Command("lock"))
async def lock_command(message: Message) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return
    if not await ensure_bot_permissions(message, chat_id, ("can_manage_chat",)):
        return

    try:
        await message.bot.set_chat_permissions(chat_id, LOCK_PERMISSIONS)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка блокировки чата {chat_id}: {e}")
        await message.answer("❌ Не удалось закрыть чат.")
        return
    await message.answer("🔒 Чат закрыт: писать могут только админы.")


@chat_router.message(Command("unlock"))
async def unlock_command(message: Message) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return
    if not await ensure_bot_permissions(message, chat_id, ("can_manage_chat",)):
        return

    try:
        await message.bot.set_chat_permissions(chat_id, UNLOCK_PERMISSIONS)
    except TelegramAPIError as e:
        logger.error(f"❌ [MODERATION] Ошибка разблокировки чата {chat_id}: {e}")
        await message.answer("❌ Не удалось открыть чат.")
        return
    await message.answer("🔓 Чат снова открыт.")


@chat_router.message(Command("help"))
async def help_command(message: Message) -> None:
    await message.answer(HELP_TEXT)
