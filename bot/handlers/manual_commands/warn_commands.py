# ═══════════════════════════════════════════════════════════════════════════
# ХЕНДЛЕРЫ КОМАНД /warn /unwarn /warnings
# ═══════════════════════════════════════════════════════════════════════════

import logging

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from bot.services.moderation import (
    add_warning,
    ensure_group_admin,
    get_warning,
    remove_warning,
    resolve_target_args,
    split_args,
)

warn_router = Router(name="warn_commands")

logger = logging.getLogger(__name__)


@warn_router.message(Command("warn"))
async def warn_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return

    target, rest = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer("Использование: /warn <user_id или @username> [причина]")
        return

    reason = " ".join(rest).strip()
    count = await add_warning(session, chat_id, target.user_id, reason, updated_by=message.from_user.id)
    text = f"⚠️ {target.label} получил предупреждение. Всего: {count}."
    if reason:
        text += f" Причина: {reason}"
    await message.answer(text)


@warn_router.message(Command("unwarn"))
async def unwarn_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return

    target, _ = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer("Использование: /unwarn <user_id или @username> или ответом на сообщение.")
        return

    remaining = await remove_warning(session, chat_id, target.user_id, updated_by=message.from_user.id)
    if remaining == 0:
        await message.answer(f"✅ У {target.label} больше нет предупреждений.")
        return
    await message.answer(f"✅ У {target.label} осталось предупреждений: {remaining}.")


@warn_router.message(Command("warnings"))
async def warnings_command(message: Message, command: CommandObject, session: AsyncSession) -> None:
    chat_id = await ensure_group_admin(message)
    if chat_id is None:
        return

    target, _ = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer("Использование: /warnings <user_id или @username> или ответом на сообщение.")
        return

    warning = await get_warning(session, chat_id, target.user_id)
    if warning is None or warning.count == 0:
        await message.answer(f"ℹ️ У {target.label} нет предупреждений.")
        return

    text = f"ℹ️ {target.label}: предупреждений {warning.count}."
    if warning.last_reason:
        text += f" Последняя причина: {warning.last_reason}"
    await message.answer(text)
