# bot/handlers/group_settings_handler/config_commands.py
"""
Команды настройки группы.

В группе команды действуют на текущую группу (только для админов).
В личке - на группу, выбранную через /config <chat_id>; выбор
хранится в данных FSM пользователя.
"""

import logging
from typing import Optional, Tuple

from aiogram import Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from bot.services.group_policy import PolicySnapshot, SqlGroupPolicyStore, render_template
from bot.services.moderation import is_chat_admin, parse_int_arg, resolve_target_args, split_args
from bot.services.moderation.permissions import GROUP_CHAT_TYPES, TEXT_ADMINS_ONLY


logger = logging.getLogger(__name__)

config_router = Router(name="group_config")

# Ключ FSM data с выбранной в личке группой
CONFIG_CHAT_KEY = "config_chat_id"

TEXT_CHOOSE_CHAT = "ℹ️ Используйте /config <chat_id> в личке или /config в группе."

ON_VALUES = {"on", "вкл", "1", "true", "да"}
OFF_VALUES = {"off", "выкл", "0", "false", "нет"}


async def _chat_title(message: Message, chat_id: int) -> Optional[str]:
    try:
        chat = await message.bot.get_chat(chat_id)
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [CONFIG] Не удалось получить чат {chat_id}: {e}")
        return None
    return chat.title


async def _admin_target(message: Message, chat_id: int) -> Optional[Tuple[int, Optional[str]]]:
    if not await is_chat_admin(message.bot, chat_id, message.from_user.id):
        await message.answer(TEXT_ADMINS_ONLY)
        return None
    return chat_id, await _chat_title(message, chat_id)


async def resolve_config_target(message: Message, state: FSMContext) -> Optional[Tuple[int, Optional[str]]]:
    """
    Группа, к которой относится команда настройки.

    Returns:
        (chat_id, название) или None (ответ уже отправлен)
    """
    if message.from_user is None:
        return None

    if message.chat.type in GROUP_CHAT_TYPES:
        if not await is_chat_admin(message.bot, message.chat.id, message.from_user.id):
            await message.answer(TEXT_ADMINS_ONLY)
            return None
        return message.chat.id, message.chat.title

    if message.chat.type == "private":
        chat_id = (await state.get_data()).get(CONFIG_CHAT_KEY)
        if chat_id is None:
            await message.answer(TEXT_CHOOSE_CHAT)
            return None
        return await _admin_target(message, chat_id)

    await message.answer(TEXT_CHOOSE_CHAT)
    return None


def format_config_message(policy: PolicySnapshot, chat_title: Optional[str], private: bool) -> str:
    lines = [
        f"⚙️ Настройки {chat_title or policy.chat_id}",
        "",
        "Приветствие:",
        render_template(policy.welcome_message, chat_title),
        "",
        "Правила:",
        render_template(policy.rules_message, chat_title),
        "",
        f"Белый список: {len(policy.allowlist)} | Чёрный список: {len(policy.denylist)} | "
        f"Проверенных: {len(policy.verified_users)}",
        f"Удаление служебных сообщений: {'вкл' if policy.delete_service_messages else 'выкл'}",
        "Команды: /setwelcome <текст> | /setrules <текст> | /allow | /deny | /delserv on|off",
    ]
    if private:
        lines.append(f"Выбранная группа: {policy.chat_id}")
    else:
        lines.append(f"В личке: /config {policy.chat_id}")
    return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════════════
# /config
# ═══════════════════════════════════════════════════════════════════════════
@config_router.message(Command("config"))
async def config_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    policy_store: SqlGroupPolicyStore,
) -> None:
    args = split_args(command.args)

    if message.chat.type == "private" and args:
        chat_id = parse_int_arg(args[0])
        if chat_id is None:
            await message.answer("Использование: /config <chat_id>")
            return
        target = await _admin_target(message, chat_id)
        if target is None:
            return
        await state.update_data({CONFIG_CHAT_KEY: chat_id})
        logger.info(f"⚙️ [CONFIG] user_id={message.from_user.id} выбрал группу {chat_id}")
    else:
        target = await resolve_config_target(message, state)
        if target is None:
            return

    chat_id, chat_title = target
    policy = await policy_store.read(chat_id)
    await message.answer(format_config_message(policy, chat_title, private=message.chat.type == "private"))


# ═══════════════════════════════════════════════════════════════════════════
# ПРИВЕТСТВИЕ И ПРАВИЛА
# ═══════════════════════════════════════════════════════════════════════════
@config_router.message(Command("setwelcome"))
async def setwelcome_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    policy_store: SqlGroupPolicyStore,
) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    text = (command.args or "").strip()
    if not text:
        await message.answer("Использование: /setwelcome <текст> ({chat} - название группы)")
        return

    chat_id, chat_title = target
    updated = await policy_store.write(chat_id, {"welcome_message": text})
    await message.answer(f"✅ Приветствие обновлено:\n\n{render_template(updated.welcome_message, chat_title)}")


@config_router.message(Command("setrules"))
async def setrules_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    policy_store: SqlGroupPolicyStore,
) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    text = (command.args or "").strip()
    if not text:
        await message.answer("Использование: /setrules <текст> ({chat} - название группы)")
        return

    chat_id, chat_title = target
    updated = await policy_store.write(chat_id, {"rules_message": text})
    await message.answer(f"✅ Правила обновлены:\n\n{render_template(updated.rules_message, chat_title)}")


@config_router.message(Command("showwelcome"))
async def showwelcome_command(message: Message, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    chat_id, chat_title = target
    policy = await policy_store.read(chat_id)
    await message.answer(render_template(policy.welcome_message, chat_title))


@config_router.message(Command("showrules"))
async def showrules_command(message: Message, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    chat_id, chat_title = target
    policy = await policy_store.read(chat_id)
    await message.answer(render_template(policy.rules_message, chat_title))


@config_router.message(Command("delserv"))
async def delserv_command(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    policy_store: SqlGroupPolicyStore,
) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return

    args = split_args(command.args)
    value = args[0].lower() if args else ""
    if value not in ON_VALUES | OFF_VALUES:
        await message.answer("Использование: /delserv on|off")
        return

    chat_id, _ = target
    enabled = value in ON_VALUES
    await policy_store.write(chat_id, {"delete_service_messages": enabled})
    await message.answer(
        "✅ Служебные сообщения будут удаляться." if enabled else "✅ Служебные сообщения больше не удаляются."
    )


# ═══════════════════════════════════════════════════════════════════════════
# БЕЛЫЙ И ЧЁРНЫЙ СПИСКИ
# ═══════════════════════════════════════════════════════════════════════════
async def _list_target_user(message: Message, command: CommandObject, usage: str) -> Optional[int]:
    target, _ = await resolve_target_args(message.bot, message, split_args(command.args))
    if target is None:
        await message.answer(usage)
        return None
    return target.user_id


@config_router.message(Command("allow"))
async def allow_command(message: Message, command: CommandObject, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    user_id = await _list_target_user(message, command, "Использование: /allow <user_id или @username> или ответом на сообщение.")
    if user_id is None:
        return
    await policy_store.add_allow(target[0], user_id)
    policy = await policy_store.read(target[0])
    await message.answer(f"✅ Белый список обновлён ({len(policy.allowlist)}).")


@config_router.message(Command("deny"))
async def deny_command(message: Message, command: CommandObject, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    user_id = await _list_target_user(message, command, "Использование: /deny <user_id или @username> или ответом на сообщение.")
    if user_id is None:
        return
    await policy_store.add_deny(target[0], user_id)
    policy = await policy_store.read(target[0])
    await message.answer(f"✅ Чёрный список обновлён ({len(policy.denylist)}).")


@config_router.message(Command("unallow"))
async def unallow_command(message: Message, command: CommandObject, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    user_id = await _list_target_user(message, command, "Использование: /unallow <user_id или @username> или ответом на сообщение.")
    if user_id is None:
        return
    await policy_store.remove_allow(target[0], user_id)
    policy = await policy_store.read(target[0])
    await message.answer(f"✅ Белый список обновлён ({len(policy.allowlist)}).")


@config_router.message(Command("undeny"))
async def undeny_command(message: Message, command: CommandObject, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    user_id = await _list_target_user(message, command, "Использование: /undeny <user_id или @username> или ответом на сообщение.")
    if user_id is None:
        return
    await policy_store.remove_deny(target[0], user_id)
    policy = await policy_store.read(target[0])
    await message.answer(f"✅ Чёрный список обновлён ({len(policy.denylist)}).")


@config_router.message(Command("listallow"))
async def listallow_command(message: Message, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    policy = await policy_store.read(target[0])
    if not policy.allowlist:
        await message.answer("ℹ️ Белый список пуст.")
        return
    ids = ", ".join(str(user_id) for user_id in sorted(policy.allowlist))
    await message.answer(f"📋 Белый список ({len(policy.allowlist)}): {ids}")


@config_router.message(Command("listdeny"))
async def listdeny_command(message: Message, state: FSMContext, policy_store: SqlGroupPolicyStore) -> None:
    target = await resolve_config_target(message, state)
    if target is None:
        return
    policy = await policy_store.read(target[0])
    if not policy.denylist:
        await message.answer("ℹ️ Чёрный список пуст.")
        return
    ids = ", ".join(str(user_id) for user_id in sorted(policy.denylist))
    await message.answer(f"📋 Чёрный список ({len(policy.denylist)}): {ids}")
