from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

from bot.handlers.group_settings_handler.config_commands import (
    CONFIG_CHAT_KEY,
    TEXT_CHOOSE_CHAT,
    allow_command,
    config_command,
    delserv_command,
    deny_command,
    listdeny_command,
    setrules_command,
    setwelcome_command,
    showwelcome_command,
    unallow_command,
)
from bot.handlers.group_settings_handler.service_messages import delete_service_message, is_service_message
from bot.services.moderation.permissions import TEXT_ADMINS_ONLY
from tests.helpers import answered_text, make_bot, make_command, make_message, make_reply


CHAT_ID = -1001
ADMIN_ID = 100


def _state(chat_id=ADMIN_ID):
    return FSMContext(
        storage=MemoryStorage(),
        key=StorageKey(bot_id=424242, chat_id=chat_id, user_id=ADMIN_ID),
    )


def _private_message(text):
    bot = make_bot()
    bot.get_chat = AsyncMock(return_value=SimpleNamespace(title="Test chat"))
    return make_message(text, chat_id=ADMIN_ID, chat_type="private", title=None, bot=bot)


# ═══════════════════════════════════════════════════════════════════════════════
# /config
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_config_in_group(policy_store):
    message = make_message("/config")

    await config_command(message, make_command(None), _state(CHAT_ID), policy_store)

    text = answered_text(message.answer)
    assert text.startswith("⚙️ Настройки Test chat")
    assert "Добро пожаловать в Test chat!" in text
    assert f"В личке: /config {CHAT_ID}" in text


@pytest.mark.asyncio
async def test_config_in_group_by_member(policy_store):
    message = make_message("/config", bot=make_bot(member=SimpleNamespace(status="member")))

    await config_command(message, make_command(None), _state(CHAT_ID), policy_store)

    assert answered_text(message.answer) == TEXT_ADMINS_ONLY


@pytest.mark.asyncio
async def test_private_config_remembers_chosen_group(policy_store):
    state = _state()
    choose = _private_message(f"/config {CHAT_ID}")

    await config_command(choose, make_command(str(CHAT_ID)), state, policy_store)

    assert (await state.get_data())[CONFIG_CHAT_KEY] == CHAT_ID
    assert f"Выбранная группа: {CHAT_ID}" in answered_text(choose.answer)

    welcome = _private_message("/setwelcome Привет, {chat}")
    await setwelcome_command(welcome, make_command("Привет, {chat}"), state, policy_store)
    assert answered_text(welcome.answer).endswith("Привет, Test chat")
    assert (await policy_store.read(CHAT_ID)).welcome_message == "Привет, {chat}"


@pytest.mark.asyncio
async def test_private_settings_without_chosen_group(policy_store):
    message = _private_message("/showwelcome")

    await showwelcome_command(message, _state(), policy_store)

    assert answered_text(message.answer) == TEXT_CHOOSE_CHAT


@pytest.mark.asyncio
async def test_private_config_rejects_non_admin(policy_store):
    state = _state()
    message = _private_message(f"/config {CHAT_ID}")
    message.bot.get_chat_member = AsyncMock(return_value=SimpleNamespace(status="left"))

    await config_command(message, make_command(str(CHAT_ID)), state, policy_store)

    assert answered_text(message.answer) == TEXT_ADMINS_ONLY
    assert await state.get_data() == {}


# ═══════════════════════════════════════════════════════════════════════════════
# ТЕКСТЫ И НАСТРОЙКИ
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_setrules_requires_text(policy_store):
    message = make_message("/setrules")

    await setrules_command(message, make_command("   "), _state(CHAT_ID), policy_store)

    assert answered_text(message.answer).startswith("Использование: /setrules")


@pytest.mark.asyncio
async def test_setrules_and_showwelcome_defaults(policy_store):
    rules = make_message("/setrules Без рекламы в {chatTitle}")
    await setrules_command(rules, make_command("Без рекламы в {chatTitle}"), _state(CHAT_ID), policy_store)
    assert answered_text(rules.answer).endswith("Без рекламы в Test chat")

    welcome = make_message("/showwelcome")
    await showwelcome_command(welcome, _state(CHAT_ID), policy_store)
    assert answered_text(welcome.answer) == "👋 Добро пожаловать в Test chat!"


@pytest.mark.asyncio
@pytest.mark.parametrize("value, enabled", [("on", True), ("ВКЛ", True), ("off", False)])
async def test_delserv(policy_store, value, enabled):
    message = make_message(f"/delserv {value}")

    await delserv_command(message, make_command(value), _state(CHAT_ID), policy_store)

    assert (await policy_store.read(CHAT_ID)).delete_service_messages is enabled


@pytest.mark.asyncio
async def test_delserv_bad_value(policy_store):
    message = make_message("/delserv maybe")

    await delserv_command(message, make_command("maybe"), _state(CHAT_ID), policy_store)

    assert answered_text(message.answer) == "Использование: /delserv on|off"


# ═══════════════════════════════════════════════════════════════════════════════
# СПИСКИ
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_allow_and_deny_lists(policy_store):
    allow = make_message("/allow", reply_to=make_reply(user_id=555))
    await allow_command(allow, make_command(None), _state(CHAT_ID), policy_store)
    assert answered_text(allow.answer) == "✅ Белый список обновлён (1)."

    deny = make_message("/deny 555")
    await deny_command(deny, make_command("555"), _state(CHAT_ID), policy_store)
    assert answered_text(deny.answer) == "✅ Чёрный список обновлён (1)."

    snapshot = await policy_store.read(CHAT_ID)
    assert snapshot.allowlist == set()
    assert snapshot.denylist == {555}

    listing = make_message("/listdeny")
    await listdeny_command(listing, _state(CHAT_ID), policy_store)
    assert answered_text(listing.answer) == "📋 Чёрный список (1): 555"


@pytest.mark.asyncio
async def test_unallow_without_target(policy_store):
    message = make_message("/unallow")

    await unallow_command(message, make_command(None), _state(CHAT_ID), policy_store)

    assert answered_text(message.answer).startswith("Использование: /unallow")


# ═══════════════════════════════════════════════════════════════════════════════
# СЛУЖЕБНЫЕ СООБЩЕНИЯ
# ═══════════════════════════════════════════════════════════════════════════════

def _service_message():
    message = make_message("")
    message.new_chat_members = [SimpleNamespace(id=5)]
    return message


def test_is_service_message():
    assert is_service_message(_service_message())
    assert not is_service_message(make_message("привет"))


@pytest.mark.asyncio
async def test_service_message_kept_by_default(policy_store):
    message = _service_message()

    await delete_service_message(message, policy_store)

    message.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_service_message_deleted_when_enabled(policy_store):
    await policy_store.write(CHAT_ID, {"delete_service_messages": True})
    message = _service_message()

    await delete_service_message(message, policy_store)

    message.delete.assert_awaited_once()
