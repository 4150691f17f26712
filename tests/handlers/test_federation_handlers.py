from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramBadRequest

from bot.handlers.federation import federation_commands
from bot.handlers.federation.federation_commands import (
    TEXT_NOT_A_HUB,
    fban_command,
    fedadd_command,
    fedinfo_command,
    fedlist_command,
    fedremove_command,
    fedset_command,
    fmute_command,
    funban_command,
    funmute_command,
)
from bot.services.federation import add_federation_chat, get_federation, get_federation_for_chat
from bot.services.moderation import MUTE_PERMISSIONS, UNMUTE_PERMISSIONS
from tests.helpers import FakePlatform, answered_text, make_bot, make_command, make_message, make_reply


HUB = -100


@pytest.fixture
def fed_platform(monkeypatch):
    """FakePlatform вместо AiogramChatPlatform в федеративных командах"""
    fake = FakePlatform()
    monkeypatch.setattr(federation_commands, "AiogramChatPlatform", lambda bot: fake)
    return fake


def _hub_message(text, chat_type="supergroup", **kwargs):
    bot = make_bot()
    bot.get_chat = AsyncMock(return_value=SimpleNamespace(type=chat_type))
    return make_message(text, chat_id=HUB, bot=bot, **kwargs)


async def _federation(db_session, *chat_ids):
    for chat_id in chat_ids:
        await add_federation_chat(db_session, HUB, chat_id)


# ═══════════════════════════════════════════════════════════════════════════════
# УПРАВЛЕНИЕ
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_fedadd_creates_federation(db_session):
    message = _hub_message("/fedadd -1")

    await fedadd_command(message, make_command("-1"), db_session)

    assert answered_text(message.answer) == "✅ Федерация обновлена. Групп: 1."
    assert (await get_federation(db_session, HUB)).linked_chats == [-1]


@pytest.mark.asyncio
async def test_fedadd_rejects_private_chat(db_session):
    message = _hub_message("/fedadd 55", chat_type="private")

    await fedadd_command(message, make_command("55"), db_session)

    assert answered_text(message.answer) == "❌ Добавлять можно только группы и супергруппы."
    assert await get_federation(db_session, HUB) is None


@pytest.mark.asyncio
async def test_fedadd_unknown_chat(db_session):
    message = _hub_message("/fedadd -9")
    message.bot.get_chat = AsyncMock(
        side_effect=TelegramBadRequest(method=SimpleNamespace(), message="chat not found"),
    )

    await fedadd_command(message, make_command("-9"), db_session)

    assert answered_text(message.answer) == "❌ Чат не найден."


@pytest.mark.asyncio
async def test_fedadd_needs_chat_id(db_session):
    message = _hub_message("/fedadd")

    await fedadd_command(message, make_command(None), db_session)

    assert answered_text(message.answer) == "Использование: /fedadd <chat_id>"


@pytest.mark.asyncio
async def test_fedremove_and_fedlist(db_session):
    await _federation(db_session, -1, -2)

    remove = _hub_message("/fedremove -1")
    await fedremove_command(remove, make_command("-1"), db_session)
    assert answered_text(remove.answer) == "✅ Федерация обновлена. Групп: 1."

    listing = _hub_message("/fedlist")
    await fedlist_command(listing, db_session)
    assert answered_text(listing.answer) == "🔗 Привязанные группы (1): -2"


@pytest.mark.asyncio
async def test_fedlist_empty(db_session):
    message = _hub_message("/fedlist")

    await fedlist_command(message, db_session)

    assert answered_text(message.answer) == "ℹ️ Привязанных групп нет."


@pytest.mark.asyncio
async def test_fedset_links_current_group(db_session):
    await _federation(db_session, -1)
    bot = make_bot()
    bot.get_chat = AsyncMock(return_value=SimpleNamespace(type="supergroup"))
    message = make_message("/fedset", chat_id=-5, bot=bot)

    await fedset_command(message, make_command(str(HUB)), db_session)

    assert answered_text(message.answer) == f"✅ Группа привязана к федерации {HUB}."
    assert (await get_federation_for_chat(db_session, -5)).hub_chat_id == HUB


@pytest.mark.asyncio
async def test_fedset_unknown_federation(db_session):
    message = make_message("/fedset", chat_id=-5)

    await fedset_command(message, make_command("-777"), db_session)

    assert answered_text(message.answer).startswith("❌ Федерация не найдена")


@pytest.mark.asyncio
async def test_fedinfo_from_member_chat(db_session):
    await _federation(db_session, -1, -2)
    message = make_message("/fedinfo", chat_id=-2)

    await fedinfo_command(message, db_session)

    assert answered_text(message.answer) == f"🌐 Федерация: {HUB} | Групп: 2 | Федеративных банов: 0"


# ═══════════════════════════════════════════════════════════════════════════════
# ФЕДЕРАТИВНЫЕ ДЕЙСТВИЯ
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_fban_outside_hub(db_session, fed_platform):
    message = _hub_message("/fban 555")

    await fban_command(message, make_command("555"), db_session)

    assert answered_text(message.answer) == TEXT_NOT_A_HUB
    assert fed_platform.calls == []


@pytest.mark.asyncio
async def test_fban_fans_out_to_linked_chats(db_session, fed_platform):
    await _federation(db_session, -1, -2, -3)
    fed_platform.fail_chats.add(-2)
    message = _hub_message("/fban реклама", reply_to=make_reply(user_id=555))

    await fban_command(message, make_command("реклама"), db_session)

    assert fed_platform.calls_of("ban_member") == [(-3, 555, None), (-2, 555, None), (-1, 555, None)]
    text = answered_text(message.answer)
    assert "Причина: реклама" in text
    assert "Успешно: 2 | Ошибок: 1" in text
    assert "Ошибки в чатах: -2" in text
    assert (await get_federation(db_session, HUB)).banned_users == {555}


@pytest.mark.asyncio
async def test_funban(db_session, fed_platform):
    await _federation(db_session, -1)

    ban = _hub_message("/fban 555")
    await fban_command(ban, make_command("555"), db_session)
    unban = _hub_message("/funban 555")
    await funban_command(unban, make_command("555"), db_session)

    assert fed_platform.calls_of("unban_member") == [(-1, 555, True)]
    assert (await get_federation(db_session, HUB)).banned_users == set()


@pytest.mark.asyncio
async def test_fmute_with_duration(db_session, fed_platform, monkeypatch):
    monkeypatch.setattr(federation_commands, "time", SimpleNamespace(time=lambda: 1_000))
    await _federation(db_session, -1)
    message = _hub_message("/fmute 555 10m")

    await fmute_command(message, make_command("555 10m"), db_session)

    assert fed_platform.calls_of("restrict_member") == [(-1, 555, MUTE_PERMISSIONS, 1_600)]
    assert "fmute на 10m" in answered_text(message.answer)


@pytest.mark.asyncio
async def test_fmute_invalid_duration(db_session, fed_platform):
    await _federation(db_session, -1)
    message = _hub_message("/fmute 555 0m")

    await fmute_command(message, make_command("555 0m"), db_session)

    assert fed_platform.calls == []
    assert answered_text(message.answer) == "❌ Длительность должна быть больше нуля."


@pytest.mark.asyncio
async def test_funmute(db_session, fed_platform):
    await _federation(db_session, -1, -2)
    message = _hub_message("/funmute 555")

    await funmute_command(message, make_command("555"), db_session)

    assert fed_platform.calls_of("restrict_member") == [
        (-2, 555, UNMUTE_PERMISSIONS, None),
        (-1, 555, UNMUTE_PERMISSIONS, None),
    ]
