from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramForbiddenError

from bot.services.moderation import MUTE_PERMISSIONS
from bot.services.platform import AiogramChatPlatform


@pytest.mark.asyncio
async def test_successful_call_returns_value():
    bot = AsyncMock()
    bot.send_message = AsyncMock(return_value=SimpleNamespace(message_id=5))
    platform = AiogramChatPlatform(bot)

    result = await platform.send_message(100, "hi")

    assert result.ok
    assert result.value.message_id == 5
    bot.send_message.assert_awaited_once_with(chat_id=100, text="hi", reply_markup=None)


@pytest.mark.asyncio
async def test_api_error_becomes_failed_result():
    bot = AsyncMock()
    bot.approve_chat_join_request = AsyncMock(
        side_effect=TelegramForbiddenError(method=SimpleNamespace(), message="bot was kicked"),
    )
    platform = AiogramChatPlatform(bot)

    result = await platform.approve_join(-1, 100)

    assert not result.ok
    assert "bot was kicked" in result.error


@pytest.mark.asyncio
async def test_other_errors_propagate():
    bot = AsyncMock()
    bot.decline_chat_join_request = AsyncMock(side_effect=RuntimeError("boom"))
    platform = AiogramChatPlatform(bot)

    with pytest.raises(RuntimeError):
        await platform.decline_join(-1, 100)


@pytest.mark.asyncio
async def test_restrict_passes_until_date():
    bot = AsyncMock()
    platform = AiogramChatPlatform(bot)

    await platform.restrict_member(-1, 100, MUTE_PERMISSIONS, until=1234)

    bot.restrict_chat_member.assert_awaited_once_with(
        chat_id=-1, user_id=100, permissions=MUTE_PERMISSIONS, until_date=1234,
    )


@pytest.mark.asyncio
async def test_chat_title():
    bot = AsyncMock()
    bot.get_chat = AsyncMock(return_value=SimpleNamespace(title="Кофе"))

    result = await AiogramChatPlatform(bot).get_chat_title(-1)

    assert result.ok
    assert result.value == "Кофе"
