import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from bot import config
from bot.config import ConfigError, GateSettings, MAX_ATTEMPTS_CAP
from bot.middleware.db_session import DbSessionMiddleware
from bot.middleware.gate_services import GateServicesMiddleware
from bot.middleware.structured_logging import StructuredLoggingMiddleware, describe_update, format_update_log
from bot.utils import logger as tg_logger


def _update(**kwargs):
    values = dict(
        update_id=1,
        message=None,
        callback_query=None,
        chat_join_request=None,
        chat_member=None,
        event_type="unknown",
    )
    values.update(kwargs)
    return SimpleNamespace(**values)


def _join_update():
    return _update(
        event_type="chat_join_request",
        chat_join_request=SimpleNamespace(
            from_user=SimpleNamespace(id=5, username="guest", first_name="G"),
            chat=SimpleNamespace(id=-1, type="supergroup", title="Test chat"),
        ),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# MIDDLEWARE
# ═══════════════════════════════════════════════════════════════════════════════

def test_describe_join_request():
    data = describe_update(_join_update())

    assert data["type"] == "chat_join_request"
    assert data["from"]["id"] == 5
    text = format_update_log(_join_update(), data)
    assert "CHAT_JOIN_REQUEST" in text
    assert "title: Test chat" in text


def test_describe_unknown_update():
    assert describe_update(_update(event_type="poll")) == {"type": "poll"}


@pytest.mark.asyncio
async def test_structured_logging_reraises_handler_errors():
    middleware = StructuredLoggingMiddleware()
    handler = AsyncMock(side_effect=ValueError("broken"))

    with pytest.raises(ValueError):
        await middleware(handler, _join_update(), {})


@pytest.mark.asyncio
async def test_structured_logging_returns_handler_result():
    middleware = StructuredLoggingMiddleware()

    assert await middleware(AsyncMock(return_value="ok"), _join_update(), {}) == "ok"


@pytest.mark.asyncio
async def test_gate_services_injected(admission, policy_store, generator, sweeper):
    middleware = GateServicesMiddleware(admission, policy_store, generator, sweeper)
    data = {}

    async def handler(event, handler_data):
        return handler_data

    result = await middleware(handler, object(), data)

    assert result["admission"] is admission
    assert result["policy_store"] is policy_store
    assert result["generator"] is generator
    assert result["sweeper"] is sweeper


@pytest.mark.asyncio
async def test_db_session_injected(sessionmaker):
    middleware = DbSessionMiddleware(sessionmaker)
    seen = {}

    async def handler(event, data):
        seen["session"] = data["session"]
        return "done"

    assert await middleware(handler, object(), {}) == "done"
    assert seen["session"] is not None


# ═══════════════════════════════════════════════════════════════════════════════
# КОНФИГ
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("max_attempts, effective", [(1, 1), (2, 2), (10, MAX_ATTEMPTS_CAP), (0, 1)])
def test_effective_max_attempts(max_attempts, effective):
    assert GateSettings(max_attempts=max_attempts).effective_max_attempts == effective


@pytest.mark.parametrize("option_count", [1, 5])
def test_option_count_is_validated(option_count):
    with pytest.raises(ConfigError):
        GateSettings(option_count=option_count)


def test_int_env(monkeypatch):
    monkeypatch.setenv("JOIN_GATE_TEST_VALUE", "42")
    assert config._int_env("JOIN_GATE_TEST_VALUE", 1) == 42

    monkeypatch.setenv("JOIN_GATE_TEST_VALUE", "")
    assert config._int_env("JOIN_GATE_TEST_VALUE", 7) == 7

    for bad in ("abc", "0", "-3"):
        monkeypatch.setenv("JOIN_GATE_TEST_VALUE", bad)
        with pytest.raises(ConfigError):
            config._int_env("JOIN_GATE_TEST_VALUE", 1)


def test_only_used_settings_are_exported():
    assert not hasattr(config, "ADMIN_IDS")
    assert not hasattr(config, "DEBUG")
    assert config.LOG_LEVEL


def test_db_url_is_masked():
    assert config._mask_db_url("postgresql+asyncpg://user:pass@db:5432/bot") == "postgresql+asyncpg://***@db:5432/bot"
    assert config._mask_db_url(None) == "NOT SET"


# ═══════════════════════════════════════════════════════════════════════════════
# ЛОГИ В КАНАЛ
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_channel_log_skipped_without_channel(monkeypatch):
    send = AsyncMock()
    monkeypatch.setattr(tg_logger, "LOG_CHANNEL_ID", None)
    monkeypatch.setattr(tg_logger, "send_formatted_log", send)

    tg_logger.log_captcha_sent("@guest", 5, "Test chat", -1001)

    send.assert_not_called()


@pytest.mark.asyncio
async def test_channel_log_scheduled(monkeypatch):
    send = AsyncMock()
    monkeypatch.setattr(tg_logger, "LOG_CHANNEL_ID", "-100500")
    monkeypatch.setattr(tg_logger, "send_formatted_log", send)

    tg_logger.log_captcha_failed("<guest>", 5, "Test chat", -1001234, reason="Время истекло")
    await asyncio.sleep(0)

    send.assert_awaited_once()
    text = send.await_args.args[0]
    assert "#КАПЧА_НЕ_УДАЛАСЬ" in text
    assert "&lt;guest&gt;" in text
    assert "Время истекло" in text
