import pytest

from bot.services.group_policy import render_template
from bot.services.group_policy.policy_service import (
    DEFAULT_RULES_MESSAGE,
    DEFAULT_WELCOME_MESSAGE,
)


CHAT_ID = -1001


@pytest.mark.asyncio
async def test_unconfigured_group_has_defaults(policy_store):
    snapshot = await policy_store.read(CHAT_ID)

    assert snapshot.welcome_message == DEFAULT_WELCOME_MESSAGE
    assert snapshot.rules_message == DEFAULT_RULES_MESSAGE
    assert snapshot.delete_service_messages is False
    assert snapshot.allowlist == set()
    assert snapshot.denylist == set()


@pytest.mark.asyncio
async def test_write_updates_fields(policy_store):
    await policy_store.write(CHAT_ID, {"welcome_message": "Привет в {chatTitle}"})
    snapshot = await policy_store.write(CHAT_ID, {"delete_service_messages": True})

    assert snapshot.welcome_message == "Привет в {chatTitle}"
    assert snapshot.delete_service_messages is True
    assert (await policy_store.read(-2)).delete_service_messages is False


@pytest.mark.asyncio
async def test_write_rejects_unknown_fields(policy_store):
    with pytest.raises(ValueError):
        await policy_store.write(CHAT_ID, {"owner_id": 1})


@pytest.mark.asyncio
async def test_lists_are_mutually_exclusive(policy_store):
    assert await policy_store.add_allow(CHAT_ID, 7) is True
    assert await policy_store.add_allow(CHAT_ID, 7) is False

    assert await policy_store.add_deny(CHAT_ID, 7) is True

    snapshot = await policy_store.read(CHAT_ID)
    assert snapshot.denylist == {7}
    assert snapshot.allowlist == set()
    assert snapshot.is_denied(7)
    assert not snapshot.is_trusted(7)


@pytest.mark.asyncio
async def test_remove_from_lists(policy_store):
    await policy_store.add_deny(CHAT_ID, 7)

    assert await policy_store.remove_allow(CHAT_ID, 7) is False
    assert await policy_store.remove_deny(CHAT_ID, 7) is True
    assert not (await policy_store.read(CHAT_ID)).is_denied(7)


@pytest.mark.asyncio
async def test_verified_users_are_pruned_on_read(policy_store, clock, settings):
    await policy_store.record_verified(CHAT_ID, 1, clock.now - settings.verified_ttl_seconds - 10)
    await policy_store.record_verified(CHAT_ID, 2, clock.now - 60)

    snapshot = await policy_store.read(CHAT_ID)

    assert set(snapshot.verified_users) == {2}
    assert snapshot.verified_users[2] == pytest.approx(clock.now - 60)
    assert snapshot.is_trusted(2)


@pytest.mark.asyncio
async def test_record_verified_refreshes_timestamp(policy_store, clock, settings):
    await policy_store.record_verified(CHAT_ID, 1, clock.now)
    clock.advance(settings.verified_ttl_seconds - 10)
    await policy_store.record_verified(CHAT_ID, 1)
    clock.advance(20)

    assert (await policy_store.read(CHAT_ID)).is_trusted(1)


@pytest.mark.parametrize(
    "template, title, expected",
    [
        ("Добро пожаловать в {chat}!", "Кофе", "Добро пожаловать в Кофе!"),
        ("{chatTitle}: правила", "Кофе", "Кофе: правила"),
        ("Привет в {chat}", None, "Привет в эту группу"),
        (None, "Кофе", ""),
    ],
)
def test_render_template(template, title, expected):
    assert render_template(template, title) == expected
