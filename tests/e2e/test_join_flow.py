"""
Сценарии полного потока заявки: контроллер, хранилище в Redis
(fakeredis), политика в SQLite и записывающая заглушка Telegram.
"""

import asyncio

import pytest

from bot.services.captcha import (
    AdmissionController,
    Decision,
    RedisChallengeStore,
    Sweeper,
)


pytestmark = pytest.mark.e2e

CHAT_ID = -1001
USER_ID = 100


@pytest.fixture
def redis_store(fake_redis, clock):
    return RedisChallengeStore(fake_redis, clock=clock)


@pytest.fixture
def gate(platform, redis_store, policy_store, generator, settings, clock):
    return AdmissionController(platform, redis_store, policy_store, generator, settings, clock=clock)


@pytest.fixture
def redis_sweeper(platform, redis_store, settings, clock):
    return Sweeper(platform, redis_store, settings, clock=clock)


async def _apply(gate):
    outcome = await gate.on_join_request(CHAT_ID, USER_ID, USER_ID, "@newbie", "Test chat")
    assert outcome.decision == Decision.CHALLENGED
    return outcome.record


def _wrong(record):
    return (record.correct_option_index + 1) % len(record.options)


@pytest.mark.asyncio
async def test_wrong_answer_then_correct_after_cooldown(gate, platform, redis_store, policy_store, clock):
    record = await _apply(gate)

    retry = await gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, _wrong(record))
    assert retry.decision == Decision.RETRY

    early = await gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, record.correct_option_index)
    assert early.decision == Decision.COOLDOWN

    clock.advance(5)
    done = await gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, record.correct_option_index)

    assert done.decision == Decision.APPROVED
    assert done.approved is True
    assert platform.calls_of("approve_join") == [(CHAT_ID, USER_ID)]
    assert await redis_store.get_by_key(CHAT_ID, USER_ID) is None
    assert await redis_store.list_for_user(USER_ID) == []
    assert (await policy_store.read(CHAT_ID)).is_trusted(USER_ID)


@pytest.mark.asyncio
async def test_answer_while_prompt_id_is_saved(gate, platform, redis_store):
    clicks = []
    deliver = platform.send_message

    async def deliver_and_click(chat_id, text, reply_markup=None):
        result = await deliver(chat_id, text, reply_markup=reply_markup)
        if not clicks:
            # Пользователь жмёт кнопку сразу после доставки капчи
            record = await redis_store.get_by_key(CHAT_ID, USER_ID)
            clicks.append(asyncio.create_task(gate.on_response(
                USER_ID, CHAT_ID, USER_ID, record.nonce, record.correct_option_index,
                message_id=result.value.message_id,
            )))
        return result

    platform.send_message = deliver_and_click

    await _apply(gate)
    outcome = await clicks[0]

    assert outcome.decision == Decision.APPROVED
    assert platform.calls_of("approve_join") == [(CHAT_ID, USER_ID)]
    prompt_id = platform.calls_of("delete_message")[0][1]
    assert prompt_id == 1001
    assert await redis_store.get_by_key(CHAT_ID, USER_ID) is None


@pytest.mark.asyncio
async def test_prompt_id_from_callback_is_used_on_exhaustion(gate, platform, redis_store, clock):
    record = await _apply(gate)
    # ID сообщения ещё не сохранён контроллером
    unsaved = record.copy()
    unsaved.last_prompt_message_id = None
    await redis_store.put(unsaved)

    await gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, _wrong(record), message_id=77)
    clock.advance(5)
    await gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, _wrong(record), message_id=77)

    edits = platform.calls_of("edit_message")
    assert edits and edits[-1][:2] == (USER_ID, 77)


@pytest.mark.asyncio
async def test_unanswered_challenge_is_swept(gate, redis_sweeper, platform, redis_store, clock):
    record = await _apply(gate)

    assert await redis_sweeper.sweep() == 0
    clock.advance(601)
    assert await redis_sweeper.sweep() == 1

    assert platform.calls_of("decline_join") == [(CHAT_ID, USER_ID)]
    assert await redis_store.get_by_key(CHAT_ID, USER_ID) is None

    late = await gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, record.correct_option_index)
    assert late.decision == Decision.STALE
    assert "approve_join" not in platform.names()


@pytest.mark.asyncio
async def test_text_mode_answer(gate, platform):
    record = await _apply(gate)

    enabled = await gate.on_enable_text_mode(USER_ID, CHAT_ID, USER_ID, record.nonce, None)
    assert enabled.decision == Decision.TEXT_MODE

    outcome = await gate.on_text_answer(USER_ID, str(record.correct_option_index + 1))

    assert outcome.decision == Decision.APPROVED
    assert platform.calls_of("approve_join") == [(CHAT_ID, USER_ID)]


@pytest.mark.asyncio
async def test_denylisted_user_never_gets_challenge(gate, platform, policy_store, redis_store):
    await policy_store.add_deny(CHAT_ID, USER_ID)

    outcome = await gate.on_join_request(CHAT_ID, USER_ID, USER_ID)

    assert outcome.decision == Decision.DENIED
    assert "send_message" not in platform.names()
    assert await redis_store.list_for_user(USER_ID) == []


@pytest.mark.asyncio
async def test_rejoin_after_success_is_auto_approved(gate, platform, clock):
    record = await _apply(gate)
    await gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, record.correct_option_index)

    clock.advance(24 * 3600)
    again = await gate.on_join_request(CHAT_ID, USER_ID, USER_ID)

    assert again.decision == Decision.AUTO_APPROVED
    assert len(platform.calls_of("approve_join")) == 2


@pytest.mark.asyncio
async def test_duplicate_correct_answers_approve_once(gate, platform):
    record = await _apply(gate)

    outcomes = await asyncio.gather(*[
        gate.on_response(USER_ID, CHAT_ID, USER_ID, record.nonce, record.correct_option_index)
        for _ in range(5)
    ])

    decisions = [outcome.decision for outcome in outcomes]
    assert decisions.count(Decision.APPROVED) == 1
    assert set(decisions) <= {Decision.APPROVED, Decision.BUSY, Decision.STALE}
    assert platform.calls_of("approve_join") == [(CHAT_ID, USER_ID)]


@pytest.mark.asyncio
async def test_second_request_replaces_first_challenge(gate, redis_store):
    first = await _apply(gate)
    second = await _apply(gate)

    stale = await gate.on_response(USER_ID, CHAT_ID, USER_ID, first.nonce, first.correct_option_index)
    assert stale.decision == Decision.STALE

    current = await redis_store.get_by_key(CHAT_ID, USER_ID)
    assert current.nonce == second.nonce
