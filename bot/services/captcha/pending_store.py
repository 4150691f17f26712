# bot/services/captcha/pending_store.py
"""
Хранилище ожидающих капч.

Одна запись на пару (chat_id, user_id) и два индекса над ней:
- по времени истечения (для очистки)
- по пользователю (для ответов текстом в личном чате)

Ключи Redis:
- challenge:data:{chat_id}:{user_id} - JSON записи
- challenge:expiry - ZSET, score = expires_at, member = "{chat_id}:{user_id}"
- challenge:user:{user_id} - SET из chat_id

get_and_lock - атомарный compare-and-set: ровно один вызывающий
переводит запись из pending в processing, остальные получают
ALREADY_PROCESSING. set_prompt_message меняет только ID сообщения
и статус не трогает, поэтому не мешает первому ответу. В Redis это WATCH/MULTI с повтором при WatchError,
в памяти - asyncio.Lock.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from redis.asyncio import Redis
from redis.exceptions import WatchError

from bot.services.captcha.challenge_models import (
    ChallengeStatus,
    LockResult,
    LockStatus,
    PendingChallenge,
)


logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# КЛЮЧИ REDIS
# ═══════════════════════════════════════════════════════════════════════════════

DATA_KEY = "challenge:data:{chat_id}:{user_id}"
EXPIRY_KEY = "challenge:expiry"
USER_INDEX_KEY = "challenge:user:{user_id}"


def _data_key(chat_id: int, user_id: int) -> str:
    return DATA_KEY.format(chat_id=chat_id, user_id=user_id)


def _expiry_member(chat_id: int, user_id: int) -> str:
    return f"{chat_id}:{user_id}"


def _user_key(user_id: int) -> str:
    return USER_INDEX_KEY.format(user_id=user_id)


class PendingChallengeStore(Protocol):
    """Операции хранилища, которыми пользуются контроллер и очистка"""

    async def put(self, record: PendingChallenge) -> None: ...

    async def get_by_key(self, chat_id: int, user_id: int) -> Optional[PendingChallenge]: ...

    async def get_and_lock(self, chat_id: int, user_id: int, nonce: str) -> LockResult: ...

    async def release(self, record: PendingChallenge) -> bool: ...

    async def set_prompt_message(self, chat_id: int, user_id: int, nonce: str, message_id: int) -> bool: ...

    async def remove(self, chat_id: int, user_id: int, nonce: Optional[str] = None) -> bool: ...

    async def list_expired(self, now: float, limit: int) -> List[PendingChallenge]: ...

    async def list_for_user(self, user_id: int) -> List[PendingChallenge]: ...


# ═══════════════════════════════════════════════════════════════════════════════
# REDIS
# ═══════════════════════════════════════════════════════════════════════════════

class RedisChallengeStore:
    """
    Хранилище капч в Redis.

    Args:
        redis: Клиент redis.asyncio с decode_responses=True
        clock: Источник времени (unix, секунды)
    """

    def __init__(self, redis: Redis, clock: Callable[[], float] = time.time):
        self.redis = redis
        self.clock = clock

    async def put(self, record: PendingChallenge) -> None:
        # Новая запись вытесняет старую: старый nonce больше ничего не изменит
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(_data_key(record.chat_id, record.user_id), record.to_json())
            pipe.zadd(EXPIRY_KEY, {_expiry_member(record.chat_id, record.user_id): record.expires_at})
            pipe.sadd(_user_key(record.user_id), str(record.chat_id))
            await pipe.execute()
        logger.debug(
            f"💾 [CHALLENGE_STORE] put: chat_id={record.chat_id}, user_id={record.user_id}, "
            f"expires_at={record.expires_at}"
        )

    async def get_by_key(self, chat_id: int, user_id: int) -> Optional[PendingChallenge]:
        raw = await self.redis.get(_data_key(chat_id, user_id))
        if raw is None:
            return None
        return PendingChallenge.from_json(raw)

    async def get_and_lock(self, chat_id: int, user_id: int, nonce: str) -> LockResult:
        key = _data_key(chat_id, user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        return LockResult(LockStatus.NOT_FOUND)

                    record = PendingChallenge.from_json(raw)
                    if record.nonce != nonce:
                        return LockResult(LockStatus.NONCE_MISMATCH)
                    if record.status == ChallengeStatus.PROCESSING:
                        return LockResult(LockStatus.ALREADY_PROCESSING, record)

                    record.status = ChallengeStatus.PROCESSING
                    record.processing_since = self.clock()
                    pipe.multi()
                    pipe.set(key, record.to_json())
                    await pipe.execute()
                    return LockResult(LockStatus.LOCKED, record)
                except WatchError:
                    # Запись изменилась между WATCH и EXEC - читаем заново
                    continue

    async def release(self, record: PendingChallenge) -> bool:
        key = _data_key(record.chat_id, record.user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    stored = PendingChallenge.from_json(raw) if raw is not None else None
                    if stored is None or stored.nonce != record.nonce:
                        return False

                    released = record.copy()
                    released.status = ChallengeStatus.PENDING
                    released.processing_since = None
                    if released.last_prompt_message_id is None:
                        released.last_prompt_message_id = stored.last_prompt_message_id
                    pipe.multi()
                    pipe.set(key, released.to_json())
                    await pipe.execute()
                    return True
                except WatchError:
                    continue

    async def set_prompt_message(self, chat_id: int, user_id: int, nonce: str, message_id: int) -> bool:
        """Запоминает ID сообщения с капчей, не трогая статус записи"""
        key = _data_key(chat_id, user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        return False
                    record = PendingChallenge.from_json(raw)
                    if record.nonce != nonce:
                        return False

                    record.last_prompt_message_id = message_id
                    pipe.multi()
                    pipe.set(key, record.to_json())
                    await pipe.execute()
                    return True
                except WatchError:
                    continue

    async def remove(self, chat_id: int, user_id: int, nonce: Optional[str] = None) -> bool:
        key = _data_key(chat_id, user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is not None and nonce is not None:
                        if PendingChallenge.from_json(raw).nonce != nonce:
                            # Запись уже заменена новой капчей - не трогаем
                            return False

                    pipe.multi()
                    pipe.delete(key)
                    pipe.zrem(EXPIRY_KEY, _expiry_member(chat_id, user_id))
                    pipe.srem(_user_key(user_id), str(chat_id))
                    await pipe.execute()
                    return raw is not None
                except WatchError:
                    continue

    async def list_expired(self, now: float, limit: int) -> List[PendingChallenge]:
        # Строго меньше now: граница совпадает с PendingChallenge.is_expired
        members = await self.redis.zrangebyscore(EXPIRY_KEY, "-inf", f"({now}", start=0, num=limit)
        records: List[PendingChallenge] = []
        for member in members:
            chat_id, user_id = (int(part) for part in member.rsplit(":", 1))
            record = await self.get_by_key(chat_id, user_id)
            if record is None:
                # Осиротевший элемент индекса
                await self.redis.zrem(EXPIRY_KEY, member)
                continue
            records.append(record)
        return records

    async def list_for_user(self, user_id: int) -> List[PendingChallenge]:
        chat_ids = await self.redis.smembers(_user_key(user_id))
        records: List[PendingChallenge] = []
        for chat_id in chat_ids:
            record = await self.get_by_key(int(chat_id), user_id)
            if record is None:
                await self.redis.srem(_user_key(user_id), chat_id)
                continue
            records.append(record)
        return records


# ═══════════════════════════════════════════════════════════════════════════════
# ПАМЯТЬ (fallback при недоступном Redis и для тестов)
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryChallengeStore:
    """Хранилище капч в памяти процесса с той же семантикой, что и Redis"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._records: Dict[Tuple[int, int], PendingChallenge] = {}
        self._lock = asyncio.Lock()

    async def put(self, record: PendingChallenge) -> None:
        async with self._lock:
            self._records[record.key] = record.copy()

    async def get_by_key(self, chat_id: int, user_id: int) -> Optional[PendingChallenge]:
        async with self._lock:
            record = self._records.get((chat_id, user_id))
            return record.copy() if record else None

    async def get_and_lock(self, chat_id: int, user_id: int, nonce: str) -> LockResult:
        async with self._lock:
            record = self._records.get((chat_id, user_id))
            if record is None:
                return LockResult(LockStatus.NOT_FOUND)
            if record.nonce != nonce:
                return LockResult(LockStatus.NONCE_MISMATCH)
            if record.status == ChallengeStatus.PROCESSING:
                return LockResult(LockStatus.ALREADY_PROCESSING, record.copy())
            record.status = ChallengeStatus.PROCESSING
            record.processing_since = self.clock()
            return LockResult(LockStatus.LOCKED, record.copy())

    async def release(self, record: PendingChallenge) -> bool:
        async with self._lock:
            stored = self._records.get(record.key)
            if stored is None or stored.nonce != record.nonce:
                return False
            released = record.copy()
            released.status = ChallengeStatus.PENDING
            released.processing_since = None
            if released.last_prompt_message_id is None:
                released.last_prompt_message_id = stored.last_prompt_message_id
            self._records[record.key] = released
            return True

    async def set_prompt_message(self, chat_id: int, user_id: int, nonce: str, message_id: int) -> bool:
        async with self._lock:
            stored = self._records.get((chat_id, user_id))
            if stored is None or stored.nonce != nonce:
                return False
            stored.last_prompt_message_id = message_id
            return True

    async def remove(self, chat_id: int, user_id: int, nonce: Optional[str] = None) -> bool:
        async with self._lock:
            stored = self._records.get((chat_id, user_id))
            if stored is None:
                return False
            if nonce is not None and stored.nonce != nonce:
                return False
            del self._records[(chat_id, user_id)]
            return True

    async def list_expired(self, now: float, limit: int) -> List[PendingChallenge]:
        async with self._lock:
            expired = sorted(
                (record for record in self._records.values() if record.is_expired(now)),
                key=lambda record: record.expires_at,
            )
            return [record.copy() for record in expired[:limit]]

    async def list_for_user(self, user_id: int) -> List[PendingChallenge]:
        async with self._lock:
            return [
                record.copy()
                for (_, record_user_id), record in self._records.items()
                if record_user_id == user_id
            ]
