import os
import random
import sys
from pathlib import Path

import pytest

# КРИТИЧНО: переменные окружения ДО импорта bot.config,
# иначе конфиг упадёт с "BOT_TOKEN не установлен!"
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("BOT_TOKEN", "123456:TEST-TOKEN")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.pop("LOG_CHANNEL_ID", None)

# Гарантируем, что пакет bot доступен для импортов из тестов
# (добавляем корень проекта в sys.path независимо от того, откуда запущен pytest).
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fakeredis import aioredis as fakeredis_aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bot.config import GateSettings
from bot.database.models import Base
from bot.services.captcha import (
    AdmissionController,
    ChallengeGenerator,
    MemoryChallengeStore,
    Sweeper,
)
from bot.services.group_policy import SqlGroupPolicyStore
from tests.helpers import Clock, FakePlatform


# ═══════════════════════════════════════════════════════════════════════════════
# ИНФРАСТРУКТУРА
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
async def fake_redis(monkeypatch):
    """Patch project-wide redis client with fakeredis for unit tests."""
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr("bot.services.redis_conn.redis", client)

    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
async def sessionmaker():
    """In-memory SQLite: одна схема на тест"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(sessionmaker):
    """Provide an isolated database session for a test."""
    session = sessionmaker()
    try:
        yield session
    finally:
        await session.close()


# ═══════════════════════════════════════════════════════════════════════════════
# СЕРВИСЫ КАПЧИ
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def settings():
    return GateSettings(
        challenge_ttl_seconds=600,
        max_attempts=2,
        cooldown_seconds=4,
        verified_ttl_seconds=7 * 24 * 3600,
        sweep_batch_size=100,
        processing_grace_seconds=120,
        option_count=4,
    )


@pytest.fixture
def generator():
    return ChallengeGenerator(rng=random.Random(1234))


@pytest.fixture
def store(clock):
    return MemoryChallengeStore(clock=clock)


@pytest.fixture
def policy_store(sessionmaker, settings, clock):
    return SqlGroupPolicyStore(sessionmaker, settings.verified_ttl_seconds, clock=clock)


@pytest.fixture
def admission(platform, store, policy_store, generator, settings, clock):
    return AdmissionController(platform, store, policy_store, generator, settings, clock=clock)


@pytest.fixture
def sweeper(platform, store, settings, clock):
    return Sweeper(platform, store, settings, clock=clock)

