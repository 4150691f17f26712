# bot/services/group_policy/policy_service.py
"""
Сервис политики группы.

Отвечает за:
- Чтение и изменение приветствия, правил и удаления служебных сообщений
- Белый и чёрный списки (взаимоисключающие)
- Кэш прошедших проверку пользователей с TTL (чистится при каждом чтении)
- Подстановку названия группы в шаблоны приветствия и правил

Политикой владеет только этот сервис. Запись - read-modify-write,
при одновременных изменениях побеждает последняя запись.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set
import time

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bot.database.models import GroupPolicy, PolicyListEntry, VerifiedUser


# Логгер для отслеживания изменений политики
logger = logging.getLogger(__name__)


ALLOW = "allow"
DENY = "deny"

# Тексты по умолчанию
DEFAULT_WELCOME_MESSAGE = "👋 Добро пожаловать в {chat}!"
DEFAULT_RULES_MESSAGE = "📜 Правила {chat}: будьте вежливы и не спамьте."

# Поля, которые можно менять через write()
WRITABLE_FIELDS = ("welcome_message", "rules_message", "delete_service_messages")


@dataclass
class PolicySnapshot:
    """Снимок политики группы на момент чтения"""
    chat_id: int
    allowlist: Set[int] = field(default_factory=set)
    denylist: Set[int] = field(default_factory=set)
    # user_id -> время проверки (unix, секунды)
    verified_users: Dict[int, float] = field(default_factory=dict)
    welcome_message: str = DEFAULT_WELCOME_MESSAGE
    rules_message: str = DEFAULT_RULES_MESSAGE
    delete_service_messages: bool = False

    def is_denied(self, user_id: int) -> bool:
        return user_id in self.denylist

    def is_trusted(self, user_id: int) -> bool:
        """В белом списке или недавно прошёл проверку"""
        return user_id in self.allowlist or user_id in self.verified_users


def render_template(template: Optional[str], chat_title: Optional[str]) -> str:
    """
    Подставляет название группы в шаблон.

    Поддерживаются {chat} и {chatTitle}; без названия - "эту группу".
    """
    title = chat_title or "эту группу"
    text = template or ""
    return text.replace("{chatTitle}", title).replace("{chat}", title)


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def _to_timestamp(value: datetime) -> float:
    return value.replace(tzinfo=timezone.utc).timestamp()


class SqlGroupPolicyStore:
    """
    Хранилище политики групп в SQLAlchemy.

    Args:
        sessionmaker: Фабрика асинхронных сессий
        verified_ttl_seconds: Сколько помнить прошедших проверку
        clock: Источник времени (unix, секунды)
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker,
        verified_ttl_seconds: int,
        clock=time.time,
    ):
        self.sessionmaker = sessionmaker
        self.verified_ttl_seconds = verified_ttl_seconds
        self.clock = clock

    # ═══════════════════════════════════════════════════════════════════════════
    # ЧТЕНИЕ / ЗАПИСЬ
    # ═══════════════════════════════════════════════════════════════════════════

    async def read(self, chat_id: int) -> PolicySnapshot:
        """
        Читает политику группы.

        Просроченные записи verified_users удаляются из БД при чтении.

        Args:
            chat_id: ID группы

        Returns:
            PolicySnapshot (с дефолтами, если группа ещё не настроена)
        """
        async with self.sessionmaker() as session:
            removed = await self._prune_verified(session, chat_id)
            snapshot = await self._load(session, chat_id)
            if removed:
                await session.commit()
                logger.info(
                    f"🧹 [POLICY] Удалено {removed} устаревших verified записей: chat_id={chat_id}"
                )
        return snapshot

    async def write(self, chat_id: int, patch: Dict[str, Any]) -> PolicySnapshot:
        """
        Изменяет поля политики.

        Raises:
            ValueError: неизвестное поле в patch
        """
        unknown = set(patch) - set(WRITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Неизвестные поля политики: {sorted(unknown)}")

        async with self.sessionmaker() as session:
            row = await self._get_or_create_row(session, chat_id)
            for name, value in patch.items():
                setattr(row, name, value)
            await session.commit()
            logger.info(f"✅ [POLICY] Обновлено: chat_id={chat_id}, поля={sorted(patch)}")
            return await self._load(session, chat_id)

    # ═══════════════════════════════════════════════════════════════════════════
    # VERIFIED USERS
    # ═══════════════════════════════════════════════════════════════════════════

    async def record_verified(self, chat_id: int, user_id: int, at: Optional[float] = None) -> None:
        """Запоминает (или обновляет) время успешной проверки"""
        verified_at = _to_datetime(at if at is not None else self.clock())
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(VerifiedUser).where(
                    VerifiedUser.chat_id == chat_id,
                    VerifiedUser.user_id == user_id,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(VerifiedUser(chat_id=chat_id, user_id=user_id, verified_at=verified_at))
            else:
                row.verified_at = verified_at
            await session.commit()

    # ═══════════════════════════════════════════════════════════════════════════
    # БЕЛЫЙ / ЧЁРНЫЙ СПИСОК
    # ═══════════════════════════════════════════════════════════════════════════

    async def add_allow(self, chat_id: int, user_id: int) -> bool:
        return await self._add_to_list(chat_id, user_id, ALLOW)

    async def add_deny(self, chat_id: int, user_id: int) -> bool:
        return await self._add_to_list(chat_id, user_id, DENY)

    async def remove_allow(self, chat_id: int, user_id: int) -> bool:
        return await self._remove_from_list(chat_id, user_id, ALLOW)

    async def remove_deny(self, chat_id: int, user_id: int) -> bool:
        return await self._remove_from_list(chat_id, user_id, DENY)

    async def _add_to_list(self, chat_id: int, user_id: int, list_type: str) -> bool:
        """
        Добавляет пользователя в список.

        Пользователь переносится из противоположного списка, если был там.

        Returns:
            False если пользователь уже был в этом списке
        """
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(PolicyListEntry).where(
                    PolicyListEntry.chat_id == chat_id,
                    PolicyListEntry.user_id == user_id,
                )
            )
            entry = result.scalar_one_or_none()
            if entry is not None and entry.list_type == list_type:
                return False
            if entry is None:
                session.add(PolicyListEntry(chat_id=chat_id, user_id=user_id, list_type=list_type))
            else:
                entry.list_type = list_type
            await session.commit()

        logger.info(f"📋 [POLICY] {list_type}: chat_id={chat_id}, user_id={user_id}")
        return True

    async def _remove_from_list(self, chat_id: int, user_id: int, list_type: str) -> bool:
        async with self.sessionmaker() as session:
            result = await session.execute(
                delete(PolicyListEntry).where(
                    PolicyListEntry.chat_id == chat_id,
                    PolicyListEntry.user_id == user_id,
                    PolicyListEntry.list_type == list_type,
                )
            )
            await session.commit()
        return result.rowcount > 0

    # ═══════════════════════════════════════════════════════════════════════════
    # ВНУТРЕННИЕ ХЕЛПЕРЫ
    # ═══════════════════════════════════════════════════════════════════════════

    async def _get_or_create_row(self, session: AsyncSession, chat_id: int) -> GroupPolicy:
        result = await session.execute(select(GroupPolicy).where(GroupPolicy.chat_id == chat_id))
        row = result.scalar_one_or_none()
        if row is None:
            row = GroupPolicy(chat_id=chat_id)
            session.add(row)
            await session.flush()
        return row

    async def _prune_verified(self, session: AsyncSession, chat_id: int) -> int:
        cutoff = _to_datetime(self.clock() - self.verified_ttl_seconds)
        result = await session.execute(
            delete(VerifiedUser).where(
                VerifiedUser.chat_id == chat_id,
                VerifiedUser.verified_at < cutoff,
            )
        )
        return result.rowcount or 0

    async def _load(self, session: AsyncSession, chat_id: int) -> PolicySnapshot:
        snapshot = PolicySnapshot(chat_id=chat_id)

        result = await session.execute(select(GroupPolicy).where(GroupPolicy.chat_id == chat_id))
        row = result.scalar_one_or_none()
        if row is not None:
            snapshot.welcome_message = row.welcome_message or DEFAULT_WELCOME_MESSAGE
            snapshot.rules_message = row.rules_message or DEFAULT_RULES_MESSAGE
            snapshot.delete_service_messages = bool(row.delete_service_messages)

        entries = await session.execute(
            select(PolicyListEntry).where(PolicyListEntry.chat_id == chat_id)
        )
        for entry in entries.scalars():
            if entry.list_type == ALLOW:
                snapshot.allowlist.add(entry.user_id)
            elif entry.list_type == DENY:
                snapshot.denylist.add(entry.user_id)

        verified = await session.execute(
            select(VerifiedUser).where(VerifiedUser.chat_id == chat_id)
        )
        for row in verified.scalars():
            snapshot.verified_users[row.user_id] = _to_timestamp(row.verified_at)

        return snapshot
