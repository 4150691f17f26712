# bot/services/federation/federation_service.py
"""
Сервис федераций - CRUD над Federation, FederationChat, FederationBan.

Федерация принадлежит хаб-чату. Группы привязываются к ней
(каждая группа - не более чем к одной федерации), баны федерации
хранятся отдельно от банов в самих группах.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bot.database.models import Federation, FederationBan, FederationChat


logger = logging.getLogger(__name__)


@dataclass
class FederationInfo:
    """Снимок федерации"""
    hub_chat_id: int
    linked_chats: List[int] = field(default_factory=list)
    banned_users: Set[int] = field(default_factory=set)


async def _find(session: AsyncSession, hub_chat_id: int) -> Optional[Federation]:
    result = await session.execute(select(Federation).where(Federation.hub_chat_id == hub_chat_id))
    return result.scalar_one_or_none()


async def _snapshot(session: AsyncSession, federation: Federation) -> FederationInfo:
    chats = await session.execute(
        select(FederationChat.chat_id)
        .where(FederationChat.federation_id == federation.id)
        .order_by(FederationChat.chat_id)
    )
    bans = await session.execute(
        select(FederationBan.user_id).where(FederationBan.federation_id == federation.id)
    )
    return FederationInfo(
        hub_chat_id=federation.hub_chat_id,
        linked_chats=list(chats.scalars()),
        banned_users=set(bans.scalars()),
    )


async def get_federation(session: AsyncSession, hub_chat_id: int) -> Optional[FederationInfo]:
    """Федерация, у которой этот чат - хаб"""
    federation = await _find(session, hub_chat_id)
    if federation is None:
        return None
    return await _snapshot(session, federation)


async def get_federation_for_chat(session: AsyncSession, chat_id: int) -> Optional[FederationInfo]:
    """Федерация чата: сначала как хаба, затем через привязку"""
    direct = await get_federation(session, chat_id)
    if direct is not None:
        return direct

    result = await session.execute(
        select(Federation)
        .join(FederationChat, FederationChat.federation_id == Federation.id)
        .where(FederationChat.chat_id == chat_id)
    )
    federation = result.scalar_one_or_none()
    if federation is None:
        return None
    return await _snapshot(session, federation)


async def ensure_federation(session: AsyncSession, hub_chat_id: int) -> Federation:
    federation = await _find(session, hub_chat_id)
    if federation is None:
        federation = Federation(hub_chat_id=hub_chat_id)
        session.add(federation)
        await session.flush()
        logger.info(f"🌐 [FEDERATION] Создана федерация: hub={hub_chat_id}")
    return federation


async def add_federation_chat(session: AsyncSession, hub_chat_id: int, chat_id: int) -> FederationInfo:
    """
    Привязывает группу к федерации хаба (создаёт федерацию при необходимости).

    Привязка к другой федерации переносится.
    """
    federation = await ensure_federation(session, hub_chat_id)
    result = await session.execute(select(FederationChat).where(FederationChat.chat_id == chat_id))
    link = result.scalar_one_or_none()
    if link is None:
        session.add(FederationChat(federation_id=federation.id, chat_id=chat_id))
    elif link.federation_id != federation.id:
        link.federation_id = federation.id
    await session.commit()

    logger.info(f"🔗 [FEDERATION] Группа {chat_id} привязана к федерации {hub_chat_id}")
    return await _snapshot(session, federation)


async def remove_federation_chat(session: AsyncSession, hub_chat_id: int, chat_id: int) -> FederationInfo:
    federation = await ensure_federation(session, hub_chat_id)
    await session.execute(
        delete(FederationChat).where(
            FederationChat.federation_id == federation.id,
            FederationChat.chat_id == chat_id,
        )
    )
    await session.commit()

    logger.info(f"✂️ [FEDERATION] Группа {chat_id} отвязана от федерации {hub_chat_id}")
    return await _snapshot(session, federation)


async def add_federation_ban(session: AsyncSession, hub_chat_id: int, user_id: int) -> FederationInfo:
    federation = await ensure_federation(session, hub_chat_id)
    result = await session.execute(
        select(FederationBan).where(
            FederationBan.federation_id == federation.id,
            FederationBan.user_id == user_id,
        )
    )
    if result.scalar_one_or_none() is None:
        session.add(FederationBan(federation_id=federation.id, user_id=user_id))
    await session.commit()
    return await _snapshot(session, federation)


async def remove_federation_ban(session: AsyncSession, hub_chat_id: int, user_id: int) -> FederationInfo:
    federation = await ensure_federation(session, hub_chat_id)
    await session.execute(
        delete(FederationBan).where(
            FederationBan.federation_id == federation.id,
            FederationBan.user_id == user_id,
        )
    )
    await session.commit()
    return await _snapshot(session, federation)
