# bot/services/moderation/warnings_service.py
"""
Счётчик предупреждений участников (/warn, /unwarn, /warnings).
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bot.database.models import UserWarning, utcnow


logger = logging.getLogger(__name__)


async def get_warning(session: AsyncSession, chat_id: int, user_id: int) -> Optional[UserWarning]:
    result = await session.execute(
        select(UserWarning).where(UserWarning.chat_id == chat_id, UserWarning.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def add_warning(
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    reason: Optional[str] = None,
    updated_by: Optional[int] = None,
) -> int:
    """
    Увеличивает счётчик предупреждений.

    Пустая причина не затирает предыдущую.

    Returns:
        Новое количество предупреждений
    """
    warning = await get_warning(session, chat_id, user_id)
    if warning is None:
        warning = UserWarning(chat_id=chat_id, user_id=user_id, count=0)
        session.add(warning)

    warning.count += 1
    if reason and reason.strip():
        warning.last_reason = reason.strip()
    warning.updated_by = updated_by
    warning.updated_at = utcnow()
    await session.commit()

    logger.info(f"⚠️ [WARN] chat_id={chat_id}, user_id={user_id}, count={warning.count}")
    return warning.count


async def remove_warning(
    session: AsyncSession,
    chat_id: int,
    user_id: int,
    updated_by: Optional[int] = None,
) -> int:
    """
    Уменьшает счётчик; при нуле запись удаляется.

    Returns:
        Оставшееся количество предупреждений
    """
    warning = await get_warning(session, chat_id, user_id)
    if warning is None:
        return 0

    remaining = max(0, warning.count - 1)
    if remaining == 0:
        await session.delete(warning)
    else:
        warning.count = remaining
        warning.updated_by = updated_by
        warning.updated_at = utcnow()
    await session.commit()
    return remaining
