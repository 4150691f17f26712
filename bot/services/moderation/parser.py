# ═══════════════════════════════════════════════════════════════════════════
# ПАРСЕР АРГУМЕНТОВ КОМАНД МОДЕРАЦИИ
# ═══════════════════════════════════════════════════════════════════════════
# Функции для разбора аргументов команд /ban, /mute, /fmute и т.д.:
# - цель (reply, @username или user_id)
# - длительность (30s, 10m, 2h, 1d - максимум 366 дней)
# - причина (остаток текста)
#
# Примеры:
#   /mute 10m спам            → reply, 10 минут, причина "спам"
#   /mute @username 2h        → @username, 2 часа
#   /ban 123456789 реклама    → user_id, причина "реклама"
# ═══════════════════════════════════════════════════════════════════════════

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message

# Настраиваем логгер для отслеживания работы парсера
logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# КОНСТАНТЫ
# ═══════════════════════════════════════════════════════════════════════════
DURATION_RE = re.compile(r"^(\d+)([smhd])$", re.IGNORECASE)
# Похоже на длительность (число + буква) - иначе это начало причины
DURATION_LIKE_RE = re.compile(r"^\d+[a-zа-я]+$", re.IGNORECASE)

UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
MAX_DURATION_SECONDS = 366 * 86400

DURATION_FORMAT_ERROR = "❌ Неверный формат длительности. Примеры: 10m, 2h, 1d."
DURATION_ZERO_ERROR = "❌ Длительность должна быть больше нуля."
DURATION_TOO_LONG_ERROR = "❌ Слишком долго. Максимум 366 дней."


# ═══════════════════════════════════════════════════════════════════════════
# DATACLASS'Ы РЕЗУЛЬТАТОВ
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class DurationParse:
    """
    Результат разбора длительности.

    Attributes:
        seconds: Длительность в секундах (None = бессрочно)
        error: Текст ошибки для пользователя
    """
    seconds: Optional[int] = None
    error: Optional[str] = None


@dataclass
class TargetUser:
    """Цель команды модерации"""
    user_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None

    @property
    def label(self) -> str:
        return format_user_label(self.user_id, self.username, self.first_name)


# ═══════════════════════════════════════════════════════════════════════════
# АРГУМЕНТЫ
# ═══════════════════════════════════════════════════════════════════════════
def split_args(args: Optional[str]) -> List[str]:
    """Разбивает аргументы команды (CommandObject.args) на токены"""
    if not args:
        return []
    return args.split()


def parse_int_arg(token: Optional[str]) -> Optional[int]:
    """Целое число из токена (chat_id может быть отрицательным)"""
    if token is None:
        return None
    try:
        return int(token)
    except ValueError:
        return None


# ═══════════════════════════════════════════════════════════════════════════
# ДЛИТЕЛЬНОСТЬ
# ═══════════════════════════════════════════════════════════════════════════
def parse_duration(token: Optional[str]) -> DurationParse:
    """
    Парсит длительность вида 30s / 10m / 2h / 1d.

    Args:
        token: Строка длительности (None - бессрочно)

    Returns:
        DurationParse с секундами или текстом ошибки
    """
    if not token:
        return DurationParse()

    match = DURATION_RE.match(token)
    if not match:
        return DurationParse(error=DURATION_FORMAT_ERROR)

    amount = int(match.group(1))
    if amount <= 0:
        return DurationParse(error=DURATION_ZERO_ERROR)

    seconds = amount * UNIT_SECONDS[match.group(2).lower()]
    if seconds > MAX_DURATION_SECONDS:
        return DurationParse(error=DURATION_TOO_LONG_ERROR)

    return DurationParse(seconds=seconds)


def parse_optional_duration(tokens: List[str]) -> Tuple[DurationParse, List[str]]:
    """
    Берёт длительность из первого токена, если он на неё похож.

    Returns:
        (результат разбора, оставшиеся токены - причина)
    """
    if not tokens or not DURATION_LIKE_RE.match(tokens[0]):
        return DurationParse(), list(tokens)

    parsed = parse_duration(tokens[0])
    logger.debug(f"[PARSER] Длительность: token={tokens[0]}, seconds={parsed.seconds}, error={parsed.error}")
    return parsed, list(tokens[1:])


def format_duration(seconds: int) -> str:
    """Короткая запись длительности: 45s, 10m, 2h, 3d"""
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


# ═══════════════════════════════════════════════════════════════════════════
# ЦЕЛЬ КОМАНДЫ
# ═══════════════════════════════════════════════════════════════════════════
def format_user_label(user_id: int, username: Optional[str] = None, first_name: Optional[str] = None) -> str:
    if username:
        return f"@{username}"
    if first_name:
        return f"{first_name} ({user_id})"
    return str(user_id)


async def resolve_target(bot: Bot, message: Message, token: Optional[str]) -> Optional[TargetUser]:
    """
    Определяет цель команды.

    Без токена - автор сообщения, на которое ответили.
    @username - через get_chat (только приватные чаты).
    Иначе - числовой user_id.
    """
    if not token:
        reply = message.reply_to_message
        if reply is not None and reply.from_user is not None:
            return TargetUser(
                user_id=reply.from_user.id,
                username=reply.from_user.username,
                first_name=reply.from_user.first_name,
            )
        return None

    if token.startswith("@"):
        try:
            chat = await bot.get_chat(token)
        except TelegramAPIError as e:
            logger.warning(f"⚠️ [PARSER] Не удалось найти {token}: {e}")
            return None
        if chat.type != "private":
            return None
        return TargetUser(user_id=chat.id, username=chat.username, first_name=chat.first_name)

    user_id = parse_int_arg(token)
    if user_id is None:
        return None
    return TargetUser(user_id=user_id)


def _looks_like_target(token: str) -> bool:
    return token.startswith("@") or parse_int_arg(token) is not None


async def resolve_target_args(
    bot: Bot,
    message: Message,
    tokens: List[str],
) -> Tuple[Optional[TargetUser], List[str]]:
    """
    Цель из первого токена или из reply; остальные токены возвращаются.

    Если первый токен не похож на цель, а команда отправлена ответом,
    цель - автор исходного сообщения, и все токены остаются (причина).
    """
    if tokens and _looks_like_target(tokens[0]):
        return await resolve_target(bot, message, tokens[0]), list(tokens[1:])
    return await resolve_target(bot, message, None), list(tokens)
