# bot/services/captcha/prompt_service.py
"""
Тексты и клавиатуры капчи.

Содержит:
- Текст капчи для личного чата (обычный и текстовый режим)
- Клавиатуру вариантов ответа (A-D) и цифровую клавиатуру (1-4)
- Клавиатуру переключения приветствие/правила
- Разбор ответа, введённого текстом
"""

import logging
from typing import Callable, List, Optional, Sequence

from aiogram.filters.callback_data import CallbackData
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from bot.services.captcha.callback_data import (
    CaptchaAnswer,
    CaptchaNotMe,
    CaptchaTextMode,
    WelcomeToggle,
)
from bot.services.captcha.challenge_models import PendingChallenge
from bot.services.captcha.generator_service import OPTION_LABELS


logger = logging.getLogger(__name__)


# Подписи служебных кнопок
TEXT_MODE_LABEL = "🔎 Текстовый режим"
NOT_ME_LABEL = "🚫 Это был не я"

WELCOME_VIEW = "welcome"
RULES_VIEW = "rules"


# ═══════════════════════════════════════════════════════════════════════════
# РАЗБОР ТЕКСТОВОГО ОТВЕТА
# ═══════════════════════════════════════════════════════════════════════════

def parse_text_choice(text: Optional[str]) -> Optional[int]:
    """
    Разбирает ответ, введённый текстом.

    Берётся первый символ после trim и upper: 1-4 или A-D.

    Returns:
        Номер варианта с 1 или None, если это не ответ
    """
    if not text:
        return None
    trimmed = text.strip().upper()
    if not trimmed:
        return None
    first = trimmed[0]
    if first in "1234":
        return int(first)
    if first in OPTION_LABELS:
        return OPTION_LABELS.index(first) + 1
    return None


# ═══════════════════════════════════════════════════════════════════════════
# ТЕКСТЫ
# ═══════════════════════════════════════════════════════════════════════════

def _plural_attempts(count: int) -> str:
    if count % 10 == 1 and count % 100 != 11:
        return f"{count} попытка"
    if count % 10 in (2, 3, 4) and count % 100 not in (12, 13, 14):
        return f"{count} попытки"
    return f"{count} попыток"


def format_options_text(options: Sequence[str]) -> str:
    """Нумерованный список вариантов для текстового режима"""
    return "\n".join(f"{index + 1}) {option}" for index, option in enumerate(options))


def render_prompt_text(record: PendingChallenge, ttl_seconds: int) -> str:
    """Первое сообщение с капчей"""
    minutes = max(1, -(-ttl_seconds // 60))
    name = record.display_name or "друг"
    title = record.chat_title or "группу"
    last_label = OPTION_LABELS[len(record.options) - 1]
    return "\n".join([
        f"👋 Привет, {name}!",
        f"Вы подали заявку на вступление в {title}.",
        "",
        record.question,
        f"Выберите правильный ряд (A-{last_label}).",
        f"Для ввода ответа сообщением нажмите «{TEXT_MODE_LABEL}».",
        "",
        f"У вас {_plural_attempts(record.max_attempts)}. Капча истекает примерно через {minutes} мин.",
    ])


def render_text_mode_text(record: PendingChallenge) -> str:
    """Сообщение капчи после переключения в текстовый режим"""
    return "\n".join([
        f"⌨️ Текстовый режим. Отправьте номер ряда (1-{len(record.options)}).",
        record.question,
        "",
        format_options_text(record.options),
        "",
        f"Осталось: {_plural_attempts(record.remaining_attempts)}.",
    ])


# ═══════════════════════════════════════════════════════════════════════════
# КЛАВИАТУРЫ
# ═══════════════════════════════════════════════════════════════════════════

def build_choice_keyboard(
    options: Sequence[str],
    answer_data: Callable[[int], CallbackData],
    text_mode_data: Optional[CallbackData] = None,
    not_me_data: Optional[CallbackData] = None,
) -> InlineKeyboardMarkup:
    """
    Клавиатура с вариантами: по одной кнопке в ряд.

    Args:
        options: Варианты ответа
        answer_data: Фабрика callback-данных по номеру варианта (с 1)
        text_mode_data: Данные кнопки текстового режима
        not_me_data: Данные кнопки "это был не я"
    """
    rows: List[List[InlineKeyboardButton]] = []
    for index, option in enumerate(options):
        rows.append([InlineKeyboardButton(
            text=f"{OPTION_LABELS[index]}) {option}",
            callback_data=answer_data(index + 1).pack(),
        )])
    if text_mode_data is not None:
        rows.append([InlineKeyboardButton(text=TEXT_MODE_LABEL, callback_data=text_mode_data.pack())])
    if not_me_data is not None:
        rows.append([InlineKeyboardButton(text=NOT_ME_LABEL, callback_data=not_me_data.pack())])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def build_numeric_keyboard(
    option_count: int,
    answer_data: Callable[[int], CallbackData],
    not_me_data: Optional[CallbackData] = None,
) -> InlineKeyboardMarkup:
    """Цифровая клавиатура 1..N для текстового режима"""
    rows: List[List[InlineKeyboardButton]] = [[
        InlineKeyboardButton(text=str(number), callback_data=answer_data(number).pack())
        for number in range(1, option_count + 1)
    ]]
    if not_me_data is not None:
        rows.append([InlineKeyboardButton(text=NOT_ME_LABEL, callback_data=not_me_data.pack())])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def challenge_keyboard(record: PendingChallenge) -> InlineKeyboardMarkup:
    """Клавиатура первого сообщения капчи"""
    return build_choice_keyboard(
        record.options,
        lambda choice: CaptchaAnswer(
            chat_id=record.chat_id, user_id=record.user_id, choice=choice, nonce=record.nonce,
        ),
        text_mode_data=CaptchaTextMode(chat_id=record.chat_id, user_id=record.user_id, nonce=record.nonce),
        not_me_data=CaptchaNotMe(chat_id=record.chat_id, user_id=record.user_id, nonce=record.nonce),
    )


def text_mode_keyboard(record: PendingChallenge) -> InlineKeyboardMarkup:
    """Клавиатура капчи в текстовом режиме"""
    return build_numeric_keyboard(
        len(record.options),
        lambda choice: CaptchaAnswer(
            chat_id=record.chat_id, user_id=record.user_id, choice=choice, nonce=record.nonce,
        ),
        not_me_data=CaptchaNotMe(chat_id=record.chat_id, user_id=record.user_id, nonce=record.nonce),
    )


def welcome_keyboard(chat_id: int, user_id: int, view: str) -> InlineKeyboardMarkup:
    """Кнопка переключения на противоположный вид (правила <-> приветствие)"""
    if view == RULES_VIEW:
        label, target = "👋 Приветствие", WELCOME_VIEW
    else:
        label, target = "📜 Правила", RULES_VIEW
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(
            text=label,
            callback_data=WelcomeToggle(chat_id=chat_id, user_id=user_id, view=target).pack(),
        )
    ]])
