# bot/services/captcha/practice_service.py
"""
Тренировочная капча /test.

Заявки нет: задание хранится в данных FSM пользователя под ключом
PRACTICE_DATA_KEY, ответ только сообщает "верно" или "неверно".
Новая /test заменяет предыдущее задание (по nonce).
"""

from typing import Any, Dict, Optional

from aiogram.types import InlineKeyboardMarkup

from bot.services.captcha.callback_data import PracticeAnswer, PracticeNotMe, PracticeTextMode
from bot.services.captcha.generator_service import ChallengeGenerator
from bot.services.captcha.prompt_service import (
    build_choice_keyboard,
    build_numeric_keyboard,
    format_options_text,
)


PRACTICE_DATA_KEY = "practice_captcha"

TEXT_PRACTICE_STALE = "⏰ Тренировка устарела или заменена новой"
TEXT_PRACTICE_CORRECT = "✅ Верно!"
TEXT_PRACTICE_WRONG = "❌ Неверно."
TEXT_PRACTICE_NOT_ME = "🙃 Это была не та кнопка."
TEXT_PRACTICE_SENT_DM = "📨 Тренировочная капча отправлена вам в личные сообщения."


def new_practice(generator: ChallengeGenerator) -> Dict[str, Any]:
    """Новое тренировочное задание (словарь для FSM data)"""
    challenge = generator.generate()
    return {
        "nonce": challenge.nonce,
        "question": challenge.question,
        "options": list(challenge.options),
        "correct_index": challenge.correct_index,
        "text_mode": False,
    }


def current_practice(data: Dict[str, Any], nonce: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Задание из FSM data; с nonce - только если совпадает"""
    practice = data.get(PRACTICE_DATA_KEY)
    if not practice:
        return None
    if nonce is not None and practice.get("nonce") != nonce:
        return None
    return practice


def is_correct(practice: Dict[str, Any], choice: int) -> bool:
    """choice - номер варианта с 1"""
    return choice - 1 == practice["correct_index"]


def render_practice_text(practice: Dict[str, Any]) -> str:
    return "\n".join([
        "🧪 Тренировочная капча (это не настоящая заявка).",
        practice["question"],
        "",
        format_options_text(practice["options"]),
    ])


def render_practice_text_mode(practice: Dict[str, Any]) -> str:
    return "\n".join([
        f"⌨️ Текстовый режим. Отправьте номер ряда (1-{len(practice['options'])}).",
        practice["question"],
        "",
        format_options_text(practice["options"]),
    ])


def practice_keyboard(user_id: int, practice: Dict[str, Any]) -> InlineKeyboardMarkup:
    nonce = practice["nonce"]
    return build_choice_keyboard(
        practice["options"],
        lambda choice: PracticeAnswer(user_id=user_id, choice=choice, nonce=nonce),
        text_mode_data=PracticeTextMode(user_id=user_id, nonce=nonce),
        not_me_data=PracticeNotMe(user_id=user_id, nonce=nonce),
    )


def practice_text_mode_keyboard(user_id: int, practice: Dict[str, Any]) -> InlineKeyboardMarkup:
    nonce = practice["nonce"]
    return build_numeric_keyboard(
        len(practice["options"]),
        lambda choice: PracticeAnswer(user_id=user_id, choice=choice, nonce=nonce),
        not_me_data=PracticeNotMe(user_id=user_id, nonce=nonce),
    )
