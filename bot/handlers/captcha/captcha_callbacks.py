# bot/handlers/captcha/captcha_callbacks.py
"""
Обработчики нажатий кнопок капчи.

Каждый хендлер разбирает callback через CallbackData-фильтр,
передаёт событие контроллеру и показывает пользователю итог
всплывающим ответом на callback.
"""

import logging

from aiogram import F, Router
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery

from bot.services.captcha import AdmissionController, Decision
from bot.services.captcha.callback_data import (
    CaptchaAnswer,
    CaptchaNotMe,
    CaptchaTextMode,
    PracticeAnswer,
    PracticeNotMe,
    PracticeTextMode,
    WelcomeToggle,
)
from bot.services.captcha.admission_service import (
    TEXT_NOT_OWNER,
    TEXT_STALE,
    TEXT_TEXT_MODE,
    TEXT_TEXT_MODE_ACTIVE,
    TEXT_TEXT_MODE_FAILED,
)
from bot.services.captcha.practice_service import (
    PRACTICE_DATA_KEY,
    TEXT_PRACTICE_CORRECT,
    TEXT_PRACTICE_NOT_ME,
    TEXT_PRACTICE_STALE,
    TEXT_PRACTICE_WRONG,
    current_practice,
    is_correct,
    practice_text_mode_keyboard,
    render_practice_text_mode,
)


# Логгер для отслеживания callback'ов
logger = logging.getLogger(__name__)

# Роутер callback'ов капчи
callbacks_router = Router(name="captcha_callbacks")

# Исходы, о которых сообщаем всплывающим окном
ALERT_DECISIONS = {
    Decision.NOT_OWNER,
    Decision.EXHAUSTED,
    Decision.EXPIRED,
    Decision.RETRY,
}


def _message_id(callback: CallbackQuery):
    return callback.message.message_id if callback.message else None


# ═══════════════════════════════════════════════════════════════════════════════
# НАСТОЯЩАЯ КАПЧА
# ═══════════════════════════════════════════════════════════════════════════════

@callbacks_router.callback_query(CaptchaAnswer.filter())
async def captcha_answer_callback(
    callback: CallbackQuery,
    callback_data: CaptchaAnswer,
    admission: AdmissionController,
) -> None:
    """Выбор варианта ответа"""
    outcome = await admission.on_response(
        actor_id=callback.from_user.id,
        chat_id=callback_data.chat_id,
        user_id=callback_data.user_id,
        nonce=callback_data.nonce,
        choice=callback_data.choice - 1,
        message_id=_message_id(callback),
    )
    await callback.answer(outcome.text, show_alert=outcome.decision in ALERT_DECISIONS)


@callbacks_router.callback_query(CaptchaTextMode.filter())
async def captcha_text_mode_callback(
    callback: CallbackQuery,
    callback_data: CaptchaTextMode,
    admission: AdmissionController,
) -> None:
    """Переключение на текстовый ввод"""
    outcome = await admission.on_enable_text_mode(
        actor_id=callback.from_user.id,
        chat_id=callback_data.chat_id,
        user_id=callback_data.user_id,
        nonce=callback_data.nonce,
        message_id=_message_id(callback),
    )
    await callback.answer(outcome.text, show_alert=outcome.decision == Decision.NOT_OWNER)


@callbacks_router.callback_query(CaptchaNotMe.filter())
async def captcha_not_me_callback(
    callback: CallbackQuery,
    callback_data: CaptchaNotMe,
    admission: AdmissionController,
) -> None:
    """Кнопка "это был не я" """
    outcome = await admission.on_not_me(
        actor_id=callback.from_user.id,
        chat_id=callback_data.chat_id,
        user_id=callback_data.user_id,
        nonce=callback_data.nonce,
        message_id=_message_id(callback),
    )
    await callback.answer(outcome.text, show_alert=outcome.decision == Decision.NOT_OWNER)


@callbacks_router.callback_query(WelcomeToggle.filter())
async def welcome_toggle_callback(
    callback: CallbackQuery,
    callback_data: WelcomeToggle,
    admission: AdmissionController,
) -> None:
    """Переключение приветствие <-> правила"""
    outcome = await admission.on_welcome_toggle(
        actor_id=callback.from_user.id,
        chat_id=callback_data.chat_id,
        user_id=callback_data.user_id,
        view=callback_data.view,
        message_id=_message_id(callback),
    )
    await callback.answer(outcome.text, show_alert=outcome.decision == Decision.NOT_OWNER)


# ═══════════════════════════════════════════════════════════════════════════════
# ТРЕНИРОВОЧНАЯ КАПЧА /test
# ═══════════════════════════════════════════════════════════════════════════════

@callbacks_router.callback_query(PracticeAnswer.filter())
async def practice_answer_callback(callback: CallbackQuery, callback_data: PracticeAnswer, state: FSMContext) -> None:
    if callback.from_user.id != callback_data.user_id:
        await callback.answer(TEXT_NOT_OWNER, show_alert=True)
        return

    practice = current_practice(await state.get_data(), callback_data.nonce)
    if practice is None:
        await callback.answer(TEXT_PRACTICE_STALE)
        return

    correct = is_correct(practice, callback_data.choice)
    await callback.answer(TEXT_PRACTICE_CORRECT if correct else TEXT_PRACTICE_WRONG)


@callbacks_router.callback_query(PracticeTextMode.filter())
async def practice_text_mode_callback(callback: CallbackQuery, callback_data: PracticeTextMode, state: FSMContext) -> None:
    if callback.from_user.id != callback_data.user_id:
        await callback.answer(TEXT_NOT_OWNER, show_alert=True)
        return

    practice = current_practice(await state.get_data(), callback_data.nonce)
    if practice is None:
        await callback.answer(TEXT_PRACTICE_STALE)
        return
    if practice.get("text_mode"):
        await callback.answer(TEXT_TEXT_MODE_ACTIVE)
        return

    try:
        await callback.message.edit_text(
            render_practice_text_mode(practice),
            reply_markup=practice_text_mode_keyboard(callback_data.user_id, practice),
        )
    except TelegramAPIError as e:
        logger.warning(f"⚠️ [CAPTCHA_TEST] Не удалось включить текстовый режим: {e}")
        await callback.answer(TEXT_TEXT_MODE_FAILED)
        return

    practice["text_mode"] = True
    await state.update_data({PRACTICE_DATA_KEY: practice})
    await callback.answer(TEXT_TEXT_MODE)


@callbacks_router.callback_query(PracticeNotMe.filter())
async def practice_not_me_callback(callback: CallbackQuery, callback_data: PracticeNotMe, state: FSMContext) -> None:
    if callback.from_user.id != callback_data.user_id:
        await callback.answer(TEXT_NOT_OWNER, show_alert=True)
        return

    if current_practice(await state.get_data(), callback_data.nonce) is None:
        await callback.answer(TEXT_PRACTICE_STALE)
        return
    await callback.answer(TEXT_PRACTICE_NOT_ME)


# Кнопки капчи с неразборчивыми данными
@callbacks_router.callback_query(F.data.startswith("cap"))
async def unknown_captcha_callback(callback: CallbackQuery) -> None:
    await callback.answer(TEXT_STALE)
