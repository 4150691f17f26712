# bot/handlers/captcha/captcha_fsm_handler.py
"""
Личные сообщения: /start, тренировочная капча /test и текстовые ответы.

Текстовый ответ (1-4 или A-D) сначала проверяется как ответ на
настоящую капчу в текстовом режиме, затем - на тренировочную.
Тренировочное задание хранится в данных FSM пользователя.
"""

import logging

from aiogram import F, Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.fsm.storage.base import StorageKey
from aiogram.types import Message

from bot.services.captcha import AdmissionController, ChallengeGenerator
from bot.services.captcha.practice_service import (
    PRACTICE_DATA_KEY,
    TEXT_PRACTICE_CORRECT,
    TEXT_PRACTICE_SENT_DM,
    TEXT_PRACTICE_WRONG,
    current_practice,
    is_correct,
    new_practice,
    practice_keyboard,
    render_practice_text,
)
from bot.services.captcha.prompt_service import parse_text_choice


# Логгер для отслеживания личных сообщений
logger = logging.getLogger(__name__)

# Роутер для личных сообщений
fsm_router = Router(name="captcha_fsm")

START_TEXT = (
    "👋 Привет! Я проверяю заявки на вступление в группы.\n\n"
    "Когда вы подаёте заявку, я пришлю сюда короткую капчу: "
    "найдите ряд, в котором нарушен узор.\n\n"
    "Попробовать заранее: /test"
)


@fsm_router.message(CommandStart(), F.chat.type == "private")
async def start_command(message: Message) -> None:
    await message.answer(START_TEXT)


@fsm_router.message(Command("test"))
async def practice_command(message: Message, state: FSMContext, generator: ChallengeGenerator) -> None:
    """
    Тренировочная капча: в личке - сразу, в группе - в личные сообщения
    (если бот не может написать в личку, отвечает в группе).
    """
    if message.from_user is None:
        return

    practice = new_practice(generator)
    user_id = message.from_user.id
    text = render_practice_text(practice)
    keyboard = practice_keyboard(user_id, practice)

    if message.chat.type == "private":
        await state.update_data({PRACTICE_DATA_KEY: practice})
        await message.answer(text, reply_markup=keyboard)
        return

    try:
        await message.bot.send_message(user_id, text, reply_markup=keyboard)
    except TelegramAPIError as e:
        logger.info(f"ℹ️ [CAPTCHA_TEST] Личка недоступна для {user_id}: {e}")
        await state.update_data({PRACTICE_DATA_KEY: practice})
        await message.answer(text, reply_markup=keyboard)
        return

    # Кнопки нажимаются в личке - задание кладём в FSM личного чата
    private_state = FSMContext(
        storage=state.storage,
        key=StorageKey(bot_id=message.bot.id, chat_id=user_id, user_id=user_id),
    )
    await private_state.update_data({PRACTICE_DATA_KEY: practice})
    await message.answer(TEXT_PRACTICE_SENT_DM)


@fsm_router.message(F.chat.type == "private", F.text, ~F.text.startswith("/"))
async def private_text_answer(message: Message, state: FSMContext, admission: AdmissionController) -> None:
    """Текстовый ответ на капчу (1-4 или A-D)"""
    outcome = await admission.on_text_answer(message.from_user.id, message.text)
    if outcome is not None:
        if outcome.text:
            await message.answer(outcome.text)
        return

    practice = current_practice(await state.get_data())
    if practice is None or not practice.get("text_mode"):
        return

    number = parse_text_choice(message.text)
    if number is None or number > len(practice["options"]):
        return
    await message.answer(TEXT_PRACTICE_CORRECT if is_correct(practice, number) else TEXT_PRACTICE_WRONG)
