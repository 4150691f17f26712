# bot/services/captcha/callback_data.py
"""
Callback-данные кнопок капчи.

Каждый вид кнопки - отдельный класс CallbackData: данные разбираются
один раз на входе в хендлер (фильтр .filter()), дальше код работает
с типизированными полями, а не со строками.

Все классы содержат user_id владельца - по нему проверяется,
что кнопку нажимает тот, кому капча отправлена.
"""

from aiogram.filters.callback_data import CallbackData


class CaptchaAnswer(CallbackData, prefix="cap"):
    """Выбор варианта ответа (choice начинается с 1)"""
    chat_id: int
    user_id: int
    choice: int
    nonce: str


class CaptchaTextMode(CallbackData, prefix="captxt"):
    """Переключение на текстовый ввод ответа"""
    chat_id: int
    user_id: int
    nonce: str


class CaptchaNotMe(CallbackData, prefix="capban"):
    """Кнопка "это был не я" - отклонить заявку и заблокировать"""
    chat_id: int
    user_id: int
    nonce: str


class WelcomeToggle(CallbackData, prefix="welcome"):
    """Переключение между приветствием и правилами"""
    chat_id: int
    user_id: int
    view: str


class PracticeAnswer(CallbackData, prefix="test"):
    """Ответ на тренировочную капчу /test"""
    user_id: int
    choice: int
    nonce: str


class PracticeTextMode(CallbackData, prefix="testtxt"):
    user_id: int
    nonce: str


class PracticeNotMe(CallbackData, prefix="testban"):
    user_id: int
    nonce: str
