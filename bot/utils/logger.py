import asyncio
import html
import logging

import aiohttp

from bot.config import BOT_TOKEN, LOG_CHANNEL_ID

logger = logging.getLogger(__name__)


# ==== СПЕЦИАЛЬНЫЕ ФОРМАТИРОВАННЫЕ ЛОГИ ДЛЯ TELEGRAM ====

async def send_formatted_log(message):
    """Отправляет отформатированное сообщение в канал логов в Telegram"""
    if not BOT_TOKEN or not LOG_CHANNEL_ID:
        logger.debug("❗ BOT_TOKEN или LOG_CHANNEL_ID не установлены, лог в канал пропущен")
        return

    url = f"https://api.telegram.org/bot{BOT_TOKEN}/sendMessage"
    payload = {
        "chat_id": LOG_CHANNEL_ID,
        "text": message,
        "parse_mode": "HTML",
        "disable_web_page_preview": True
    }

    async with aiohttp.ClientSession() as session:
        try:
            resp = await session.post(url, data=payload)
            if resp.status != 200:
                text = await resp.text()
                logger.error(f"❌ Telegram API Error: {resp.status}: {text}")
        except aiohttp.ClientError as e:
            logger.error(f"❌ Ошибка при отправке лога в Telegram: {e}")


def _schedule(message):
    # Без канала логов задачу не создаём
    if not LOG_CHANNEL_ID:
        return
    asyncio.create_task(send_formatted_log(message))


def _user_link(username, user_id):
    name = html.escape(username) if username else f"id{user_id}"
    return f"<a href='tg://user?id={user_id}'>{name}</a> [{user_id}]"


def _chat_link(chat_name, chat_id):
    link_id = str(chat_id).replace('-100', '')
    name = html.escape(chat_name) if chat_name else str(chat_id)
    return f"<a href='https://t.me/c/{link_id}/{link_id}'>{name}</a> [{chat_id}]"


def log_join_request(username, user_id, chat_name, chat_id):
    """Отправляет лог о запросе на вступление в группу"""
    msg = (
        f"📬 #ЗАПРОС_НА_ВСТУПЛЕНИЕ 🔵\n"
        f"• Кто: {_user_link(username, user_id)}\n"
        f"• Группа: {_chat_link(chat_name, chat_id)}\n"
        f"#id{user_id}"
    )
    logger.info(f"📱 Запрос на вступление от {username} в группу {chat_name}")
    _schedule(msg)


def log_captcha_sent(username, user_id, chat_name, chat_id):
    """Отправляет лог об отправке капчи пользователю"""
    msg = (
        f"📢 #КАПЧА_ОТПРАВЛЕНА 🟡\n"
        f"• Кому: {_user_link(username, user_id)}\n"
        f"• Группа: {_chat_link(chat_name, chat_id)}\n"
        f"#id{user_id}"
    )
    logger.info(f"📱 Отправлена капча пользователю: {username} для входа в группу {chat_id}")
    _schedule(msg)


def log_captcha_solved(username, user_id, chat_name, chat_id, method="Кнопка"):
    """Отправляет лог об успешном решении капчи"""
    msg = (
        f"✅ #КАПЧА_РЕШЕНА 🟢\n"
        f"• Кто: {_user_link(username, user_id)}\n"
        f"• Группа: {_chat_link(chat_name, chat_id)}\n"
        f"• Метод: {method}\n"
        f"#id{user_id}"
    )
    logger.info(f"📱 Капча решена пользователем: {username} в группе {chat_name}")
    _schedule(msg)


def log_captcha_failed(username, user_id, chat_name, chat_id, reason="Неверные ответы"):
    """Отправляет лог о неудачном прохождении капчи"""
    msg = (
        f"📬 #ЗАПРОС_НА_ВСТУПЛЕНИЕ 🔴 #капчанерешена\n"
        f"• Кто: {_user_link(username, user_id)}\n"
        f"• Группа: {_chat_link(chat_name, chat_id)}\n"
        f"• Причина: {reason}\n"
        f"#id{user_id} #КАПЧА_НЕ_УДАЛАСЬ"
    )
    logger.info(f"📱 Капча не решена пользователем: {username} в группе {chat_name}, причина: {reason}")
    _schedule(msg)


def log_user_banned(username, user_id, chat_name, chat_id, reason="Чёрный список"):
    """Отправляет лог о бане пользователя"""
    msg = (
        f"🚫 #ПОЛЬЗОВАТЕЛЬ_ЗАБАНЕН 🔴\n"
        f"• Кто: {_user_link(username, user_id)}\n"
        f"• Группа: {_chat_link(chat_name, chat_id)}\n"
        f"• Причина: {reason}\n"
        f"#id{user_id}"
    )
    logger.info(f"📱 Пользователь {username} забанен в группе {chat_name}: {reason}")
    _schedule(msg)


def log_federation_action(action, user_id, hub_chat_id, success_count, failed_count):
    """Отправляет лог о федеративном действии"""
    msg = (
        f"🌐 #ФЕДЕРАЦИЯ_{action.upper()} {'🟢' if not failed_count else '🟠'}\n"
        f"• Кто: {_user_link(None, user_id)}\n"
        f"• Федерация: {hub_chat_id}\n"
        f"• Успешно: {success_count}, ошибок: {failed_count}\n"
        f"#id{user_id}"
    )
    logger.info(
        f"📱 Федеративное действие {action} для {user_id}: успешно={success_count}, ошибок={failed_count}"
    )
    _schedule(msg)
