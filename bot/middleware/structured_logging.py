# middleware/structured_logging.py
"""
Middleware для структурированного логирования апдейтов от Telegram
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from aiogram import BaseMiddleware
from aiogram.types import Update

logger = logging.getLogger(__name__)


def _user(user) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "username": user.username, "first_name": user.first_name}


def describe_update(event: Update) -> Dict[str, Any]:
    """Краткое описание апдейта: тип и ключевые поля"""
    if event.message:
        msg = event.message
        return {
            "type": "message",
            "message_id": msg.message_id,
            "from": _user(msg.from_user),
            "chat": {"id": msg.chat.id, "type": msg.chat.type, "title": msg.chat.title},
            "text": msg.text[:100] if msg.text else None,
        }
    if event.callback_query:
        cb = event.callback_query
        return {
            "type": "callback_query",
            "from": _user(cb.from_user),
            "data": cb.data[:64] if cb.data else None,
        }
    if event.chat_join_request:
        cjr = event.chat_join_request
        return {
            "type": "chat_join_request",
            "from": _user(cjr.from_user),
            "chat": {"id": cjr.chat.id, "type": cjr.chat.type, "title": cjr.chat.title},
        }
    if event.chat_member:
        cm = event.chat_member
        return {
            "type": "chat_member",
            "chat": {"id": cm.chat.id, "type": cm.chat.type, "title": cm.chat.title},
            "user": _user(cm.new_chat_member.user),
            "old_status": cm.old_chat_member.status,
            "new_status": cm.new_chat_member.status,
        }
    return {"type": event.event_type}


def format_update_log(event: Update, data: Dict[str, Any]) -> str:
    lines = [f"📩 === {str(data.get('type', 'unknown')).upper()} ===", f"   Update ID: {event.update_id}"]
    for key, value in data.items():
        if key == "type" or not value:
            continue
        if isinstance(value, dict):
            lines.append(f"   {key}:")
            lines.extend(f"      {sub_key}: {sub_value}" for sub_key, sub_value in value.items() if sub_value)
        else:
            lines.append(f"   {key}: {value}")
    return "\n".join(lines)


class StructuredLoggingMiddleware(BaseMiddleware):
    """Middleware для структурированного логирования апдейтов"""

    async def __call__(
        self,
        handler: Callable[[Update, Dict[str, Any]], Awaitable[Any]],
        event: Update,
        data: Dict[str, Any]
    ) -> Any:
        logger.info(format_update_log(event, describe_update(event)))
        try:
            result = await handler(event, data)
        except Exception as e:
            logger.error(f"❌ Ошибка обработки update id={event.update_id}: {e}")
            raise
        logger.debug(f"✅ Update id={event.update_id} обработан")
        return result
