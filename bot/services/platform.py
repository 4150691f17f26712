# bot/services/platform.py
"""
Адаптер Telegram Bot API для сервисов капчи и модерации.

Отвечает за:
- Единый интерфейс ChatPlatform для всех удалённых действий
- Перехват TelegramAPIError: каждая операция возвращает PlatformResult
  вместо исключения, ошибка логируется один раз здесь

Сервисы зависят только от протокола ChatPlatform, поэтому в тестах
вместо бота подставляется записывающая заглушка.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Optional, Protocol, Sequence, Union

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import ChatPermissions, InlineKeyboardMarkup


# Логгер для удалённых вызовов
logger = logging.getLogger(__name__)


@dataclass
class PlatformResult:
    """
    Результат удалённого вызова.

    Attributes:
        ok: True если Telegram принял запрос
        value: Ответ API (Message, ChatMember, ...) при успехе
        error: Текст ошибки при неудаче
    """
    ok: bool
    value: Any = None
    error: Optional[str] = None


# Момент окончания ограничения: unix-время или datetime
UntilDate = Optional[Union[int, datetime]]


class ChatPlatform(Protocol):
    """Операции чата, которые нужны капче, модерации и федерации"""

    async def approve_join(self, chat_id: int, user_id: int) -> PlatformResult: ...

    async def decline_join(self, chat_id: int, user_id: int) -> PlatformResult: ...

    async def ban_member(self, chat_id: int, user_id: int, until: UntilDate = None) -> PlatformResult: ...

    async def unban_member(self, chat_id: int, user_id: int, only_if_banned: bool = False) -> PlatformResult: ...

    async def restrict_member(
        self,
        chat_id: int,
        user_id: int,
        permissions: ChatPermissions,
        until: UntilDate = None,
    ) -> PlatformResult: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> PlatformResult: ...

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> PlatformResult: ...

    async def delete_message(self, chat_id: int, message_id: int) -> PlatformResult: ...

    async def delete_messages(self, chat_id: int, message_ids: Sequence[int]) -> PlatformResult: ...

    async def get_chat_member(self, chat_id: int, user_id: int) -> PlatformResult: ...

    async def get_chat_title(self, chat_id: int) -> PlatformResult: ...

    async def set_chat_permissions(self, chat_id: int, permissions: ChatPermissions) -> PlatformResult: ...

    async def pin_message(self, chat_id: int, message_id: int) -> PlatformResult: ...

    async def unpin_message(self, chat_id: int, message_id: Optional[int] = None) -> PlatformResult: ...


class AiogramChatPlatform:
    """Реализация ChatPlatform поверх aiogram.Bot"""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def _call(self, operation: str, chat_id: int, call: Awaitable[Any]) -> PlatformResult:
        try:
            value = await call
        except TelegramAPIError as e:
            logger.warning(
                f"⚠️ [PLATFORM] {operation} не выполнено: chat_id={chat_id}, error={e}"
            )
            return PlatformResult(ok=False, error=str(e))
        return PlatformResult(ok=True, value=value)

    async def approve_join(self, chat_id: int, user_id: int) -> PlatformResult:
        return await self._call(
            "approve_join", chat_id,
            self.bot.approve_chat_join_request(chat_id=chat_id, user_id=user_id),
        )

    async def decline_join(self, chat_id: int, user_id: int) -> PlatformResult:
        return await self._call(
            "decline_join", chat_id,
            self.bot.decline_chat_join_request(chat_id=chat_id, user_id=user_id),
        )

    async def ban_member(self, chat_id: int, user_id: int, until: UntilDate = None) -> PlatformResult:
        return await self._call(
            "ban_member", chat_id,
            self.bot.ban_chat_member(chat_id=chat_id, user_id=user_id, until_date=until),
        )

    async def unban_member(self, chat_id: int, user_id: int, only_if_banned: bool = False) -> PlatformResult:
        return await self._call(
            "unban_member", chat_id,
            self.bot.unban_chat_member(chat_id=chat_id, user_id=user_id, only_if_banned=only_if_banned),
        )

    async def restrict_member(
        self,
        chat_id: int,
        user_id: int,
        permissions: ChatPermissions,
        until: UntilDate = None,
    ) -> PlatformResult:
        return await self._call(
            "restrict_member", chat_id,
            self.bot.restrict_chat_member(
                chat_id=chat_id,
                user_id=user_id,
                permissions=permissions,
                until_date=until,
            ),
        )

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> PlatformResult:
        return await self._call(
            "send_message", chat_id,
            self.bot.send_message(chat_id=chat_id, text=text, reply_markup=reply_markup),
        )

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> PlatformResult:
        return await self._call(
            "edit_message", chat_id,
            self.bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                reply_markup=reply_markup,
            ),
        )

    async def delete_message(self, chat_id: int, message_id: int) -> PlatformResult:
        return await self._call(
            "delete_message", chat_id,
            self.bot.delete_message(chat_id=chat_id, message_id=message_id),
        )

    async def delete_messages(self, chat_id: int, message_ids: Sequence[int]) -> PlatformResult:
        return await self._call(
            "delete_messages", chat_id,
            self.bot.delete_messages(chat_id=chat_id, message_ids=list(message_ids)),
        )

    async def get_chat_member(self, chat_id: int, user_id: int) -> PlatformResult:
        return await self._call(
            "get_chat_member", chat_id,
            self.bot.get_chat_member(chat_id=chat_id, user_id=user_id),
        )

    async def get_chat_title(self, chat_id: int) -> PlatformResult:
        result = await self._call("get_chat", chat_id, self.bot.get_chat(chat_id=chat_id))
        if result.ok:
            result.value = getattr(result.value, "title", None)
        return result

    async def set_chat_permissions(self, chat_id: int, permissions: ChatPermissions) -> PlatformResult:
        return await self._call(
            "set_chat_permissions", chat_id,
            self.bot.set_chat_permissions(chat_id=chat_id, permissions=permissions),
        )

    async def pin_message(self, chat_id: int, message_id: int) -> PlatformResult:
        return await self._call(
            "pin_message", chat_id,
            self.bot.pin_chat_message(chat_id=chat_id, message_id=message_id),
        )

    async def unpin_message(self, chat_id: int, message_id: Optional[int] = None) -> PlatformResult:
        return await self._call(
            "unpin_message", chat_id,
            self.bot.unpin_chat_message(chat_id=chat_id, message_id=message_id),
        )
