"""Общие заглушки для тестов: время, ChatPlatform и объекты Telegram"""

from types import SimpleNamespace
from typing import Any, List, Optional, Set, Tuple
from unittest.mock import AsyncMock

from bot.services.platform import PlatformResult


START_TIME = 1_700_000_000.0


class Clock:
    """Управляемое время для тестов"""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlatform:
    """
    Записывает все вызовы ChatPlatform.

    fail - имена операций, которые должны вернуть ok=False.
    """

    def __init__(self):
        self.calls: List[Tuple[str, tuple]] = []
        self.fail: Set[str] = set()
        self.fail_chats: Set[int] = set()
        self._next_message_id = 1000

    def _result(self, operation: str, chat_id: int, value: Any = True) -> PlatformResult:
        if operation in self.fail or chat_id in self.fail_chats:
            return PlatformResult(ok=False, error=f"{operation} failed")
        return PlatformResult(ok=True, value=value)

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def calls_of(self, operation: str) -> List[tuple]:
        return [args for name, args in self.calls if name == operation]

    async def approve_join(self, chat_id, user_id):
        self.calls.append(("approve_join", (chat_id, user_id)))
        return self._result("approve_join", chat_id)

    async def decline_join(self, chat_id, user_id):
        self.calls.append(("decline_join", (chat_id, user_id)))
        return self._result("decline_join", chat_id)

    async def ban_member(self, chat_id, user_id, until=None):
        self.calls.append(("ban_member", (chat_id, user_id, until)))
        return self._result("ban_member", chat_id)

    async def unban_member(self, chat_id, user_id, only_if_banned=False):
        self.calls.append(("unban_member", (chat_id, user_id, only_if_banned)))
        return self._result("unban_member", chat_id)

    async def restrict_member(self, chat_id, user_id, permissions, until=None):
        self.calls.append(("restrict_member", (chat_id, user_id, permissions, until)))
        return self._result("restrict_member", chat_id)

    async def send_message(self, chat_id, text, reply_markup=None):
        self.calls.append(("send_message", (chat_id, text, reply_markup)))
        self._next_message_id += 1
        return self._result("send_message", chat_id, SimpleNamespace(message_id=self._next_message_id))

    async def edit_message(self, chat_id, message_id, text, reply_markup=None):
        self.calls.append(("edit_message", (chat_id, message_id, text, reply_markup)))
        return self._result("edit_message", chat_id)

    async def delete_message(self, chat_id, message_id):
        self.calls.append(("delete_message", (chat_id, message_id)))
        return self._result("delete_message", chat_id)

    async def delete_messages(self, chat_id, message_ids):
        self.calls.append(("delete_messages", (chat_id, tuple(message_ids))))
        return self._result("delete_messages", chat_id)

    async def get_chat_member(self, chat_id, user_id):
        self.calls.append(("get_chat_member", (chat_id, user_id)))
        return self._result("get_chat_member", chat_id, SimpleNamespace(status="member"))

    async def get_chat_title(self, chat_id):
        self.calls.append(("get_chat_title", (chat_id,)))
        return self._result("get_chat_title", chat_id, "Test chat")

    async def set_chat_permissions(self, chat_id, permissions):
        self.calls.append(("set_chat_permissions", (chat_id, permissions)))
        return self._result("set_chat_permissions", chat_id)

    async def pin_message(self, chat_id, message_id):
        self.calls.append(("pin_message", (chat_id, message_id)))
        return self._result("pin_message", chat_id)

    async def unpin_message(self, chat_id, message_id=None):
        self.calls.append(("unpin_message", (chat_id, message_id)))
        return self._result("unpin_message", chat_id)


# ═══════════════════════════════════════════════════════════════════════════════
# ОБЪЕКТЫ TELEGRAM ДЛЯ ХЕНДЛЕРОВ
# ═══════════════════════════════════════════════════════════════════════════════

def admin_member(**rights):
    """ChatMember администратора со всеми правами модерации"""
    values = {
        "can_restrict_members": True,
        "can_delete_messages": True,
        "can_pin_messages": True,
        "can_manage_chat": True,
    }
    values.update(rights)
    return SimpleNamespace(status="administrator", **values)


def make_bot(member=None):
    bot = AsyncMock()
    bot.id = 424242
    bot.me = AsyncMock(return_value=SimpleNamespace(id=424242))
    bot.get_chat_member = AsyncMock(return_value=member or admin_member())
    return bot


def make_message(
    text: str = "",
    user_id: int = 100,
    chat_id: int = -1001,
    chat_type: str = "supergroup",
    title: Optional[str] = "Test chat",
    reply_to=None,
    bot=None,
    message_id: int = 50,
):
    return SimpleNamespace(
        message_id=message_id,
        text=text,
        from_user=SimpleNamespace(id=user_id, username="admin", first_name="Admin"),
        chat=SimpleNamespace(id=chat_id, type=chat_type, title=title),
        reply_to_message=reply_to,
        bot=bot or make_bot(),
        answer=AsyncMock(),
        delete=AsyncMock(),
    )


def make_reply(user_id: int = 555, username: Optional[str] = "target", message_id: int = 40):
    return SimpleNamespace(
        message_id=message_id,
        from_user=SimpleNamespace(id=user_id, username=username, first_name="Target"),
    )


def make_command(args: Optional[str] = None):
    return SimpleNamespace(args=args)


def answered_text(mock: AsyncMock) -> str:
    call = mock.await_args
    return call.kwargs.get("text") or call.args[0]
