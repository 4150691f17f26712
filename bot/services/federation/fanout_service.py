# bot/services/federation/fanout_service.py
"""
Применение одного действия ко многим чатам федерации.

Цели дедуплицируются с сохранением порядка первого вхождения,
действие вызывается для каждой цели последовательно ровно один раз.
Ошибка в одном чате не останавливает остальные и ничего не откатывает:
результат собирается в FanOutResult.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from bot.services.platform import PlatformResult


# Логгер для отслеживания федеративных действий
logger = logging.getLogger(__name__)

# Сколько неудачных чатов показывать в итоговом сообщении
FAILED_PREVIEW_LIMIT = 10


@dataclass
class FanOutResult:
    """
    Итог федеративного действия.

    Attributes:
        success_count: Сколько чатов обработано успешно
        failed_chat_ids: Чаты с ошибкой (по порядку обработки)
    """
    success_count: int = 0
    failed_chat_ids: List[int] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed_chat_ids)

    @property
    def total(self) -> int:
        return self.success_count + self.failed_count


async def apply_to_all(
    target_chat_ids: Iterable[int],
    action: Callable[[int], Awaitable[Any]],
) -> FanOutResult:
    """
    Применяет действие к каждому уникальному чату.

    Неудача - исключение из action или PlatformResult с ok=False.

    Args:
        target_chat_ids: Чаты (могут повторяться)
        action: Асинхронное действие над одним чатом

    Returns:
        FanOutResult со счётчиком успехов и списком неудачных чатов
    """
    result = FanOutResult()
    unique_chat_ids = list(dict.fromkeys(target_chat_ids))

    for chat_id in unique_chat_ids:
        try:
            outcome = await action(chat_id)
        except Exception as e:
            logger.error(f"❌ [FANOUT] Ошибка действия в чате {chat_id}: {e}")
            result.failed_chat_ids.append(chat_id)
            continue

        if isinstance(outcome, PlatformResult) and not outcome.ok:
            result.failed_chat_ids.append(chat_id)
        else:
            result.success_count += 1

    logger.info(
        f"🌐 [FANOUT] Готово: чатов={len(unique_chat_ids)}, "
        f"успешно={result.success_count}, ошибок={result.failed_count}"
    )
    return result


def build_federation_summary(
    action: str,
    target_label: str,
    result: FanOutResult,
    reason: Optional[str] = None,
) -> str:
    """Итоговое сообщение для админа"""
    lines = [f"🌐 Федерация {action}: {target_label}"]
    if reason:
        lines.append(f"Причина: {reason}")
    lines.append(f"Успешно: {result.success_count} | Ошибок: {result.failed_count}")

    if result.failed_chat_ids:
        preview = ", ".join(str(chat_id) for chat_id in result.failed_chat_ids[:FAILED_PREVIEW_LIMIT])
        suffix = " ..." if result.failed_count > FAILED_PREVIEW_LIMIT else ""
        lines.append(f"Ошибки в чатах: {preview}{suffix}")

    return "\n".join(lines)
