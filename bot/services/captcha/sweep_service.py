# bot/services/captcha/sweep_service.py
"""
Фоновая очистка просроченных капч.

Отвечает за:
- Отклонение заявок, на которые не ответили вовремя
- Удаление записей из всех индексов хранилища
- Возврат записей, брошенных обработчиком в состоянии processing

Проход однопоточный: если очистка уже идёт, новый запуск
сразу возвращает 0 и не ставится в очередь. Каждая запись
захватывается через get_and_lock с её собственным nonce, поэтому
запись, которую сейчас обрабатывает ответ пользователя, не трогается.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from bot.config import GateSettings
from bot.services.captcha.challenge_models import LockStatus, PendingChallenge
from bot.services.captcha.pending_store import PendingChallengeStore
from bot.services.platform import ChatPlatform
from bot.utils.logger import log_captcha_failed


# Логгер для отслеживания очистки
logger = logging.getLogger(__name__)


SWEEP_PROMPT_TEXT = "⏰ Время на капчу истекло. Заявка отклонена."


class Sweeper:
    """
    Очистка просроченных капч.

    Args:
        platform: Адаптер Telegram
        store: Хранилище ожидающих капч
        settings: batch size, grace period
        clock: Источник времени (unix, секунды)
    """

    def __init__(
        self,
        platform: ChatPlatform,
        store: PendingChallengeStore,
        settings: GateSettings,
        clock: Callable[[], float] = time.time,
    ):
        self.platform = platform
        self.store = store
        self.settings = settings
        self.clock = clock
        self._guard = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._guard.locked()

    async def sweep(self, now: Optional[float] = None) -> int:
        """
        Один проход очистки.

        Args:
            now: Момент проверки (по умолчанию текущее время)

        Returns:
            Количество удалённых записей (0 если проход уже идёт)
        """
        if self._guard.locked():
            logger.debug("⏭️ [SWEEP] Очистка уже выполняется, пропускаем")
            return 0

        async with self._guard:
            now = self.clock() if now is None else now
            expired = await self.store.list_expired(now, self.settings.sweep_batch_size)
            removed = 0
            for record in expired:
                if await self._sweep_one(record, now):
                    removed += 1

            if removed:
                logger.info(f"🧹 [SWEEP] Удалено просроченных капч: {removed} из {len(expired)}")
            return removed

    async def _sweep_one(self, record: PendingChallenge, now: float) -> bool:
        lock = await self.store.get_and_lock(record.chat_id, record.user_id, record.nonce)

        if lock.status == LockStatus.ALREADY_PROCESSING:
            since = lock.record.processing_since if lock.record else None
            if since is None or now - since < self.settings.processing_grace_seconds:
                # Ответ пользователя обрабатывается прямо сейчас
                return False
            logger.warning(
                f"⚠️ [SWEEP] Возвращаем брошенную запись: chat_id={record.chat_id}, "
                f"user_id={record.user_id}, processing_since={since}"
            )
            locked = lock.record
        elif lock.status == LockStatus.LOCKED:
            locked = lock.record
        else:
            # Уже удалена или заменена новой капчей
            return False

        await self.platform.decline_join(locked.chat_id, locked.user_id)
        if locked.last_prompt_message_id is not None:
            await self.platform.edit_message(locked.user_chat_id, locked.last_prompt_message_id, SWEEP_PROMPT_TEXT)
        removed = await self.store.remove(locked.chat_id, locked.user_id, nonce=locked.nonce)
        if removed:
            log_captcha_failed(
                locked.display_name, locked.user_id, locked.chat_title, locked.chat_id, reason="Время истекло",
            )
        return removed

    async def run_periodic(self, interval_seconds: Optional[int] = None) -> None:
        """Бесконечный цикл очистки (запускается задачей при старте бота)"""
        interval = interval_seconds or self.settings.sweep_interval_seconds
        logger.info(f"🔄 [SWEEP] Периодическая очистка каждые {interval} сек.")
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception as e:
                # Ошибка одного прохода не должна останавливать цикл
                logger.exception(f"❌ [SWEEP] Ошибка очистки: {e}")
