# bot/services/captcha/admission_service.py
"""
Контроллер допуска по заявкам на вступление - основная бизнес-логика капчи.

Отвечает за:
- Решение по заявке: чёрный список -> отклонить и забанить,
  белый список или недавно проверен -> одобрить, иначе -> капча в ЛС
- Обработку ответов: проверка владельца, захват записи, истечение,
  пауза после ошибки, правильный/неправильный ответ
- Текстовый режим и кнопку "это был не я"
- Приветствие и правила после одобрения

Состояния пары (chat, user):
    нет капчи -> капча(k попыток) -> одобрен | отклонён | истёк

Все переходы капчи идут через get_and_lock хранилища, поэтому
повторная доставка одного и того же нажатия обрабатывается один раз.
Ошибки Telegram не прерывают переход: запись всё равно удаляется.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from bot.config import GateSettings
from bot.services.captcha.challenge_models import (
    LockStatus,
    PendingChallenge,
)
from bot.services.captcha.generator_service import ChallengeGenerator
from bot.services.captcha.pending_store import PendingChallengeStore
from bot.services.captcha.prompt_service import (
    RULES_VIEW,
    WELCOME_VIEW,
    challenge_keyboard,
    parse_text_choice,
    render_prompt_text,
    render_text_mode_text,
    text_mode_keyboard,
    welcome_keyboard,
)
from bot.services.group_policy import SqlGroupPolicyStore, render_template
from bot.services.platform import ChatPlatform
from bot.utils.logger import (
    log_captcha_failed,
    log_captcha_sent,
    log_captcha_solved,
    log_join_request,
    log_user_banned,
)


# Логгер для отслеживания допуска
logger = logging.getLogger(__name__)


class Decision(str, Enum):
    """Исход обработки события контроллером"""
    # Заявка
    DENIED = "denied"
    AUTO_APPROVED = "auto_approved"
    CHALLENGED = "challenged"
    DELIVERY_FAILED = "delivery_failed"
    # Ответ
    NOT_OWNER = "not_owner"
    STALE = "stale"
    BUSY = "busy"
    EXPIRED = "expired"
    COOLDOWN = "cooldown"
    INVALID_CHOICE = "invalid_choice"
    APPROVED = "approved"
    RETRY = "retry"
    EXHAUSTED = "exhausted"
    SELF_EXCLUDED = "self_excluded"
    TEXT_MODE = "text_mode"
    TEXT_MODE_ACTIVE = "text_mode_active"
    TEXT_MODE_FAILED = "text_mode_failed"
    # Приветствие
    WELCOME_SHOWN = "welcome_shown"


@dataclass
class AdmissionOutcome:
    """
    Результат для слоя хендлеров: решение и текст для пользователя.

    Attributes:
        decision: Что произошло
        text: Текст ответа пользователю (None - отвечать нечего)
        approved: Результат вызова одобрения, если он был
        record: Запись капчи, если она участвовала
    """
    decision: Decision
    text: Optional[str] = None
    approved: Optional[bool] = None
    record: Optional[PendingChallenge] = None


# ═══════════════════════════════════════════════════════════════════════════════
# ТЕКСТЫ ДЛЯ ПОЛЬЗОВАТЕЛЯ
# ═══════════════════════════════════════════════════════════════════════════════

TEXT_NOT_OWNER = "❌ Эта капча предназначена для другого пользователя"
TEXT_STALE = "⏰ Капча устарела или уже обработана"
TEXT_BUSY = "⏳ Ответ уже обрабатывается"
TEXT_EXPIRED = "⏰ Время на капчу истекло. Заявка отклонена."
TEXT_INVALID_CHOICE = "❌ Такого варианта нет"
TEXT_APPROVED = "✅ Верно! Заявка одобрена."
TEXT_APPROVE_FAILED = "✅ Верно! Но одобрить заявку не удалось - подайте её заново."
TEXT_EXHAUSTED = "❌ Слишком много попыток. Заявка отклонена."
TEXT_SELF_EXCLUDED = "👌 Понятно. Заявка отклонена."
TEXT_TEXT_MODE = "⌨️ Текстовый режим включён"
TEXT_TEXT_MODE_ACTIVE = "ℹ️ Текстовый режим уже включён"
TEXT_TEXT_MODE_FAILED = "❌ Не удалось показать текстовый режим"


class AdmissionController:
    """
    Автомат допуска по заявкам.

    Args:
        platform: Адаптер Telegram
        store: Хранилище ожидающих капч
        policy: Хранилище политики групп
        generator: Генератор капч
        settings: Числовая политика (TTL, попытки, пауза)
        clock: Источник времени (unix, секунды)
    """

    def __init__(
        self,
        platform: ChatPlatform,
        store: PendingChallengeStore,
        policy: SqlGroupPolicyStore,
        generator: ChallengeGenerator,
        settings: GateSettings,
        clock: Callable[[], float] = time.time,
    ):
        self.platform = platform
        self.store = store
        self.policy = policy
        self.generator = generator
        self.settings = settings
        self.clock = clock

    # ═══════════════════════════════════════════════════════════════════════════
    # ЗАЯВКА НА ВСТУПЛЕНИЕ
    # ═══════════════════════════════════════════════════════════════════════════

    async def on_join_request(
        self,
        chat_id: int,
        user_id: int,
        user_chat_id: int,
        display_name: Optional[str] = None,
        chat_title: Optional[str] = None,
    ) -> AdmissionOutcome:
        """
        Обрабатывает заявку на вступление.

        Args:
            chat_id: Группа
            user_id: Заявитель
            user_chat_id: Личный чат заявителя для доставки капчи
            display_name: Имя заявителя
            chat_title: Название группы

        Returns:
            AdmissionOutcome с решением DENIED / AUTO_APPROVED / CHALLENGED / DELIVERY_FAILED
        """
        log_join_request(display_name, user_id, chat_title, chat_id)
        policy = await self.policy.read(chat_id)

        # ─── Чёрный список: отклонить и забанить, капчу не создаём ───
        if policy.is_denied(user_id):
            await self.platform.decline_join(chat_id, user_id)
            await self.platform.ban_member(chat_id, user_id)
            logger.info(f"🚫 [ADMISSION] Чёрный список: chat_id={chat_id}, user_id={user_id}")
            log_user_banned(display_name, user_id, chat_title, chat_id)
            return AdmissionOutcome(Decision.DENIED)

        # ─── Белый список или недавно проверен: одобряем без капчи ───
        if policy.is_trusted(user_id):
            result = await self.platform.approve_join(chat_id, user_id)
            if result.ok:
                await self.policy.record_verified(chat_id, user_id, self.clock())
                await self.send_welcome(chat_id, user_id, user_chat_id, chat_title=chat_title)
            logger.info(
                f"✅ [ADMISSION] Автоодобрение: chat_id={chat_id}, user_id={user_id}, ok={result.ok}"
            )
            return AdmissionOutcome(Decision.AUTO_APPROVED, approved=result.ok)

        # ─── Капча ───
        challenge = self.generator.generate()
        now = self.clock()
        record = PendingChallenge(
            chat_id=chat_id,
            user_id=user_id,
            user_chat_id=user_chat_id,
            nonce=challenge.nonce,
            question=challenge.question,
            options=challenge.options,
            correct_option_index=challenge.correct_index,
            max_attempts=self.settings.effective_max_attempts,
            created_at=now,
            expires_at=now + self.settings.challenge_ttl_seconds,
            chat_title=chat_title,
            display_name=display_name,
        )
        await self.store.put(record)

        sent = await self.platform.send_message(
            user_chat_id,
            render_prompt_text(record, self.settings.challenge_ttl_seconds),
            reply_markup=challenge_keyboard(record),
        )
        if not sent.ok:
            # Пользователь не сможет ответить - отклоняем сразу
            await self.platform.decline_join(chat_id, user_id)
            await self.store.remove(chat_id, user_id, nonce=record.nonce)
            logger.warning(
                f"⚠️ [ADMISSION] Капча не доставлена, заявка отклонена: "
                f"chat_id={chat_id}, user_id={user_id}, error={sent.error}"
            )
            return AdmissionOutcome(Decision.DELIVERY_FAILED, record=record)

        message_id = getattr(sent.value, "message_id", None)
        await self._remember_prompt(record, message_id)

        log_captcha_sent(display_name, user_id, chat_title, chat_id)
        logger.info(
            f"🧩 [ADMISSION] Капча отправлена: chat_id={chat_id}, user_id={user_id}, "
            f"attempts={record.max_attempts}, ttl={self.settings.challenge_ttl_seconds}s"
        )
        return AdmissionOutcome(Decision.CHALLENGED, record=record)

    async def _remember_prompt(self, record: PendingChallenge, message_id: Optional[int]) -> None:
        if message_id is None:
            return
        record.last_prompt_message_id = message_id
        await self.store.set_prompt_message(record.chat_id, record.user_id, record.nonce, message_id)

    # ═══════════════════════════════════════════════════════════════════════════
    # ОТВЕТ НА КАПЧУ
    # ═══════════════════════════════════════════════════════════════════════════

    async def _acquire(
        self,
        actor_id: int,
        chat_id: int,
        user_id: int,
        nonce: str,
        message_id: Optional[int] = None,
    ):
        """
        Общие шаги для всех ответов: владелец, захват, истечение.

        Returns:
            (запись, None) при успешном захвате или (None, итог) если обработка закончена
        """
        if actor_id != user_id:
            logger.warning(
                f"🚫 [CAPTCHA_HIJACK] Попытка нажать чужую капчу: "
                f"clicker={actor_id}, owner={user_id}, chat={chat_id}"
            )
            return None, AdmissionOutcome(Decision.NOT_OWNER, TEXT_NOT_OWNER)

        lock = await self.store.get_and_lock(chat_id, user_id, nonce)
        if lock.status in (LockStatus.NOT_FOUND, LockStatus.NONCE_MISMATCH):
            return None, AdmissionOutcome(Decision.STALE, TEXT_STALE)
        if lock.status == LockStatus.ALREADY_PROCESSING:
            return None, AdmissionOutcome(Decision.BUSY, TEXT_BUSY)

        record = lock.record
        if record.last_prompt_message_id is None and message_id is not None:
            # Ответ пришёл раньше, чем контроллер сохранил ID сообщения
            record.last_prompt_message_id = message_id
        if record.is_expired(self.clock()):
            return None, await self._expire(record)
        return record, None

    async def on_response(
        self,
        actor_id: int,
        chat_id: int,
        user_id: int,
        nonce: str,
        choice: int,
        method: str = "Кнопка",
        message_id: Optional[int] = None,
    ) -> AdmissionOutcome:
        """
        Обрабатывает ответ на капчу.

        Args:
            actor_id: Кто нажал кнопку или написал ответ
            chat_id: Группа из callback-данных
            user_id: Владелец капчи из callback-данных
            nonce: Nonce из callback-данных
            choice: Индекс выбранного варианта (с 0)
            method: Способ ответа для лога
            message_id: Сообщение с капчей, если ответ пришёл кнопкой

        Returns:
            AdmissionOutcome с текстом для пользователя
        """
        record, outcome = await self._acquire(actor_id, chat_id, user_id, nonce, message_id)
        if outcome is not None:
            return outcome

        now = self.clock()

        # ─── Пауза после неверного ответа: попытка не расходуется ───
        wait = record.cooldown_left(now)
        if wait > 0:
            await self.store.release(record)
            return AdmissionOutcome(Decision.COOLDOWN, f"⏳ Подождите {wait} сек.", record=record)

        if not 0 <= choice < len(record.options):
            await self.store.release(record)
            return AdmissionOutcome(Decision.INVALID_CHOICE, TEXT_INVALID_CHOICE, record=record)

        if choice == record.correct_option_index:
            return await self._approve(record, method)

        # ─── Неверный ответ ───
        record.attempts += 1
        if record.attempts >= record.max_attempts:
            await self._decline_and_remove(record, ban=False, prompt_text=TEXT_EXHAUSTED)
            log_captcha_failed(record.display_name, user_id, record.chat_title, chat_id)
            logger.info(
                f"❌ [ADMISSION] Попытки исчерпаны: chat_id={chat_id}, user_id={user_id}, "
                f"attempts={record.attempts}"
            )
            return AdmissionOutcome(Decision.EXHAUSTED, TEXT_EXHAUSTED, record=record)

        record.cooldown_until = now + self.settings.cooldown_seconds
        await self.store.release(record)
        logger.info(
            f"🔁 [ADMISSION] Неверный ответ: chat_id={chat_id}, user_id={user_id}, "
            f"attempts={record.attempts}/{record.max_attempts}"
        )
        return AdmissionOutcome(
            Decision.RETRY,
            f"❌ Неверно. Осталось попыток: {record.remaining_attempts}. "
            f"Подождите {self.settings.cooldown_seconds} сек.",
            record=record,
        )

    async def on_text_answer(self, actor_id: int, text: Optional[str]) -> Optional[AdmissionOutcome]:
        """
        Ответ сообщением в личном чате (текстовый режим).

        Отвечает на самую новую капчу пользователя с включённым текстовым режимом.

        Returns:
            None если сообщение не является ответом - его обрабатывают дальше
        """
        number = parse_text_choice(text)
        if number is None:
            return None

        candidates = [
            record for record in await self.store.list_for_user(actor_id)
            if record.text_mode_enabled
        ]
        if not candidates:
            return None

        record = max(candidates, key=lambda item: item.created_at)
        if number > len(record.options):
            return None

        return await self.on_response(
            actor_id, record.chat_id, record.user_id, record.nonce, number - 1, method="Текст",
        )

    async def on_enable_text_mode(
        self,
        actor_id: int,
        chat_id: int,
        user_id: int,
        nonce: str,
        message_id: Optional[int],
    ) -> AdmissionOutcome:
        """Переключает капчу на текстовый ввод и цифровую клавиатуру"""
        record, outcome = await self._acquire(actor_id, chat_id, user_id, nonce, message_id)
        if outcome is not None:
            return outcome

        if record.text_mode_enabled:
            await self.store.release(record)
            return AdmissionOutcome(Decision.TEXT_MODE_ACTIVE, TEXT_TEXT_MODE_ACTIVE, record=record)

        target_message_id = message_id or record.last_prompt_message_id
        edited = None
        if target_message_id is not None:
            edited = await self.platform.edit_message(
                record.user_chat_id,
                target_message_id,
                render_text_mode_text(record),
                reply_markup=text_mode_keyboard(record),
            )
        if edited is None or not edited.ok:
            await self.store.release(record)
            return AdmissionOutcome(Decision.TEXT_MODE_FAILED, TEXT_TEXT_MODE_FAILED, record=record)

        record.text_mode_enabled = True
        record.last_prompt_message_id = target_message_id
        await self.store.release(record)
        return AdmissionOutcome(Decision.TEXT_MODE, TEXT_TEXT_MODE, record=record)

    async def on_not_me(
        self,
        actor_id: int,
        chat_id: int,
        user_id: int,
        nonce: str,
        message_id: Optional[int] = None,
    ) -> AdmissionOutcome:
        """Кнопка "это был не я": отклонить заявку и забанить в группе"""
        record, outcome = await self._acquire(actor_id, chat_id, user_id, nonce, message_id)
        if outcome is not None:
            return outcome

        await self._decline_and_remove(record, ban=True, prompt_text=TEXT_SELF_EXCLUDED)
        log_captcha_failed(record.display_name, user_id, record.chat_title, chat_id, reason="Это был не я")
        logger.info(f"🚫 [ADMISSION] Самоисключение: chat_id={chat_id}, user_id={user_id}")
        return AdmissionOutcome(Decision.SELF_EXCLUDED, TEXT_SELF_EXCLUDED, record=record)

    # ═══════════════════════════════════════════════════════════════════════════
    # ТЕРМИНАЛЬНЫЕ ПЕРЕХОДЫ
    # ═══════════════════════════════════════════════════════════════════════════

    async def _approve(self, record: PendingChallenge, method: str) -> AdmissionOutcome:
        result = await self.platform.approve_join(record.chat_id, record.user_id)
        # Запись удаляется в любом случае, повторов нет
        await self.store.remove(record.chat_id, record.user_id, nonce=record.nonce)

        if record.last_prompt_message_id is not None:
            await self.platform.delete_message(record.user_chat_id, record.last_prompt_message_id)

        if not result.ok:
            logger.error(
                f"❌ [ADMISSION] Не удалось одобрить заявку после верного ответа: "
                f"chat_id={record.chat_id}, user_id={record.user_id}, error={result.error}"
            )
            await self.platform.send_message(record.user_chat_id, TEXT_APPROVE_FAILED)
            return AdmissionOutcome(Decision.APPROVED, TEXT_APPROVE_FAILED, approved=False, record=record)

        await self.policy.record_verified(record.chat_id, record.user_id, self.clock())
        await self.send_welcome(
            record.chat_id, record.user_id, record.user_chat_id, chat_title=record.chat_title,
        )
        log_captcha_solved(record.display_name, record.user_id, record.chat_title, record.chat_id, method)
        logger.info(f"✅ [ADMISSION] Капча решена: chat_id={record.chat_id}, user_id={record.user_id}")
        return AdmissionOutcome(Decision.APPROVED, TEXT_APPROVED, approved=True, record=record)

    async def _expire(self, record: PendingChallenge) -> AdmissionOutcome:
        await self._decline_and_remove(record, ban=False, prompt_text=TEXT_EXPIRED)
        log_captcha_failed(record.display_name, record.user_id, record.chat_title, record.chat_id, reason="Время истекло")
        logger.info(f"⏰ [ADMISSION] Капча истекла: chat_id={record.chat_id}, user_id={record.user_id}")
        return AdmissionOutcome(Decision.EXPIRED, TEXT_EXPIRED, record=record)

    async def _decline_and_remove(self, record: PendingChallenge, ban: bool, prompt_text: str) -> None:
        await self.platform.decline_join(record.chat_id, record.user_id)
        if ban:
            await self.platform.ban_member(record.chat_id, record.user_id)
        await self.store.remove(record.chat_id, record.user_id, nonce=record.nonce)
        if record.last_prompt_message_id is not None:
            await self.platform.edit_message(record.user_chat_id, record.last_prompt_message_id, prompt_text)

    # ═══════════════════════════════════════════════════════════════════════════
    # ПРИВЕТСТВИЕ И ПРАВИЛА
    # ═══════════════════════════════════════════════════════════════════════════

    async def send_welcome(
        self,
        chat_id: int,
        user_id: int,
        target_chat_id: int,
        view: str = WELCOME_VIEW,
        chat_title: Optional[str] = None,
        edit_message_id: Optional[int] = None,
    ) -> bool:
        """
        Показывает приветствие или правила группы с кнопкой переключения.

        Если передан edit_message_id, сначала пробует отредактировать
        сообщение, при ошибке отправляет новое.

        Returns:
            True если сообщение показано
        """
        policy = await self.policy.read(chat_id)
        if chat_title is None:
            title_result = await self.platform.get_chat_title(chat_id)
            chat_title = title_result.value if title_result.ok else None

        template = policy.rules_message if view == RULES_VIEW else policy.welcome_message
        text = render_template(template, chat_title)
        keyboard = welcome_keyboard(chat_id, user_id, view)

        if edit_message_id is not None:
            edited = await self.platform.edit_message(target_chat_id, edit_message_id, text, reply_markup=keyboard)
            if edited.ok:
                return True

        sent = await self.platform.send_message(target_chat_id, text, reply_markup=keyboard)
        return sent.ok

    async def on_welcome_toggle(
        self,
        actor_id: int,
        chat_id: int,
        user_id: int,
        view: str,
        message_id: Optional[int],
    ) -> AdmissionOutcome:
        """Переключение приветствие <-> правила в личном чате"""
        if actor_id != user_id:
            return AdmissionOutcome(Decision.NOT_OWNER, TEXT_NOT_OWNER)
        target_view = RULES_VIEW if view == RULES_VIEW else WELCOME_VIEW
        await self.send_welcome(chat_id, user_id, actor_id, view=target_view, edit_message_id=message_id)
        return AdmissionOutcome(Decision.WELCOME_SHOWN)
