# bot/services/captcha/challenge_models.py
"""
Модели данных капчи для заявок на вступление.

Содержит:
- Challenge - сгенерированный вопрос с вариантами и nonce
- PendingChallenge - запись ожидающей проверки (одна на пару chat/user)
- LockResult - результат атомарного захвата записи
"""

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class ChallengeStatus(str, Enum):
    """Состояние записи в хранилище"""
    # Ждёт ответа пользователя
    PENDING = "pending"
    # Захвачена обработчиком, другие ответы отклоняются
    PROCESSING = "processing"


class LockStatus(str, Enum):
    """Исход get_and_lock"""
    LOCKED = "locked"
    NOT_FOUND = "not_found"
    NONCE_MISMATCH = "nonce_mismatch"
    ALREADY_PROCESSING = "already_processing"


@dataclass
class Challenge:
    """
    Одноразовый вопрос с вариантами ответа.

    correct_index никогда не показывается пользователю.
    """
    question: str
    options: List[str]
    correct_index: int
    nonce: str


@dataclass
class PendingChallenge:
    """
    Ожидающая проверка для пары (chat_id, user_id).

    Attributes:
        chat_id: Группа, в которую подана заявка
        user_id: Заявитель
        user_chat_id: Личный чат для доставки капчи
        nonce: Одноразовый токен, обязателен в каждом ответе
        question: Текст вопроса
        options: Варианты ответа по порядку (2-4)
        correct_option_index: Индекс правильного варианта
        max_attempts: Лимит попыток
        created_at: Время создания (unix, секунды)
        expires_at: Время истечения, не меняется после создания
        attempts: Использованные попытки
        status: pending / processing
        cooldown_until: До какого момента ответы не принимаются
        text_mode_enabled: Пользователь переключился на текстовый ввод
        last_prompt_message_id: ID сообщения с капчей в личном чате
        processing_since: Когда запись захвачена (для возврата брошенных)
        chat_title: Название группы для текстов
        display_name: Имя заявителя для логов
    """
    chat_id: int
    user_id: int
    user_chat_id: int
    nonce: str
    question: str
    options: List[str]
    correct_option_index: int
    max_attempts: int
    created_at: float
    expires_at: float
    attempts: int = 0
    status: ChallengeStatus = ChallengeStatus.PENDING
    cooldown_until: Optional[float] = None
    text_mode_enabled: bool = False
    last_prompt_message_id: Optional[int] = None
    processing_since: Optional[float] = None
    chat_title: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def key(self) -> Tuple[int, int]:
        return self.chat_id, self.user_id

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def cooldown_left(self, now: float) -> int:
        """Сколько целых секунд осталось ждать (0 если пауза закончилась)"""
        if self.cooldown_until is None or self.cooldown_until <= now:
            return 0
        remaining = self.cooldown_until - now
        # Округляем вверх, чтобы не показывать "подождите 0 сек."
        return int(remaining) + (1 if remaining % 1 else 0)

    def to_json(self) -> str:
        data = asdict(self)
        data["status"] = self.status.value
        return json.dumps(data, ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "PendingChallenge":
        data = json.loads(raw)
        data["status"] = ChallengeStatus(data.get("status", ChallengeStatus.PENDING.value))
        return cls(**data)

    def copy(self) -> "PendingChallenge":
        return PendingChallenge.from_json(self.to_json())


@dataclass
class LockResult:
    """Результат get_and_lock: статус и запись (если она есть)"""
    status: LockStatus
    record: Optional[PendingChallenge] = field(default=None)

    @property
    def locked(self) -> bool:
        return self.status == LockStatus.LOCKED
