# bot/services/captcha/__init__.py
"""
Сервисы капчи для заявок на вступление.

Модули:
- challenge_models - записи капчи и результат захвата
- generator_service - генератор капчи "сломанный узор"
- pending_store - хранилище ожидающих капч (Redis и память)
- admission_service - контроллер допуска
- sweep_service - фоновая очистка просроченных капч
- prompt_service - тексты и клавиатуры
- callback_data - callback-данные кнопок
"""

from bot.services.captcha.challenge_models import (
    Challenge,
    ChallengeStatus,
    LockResult,
    LockStatus,
    PendingChallenge,
)
from bot.services.captcha.generator_service import (
    ChallengeGenerator,
    ChallengePoolError,
    generate_nonce,
)
from bot.services.captcha.pending_store import (
    MemoryChallengeStore,
    PendingChallengeStore,
    RedisChallengeStore,
)
from bot.services.captcha.admission_service import (
    AdmissionController,
    AdmissionOutcome,
    Decision,
)
from bot.services.captcha.sweep_service import Sweeper


__all__ = [
    "Challenge",
    "ChallengeStatus",
    "LockResult",
    "LockStatus",
    "PendingChallenge",
    "ChallengeGenerator",
    "ChallengePoolError",
    "generate_nonce",
    "MemoryChallengeStore",
    "PendingChallengeStore",
    "RedisChallengeStore",
    "AdmissionController",
    "AdmissionOutcome",
    "Decision",
    "Sweeper",
]
