# bot/services/captcha/generator_service.py
"""
Генератор капчи "сломанный узор".

Каждый вариант ответа - ряд эмодзи, повторяющий короткий узор.
В ровно одном ряду один элемент заменён эмодзи не из узора.
Пользователь должен найти этот ряд.

Все ряды одной длины, порядок рядов перемешивается CSPRNG,
поэтому правильный ответ не угадывается по позиции или длине.
Единичная замена в ряду из 8 элементов не может дать периодический
ряд с периодом до 4, поэтому правильный ответ всегда однозначен.
"""

import logging
import random
import secrets
from typing import List, Optional, Sequence

from bot.services.captcha.challenge_models import Challenge


logger = logging.getLogger(__name__)


# Пул эмодзи: только одиночные кодовые точки без вариационных селекторов,
# чтобы все ряды имели одинаковую видимую длину
EMOJI_POOL = (
    "🍎", "🍌", "🍇", "🍒", "🍉", "🍋", "🥝", "🍑", "🍍", "🥥",
    "🥕", "🌽", "🧀", "🍪", "🍩", "🍫", "🌟", "🔥", "🌊", "🍄",
)

# Длина ряда
ROW_LENGTH = 8
# Длина повторяющегося узора
MIN_PATTERN_LENGTH = 2
MAX_PATTERN_LENGTH = 4

# Подписи вариантов в тексте и на кнопках
OPTION_LABELS = ("A", "B", "C", "D")

QUESTION_TEXT = "В каком ряду нарушен повторяющийся узор?"

# Длина nonce в байтах (64 бита энтропии, 16 hex-символов)
NONCE_BYTES = 8


class ChallengePoolError(ValueError):
    """Пул контента не может дать нужное число различных вариантов"""


def generate_nonce(nbytes: int = NONCE_BYTES) -> str:
    """Непредсказуемый одноразовый токен (hex)"""
    return secrets.token_hex(nbytes)


def validate_pool(pool: Sequence[str], option_count: int) -> None:
    """
    Проверяет пул при старте бота.

    Raises:
        ChallengePoolError: неверное число вариантов, дубликаты или мало эмодзи
    """
    if not 2 <= option_count <= len(OPTION_LABELS):
        raise ChallengePoolError(
            f"Число вариантов должно быть от 2 до {len(OPTION_LABELS)}, получено {option_count}"
        )
    if len(set(pool)) != len(pool):
        raise ChallengePoolError("Пул эмодзи содержит дубликаты")
    # Узор максимальной длины + одна замена не из узора
    required = MAX_PATTERN_LENGTH + 1
    if len(pool) < required:
        raise ChallengePoolError(
            f"В пуле {len(pool)} эмодзи, нужно минимум {required}"
        )


class ChallengeGenerator:
    """
    Генерирует капчи из фиксированного пула.

    Args:
        pool: Пул эмодзи
        option_count: Число вариантов ответа (2-4)
        rng: Источник случайности (по умолчанию secrets.SystemRandom)
    """

    def __init__(
        self,
        pool: Sequence[str] = EMOJI_POOL,
        option_count: int = 4,
        rng: Optional[random.Random] = None,
    ):
        validate_pool(pool, option_count)
        self.pool = tuple(pool)
        self.option_count = option_count
        self._rng = rng or secrets.SystemRandom()

    def _pattern_row(self) -> List[str]:
        length = self._rng.randint(MIN_PATTERN_LENGTH, MAX_PATTERN_LENGTH)
        pattern = self._rng.sample(self.pool, length)
        return [pattern[index % length] for index in range(ROW_LENGTH)]

    def _break_row(self, row: List[str]) -> List[str]:
        used = set(row)
        replacement = self._rng.choice([emoji for emoji in self.pool if emoji not in used])
        broken = list(row)
        broken[self._rng.randrange(ROW_LENGTH)] = replacement
        return broken

    def generate(self) -> Challenge:
        """
        Создаёт новую капчу.

        Returns:
            Challenge с перемешанными рядами, индексом сломанного ряда и свежим nonce
        """
        rows: List[str] = []
        # Сначала сломанный ряд, затем целые; повторы отбрасываем
        rows.append(" ".join(self._break_row(self._pattern_row())))
        while len(rows) < self.option_count:
            candidate = " ".join(self._pattern_row())
            if candidate not in rows:
                rows.append(candidate)

        broken_row = rows[0]
        self._rng.shuffle(rows)

        return Challenge(
            question=QUESTION_TEXT,
            options=rows,
            correct_index=rows.index(broken_row),
            nonce=generate_nonce(),
        )
