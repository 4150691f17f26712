from redis.asyncio import Redis
import logging

from bot.config import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD

logger = logging.getLogger(__name__)

# Общий клиент Redis (в тестах подменяется на fakeredis)
redis = Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD,
    db=0,
    decode_responses=True,
)


async def test_connection():
    """
    Проверяет доступность Redis.

    Raises:
        Exception: если Redis недоступен - вызывающий код выбирает fallback
    """
    try:
        await redis.ping()
        logger.info(f"✅ Соединение с Redis ({REDIS_HOST}:{REDIS_PORT}) установлено")
    except Exception as e:
        logger.error(f"❌ Ошибка подключения к Redis ({REDIS_HOST}:{REDIS_PORT}): {e}")
        raise
