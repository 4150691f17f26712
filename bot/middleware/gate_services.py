from typing import Any, Awaitable, Callable, Dict

from aiogram.dispatcher.middlewares.base import BaseMiddleware
from aiogram.types import TelegramObject

from bot.services.captcha import AdmissionController, ChallengeGenerator, Sweeper
from bot.services.group_policy import SqlGroupPolicyStore


class GateServicesMiddleware(BaseMiddleware):
    """
    Передаёт в хендлеры сервисы, созданные при старте бота:
    admission, policy_store, generator, sweeper.
    """

    def __init__(
        self,
        admission: AdmissionController,
        policy_store: SqlGroupPolicyStore,
        generator: ChallengeGenerator,
        sweeper: Sweeper,
    ):
        super().__init__()
        self.services = {
            "admission": admission,
            "policy_store": policy_store,
            "generator": generator,
            "sweeper": sweeper,
        }

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data.update(self.services)
        return await handler(event, data)
