from bot.services.federation.fanout_service import (
    FanOutResult,
    apply_to_all,
    build_federation_summary,
)
from bot.services.federation.federation_service import (
    FederationInfo,
    add_federation_ban,
    add_federation_chat,
    get_federation,
    get_federation_for_chat,
    remove_federation_ban,
    remove_federation_chat,
)

__all__ = [
    "FanOutResult",
    "apply_to_all",
    "build_federation_summary",
    "FederationInfo",
    "add_federation_ban",
    "add_federation_chat",
    "get_federation",
    "get_federation_for_chat",
    "remove_federation_ban",
    "remove_federation_chat",
]
