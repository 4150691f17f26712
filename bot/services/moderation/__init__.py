# ═══════════════════════════════════════════════════════════════════════════
# СЕРВИСЫ МОДЕРАЦИИ
# ═══════════════════════════════════════════════════════════════════════════
# parser - цель, длительность, причина
# permissions - проверки прав и наборы ChatPermissions
# warnings_service - предупреждения участников
# ═══════════════════════════════════════════════════════════════════════════

from bot.services.moderation.parser import (
    DurationParse,
    TargetUser,
    format_duration,
    format_user_label,
    parse_duration,
    parse_int_arg,
    parse_optional_duration,
    resolve_target,
    resolve_target_args,
    split_args,
)
from bot.services.moderation.permissions import (
    LOCK_PERMISSIONS,
    MUTE_PERMISSIONS,
    UNLOCK_PERMISSIONS,
    UNMUTE_PERMISSIONS,
    ensure_bot_permissions,
    ensure_group_admin,
    is_chat_admin,
)
from bot.services.moderation.warnings_service import (
    add_warning,
    get_warning,
    remove_warning,
)

__all__ = [
    "DurationParse",
    "TargetUser",
    "format_duration",
    "format_user_label",
    "parse_duration",
    "parse_int_arg",
    "parse_optional_duration",
    "resolve_target",
    "resolve_target_args",
    "split_args",
    "LOCK_PERMISSIONS",
    "MUTE_PERMISSIONS",
    "UNLOCK_PERMISSIONS",
    "UNMUTE_PERMISSIONS",
    "ensure_bot_permissions",
    "ensure_group_admin",
    "is_chat_admin",
    "add_warning",
    "get_warning",
    "remove_warning",
]
