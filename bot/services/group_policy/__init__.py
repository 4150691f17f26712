from bot.services.group_policy.policy_service import (
    ALLOW,
    DENY,
    PolicySnapshot,
    SqlGroupPolicyStore,
    render_template,
)

__all__ = [
    "ALLOW",
    "DENY",
    "PolicySnapshot",
    "SqlGroupPolicyStore",
    "render_template",
]
