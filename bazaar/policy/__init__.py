"""
Policy — who may attempt what.

    from bazaar.policy import Policy, Action, Resource

    policy = Policy()
    policy.allows(Role.VENDOR, Action.FULFILL, Resource.ORDER_ITEM)  # True
"""

from bazaar.policy._rules import (
    Action,
    Resource,
    Effect,
    Rule,
    RULES,
    INHERITS,
    Policy,
)

__all__ = (
    "Action",
    "Resource",
    "Effect",
    "Rule",
    "RULES",
    "INHERITS",
    "Policy",
)
