"""
Authorization policy — (role, action, resource) → allow/deny as data.

Ownership (is this *your* order?) is checked by the aggregate that owns the
record; this table only answers whether the role may attempt the action.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum, StrEnum, auto

from kungfu import Error, Ok, Result

from bazaar.errors import Errors, MarketError
from bazaar.identity import Actor, Role


class Action(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    CANCEL = "cancel"
    FULFILL = "fulfill"
    PAY = "pay"
    MANAGE = "manage"
    DELETE = "delete"
    PERMANENT_DELETE = "permanent_delete"


class Resource(StrEnum):
    ORDER = "order"
    ORDER_ITEM = "order_item"
    PRODUCT = "product"
    USER = "user"


class Effect(Enum):
    ALLOW = auto()
    DENY = auto()


@dataclass(frozen=True, slots=True)
class Rule:
    role: Role
    action: Action
    resource: Resource
    effect: Effect = Effect.ALLOW


# ═══════════════════════════════════════════════════════════════════════════════
# Rule Table
# ═══════════════════════════════════════════════════════════════════════════════

RULES: tuple[Rule, ...] = (
    # Buyers
    Rule(Role.BUYER, Action.READ, Resource.ORDER),
    Rule(Role.BUYER, Action.CREATE, Resource.ORDER),
    Rule(Role.BUYER, Action.PAY, Resource.ORDER),
    # Vendors shop too, and fulfil their own lines
    Rule(Role.VENDOR, Action.READ, Resource.ORDER),
    Rule(Role.VENDOR, Action.CREATE, Resource.ORDER),
    Rule(Role.VENDOR, Action.PAY, Resource.ORDER),
    Rule(Role.VENDOR, Action.FULFILL, Resource.ORDER_ITEM),
    Rule(Role.VENDOR, Action.CREATE, Resource.PRODUCT),
    # Admins
    Rule(Role.ADMIN, Action.READ, Resource.ORDER),
    Rule(Role.ADMIN, Action.UPDATE, Resource.ORDER),
    Rule(Role.ADMIN, Action.CANCEL, Resource.ORDER),
    Rule(Role.ADMIN, Action.CREATE, Resource.PRODUCT),
    Rule(Role.ADMIN, Action.MANAGE, Resource.USER),
    Rule(Role.ADMIN, Action.DELETE, Resource.USER),
    # Master admin only
    Rule(Role.MASTER_ADMIN, Action.PERMANENT_DELETE, Resource.USER),
)

# A role also holds every grant of the role it inherits from.
INHERITS: Mapping[Role, Role] = {Role.MASTER_ADMIN: Role.ADMIN}


# ═══════════════════════════════════════════════════════════════════════════════
# Policy
# ═══════════════════════════════════════════════════════════════════════════════


class Policy:
    """
    Evaluates the rule table. Anything not granted is denied; an explicit
    DENY beats any ALLOW.

    Example:
        match policy.authorize(actor, Action.CANCEL, Resource.ORDER):
            case Ok(admin):
                ...
            case Error(e):
                return e  # 401 without actor, 403 otherwise
    """

    def __init__(self, rules: Iterable[Rule] = RULES, inherits: Mapping[Role, Role] = INHERITS) -> None:
        self._effects: dict[tuple[Role, Action, Resource], Effect] = {}
        for rule in rules:
            key = (rule.role, rule.action, rule.resource)
            if self._effects.get(key) is not Effect.DENY:
                self._effects[key] = rule.effect
        self._inherits = dict(inherits)

    def _lineage(self, role: Role) -> list[Role]:
        chain = [role]
        while (parent := self._inherits.get(chain[-1])) is not None and parent not in chain:
            chain.append(parent)
        return chain

    def allows(self, role: Role, action: Action, resource: Resource) -> bool:
        effects = [self._effects.get((r, action, resource)) for r in self._lineage(role)]
        if Effect.DENY in effects:
            return False
        return Effect.ALLOW in effects

    def authorize(
        self,
        actor: Actor | None,
        action: Action,
        resource: Resource,
    ) -> Result[Actor, MarketError]:
        if actor is None:
            return Error(Errors.authentication())
        if not self.allows(actor.role, action, resource):
            return Error(Errors.forbidden(
                "FORBIDDEN",
                f"Role '{actor.role}' may not {action} {resource.replace('_', ' ')}",
            ))
        return Ok(actor)


__all__ = (
    "Action",
    "Resource",
    "Effect",
    "Rule",
    "RULES",
    "INHERITS",
    "Policy",
)
