"""
Graph — dependency-resolved computations over nodnod.

    from bazaar import graph as G

    @G.node
    class BuyerNode:
        def __init__(self, user: User) -> None:
            self.user = user

        @classmethod
        async def __compose__(cls, request: CheckoutRequest, users: UserStore) -> "BuyerNode":
            ...

    buyer = await G.compose(BuyerNode, G.given(CheckoutRequest, request), G.given(UserStore, users))

Independent nodes run concurrently. Exceptions raised in __compose__ propagate
out of compose().
"""

from dataclasses import dataclass
from typing import Any, cast

from nodnod import EventLoopAgent, Node, Scope, Value
from nodnod import scalar_node as node


@dataclass(frozen=True, slots=True)
class Injection[T]:
    """A value placed into the scope under an explicit type."""

    typ: type[T]
    value: T


def given[T](typ: type[T], value: T) -> Injection[T]:
    return Injection(typ, value)


async def compose[T](target: type[T], *injections: Injection[Any]) -> T:
    """Build the graph that ends at target, inject inputs, run it."""
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    scope = Scope(detail="compose")
    async with scope:
        for injection in injections:
            scope.push(Value(injection.typ, injection.value))
        await agent.run(scope, {})
        result = scope.get(target)
        if result is None:
            raise KeyError(f"{target.__name__} was not produced")
        return cast(T, result.value)


__all__ = ("node", "Injection", "given", "compose")
