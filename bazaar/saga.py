"""
Saga — sequential steps with compensation.

    from bazaar import saga as S

    placed = S.step(
        action=LazyCoroResult(lambda: orders.place(draft)),
        compensate=lambda order: orders.cancel_with_restore(order.id),
    ).then(lambda order: S.step(action=payments.attempt(order)))

    match await S.run(placed):
        case Ok(result):
            result.value
        case Error(failure):
            failure.error, failure.rollback_complete

When a step fails, the compensators of every earlier successful step run in
reverse order. A failing compensator is logged and does not stop the others.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from kungfu import Error, LazyCoroResult, Ok, Result

log = logging.getLogger("bazaar.saga")

# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[Any]]
"""Receives the value the step produced and undoes it."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """A single step: lazy action + optional compensator."""

    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None

    def then[U, E2](self, f: Callable[[T], Saga[U, E2]]) -> Then[T, U, E | E2]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U, E]:
    """Sequential composition: run inner, feed its value to f, run the result."""

    inner: Saga[T, E]
    f: Callable[[T], Saga[U, E]]

    def then[V, E2](self, g: Callable[[U], Saga[V, E2]]) -> Then[U, V, E | E2]:
        return Then(self, g)


type Saga[T, E] = SagaStep[T, E] | Then[Any, T, E]


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """The failing step's error plus what the rollback managed to undo."""

    error: E
    step_failed: int
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Construction
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    return SagaStep(action=action, compensate=compensate)


# ═══════════════════════════════════════════════════════════════════════════════
# Execution
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _Trail:
    steps: int = 0
    compensators: list[tuple[Any, Compensator[Any]]] = field(default_factory=list)


async def _execute(saga: Saga[Any, Any], trail: _Trail) -> Result[Any, Any]:
    match saga:
        case SagaStep(action, compensate):
            trail.steps += 1
            match await action:
                case Ok(value):
                    if compensate is not None:
                        trail.compensators.append((value, compensate))
                    return Ok(value)
                case Error(e):
                    return Error(e)
        case Then(inner, f):
            match await _execute(inner, trail):
                case Ok(value):
                    return await _execute(f(value), trail)
                case Error(e):
                    return Error(e)


async def _rollback(trail: _Trail) -> tuple[int, int]:
    """Run recorded compensators in reverse. Returns (run, failed)."""
    ran = 0
    failed = 0
    for value, compensate in reversed(trail.compensators):
        try:
            outcome = await compensate(value)
        except Exception:
            failed += 1
            log.exception("saga compensator failed for %r", value)
            continue
        match outcome:
            case Error(e):
                failed += 1
                log.error("saga compensator returned error for %r: %r", value, e)
            case _:
                ran += 1
    return ran, failed


async def run[T, E](saga: Saga[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    trail = _Trail()
    match await _execute(saga, trail):
        case Ok(value):
            return Ok(SagaResult(
                value=value,
                steps_executed=trail.steps,
                compensators_recorded=len(trail.compensators),
            ))
        case Error(e):
            ran, failed = await _rollback(trail)
            if failed:
                log.error("saga rollback incomplete at step %d: %d of %d compensators failed",
                          trail.steps, failed, ran + failed)
            return Error(SagaError(
                error=e,
                step_failed=trail.steps,
                compensators_run=ran,
                compensators_failed=failed,
            ))


__all__ = (
    "Compensator",
    "SagaStep",
    "Then",
    "Saga",
    "SagaResult",
    "SagaError",
    "step",
    "run",
)
