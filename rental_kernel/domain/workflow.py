"""
Canonical workflow types (``rental_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for state machines: Guard, Transition and Workflow,
plus the lookups the lifecycle service needs (which states allow an
action, which state an action leads to) and the GuardExecutor that
decides guarded transitions.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* A guard with no registered evaluator never passes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rental_kernel.logging_config import get_logger

logger = get_logger("domain.workflow")


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires.

    Descriptive; a GuardExecutor holds the evaluation logic per name.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_inventory: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in states of {self.name}"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Transition {t.action} {t.from_state}->{t.to_state} "
                    f"references unknown state in {self.name}"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Terminal state '{t.from_state}' has outgoing transition {t.action}"
                )

    def sources_for(self, action: str) -> tuple[str, ...]:
        """States from which ``action`` may fire, in declaration order."""
        seen: list[str] = []
        for t in self.transitions:
            if t.action == action and t.from_state not in seen:
                seen.append(t.from_state)
        return tuple(seen)

    def targets_for(self, action: str, from_state: str) -> tuple[str, ...]:
        return tuple(
            t.to_state
            for t in self.transitions
            if t.action == action and t.from_state == from_state
        )

    def can(self, action: str, from_state: str) -> bool:
        return bool(self.targets_for(action, from_state))

    def resolve(
        self,
        action: str,
        from_state: str,
        evaluate: Callable[[Guard], bool],
    ) -> str | None:
        """
        Target state ``action`` leads to from ``from_state``.

        Guarded transitions are tried first, in declaration order, and the
        first whose guard passes wins.  Otherwise the unguarded transition
        applies.  None when no transition matches.
        """
        fallback: str | None = None
        for t in self.transitions:
            if t.action != action or t.from_state != from_state:
                continue
            if t.guard is None:
                if fallback is None:
                    fallback = t.to_state
            elif evaluate(t.guard):
                return t.to_state
        return fallback


class GuardExecutor:
    """Evaluates workflow guards against a context mapping, by guard name."""

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[dict[str, Any]], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[dict[str, Any]], bool]) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: dict[str, Any] | None = None) -> bool:
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return bool(fn(context or {}))
