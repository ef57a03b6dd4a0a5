"""State graph definition and its fluent builder.

A graph is declared once, at process start, as an ordered list of states
and a list of guarded transitions. Declaration is strictly sequential: a
transition always leaves the state declared last.

Example:
    graph = (
        StateGraphBuilder()
        .state("draft")
        .transition("submit", "review")
        .state("review")
        .transition("approve", "done", on_transitioning=notify)
        .state("done")
        .end()
        .build()
    )
"""

from __future__ import annotations

from collections.abc import Callable, Hashable
from dataclasses import dataclass, replace
from typing import Any

from stateflow.domain.exceptions import GraphDefinitionException

TriggerFunction = Callable[[], Any]
TransitionCallback = Callable[[], None]


@dataclass(frozen=True)
class StateDef:
    """A declared state; is_end marks it terminal."""

    state: Hashable
    is_end: bool = False


@dataclass(frozen=True)
class TransitionDef:
    """Guarded edge between two states.

    Exactly one of trigger (a literal compared by equality) or
    trigger_function (evaluated on every decision) is set.
    """

    from_state: Hashable
    to_state: Hashable
    trigger: Any = None
    trigger_function: TriggerFunction | None = None
    on_transitioning: TransitionCallback | None = None

    def __post_init__(self) -> None:
        if (self.trigger is None) == (self.trigger_function is None):
            raise GraphDefinitionException(
                "A transition needs exactly one of a trigger or a trigger function",
                state=str(self.from_state),
            )

    @property
    def is_dynamic(self) -> bool:
        return self.trigger_function is not None


@dataclass(frozen=True)
class StateGraph:
    """Immutable graph description produced by StateGraphBuilder."""

    states: tuple[StateDef, ...]
    transitions: tuple[TransitionDef, ...]

    @property
    def initial_state(self) -> Hashable:
        """First declared state (where new flows start)."""
        if not self.states:
            raise GraphDefinitionException("Graph declares no states")
        return self.states[0].state

    def has_state(self, state: Hashable) -> bool:
        return any(s.state == state for s in self.states)

    def is_terminal(self, state: Hashable) -> bool:
        """Return whether any declaration of state is marked terminal."""
        return any(s.state == state and s.is_end for s in self.states)

    def transitions_from(self, state: Hashable) -> list[TransitionDef]:
        """Outgoing transitions of state, in declaration order."""
        return [t for t in self.transitions if t.from_state == state]


class StateGraphBuilder:
    """Fluent, sequential construction of a StateGraph.

    state() appends a state, transition() adds an edge out of the state
    appended last and end() marks that state terminal. Calling
    transition() or end() before any state() raises
    GraphDefinitionException.
    """

    def __init__(self) -> None:
        self._states: list[StateDef] = []
        self._transitions: list[TransitionDef] = []

    def _last_state(self, operation: str) -> StateDef:
        if not self._states:
            raise GraphDefinitionException(
                f"{operation}() called before any state() was declared"
            )
        return self._states[-1]

    def state(self, state: Hashable) -> StateGraphBuilder:
        """Append a new state."""
        if state is None:
            raise GraphDefinitionException("State identifier must not be None")
        self._states.append(StateDef(state=state))
        return self

    def transition(
        self,
        trigger: Any,
        to_state: Hashable,
        on_transitioning: TransitionCallback | None = None,
    ) -> StateGraphBuilder:
        """Add a transition from the last declared state to to_state.

        Args:
            trigger: Literal trigger value, or a zero-argument callable whose
                result is compared against the observed trigger.
            to_state: Target state.
            on_transitioning: Optional callback run before the state changes.
        """
        from_state = self._last_state("transition").state
        if callable(trigger):
            edge = TransitionDef(
                from_state=from_state,
                to_state=to_state,
                trigger_function=trigger,
                on_transitioning=on_transitioning,
            )
        else:
            edge = TransitionDef(
                from_state=from_state,
                to_state=to_state,
                trigger=trigger,
                on_transitioning=on_transitioning,
            )
        self._transitions.append(edge)
        return self

    def end(self) -> StateGraphBuilder:
        """Mark the last declared state as terminal."""
        last = self._last_state("end")
        self._states[-1] = replace(last, is_end=True)
        return self

    def build(self) -> StateGraph:
        """Freeze the declaration.

        Every declared state must be referenced by a transition or be
        terminal.
        """
        if not self._states:
            raise GraphDefinitionException("Graph declares no states")
        referenced = {t.from_state for t in self._transitions} | {
            t.to_state for t in self._transitions
        }
        for s in self._states:
            if s.state not in referenced and not s.is_end:
                raise GraphDefinitionException(
                    f"State {s.state!r} has no transitions and is not terminal",
                    state=str(s.state),
                )
        return StateGraph(states=tuple(self._states), transitions=tuple(self._transitions))
