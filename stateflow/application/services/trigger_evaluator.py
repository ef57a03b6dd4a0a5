"""Picks the transition that fires from a flow's current state (implements the graph's guards)."""

from __future__ import annotations

import logging
from collections.abc import Hashable
from enum import Enum
from typing import Any

from stateflow.domain.entities.state_graph import StateGraph, TransitionDef

logger = logging.getLogger(__name__)


def state_key(state: Hashable) -> str:
    """Stored form of a state (enum states by value)."""
    if isinstance(state, Enum):
        return str(state.value)
    return str(state)


class TriggerEvaluator:
    """Evaluates observed triggers against a built StateGraph.

    Literal triggers match by equality with the observed trigger. Trigger
    functions are called on every decision and their result is compared
    the same way. The first match in declaration order wins; declaring
    two transitions with the same trigger out of one state is a modeling
    error that is not detected here.
    """

    def __init__(self, graph: StateGraph) -> None:
        self._graph = graph

    @property
    def graph(self) -> StateGraph:
        return self._graph

    def state_for_key(self, key: str | None) -> Hashable | None:
        """Graph state whose stored form is key, or None when it is not declared."""
        if key is None:
            return None
        for s in self._graph.states:
            if state_key(s.state) == key:
                return s.state
        return None

    def find_transition(
        self, current_state: Hashable, trigger: Any
    ) -> TransitionDef | None:
        """Return the transition that fires for trigger, or None (flow stays put)."""
        if trigger is None:
            return None
        for transition in self._graph.transitions_from(current_state):
            observed = (
                transition.trigger_function()
                if transition.trigger_function is not None
                else transition.trigger
            )
            if observed is not None and observed == trigger:
                return transition
        return None

    def apply(self, transition: TransitionDef) -> Hashable:
        """Run the transition's callback (before the state changes) and return its target."""
        if transition.on_transitioning is not None:
            transition.on_transitioning()
        logger.debug(
            "Transition %r -> %r", transition.from_state, transition.to_state
        )
        return transition.to_state

    def evaluate(self, current_state: Hashable, trigger: Any) -> Hashable:
        """Return the next state for trigger; the current state when nothing matches."""
        transition = self.find_transition(current_state, trigger)
        if transition is None:
            return current_state
        return self.apply(transition)
