"""Tests for TriggerEvaluator (literal and function triggers, callbacks, no-match)."""

from enum import Enum

import pytest

from stateflow.application.services.trigger_evaluator import TriggerEvaluator, state_key
from stateflow.domain.entities.state_graph import StateGraphBuilder


class Phase(Enum):
    START = "start"
    END = "end"


def test_no_matching_trigger_leaves_state_unchanged(approval_graph) -> None:
    evaluator = TriggerEvaluator(approval_graph)
    assert evaluator.find_transition("draft", "Approve") is None
    assert evaluator.evaluate("draft", "Approve") == "draft"
    assert evaluator.evaluate("draft", "Approve") == "draft"


def test_none_trigger_never_fires(approval_graph) -> None:
    assert TriggerEvaluator(approval_graph).evaluate("draft", None) == "draft"


def test_matching_trigger_moves_to_target(approval_graph) -> None:
    evaluator = TriggerEvaluator(approval_graph)
    assert evaluator.evaluate("draft", "Submit") == "review"
    assert evaluator.evaluate("review", "Reject") == "draft"
    assert evaluator.evaluate("review", "Approve") == "done"


def test_callback_runs_once_before_state_changes() -> None:
    """on_transitioning runs exactly once, while the caller still holds the old state."""
    calls: list[str] = []
    state = {"current": "A"}

    def on_move() -> None:
        calls.append(state["current"])

    graph = (
        StateGraphBuilder()
        .state("A")
        .transition("go", "B", on_transitioning=on_move)
        .state("B")
        .end()
        .build()
    )
    state["current"] = TriggerEvaluator(graph).evaluate(state["current"], "go")
    assert state["current"] == "B"
    assert calls == ["A"]


def test_callback_not_run_without_match() -> None:
    calls: list[int] = []
    graph = (
        StateGraphBuilder()
        .state("A")
        .transition("go", "B", on_transitioning=lambda: calls.append(1))
        .state("B")
        .end()
        .build()
    )
    TriggerEvaluator(graph).evaluate("A", "stop")
    assert calls == []


def test_trigger_function_is_evaluated_on_every_decision() -> None:
    """Function triggers are called each time and their result is compared."""
    outcomes = iter(["pending", "approved"])
    seen: list[str] = []

    def outcome() -> str:
        value = next(outcomes)
        seen.append(value)
        return value

    graph = StateGraphBuilder().state("A").transition(outcome, "B").state("B").end().build()
    evaluator = TriggerEvaluator(graph)
    assert evaluator.evaluate("A", "approved") == "A"
    assert evaluator.evaluate("A", "approved") == "B"
    assert seen == ["pending", "approved"]


def test_trigger_function_returning_none_does_not_match() -> None:
    graph = StateGraphBuilder().state("A").transition(lambda: None, "B").state("B").end().build()
    assert TriggerEvaluator(graph).find_transition("A", "anything") is None


def test_first_matching_transition_in_declaration_order_wins() -> None:
    graph = (
        StateGraphBuilder()
        .state("A")
        .transition("go", "B")
        .transition("go", "C")
        .state("B")
        .end()
        .state("C")
        .end()
        .build()
    )
    assert TriggerEvaluator(graph).evaluate("A", "go") == "B"


def test_failing_callback_propagates_and_state_is_not_returned() -> None:
    def boom() -> None:
        raise RuntimeError("callback failed")

    graph = (
        StateGraphBuilder().state("A").transition("go", "B", on_transitioning=boom).state("B").end().build()
    )
    with pytest.raises(RuntimeError, match="callback failed"):
        TriggerEvaluator(graph).evaluate("A", "go")


def test_state_key_and_lookup_for_enum_states() -> None:
    graph = (
        StateGraphBuilder().state(Phase.START).transition("go", Phase.END).state(Phase.END).end().build()
    )
    evaluator = TriggerEvaluator(graph)
    assert state_key(Phase.START) == "start"
    assert state_key("draft") == "draft"
    assert evaluator.state_for_key("end") is Phase.END
    assert evaluator.state_for_key("missing") is None
    assert evaluator.state_for_key(None) is None
