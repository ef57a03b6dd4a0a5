"""StateFlowRunner end-to-end tests against the in-memory document store."""

import pytest
from conftest import TEST_TENANT, LeadModel

from stateflow.application.use_cases.flows.run_state_flow import StateFlowRunner
from stateflow.domain.entities.state_graph import StateGraphBuilder
from stateflow.domain.enums import FlowStatus
from stateflow.domain.exceptions import FlowNotFoundException, GraphDefinitionException


async def _active_ids(repo, flow_name: str = "approval") -> list[str]:
    return [ref_id async for ref_id in repo.get_active_flows_ids(TEST_TENANT, flow_name)]


async def test_flow_lifecycle_and_active_ids(flow_repo, approval_graph) -> None:
    """Created -> Submit (Started) -> listed active -> Approve (Finished) -> no longer active."""
    runner = StateFlowRunner(flow_repo, approval_graph, "approval")

    created = await runner.start(TEST_TENANT, "F-1", LeadModel(company="Acme"), tags=["vip"])
    assert created.flow_status is FlowStatus.CREATED
    assert created.context.current_state == "draft"

    moved = await runner.fire(TEST_TENANT, "F-1", "Submit")
    assert moved.flow_status is FlowStatus.STARTED
    assert moved.context.current_state == "review"
    assert "F-1" in await _active_ids(flow_repo)

    finished = await runner.fire(TEST_TENANT, "F-1", "Approve")
    assert finished.flow_status is FlowStatus.FINISHED
    assert finished.context.current_state == "done"
    assert "F-1" not in await _active_ids(flow_repo)

    stored = await flow_repo.get_flow_by_ref(TEST_TENANT, "F-1")
    assert stored.flow_status is FlowStatus.FINISHED
    assert stored.context.model == LeadModel(company="Acme")
    assert stored.flow_tags == ["vip"]


async def test_finished_flow_ignores_further_triggers(flow_repo, approval_graph) -> None:
    runner = StateFlowRunner(flow_repo, approval_graph, "approval")
    await runner.start(TEST_TENANT, "F-1")
    await runner.fire(TEST_TENANT, "F-1", "Submit")
    await runner.fire(TEST_TENANT, "F-1", "Approve")
    before = await flow_repo.get_flow_by_ref(TEST_TENANT, "F-1")

    ignored = await runner.fire(TEST_TENANT, "F-1", "Submit")
    assert ignored.flow_status is FlowStatus.FINISHED
    assert ignored.context.current_state == "done"

    after = await flow_repo.get_flow_by_ref(TEST_TENANT, "F-1")
    assert after.flow_status is FlowStatus.FINISHED
    assert after.context.current_state == "done"
    assert not after.context.execution_result.is_wait_task
    assert after.changed == before.changed
    assert "F-1" not in await _active_ids(flow_repo)
    assert [r async for r in flow_repo.get_all_waiting_flows_ids(TEST_TENANT)] == []


async def test_deleted_flow_ignores_triggers(flow_repo, approval_graph) -> None:
    runner = StateFlowRunner(flow_repo, approval_graph, "approval")
    await runner.start(TEST_TENANT, "F-6")
    await runner.set_status(TEST_TENANT, "F-6", FlowStatus.DELETED)
    before = await flow_repo.get_flow_by_ref(TEST_TENANT, "F-6")

    ignored = await runner.fire(TEST_TENANT, "F-6", "Submit")
    assert ignored.flow_status is FlowStatus.DELETED
    assert ignored.context.current_state == "draft"

    after = await flow_repo.get_flow_by_ref(TEST_TENANT, "F-6")
    assert after.flow_status is FlowStatus.DELETED
    assert after.changed == before.changed
    assert "F-6" not in await _active_ids(flow_repo)


async def test_unmatched_trigger_parks_flow_as_waiting(flow_repo, approval_graph) -> None:
    runner = StateFlowRunner(flow_repo, approval_graph, "approval")
    await runner.start(TEST_TENANT, "F-2")

    waiting = await runner.fire(TEST_TENANT, "F-2", "Approve")
    assert waiting.flow_status is FlowStatus.WAITING
    assert waiting.context.current_state == "draft"
    assert waiting.context.execution_result.is_wait_task
    assert [r async for r in flow_repo.get_all_waiting_flows_ids(TEST_TENANT)] == ["F-2"]

    resumed = await runner.fire(TEST_TENANT, "F-2", "Submit")
    assert not resumed.context.execution_result.is_wait_task
    assert [r async for r in flow_repo.get_all_waiting_flows_ids(TEST_TENANT)] == []


async def test_failing_callback_marks_flow_failed_and_reraises(flow_repo) -> None:
    def notify() -> None:
        raise ConnectionError("mail server down")

    graph = (
        StateGraphBuilder()
        .state("draft")
        .transition("Submit", "sent", on_transitioning=notify)
        .state("sent")
        .end()
        .build()
    )
    runner = StateFlowRunner(flow_repo, graph, "mailing")
    await runner.start(TEST_TENANT, "F-3")

    with pytest.raises(ConnectionError):
        await runner.fire(TEST_TENANT, "F-3", "Submit")

    stored = await flow_repo.get_flow_by_ref(TEST_TENANT, "F-3")
    assert stored.flow_status is FlowStatus.FAILED
    assert stored.context.current_state == "draft"
    assert stored.context.execution_result.exception_type == "ConnectionError"
    assert stored.context.execution_result.exception_message == "mail server down"


async def test_failing_trigger_function_marks_flow_failed_and_reraises(flow_repo) -> None:
    def outcome() -> str:
        raise LookupError("no outcome recorded")

    graph = (
        StateGraphBuilder()
        .state("draft")
        .transition(outcome, "sent")
        .state("sent")
        .end()
        .build()
    )
    runner = StateFlowRunner(flow_repo, graph, "mailing")
    await runner.start(TEST_TENANT, "F-7")

    with pytest.raises(LookupError, match="no outcome recorded"):
        await runner.fire(TEST_TENANT, "F-7", "sent")

    stored = await flow_repo.get_flow_by_ref(TEST_TENANT, "F-7")
    assert stored.flow_status is FlowStatus.FAILED
    assert stored.context.current_state == "draft"
    assert stored.context.execution_result.exception_type == "LookupError"
    assert not stored.context.execution_result.is_wait_task


async def test_set_status_soft_delete_and_reopen(flow_repo, approval_graph) -> None:
    runner = StateFlowRunner(flow_repo, approval_graph, "approval")
    await runner.start(TEST_TENANT, "F-4")

    await runner.set_status(TEST_TENANT, "F-4", FlowStatus.DELETED)
    assert "F-4" not in await _active_ids(flow_repo)

    # Status changes are not restricted to a forward-only lifecycle.
    reopened = await runner.set_status(TEST_TENANT, "F-4", FlowStatus.STARTED)
    assert reopened.flow_status is FlowStatus.STARTED
    assert "F-4" in await _active_ids(flow_repo)


async def test_fire_unknown_flow_raises(flow_repo, approval_graph) -> None:
    runner = StateFlowRunner(flow_repo, approval_graph, "approval")
    with pytest.raises(FlowNotFoundException):
        await runner.fire(TEST_TENANT, "missing", "Submit")
    with pytest.raises(FlowNotFoundException):
        await runner.set_status(TEST_TENANT, "missing", FlowStatus.DELETED)


async def test_fire_from_undeclared_state_raises(flow_repo, approval_graph) -> None:
    runner = StateFlowRunner(flow_repo, approval_graph, "approval")
    entity = await runner.start(TEST_TENANT, "F-5")
    entity.context.current_state = "archived"
    await flow_repo.upsert_flow(TEST_TENANT, entity)
    with pytest.raises(GraphDefinitionException):
        await runner.fire(TEST_TENANT, "F-5", "Submit")
