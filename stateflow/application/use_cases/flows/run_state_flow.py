"""Run flows of one state graph: start, fire triggers, change status."""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from typing import Any

from stateflow.application.interfaces.repositories import IFlowRepository
from stateflow.application.services.trigger_evaluator import TriggerEvaluator, state_key
from stateflow.domain.entities.flow import ExecutionResult, FlowContext, FlowEntity
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.entities.state_graph import StateGraph
from stateflow.domain.enums import FlowStatus
from stateflow.domain.exceptions import FlowNotFoundException, GraphDefinitionException
from stateflow.shared.telemetry.tracing import add_span_attributes, set_span_error, traced

logger = logging.getLogger(__name__)


class StateFlowRunner:
    """Drives persisted flows of flow_name through graph.

    Each call loads the flow, applies at most one transition and writes
    the result back. Concurrent calls for the same ref id are not
    serialized; the last write wins.
    """

    def __init__(self, repo: IFlowRepository, graph: StateGraph, flow_name: str) -> None:
        self.repo = repo
        self.graph = graph
        self.flow_name = flow_name
        self.evaluator = TriggerEvaluator(graph)

    async def _load(self, tenant_id: str | None, ref_id: str) -> FlowEntity:
        entity = await self.repo.get_flow_by_ref(tenant_id, ref_id)
        if entity is None:
            raise FlowNotFoundException(ref_id, tenant_id)
        return entity

    @traced("state_flow.start")
    async def start(
        self,
        tenant_id: str | None,
        ref_id: str,
        model: FlowModel | None = None,
        tags: Iterable[str] | None = None,
    ) -> FlowEntity:
        """Create and persist a new flow positioned at the graph's first state."""
        initial = state_key(self.graph.initial_state)
        entity = FlowEntity(
            flow_name=self.flow_name,
            ref_id=ref_id,
            tenant_id=tenant_id,
            flow_status=FlowStatus.CREATED,
            flow_tags=list(tags or []),
            context=FlowContext(
                ref_id=ref_id,
                flow_name=self.flow_name,
                current_state=initial,
                execution_result=ExecutionResult(flow_state=initial),
                model=model,
            ),
        )
        await self.repo.upsert_flow(tenant_id, entity)
        logger.info("Started flow %s (%s) at %s", ref_id, self.flow_name, initial)
        return entity

    async def _fail(
        self, tenant_id: str | None, entity: FlowEntity, exc: Exception
    ) -> None:
        """Persist entity as Failed with exc recorded on its execution result."""
        ctx = entity.context
        set_span_error(exc)
        ctx.execution_result = ExecutionResult(
            is_wait_task=False,
            flow_state=ctx.current_state,
            exception_message=str(exc),
            exception_type=type(exc).__name__,
        )
        entity.flow_status = FlowStatus.FAILED
        await self.repo.upsert_flow(tenant_id, entity)
        logger.exception("Flow %s failed leaving %s", entity.ref_id, ctx.current_state)

    @traced("state_flow.fire")
    async def fire(self, tenant_id: str | None, ref_id: str, trigger: Any) -> FlowEntity:
        """Apply trigger to the flow and persist the outcome.

        A matching transition moves the flow (status Started, or Finished
        when the target is terminal). No match parks the flow as a wait
        task (status Waiting). A trigger function or on_transitioning
        callback that raises marks the flow Failed, is persisted and then
        re-raised. A finished or deleted flow, or one sitting in a terminal
        state, is returned as loaded and nothing is written.

        Raises:
            FlowNotFoundException: If no flow has ref_id.
            GraphDefinitionException: If the stored state is not in the graph.
        """
        entity = await self._load(tenant_id, ref_id)
        ctx = entity.context
        current: Hashable | None = self.evaluator.state_for_key(ctx.current_state)
        if current is None:
            raise GraphDefinitionException(
                f"Flow {ref_id} is in undeclared state {ctx.current_state!r}",
                state=ctx.current_state,
            )
        add_span_attributes(ref_id=ref_id, current_state=ctx.current_state)
        if not entity.is_active or self.graph.is_terminal(current):
            logger.info(
                "Flow %s is %s in %s; trigger %r ignored",
                ref_id,
                entity.flow_status.value,
                ctx.current_state,
                trigger,
            )
            return entity

        try:
            transition = self.evaluator.find_transition(current, trigger)
            target = self.evaluator.apply(transition) if transition is not None else None
        except Exception as exc:
            await self._fail(tenant_id, entity, exc)
            raise

        if transition is None:
            ctx.execution_result = ExecutionResult(
                is_wait_task=True, flow_state=ctx.current_state
            )
            entity.flow_status = FlowStatus.WAITING
            await self.repo.upsert_flow(tenant_id, entity)
            logger.debug("Flow %s waiting in %s (trigger %r)", ref_id, ctx.current_state, trigger)
            return entity

        ctx.current_state = state_key(target)
        ctx.execution_result = ExecutionResult(flow_state=ctx.current_state)
        entity.flow_status = (
            FlowStatus.FINISHED if self.graph.is_terminal(target) else FlowStatus.STARTED
        )
        await self.repo.upsert_flow(tenant_id, entity)
        logger.info(
            "Flow %s moved %s -> %s (%s)",
            ref_id,
            state_key(transition.from_state),
            ctx.current_state,
            entity.flow_status.value,
        )
        return entity

    async def set_status(
        self, tenant_id: str | None, ref_id: str, status: FlowStatus
    ) -> FlowEntity:
        """Write status as-is (Deleted is a soft delete). Any change is accepted."""
        entity = await self._load(tenant_id, ref_id)
        entity.flow_status = FlowStatus(status)
        await self.repo.upsert_flow(tenant_id, entity)
        return entity
