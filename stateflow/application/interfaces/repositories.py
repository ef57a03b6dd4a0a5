"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference domain entities and application DTOs only.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Protocol, TypeVar

if TYPE_CHECKING:
    from stateflow.application.dtos.flow import FlowContextView
    from stateflow.application.dtos.query import FlowModelsQueryOptions
    from stateflow.domain.entities.flow import FlowEntity
    from stateflow.domain.entities.flow_model import FlowModel

ModelT = TypeVar("ModelT", bound="FlowModel")


class IFlowRepository(Protocol):
    """Protocol for flow persistence (DIP)."""

    async def ensure_schema(self) -> None:
        """Create database/collection/indexes if absent. Must be awaited before use."""

    async def upsert_flow(self, tenant_id: str | None, entity: FlowEntity) -> str:
        """Insert or replace the flow; assigns id when absent and returns it."""

    async def get_flow_by_ref(self, tenant_id: str | None, ref_id: str) -> FlowEntity | None:
        """Return the flow with the correlation id (optionally within tenant), or None."""

    def get_active_flows_ids(
        self, tenant_id: str | None, flow_name: str
    ) -> AsyncIterator[str]:
        """Stream correlation ids of flows of flow_name that are not finished or deleted."""

    def get_all_waiting_flows_ids(self, tenant_id: str | None) -> AsyncIterator[str]:
        """Stream correlation ids of flows parked on a wait task."""

    def get_flow_models(
        self,
        tenant_id: str | None,
        options: FlowModelsQueryOptions,
        model_type: type[ModelT],
    ) -> AsyncIterator[tuple[str, ModelT]]:
        """Stream (ref_id, model) pairs; records that do not decode are skipped."""

    async def get_flow_contexts(
        self, tenant_id: str | None, options: FlowModelsQueryOptions
    ) -> list[FlowContextView]:
        """List context views; unregistered model types yield views without a model."""
