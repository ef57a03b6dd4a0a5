"""Flow domain entity.

A flow is one running instance of a declared state graph, identified by
ref_id within its flow name and tenant. FlowEntity is the persisted
envelope; FlowContext is embedded in it and carries the model and the
last execution result.
"""

from dataclasses import dataclass, field
from datetime import datetime

from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.enums import FlowStatus
from stateflow.shared.utils.datetime import utc_now


@dataclass
class ExecutionResult:
    """Outcome of the last step executed for a flow."""

    is_wait_task: bool = False
    flow_state: str | None = None
    exception_message: str | None = None
    exception_type: str | None = None


@dataclass
class FlowContext:
    """Execution context embedded in a flow entity."""

    ref_id: str | None = None
    flow_name: str | None = None
    current_state: str | None = None
    execution_result: ExecutionResult = field(default_factory=ExecutionResult)
    model: FlowModel | None = None


@dataclass
class FlowEntity:
    """Domain entity for a persisted flow instance.

    id is the storage key (assigned on first upsert when absent); ref_id is
    the caller-facing correlation id.
    """

    flow_name: str
    ref_id: str
    id: str | None = None
    tenant_id: str | None = None
    env_tag: str | None = None
    flow_status: FlowStatus = FlowStatus.CREATED
    flow_tags: list[str] = field(default_factory=list)
    created: datetime = field(default_factory=utc_now)
    changed: datetime | None = None
    context: FlowContext = field(default_factory=FlowContext)

    @property
    def is_active(self) -> bool:
        """True unless the flow is finished or soft-deleted."""
        return self.flow_status not in (FlowStatus.FINISHED, FlowStatus.DELETED)

    def touch(self) -> None:
        """Stamp the change time."""
        self.changed = utc_now()
