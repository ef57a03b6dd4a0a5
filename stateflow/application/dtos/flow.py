"""DTOs for flow read models."""

from dataclasses import dataclass

from stateflow.domain.entities.flow import ExecutionResult
from stateflow.domain.entities.flow_model import FlowModel


@dataclass(frozen=True)
class FlowContextView:
    """Listing view of one flow context (result of get_flow_contexts).

    model is None when model_type is not registered in this process;
    model_json always holds the stored model payload as JSON text.
    """

    ref_id: str | None
    flow_name: str | None
    current_state: str | None
    execution_result: ExecutionResult
    model: FlowModel | None
    model_type: str | None
    model_json: str

    @property
    def has_model(self) -> bool:
        return self.model is not None
