"""Domain entities and aggregates.

Pure domain models; no store or serialization concerns.
"""

from stateflow.domain.entities.flow import ExecutionResult, FlowContext, FlowEntity
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.entities.state_graph import (
    StateDef,
    StateGraph,
    StateGraphBuilder,
    TransitionDef,
)

__all__ = [
    "ExecutionResult",
    "FlowContext",
    "FlowEntity",
    "FlowModel",
    "StateDef",
    "StateGraph",
    "StateGraphBuilder",
    "TransitionDef",
]
