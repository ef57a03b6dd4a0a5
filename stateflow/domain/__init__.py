"""Domain layer: entities, enums, and exceptions.

No dependencies on infrastructure. Used by application and
infrastructure layers.
"""

from stateflow.domain.entities import (
    ExecutionResult,
    FlowContext,
    FlowEntity,
    FlowModel,
    StateGraph,
    StateGraphBuilder,
)
from stateflow.domain.enums import FlowStatus
from stateflow.domain.exceptions import (
    ConfigurationException,
    FieldResolutionException,
    FlowNotFoundException,
    GraphDefinitionException,
    StateFlowException,
    StoreException,
)

__all__ = [
    # Entities
    "ExecutionResult",
    "FlowContext",
    "FlowEntity",
    "FlowModel",
    "StateGraph",
    "StateGraphBuilder",
    # Enums
    "FlowStatus",
    # Exceptions
    "ConfigurationException",
    "FieldResolutionException",
    "FlowNotFoundException",
    "GraphDefinitionException",
    "StateFlowException",
    "StoreException",
]
