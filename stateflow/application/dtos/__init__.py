"""Application DTOs: query options and read models."""

from stateflow.application.dtos.flow import FlowContextView
from stateflow.application.dtos.query import (
    FieldFilter,
    FlowModelsQueryOptions,
    PageSpec,
    QueryOptions,
    SortField,
)

__all__ = [
    "FieldFilter",
    "FlowContextView",
    "FlowModelsQueryOptions",
    "PageSpec",
    "QueryOptions",
    "SortField",
]
