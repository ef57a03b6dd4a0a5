"""DTOs for flow read queries (status/tag/id filters plus dynamic filter, sort, page)."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from stateflow.core.constants import DEFAULT_QUERY_STATUSES
from stateflow.domain.enums import FilterOperator, FlowStatus, SortDirection


@dataclass(frozen=True)
class FieldFilter:
    """One dynamic filter clause; field is resolved against the target schema."""

    field: str
    value: Any
    operator: FilterOperator = FilterOperator.EQUAL


@dataclass(frozen=True)
class SortField:
    """One dynamic ordering clause."""

    field: str
    direction: SortDirection = SortDirection.ASCENDING


@dataclass(frozen=True)
class PageSpec:
    """Zero-based page window."""

    page_index: int = 0
    page_size: int = 20

    def __post_init__(self) -> None:
        if self.page_index < 0:
            raise ValueError("page_index must be >= 0")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size


@dataclass(frozen=True)
class QueryOptions:
    """Dynamic query shaping; each part only applies when its allow_* flag is set."""

    allow_filtering: bool = False
    allow_sort: bool = False
    allow_pagination: bool = False
    filters: tuple[FieldFilter, ...] = ()
    sort: tuple[SortField, ...] = ()
    page: PageSpec | None = None


@dataclass(frozen=True)
class FlowModelsQueryOptions:
    """Read-side query over persisted flows.

    flow_statuses defaults to the active statuses (created, started,
    waiting, failed). Deleted flows are never returned, even if requested.
    With search_any_tag a flow matches when it has any of tags, otherwise
    it must carry all of them.
    """

    flow_name: str | None = None
    flow_statuses: frozenset[FlowStatus] | None = None
    tags: tuple[str, ...] | None = None
    search_any_tag: bool = False
    ref_ids: tuple[str, ...] | None = None
    query_options: QueryOptions | None = None

    def effective_statuses(self) -> list[FlowStatus]:
        """Requested statuses (or the defaults) minus DELETED, in declaration order."""
        requested = set(self.flow_statuses) if self.flow_statuses is not None else set(
            DEFAULT_QUERY_STATUSES
        )
        return [s for s in FlowStatus if s in requested and s is not FlowStatus.DELETED]

    @classmethod
    def build(
        cls,
        *,
        flow_name: str | None = None,
        flow_statuses: Iterable[FlowStatus] | None = None,
        tags: Iterable[str] | None = None,
        search_any_tag: bool = False,
        ref_ids: Iterable[str] | None = None,
        query_options: QueryOptions | None = None,
    ) -> "FlowModelsQueryOptions":
        """Convenience constructor accepting any iterables."""
        return cls(
            flow_name=flow_name,
            flow_statuses=frozenset(flow_statuses) if flow_statuses is not None else None,
            tags=tuple(tags) if tags is not None else None,
            search_any_tag=search_any_tag,
            ref_ids=tuple(ref_ids) if ref_ids is not None else None,
            query_options=query_options,
        )
