"""Fluent collection query shared by the REST and in-memory clients.

A query accumulates filters, ordering, projection, offset and limit and
renders them as a Firestore structuredQuery. stream() pulls results one
page at a time; each page fetch is an await, and a consumer that stops
iterating never triggers the next fetch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from stateflow.infrastructure.firebase.filters import all_of, disjunctions, field_filter

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"

# Composite index: ordered (field path, ASCENDING | DESCENDING) pairs.
IndexSpec = tuple[tuple[str, str], ...]


class DocumentSnapshot:
    """Snapshot of a document (id + data)."""

    def __init__(self, id_: str, data: dict):
        self.id = id_
        self._data = data

    def to_dict(self) -> dict:
        return self._data


class BaseQuery(ABC):
    """Query builder; subclasses execute one rendered page."""

    def __init__(self, collection_id: str, default_page_size: int = 100) -> None:
        self._collection_id = collection_id
        self._filters: list[dict] = []
        self._orders: list[tuple[str, str]] = []
        self._fields: list[str] | None = None
        self._offset: int = 0
        self._limit: int | None = None
        self._default_page_size = default_page_size

    def where(self, field: str, op: str, value: Any) -> BaseQuery:
        self._filters.append(field_filter(field, op, value))
        return self

    def where_filter(self, filter_: dict | None) -> BaseQuery:
        """Add a prebuilt structured filter (see filters.py)."""
        if filter_:
            self._filters.append(filter_)
        return self

    def order_by(self, field: str, direction: str = ASCENDING) -> BaseQuery:
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"Unsupported order direction: {direction!r}")
        self._orders.append((field, direction))
        return self

    def select(self, *fields: str) -> BaseQuery:
        """Project results onto the given field paths."""
        self._fields = list(fields)
        return self

    def offset(self, n: int) -> BaseQuery:
        self._offset = max(0, n)
        return self

    def limit(self, n: int | None) -> BaseQuery:
        self._limit = n
        return self

    def structured_query(self, offset: int, limit: int | None) -> dict[str, Any]:
        """Render the query (with the given page window) as a structuredQuery."""
        structured: dict[str, Any] = {"from": [{"collectionId": self._collection_id}]}
        where = all_of(*self._filters)
        if where:
            structured["where"] = where
        if self._orders:
            structured["orderBy"] = [
                {"field": {"fieldPath": f}, "direction": d} for f, d in self._orders
            ]
        if self._fields is not None:
            structured["select"] = {"fields": [{"fieldPath": f} for f in self._fields]}
        if offset:
            structured["offset"] = offset
        if limit is not None:
            structured["limit"] = limit
        return structured

    @abstractmethod
    async def _fetch_page(self, structured: dict[str, Any]) -> list[DocumentSnapshot]:
        """Execute one rendered structuredQuery."""

    async def stream(self, page_size: int | None = None) -> AsyncIterator[DocumentSnapshot]:
        """Yield matching snapshots, fetching page_size documents per round trip."""
        size = page_size or self._default_page_size
        offset = self._offset
        remaining = self._limit
        while remaining is None or remaining > 0:
            batch = size if remaining is None else min(size, remaining)
            page = await self._fetch_page(self.structured_query(offset, batch))
            for snapshot in page:
                yield snapshot
            if len(page) < batch:
                return
            offset += len(page)
            if remaining is not None:
                remaining -= len(page)

    def disjunctions(self) -> int:
        """Disjunctions the current filters expand to (see filters.disjunctions)."""
        return disjunctions(all_of(*self._filters))

    async def get(self) -> list[DocumentSnapshot]:
        """Collect all results into a list."""
        return [snapshot async for snapshot in self.stream()]
