"""Document store interface (port) used by the flow repository.

Mirrors the subset of the Firestore client API the repository needs;
both FirestoreRESTClient and InMemoryFirestoreClient satisfy it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol


class IDocumentSnapshot(Protocol):
    id: str

    def to_dict(self) -> dict: ...


class IDocumentReference(Protocol):
    async def set(self, data: dict[str, Any]) -> None: ...

    async def get(self) -> IDocumentSnapshot | None: ...

    async def delete(self) -> None: ...


class IQuery(Protocol):
    def where(self, field: str, op: str, value: Any) -> IQuery: ...

    def where_filter(self, filter_: dict | None) -> IQuery: ...

    def order_by(self, field: str, direction: str = "ASCENDING") -> IQuery: ...

    def select(self, *fields: str) -> IQuery: ...

    def offset(self, n: int) -> IQuery: ...

    def limit(self, n: int | None) -> IQuery: ...

    def disjunctions(self) -> int: ...

    def stream(self, page_size: int | None = None) -> AsyncIterator[IDocumentSnapshot]: ...


class ICollectionReference(Protocol):
    id: str

    def document(self, document_id: str) -> IDocumentReference: ...

    def query(self) -> IQuery: ...


class IDocumentStoreClient(Protocol):
    def collection(self, collection_id: str) -> ICollectionReference: ...

    async def ensure_database(self) -> bool: ...

    async def ensure_index(
        self, collection_id: str, fields: tuple[tuple[str, str], ...]
    ) -> bool: ...

    async def aclose(self) -> None: ...
