"""In-process document store with the FirestoreRESTClient surface.

Documents pass through the same REST encoding on write, and queries are
evaluated from the same structuredQuery the REST client would send, so
repository code behaves identically against both. Queries that Firestore
would reject for their IN / ARRAY_CONTAINS_ANY sizes are rejected here
too; with require_indexes, so are queries no declared composite index
serves. Used by the "memory" store backend and by the test suite.
"""

from __future__ import annotations

import asyncio
import copy
import functools
from typing import Any

from stateflow.domain.exceptions import DocumentExistsException, StoreException
from stateflow.infrastructure.firebase._rest_encoding import (
    decode_document,
    decode_value,
    encode_document,
)
from stateflow.infrastructure.firebase.filters import check_query_limits, split_field_path
from stateflow.infrastructure.firebase.query import (
    ASCENDING,
    DESCENDING,
    BaseQuery,
    DocumentSnapshot,
    IndexSpec,
)

_MISSING = object()

_INEQUALITY_OPS = frozenset(
    {
        "NOT_EQUAL",
        "NOT_IN",
        "LESS_THAN",
        "LESS_THAN_OR_EQUAL",
        "GREATER_THAN",
        "GREATER_THAN_OR_EQUAL",
    }
)


def _lookup(data: dict, path: str) -> Any:
    """Resolve a field path against decoded document data (_MISSING if absent)."""
    value: Any = data
    for segment in split_field_path(path):
        if not isinstance(value, dict) or segment not in value:
            return _MISSING
        value = value[segment]
    return value


def _assign(target: dict, path: str, value: Any) -> None:
    segments = split_field_path(path)
    for segment in segments[:-1]:
        target = target.setdefault(segment, {})
    target[segments[-1]] = value


def _compare(left: Any, right: Any) -> int | None:
    """Three-way compare; None when the values are not mutually ordered."""
    try:
        if left < right:
            return -1
        if left > right:
            return 1
        return 0
    except TypeError:
        return None


def _eval_field_filter(data: dict, spec: dict) -> bool:
    value = _lookup(data, spec["field"]["fieldPath"])
    op = spec["op"]
    target = decode_value(spec["value"])
    if value is _MISSING:
        return False
    if op == "EQUAL":
        return value == target
    if op == "NOT_EQUAL":
        return value is not None and value != target
    if op == "IN":
        return value in target
    if op == "NOT_IN":
        return value is not None and value not in target
    if op == "ARRAY_CONTAINS":
        return isinstance(value, list) and target in value
    if op == "ARRAY_CONTAINS_ANY":
        return isinstance(value, list) and any(t in value for t in target)
    if value is None:
        return False
    cmp = _compare(value, target)
    if cmp is None:
        return False
    return {
        "LESS_THAN": cmp < 0,
        "LESS_THAN_OR_EQUAL": cmp <= 0,
        "GREATER_THAN": cmp > 0,
        "GREATER_THAN_OR_EQUAL": cmp >= 0,
    }[op]


def matches(data: dict, where: dict | None) -> bool:
    """Evaluate a structured filter against decoded document data."""
    if not where:
        return True
    if "fieldFilter" in where:
        return _eval_field_filter(data, where["fieldFilter"])
    return all(matches(data, f) for f in where["compositeFilter"]["filters"])


def _field_filters(where: dict | None) -> list[dict]:
    if not where:
        return []
    if "fieldFilter" in where:
        return [where["fieldFilter"]]
    return [spec for f in where["compositeFilter"]["filters"] for spec in _field_filters(f)]


def required_index(structured: dict[str, Any]) -> tuple[frozenset[str], IndexSpec] | None:
    """Equality fields and ordered suffix of the composite index a query needs.

    None when single-field indexes serve the query (equality filters
    only, or a single field overall).
    """
    equality: set[str] = set()
    inequality: list[str] = []
    for spec in _field_filters(structured.get("where")):
        path = spec["field"]["fieldPath"]
        if spec["op"] in _INEQUALITY_OPS:
            if path not in inequality:
                inequality.append(path)
        else:
            equality.add(path)
    suffix: list[tuple[str, str]] = [
        (o["field"]["fieldPath"], o.get("direction", ASCENDING))
        for o in structured.get("orderBy") or []
    ]
    ordered = {path for path, _ in suffix}
    # Inequality fields are ordered first (ascending) unless ordered explicitly.
    suffix = [(path, ASCENDING) for path in inequality if path not in ordered] + suffix
    if not suffix or len(equality) + len(suffix) < 2:
        return None
    return frozenset(equality), tuple(suffix)


def _index_serves(index: IndexSpec, equality: frozenset[str], suffix: IndexSpec) -> bool:
    head = len(index) - len(suffix)
    if head != len(equality):
        return False
    return {path for path, _ in index[:head]} == equality and tuple(index[head:]) == suffix


def _order_key(value: Any) -> tuple[int, Any]:
    # Nulls sort before everything else, as in Firestore.
    return (0, 0) if value is None else (1, value)


def _sort(docs: list[tuple[str, dict]], orders: list[dict]) -> list[tuple[str, dict]]:
    def compare(a: tuple[str, dict], b: tuple[str, dict]) -> int:
        for order in orders:
            path = order["field"]["fieldPath"]
            cmp = _compare(_order_key(_lookup(a[1], path)), _order_key(_lookup(b[1], path)))
            cmp = cmp or 0
            if cmp:
                return -cmp if order.get("direction") == DESCENDING else cmp
        return _compare(a[0], b[0]) or 0

    return sorted(docs, key=functools.cmp_to_key(compare))


class MemoryQuery(BaseQuery):
    """Query evaluated over the in-memory collection."""

    def __init__(self, client: InMemoryFirestoreClient, collection_id: str):
        super().__init__(collection_id, client.page_size)
        self._client = client

    async def _fetch_page(self, structured: dict[str, Any]) -> list[DocumentSnapshot]:
        await asyncio.sleep(0)
        self._client.queries.append(structured)
        collection_id = structured["from"][0]["collectionId"]
        self._client._check_query(collection_id, structured)
        docs = [
            (doc_id, data)
            for doc_id, data in self._client._collection_data(collection_id).items()
            if matches(data, structured.get("where"))
        ]
        orders = structured.get("orderBy") or []
        # An orderBy field must exist on the document for it to match.
        docs = [
            (doc_id, data)
            for doc_id, data in docs
            if all(_lookup(data, o["field"]["fieldPath"]) is not _MISSING for o in orders)
        ]
        docs = _sort(docs, orders)
        start = structured.get("offset", 0)
        end = start + structured["limit"] if "limit" in structured else None
        page = docs[start:end]
        selected = structured.get("select")
        result: list[DocumentSnapshot] = []
        for doc_id, data in page:
            if selected is None:
                out = copy.deepcopy(data)
            else:
                out = {}
                for f in selected["fields"]:
                    value = _lookup(data, f["fieldPath"])
                    if value is not _MISSING:
                        _assign(out, f["fieldPath"], copy.deepcopy(value))
            result.append(DocumentSnapshot(doc_id, out))
        return result


class MemoryDocumentReference:
    def __init__(self, client: InMemoryFirestoreClient, collection_id: str, document_id: str):
        self._client = client
        self._collection_id = collection_id
        self.id = document_id

    async def set(self, data: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self._client._collection_data(self._collection_id)[self.id] = decode_document(
            encode_document(data)
        )

    async def get(self) -> DocumentSnapshot | None:
        await asyncio.sleep(0)
        data = self._client._collection_data(self._collection_id).get(self.id)
        if data is None:
            return None
        return DocumentSnapshot(self.id, copy.deepcopy(data))

    async def delete(self) -> None:
        await asyncio.sleep(0)
        self._client._collection_data(self._collection_id).pop(self.id, None)


class MemoryCollectionReference:
    def __init__(self, client: InMemoryFirestoreClient, collection_id: str):
        self._client = client
        self.id = collection_id

    def document(self, document_id: str) -> MemoryDocumentReference:
        return MemoryDocumentReference(self._client, self.id, document_id)

    async def create(self, document_id: str, data: dict[str, Any]) -> None:
        if document_id in self._client._collection_data(self.id):
            raise DocumentExistsException(f"{self.id}/{document_id}")
        await self.document(document_id).set(data)

    def query(self) -> MemoryQuery:
        return MemoryQuery(self._client, self.id)

    def where(self, field: str, op: str, value: Any) -> MemoryQuery:
        return self.query().where(field, op, value)


class InMemoryFirestoreClient:
    """Dictionary-backed stand-in for FirestoreRESTClient.

    Attributes:
        queries: Every structuredQuery executed, in order (for assertions).
        indexes: Index declarations received via ensure_index.
        require_indexes: Reject queries that need a composite index no
            ensure_index call declared, as Firestore does.
    """

    def __init__(
        self,
        database: str = "(default)",
        page_size: int = 100,
        require_indexes: bool = False,
    ) -> None:
        self.database = database
        self.page_size = page_size
        self.require_indexes = require_indexes
        self.database_created = False
        self.indexes: list[tuple[str, IndexSpec]] = []
        self.queries: list[dict[str, Any]] = []
        self.closed = False
        self._collections: dict[str, dict[str, dict]] = {}

    def _collection_data(self, collection_id: str) -> dict[str, dict]:
        return self._collections.setdefault(collection_id, {})

    def _check_query(self, collection_id: str, structured: dict[str, Any]) -> None:
        try:
            check_query_limits(structured.get("where"))
        except ValueError as e:
            raise StoreException(
                f"Document store returned 400: INVALID_ARGUMENT: {e}",
                operation="runQuery",
                status_code=400,
            ) from e
        if not self.require_indexes:
            return
        needed = required_index(structured)
        if needed is None:
            return
        equality, suffix = needed
        if not any(
            coll == collection_id and _index_serves(index, equality, suffix)
            for coll, index in self.indexes
        ):
            fields = sorted(equality) + [f"{path} {order}" for path, order in suffix]
            raise StoreException(
                "Document store returned 400: FAILED_PRECONDITION: "
                f"The query requires an index ({', '.join(fields)})",
                operation="runQuery",
                status_code=400,
            )

    def collection(self, collection_id: str) -> MemoryCollectionReference:
        return MemoryCollectionReference(self, collection_id)

    async def ensure_database(self) -> bool:
        if self.database_created:
            return False
        self.database_created = True
        return True

    async def ensure_index(self, collection_id: str, fields: IndexSpec) -> bool:
        entry = (collection_id, tuple(fields))
        if entry in self.indexes:
            return False
        self.indexes.append(entry)
        return True

    async def aclose(self) -> None:
        self.closed = True
