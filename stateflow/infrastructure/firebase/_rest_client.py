"""Thin Firestore REST API client (no firebase-admin).

Uses google-auth for service account tokens and Firestore REST v1.
All HTTP calls use httpx.AsyncClient so they do not block the event loop.
The same client also performs the idempotent schema bootstrap the flow
repository needs (create database if absent, declare indexes).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from stateflow.domain.exceptions import DocumentExistsException, StoreException
from stateflow.infrastructure.firebase._rest_encoding import (
    decode_document,
    encode_document,
)
from stateflow.infrastructure.firebase.query import BaseQuery, DocumentSnapshot, IndexSpec

logger = logging.getLogger(__name__)

_FIRESTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"


def _get_credentials(key_dict: dict):
    """Return google.oauth2.service_account.Credentials for Firestore."""
    from google.oauth2 import service_account

    return service_account.Credentials.from_service_account_info(
        key_dict, scopes=[_FIRESTORE_SCOPE]
    )


def _get_access_token(credentials) -> str:
    from google.auth.transport.requests import Request

    if not credentials.valid:
        credentials.refresh(Request())
    return credentials.token


async def _request_async(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    body: dict | None = None,
    access_token: str | None = None,
    operation: str | None = None,
) -> Any:
    """Perform async HTTP request to Firestore REST API. 404 returns None.

    Raises:
        DocumentExistsException: On 409 (create of an existing resource).
        StoreException: On any other non-success status or transport failure.
    """
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    if method not in ("GET", "PATCH", "POST", "DELETE"):
        raise ValueError(f"Unsupported method: {method!r}")
    try:
        resp = await client.request(method, url, headers=headers, json=body)
    except httpx.TransportError as e:
        raise StoreException(
            f"Document store unreachable: {e}", operation=operation
        ) from e
    if resp.status_code == 404:
        return None
    if resp.status_code == 409:
        raise DocumentExistsException(url)
    if resp.status_code not in (200, 204):
        raise StoreException(
            f"Document store returned {resp.status_code}: {resp.text[:500]}",
            operation=operation,
            status_code=resp.status_code,
        )
    if method == "DELETE":
        return {}
    raw = resp.content
    return json.loads(raw.decode()) if raw else {}


class DocumentReference:
    """Reference to a single document; matches firestore API style."""

    def __init__(self, client: FirestoreRESTClient, path: str):
        self._client = client
        self._path = path

    @property
    def id(self) -> str:
        return self._path.split("/")[-1]

    async def set(self, data: dict[str, Any]) -> None:
        """Create or overwrite the document (PATCH with full replace)."""
        await self._client._call(
            f"{self._client.base_url}/{self._path}", "PATCH", encode_document(data), "set"
        )

    async def get(self) -> DocumentSnapshot | None:
        """Fetch the document; returns None if not found."""
        out = await self._client._call(
            f"{self._client.base_url}/{self._path}", operation="get"
        )
        if not out:
            return None
        return DocumentSnapshot(self.id, decode_document(out))

    async def delete(self) -> None:
        """Delete the document. Idempotent if document is already missing (404)."""
        await self._client._call(
            f"{self._client.base_url}/{self._path}", "DELETE", operation="delete"
        )


class Query(BaseQuery):
    """Collection query executed server-side via runQuery."""

    def __init__(self, client: FirestoreRESTClient, parent: str, collection_id: str):
        super().__init__(collection_id, client.page_size)
        self._client = client
        self._parent = parent

    async def _fetch_page(self, structured: dict[str, Any]) -> list[DocumentSnapshot]:
        url = f"{self._client.base_url}/{self._parent}:runQuery"
        resp = await self._client._call(
            url, "POST", {"structuredQuery": structured}, "runQuery"
        )
        items = resp if isinstance(resp, list) else ([resp] if resp else [])
        page: list[DocumentSnapshot] = []
        for item in items:
            if "document" not in item:
                continue
            doc = item["document"]
            name = doc.get("name", "")
            doc_id = name.split("/")[-1] if name else ""
            page.append(DocumentSnapshot(doc_id, decode_document(doc)))
        return page


class CollectionReference:
    """Reference to a collection; matches firestore API style."""

    def __init__(self, client: FirestoreRESTClient, path: str):
        self._client = client
        self._path = path.rstrip("/")

    @property
    def id(self) -> str:
        return self._path.split("/")[-1]

    def document(self, document_id: str) -> DocumentReference:
        return DocumentReference(self._client, f"{self._path}/{document_id}")

    async def create(self, document_id: str, data: dict[str, Any]) -> None:
        """Create a document with the given ID (DocumentExistsException if it exists)."""
        url = f"{self._client.base_url}/{self._path}?documentId={quote(document_id, safe='')}"
        await self._client._call(url, "POST", encode_document(data), "create")

    def query(self) -> Query:
        """Start an unfiltered query. Chain where/order_by/select/offset/limit, then stream()."""
        return Query(self._client, self._path.rsplit("/", 1)[0], self.id)

    def where(self, field: str, op: str, value: Any) -> Query:
        return self.query().where(field, op, value)


class FirestoreRESTClient:
    """Lightweight Firestore client using the REST API (no firebase-admin).

    One instance is created per process and shared by all repository
    operations; httpx.AsyncClient is safe for concurrent requests.
    """

    def __init__(
        self,
        project_id: str,
        credentials,
        *,
        database: str = "(default)",
        base_url: str = DEFAULT_BASE_URL,
        location_id: str = "nam5",
        page_size: int = 100,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.project_id = project_id
        self.database = database
        self.base_url = base_url.rstrip("/")
        self.location_id = location_id
        self.page_size = page_size
        self._credentials = credentials
        self._database_path = f"projects/{project_id}/databases/{database}"
        self._prefix = f"{self._database_path}/documents"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()

    async def get_token(self) -> str | None:
        """Return a valid access token (None without credentials, e.g. the emulator)."""
        if self._credentials is None:
            return None
        return await asyncio.to_thread(_get_access_token, self._credentials)

    async def _call(
        self,
        url: str,
        method: str = "GET",
        body: dict | None = None,
        operation: str | None = None,
    ) -> Any:
        return await _request_async(
            self._http,
            url,
            method=method,
            body=body,
            access_token=await self.get_token(),
            operation=operation,
        )

    def collection(self, collection_id: str) -> CollectionReference:
        return CollectionReference(self, f"{self._prefix}/{collection_id}")

    async def ensure_database(self) -> bool:
        """Create the database if it does not exist. Returns True when it was created.

        Never modifies an existing database.
        """
        existing = await self._call(
            f"{self.base_url}/{self._database_path}", operation="getDatabase"
        )
        if existing is not None:
            return False
        url = (
            f"{self.base_url}/projects/{self.project_id}/databases"
            f"?databaseId={quote(self.database, safe='')}"
        )
        try:
            await self._call(
                url,
                "POST",
                {"locationId": self.location_id, "type": "FIRESTORE_NATIVE"},
                "createDatabase",
            )
        except DocumentExistsException:
            return False
        logger.info("Created Firestore database %s", self.database)
        return True

    async def ensure_index(self, collection_id: str, fields: IndexSpec) -> bool:
        """Declare a composite index of (field, order) pairs; an existing one is left untouched."""
        url = (
            f"{self.base_url}/{self._database_path}/collectionGroups/"
            f"{quote(collection_id, safe='')}/indexes"
        )
        body = {
            "queryScope": "COLLECTION",
            "fields": [{"fieldPath": f, "order": order} for f, order in fields],
        }
        try:
            await self._call(url, "POST", body, "createIndex")
        except DocumentExistsException:
            return False
        logger.info(
            "Requested index %s on %s",
            ",".join(f"{f} {order}" for f, order in fields),
            collection_id,
        )
        return True
