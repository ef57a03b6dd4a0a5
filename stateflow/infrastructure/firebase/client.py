"""Process-wide document store client.

Created once at startup from settings: the Firestore REST client for the
"firestore" backend (credential = service account JSON, inline or as a
file path) or the in-memory client for the "memory" backend. Every flow
repository operation shares this one client.
"""

import json
import logging
from pathlib import Path

from stateflow.core.config import Settings, get_settings
from stateflow.domain.exceptions import ConfigurationException
from stateflow.infrastructure.firebase._memory_client import InMemoryFirestoreClient
from stateflow.infrastructure.firebase._rest_client import (
    FirestoreRESTClient,
    _get_credentials,
)

logger = logging.getLogger(__name__)

DocumentStoreClient = FirestoreRESTClient | InMemoryFirestoreClient

_store_client: DocumentStoreClient | None = None


def _load_key_dict(settings: Settings) -> dict:
    """Return the service account dict from the inline credential or the key file."""
    key_json = settings.store_credential.get_secret_value()
    if key_json:
        try:
            return json.loads(key_json)
        except json.JSONDecodeError as e:
            raise ConfigurationException("STORE_CREDENTIAL is not valid JSON") from e
    path = settings.store_credential_path
    if path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_file():
            raise ConfigurationException(
                f"STORE_CREDENTIAL_PATH set but file not found: {resolved}"
            )
        with open(resolved, encoding="utf-8") as f:
            return json.load(f)
    raise ConfigurationException(
        "Document store credential missing", missing=["store_credential"]
    )


def build_store_client(settings: Settings | None = None) -> DocumentStoreClient:
    """Create a new client for the configured backend (not registered globally)."""
    settings = settings or get_settings()
    if settings.store_backend == "memory":
        return InMemoryFirestoreClient(
            database=settings.store_database or "(default)",
            page_size=settings.store_page_size,
        )
    key_dict = _load_key_dict(settings)
    project_id = key_dict.get("project_id")
    if not project_id:
        raise ConfigurationException("Service account JSON missing 'project_id'")
    return FirestoreRESTClient(
        project_id,
        _get_credentials(key_dict),
        database=settings.store_database or "(default)",
        base_url=settings.store_endpoint,
        page_size=settings.store_page_size,
        timeout=settings.store_timeout_seconds,
    )


def init_document_store(settings: Settings | None = None) -> DocumentStoreClient:
    """Create the process-wide client. Idempotent if already initialized."""
    global _store_client
    if _store_client is None:
        _store_client = build_store_client(settings)
        logger.info("Document store client initialized (%s)", type(_store_client).__name__)
    return _store_client


def get_document_store() -> DocumentStoreClient | None:
    """Return the process-wide client, or None before init_document_store()."""
    return _store_client


async def close_document_store() -> None:
    """Close the client's HTTP connection pool. Call from shutdown."""
    global _store_client
    if _store_client is not None:
        await _store_client.aclose()
        _store_client = None
        logger.info("Document store client closed")
