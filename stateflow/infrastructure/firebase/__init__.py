"""Firestore (REST) and in-memory document store integration."""

from stateflow.infrastructure.firebase.client import (
    build_store_client,
    close_document_store,
    get_document_store,
    init_document_store,
)

__all__ = [
    "build_store_client",
    "close_document_store",
    "get_document_store",
    "init_document_store",
]
