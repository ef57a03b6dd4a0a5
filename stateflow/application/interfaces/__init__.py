"""Ports (Protocols) the application layer depends on."""

from stateflow.application.interfaces.document_store import (
    ICollectionReference,
    IDocumentStoreClient,
    IQuery,
)
from stateflow.application.interfaces.repositories import IFlowRepository

__all__ = [
    "ICollectionReference",
    "IDocumentStoreClient",
    "IFlowRepository",
    "IQuery",
]
