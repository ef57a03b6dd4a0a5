"""Firestore-backed repository implementations."""

from stateflow.infrastructure.firebase.repositories.flow_repo_firestore import (
    FirestoreFlowRepository,
)

__all__ = [
    "FirestoreFlowRepository",
]
