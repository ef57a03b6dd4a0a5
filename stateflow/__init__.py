"""Persistable workflow state-machine engine with a document-store flow repository."""

__version__ = "1.0.0"
