"""Identifier generators for stored flow documents."""

from cuid2 import cuid_wrapper

_cuid = cuid_wrapper()


def new_document_id() -> str:
    """Return a fresh storage key for a flow document (CUID2).

    Collision-resistant and safe as a Firestore document id (no '/').
    """
    value = _cuid()
    if not isinstance(value, str):
        raise TypeError(f"Expected str from cuid2, got {type(value).__name__}")
    return value
