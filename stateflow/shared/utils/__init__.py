"""Small shared helpers (UTC datetimes, id generation)."""

from stateflow.shared.utils.datetime import ensure_utc, utc_now
from stateflow.shared.utils.generators import new_document_id

__all__ = ["ensure_utc", "new_document_id", "utc_now"]
