"""Flow model base type.

Every payload a flow carries derives from FlowModel. The type name a
model is registered under (see ModelTypeRegistry) is what gets written
to the persisted document, so models must be registered before use.
"""

from pydantic import BaseModel, ConfigDict


class FlowModel(BaseModel):
    """Base for per-flow data models (pydantic, JSON-serializable).

    Unknown keys in stored payloads are ignored so that documents written
    by a newer deployment still load into an older model.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)
