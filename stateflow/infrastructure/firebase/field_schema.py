"""Resolution of caller-facing field names to stored document paths.

Dynamic filters and sorts name fields the way the caller sees them
(model attribute names or aliases, dotted for nested models, or envelope
names such as "created"). A SchemaDescriptor turns those names into the
field paths the store query uses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from stateflow.core.constants import (
    FIELD_CHANGED,
    FIELD_CONTEXT,
    FIELD_CONTEXT_MODEL,
    FIELD_CREATED,
    FIELD_FLOW_NAME,
    FIELD_FLOW_STATUS,
    FIELD_REF_ID,
    FIELD_TENANT_ID,
)
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.exceptions import FieldResolutionException
from stateflow.infrastructure.firebase.filters import field_path, split_field_path

ENVELOPE_FIELDS: dict[str, str] = {
    "created": FIELD_CREATED,
    "changed": FIELD_CHANGED,
    "refId": FIELD_REF_ID,
    "ref_id": FIELD_REF_ID,
    "flowName": FIELD_FLOW_NAME,
    "flow_name": FIELD_FLOW_NAME,
    "flowStatus": FIELD_FLOW_STATUS,
    "flow_status": FIELD_FLOW_STATUS,
    "tenantId": FIELD_TENANT_ID,
    "tenant_id": FIELD_TENANT_ID,
    "currentState": f"{FIELD_CONTEXT}.currentState",
    "current_state": f"{FIELD_CONTEXT}.currentState",
}


def _nested_model(annotation: Any) -> type[BaseModel] | None:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    # Optional[Model] / Model | None
    for arg in getattr(annotation, "__args__", ()) or ():
        if isinstance(arg, type) and issubclass(arg, BaseModel):
            return arg
    return None


class SchemaDescriptor:
    """Field-name resolver for one query target."""

    def __init__(self, name: str, model_type: type[BaseModel] | None = None) -> None:
        self.name = name
        self._model_type = model_type

    @classmethod
    def for_model(cls, model_type: type[FlowModel]) -> SchemaDescriptor:
        """Schema of a model type: its fields plus the envelope fields."""
        return cls(model_type.__name__, model_type)

    @classmethod
    def envelope(cls) -> SchemaDescriptor:
        """Schema with only the envelope fields (used for context listings)."""
        return cls("FlowEntity")

    def resolve(self, name: str) -> str:
        """Return the stored field path for name.

        Model fields win over envelope fields of the same name.

        Raises:
            FieldResolutionException: If name is not declared by the schema.
        """
        if self._model_type is not None:
            segments = self._resolve_model_path(self._model_type, name.split("."))
            if segments is not None:
                return field_path(*split_field_path(FIELD_CONTEXT_MODEL), *segments)
        if name in ENVELOPE_FIELDS:
            return ENVELOPE_FIELDS[name]
        raise FieldResolutionException(name, self.name)

    def _resolve_model_path(
        self, model_type: type[BaseModel], parts: list[str]
    ) -> list[str] | None:
        head, rest = parts[0], parts[1:]
        for attr, info in model_type.model_fields.items():
            stored = info.alias or attr
            if head not in (attr, stored):
                continue
            if not rest:
                return [stored]
            nested = _nested_model(info.annotation)
            if nested is None:
                return None
            tail = self._resolve_model_path(nested, rest)
            return None if tail is None else [stored, *tail]
        return None
