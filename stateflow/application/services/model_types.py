"""Model type registry and polymorphic model payload codec.

Each persisted model is tagged with the name its type is registered
under ("$type"). On read the registry decides whether the payload can be
rebuilt as a concrete model. The registry is filled at process start and
frozen; after that it is read-only.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from stateflow.core.constants import MODEL_TYPE_KEY
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.exceptions import (
    ModelDecodeException,
    ModelTypeRegistrationException,
    UnknownModelTypeException,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=FlowModel)


class ModelTypeRegistry:
    """Maps stable type names to FlowModel subclasses (and back)."""

    def __init__(self) -> None:
        self._by_name: dict[str, type[FlowModel]] = {}
        self._by_type: dict[type[FlowModel], str] = {}
        self._frozen = False
        self._lock = threading.RLock()

    @staticmethod
    def default_name(model_type: type[FlowModel]) -> str:
        return f"{model_type.__module__}.{model_type.__qualname__}"

    def register(
        self, model_type: type[FlowModel], name: str | None = None
    ) -> type[FlowModel]:
        """Register model_type under name (default: module.qualname).

        Re-registering the same pair is a no-op.

        Raises:
            ModelTypeRegistrationException: If frozen, if model_type is not a
                FlowModel, or if name/type is already bound differently.
        """
        type_name = name or self.default_name(model_type)
        with self._lock:
            if not (isinstance(model_type, type) and issubclass(model_type, FlowModel)):
                raise ModelTypeRegistrationException(
                    f"{model_type!r} is not a FlowModel subclass", type_name
                )
            if self._by_name.get(type_name) is model_type:
                return model_type
            if self._frozen:
                raise ModelTypeRegistrationException(
                    f"Model type registry is frozen; cannot register {type_name!r}",
                    type_name,
                )
            if type_name in self._by_name:
                raise ModelTypeRegistrationException(
                    f"Type name {type_name!r} already registered", type_name
                )
            if model_type in self._by_type:
                raise ModelTypeRegistrationException(
                    f"{model_type.__name__} already registered as {self._by_type[model_type]!r}",
                    type_name,
                )
            self._by_name[type_name] = model_type
            self._by_type[model_type] = type_name
        return model_type

    def freeze(self) -> None:
        """Reject further registrations."""
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def known_types(self) -> Mapping[str, type[FlowModel]]:
        return MappingProxyType(self._by_name)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._by_name

    def resolve(self, type_name: str | None) -> type[FlowModel] | None:
        """Return the type registered under type_name, or None."""
        if type_name is None:
            return None
        return self._by_name.get(type_name)

    def name_of(self, model_type: type[FlowModel]) -> str:
        """Return the registered name of model_type.

        Raises:
            UnknownModelTypeException: If model_type was never registered.
        """
        try:
            return self._by_type[model_type]
        except KeyError:
            raise UnknownModelTypeException(model_type.__name__) from None


_registry = ModelTypeRegistry()


def get_model_type_registry() -> ModelTypeRegistry:
    """Return the process-wide registry."""
    return _registry


def flow_model(name: str | None = None) -> Callable[[type[ModelT]], type[ModelT]]:
    """Class decorator registering a FlowModel in the process-wide registry.

    Example:
        @flow_model("crm.Lead")
        class LeadModel(FlowModel):
            company: str
    """

    def decorator(cls: type[ModelT]) -> type[ModelT]:
        _registry.register(cls, name)
        return cls

    return decorator


@dataclass(frozen=True)
class DecodedModel(Generic[ModelT]):
    """Per-record decode outcome: either model or error is set.

    unknown_type is True when the failure is only that the "$type" tag is
    not registered here (the payload itself may be fine).
    """

    ref_id: str | None
    type_name: str | None
    model: ModelT | None = None
    error: ModelDecodeException | None = None
    unknown_type: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def encode_model(model: FlowModel, registry: ModelTypeRegistry) -> dict[str, Any]:
    """Serialize a model for storage with its "$type" tag first."""
    return {
        MODEL_TYPE_KEY: registry.name_of(type(model)),
        **model.model_dump(mode="json", by_alias=True),
    }


def decode_model(
    payload: Any,
    registry: ModelTypeRegistry,
    expected: type[ModelT] = FlowModel,  # type: ignore[assignment]
    ref_id: str | None = None,
) -> DecodedModel[ModelT]:
    """Rebuild a stored model payload as expected (or a registered subclass).

    Never raises for bad data; failures come back as DecodedModel.error.
    A payload without "$type" is validated directly as expected, unless
    expected is the FlowModel base itself.
    """
    if not isinstance(payload, dict):
        return DecodedModel(
            ref_id,
            None,
            error=ModelDecodeException("Model payload is not an object", ref_id, None),
        )
    type_name = payload.get(MODEL_TYPE_KEY)
    if type_name is not None:
        model_type = registry.resolve(type_name)
        if model_type is None:
            return DecodedModel(
                ref_id,
                type_name,
                error=ModelDecodeException(
                    f"Model type {type_name!r} is not registered", ref_id, type_name
                ),
                unknown_type=True,
            )
    elif expected is not FlowModel:
        model_type = expected
    else:
        return DecodedModel(
            ref_id,
            None,
            error=ModelDecodeException("Model payload has no type tag", ref_id, None),
        )

    if not issubclass(model_type, expected):
        return DecodedModel(
            ref_id,
            type_name,
            error=ModelDecodeException(
                f"Model type {type_name!r} is not a {expected.__name__}",
                ref_id,
                type_name,
            ),
        )
    body = {k: v for k, v in payload.items() if k != MODEL_TYPE_KEY}
    try:
        model = model_type.model_validate(body)
    except ValidationError as exc:
        return DecodedModel(
            ref_id,
            type_name,
            error=ModelDecodeException(
                f"Model payload failed validation: {exc.error_count()} error(s)",
                ref_id,
                type_name,
            ),
        )
    return DecodedModel(ref_id, type_name, model=model)  # type: ignore[arg-type]
