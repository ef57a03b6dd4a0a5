"""Application services: trigger evaluation and the model type registry."""

from stateflow.application.services.model_types import (
    DecodedModel,
    ModelTypeRegistry,
    decode_model,
    encode_model,
    flow_model,
    get_model_type_registry,
)
from stateflow.application.services.trigger_evaluator import TriggerEvaluator, state_key

__all__ = [
    "DecodedModel",
    "ModelTypeRegistry",
    "TriggerEvaluator",
    "decode_model",
    "encode_model",
    "flow_model",
    "get_model_type_registry",
    "state_key",
]
