"""Mapping between FlowEntity and its stored document.

Stored layout (top level, camelCase):
    id, tenantId, envTag, flowName, refId, flowStatus, flowTags,
    flowTagIndex, created, changed,
    context: {refId, flowName, currentState,
              executionResult: {isWaitTask, flowState, exceptionMessage, exceptionType},
              model: {"$type": <registered name>, ...model fields}}

flowTagIndex mirrors flowTags as {tag: true} so "has all of these tags"
can be expressed as equality filters.
"""

from __future__ import annotations

import json
from typing import Any

from stateflow.application.services.model_types import (
    ModelTypeRegistry,
    decode_model,
    encode_model,
)
from stateflow.core.constants import (
    FIELD_CHANGED,
    FIELD_CONTEXT,
    FIELD_CREATED,
    FIELD_ENV_TAG,
    FIELD_FLOW_NAME,
    FIELD_FLOW_STATUS,
    FIELD_FLOW_TAG_INDEX,
    FIELD_FLOW_TAGS,
    FIELD_ID,
    FIELD_REF_ID,
    FIELD_TENANT_ID,
    MODEL_TYPE_KEY,
)
from stateflow.domain.entities.flow import ExecutionResult, FlowContext, FlowEntity
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.enums import FlowStatus
from stateflow.domain.exceptions import UnknownModelTypeException
from stateflow.shared.utils.datetime import parse_utc, utc_now


def execution_result_to_dict(result: ExecutionResult) -> dict[str, Any]:
    return {
        "isWaitTask": result.is_wait_task,
        "flowState": result.flow_state,
        "exceptionMessage": result.exception_message,
        "exceptionType": result.exception_type,
    }


def execution_result_from_dict(data: dict[str, Any] | None) -> ExecutionResult:
    data = data or {}
    return ExecutionResult(
        is_wait_task=bool(data.get("isWaitTask", False)),
        flow_state=data.get("flowState"),
        exception_message=data.get("exceptionMessage"),
        exception_type=data.get("exceptionType"),
    )


def entity_to_document(entity: FlowEntity, registry: ModelTypeRegistry) -> dict[str, Any]:
    """Serialize entity for storage.

    Raises:
        UnknownModelTypeException: If the context model's type is not registered.
    """
    ctx = entity.context
    tags = list(dict.fromkeys(entity.flow_tags))
    return {
        FIELD_ID: entity.id,
        FIELD_TENANT_ID: entity.tenant_id,
        FIELD_ENV_TAG: entity.env_tag,
        FIELD_FLOW_NAME: entity.flow_name,
        FIELD_REF_ID: entity.ref_id,
        FIELD_FLOW_STATUS: FlowStatus(entity.flow_status).value,
        FIELD_FLOW_TAGS: tags,
        FIELD_FLOW_TAG_INDEX: {tag: True for tag in tags},
        FIELD_CREATED: entity.created,
        FIELD_CHANGED: entity.changed,
        FIELD_CONTEXT: {
            "refId": ctx.ref_id if ctx.ref_id is not None else entity.ref_id,
            "flowName": ctx.flow_name if ctx.flow_name is not None else entity.flow_name,
            "currentState": ctx.current_state,
            "executionResult": execution_result_to_dict(ctx.execution_result),
            "model": encode_model(ctx.model, registry) if ctx.model is not None else None,
        },
    }


def model_payload(data: dict[str, Any]) -> Any:
    """Raw stored model payload of a document (None when absent)."""
    context = data.get(FIELD_CONTEXT)
    if not isinstance(context, dict):
        return None
    return context.get("model")


def model_type_name(payload: Any) -> str | None:
    return payload.get(MODEL_TYPE_KEY) if isinstance(payload, dict) else None


def model_json(payload: Any) -> str:
    """Stored model payload as JSON text (datetimes rendered ISO 8601)."""
    return json.dumps(payload, default=str, sort_keys=False)


def document_to_entity(
    doc_id: str,
    data: dict[str, Any],
    registry: ModelTypeRegistry,
) -> FlowEntity:
    """Rebuild a FlowEntity, decoding the model through registry.

    Raises:
        UnknownModelTypeException: If the stored "$type" is not registered.
        ModelDecodeException: If the model payload does not validate.
    """
    ref_id = data.get(FIELD_REF_ID, "")
    context = data.get(FIELD_CONTEXT) or {}
    payload = context.get("model")
    model: FlowModel | None = None
    if payload is not None:
        decoded = decode_model(payload, registry, FlowModel, ref_id)
        if decoded.unknown_type:
            raise UnknownModelTypeException(decoded.type_name, ref_id)
        if decoded.error is not None:
            raise decoded.error
        model = decoded.model
    return FlowEntity(
        id=data.get(FIELD_ID) or doc_id,
        tenant_id=data.get(FIELD_TENANT_ID),
        env_tag=data.get(FIELD_ENV_TAG),
        flow_name=data.get(FIELD_FLOW_NAME, ""),
        ref_id=ref_id,
        flow_status=FlowStatus(data.get(FIELD_FLOW_STATUS, FlowStatus.CREATED.value)),
        flow_tags=list(data.get(FIELD_FLOW_TAGS) or []),
        created=parse_utc(data.get(FIELD_CREATED)) or utc_now(),
        changed=parse_utc(data.get(FIELD_CHANGED)),
        context=FlowContext(
            ref_id=context.get("refId"),
            flow_name=context.get("flowName"),
            current_state=context.get("currentState"),
            execution_result=execution_result_from_dict(context.get("executionResult")),
            model=model,
        ),
    )
