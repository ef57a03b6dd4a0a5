"""Tests for ModelTypeRegistry and the tagged model payload codec."""

import pytest
from conftest import LeadModel, RetiredModel, TicketModel

from stateflow.application.services.model_types import (
    DecodedModel,
    ModelTypeRegistry,
    decode_model,
    encode_model,
    flow_model,
    get_model_type_registry,
)
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.exceptions import (
    ModelTypeRegistrationException,
    UnknownModelTypeException,
)


def test_register_and_resolve_by_name() -> None:
    reg = ModelTypeRegistry()
    reg.register(LeadModel, "crm.Lead")
    assert reg.resolve("crm.Lead") is LeadModel
    assert reg.name_of(LeadModel) == "crm.Lead"
    assert "crm.Lead" in reg
    assert reg.resolve("nope") is None
    assert reg.resolve(None) is None


def test_default_name_is_module_qualified() -> None:
    reg = ModelTypeRegistry()
    reg.register(TicketModel)
    assert reg.name_of(TicketModel) == f"{TicketModel.__module__}.TicketModel"


def test_reregistering_same_pair_is_noop() -> None:
    reg = ModelTypeRegistry()
    reg.register(LeadModel, "crm.Lead")
    reg.freeze()
    assert reg.register(LeadModel, "crm.Lead") is LeadModel


def test_duplicate_name_or_type_is_rejected() -> None:
    reg = ModelTypeRegistry()
    reg.register(LeadModel, "crm.Lead")
    with pytest.raises(ModelTypeRegistrationException):
        reg.register(TicketModel, "crm.Lead")
    with pytest.raises(ModelTypeRegistrationException):
        reg.register(LeadModel, "crm.Lead.v2")


def test_register_after_freeze_is_rejected() -> None:
    reg = ModelTypeRegistry()
    reg.freeze()
    assert reg.frozen
    with pytest.raises(ModelTypeRegistrationException) as exc_info:
        reg.register(TicketModel, "support.Ticket")
    assert exc_info.value.details == {"type_name": "support.Ticket"}


def test_non_model_type_is_rejected() -> None:
    with pytest.raises(ModelTypeRegistrationException):
        ModelTypeRegistry().register(dict, "builtins.dict")  # type: ignore[arg-type]


def test_known_types_is_read_only() -> None:
    reg = ModelTypeRegistry()
    reg.register(LeadModel, "crm.Lead")
    with pytest.raises(TypeError):
        reg.known_types["x"] = TicketModel  # type: ignore[index]


def test_name_of_unregistered_type_raises() -> None:
    with pytest.raises(UnknownModelTypeException):
        ModelTypeRegistry().name_of(RetiredModel)


def test_encode_tags_payload_and_uses_aliases(registry) -> None:
    payload = encode_model(LeadModel(company="Acme", owner_name="Ann"), registry)
    assert payload["$type"] == "crm.Lead"
    assert payload["company"] == "Acme"
    assert payload["ownerName"] == "Ann"
    assert "owner_name" not in payload


def test_decode_known_type(registry) -> None:
    payload = {"$type": "crm.Lead", "company": "Acme", "amount": 10.5}
    decoded = decode_model(payload, registry, ref_id="F-1")
    assert isinstance(decoded, DecodedModel)
    assert decoded.ok
    assert isinstance(decoded.model, LeadModel)
    assert decoded.model.amount == 10.5
    assert decoded.type_name == "crm.Lead"


def test_decode_unknown_type_is_an_error_value(registry) -> None:
    decoded = decode_model({"$type": "legacy.Retired", "note": "x"}, registry, ref_id="F-9")
    assert not decoded.ok
    assert decoded.unknown_type
    assert decoded.model is None
    assert decoded.error.details == {"ref_id": "F-9", "model_type": "legacy.Retired"}


def test_decode_wrong_subclass_is_rejected(registry) -> None:
    decoded = decode_model({"$type": "support.Ticket", "title": "t"}, registry, LeadModel)
    assert not decoded.ok
    assert not decoded.unknown_type


def test_decode_validation_failure(registry) -> None:
    decoded = decode_model({"$type": "crm.Lead", "amount": 1}, registry, ref_id="F-2")
    assert not decoded.ok
    assert decoded.error.error_code == "MODEL_DECODE_ERROR"


def test_decode_untagged_payload_uses_expected_type(registry) -> None:
    assert decode_model({"title": "t"}, registry, TicketModel).model == TicketModel(title="t")
    assert not decode_model({"title": "t"}, registry, FlowModel).ok


def test_decode_non_object_payload(registry) -> None:
    assert not decode_model("not a model", registry).ok


def test_flow_model_decorator_registers_in_process_registry() -> None:
    @flow_model("tests.DecoratedNote")
    class DecoratedNote(FlowModel):
        text: str

    registry = get_model_type_registry()
    assert registry.resolve("tests.DecoratedNote") is DecoratedNote
    assert registry.name_of(DecoratedNote) == "tests.DecoratedNote"
