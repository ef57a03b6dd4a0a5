"""Tests for Firestore value encoding and structured filter helpers."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from stateflow.domain.enums import FlowStatus
from stateflow.infrastructure.firebase._rest_encoding import (
    decode_document,
    encode_document,
    encode_value,
)
from stateflow.infrastructure.firebase.filters import (
    all_of,
    check_query_limits,
    disjunctions,
    field_filter,
    field_path,
    normalize_op,
    split_field_path,
)


def test_encode_scalars_and_enums() -> None:
    assert encode_value(None) == {"nullValue": None}
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(3) == {"integerValue": "3"}
    assert encode_value(1.5) == {"doubleValue": 1.5}
    assert encode_value(FlowStatus.WAITING) == {"stringValue": "waiting"}


def test_encode_datetime_normalizes_to_utc() -> None:
    local = datetime(2024, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert encode_value(local) == {"timestampValue": "2024-05-01T10:00:00.000000Z"}


def test_unsupported_type_raises() -> None:
    with pytest.raises(TypeError):
        encode_value(object())


def test_document_decodes_to_plain_data() -> None:
    created = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)
    data = {
        "refId": "F-1",
        "flowTags": ["vip", "urgent"],
        "flowTagIndex": {"vip": True},
        "created": created,
        "context": {"model": {"$type": "crm.Lead", "amount": 2}},
        "changed": None,
    }
    assert decode_document(encode_document(data)) == data


def test_decode_document_handles_empty() -> None:
    assert decode_document(None) == {}
    assert decode_document({"name": "x"}) == {}


def test_field_path_quotes_non_identifier_segments() -> None:
    assert field_path("context", "model", "$type") == "context.model.`$type`"
    assert field_path("flowTagIndex", "high-value") == "flowTagIndex.`high-value`"
    assert field_path("flowTagIndex", "vip") == "flowTagIndex.vip"


def test_split_field_path_inverts_quoting() -> None:
    assert split_field_path("context.model.`$type`") == ["context", "model", "$type"]
    assert split_field_path("flowTagIndex.`a.b`") == ["flowTagIndex", "a.b"]
    assert split_field_path("created") == ["created"]


def test_normalize_op() -> None:
    assert normalize_op("==") == "EQUAL"
    assert normalize_op("not_in") == "NOT_IN"
    assert normalize_op("array_contains_any") == "ARRAY_CONTAINS_ANY"
    assert normalize_op("LESS_THAN") == "LESS_THAN"
    with pytest.raises(ValueError):
        normalize_op("~=")


def test_field_filter_shape() -> None:
    assert field_filter("flowStatus", "in", ["created", "started"]) == {
        "fieldFilter": {
            "field": {"fieldPath": "flowStatus"},
            "op": "IN",
            "value": {
                "arrayValue": {
                    "values": [{"stringValue": "created"}, {"stringValue": "started"}]
                }
            },
        }
    }


def test_composites_collapse_and_skip_none() -> None:
    a = field_filter("a", "==", 1)
    b = field_filter("b", "==", 2)
    assert all_of() is None
    assert all_of(None, a) == a
    assert all_of(a, b) == {"compositeFilter": {"op": "AND", "filters": [a, b]}}


def test_disjunctions_multiply_in_and_array_contains_any() -> None:
    status = field_filter("flowStatus", "in", ["created", "started", "waiting", "failed"])
    tags = field_filter("flowTags", "array_contains_any", ["vip", "urgent"])
    env = field_filter("envTag", "==", "prod")
    assert disjunctions(None) == 1
    assert disjunctions(env) == 1
    assert disjunctions(all_of(env, status, tags)) == 8
    assert disjunctions(all_of(status, field_filter("flowStatus", "not_in", ["x", "y"]))) == 4


def test_check_query_limits() -> None:
    check_query_limits(None)
    check_query_limits(field_filter("refId", "in", [str(i) for i in range(30)]))
    with pytest.raises(ValueError, match="at most 30 values"):
        check_query_limits(field_filter("refId", "in", [str(i) for i in range(31)]))
    with pytest.raises(ValueError, match="NOT_IN accepts at most 10"):
        check_query_limits(field_filter("flowStatus", "not_in", [str(i) for i in range(11)]))
    status = field_filter("flowStatus", "in", ["created", "started", "waiting", "failed"])
    refs = field_filter("refId", "in", [str(i) for i in range(8)])
    with pytest.raises(ValueError, match="32 disjunctions"):
        check_query_limits(all_of(status, refs))
