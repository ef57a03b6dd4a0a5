"""Tests for QueryOptionsEngine and SchemaDescriptor field resolution."""

import pytest
from conftest import LeadModel

from stateflow.application.dtos.query import FieldFilter, PageSpec, QueryOptions, SortField
from stateflow.domain.enums import FilterOperator, SortDirection
from stateflow.domain.exceptions import FieldResolutionException
from stateflow.infrastructure.firebase._memory_client import InMemoryFirestoreClient
from stateflow.infrastructure.firebase.field_schema import SchemaDescriptor
from stateflow.infrastructure.firebase.query_options import QueryOptionsEngine


@pytest.fixture
def query():
    return InMemoryFirestoreClient().collection("flows").query()


@pytest.fixture
def lead_schema() -> SchemaDescriptor:
    return SchemaDescriptor.for_model(LeadModel)


def _rendered(q) -> dict:
    return q.structured_query(q._offset, q._limit)


def test_resolve_model_fields_by_name_alias_and_nesting(lead_schema) -> None:
    assert lead_schema.resolve("company") == "context.model.company"
    assert lead_schema.resolve("owner_name") == "context.model.ownerName"
    assert lead_schema.resolve("ownerName") == "context.model.ownerName"
    assert lead_schema.resolve("address.city") == "context.model.address.city"


def test_resolve_envelope_fields(lead_schema) -> None:
    assert lead_schema.resolve("created") == "created"
    assert lead_schema.resolve("flowStatus") == "flowStatus"
    assert SchemaDescriptor.envelope().resolve("currentState") == "context.currentState"


def test_unknown_field_fails_clearly(lead_schema) -> None:
    with pytest.raises(FieldResolutionException) as exc_info:
        lead_schema.resolve("revenue")
    assert exc_info.value.details == {"field": "revenue", "schema": "LeadModel"}
    with pytest.raises(FieldResolutionException):
        lead_schema.resolve("address.country")
    with pytest.raises(FieldResolutionException):
        lead_schema.resolve("company.name")
    with pytest.raises(FieldResolutionException):
        SchemaDescriptor.envelope().resolve("company")


def test_no_options_orders_newest_first(query, lead_schema) -> None:
    structured = _rendered(QueryOptionsEngine().apply(query, None, lead_schema))
    assert "where" not in structured
    assert structured["orderBy"] == [
        {"field": {"fieldPath": "created"}, "direction": "DESCENDING"}
    ]
    assert "limit" not in structured


def test_filters_are_ignored_unless_allowed(query, lead_schema) -> None:
    options = QueryOptions(filters=(FieldFilter("company", "Acme"),))
    structured = _rendered(QueryOptionsEngine().apply(query, options, lead_schema))
    assert "where" not in structured


def test_unknown_field_is_not_checked_when_filtering_disallowed(query, lead_schema) -> None:
    options = QueryOptions(filters=(FieldFilter("revenue", 1),))
    QueryOptionsEngine().apply(query, options, lead_schema)


def test_allowed_filters_translate_to_field_filters(query, lead_schema) -> None:
    options = QueryOptions(
        allow_filtering=True,
        filters=(
            FieldFilter("company", "Acme"),
            FieldFilter("amount", 100, FilterOperator.GREATER_THAN_OR_EQUAL),
        ),
    )
    structured = _rendered(QueryOptionsEngine().apply(query, options, lead_schema))
    filters = structured["where"]["compositeFilter"]["filters"]
    assert structured["where"]["compositeFilter"]["op"] == "AND"
    assert filters[0]["fieldFilter"]["field"]["fieldPath"] == "context.model.company"
    assert filters[0]["fieldFilter"]["op"] == "EQUAL"
    assert filters[1]["fieldFilter"]["op"] == "GREATER_THAN_OR_EQUAL"
    assert filters[1]["fieldFilter"]["value"] == {"integerValue": "100"}


def test_allowed_filter_on_unknown_field_raises(query, lead_schema) -> None:
    options = QueryOptions(allow_filtering=True, filters=(FieldFilter("revenue", 1),))
    with pytest.raises(FieldResolutionException):
        QueryOptionsEngine().apply(query, options, lead_schema)


def test_allowed_sort_replaces_default_order(query, lead_schema) -> None:
    options = QueryOptions(
        allow_sort=True,
        sort=(SortField("amount", SortDirection.DESCENDING), SortField("company")),
    )
    structured = _rendered(QueryOptionsEngine().apply(query, options, lead_schema))
    assert structured["orderBy"] == [
        {"field": {"fieldPath": "context.model.amount"}, "direction": "DESCENDING"},
        {"field": {"fieldPath": "context.model.company"}, "direction": "ASCENDING"},
    ]


def test_allowed_but_empty_sort_keeps_default(query, lead_schema) -> None:
    options = QueryOptions(allow_sort=True)
    structured = _rendered(QueryOptionsEngine().apply(query, options, lead_schema))
    assert structured["orderBy"][0]["field"]["fieldPath"] == "created"


def test_pagination_sets_offset_and_limit(query, lead_schema) -> None:
    options = QueryOptions(allow_pagination=True, page=PageSpec(page_index=2, page_size=5))
    structured = _rendered(QueryOptionsEngine().apply(query, options, lead_schema))
    assert structured["offset"] == 10
    assert structured["limit"] == 5


def test_page_spec_validation() -> None:
    with pytest.raises(ValueError):
        PageSpec(page_index=-1)
    with pytest.raises(ValueError):
        PageSpec(page_size=0)
