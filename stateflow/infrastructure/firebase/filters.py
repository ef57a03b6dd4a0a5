"""Structured query filters (Firestore runQuery 'where' format).

These dicts are the store-native predicate representation: the REST
client sends them as-is and the in-memory client evaluates them. Build
them with the helpers below rather than by hand so operators and field
paths are normalized.
"""

from __future__ import annotations

import re
from typing import Any

from stateflow.infrastructure.firebase._rest_encoding import encode_value

OP_MAP: dict[str, str] = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
    "not-in": "NOT_IN",
    "not_in": "NOT_IN",
    "array_contains": "ARRAY_CONTAINS",
    "array-contains": "ARRAY_CONTAINS",
    "array_contains_any": "ARRAY_CONTAINS_ANY",
    "array-contains-any": "ARRAY_CONTAINS_ANY",
}

FIELD_OPERATORS = frozenset(OP_MAP.values())

_SIMPLE_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")


def quote_segment(segment: str) -> str:
    """Back-quote a field path segment unless it is a simple identifier."""
    if _SIMPLE_SEGMENT.match(segment):
        return segment
    escaped = segment.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def field_path(*segments: str) -> str:
    """Join raw segments into a Firestore field path (e.g. context.model.`$type`)."""
    return ".".join(quote_segment(s) for s in segments)


def split_field_path(path: str) -> list[str]:
    """Inverse of field_path: split on dots outside back-quotes and unescape."""
    segments: list[str] = []
    current: list[str] = []
    quoted = False
    i = 0
    while i < len(path):
        ch = path[i]
        if quoted:
            if ch == "\\" and i + 1 < len(path):
                current.append(path[i + 1])
                i += 2
                continue
            if ch == "`":
                quoted = False
            else:
                current.append(ch)
        elif ch == "`":
            quoted = True
        elif ch == ".":
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    segments.append("".join(current))
    return segments


def normalize_op(op: str) -> str:
    """Map '==' style operators to Firestore names; pass Firestore names through."""
    normalized = OP_MAP.get(op, op)
    if normalized not in FIELD_OPERATORS:
        raise ValueError(f"Unsupported filter operator: {op!r}")
    return normalized


def field_filter(path: str, op: str, value: Any) -> dict:
    """Comparison of one field against a value."""
    return {
        "fieldFilter": {
            "field": {"fieldPath": path},
            "op": normalize_op(op),
            "value": encode_value(value),
        }
    }


def all_of(*filters: dict | None) -> dict | None:
    """AND of the given filters (None entries ignored; single filter returned unwrapped)."""
    filters = [f for f in filters if f]
    if not filters:
        return None
    if len(filters) == 1:
        return filters[0]
    return {"compositeFilter": {"op": "AND", "filters": filters}}


# Firestore rejects a query whose IN / ARRAY_CONTAINS_ANY lists exceed these.
MAX_IN_VALUES = 30
MAX_NOT_IN_VALUES = 10
MAX_DISJUNCTIONS = 30

_DISJUNCTIVE_OPS = frozenset({"IN", "ARRAY_CONTAINS_ANY"})


def _list_size(value: dict) -> int:
    return len(value.get("arrayValue", {}).get("values") or [])


def disjunctions(where: dict | None) -> int:
    """Number of disjunctions Firestore expands an AND of filters into."""
    if not where:
        return 1
    if "fieldFilter" in where:
        spec = where["fieldFilter"]
        return _list_size(spec["value"]) if spec["op"] in _DISJUNCTIVE_OPS else 1
    total = 1
    for f in where["compositeFilter"]["filters"]:
        total *= disjunctions(f)
    return total


def _check_list_sizes(where: dict) -> None:
    if "compositeFilter" in where:
        for f in where["compositeFilter"]["filters"]:
            _check_list_sizes(f)
        return
    spec = where["fieldFilter"]
    size = _list_size(spec["value"])
    if spec["op"] in _DISJUNCTIVE_OPS and size > MAX_IN_VALUES:
        raise ValueError(f"{spec['op']} accepts at most {MAX_IN_VALUES} values, got {size}")
    if spec["op"] == "NOT_IN" and size > MAX_NOT_IN_VALUES:
        raise ValueError(f"NOT_IN accepts at most {MAX_NOT_IN_VALUES} values, got {size}")


def check_query_limits(where: dict | None) -> None:
    """Raise ValueError for a filter Firestore would reject as INVALID_ARGUMENT."""
    if not where:
        return
    _check_list_sizes(where)
    total = disjunctions(where)
    if total > MAX_DISJUNCTIONS:
        raise ValueError(
            f"Query expands to {total} disjunctions; at most {MAX_DISJUNCTIONS} are allowed"
        )
