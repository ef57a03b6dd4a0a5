"""Domain enumerations for the flow engine.

Enums represent fixed sets of domain values (e.g. flow status).
"""

from enum import Enum


class FlowStatus(str, Enum):
    """Lifecycle status of a persisted flow instance.

    Monotonic in practice, but the engine accepts any status change;
    callers that need stricter lifecycles validate on top.
    """

    CREATED = "created"
    STARTED = "started"
    WAITING = "waiting"
    FINISHED = "finished"
    FAILED = "failed"
    DELETED = "deleted"


class SortDirection(str, Enum):
    """Ordering direction for dynamic sort."""

    ASCENDING = "asc"
    DESCENDING = "desc"


class FilterOperator(str, Enum):
    """Comparison operators accepted by dynamic field filters."""

    EQUAL = "eq"
    NOT_EQUAL = "ne"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "le"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "ge"
    IN = "in"
    NOT_IN = "not_in"
    ARRAY_CONTAINS = "array_contains"
