"""Applies dynamic QueryOptions (filter, sort, page) to a store query."""

from __future__ import annotations

import logging

from stateflow.application.dtos.query import QueryOptions
from stateflow.core.constants import FIELD_CREATED
from stateflow.domain.enums import FilterOperator, SortDirection
from stateflow.infrastructure.firebase.field_schema import SchemaDescriptor
from stateflow.infrastructure.firebase.filters import all_of, field_filter
from stateflow.infrastructure.firebase.query import ASCENDING, DESCENDING, BaseQuery

logger = logging.getLogger(__name__)

OPERATOR_MAP: dict[FilterOperator, str] = {
    FilterOperator.EQUAL: "EQUAL",
    FilterOperator.NOT_EQUAL: "NOT_EQUAL",
    FilterOperator.LESS_THAN: "LESS_THAN",
    FilterOperator.LESS_THAN_OR_EQUAL: "LESS_THAN_OR_EQUAL",
    FilterOperator.GREATER_THAN: "GREATER_THAN",
    FilterOperator.GREATER_THAN_OR_EQUAL: "GREATER_THAN_OR_EQUAL",
    FilterOperator.IN: "IN",
    FilterOperator.NOT_IN: "NOT_IN",
    FilterOperator.ARRAY_CONTAINS: "ARRAY_CONTAINS",
}

DIRECTION_MAP: dict[SortDirection, str] = {
    SortDirection.ASCENDING: ASCENDING,
    SortDirection.DESCENDING: DESCENDING,
}


class QueryOptionsEngine:
    """Translates QueryOptions into store-native filters, ordering and paging.

    Each part applies only when its allow_* flag is set. Without an
    allowed, non-empty sort the query is ordered by creation time,
    newest first.
    """

    def apply(
        self,
        query: BaseQuery,
        options: QueryOptions | None,
        schema: SchemaDescriptor,
    ) -> BaseQuery:
        """Shape query in place and return it.

        Raises:
            FieldResolutionException: If a filter or sort names a field
                the schema does not declare.
        """
        options = options or QueryOptions()

        if options.allow_filtering and options.filters:
            query = query.where_filter(
                all_of(
                    *(
                        field_filter(
                            schema.resolve(f.field),
                            OPERATOR_MAP[FilterOperator(f.operator)],
                            f.value,
                        )
                        for f in options.filters
                    )
                )
            )

        if options.allow_sort and options.sort:
            for s in options.sort:
                query = query.order_by(
                    schema.resolve(s.field), DIRECTION_MAP[SortDirection(s.direction)]
                )
        else:
            query = query.order_by(FIELD_CREATED, DESCENDING)

        if options.allow_pagination and options.page is not None:
            query = query.offset(options.page.offset).limit(options.page.page_size)

        logger.debug(
            "Applied query options to %s (filters=%d, sort=%d, page=%s)",
            schema.name,
            len(options.filters) if options.allow_filtering else 0,
            len(options.sort) if options.allow_sort else 0,
            options.page if options.allow_pagination else None,
        )
        return query
