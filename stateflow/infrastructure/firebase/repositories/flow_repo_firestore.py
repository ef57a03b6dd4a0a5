"""Firestore-backed flow repository (implements IFlowRepository)."""

from __future__ import annotations

import itertools
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from stateflow.application.dtos.flow import FlowContextView
from stateflow.application.dtos.query import FlowModelsQueryOptions, QueryOptions
from stateflow.application.interfaces.document_store import (
    ICollectionReference,
    IDocumentStoreClient,
    IQuery,
)
from stateflow.application.services.model_types import (
    ModelTypeRegistry,
    decode_model,
    get_model_type_registry,
)
from stateflow.core.config import Settings, StoreOptions
from stateflow.core.constants import (
    FIELD_CONTEXT,
    FIELD_CONTEXT_MODEL,
    FIELD_CREATED,
    FIELD_ENV_TAG,
    FIELD_FLOW_NAME,
    FIELD_FLOW_STATUS,
    FIELD_FLOW_TAG_INDEX,
    FIELD_FLOW_TAGS,
    FIELD_IS_WAIT_TASK,
    FIELD_REF_ID,
    FIELD_TENANT_ID,
    INACTIVE_STATUSES,
)
from stateflow.domain.entities.flow import FlowEntity
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.exceptions import StateFlowException
from stateflow.infrastructure.firebase.field_schema import SchemaDescriptor
from stateflow.infrastructure.firebase.filters import MAX_DISJUNCTIONS, field_filter, field_path
from stateflow.infrastructure.firebase.flow_document import (
    document_to_entity,
    entity_to_document,
    execution_result_from_dict,
    model_json,
    model_payload,
    model_type_name,
)
from stateflow.infrastructure.firebase.query import ASCENDING, DESCENDING, IndexSpec
from stateflow.infrastructure.firebase.query_options import QueryOptionsEngine
from stateflow.shared.telemetry.tracing import TracedOperation
from stateflow.shared.utils.generators import new_document_id

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=FlowModel)


def _flow_indexes() -> tuple[IndexSpec, ...]:
    """Composite indexes behind the fixed read paths, with and without a tenant.

    Active ids: env, flow name, status NOT_IN. Waiting ids: env, wait flag,
    status NOT_IN. Models and contexts: env, status IN, optional flow name
    and ref id IN, newest first. Lookups by ref id need no composite index.
    """
    indexes: list[IndexSpec] = []
    for tenant in ((), ((FIELD_TENANT_ID, ASCENDING),)):
        scope = ((FIELD_ENV_TAG, ASCENDING), *tenant)
        for field in (FIELD_FLOW_NAME, FIELD_IS_WAIT_TASK):
            indexes.append((*scope, (field, ASCENDING), (FIELD_FLOW_STATUS, ASCENDING)))
        for flow_name, ref_id in itertools.product(
            ((), ((FIELD_FLOW_NAME, ASCENDING),)), ((), ((FIELD_REF_ID, ASCENDING),))
        ):
            indexes.append(
                (
                    *scope,
                    (FIELD_FLOW_STATUS, ASCENDING),
                    *flow_name,
                    *ref_id,
                    (FIELD_CREATED, DESCENDING),
                )
            )
    return tuple(indexes)


FLOW_INDEXES = _flow_indexes()


@dataclass
class _ModelsQuery:
    """Store query plus the filters and page window applied to its results locally."""

    query: IQuery
    ref_ids: frozenset[str] | None = None
    any_tags: frozenset[str] | None = None
    offset: int = 0
    limit: int | None = None

    @property
    def filters_locally(self) -> bool:
        return self.ref_ids is not None or self.any_tags is not None


class FirestoreFlowRepository:
    """Flow repository using Firestore.

    Construction only validates configuration; ensure_schema() must be
    awaited before the first operation (or use connect()).
    """

    def __init__(
        self,
        client: IDocumentStoreClient,
        options: StoreOptions,
        registry: ModelTypeRegistry | None = None,
        query_engine: QueryOptionsEngine | None = None,
    ) -> None:
        options.validate()
        self._client = client
        self._options = options
        self._registry = registry or get_model_type_registry()
        self._query_engine = query_engine or QueryOptionsEngine()
        self._coll: ICollectionReference = client.collection(options.flow_collection)
        self._ready = False

    @classmethod
    async def connect(
        cls,
        client: IDocumentStoreClient,
        options: StoreOptions | Settings,
        registry: ModelTypeRegistry | None = None,
    ) -> FirestoreFlowRepository:
        """Construct and bootstrap a repository in one awaitable step."""
        if isinstance(options, Settings):
            options = StoreOptions.from_settings(options)
        repo = cls(client, options, registry)
        await repo.ensure_schema()
        return repo

    @property
    def options(self) -> StoreOptions:
        return self._options

    @property
    def registry(self) -> ModelTypeRegistry:
        return self._registry

    async def ensure_schema(self, extra_indexes: Iterable[IndexSpec] = ()) -> None:
        """Create the database and the composite indexes the read paths need. Idempotent.

        extra_indexes adds deployment-specific indexes, e.g. for dynamic
        filters or sorts on model fields.
        """
        with TracedOperation(
            "ensure_schema",
            {"collection": self._options.flow_collection},
            logger,
        ):
            created = await self._client.ensure_database()
            if created:
                logger.info("Database %s created", self._options.database)
            for index in (*FLOW_INDEXES, *extra_indexes):
                await self._client.ensure_index(self._options.flow_collection, index)
        self._ready = True

    def _require_ready(self) -> None:
        if not self._ready:
            raise StateFlowException(
                "Flow repository used before ensure_schema() completed",
                "SCHEMA_NOT_READY",
            )

    def _scoped_query(self, tenant_id: str | None) -> IQuery:
        """Query restricted to this environment and, when given, the tenant."""
        query = self._coll.query().where(FIELD_ENV_TAG, "==", self._options.environment_tag)
        if tenant_id:
            query = query.where(FIELD_TENANT_ID, "==", tenant_id)
        return query

    def _models_query(
        self,
        tenant_id: str | None,
        options: FlowModelsQueryOptions,
        schema: SchemaDescriptor,
    ) -> _ModelsQuery | None:
        """Shared filter pipeline of get_flow_models/get_flow_contexts.

        Returns None when the requested statuses leave nothing to match.
        An any-tag or ref id list that would push the store query past
        its disjunction limit is matched locally instead; the page window
        then moves to the local side too.
        """
        statuses = options.effective_statuses()
        if not statuses:
            return None
        query = self._scoped_query(tenant_id).where(
            FIELD_FLOW_STATUS, "in", [s.value for s in statuses]
        )
        if options.flow_name:
            query = query.where(FIELD_FLOW_NAME, "==", options.flow_name)
        if options.tags and not options.search_any_tag:
            for tag in dict.fromkeys(options.tags):
                query = query.where_filter(
                    field_filter(field_path(FIELD_FLOW_TAG_INDEX, tag), "==", True)
                )
        shaping = options.query_options or QueryOptions()
        query = self._query_engine.apply(
            query, replace(shaping, allow_pagination=False), schema
        )

        budget = query.disjunctions()
        local_tags: frozenset[str] | None = None
        local_ref_ids: frozenset[str] | None = None
        if options.tags and options.search_any_tag:
            tags = list(dict.fromkeys(options.tags))
            if budget * len(tags) <= MAX_DISJUNCTIONS:
                query = query.where(FIELD_FLOW_TAGS, "array_contains_any", tags)
                budget *= len(tags)
            else:
                local_tags = frozenset(tags)
        if options.ref_ids:
            ref_ids = list(dict.fromkeys(options.ref_ids))
            if budget * len(ref_ids) <= MAX_DISJUNCTIONS:
                query = query.where(FIELD_REF_ID, "in", ref_ids)
            else:
                local_ref_ids = frozenset(ref_ids)

        planned = _ModelsQuery(query, ref_ids=local_ref_ids, any_tags=local_tags)
        page = shaping.page if shaping.allow_pagination else None
        if page is not None:
            if planned.filters_locally:
                planned.offset, planned.limit = page.offset, page.page_size
            else:
                planned.query = query.offset(page.offset).limit(page.page_size)
        if planned.filters_locally:
            logger.debug(
                "Matching %s locally (store query at %d disjunctions)",
                "ref ids" if local_ref_ids is not None else "tags",
                budget,
            )
        return planned

    async def _stream_models(
        self, planned: _ModelsQuery, *fields: str
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream projected documents of planned, applying its local filters and page."""
        if planned.any_tags is not None:
            fields = (*fields, FIELD_FLOW_TAGS)
        query = planned.query.select(*fields)
        skip, remaining = planned.offset, planned.limit
        async for snapshot in query.stream(self._options.page_size):
            data = snapshot.to_dict()
            if planned.ref_ids is not None and data.get(FIELD_REF_ID) not in planned.ref_ids:
                continue
            if planned.any_tags is not None and planned.any_tags.isdisjoint(
                data.get(FIELD_FLOW_TAGS) or ()
            ):
                continue
            if skip:
                skip -= 1
                continue
            yield data
            if remaining is not None:
                remaining -= 1
                if remaining == 0:
                    return

    async def upsert_flow(self, tenant_id: str | None, entity: FlowEntity) -> str:
        """Insert or replace entity; assigns id when absent and returns it.

        tenant_id overrides the entity's tenant when given; env tag and change
        time are always stamped. Store failures are logged and re-raised.
        """
        self._require_ready()
        with TracedOperation(
            "upsert_flow",
            {"ref_id": entity.ref_id, "flow_name": entity.flow_name},
            logger,
        ) as op:
            try:
                if not entity.id:
                    entity.id = new_document_id()
                entity.tenant_id = tenant_id or entity.tenant_id
                entity.env_tag = self._options.environment_tag
                entity.touch()
                data = entity_to_document(entity, self._registry)
                await self._coll.document(entity.id).set(data)
            except Exception as exc:
                op.record_error(exc)
                logger.exception("Failed to upsert flow %s", entity.ref_id)
                raise
        return entity.id

    async def get_flow_by_ref(
        self, tenant_id: str | None, ref_id: str
    ) -> FlowEntity | None:
        """Return the flow with ref_id (within tenant when given), or None.

        Raises:
            UnknownModelTypeException: If the stored model type is not registered.
        """
        self._require_ready()
        with TracedOperation("get_flow_by_ref", {"ref_id": ref_id}, logger):
            query = self._coll.query().where(FIELD_REF_ID, "==", ref_id)
            if tenant_id:
                query = query.where(FIELD_TENANT_ID, "==", tenant_id)
            async for snapshot in query.limit(1).stream():
                return document_to_entity(snapshot.id, snapshot.to_dict(), self._registry)
        return None

    async def get_active_flows_ids(
        self, tenant_id: str | None, flow_name: str
    ) -> AsyncIterator[str]:
        """Stream ref ids of flow_name flows that are neither finished nor deleted."""
        self._require_ready()
        with TracedOperation(
            "get_active_flows_ids", {"flow_name": flow_name}, logger
        ):
            query = (
                self._scoped_query(tenant_id)
                .where(FIELD_FLOW_NAME, "==", flow_name)
                .where(FIELD_FLOW_STATUS, "not_in", [s.value for s in INACTIVE_STATUSES])
                .select(FIELD_REF_ID)
            )
            async for snapshot in query.stream(self._options.page_size):
                yield snapshot.to_dict().get(FIELD_REF_ID)

    async def get_all_waiting_flows_ids(self, tenant_id: str | None) -> AsyncIterator[str]:
        """Stream ref ids of flows parked on a wait task (not finished or deleted)."""
        self._require_ready()
        with TracedOperation("get_all_waiting_flows_ids", {"tenant_id": tenant_id}, logger):
            query = (
                self._scoped_query(tenant_id)
                .where(FIELD_IS_WAIT_TASK, "==", True)
                .where(FIELD_FLOW_STATUS, "not_in", [s.value for s in INACTIVE_STATUSES])
                .select(FIELD_REF_ID)
            )
            async for snapshot in query.stream(self._options.page_size):
                yield snapshot.to_dict().get(FIELD_REF_ID)

    async def get_flow_models(
        self,
        tenant_id: str | None,
        options: FlowModelsQueryOptions,
        model_type: type[ModelT],
    ) -> AsyncIterator[tuple[str, ModelT]]:
        """Stream (ref_id, model) pairs matching options.

        Records without a model, with an unregistered model type or with a
        payload that does not validate as model_type are logged and skipped.

        Raises:
            FieldResolutionException: If options filter or sort on a field
                model_type does not declare.
        """
        self._require_ready()
        with TracedOperation(
            "get_flow_models", {"model_type": model_type.__name__}, logger
        ):
            planned = self._models_query(
                tenant_id, options, SchemaDescriptor.for_model(model_type)
            )
            if planned is None:
                return
            skipped = 0
            async for data in self._stream_models(planned, FIELD_REF_ID, FIELD_CONTEXT_MODEL):
                ref_id = data.get(FIELD_REF_ID)
                payload = model_payload(data)
                if payload is None:
                    continue
                decoded = decode_model(payload, self._registry, model_type, ref_id)
                if not decoded.ok:
                    skipped += 1
                    logger.error(
                        "Failed to deserialize flow RefId %s: %s",
                        ref_id,
                        decoded.error.message,
                    )
                    continue
                yield ref_id, decoded.model
            if skipped:
                logger.warning("get_flow_models skipped %d record(s)", skipped)

    async def get_flow_contexts(
        self, tenant_id: str | None, options: FlowModelsQueryOptions
    ) -> list[FlowContextView]:
        """List context views matching options.

        A record whose model type is not registered here is still listed,
        with model=None and the stored payload in model_json. Records that
        cannot be read at all are logged and omitted.
        """
        self._require_ready()
        results: list[FlowContextView] = []
        with TracedOperation("get_flow_contexts", {"tenant_id": tenant_id}, logger):
            planned = self._models_query(tenant_id, options, SchemaDescriptor.envelope())
            if planned is None:
                return results
            async for data in self._stream_models(
                planned, FIELD_REF_ID, FIELD_FLOW_NAME, FIELD_CONTEXT
            ):
                view = self._context_view(data)
                if view is not None:
                    results.append(view)
        return results

    def _context_view(self, data: dict[str, Any]) -> FlowContextView | None:
        ref_id = data.get(FIELD_REF_ID)
        context = data.get(FIELD_CONTEXT)
        if not isinstance(context, dict):
            logger.error("Flow RefId %s has no readable context", ref_id)
            return None
        payload = context.get("model")
        if payload is None:
            return None
        type_name = model_type_name(payload)
        if type_name is None:
            logger.error("Flow RefId %s model has no type tag", ref_id)
            return None
        decoded = decode_model(payload, self._registry, FlowModel, ref_id)
        if not decoded.ok and not decoded.unknown_type:
            logger.error(
                "Failed to deserialize flow RefId %s: %s", ref_id, decoded.error.message
            )
            return None
        if decoded.unknown_type:
            logger.debug("Flow RefId %s has unregistered model type %s", ref_id, type_name)
        return FlowContextView(
            ref_id=context.get("refId") or ref_id,
            flow_name=context.get("flowName") or data.get(FIELD_FLOW_NAME),
            current_state=context.get("currentState"),
            execution_result=execution_result_from_dict(context.get("executionResult")),
            model=decoded.model,
            model_type=type_name,
            model_json=model_json(payload),
        )
