"""Engine lifespan: startup and shutdown.

Single place for startup/shutdown wiring (logging, telemetry, store
client, repository bootstrap). No flow logic here.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from stateflow.application.services.model_types import (
    ModelTypeRegistry,
    get_model_type_registry,
)
from stateflow.core.config import Settings, StoreOptions, get_settings
from stateflow.infrastructure.firebase.client import (
    close_document_store,
    init_document_store,
)
from stateflow.infrastructure.firebase.repositories.flow_repo_firestore import (
    FirestoreFlowRepository,
)
from stateflow.shared.telemetry.logging import setup_logging
from stateflow.shared.telemetry.telemetry import TelemetryConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_flow_engine(
    settings: Settings | None = None,
    registry: ModelTypeRegistry | None = None,
) -> AsyncIterator[FirestoreFlowRepository]:
    """Start the engine, yield a ready flow repository, then shut down.

    Startup order: logging, telemetry (if enabled), store client,
    repository construction (configuration check), schema bootstrap.
    The model type registry is frozen before the first flow is read.
    Shutdown order: store client close, telemetry shutdown.
    """
    settings = settings or get_settings()
    registry = registry or get_model_type_registry()

    # ---- Startup ----
    setup_logging(settings)

    telemetry: TelemetryConfig | None = None
    if settings.telemetry_enabled:
        telemetry = TelemetryConfig(
            service_name=settings.app_name,
            service_version=settings.app_version,
            environment=settings.telemetry_environment,
        )
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )

    try:
        options = StoreOptions.from_settings(settings)
        client = init_document_store(settings)
        repo = FirestoreFlowRepository(client, options, registry)
        registry.freeze()
        await repo.ensure_schema()
        logger.info(
            "Flow engine ready (backend=%s, collection=%s, env=%s)",
            settings.store_backend,
            options.flow_collection,
            options.environment_tag,
        )

        yield repo
    finally:
        # ---- Shutdown ----
        await close_document_store()
        if telemetry is not None:
            telemetry.shutdown()
