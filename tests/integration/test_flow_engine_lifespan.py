"""create_flow_engine startup/shutdown with the memory backend."""

import pytest
from conftest import LeadModel

from stateflow.application.services.model_types import ModelTypeRegistry
from stateflow.core.config import Settings
from stateflow.core.lifespan import create_flow_engine
from stateflow.domain.exceptions import ConfigurationException, ModelTypeRegistrationException
from stateflow.infrastructure.firebase.client import get_document_store


def _settings(**overrides) -> Settings:
    values = {
        "store_backend": "memory",
        "store_credential": "unused",
        "store_database": "lifespan-db",
        "environment_tag": "ci",
        "telemetry_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def test_engine_yields_ready_repository_and_closes_client() -> None:
    registry = ModelTypeRegistry()
    registry.register(LeadModel, "crm.Lead")

    async with create_flow_engine(_settings(), registry) as repo:
        assert repo.options.environment_tag == "ci"
        assert registry.frozen
        assert [r async for r in repo.get_all_waiting_flows_ids(None)] == []
        client = get_document_store()
        assert client is not None

    assert client.closed
    assert get_document_store() is None
    assert client.database_created
    with pytest.raises(ModelTypeRegistrationException):
        registry.register(LeadModel, "crm.Lead.v2")


async def test_engine_refuses_to_start_without_store_settings() -> None:
    with pytest.raises(ConfigurationException) as exc_info:
        async with create_flow_engine(_settings(environment_tag=""), ModelTypeRegistry()):
            pass
    assert exc_info.value.details == {"missing": ["environment_tag"]}
