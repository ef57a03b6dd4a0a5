"""Pytest configuration and fixtures for stateflow.

Repository and runner tests run against InMemoryFirestoreClient, which
evaluates the same structured queries the REST client sends. Sample
models are registered in a per-test registry, not the process-wide one.
"""

from datetime import datetime

import pytest
from pydantic import Field

from stateflow.application.services.model_types import ModelTypeRegistry
from stateflow.core.config import StoreOptions, get_settings
from stateflow.domain.entities.flow_model import FlowModel
from stateflow.domain.entities.state_graph import StateGraph, StateGraphBuilder
from stateflow.infrastructure.firebase._memory_client import InMemoryFirestoreClient
from stateflow.infrastructure.firebase.repositories.flow_repo_firestore import (
    FirestoreFlowRepository,
)

TEST_ENV_TAG = "test-env"
TEST_TENANT = "tenant-1"


class Address(FlowModel):
    city: str
    postcode: str | None = None


class LeadModel(FlowModel):
    """Sample CRM lead carried by a flow."""

    company: str
    amount: float = 0.0
    owner_name: str | None = Field(default=None, alias="ownerName")
    address: Address | None = None
    due: datetime | None = None


class TicketModel(FlowModel):
    title: str
    priority: int = 3


class RetiredModel(FlowModel):
    """Registered only in some tests, to simulate a type removed from the codebase."""

    note: str


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store_options() -> StoreOptions:
    return StoreOptions(
        endpoint="memory://",
        credential="unused",
        database="stateflow-test",
        environment_tag=TEST_ENV_TAG,
        flow_collection="flows",
        page_size=2,
    )


@pytest.fixture
def memory_client() -> InMemoryFirestoreClient:
    return InMemoryFirestoreClient(database="stateflow-test", page_size=2)


@pytest.fixture
def registry() -> ModelTypeRegistry:
    reg = ModelTypeRegistry()
    reg.register(LeadModel, "crm.Lead")
    reg.register(TicketModel, "support.Ticket")
    reg.freeze()
    return reg


@pytest.fixture
async def flow_repo(memory_client, store_options, registry) -> FirestoreFlowRepository:
    """Repository with ensure_schema() already awaited."""
    return await FirestoreFlowRepository.connect(memory_client, store_options, registry)


@pytest.fixture
def approval_graph() -> StateGraph:
    """draft --Submit--> review --Approve--> done (terminal); review --Reject--> draft."""
    return (
        StateGraphBuilder()
        .state("draft")
        .transition("Submit", "review")
        .state("review")
        .transition("Approve", "done")
        .transition("Reject", "draft")
        .state("done")
        .end()
        .build()
    )
