"""Engine configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Store connection settings are checked again, as a
group, when the flow repository is constructed (see StoreOptions).
"""

from dataclasses import dataclass
from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stateflow.core.constants import DEFAULT_FLOW_COLLECTION, DEFAULT_STORE_PAGE_SIZE
from stateflow.domain.exceptions import ConfigurationException


class Settings(BaseSettings):
    """Engine settings loaded from environment and .env.

    The four store connection settings (endpoint, credential, database,
    environment tag) default to empty so that settings can be loaded for
    tooling; the repository refuses to start without them.
    """

    # App
    app_name: str = "stateflow"
    app_version: str = "1.0.0"
    debug: bool = False

    # Document store: "firestore" (REST API) or "memory" (in-process, tests/local runs)
    store_backend: str = "firestore"
    store_endpoint: str = "https://firestore.googleapis.com/v1"
    store_credential: SecretStr = SecretStr("")  # service account JSON
    store_credential_path: str | None = None  # alternative: path to JSON file
    store_database: str = ""
    environment_tag: str = ""
    flow_collection: str = DEFAULT_FLOW_COLLECTION
    store_page_size: int = DEFAULT_STORE_PAGE_SIZE
    store_timeout_seconds: float = 30.0

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_store_backend(self) -> "Settings":
        """Validate backend choice and paging."""
        if self.store_backend not in ("firestore", "memory"):
            raise ValueError(
                f"store_backend must be 'firestore' or 'memory', got: {self.store_backend!r}"
            )
        if self.store_page_size < 1:
            raise ValueError("store_page_size must be >= 1")
        return self


@dataclass(frozen=True)
class StoreOptions:
    """Connection settings the flow repository requires."""

    endpoint: str
    credential: str
    database: str
    environment_tag: str
    flow_collection: str = DEFAULT_FLOW_COLLECTION
    page_size: int = DEFAULT_STORE_PAGE_SIZE

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreOptions":
        """Build options from settings; the credential falls back to the key file path."""
        credential = settings.store_credential.get_secret_value()
        if not credential and settings.store_credential_path:
            credential = settings.store_credential_path
        return cls(
            endpoint=settings.store_endpoint,
            credential=credential,
            database=settings.store_database,
            environment_tag=settings.environment_tag,
            flow_collection=settings.flow_collection or DEFAULT_FLOW_COLLECTION,
            page_size=settings.store_page_size,
        )

    def validate(self) -> None:
        """Raise ConfigurationException unless all four connection settings are present."""
        missing = [
            name
            for name, value in (
                ("store_endpoint", self.endpoint),
                ("store_credential", self.credential),
                ("store_database", self.database),
                ("environment_tag", self.environment_tag),
            )
            if not value
        ]
        if missing:
            raise ConfigurationException(
                "Not all required document store settings provided",
                missing=missing,
            )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
