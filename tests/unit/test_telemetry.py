"""Tests for the tracer provider owned by the engine lifespan."""

from opentelemetry.sdk.trace import TracerProvider

from stateflow.shared.telemetry import TelemetryConfig


def test_build_provider_without_exporter() -> None:
    config = TelemetryConfig("stateflow-engine", "1.0.0", environment="test")
    provider = config.build_provider(exporter_type="none")
    assert isinstance(provider, TracerProvider)
    assert provider.resource.attributes["service.name"] == "stateflow-engine"
    assert provider.resource.attributes["deployment.environment"] == "test"
    assert config.tracer_provider is None
    provider.shutdown()


def test_shutdown_without_setup_is_a_no_op() -> None:
    config = TelemetryConfig("stateflow-engine", "1.0.0")
    config.shutdown()
    assert config.tracer_provider is None


def test_shutdown_releases_provider() -> None:
    config = TelemetryConfig("stateflow-engine", "1.0.0")
    config.tracer_provider = config.build_provider(exporter_type="none")
    config.shutdown()
    assert config.tracer_provider is None
