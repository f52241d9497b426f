"""
Tests for runtime configuration validation.
"""

import importlib

import pytest
from pydantic import ValidationError

from shared.config.settings import Settings


def make_settings(**overrides) -> Settings:
    values = {
        "api_gateway_endpoint": "https://gw.example.com/dev",
        "environment": "development",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    """Tests for Settings.validate_runtime()."""

    def test_defaults(self):
        config = make_settings()
        assert config.stream_name == "fanout:events"
        assert config.connection_table == "fanout:connections"
        assert config.registry_snapshot_scope == "batch"
        assert config.fanout_max_concurrent_pushes == 50

    def test_valid_configuration(self):
        assert make_settings().validate_runtime() == []

    def test_local_mode_without_endpoint(self):
        config = make_settings(api_gateway_endpoint="", gateway_mode="local", registry_backend="memory")
        assert config.validate_runtime() == []

    def test_local_mode_rejects_shared_registry(self):
        """Other nodes cannot reach in-process sockets and would prune their ids."""
        errors = make_settings(gateway_mode="local", registry_backend="redis").validate_runtime()
        assert errors == ["GATEWAY_MODE=local requires REGISTRY_BACKEND=memory"]

    def test_http_mode_requires_endpoint(self):
        errors = make_settings(api_gateway_endpoint="").validate_runtime()
        assert any("API_GATEWAY_ENDPOINT" in e for e in errors)

    @pytest.mark.parametrize("field, value, fragment", [
        ("registry_backend", "dynamo", "REGISTRY_BACKEND"),
        ("gateway_mode", "carrier-pigeon", "GATEWAY_MODE"),
        ("registry_snapshot_scope", "forever", "REGISTRY_SNAPSHOT_SCOPE"),
        ("fanout_max_concurrent_pushes", 0, "FANOUT_MAX_CONCURRENT_PUSHES"),
        ("connection_ttl_seconds", -1, "CONNECTION_TTL_SECONDS"),
    ])
    def test_invalid_values(self, field, value, fragment):
        errors = make_settings(**{field: value}).validate_runtime()
        assert any(fragment in e for e in errors)

    def test_production_rules(self):
        errors = make_settings(
            environment="production",
            registry_backend="memory",
            debug=True,
        ).validate_runtime()

        assert any("REGISTRY_BACKEND=memory" in e for e in errors)
        assert any("DEBUG" in e for e in errors)

    def test_production_valid(self):
        config = make_settings(environment="production", debug=False)
        assert config.validate_runtime() == []

    def test_settings_are_immutable(self):
        config = make_settings()
        with pytest.raises(ValidationError):
            config.stream_name = "other"

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("STREAM_NAME", "calls")
        monkeypatch.setenv("REGISTRY_SNAPSHOT_SCOPE", "event")
        config = Settings(_env_file=None)
        assert config.stream_name == "calls"
        assert config.registry_snapshot_scope == "event"

    def test_values_only_reachable_through_settings(self):
        """The module exposes the Settings object, not loose copies of its fields."""
        settings_module = importlib.import_module("shared.config.settings")

        for name in ("REDIS_URL", "STREAM_NAME", "CONNECTION_TABLE", "API_GATEWAY_ENDPOINT"):
            assert not hasattr(settings_module, name)
