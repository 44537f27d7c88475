"""Tests for application wiring: factories, lifespan and OpenAPI customizations."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from chatgate.adapters.quota_store import InMemoryQuotaStore, RedisQuotaStore, create_quota_store
from chatgate.core.app_factory import create_app
from chatgate.core.config import PROJECT_ROOT, GateSettings, Settings, StoreSettings
from chatgate.core.dependencies import build_services
from chatgate.core.errors import ValidationAppError
from chatgate.services.config_provider import FileConfigProvider, StaticConfigProvider


class TestQuotaStoreFactory:
    def test_memory_backend(self) -> None:
        assert isinstance(create_quota_store(StoreSettings(backend="memory")), InMemoryQuotaStore)

    def test_redis_backend(self) -> None:
        store = create_quota_store(StoreSettings(backend="Redis", redis_url="redis://cache:6379/0", timeout_ms=150))

        assert isinstance(store, RedisQuotaStore)
        assert store._timeout == pytest.approx(0.15)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            create_quota_store(StoreSettings(backend="memcached"))
        assert exc_info.value.code == "quota_store_unknown_backend"


def test_build_services_defaults_to_file_config(tmp_path) -> None:
    app_settings = Settings()
    app_settings.gate.config_path = str(tmp_path / "rate-limits.json")
    app_settings.store.backend = "memory"

    services = build_services(app_settings)

    assert isinstance(services.config_provider, FileConfigProvider)
    assert services.config_provider.path == tmp_path / "rate-limits.json"
    assert isinstance(services.store, InMemoryQuotaStore)



class TestConfigPathResolution:
    def test_relative_path_resolves_from_working_directory(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "limits.json").write_text("{}")
        monkeypatch.chdir(tmp_path)

        assert GateSettings(config_path="limits.json").resolved_config_path == tmp_path / "limits.json"

    def test_missing_relative_path_points_at_working_directory(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)

        resolved = GateSettings(config_path="config/absent.json").resolved_config_path

        assert resolved == tmp_path / "config" / "absent.json"

    def test_checkout_file_used_when_working_directory_lacks_it(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)

        resolved = GateSettings(config_path="config/rate-limits.json").resolved_config_path

        assert resolved == PROJECT_ROOT / "config" / "rate-limits.json"

    def test_absolute_path_is_kept(self, tmp_path) -> None:
        target = tmp_path / "gate.json"

        assert GateSettings(config_path=str(target)).resolved_config_path == target

def test_lifespan_closes_services(clock, proof_verifier) -> None:
    store = AsyncMock(spec=InMemoryQuotaStore)
    app = create_app(
        store=store,
        config_provider=StaticConfigProvider(),
        proof_verifier=proof_verifier,
        clock=clock,
        configure_logs=False,
    )

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200

    store.close.assert_awaited_once()


def test_openapi_secures_admin_routes_only(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    assert schema["components"]["securitySchemes"]["ApiKeyAuth"]["name"] == "X-API-Key"
    assert schema["paths"]["/v1/admin/identities"]["get"]["security"] == [{"ApiKeyAuth": []}]
    assert schema["paths"]["/v1/gate/authorize"]["get"]["security"] == []
    assert schema["paths"]["/health"]["get"]["security"] == []
    assert {"Gate", "Verification", "Admin", "Health"} <= {tag["name"] for tag in schema["tags"]}
