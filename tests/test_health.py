from __future__ import annotations

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from chatgate.adapters.quota_store import InMemoryQuotaStore
from chatgate.core.app_factory import create_app
from chatgate.services.config_provider import StaticConfigProvider


def test_liveness(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_readiness_with_store(client: TestClient):
    resp = client.get("/health/ready")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "store": "ok"}


def test_readiness_reports_degraded_store(clock, proof_verifier):
    store = AsyncMock(spec=InMemoryQuotaStore)
    store.ping.return_value = False
    app = create_app(
        store=store,
        config_provider=StaticConfigProvider(),
        proof_verifier=proof_verifier,
        clock=clock,
        configure_logs=False,
    )

    resp = TestClient(app).get("/health/ready")

    assert resp.status_code == 503
    assert resp.json() == {"status": "degraded", "store": "unavailable"}


def test_health_does_not_require_api_key(client: TestClient):
    assert client.get("/health", headers={"X-API-Key": "wrong"}).status_code == 200
