"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It ensures that the TESTING environment variable is set and that settings
never point at a real Redis or a real Turnstile secret.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

# Set default env vars that all tests might need
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("ADMIN_API_KEY_REQUIRED", "true")
os.environ.setdefault("ADMIN_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("GATE_JWT_SECRET", "test-jwt-secret")

from pathlib import Path  # noqa: E402
from typing import Callable  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from chatgate.adapters.quota_store import InMemoryQuotaStore  # noqa: E402
from chatgate.adapters.verification import AbstractProofVerifier, ProofResult  # noqa: E402
from chatgate.core.app_factory import create_app  # noqa: E402
from chatgate.schemas.gate_config import GateConfig  # noqa: E402
from chatgate.services.config_provider import StaticConfigProvider  # noqa: E402

# 2024-01-15T10:00:00Z, aligned on minute and hour boundaries.
T0 = 1_705_312_800.0

ADMIN_HEADERS = {"X-API-Key": "test-admin-key-123"}


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProofVerifier(AbstractProofVerifier):
    """Accepts exactly the tokens it was given."""

    def __init__(self, valid_tokens: set[str] | None = None) -> None:
        self.valid_tokens = valid_tokens or {"valid-token"}
        self.calls: list[tuple[str, str | None]] = []

    async def verify(self, token: str, *, remote_ip: str | None = None) -> ProofResult:
        self.calls.append((token, remote_ip))
        if token in self.valid_tokens:
            return ProofResult(success=True, hostname="example.com")
        return ProofResult(success=False, error_codes=["invalid-input-response"])


def make_config(**overrides) -> GateConfig:
    """Gate config built from camelCase file-style keys."""
    return GateConfig.model_validate(overrides)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryQuotaStore:
    return InMemoryQuotaStore(clock=clock)


@pytest.fixture
def proof_verifier() -> FakeProofVerifier:
    return FakeProofVerifier()


@pytest.fixture
def build_app(
    store: InMemoryQuotaStore,
    clock: FakeClock,
    proof_verifier: FakeProofVerifier,
) -> Callable[..., FastAPI]:
    """Build an isolated app around the in-memory store and a static config."""

    def _build(config: GateConfig | None = None) -> FastAPI:
        return create_app(
            store=store,
            config_provider=StaticConfigProvider(config),
            proof_verifier=proof_verifier,
            clock=clock,
            configure_logs=False,
        )

    return _build


@pytest.fixture
def client(build_app: Callable[..., FastAPI]) -> TestClient:
    return TestClient(build_app())


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "rate-limits.json"
