"""Unit tests for the identity waterfall."""

import logging
import time

import pytest
from jose import jwt

from chatgate.schemas.gate_config import GateConfig
from chatgate.schemas.identity import IdentityKey, IdentityKind
from chatgate.services.config_provider import StaticConfigProvider
from chatgate.services.identity_resolver import AuthMaterial, IdentityResolver, hash_ip

SECRET = "unit-test-secret"


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def _resolver(order: list[str] | None = None, **kwargs) -> IdentityResolver:
    config = GateConfig.model_validate({"identityOrder": order} if order else {})
    kwargs.setdefault("jwt_secret", SECRET)
    return IdentityResolver(StaticConfigProvider(config), **kwargs)


class TestAuthMaterial:
    def test_forwarded_for_uses_first_hop(self) -> None:
        material = AuthMaterial(forwarded_for=" 203.0.113.7 , 10.0.0.1", client_host="10.0.0.2")
        assert material.client_address() == "203.0.113.7"

    def test_falls_back_through_proxy_headers(self) -> None:
        assert AuthMaterial(real_ip="198.51.100.1", client_host="10.0.0.2").client_address() == "198.51.100.1"
        assert AuthMaterial(cf_connecting_ip="198.51.100.2").client_address() == "198.51.100.2"
        assert AuthMaterial(client_host="10.0.0.2").client_address() == "10.0.0.2"

    def test_no_address(self) -> None:
        assert AuthMaterial(forwarded_for=" , ").client_address() is None


class TestJwtStrategy:
    def test_verified_subject(self) -> None:
        material = AuthMaterial(authorization=f"Bearer {_token({'sub': 'user123'})}")
        assert _resolver().resolve(material) == IdentityKey(IdentityKind.JWT, "user123")

    def test_bearer_prefix_is_case_insensitive(self) -> None:
        material = AuthMaterial(authorization=f"bearer {_token({'sub': 'user123'})}")
        assert _resolver().resolve(material).kind is IdentityKind.JWT

    def test_bad_signature_falls_through_to_next_strategy(self) -> None:
        material = AuthMaterial(
            authorization=f"Bearer {_token({'sub': 'mallory'}, secret='other')}",
            cookies={"sessionId": "sess-1"},
        )
        assert _resolver().resolve(material) == IdentityKey(IdentityKind.SESSION, "sess-1")

    def test_expired_token_is_rejected(self) -> None:
        token = _token({"sub": "user123", "exp": int(time.time()) - 60})
        material = AuthMaterial(authorization=f"Bearer {token}", client_host="10.0.0.2")
        assert _resolver().resolve(material).kind is IdentityKind.IP

    @pytest.mark.parametrize("claims", [{}, {"sub": ""}, {"sub": 42}])
    def test_missing_or_invalid_subject_falls_through(self, claims: dict) -> None:
        material = AuthMaterial(authorization=f"Bearer {_token(claims)}")
        assert _resolver().resolve(material) == IdentityKey.anonymous()

    @pytest.mark.parametrize("header", ["Basic dXNlcjpwYXNz", "Bearer ", "Bearer not.a.jwt"])
    def test_unusable_authorization_header(self, header: str) -> None:
        assert _resolver().resolve(AuthMaterial(authorization=header)) == IdentityKey.anonymous()

    def test_unverified_tokens_ignored_without_secret(self) -> None:
        material = AuthMaterial(authorization=f"Bearer {_token({'sub': 'user123'})}")
        resolver = _resolver(jwt_secret=None)
        assert resolver.resolve(material) == IdentityKey.anonymous()

    def test_unverified_mode_trusts_subject_and_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            resolver = _resolver(jwt_secret=None, allow_unverified_jwt=True)
        material = AuthMaterial(authorization=f"Bearer {_token({'sub': 'dev-user'}, secret='anything')}")

        assert resolver.resolve(material) == IdentityKey(IdentityKind.JWT, "dev-user")
        assert any(r.getMessage() == "identity.unverified_jwt_mode_enabled" for r in caplog.records)


class TestSessionAndIpStrategies:
    def test_session_cookie(self) -> None:
        material = AuthMaterial(cookies={"sessionId": "abc"}, client_host="10.0.0.2")
        assert _resolver().resolve(material) == IdentityKey(IdentityKind.SESSION, "abc")

    def test_custom_session_cookie_name(self) -> None:
        material = AuthMaterial(cookies={"sid": "abc"})
        resolver = _resolver(session_cookie_name="sid")
        assert resolver.resolve(material) == IdentityKey(IdentityKind.SESSION, "abc")

    def test_ip_identity_is_hashed(self) -> None:
        identity = _resolver().resolve(AuthMaterial(forwarded_for="203.0.113.7"))

        assert identity.kind is IdentityKind.IP
        assert identity.raw == hash_ip("203.0.113.7")
        assert len(identity.raw) == 16
        assert "203.0.113.7" not in str(identity)

    def test_same_address_same_identity(self) -> None:
        resolver = _resolver()
        first = resolver.resolve(AuthMaterial(real_ip="198.51.100.1"))
        second = resolver.resolve(AuthMaterial(client_host="198.51.100.1"))
        assert first == second


class TestWaterfall:
    def test_configured_order_wins(self) -> None:
        material = AuthMaterial(
            authorization=f"Bearer {_token({'sub': 'user123'})}",
            cookies={"sessionId": "abc"},
        )
        resolver = _resolver(order=["session-cookie", "jwt-sub"])
        assert resolver.resolve(material) == IdentityKey(IdentityKind.SESSION, "abc")

    def test_strategies_not_listed_are_skipped(self) -> None:
        resolver = _resolver(order=["jwt-sub"])
        assert resolver.resolve(AuthMaterial(client_host="10.0.0.2")) == IdentityKey.anonymous()

    def test_nothing_resolves_to_shared_anonymous(self) -> None:
        assert _resolver().resolve(AuthMaterial()) == IdentityKey.anonymous()

    def test_resolution_is_deterministic(self) -> None:
        material = AuthMaterial(cookies={"sessionId": "abc"}, forwarded_for="203.0.113.7")
        resolver = _resolver()
        assert {resolver.resolve(material) for _ in range(5)} == {IdentityKey(IdentityKind.SESSION, "abc")}

    def test_failing_strategy_is_skipped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        resolver = _resolver()

        def _boom(material: AuthMaterial) -> IdentityKey:
            raise RuntimeError("decoder crashed")

        monkeypatch.setitem(resolver._strategies, resolver._config_provider.current().identity_order[0], _boom)

        material = AuthMaterial(cookies={"sessionId": "abc"})
        assert resolver.resolve(material) == IdentityKey(IdentityKind.SESSION, "abc")
