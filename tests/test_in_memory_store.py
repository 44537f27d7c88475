"""Unit tests for the in-memory quota store."""

import pytest

from chatgate.adapters.quota_store import InMemoryQuotaStore

from conftest import FakeClock


@pytest.mark.asyncio
async def test_increment_counts_from_one(store: InMemoryQuotaStore) -> None:
    assert await store.increment("k", ttl_seconds=60) == 1
    assert await store.increment("k", ttl_seconds=60) == 2
    assert await store.get("k") == 2


@pytest.mark.asyncio
async def test_counter_expires_after_ttl(store: InMemoryQuotaStore, clock: FakeClock) -> None:
    await store.increment("k", ttl_seconds=60)

    clock.advance(60)

    assert await store.get("k") is None
    assert await store.increment("k", ttl_seconds=60) == 1


@pytest.mark.asyncio
async def test_increment_reapplies_ttl(store: InMemoryQuotaStore, clock: FakeClock) -> None:
    await store.increment("k", ttl_seconds=60)
    clock.advance(30)
    await store.increment("k", ttl_seconds=60)

    assert await store.ttl("k") == 60


@pytest.mark.asyncio
async def test_set_and_ttl(store: InMemoryQuotaStore, clock: FakeClock) -> None:
    await store.set("verify:jwt:u", 123, ttl_seconds=300)
    clock.advance(100.5)

    assert await store.get("verify:jwt:u") == 123
    assert await store.ttl("verify:jwt:u") == 200
    assert await store.ttl("missing") is None


@pytest.mark.asyncio
async def test_delete_counts_existing_keys_only(store: InMemoryQuotaStore) -> None:
    await store.increment("a", ttl_seconds=60)
    await store.increment("b", ttl_seconds=60)

    assert await store.delete("a", "b", "c") == 2
    assert await store.get("a") is None
    assert await store.delete() == 0


@pytest.mark.asyncio
async def test_scan_matches_glob_and_skips_expired(store: InMemoryQuotaStore, clock: FakeClock) -> None:
    await store.increment("rate:minute:1:jwt:a", ttl_seconds=10)
    await store.increment("rate:hour:1:jwt:a", ttl_seconds=3600)
    await store.set("verify:jwt:a", 1, ttl_seconds=3600)

    clock.advance(20)

    assert await store.scan("rate:*") == ["rate:hour:1:jwt:a"]


@pytest.mark.asyncio
async def test_rejects_non_positive_ttl(store: InMemoryQuotaStore) -> None:
    with pytest.raises(ValueError):
        await store.increment("k", ttl_seconds=0)


@pytest.mark.asyncio
async def test_ping_and_close_are_noops() -> None:
    store = InMemoryQuotaStore()

    assert await store.ping() is True
    await store.close()
