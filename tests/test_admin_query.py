"""Unit tests for the administrative counter queries."""

import pytest

from chatgate.core.errors import ValidationAppError
from chatgate.schemas.identity import IdentityKey, IdentityKind
from chatgate.services.admin_query import AdminQueryService
from chatgate.services.config_provider import StaticConfigProvider
from chatgate.services.rate_limiter import RateLimiter
from chatgate.utils.windows import WindowUnit

from conftest import T0, make_config

ROUTE = "/api/proxy/user/profile"
ALICE = IdentityKey(IdentityKind.JWT, "alice")
BOB = IdentityKey(IdentityKind.SESSION, "bob")


@pytest.fixture
def provider() -> StaticConfigProvider:
    return StaticConfigProvider(make_config(limits={"minute": 3, "hour": 100}))


@pytest.fixture
def limiter(store, provider, clock) -> RateLimiter:
    return RateLimiter(store, provider, clock=clock)


@pytest.fixture
def admin(store, provider, clock) -> AdminQueryService:
    return AdminQueryService(store, provider, clock=clock)


async def _hit(limiter: RateLimiter, identity: IdentityKey, times: int) -> None:
    for _ in range(times):
        await limiter.check(identity, ROUTE)


@pytest.mark.asyncio
async def test_usage_reflects_live_counters(limiter, admin) -> None:
    await _hit(limiter, ALICE, 2)

    usage = await admin.get_usage(ALICE)

    by_unit = {w.unit: w for w in usage.windows}
    assert usage.identity_key == "jwt:alice"
    assert by_unit[WindowUnit.MINUTE].current == 2
    assert by_unit[WindowUnit.MINUTE].remaining == 1
    assert by_unit[WindowUnit.MINUTE].reset_at == int(T0) + 60
    assert by_unit[WindowUnit.HOUR].current == 2
    assert by_unit[WindowUnit.DAY].limit == 0
    assert by_unit[WindowUnit.DAY].remaining is None
    assert usage.is_blocked is False


@pytest.mark.asyncio
async def test_exhausted_window_marks_identity_blocked(limiter, admin) -> None:
    await _hit(limiter, ALICE, 4)

    usage = await admin.get_usage(ALICE)

    minute = usage.windows[0]
    assert minute.current == 4
    assert minute.exceeded is True
    assert usage.is_blocked is True


@pytest.mark.asyncio
async def test_unknown_identity_has_zero_usage(admin) -> None:
    usage = await admin.get_usage(BOB)

    assert all(w.current == 0 for w in usage.windows)
    assert usage.is_blocked is False


@pytest.mark.asyncio
async def test_reset_unblocks_identity(limiter, admin) -> None:
    await _hit(limiter, ALICE, 4)
    assert (await limiter.check(ALICE, ROUTE)).allowed is False

    deleted = await admin.reset_counters(ALICE)

    assert deleted == 2
    assert (await limiter.check(ALICE, ROUTE)).allowed is True


@pytest.mark.asyncio
async def test_reset_single_window_keeps_others(limiter, admin) -> None:
    await _hit(limiter, ALICE, 2)

    assert await admin.reset_counters(ALICE, WindowUnit.MINUTE) == 1

    usage = await admin.get_usage(ALICE)
    assert usage.windows[0].current == 0
    assert usage.windows[1].current == 2


@pytest.mark.asyncio
async def test_reset_does_not_touch_other_identities(limiter, admin) -> None:
    await _hit(limiter, ALICE, 1)
    await _hit(limiter, BOB, 1)

    await admin.reset_counters(ALICE)

    assert (await admin.get_usage(BOB)).windows[0].current == 1


@pytest.mark.asyncio
async def test_list_identities_busiest_first(limiter, admin) -> None:
    await _hit(limiter, ALICE, 1)
    await _hit(limiter, BOB, 3)

    page = await admin.list_identities()

    assert [u.identity_key for u in page.items] == ["session:bob", "jwt:alice"]
    assert page.total == 2
    assert page.total_pages == 1


@pytest.mark.asyncio
async def test_list_identities_filters_and_paginates(limiter, admin) -> None:
    for idx in range(3):
        await _hit(limiter, IdentityKey(IdentityKind.JWT, f"user{idx}"), 1)
    await _hit(limiter, BOB, 1)

    page = await admin.list_identities(kind=IdentityKind.JWT, page=2, page_size=2)

    assert page.total == 3
    assert page.total_pages == 2
    assert [u.identity_key for u in page.items] == ["jwt:user2"]


@pytest.mark.asyncio
async def test_list_identities_ignores_past_windows(limiter, admin, clock) -> None:
    await _hit(limiter, ALICE, 1)
    clock.advance(3600)
    await _hit(limiter, BOB, 1)

    page = await admin.list_identities()

    assert [u.identity_key for u in page.items] == ["session:bob"]


@pytest.mark.asyncio
@pytest.mark.parametrize(("page", "page_size"), [(0, 10), (1, 0), (1, 501)])
async def test_list_identities_rejects_bad_pagination(admin, page: int, page_size: int) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        await admin.list_identities(page=page, page_size=page_size)
    assert exc_info.value.code == "invalid_pagination"
