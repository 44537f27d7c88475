"""Unit tests for window arithmetic and the storage key scheme."""

from datetime import datetime, timezone

import pytest

from chatgate.schemas.identity import IdentityKey, IdentityKind
from chatgate.utils.windows import (
    WindowUnit,
    counter_key,
    parse_counter_key,
    verification_key,
    window_bounds,
    window_duration,
)

from conftest import T0


def _epoch(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


class TestWindowBounds:
    def test_minute_window_is_aligned(self) -> None:
        assert window_bounds(WindowUnit.MINUTE, T0 + 59.9) == (int(T0), int(T0) + 60)
        assert window_bounds(WindowUnit.MINUTE, T0 + 60) == (int(T0) + 60, int(T0) + 120)

    def test_hour_window_is_aligned(self) -> None:
        assert window_bounds(WindowUnit.HOUR, T0 + 1800) == (int(T0), int(T0) + 3600)

    def test_day_window_follows_utc_midnight(self) -> None:
        start, reset_at = window_bounds(WindowUnit.DAY, T0)
        assert start == _epoch(2024, 1, 15)
        assert reset_at == _epoch(2024, 1, 16)

    def test_month_window_follows_calendar_month(self) -> None:
        start, reset_at = window_bounds(WindowUnit.MONTH, T0)
        assert start == _epoch(2024, 1, 1)
        assert reset_at == _epoch(2024, 2, 1)

    def test_month_window_rolls_over_year(self) -> None:
        start, reset_at = window_bounds(WindowUnit.MONTH, _epoch(2023, 12, 31, 23, 59))
        assert start == _epoch(2023, 12, 1)
        assert reset_at == _epoch(2024, 1, 1)

    def test_month_duration_varies_with_month(self) -> None:
        assert window_duration(WindowUnit.MONTH, _epoch(2024, 2, 10)) == 29 * 86400
        assert window_duration(WindowUnit.MONTH, _epoch(2023, 2, 10)) == 28 * 86400
        assert window_duration(WindowUnit.MINUTE, T0) == 60


class TestKeys:
    def test_counter_key_format(self) -> None:
        identity = IdentityKey(IdentityKind.JWT, "user123")
        assert counter_key(WindowUnit.MINUTE, 1705312800, identity) == "rate:minute:1705312800:jwt:user123"

    def test_verification_key_format(self) -> None:
        assert verification_key(IdentityKey.anonymous()) == "verify:anonymous:shared"

    def test_parse_counter_key_keeps_colons_in_identity(self) -> None:
        parsed = parse_counter_key("rate:hour:1705312800:session:a:b")
        assert parsed == (WindowUnit.HOUR, 1705312800, "session:a:b")

    @pytest.mark.parametrize(
        "key",
        [
            "verify:jwt:user123",
            "rate:fortnight:1705312800:jwt:u",
            "rate:minute:notanumber:jwt:u",
            "rate:minute",
        ],
    )
    def test_parse_counter_key_rejects_foreign_keys(self, key: str) -> None:
        assert parse_counter_key(key) is None
