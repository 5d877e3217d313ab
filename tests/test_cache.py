"""Tests for ExpiringMap."""

from __future__ import annotations

import pytest

from azpim.infra.cache import ExpiringMap


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.unit
class TestExpiringMap:
    @pytest.fixture()
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture()
    def cache(self, clock: FakeClock) -> ExpiringMap[str, str | None]:
        return ExpiringMap(ttl=10, timer=clock)

    def test_insert_then_get(self, cache: ExpiringMap[str, str | None]) -> None:
        assert cache.insert("a", "1") is None
        assert cache.get("a") == "1"

    def test_insert_returns_previous(self, cache: ExpiringMap[str, str | None]) -> None:
        cache.insert("a", "1")
        assert cache.insert("a", "2") == "1"
        assert cache.get("a") == "2"

    def test_missing_key(self, cache: ExpiringMap[str, str | None]) -> None:
        assert cache.get("missing") is None
        assert not cache.contains_key("missing")

    def test_expired_entry_invisible(
        self, cache: ExpiringMap[str, str | None], clock: FakeClock
    ) -> None:
        cache.insert("a", "1")
        clock.now = 11
        assert cache.get("a") is None
        assert not cache.contains_key("a")

    def test_entry_alive_before_ttl(
        self, cache: ExpiringMap[str, str | None], clock: FakeClock
    ) -> None:
        cache.insert("a", "1")
        clock.now = 9
        assert cache.get("a") == "1"

    def test_insert_sweeps_expired(
        self, cache: ExpiringMap[str, str | None], clock: FakeClock
    ) -> None:
        cache.insert("a", "1")
        cache.insert("b", "2")
        clock.now = 11
        cache.insert("c", "3")
        assert cache.stored() == 1
        assert cache.get("c") == "3"

    def test_none_value_is_present(self, cache: ExpiringMap[str, str | None]) -> None:
        cache.insert("tombstone", None)
        assert cache.contains_key("tombstone")
        assert cache.get("tombstone") is None

    def test_clear(self, cache: ExpiringMap[str, str | None]) -> None:
        cache.insert("a", "1")
        cache.clear()
        assert cache.stored() == 0
        assert not cache.contains_key("a")

    def test_ttl_property(self, cache: ExpiringMap[str, str | None]) -> None:
        assert cache.ttl == 10
