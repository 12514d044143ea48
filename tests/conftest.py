"""Shared fakes for the Dexcom Share tests."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from session_cache import SessionCache, SessionCacheStore


class FakeShareHttp:
    """Stands in for requests.Session; answers posts from a queue of bodies."""

    def __init__(self, *bodies: Any) -> None:
        self.bodies = list(bodies)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, json: Any = None, timeout: Any = None) -> SimpleNamespace:
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if not self.bodies:
            raise AssertionError(f"unexpected request to {url}")
        body = self.bodies.pop(0)
        if isinstance(body, Exception):
            raise body
        return SimpleNamespace(text=body, status_code=200)

    def close(self) -> None:
        self.closed = True

    @property
    def endpoints(self) -> list[str]:
        return [call["url"].split("/Services/", 1)[1] for call in self.calls]


class CountingStore(SessionCacheStore):
    """SessionCacheStore that counts writes."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.saves = 0

    def save(self, cache: SessionCache) -> None:
        self.saves += 1
        super().save(cache)


def share_error(code: str, message: str = "boom") -> str:
    return json.dumps(
        {"Code": code, "Message": message, "SubCode": None, "TypeName": "FaultException"}
    )


def share_reading(value: int, trend: str = "Flat") -> dict[str, Any]:
    return {
        "WT": "Date(1691455258000)",
        "ST": "Date(1691455258000)",
        "DT": "Date(1691455258000-0400)",
        "Value": value,
        "Trend": trend,
    }


@pytest.fixture
def store(tmp_path: Path) -> CountingStore:
    return CountingStore(tmp_path / "data" / "api_cache.json")


@pytest.fixture
def cached_store(store: CountingStore) -> CountingStore:
    """A store already holding IDs for alice."""
    store.save(SessionCache("alice", "acct-cached", "sess-cached"))
    store.saves = 0
    return store


@pytest.fixture
def fake_http() -> type[FakeShareHttp]:
    return FakeShareHttp


@pytest.fixture
def helpers() -> SimpleNamespace:
    return SimpleNamespace(share_error=share_error, share_reading=share_reading)
