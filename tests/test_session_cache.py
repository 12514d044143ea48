"""Tests for the on-disk session cache."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dexcom_errors import CacheWriteError
from session_cache import SessionCache, SessionCacheStore


def test_save_then_load_same_user(tmp_path: Path) -> None:
    store = SessionCacheStore(tmp_path / "api_cache.json")
    cache = SessionCache("alice", "acct-1", "sess-1")

    store.save(cache)

    assert store.load("alice") == cache


def test_saved_file_is_pretty_printed_json(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "api_cache.json"
    SessionCacheStore(path).save(SessionCache("alice", "acct-1", "sess-1"))

    text = path.read_text()
    assert json.loads(text) == {
        "username": "alice",
        "account_id": "acct-1",
        "session_id": "sess-1",
    }
    assert '\n  "username": "alice"' in text
    assert not (path.parent / "api_cache.json.tmp").exists()


def test_save_is_idempotent(tmp_path: Path) -> None:
    store = SessionCacheStore(tmp_path / "api_cache.json")
    cache = SessionCache("alice", "acct-1", "sess-1")

    store.save(cache)
    first = store.path.read_text()
    store.save(cache)

    assert store.path.read_text() == first


def test_load_other_user_returns_none(tmp_path: Path) -> None:
    store = SessionCacheStore(tmp_path / "api_cache.json")
    store.save(SessionCache("alice", "acct-1", "sess-1"))

    assert store.load("bob") is None


def test_load_missing_file_returns_none(tmp_path: Path) -> None:
    assert SessionCacheStore(tmp_path / "missing.json").load("alice") is None


@pytest.mark.parametrize(
    "contents",
    [
        "{not json",
        "",
        "[]",
        '"alice"',
        '{"username": "alice", "account_id": "acct-1"}',
        '{"username": "alice", "account_id": 5, "session_id": "s"}',
    ],
)
def test_load_bad_file_returns_none(tmp_path: Path, contents: str) -> None:
    path = tmp_path / "api_cache.json"
    path.write_text(contents)

    assert SessionCacheStore(path).load("alice") is None


def test_load_undecodable_bytes_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "api_cache.json"
    path.write_bytes(b"\xff\xfe\x00garbage")

    assert SessionCacheStore(path).load("alice") is None


def test_save_failure_is_raised(tmp_path: Path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    store = SessionCacheStore(blocker / "api_cache.json")

    with pytest.raises(CacheWriteError):
        store.save(SessionCache("alice", "acct-1", "sess-1"))
