"""Tests for the cache lifecycle metadata store."""

import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from codemap.cache.meta_store import CacheMeta, MetaStore, cache_path, open_cache
from codemap.errors import StorageUnavailableError


class FakeClock:
    """Returns a fixed time that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock):
    s = MetaStore(tmp_path / "cache.db", clock=clock)
    yield s
    s.close()


def test_fresh_store_reads_all_none(store):
    assert store.read_meta() == CacheMeta(None, None, None)
    assert store.get_meta("created_at") is None


def test_set_then_get(store):
    store.set_meta("owner", "indexer")
    assert store.get_meta("owner") == "indexer"


def test_set_overwrites_without_duplicating(store):
    store.set_meta("k", "one")
    store.set_meta("k", "two")
    assert store.get_meta("k") == "two"
    count = store.connection.execute("SELECT COUNT(*) FROM meta WHERE key = 'k'").fetchone()[0]
    assert count == 1


def test_unknown_keys_do_not_leak_into_read_meta(store):
    store.set_meta("schema_version", "4")
    assert store.read_meta() == CacheMeta()


def test_ensure_meta_initialises(store, clock):
    meta = store.ensure_meta("v1")
    assert meta.created_at == clock.now.isoformat()
    assert meta.extractor_version == "v1"
    assert meta.last_updated_at is None
    assert store.read_meta() == meta


def test_ensure_meta_is_idempotent(store, clock):
    first = store.ensure_meta("v1")
    clock.advance(60)
    second = store.ensure_meta("v1")
    assert first == second


def test_ensure_meta_keeps_first_version(store):
    store.ensure_meta("v1")
    meta = store.ensure_meta("v2")
    assert meta.extractor_version == "v1"
    assert store.read_meta().extractor_version == "v1"
    assert meta.is_stale("v2")
    assert not meta.is_stale("v1")


def test_ensure_meta_returns_stored_last_updated(store, clock):
    store.ensure_meta("v1")
    stamp = store.update_last_updated()
    clock.advance(30)
    meta = store.ensure_meta("v1")
    assert meta.last_updated_at == stamp


def test_ensure_meta_heals_missing_version(store, clock):
    # Simulates a crash between the two bootstrap writes
    store.set_meta("created_at", "2020-01-01T00:00:00+00:00")
    meta = store.ensure_meta("v3")
    assert meta.created_at == "2020-01-01T00:00:00+00:00"
    assert meta.extractor_version == "v3"


def test_update_last_updated_advances(store, clock):
    first = store.update_last_updated()
    assert store.read_meta().last_updated_at == first
    clock.advance(5)
    second = store.update_last_updated()
    assert second > first
    assert store.read_meta().last_updated_at == second


def test_update_last_updated_does_not_touch_creation(store, clock):
    created = store.ensure_meta("v1").created_at
    clock.advance(100)
    store.update_last_updated()
    assert store.read_meta().created_at == created


def test_data_survives_reopen(tmp_path, clock):
    db = tmp_path / "cache.db"
    with MetaStore(db, clock=clock) as s:
        s.ensure_meta("v1")
        s.set_meta("extra", "value")
    with MetaStore(db) as s:
        assert s.read_meta().extractor_version == "v1"
        assert s.get_meta("extra") == "value"


def test_default_clock_is_utc_iso8601(tmp_path):
    with MetaStore(tmp_path / "cache.db") as s:
        stamp = s.update_last_updated()
    parsed = datetime.fromisoformat(stamp)
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() == timedelta(0)


def test_corrupt_file_raises_storage_error(tmp_path):
    db = tmp_path / "cache.db"
    db.write_bytes(b"this is not a sqlite database" * 100)
    with pytest.raises(StorageUnavailableError) as excinfo:
        MetaStore(db)
    assert str(db) in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_directory_path_raises_storage_error(tmp_path):
    with pytest.raises(StorageUnavailableError):
        MetaStore(tmp_path)


def test_operations_after_close_raise_storage_error(tmp_path):
    s = MetaStore(tmp_path / "cache.db")
    s.close()
    with pytest.raises(StorageUnavailableError):
        s.get_meta("created_at")


def test_open_cache_creates_db_under_repo():
    with tempfile.TemporaryDirectory() as tmpdir:
        with open_cache(tmpdir, "v1") as s:
            assert s.db_path == Path(tmpdir) / ".codemap" / "cache.db"
            assert s.read_meta().extractor_version == "v1"
        assert cache_path(tmpdir).is_file()


def test_open_cache_without_version_does_not_bootstrap():
    with tempfile.TemporaryDirectory() as tmpdir:
        with open_cache(tmpdir) as s:
            assert s.read_meta() == CacheMeta()


def test_open_cache_unwritable_location():
    with tempfile.TemporaryDirectory() as tmpdir:
        blocker = Path(tmpdir) / ".codemap"
        blocker.write_text("a file where the cache dir should be")
        with pytest.raises(StorageUnavailableError):
            open_cache(tmpdir, "v1")
