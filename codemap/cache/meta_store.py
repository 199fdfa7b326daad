"""Cache lifecycle metadata — when the cache was built and by what.

A single SQLite ``meta`` table holds string key/value pairs. Three keys are
maintained here: ``created_at``, ``last_updated_at`` and
``extractor_version``. Other keys are allowed so collaborators can keep
their own bookkeeping in the same table.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from codemap.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

CACHE_DIR = ".codemap"
CACHE_FILE = "cache.db"

CREATED_AT = "created_at"
LAST_UPDATED_AT = "last_updated_at"
EXTRACTOR_VERSION = "extractor_version"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheMeta:
    """Snapshot of the lifecycle keys. Missing keys are None."""

    created_at: Optional[str] = None
    last_updated_at: Optional[str] = None
    extractor_version: Optional[str] = None

    def is_stale(self, running_version: str) -> bool:
        """True when the cache was produced by a different extractor version.

        Only reports; deciding what to do about it is up to the caller.
        """
        return self.extractor_version != running_version


class MetaStore:
    """Key/value metadata persisted in a SQLite database file."""

    def __init__(self, db_path: str | Path, *, clock: Clock | None = None) -> None:
        self.db_path = Path(db_path)
        self._clock = clock or utc_now
        try:
            # Autocommit: each upsert is its own atomic write
            self._conn = sqlite3.connect(self.db_path, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageUnavailableError(self.db_path, str(e)) from e
        try:
            self._apply_pragmas()
            self._ensure_schema()
        except StorageUnavailableError:
            self._conn.close()
            raise

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "MetaStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Raw key/value access
    # ------------------------------------------------------------------

    def get_meta(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None if absent."""
        row = self._execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row[0] if row is not None else None

    def set_meta(self, key: str, value: str) -> None:
        """Insert or overwrite ``key``."""
        self._execute(
            "INSERT INTO meta (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def read_meta(self) -> CacheMeta:
        return CacheMeta(
            created_at=self.get_meta(CREATED_AT),
            last_updated_at=self.get_meta(LAST_UPDATED_AT),
            extractor_version=self.get_meta(EXTRACTOR_VERSION),
        )

    def ensure_meta(self, extractor_version: str) -> CacheMeta:
        """Initialise the lifecycle keys if they are missing.

        ``created_at`` and ``extractor_version`` are only ever written when
        absent; an existing version is returned as stored, even if it differs
        from ``extractor_version``. Compare the result against the running
        version to detect a stale cache.

        The two writes are independent, so an interrupted first call is
        completed by the next one.
        """
        now = self._timestamp()

        created_at = self.get_meta(CREATED_AT)
        if not created_at:
            self.set_meta(CREATED_AT, now)
            created_at = now
            logger.debug("Initialised cache metadata in %s", self.db_path)

        version = self.get_meta(EXTRACTOR_VERSION)
        if not version:
            self.set_meta(EXTRACTOR_VERSION, extractor_version)
            version = extractor_version

        return CacheMeta(
            created_at=created_at,
            last_updated_at=self.get_meta(LAST_UPDATED_AT),
            extractor_version=version,
        )

    def update_last_updated(self) -> str:
        """Record that a refresh cycle completed and return its timestamp."""
        now = self._timestamp()
        self.set_meta(LAST_UPDATED_AT, now)
        return now

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _timestamp(self) -> str:
        return self._clock().isoformat()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageUnavailableError(self.db_path, str(e)) from e

    def _apply_pragmas(self) -> None:
        self._execute("PRAGMA journal_mode=WAL;")
        self._execute("PRAGMA synchronous=NORMAL;")
        self._execute("PRAGMA busy_timeout=5000;")

    def _ensure_schema(self) -> None:
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )


def cache_path(repo_root: str | Path) -> Path:
    """Location of the cache database for a repository."""
    return Path(repo_root) / CACHE_DIR / CACHE_FILE


def open_cache(
    repo_root: str | Path,
    extractor_version: str | None = None,
    *,
    clock: Clock | None = None,
) -> MetaStore:
    """Open (creating if needed) the cache database under ``repo_root``.

    When ``extractor_version`` is given the lifecycle keys are bootstrapped
    with :meth:`MetaStore.ensure_meta`.
    """
    path = cache_path(repo_root)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageUnavailableError(path, str(e)) from e

    store = MetaStore(path, clock=clock)
    if extractor_version is not None:
        try:
            store.ensure_meta(extractor_version)
        except StorageUnavailableError:
            store.close()
            raise
    return store
