from __future__ import annotations

import sqlite3
from pathlib import Path

from .log import get_logger

log = get_logger(__name__)

SCHEMA_VERSION = 2


def init_store(db_path: Path | str, *, recreate: bool = False) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    if recreate and db_path.exists():
        db_path.unlink()

    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS bookmarks (
                id TEXT PRIMARY KEY,
                path TEXT NOT NULL,
                display_name TEXT NOT NULL,
                url TEXT NOT NULL DEFAULT '',
                sort_order INTEGER NOT NULL DEFAULT 0,
                type INTEGER NOT NULL,
                owner TEXT NOT NULL,
                created TEXT NOT NULL,
                modified TEXT,
                child_count INTEGER NOT NULL DEFAULT 0,
                access_count INTEGER NOT NULL DEFAULT 0,
                favicon TEXT
            )
            """
        )
        version = int(conn.execute("PRAGMA user_version").fetchone()[0] or 0)
        if version < 2:
            cols = {r[1] for r in conn.execute("PRAGMA table_info(bookmarks)")}
            if "favicon" not in cols:
                conn.execute("ALTER TABLE bookmarks ADD COLUMN favicon TEXT")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_bookmarks_owner_path ON bookmarks(lower(owner), path)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_bookmarks_owner_name ON bookmarks(lower(owner), display_name)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_bookmarks_sort_order ON bookmarks(sort_order)")
        if version < SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            log.debug("Store schema at %s migrated %d -> %d", db_path, version, SCHEMA_VERSION)


class Session:
    """One sqlite connection plus its transaction state.

    The connection runs in autocommit mode; ``begin``/``commit``/``rollback``
    are issued explicitly so a unit of work owns the whole transaction. A
    session is confined to the thread that opened it.
    """

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = 5000, begin_mode: str = "DEFERRED"):
        self.db_path = Path(db_path)
        self.busy_timeout_ms = max(0, int(busy_timeout_ms))
        self.begin_mode = begin_mode
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> "Session":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        timeout_s = max(0.1, self.busy_timeout_ms / 1000.0)
        self.conn = sqlite3.connect(self.db_path, timeout=timeout_s, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        if self.busy_timeout_ms > 0:
            self.conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")

    def close(self) -> None:
        if self.conn is not None:
            if self.conn.in_transaction:
                log.warning("Closing session with an open transaction; rolling back.")
                self.conn.rollback()
            self.conn.close()
            self.conn = None

    @property
    def in_transaction(self) -> bool:
        return self.conn is not None and self.conn.in_transaction

    def begin(self) -> None:
        self.cursor().execute(f"BEGIN {self.begin_mode}")

    def commit(self) -> None:
        self.cursor().execute("COMMIT")

    def rollback(self) -> None:
        if self.in_transaction:
            self.cursor().execute("ROLLBACK")

    def cursor(self) -> sqlite3.Cursor:
        if self.conn is None:
            raise RuntimeError("database is not open")
        return self.conn.cursor()
