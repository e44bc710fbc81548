"""Keyed storage of bookmark/folder rows.

Every function takes the session explicitly and filters case-insensitively on
the owner. No hierarchy rules are enforced here; see ``engine``.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional

from .db import Session
from .model import BookmarkItem, ItemType
from .paths import ROOT, split_path

_COLUMNS = (
    "id, path, display_name, url, sort_order, type, owner, created, modified, "
    "child_count, access_count, favicon"
)
_ORDER = "ORDER BY sort_order, display_name"
# Upper bound for a prefix range scan over the (lower(owner), path) index.
_MAX_CHAR = "\U0010ffff"


def get_by_id(session: Session, item_id: str, owner: str) -> Optional[BookmarkItem]:
    row = session.cursor().execute(
        f"SELECT {_COLUMNS} FROM bookmarks WHERE lower(owner) = lower(?) AND id = ?",
        (owner, item_id),
    ).fetchone()
    return _row_to_item(row) if row else None


def get_all(session: Session, owner: str) -> List[BookmarkItem]:
    rows = session.cursor().execute(
        f"SELECT {_COLUMNS} FROM bookmarks WHERE lower(owner) = lower(?) ORDER BY path, sort_order, display_name",
        (owner,),
    ).fetchall()
    return [_row_to_item(r) for r in rows]


def get_by_path(session: Session, path: str, owner: str) -> List[BookmarkItem]:
    rows = session.cursor().execute(
        f"SELECT {_COLUMNS} FROM bookmarks WHERE lower(owner) = lower(?) AND path = ? {_ORDER}",
        (owner, path),
    ).fetchall()
    return [_row_to_item(r) for r in rows]


def get_by_path_prefix(session: Session, prefix: str, owner: str) -> List[BookmarkItem]:
    """Items whose ``path`` is ``prefix`` or lies below it, segment-wise."""
    if prefix == ROOT:
        rows = session.cursor().execute(
            f"SELECT {_COLUMNS} FROM bookmarks WHERE lower(owner) = lower(?) {_ORDER}",
            (owner,),
        ).fetchall()
        return [_row_to_item(r) for r in rows]

    below = prefix.rstrip("/") + "/"
    rows = session.cursor().execute(
        f"""
        SELECT {_COLUMNS} FROM bookmarks
        WHERE lower(owner) = lower(?)
          AND (path = ? OR (path >= ? AND path < ? AND substr(path, 1, length(?)) = ?))
        {_ORDER}
        """,
        (owner, prefix, below, below + _MAX_CHAR, below, below),
    ).fetchall()
    return [_row_to_item(r) for r in rows]


def get_by_name(session: Session, name: str, owner: str) -> List[BookmarkItem]:
    rows = session.cursor().execute(
        f"SELECT {_COLUMNS} FROM bookmarks WHERE lower(owner) = lower(?) AND display_name = ? {_ORDER}",
        (owner, name),
    ).fetchall()
    return [_row_to_item(r) for r in rows]


def get_folder_by_path(session: Session, path: str, owner: str) -> Optional[BookmarkItem]:
    """Resolve the folder record whose own absolute path is ``path``."""
    parent, name, ok = split_path(path)
    if not ok or not name:
        return None
    row = session.cursor().execute(
        f"""
        SELECT {_COLUMNS} FROM bookmarks
        WHERE lower(owner) = lower(?) AND path = ? AND display_name = ? AND type = ?
        ORDER BY created, id LIMIT 1
        """,
        (owner, parent, name, int(ItemType.FOLDER)),
    ).fetchone()
    return _row_to_item(row) if row else None


def get_folders(session: Session, owner: str) -> List[BookmarkItem]:
    rows = session.cursor().execute(
        f"SELECT {_COLUMNS} FROM bookmarks WHERE lower(owner) = lower(?) AND type = ? ORDER BY path, sort_order, display_name",
        (owner, int(ItemType.FOLDER)),
    ).fetchall()
    return [_row_to_item(r) for r in rows]


def insert(session: Session, item: BookmarkItem) -> None:
    session.cursor().execute(
        f"INSERT INTO bookmarks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        _item_to_row(item),
    )


def save(session: Session, item: BookmarkItem) -> None:
    session.cursor().execute(
        """
        UPDATE bookmarks SET
            path = ?, display_name = ?, url = ?, sort_order = ?, type = ?, owner = ?,
            created = ?, modified = ?, child_count = ?, access_count = ?, favicon = ?
        WHERE id = ?
        """,
        _item_to_row(item)[1:] + (item.id,),
    )


def remove(session: Session, item: BookmarkItem) -> None:
    session.cursor().execute(
        "DELETE FROM bookmarks WHERE lower(owner) = lower(?) AND id = ?",
        (item.owner, item.id),
    )


def remove_many(session: Session, items: Iterable[BookmarkItem]) -> int:
    rows = [(i.owner, i.id) for i in items]
    if not rows:
        return 0
    session.cursor().executemany(
        "DELETE FROM bookmarks WHERE lower(owner) = lower(?) AND id = ?",
        rows,
    )
    return len(rows)


def _item_to_row(item: BookmarkItem) -> tuple:
    return (
        item.id,
        item.path,
        item.display_name,
        item.url or "",
        int(item.sort_order),
        int(item.type),
        item.owner,
        _ts(item.created),
        _ts(item.modified),
        int(item.child_count),
        int(item.access_count),
        item.favicon,
    )


def _row_to_item(row: sqlite3.Row) -> BookmarkItem:
    return BookmarkItem(
        id=row["id"],
        path=row["path"],
        display_name=row["display_name"],
        url=row["url"] or "",
        sort_order=int(row["sort_order"] or 0),
        type=ItemType(int(row["type"])),
        owner=row["owner"],
        created=_parse_ts(row["created"]),
        modified=_parse_ts(row["modified"]),
        child_count=int(row["child_count"] or 0),
        access_count=int(row["access_count"] or 0),
        favicon=row["favicon"],
    )


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
