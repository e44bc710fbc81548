"""Derived views over the stored rows: valid folder paths and per-path child counts.

Both read through the caller's session, so they see that session's uncommitted
writes.
"""

from __future__ import annotations

from typing import List, Optional, Set

from .db import Session
from .model import ItemType, NodeCount
from .paths import ROOT, join_folder_path


def available_folder_paths(session: Session, owner: str) -> Set[str]:
    """``{"/"}`` plus the absolute path of every folder owned by ``owner``."""
    rows = session.cursor().execute(
        "SELECT path, display_name FROM bookmarks WHERE lower(owner) = lower(?) AND type = ?",
        (owner, int(ItemType.FOLDER)),
    ).fetchall()
    out = {ROOT}
    for r in rows:
        out.add(join_folder_path(r["path"], r["display_name"]))
    return out


def child_counts(session: Session, owner: str, path: Optional[str] = None) -> List[NodeCount]:
    """Number of items stored under each valid folder path, ordered by path.

    With ``path`` only that group is returned (an empty list when nothing lives
    there). Groups whose path is not a valid folder path are orphans and are
    left out.
    """
    sql = "SELECT path, COUNT(id) AS cnt FROM bookmarks WHERE lower(owner) = lower(?)"
    params: list = [owner]
    if path:
        sql += " AND path = ?"
        params.append(path)
    sql += " GROUP BY path ORDER BY path"
    rows = session.cursor().execute(sql, params).fetchall()
    if not rows:
        return []
    valid = available_folder_paths(session, owner)
    return [NodeCount(path=r["path"], count=int(r["cnt"])) for r in rows if r["path"] in valid]


def child_count_of(session: Session, owner: str, path: str) -> int:
    counts = child_counts(session, owner, path)
    return counts[0].count if counts else 0
