"""Create/update/delete/rename/reorder with hierarchy and child-count upkeep.

Items carry no parent pointer: ``path`` is the parent folder's absolute path.
The engine therefore has to

- check on every write that the target ``path`` is ``/`` or the absolute path
  of an existing folder of the same owner,
- keep each folder's cached ``child_count`` equal to the number of items whose
  ``path`` is that folder's absolute path,
- rewrite descendant paths when a folder's absolute path changes.

It never opens or commits transactions itself; run it inside a
``UnitOfWork`` so a failure halfway leaves nothing behind.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from . import store
from .db import Session
from .errors import ConflictError, HierarchyError, ValidationError
from .hierarchy import available_folder_paths, child_count_of, child_counts
from .log import get_logger
from .model import BookmarkItem, ItemType
from .paths import ROOT, is_within, join_folder_path, normalize_path, rebase, split_path

log = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConsistencyEngine:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or _utc_now

    def create(self, session: Session, item: BookmarkItem) -> BookmarkItem:
        path = normalize_path(item.path)
        if not path:
            raise ValidationError("path is empty")
        if not item.owner:
            raise ValidationError("owner is empty")
        _check_display_name(item.display_name)

        available = available_folder_paths(session, item.owner)
        if path != ROOT and path not in available:
            log.warning("cannot create %s: parent path %s is not available", item, path)
            raise HierarchyError(f"cannot create item because of missing path hierarchy '{path}'")
        if item.is_folder:
            own_path = join_folder_path(path, item.display_name)
            if own_path in available:
                raise HierarchyError(f"folder '{own_path}' already exists")

        item.path = path
        if not item.id:
            item.id = str(uuid.uuid4())
        item.child_count = 0
        if item.is_folder:
            item.url = ""
        if item.created is None:
            item.created = self.clock()
        log.debug("create new bookmark %s", item)

        store.insert(session, item)
        if item.path != ROOT:
            self._adjust_child_count(session, item.path, item.owner, +1)
        return item

    def update(self, session: Session, item: BookmarkItem) -> Optional[BookmarkItem]:
        """Apply the mutable fields of ``item`` to the stored record with its id.

        Returns the updated record, or None when no such record exists.
        ``type``, ``owner`` and ``created`` are never changed.
        """
        new_path = normalize_path(item.path)
        if not new_path:
            raise ValidationError("path is empty")
        if not item.id:
            raise ValidationError("id is empty")
        _check_display_name(item.display_name)

        bm = store.get_by_id(session, item.id, item.owner)
        if bm is None:
            log.warning("could not find the bookmark to update %s", item)
            return None

        available = available_folder_paths(session, bm.owner)
        if new_path != ROOT and new_path not in available:
            log.warning("cannot update %s: parent path %s is not available", item, new_path)
            raise HierarchyError(f"cannot update item because of missing path hierarchy '{new_path}'")

        old_path = bm.path
        old_own_path = join_folder_path(bm.path, bm.display_name)
        new_own_path = join_folder_path(new_path, item.display_name)
        moved_folder = bm.is_folder and new_own_path != old_own_path
        if moved_folder:
            if is_within(new_path, old_own_path):
                raise HierarchyError(f"cannot move folder '{old_own_path}' below itself ('{new_path}')")
            if new_own_path in available:
                raise HierarchyError(f"folder '{new_own_path}' already exists")

        bm.display_name = item.display_name
        bm.path = new_path
        bm.sort_order = item.sort_order
        bm.url = "" if bm.is_folder else item.url
        bm.favicon = item.favicon
        bm.access_count = item.access_count
        bm.modified = self.clock()
        store.save(session, bm)

        if new_path != old_path:
            if old_path != ROOT:
                self._adjust_child_count(session, old_path, bm.owner, -1)
            if new_path != ROOT:
                self._adjust_child_count(session, new_path, bm.owner, +1)

        if moved_folder:
            self._rebase_descendants(session, bm.owner, old_own_path, new_own_path)
        if bm.is_folder:
            bm.child_count = child_count_of(session, bm.owner, new_own_path)
            store.save(session, bm)
        return bm

    def delete(self, session: Session, item: BookmarkItem) -> bool:
        """Remove the record with ``item.id``; False when it does not exist.

        Raises ConflictError for a folder that still has children.
        """
        bm = store.get_by_id(session, item.id, item.owner)
        if bm is None:
            log.warning("could not find the bookmark to delete %s", item)
            return False

        if bm.is_folder and bm.child_count > 0:
            log.warning("refusing to delete non-empty folder %s (%d children)", bm, bm.child_count)
            raise ConflictError(
                f"folder '{join_folder_path(bm.path, bm.display_name)}' is not empty",
                child_count=bm.child_count,
            )

        if bm.path != ROOT:
            self._adjust_child_count(session, bm.path, bm.owner, -1)
        store.remove(session, bm)
        return True

    def delete_path(self, session: Session, path: str, owner: str) -> bool:
        """Remove the folder at ``path`` and everything below it."""
        if not path:
            raise ValidationError("path is empty")
        path = normalize_path(path)
        if path == ROOT:
            raise ValidationError("cannot delete root path '/'")

        doomed = store.get_by_path_prefix(session, path, owner)
        folder = store.get_folder_by_path(session, path, owner)
        if folder is not None:
            doomed.append(folder)
        if not doomed:
            log.info("no bookmarks available for path %s", path)
            return False

        removed = store.remove_many(session, doomed)
        log.debug("deleted %d item(s) under %s", removed, path)

        parent_path, _name, _ok = split_path(path)
        if parent_path != ROOT:
            parent = store.get_folder_by_path(session, parent_path, owner)
            if parent is None:
                raise HierarchyError(f"could not find the parent folder '{parent_path}' of '{path}'")
            parent.child_count = child_count_of(session, owner, parent_path)
            store.save(session, parent)
        return True

    def reorder(self, session: Session, ids: Sequence[str], sort_orders: Sequence[int], owner: str) -> List[BookmarkItem]:
        if not ids or not sort_orders:
            raise ValidationError("ids and sort orders must not be empty")
        if len(ids) != len(sort_orders):
            raise ValidationError(f"got {len(ids)} ids but {len(sort_orders)} sort orders")

        now = self.clock()
        out: List[BookmarkItem] = []
        for item_id, order in zip(ids, sort_orders):
            bm = store.get_by_id(session, item_id, owner)
            if bm is None:
                raise HierarchyError(f"cannot reorder: no bookmark with id '{item_id}'")
            bm.sort_order = int(order)
            bm.modified = now
            store.save(session, bm)
            out.append(bm)
        return out

    def reconcile_child_counts(self, session: Session, owner: str) -> List[BookmarkItem]:
        """Recompute every folder's child count; returns the folders that were off.

        Running it twice in a row repairs nothing the second time.
        """
        counts = {c.path: c.count for c in child_counts(session, owner)}
        repaired: List[BookmarkItem] = []
        for folder in store.get_folders(session, owner):
            expected = counts.get(join_folder_path(folder.path, folder.display_name), 0)
            if folder.child_count == expected:
                continue
            log.warning("child count of %s was %d, expected %d", folder, folder.child_count, expected)
            folder.child_count = expected
            store.save(session, folder)
            repaired.append(folder)
        return repaired

    def record_access(self, session: Session, item_id: str, owner: str) -> Optional[BookmarkItem]:
        """Resolve a node for redirect and count the visit."""
        bm = store.get_by_id(session, item_id, owner)
        if bm is None or bm.type != ItemType.NODE:
            return None
        bm.access_count += 1
        store.save(session, bm)
        return bm

    def set_favicon(self, session: Session, item_id: str, owner: str, filename: Optional[str]) -> Optional[BookmarkItem]:
        bm = store.get_by_id(session, item_id, owner)
        if bm is None:
            return None
        return self.update(session, replace(bm, favicon=filename))

    def _adjust_child_count(self, session: Session, path: str, owner: str, delta: int) -> None:
        folder = store.get_folder_by_path(session, path, owner)
        if folder is None:
            log.warning("could not get folder item for path %s", path)
            raise HierarchyError(f"could not update the child count of missing folder '{path}'")
        folder.child_count += delta
        store.save(session, folder)

    def _rebase_descendants(self, session: Session, owner: str, old_prefix: str, new_prefix: str) -> None:
        descendants = store.get_by_path_prefix(session, old_prefix, owner)
        for d in descendants:
            d.path = rebase(d.path, old_prefix, new_prefix)
            store.save(session, d)
        log.debug("moved %d descendant(s) from %s to %s", len(descendants), old_prefix, new_prefix)


def _check_display_name(name: str) -> None:
    if not name or not name.strip():
        raise ValidationError("display name is empty")
    if name != name.strip():
        raise ValidationError(f"display name must not start or end with whitespace: {name!r}")
    if "/" in name:
        raise ValidationError(f"display name must not contain '/': {name!r}")
