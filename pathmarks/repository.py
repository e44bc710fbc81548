from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

from . import hierarchy, store
from .config import Settings
from .db import Session, init_store
from .engine import ConsistencyEngine
from .model import BookmarkItem, NodeCount
from .paths import normalize_path
from .uow import Outcome, UnitOfWork


class BookmarkRepository:
    """Bookmark store for one database file.

    Every mutating method runs in its own unit of work, which joins the
    caller's when invoked from inside ``in_unit_of_work``::

        with BookmarkRepository(db_path) as repo:
            ok, moved = repo.in_unit_of_work(
                lambda: Outcome.success(repo.update(folder))
            )
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        busy_timeout_ms: int = 5000,
        begin_mode: str = "DEFERRED",
        clock: Optional[Callable[[], datetime]] = None,
        create: bool = True,
    ):
        self.db_path = Path(db_path)
        self.create_schema = create
        self.session = Session(self.db_path, busy_timeout_ms=busy_timeout_ms, begin_mode=begin_mode)
        self.engine = ConsistencyEngine(clock=clock)
        self.uow = UnitOfWork(self.session)

    @classmethod
    def from_settings(cls, cfg: Settings, **kwargs) -> "BookmarkRepository":
        return cls(
            cfg.db_path,
            busy_timeout_ms=cfg.busy_timeout_ms,
            begin_mode=cfg.resolved_begin_mode(),
            **kwargs,
        )

    def __enter__(self) -> "BookmarkRepository":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if self.create_schema:
            init_store(self.db_path)
        self.session.open()

    def close(self) -> None:
        self.session.close()

    def in_unit_of_work(self, operation: Callable[[], Outcome]) -> Outcome:
        return self.uow.run(operation)

    # reads

    def get_all(self, owner: str) -> List[BookmarkItem]:
        return store.get_all(self.session, owner)

    def get_by_id(self, item_id: str, owner: str) -> Optional[BookmarkItem]:
        return store.get_by_id(self.session, item_id, owner)

    def get_by_path(self, path: str, owner: str) -> List[BookmarkItem]:
        return store.get_by_path(self.session, normalize_path(path), owner)

    def get_by_path_prefix(self, prefix: str, owner: str) -> List[BookmarkItem]:
        return store.get_by_path_prefix(self.session, normalize_path(prefix), owner)

    def get_by_name(self, name: str, owner: str) -> List[BookmarkItem]:
        return store.get_by_name(self.session, name, owner)

    def get_folder_by_path(self, path: str, owner: str) -> Optional[BookmarkItem]:
        return store.get_folder_by_path(self.session, normalize_path(path), owner)

    def available_paths(self, owner: str) -> Set[str]:
        return hierarchy.available_folder_paths(self.session, owner)

    def child_counts(self, owner: str, path: Optional[str] = None) -> List[NodeCount]:
        return hierarchy.child_counts(self.session, owner, normalize_path(path) if path else None)

    # writes

    def create(self, item: BookmarkItem) -> BookmarkItem:
        return self.uow.run(lambda: Outcome.success(self.engine.create(self.session, item))).value

    def update(self, item: BookmarkItem) -> Optional[BookmarkItem]:
        return self.uow.run(lambda: _found(self.engine.update(self.session, item))).value

    def delete(self, item: BookmarkItem) -> bool:
        return self.uow.run(lambda: _flag(self.engine.delete(self.session, item))).value

    def delete_path(self, path: str, owner: str) -> bool:
        return self.uow.run(lambda: _flag(self.engine.delete_path(self.session, path, owner))).value

    def reorder(self, ids: Sequence[str], sort_orders: Sequence[int], owner: str) -> List[BookmarkItem]:
        return self.uow.run(lambda: Outcome.success(self.engine.reorder(self.session, ids, sort_orders, owner))).value

    def reconcile(self, owner: str) -> List[BookmarkItem]:
        return self.uow.run(lambda: Outcome.success(self.engine.reconcile_child_counts(self.session, owner))).value

    def record_access(self, item_id: str, owner: str) -> Optional[BookmarkItem]:
        return self.uow.run(lambda: _found(self.engine.record_access(self.session, item_id, owner))).value

    def set_favicon(self, item_id: str, owner: str, filename: Optional[str]) -> Optional[BookmarkItem]:
        return self.uow.run(lambda: _found(self.engine.set_favicon(self.session, item_id, owner, filename))).value


def _found(value) -> Outcome:
    return Outcome(value is not None, value)


def _flag(value: bool) -> Outcome:
    return Outcome(bool(value), value)
