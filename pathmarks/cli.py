from __future__ import annotations

import argparse
import sqlite3
from typing import List, Tuple

from . import __version__
from .config import load_settings
from .errors import ConflictError, StoreError
from .favicon import refresh_favicons
from .log import LogConfig, get_logger, setup_logging
from .model import BookmarkItem, ItemType
from .paths import ROOT, join_folder_path, normalize_path, split_path
from .repository import BookmarkRepository

log = get_logger(__name__)


def main(argv: List[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="pathmarks",
        description="Per-user bookmark store with slash-delimited folders.",
    )
    p.add_argument("-V", "--version", action="version", version=f"pathmarks {__version__}")
    p.add_argument("--config", default=None, help="YAML config file (optional). Env vars override defaults.")
    p.add_argument("--db", default=None, help="SQLite database path (overrides env/config).")
    p.add_argument("--user", default=None, help="Owning user name (overrides PATHMARKS_USER).")
    p.add_argument("--log-level", default=None, help="DEBUG/INFO/WARN/ERROR (overrides env/config).")
    p.add_argument("--no-color", action="store_true", help="Disable colored logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init", help="Create or migrate the database.")

    mk = sub.add_parser("mkdir", help="Create a folder, e.g. /Work/Docs.")
    mk.add_argument("path")
    mk.add_argument("--sort-order", type=int, default=0)

    add = sub.add_parser("add", help="Add a bookmark below a folder path.")
    add.add_argument("path", help="Parent folder path ('/' for the root).")
    add.add_argument("name")
    add.add_argument("url")
    add.add_argument("--sort-order", type=int, default=0)

    ls = sub.add_parser("ls", help="List the items directly below a folder path.")
    ls.add_argument("path", nargs="?", default=ROOT)

    sub.add_parser("tree", help="List every item of the user.")

    find = sub.add_parser("find", help="Find items by display name.")
    find.add_argument("name")

    edit = sub.add_parser("edit", help="Rename, move or change an item.")
    edit.add_argument("id")
    edit.add_argument("--name", default=None)
    edit.add_argument("--path", default=None, help="New parent folder path.")
    edit.add_argument("--url", default=None)
    edit.add_argument("--sort-order", type=int, default=None)

    rm = sub.add_parser("rm", help="Delete one item (folders must be empty).")
    rm.add_argument("id")

    rmpath = sub.add_parser("rmpath", help="Delete a folder and everything below it.")
    rmpath.add_argument("path")

    reorder = sub.add_parser("reorder", help="Set sort orders, e.g. ID1=0 ID2=1.")
    reorder.add_argument("pairs", nargs="+")

    counts = sub.add_parser("counts", help="Show child counts per folder path.")
    counts.add_argument("path", nargs="?", default=None)

    sub.add_parser("reconcile", help="Recompute cached folder child counts.")

    op = sub.add_parser("open", help="Resolve a bookmark for redirect and print its URL.")
    op.add_argument("id")

    sub.add_parser("favicons", help="Fetch favicons for bookmarks that have none.")

    args = p.parse_args(argv)
    cfg = load_settings(args.config)
    if args.db:
        cfg.db_path = args.db
    if args.user:
        cfg.default_owner = args.user
    if args.log_level:
        cfg.log_level = args.log_level
    if args.no_color:
        cfg.no_color = True
    setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))

    owner = cfg.default_owner
    if args.cmd != "init" and not owner:
        log.error("No user given. Use --user or set PATHMARKS_USER.")
        return 2

    try:
        with BookmarkRepository.from_settings(cfg) as repo:
            return _dispatch(args, repo, owner, cfg)
    except ConflictError as e:
        log.error("%s (%d item(s) inside)", e, e.child_count)
        return 2
    except StoreError as e:
        log.error("%s", e)
        return 2
    except sqlite3.Error as e:
        log.error("Database error (%s): %s", cfg.db_path, e)
        return 2


def _dispatch(args, repo: BookmarkRepository, owner: str, cfg) -> int:
    if args.cmd == "init":
        log.info("Database ready: %s", repo.db_path)
        return 0

    if args.cmd == "mkdir":
        parent, name, ok = split_path(normalize_path(args.path))
        if not ok or not name:
            log.error("Not a folder path: %s", args.path)
            return 2
        item = repo.create(
            BookmarkItem(path=parent, display_name=name, owner=owner, type=ItemType.FOLDER, sort_order=args.sort_order)
        )
        print(item.id)
        return 0

    if args.cmd == "add":
        item = repo.create(
            BookmarkItem(path=args.path, display_name=args.name, url=args.url, owner=owner, sort_order=args.sort_order)
        )
        print(item.id)
        return 0

    if args.cmd == "ls":
        _print_items(repo.get_by_path(args.path, owner))
        return 0

    if args.cmd == "tree":
        _print_items(repo.get_all(owner), with_path=True)
        return 0

    if args.cmd == "find":
        _print_items(repo.get_by_name(args.name, owner), with_path=True)
        return 0

    if args.cmd == "edit":
        current = repo.get_by_id(args.id, owner)
        if current is None:
            log.error("No bookmark with id %s", args.id)
            return 2
        if args.name is not None:
            current.display_name = args.name
        if args.path is not None:
            current.path = args.path
        if args.url is not None:
            current.url = args.url
        if args.sort_order is not None:
            current.sort_order = args.sort_order
        updated = repo.update(current)
        if updated is None:
            log.error("No bookmark with id %s", args.id)
            return 2
        _print_items([updated], with_path=True)
        return 0

    if args.cmd == "rm":
        if not repo.delete(BookmarkItem(path=ROOT, display_name="-", owner=owner, id=args.id)):
            log.error("No bookmark with id %s", args.id)
            return 2
        return 0

    if args.cmd == "rmpath":
        if not repo.delete_path(args.path, owner):
            log.error("Nothing stored at %s", args.path)
            return 2
        return 0

    if args.cmd == "reorder":
        try:
            ids, orders = _parse_pairs(args.pairs)
        except ValueError as e:
            log.error("%s", e)
            return 2
        repo.reorder(ids, orders, owner)
        return 0

    if args.cmd == "counts":
        for c in repo.child_counts(owner, args.path):
            print(f"{c.count}\t{c.path}")
        return 0

    if args.cmd == "reconcile":
        repaired = repo.reconcile(owner)
        log.info("Repaired %d folder child count(s).", len(repaired))
        return 0

    if args.cmd == "open":
        item = repo.record_access(args.id, owner)
        if item is None:
            log.error("No bookmark with id %s", args.id)
            return 2
        print(item.url)
        return 0

    if args.cmd == "favicons":
        refresh_favicons(repo, owner, cfg)
        return 0
    return 2


def _parse_pairs(pairs: List[str]) -> Tuple[List[str], List[int]]:
    ids: List[str] = []
    orders: List[int] = []
    for pair in pairs:
        item_id, sep, order = pair.partition("=")
        if not sep or not item_id:
            raise ValueError(f"expected ID=ORDER, got {pair!r}")
        ids.append(item_id)
        orders.append(int(order))
    return ids, orders


def _print_items(items: List[BookmarkItem], *, with_path: bool = False) -> None:
    for b in items:
        label = join_folder_path(b.path, b.display_name) if with_path else b.display_name
        if b.is_folder:
            print(f"{b.id}\t{label}/\t({b.child_count})")
        else:
            print(f"{b.id}\t{label}\t{b.url}")
