"""Pure helpers for slash-delimited folder paths.

An item stores the absolute path of its parent folder in ``path``; root items
use ``"/"``. A folder's own absolute path is ``join_folder_path(path, name)``.
"""

from __future__ import annotations

from typing import Tuple

ROOT = "/"


def split_path(path: str) -> Tuple[str, str, bool]:
    """Split ``/A/B/C`` into ``("/A/B", "C", True)``.

    ``ok`` is False when the string holds no ``/`` at all.
    """
    i = (path or "").rfind("/")
    if i == -1:
        return "", "", False
    parent = path[:i]
    if i == 0 or parent == "":
        parent = ROOT
    return parent, path[i + 1 :], True


def join_folder_path(path: str, display_name: str) -> str:
    base = path or ROOT
    if not base.endswith("/"):
        base += "/"
    out = base + display_name
    if out.startswith("//"):
        out = out[1:]
    return out


def normalize_path(path: str) -> str:
    """``" A//B /"`` -> ``"/A/B"``; blank input stays ``""``.

    Segments are stripped. Display names may not carry outer whitespace, so a
    folder's absolute path always survives normalisation unchanged.
    """
    if not (path or "").strip():
        return ""
    parts = [p.strip() for p in path.split("/")]
    return ROOT + "/".join(p for p in parts if p)


def is_within(path: str, prefix: str) -> bool:
    """Segment-aware prefix test: ``/A/B`` is within ``/A`` but ``/AB`` is not."""
    if prefix == ROOT:
        return True
    return path == prefix or path.startswith(prefix + "/")


def rebase(path: str, old_prefix: str, new_prefix: str) -> str:
    """Replace the leading ``old_prefix`` of ``path`` with ``new_prefix``."""
    if not is_within(path, old_prefix):
        return path
    return new_prefix + path[len(old_prefix) :]
