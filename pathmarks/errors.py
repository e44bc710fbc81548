"""Failure taxonomy of the bookmark store.

Not-found is not an error: lookups return ``None``/empty and ``delete`` returns
``False`` so callers can read-then-decide.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every invariant/input failure raised by the store."""


class ValidationError(StoreError, ValueError):
    """Caller-supplied data fails a structural precondition (empty path, bad lists)."""


class HierarchyError(StoreError):
    """A write would leave an item without an existing parent folder, or a
    folder record needed for a child-count update is missing."""


class ConflictError(StoreError):
    """Delete refused because the folder still has children."""

    def __init__(self, message: str, *, child_count: int = 0):
        super().__init__(message)
        self.child_count = child_count
