from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Optional


class ItemType(IntEnum):
    NODE = 0
    FOLDER = 1


@dataclass
class BookmarkItem:
    path: str
    display_name: str
    owner: str
    type: ItemType = ItemType.NODE
    url: str = ""
    sort_order: int = 0
    id: str = ""
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    child_count: int = 0
    access_count: int = 0
    favicon: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.type == ItemType.FOLDER

    def __str__(self) -> str:
        return f"Bookmark: '{self.path}, {self.display_name}' (id: {self.id}, type: {self.type.name.lower()})"


@dataclass(frozen=True)
class NodeCount:
    path: str
    count: int
