from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from ulid import ULID

from clipkeep.models.timestamps import LocalDateTime

AVAILABLE_COLORS = ["red", "orange", "yellow", "green", "blue", "purple", "pink"]

AVAILABLE_ICONS = [
    "pin.fill", "star.fill", "heart.fill", "bookmark.fill",
    "folder.fill", "doc.fill", "link", "photo.fill",
    "code.square.fill", "briefcase.fill", "cart.fill", "house.fill",
]


class ShareStatus(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"
    VIEW_ONLY = "viewOnly"

    @property
    def display_name(self) -> str:
        return {
            ShareStatus.PRIVATE: "Private",
            ShareStatus.SHARED: "Shared",
            ShareStatus.VIEW_ONLY: "View Only",
        }[self]


class Pinboard(BaseModel):
    """A named, user-ordered collection of clipboard item ids."""
    pinboardId: str = Field(
        default_factory=lambda: f"p_{ULID.from_datetime(datetime.now())}")
    name: str
    itemIds: List[str] = Field(default_factory=list)
    creationDate: LocalDateTime = Field(default_factory=datetime.now)
    modifiedDate: LocalDateTime = Field(default_factory=datetime.now)
    shareStatus: ShareStatus = ShareStatus.PRIVATE
    iconName: str = "pin.fill"
    color: str = "blue"
    sortOrder: int = 0
    shareUrl: Optional[str] = None
    sharedWith: List[str] = Field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.itemIds)

    @property
    def is_shared(self) -> bool:
        return self.shareStatus is not ShareStatus.PRIVATE

    def touch(self, now: Optional[datetime] = None) -> None:
        self.modifiedDate = now or datetime.now()

    def add_item(self, item_id: str, now: Optional[datetime] = None) -> bool:
        if item_id in self.itemIds:
            return False
        self.itemIds.append(item_id)
        self.touch(now)
        return True

    def remove_item(self, item_id: str, now: Optional[datetime] = None) -> bool:
        if item_id not in self.itemIds:
            return False
        self.itemIds = [iid for iid in self.itemIds if iid != item_id]
        self.touch(now)
        return True

    def reorder_items(self, item_ids: List[str], now: Optional[datetime] = None) -> None:
        self.itemIds = list(dict.fromkeys(item_ids))
        self.touch(now)

    def rename(self, name: str, now: Optional[datetime] = None) -> None:
        self.name = name
        self.touch(now)

    def set_color(self, color: str, now: Optional[datetime] = None) -> None:
        self.color = color
        self.touch(now)

    def set_icon(self, icon_name: str, now: Optional[datetime] = None) -> None:
        self.iconName = icon_name
        self.touch(now)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Pinboard":
        return cls.model_validate(record)
