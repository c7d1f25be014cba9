from typing import List, Optional

from pydantic import BaseModel

from clipkeep.models.clipboarditem import ItemKind
from clipkeep.models.pinboard import ShareStatus
from clipkeep.models.rule import RuleAction
from clipkeep.models.timestamps import LocalDateTime


class NewItem(BaseModel):
    kind: ItemKind = ItemKind.TEXT
    content: str  # base64 for images
    sourceApp: Optional[str] = None
    linkTitle: Optional[str] = None
    pinboardId: Optional[str] = None


class TagList(BaseModel):
    tags: List[str]


class Tag(BaseModel):
    tag: str


class IdList(BaseModel):
    ids: List[str]


class NewPinboard(BaseModel):
    name: str
    iconName: str = "pin.fill"
    color: str = "blue"


class PinboardChanges(BaseModel):
    name: Optional[str] = None
    iconName: Optional[str] = None
    color: Optional[str] = None


class ShareChanges(BaseModel):
    shareStatus: ShareStatus
    shareUrl: Optional[str] = None
    sharedWith: Optional[List[str]] = None


class Membership(BaseModel):
    itemId: str


class NewRule(BaseModel):
    name: str
    pattern: str
    action: RuleAction = RuleAction.IGNORE
    description: Optional[str] = None
    isEnabled: bool = True


class RuleChanges(BaseModel):
    name: Optional[str] = None
    pattern: Optional[str] = None
    action: Optional[RuleAction] = None
    description: Optional[str] = None


class RuleMove(BaseModel):
    index: int


class MaskRequest(BaseModel):
    content: str


class SearchQuery(BaseModel):
    query: str = ""
    types: Optional[List[ItemKind]] = None
    start: Optional[LocalDateTime] = None
    end: Optional[LocalDateTime] = None
