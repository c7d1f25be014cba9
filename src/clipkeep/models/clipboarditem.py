import base64
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, Field, computed_field, field_validator
from ulid import ULID

from clipkeep.models.timestamps import LocalDateTime

PREVIEW_LENGTH = 200


class ItemKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    LINK = "link"
    FILE = "file"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class TextPayload(BaseModel):
    kind: Literal["text"] = "text"
    text: str
    previewText: Optional[str] = None

    @property
    def raw_content(self) -> str:
        return self.text


class LinkPayload(BaseModel):
    kind: Literal["link"] = "link"
    url: str
    title: Optional[str] = None
    previewText: Optional[str] = None

    @property
    def raw_content(self) -> str:
        return self.url


class ImagePayload(BaseModel):
    kind: Literal["image"] = "image"
    data: str  # base64
    thumbnail: Optional[str] = None  # base64
    previewText: Optional[str] = "Image"

    @property
    def raw_content(self) -> str:
        return self.data


class FilePayload(BaseModel):
    kind: Literal["file"] = "file"
    url: str
    fileName: Optional[str] = None
    previewText: Optional[str] = None

    @property
    def raw_content(self) -> str:
        return self.url


Payload = Annotated[
    Union[TextPayload, LinkPayload, ImagePayload, FilePayload],
    Field(discriminator="kind"),
]


def _new_item_id() -> str:
    return f"i_{ULID.from_datetime(datetime.now())}"


def _file_name_from_url(url: str) -> str:
    path = unquote(urlparse(url).path)
    return PurePosixPath(path).name or url


class ClipboardItem(BaseModel):
    """A single clipboard history entry.

    Kind-specific metadata lives on ``payload``; ``isPinned`` is derived from
    ``pinboardIds`` so the two can never disagree.
    """
    itemId: str = Field(default_factory=_new_item_id)
    timestamp: LocalDateTime = Field(default_factory=datetime.now)
    payload: Payload
    sourceApp: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    pinboardIds: List[str] = Field(default_factory=list)

    @field_validator("pinboardIds")
    @classmethod
    def _dedupe_pinboards(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    @computed_field
    @property
    def isPinned(self) -> bool:
        return bool(self.pinboardIds)

    @property
    def kind(self) -> ItemKind:
        return ItemKind(self.payload.kind)

    @property
    def raw_content(self) -> str:
        return self.payload.raw_content

    @property
    def preview_text(self) -> Optional[str]:
        return self.payload.previewText

    @property
    def text_content(self) -> Optional[str]:
        if self.kind in (ItemKind.TEXT, ItemKind.LINK):
            return self.raw_content
        return None

    @property
    def image_data(self) -> Optional[bytes]:
        if self.kind is not ItemKind.IMAGE:
            return None
        return base64.b64decode(self.raw_content)

    def attach_pinboard(self, pinboard_id: str) -> None:
        if pinboard_id not in self.pinboardIds:
            self.pinboardIds.append(pinboard_id)

    def detach_pinboard(self, pinboard_id: str) -> bool:
        if pinboard_id not in self.pinboardIds:
            return False
        self.pinboardIds = [pid for pid in self.pinboardIds if pid != pinboard_id]
        return True

    # -- factories ---------------------------------------------------------

    @classmethod
    def text(cls, content: str, source_app: Optional[str] = None) -> "ClipboardItem":
        return cls(
            payload=TextPayload(text=content, previewText=content[:PREVIEW_LENGTH]),
            sourceApp=source_app,
        )

    @classmethod
    def link(cls, url: str, title: Optional[str] = None,
             source_app: Optional[str] = None) -> "ClipboardItem":
        return cls(
            payload=LinkPayload(url=url, title=title, previewText=title or url),
            sourceApp=source_app,
        )

    @classmethod
    def image(cls, data: bytes, thumbnail: Optional[bytes] = None,
              source_app: Optional[str] = None) -> "ClipboardItem":
        encoded_thumb = base64.b64encode(thumbnail).decode("ascii") if thumbnail else None
        return cls(
            payload=ImagePayload(
                data=base64.b64encode(data).decode("ascii"),
                thumbnail=encoded_thumb,
            ),
            sourceApp=source_app,
        )

    @classmethod
    def file(cls, url: str, source_app: Optional[str] = None) -> "ClipboardItem":
        name = _file_name_from_url(url)
        return cls(
            payload=FilePayload(url=url, fileName=name, previewText=name),
            sourceApp=source_app,
        )

    # -- serialization envelope -------------------------------------------

    def to_record(self) -> Dict[str, Any]:
        payload = self.payload
        return {
            "id": self.itemId,
            "timestamp": self.timestamp.isoformat(),
            "kind": payload.kind,
            "rawContent": payload.raw_content,
            "previewText": payload.previewText,
            "linkTitle": payload.title if isinstance(payload, LinkPayload) else None,
            "fileName": payload.fileName if isinstance(payload, FilePayload) else None,
            "thumbnail": payload.thumbnail if isinstance(payload, ImagePayload) else None,
            "sourceApp": self.sourceApp,
            "tags": list(self.tags),
            "isPinned": self.isPinned,
            "pinboardIds": list(self.pinboardIds),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ClipboardItem":
        # older exports used "type"/"rawData"/"sourceAppIdentifier"
        kind = ItemKind(record.get("kind") or record.get("type"))
        raw = record.get("rawContent", record.get("rawData"))
        if raw is None:
            raise ValueError("record has no raw content")
        preview = record.get("previewText")

        payload: Dict[str, Any]
        if kind is ItemKind.TEXT:
            payload = {"kind": "text", "text": raw, "previewText": preview}
        elif kind is ItemKind.LINK:
            payload = {"kind": "link", "url": raw,
                       "title": record.get("linkTitle"), "previewText": preview}
        elif kind is ItemKind.IMAGE:
            payload = {"kind": "image", "data": raw,
                       "thumbnail": record.get("thumbnail", record.get("thumbnailData")),
                       "previewText": preview or "Image"}
        else:
            payload = {"kind": "file", "url": raw,
                       "fileName": record.get("fileName"), "previewText": preview}

        data: Dict[str, Any] = {
            "payload": payload,
            "sourceApp": record.get("sourceApp", record.get("sourceAppIdentifier")),
            "tags": record.get("tags") or [],
            "pinboardIds": record.get("pinboardIds") or [],
        }
        if record.get("id"):
            data["itemId"] = record["id"]
        if record.get("timestamp"):
            data["timestamp"] = record["timestamp"]
        return cls.model_validate(data)
