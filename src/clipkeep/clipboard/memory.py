import threading
from typing import List, Optional

from clipkeep.clipboard.base import Pasteboard


class MemoryPasteboard(Pasteboard):
    """In-process pasteboard; every write bumps the change counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0
        self._text: Optional[str] = None
        self._url: Optional[str] = None
        self._image: Optional[bytes] = None
        self._files: List[str] = []
        self._source_app: Optional[str] = None

    def _replace(self, *, text=None, url=None, image=None, files=None,
                 source_app: Optional[str] = None) -> int:
        with self._lock:
            self._text = text
            self._url = url
            self._image = image
            self._files = list(files or [])
            self._source_app = source_app
            self._count += 1
            return self._count

    def set_text(self, text: str, source_app: Optional[str] = None) -> int:
        return self._replace(text=text, source_app=source_app)

    def set_url(self, url: str, source_app: Optional[str] = None) -> int:
        return self._replace(url=url, source_app=source_app)

    def set_image(self, data: bytes, source_app: Optional[str] = None) -> int:
        return self._replace(image=data, source_app=source_app)

    def set_file_urls(self, urls: List[str], source_app: Optional[str] = None) -> int:
        return self._replace(files=urls, source_app=source_app)

    @property
    def change_count(self) -> int:
        with self._lock:
            return self._count

    def text(self) -> Optional[str]:
        with self._lock:
            return self._text

    def url(self) -> Optional[str]:
        with self._lock:
            return self._url

    def image(self) -> Optional[bytes]:
        with self._lock:
            return self._image

    def file_urls(self) -> List[str]:
        with self._lock:
            return list(self._files)

    def source_app(self) -> Optional[str]:
        with self._lock:
            return self._source_app

    def clear(self) -> None:
        self._replace()
