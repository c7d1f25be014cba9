from abc import ABC, abstractmethod
from typing import List, Optional


class Pasteboard(ABC):
    """Read surface of the system clipboard plus the single ``clear`` write."""

    @property
    @abstractmethod
    def change_count(self) -> int:
        pass

    @abstractmethod
    def text(self) -> Optional[str]:
        pass

    @abstractmethod
    def url(self) -> Optional[str]:
        pass

    @abstractmethod
    def image(self) -> Optional[bytes]:
        pass

    @abstractmethod
    def file_urls(self) -> List[str]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def source_app(self) -> Optional[str]:
        return None
