import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from clipkeep.models.clipboarditem import ClipboardItem
from clipkeep.models.pinboard import Pinboard
from clipkeep.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class SyncBackend(Protocol):
    def push(self, items: Sequence[ClipboardItem], pinboards: Sequence[Pinboard]) -> None:
        ...


@dataclass(frozen=True)
class SyncStatus:
    ok: bool
    message: Optional[str] = None
    synced_at: Optional[datetime] = None

    @classmethod
    def success(cls, at: datetime) -> "SyncStatus":
        return cls(ok=True, synced_at=at)

    @classmethod
    def error(cls, message: str) -> "SyncStatus":
        return cls(ok=False, message=message)


class ConflictResolution(str, Enum):
    KEEP_LOCAL = "keep_local"
    KEEP_REMOTE = "keep_remote"
    MERGE = "merge"


def _union(first: List[str], second: List[str]) -> List[str]:
    return list(dict.fromkeys(first + second))


def resolve_conflict(local: ClipboardItem, remote: ClipboardItem,
                     strategy: ConflictResolution = ConflictResolution.MERGE) -> ClipboardItem:
    """Settle two versions of the same item.

    ``MERGE`` takes the newer side as the base and unions ``tags`` and
    ``pinboardIds`` from both, base order first.
    """
    if strategy is ConflictResolution.KEEP_LOCAL:
        return local.model_copy(deep=True)
    if strategy is ConflictResolution.KEEP_REMOTE:
        return remote.model_copy(deep=True)

    base, other = (remote, local) if remote.timestamp > local.timestamp else (local, remote)
    merged = base.model_copy(deep=True)
    merged.tags = _union(list(base.tags), list(other.tags))
    merged.pinboardIds = _union(list(base.pinboardIds), list(other.pinboardIds))
    return merged


class SyncService:
    """Best-effort push of local state to an optional backend; never retries."""

    def __init__(
        self,
        settings: SettingsStore,
        snapshot: Callable[[], Tuple[List[ClipboardItem], List[Pinboard]]],
        backend: Optional[SyncBackend] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings
        self._snapshot = snapshot
        self.backend = backend
        self._clock = clock
        self.last_status: Optional[SyncStatus] = None

    def _is_available(self) -> bool:
        if self.backend is None:
            return False
        check = getattr(self.backend, "is_available", None)
        return True if check is None else bool(check())

    def sync(self) -> SyncStatus:
        status = self._sync()
        self.last_status = status
        return status

    def _sync(self) -> SyncStatus:
        if not self.settings.settings.syncEnabled:
            return SyncStatus.error("Sync disabled")
        if not self._is_available():
            logger.warning("Sync backend unavailable")
            return SyncStatus.error("Sync backend unavailable")

        items, pinboards = self._snapshot()
        try:
            self.backend.push(items, pinboards)
        except Exception as e:
            logger.error(f"Sync failed: {e}")
            return SyncStatus.error(str(e) or e.__class__.__name__)

        now = self._clock()
        self.settings.update(lastSyncDate=now)
        logger.info(f"Synced {len(items)} items and {len(pinboards)} pinboards")
        return SyncStatus.success(now)
