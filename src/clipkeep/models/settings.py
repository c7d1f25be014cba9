from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from clipkeep.models.timestamps import LocalDateTime


class HistoryRetention(str, Enum):
    ONE_DAY = "1day"
    ONE_WEEK = "1week"
    ONE_MONTH = "1month"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    ONE_YEAR = "1year"
    FOREVER = "forever"

    @property
    def days(self) -> Optional[int]:
        return _RETENTION_DAYS[self]


_RETENTION_DAYS = {
    HistoryRetention.ONE_DAY: 1,
    HistoryRetention.ONE_WEEK: 7,
    HistoryRetention.ONE_MONTH: 30,
    HistoryRetention.THREE_MONTHS: 90,
    HistoryRetention.SIX_MONTHS: 180,
    HistoryRetention.ONE_YEAR: 365,
    HistoryRetention.FOREVER: None,
}


class UserSettings(BaseModel):
    historyRetention: HistoryRetention = HistoryRetention.FOREVER
    syncEnabled: bool = True
    sensitiveDataDelay: float = Field(default=5.0, ge=0)  # seconds
    autoDeleteSensitive: bool = True
    ignoredAppIdentifiers: List[str] = Field(default_factory=list)
    lastCleanupDate: Optional[LocalDateTime] = None
    lastSyncDate: Optional[LocalDateTime] = None
