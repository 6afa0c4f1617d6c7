"""
Sync status reported to the front-end.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .download_planner import SyncPlan


class SyncStatus(Enum):
    SYNCED = "synced"
    NOT_SYNCED = "not_synced"
    SYNC_ERROR = "sync_error"
    SYNC_ERROR_OFFLINE = "sync_error_offline"
    CANCELLED = "cancelled"


@dataclass
class SyncOutcome:
    """Result of one sync run."""
    status: SyncStatus
    detail: str = ""
    plan: Optional[SyncPlan] = None
    deleted: int = 0

    @property
    def ready_for_launch(self) -> bool:
        return self.status is SyncStatus.SYNCED

    @property
    def downloaded(self) -> int:
        if self.plan is None or self.status is not SyncStatus.SYNCED:
            return 0
        return len(self.plan.to_fetch)
