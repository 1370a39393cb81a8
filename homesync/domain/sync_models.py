from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass(frozen=True)
class SyncSummary:
    pushed: int = 0
    push_failed: int = 0
    pulled_created: int = 0
    pulled_updated: int = 0
    pulled_unchanged: int = 0
    pulled_skipped: int = 0

    @property
    def pulled(self) -> int:
        return self.pulled_created + self.pulled_updated

    def merge(self, other: "SyncSummary") -> "SyncSummary":
        return SyncSummary(
            pushed=self.pushed + other.pushed,
            push_failed=self.push_failed + other.push_failed,
            pulled_created=self.pulled_created + other.pulled_created,
            pulled_updated=self.pulled_updated + other.pulled_updated,
            pulled_unchanged=self.pulled_unchanged + other.pulled_unchanged,
            pulled_skipped=self.pulled_skipped + other.pulled_skipped,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SyncState:
    """The only user-facing sync signals: a global flag and the last success."""

    status: SyncStatus = SyncStatus.IDLE
    last_sync_at: str | None = None
    last_error: str | None = None
    requires_reauthentication: bool = False
    pending_actions: int = 0
