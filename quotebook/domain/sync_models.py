from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from quotebook.domain.models import ConflictEntry, NotificationKind, QuoteRecord


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"
    REPLICATING = "replicating"


@dataclass(frozen=True)
class MergeResult:
    records: tuple[QuoteRecord, ...]
    conflicts: tuple[ConflictEntry, ...] = ()
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    retained_local: int = 0

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    message: str
    actions: tuple[str, ...] = ()


@dataclass(frozen=True)
class CycleReport:
    cycle_id: str
    started_at: str
    finished_at: str
    status: str
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    conflicts: int = 0
    replicated: int = 0
    replication_failures: int = 0
    error: str | None = None
    replicated_ids: dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status != "ERROR"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
