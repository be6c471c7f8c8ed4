from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
import secrets
import time
from typing import Any, Mapping

LOCAL_ID_PREFIX = "local-"


class Origin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class ConflictChoice(str, Enum):
    KEEP_LOCAL = "keep-local"
    KEEP_REMOTE = "keep-remote"


class NotificationKind(str, Enum):
    SYNC_COMPLETE = "sync-complete"
    SYNC_ERROR = "sync-error"
    CONFLICTS_DETECTED = "conflicts-detected"
    CONFLICT_RESOLVED = "conflict-resolved"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_local_id() -> str:
    """Id local opaco: milisegundos en hexadecimal más 8 caracteres aleatorios."""
    return f"{LOCAL_ID_PREFIX}{int(time.time() * 1000):x}-{secrets.token_hex(4)}"


def is_local_id(record_id: str) -> bool:
    return record_id.startswith(LOCAL_ID_PREFIX)


@dataclass(frozen=True)
class QuoteRecord:
    """Cita con su procedencia.

    Las instancias son inmutables: cualquier cambio de origen, id o marca
    temporal produce una copia, de modo que las instantáneas guardadas en el
    ledger de conflictos no cambian aunque el store se modifique después.
    """

    id: str
    text: str
    category: str
    updated_at: str
    origin: Origin = Origin.LOCAL

    @classmethod
    def new_local(cls, text: str, category: str) -> "QuoteRecord":
        return cls(
            id=generate_local_id(),
            text=text,
            category=category,
            updated_at=utc_now_iso(),
            origin=Origin.LOCAL,
        )

    def with_origin(self, origin: Origin) -> "QuoteRecord":
        if self.origin is origin:
            return self
        return replace(self, origin=origin)

    def touched_as_local(self) -> "QuoteRecord":
        return replace(self, origin=Origin.LOCAL, updated_at=utc_now_iso())

    def content_differs(self, other: "QuoteRecord") -> bool:
        return self.text != other.text or self.category != other.category

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "updated_at": self.updated_at,
            "origin": self.origin.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuoteRecord":
        """Reconstruye un registro persistido.

        Los payloads antiguos sólo traen ``text`` y ``category``; en ese caso se
        les asigna un id local nuevo y se tratan como pendientes de subir.
        """
        record_id = str(payload.get("id") or "").strip()
        origin_raw = str(payload.get("origin") or "").strip()
        if not record_id:
            record_id = generate_local_id()
            origin_raw = Origin.LOCAL.value
        return cls(
            id=record_id,
            text=str(payload.get("text", "")),
            category=str(payload.get("category", "")),
            updated_at=str(payload.get("updated_at") or utc_now_iso()),
            origin=Origin(origin_raw) if origin_raw else Origin.LOCAL,
        )


@dataclass(frozen=True)
class ConflictEntry:
    id: str
    local_version: QuoteRecord
    remote_version: QuoteRecord
    detected_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "local_version": self.local_version.to_dict(),
            "remote_version": self.remote_version.to_dict(),
            "detected_at": self.detected_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ConflictEntry":
        return cls(
            id=str(payload["id"]),
            local_version=QuoteRecord.from_dict(payload["local_version"]),
            remote_version=QuoteRecord.from_dict(payload["remote_version"]),
            detected_at=str(payload.get("detected_at") or utc_now_iso()),
        )


@dataclass(frozen=True)
class SheetsConfig:
    spreadsheet_id: str
    credentials_path: str
    device_id: str
    worksheet_name: str = "quotes"
    sync_interval_seconds: float = 30.0
