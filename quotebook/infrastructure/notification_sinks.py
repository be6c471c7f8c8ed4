from __future__ import annotations

import logging
import sys
import threading
from typing import IO, Iterable

from quotebook.domain.models import NotificationKind
from quotebook.domain.ports import NotificationSinkPort
from quotebook.domain.sync_models import Notification

logger = logging.getLogger(__name__)

_LEVEL_BY_KIND = {
    NotificationKind.SYNC_COMPLETE: logging.INFO,
    NotificationKind.CONFLICT_RESOLVED: logging.INFO,
    NotificationKind.CONFLICTS_DETECTED: logging.WARNING,
    NotificationKind.SYNC_ERROR: logging.WARNING,
}


class LoggingNotificationSink(NotificationSinkPort):
    def notify(self, kind: NotificationKind, message: str, actions: Iterable[str] = ()) -> None:
        logger.log(
            _LEVEL_BY_KIND.get(kind, logging.INFO),
            "notificacion=%s %s",
            kind.value,
            message,
            extra={"extra": {"kind": kind.value, "actions": list(actions)}},
        )


class ConsoleNotificationSink(NotificationSinkPort):
    """Muestra las notificaciones en la terminal, además de registrarlas."""

    def __init__(self, stream: IO[str] | None = None) -> None:
        self._stream = stream or sys.stderr
        self._logging_sink = LoggingNotificationSink()

    def notify(self, kind: NotificationKind, message: str, actions: Iterable[str] = ()) -> None:
        actions = tuple(actions)
        self._logging_sink.notify(kind, message, actions)
        suffix = f" [acciones: {', '.join(actions)}]" if actions else ""
        self._stream.write(f"[{kind.value}] {message}{suffix}\n")
        self._stream.flush()


class RecordingNotificationSink(NotificationSinkPort):
    """Acumula notificaciones en memoria; útil para vistas embebidas y tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._notifications: list[Notification] = []

    def notify(self, kind: NotificationKind, message: str, actions: Iterable[str] = ()) -> None:
        with self._lock:
            self._notifications.append(Notification(kind=kind, message=message, actions=tuple(actions)))

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)

    def kinds(self) -> list[NotificationKind]:
        return [notification.kind for notification in self.notifications]
