from __future__ import annotations

from contextvars import ContextVar, Token
from datetime import datetime, timezone
import logging
from time import perf_counter
import uuid
from typing import Any

_CORRELATION_ID: ContextVar[str | None] = ContextVar("correlation_id", default=None)

operational_logger = logging.getLogger("quotebook.operational_error")


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    return _CORRELATION_ID.get()


def bind_correlation_id(correlation_id: str | None) -> Token[str | None]:
    return _CORRELATION_ID.set(correlation_id)


class OperationContext:
    """Bloque con correlation_id propio y duración medida.

    Al salir quedan disponibles ``elapsed_ms`` y ``failed``, también cuando el
    bloque termina con excepción; la excepción nunca se suprime.
    """

    def __init__(self, operation_name: str, *, correlation_id: str | None = None) -> None:
        self.operation_name = operation_name
        self.correlation_id = correlation_id or generate_correlation_id()
        self.elapsed_ms = 0
        self.failed = False
        self._token: Token[str | None] | None = None
        self._started = 0.0

    def __enter__(self) -> "OperationContext":
        self._token = _CORRELATION_ID.set(self.correlation_id)
        self._started = perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, exc_tb: object) -> bool:
        self.elapsed_ms = int((perf_counter() - self._started) * 1000)
        self.failed = exc_type is not None
        if self._token is not None:
            _CORRELATION_ID.reset(self._token)
            self._token = None
        return False


def log_event(
    logger: logging.Logger,
    event_name: str,
    payload: dict[str, Any],
    *,
    correlation_id: str | None = None,
    level: int = logging.INFO,
) -> dict[str, Any]:
    resolved_id = correlation_id or get_correlation_id()
    event = {
        "event": event_name,
        "correlation_id": resolved_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }
    logger.log(level, event_name, extra={"correlation_id": resolved_id, "extra": event})
    return event


def log_operational_error(message: str, *, exc: BaseException, extra: dict[str, Any] | None = None) -> None:
    """Registra un fallo recuperable en ``error_operativo.log`` con su traza."""
    metadata = {"error_type": type(exc).__name__, **(extra or {})}
    correlation_id = metadata.get("correlation_id") or get_correlation_id()
    if correlation_id:
        metadata["correlation_id"] = correlation_id
    operational_logger.error(
        message,
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"correlation_id": correlation_id, "extra": metadata},
    )
