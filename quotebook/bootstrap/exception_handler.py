from __future__ import annotations

import logging
import sys
import threading
import uuid
from types import TracebackType

from quotebook.core.observability import bind_correlation_id, generate_correlation_id, get_correlation_id

crash_logger = logging.getLogger("quotebook.global_exception")


def generar_id_incidente() -> str:
    return f"INC-{uuid.uuid4().hex[:12].upper()}"


def manejar_excepcion_global(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_traceback: TracebackType | None,
    *,
    thread_name: str | None = None,
) -> str:
    """Registra en ``crash.log`` una excepción no controlada y devuelve su id de incidente."""
    incident_id = generar_id_incidente()
    correlation_id = get_correlation_id()
    if correlation_id is None:
        correlation_id = generate_correlation_id()
        bind_correlation_id(correlation_id)
    crash_logger.critical(
        "Excepción no controlada. incident_id=%s",
        incident_id,
        exc_info=(exc_type, exc_value, exc_traceback),
        extra={
            "correlation_id": correlation_id,
            "extra": {"incident_id": incident_id, "thread": thread_name or threading.current_thread().name},
        },
    )
    return incident_id


def _thread_hook(args: threading.ExceptHookArgs) -> None:
    if args.exc_value is None:
        return
    thread_name = args.thread.name if args.thread is not None else None
    manejar_excepcion_global(args.exc_type, args.exc_value, args.exc_traceback, thread_name=thread_name)


def _process_hook(
    exc_type: type[BaseException], exc_value: BaseException, exc_traceback: TracebackType | None
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    manejar_excepcion_global(exc_type, exc_value, exc_traceback)


def instalar_hooks_de_excepcion() -> None:
    """Envía a crash.log lo que escape del hilo principal y del temporizador de sync."""
    sys.excepthook = _process_hook
    threading.excepthook = _thread_hook
