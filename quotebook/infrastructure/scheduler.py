from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class IntervalScheduler:
    """Invoca una tarea a periodo fijo en un hilo daemon.

    La tarea no sabe quién la dispara: el mismo callable puede llamarse a
    mano desde otro hilo. Las excepciones de una ejecución se registran y no
    detienen las siguientes.
    """

    def __init__(
        self,
        task: Callable[[], object],
        period_seconds: float,
        *,
        name: str = "quotebook-sync-timer",
        run_immediately: bool = False,
    ) -> None:
        if period_seconds <= 0:
            raise ValueError("period_seconds debe ser positivo")
        self._task = task
        self._period_seconds = period_seconds
        self._name = name
        self._run_immediately = run_immediately
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._runs = 0

    @property
    def period_seconds(self) -> float:
        return self._period_seconds

    @property
    def runs(self) -> int:
        return self._runs

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()
        logger.info("Temporizador de sync iniciado (periodo=%.1fs)", self._period_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        logger.info("Temporizador de sync detenido tras %s ejecución(es)", self._runs)

    def wait(self, timeout: float | None = None) -> bool:
        return self._stop_event.wait(timeout)

    def _loop(self) -> None:
        if self._run_immediately:
            self._tick()
        while not self._stop_event.wait(self._period_seconds):
            self._tick()

    def _tick(self) -> None:
        self._runs += 1
        try:
            self._task()
        except Exception:  # noqa: BLE001
            logger.exception("Error no controlado en la tarea periódica")
