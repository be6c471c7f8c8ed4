from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from threading import Lock
from time import perf_counter
from typing import Any, Callable

SYNC_CYCLES = "sync.cycles"
SYNC_CYCLES_SKIPPED = "sync.cycles_skipped"
SYNC_FETCH_ERRORS = "sync.fetch_errors"
SYNC_CONFLICTS = "sync.conflicts_detected"
SYNC_REPLICATED = "sync.replicated"
SYNC_REPLICATION_FAILURES = "sync.replication_failures"
SYNC_CYCLE_DURATION = "sync.cycle_duration"
SHEETS_FETCH_DURATION = "sheets.fetch_duration"
SHEETS_SUBMIT_DURATION = "sheets.submit_duration"


@dataclass
class TimingStats:
    """Agregado acumulado; no guarda muestras para que ``watch`` no crezca sin límite."""

    count: int = 0
    total: float = 0.0
    last: float = 0.0
    maximum: float = 0.0

    def add(self, milliseconds: float) -> None:
        self.count += 1
        self.total += milliseconds
        self.last = milliseconds
        self.maximum = max(self.maximum, milliseconds)

    def as_dict(self) -> dict[str, float]:
        return {
            "count": self.count,
            "last": self.last,
            "avg": self.total / self.count if self.count else 0.0,
            "max": self.maximum,
        }


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = {}
        self._timings: dict[str, TimingStats] = {}

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def record_timing(self, name: str, milliseconds: float) -> None:
        with self._lock:
            self._timings.setdefault(name, TimingStats()).add(milliseconds)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings_ms": {name: stats.as_dict() for name, stats in self._timings.items()},
            }


metrics_registry = MetricsRegistry()


def measure_time(metric_name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                metrics_registry.record_timing(metric_name, (perf_counter() - started) * 1000)

        return wrapper

    return decorator
