from __future__ import annotations

import os
import tempfile
from pathlib import Path

APP_DIR_NAME = "Quotebook"
DEFAULT_SYNC_INTERVAL_SECONDS = 30.0
MIN_SYNC_INTERVAL_SECONDS = 5.0


def resolve_data_dir() -> Path:
    env_dir = os.environ.get("QUOTEBOOK_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    local_appdata = os.environ.get("LOCALAPPDATA")
    if local_appdata:
        return Path(local_appdata) / APP_DIR_NAME
    return Path.home() / ".local" / "share" / APP_DIR_NAME


def resolve_log_dir() -> Path:
    candidates: list[Path] = []
    env_dir = os.environ.get("QUOTEBOOK_LOG_DIR")
    if env_dir:
        candidates.append(Path(env_dir))
    candidates.append(resolve_data_dir() / "logs")
    candidates.append(Path(tempfile.gettempdir()) / APP_DIR_NAME / "logs")

    for candidate in candidates:
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            test_file = candidate / "_write_test.tmp"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink(missing_ok=True)
            return candidate
        except OSError:
            continue

    fallback = Path(tempfile.gettempdir())
    return fallback


def resolve_sync_interval(configured: float | None = None) -> float:
    raw_value = os.getenv("QUOTEBOOK_SYNC_INTERVAL_SEC")
    value = configured if configured is not None else DEFAULT_SYNC_INTERVAL_SECONDS
    if raw_value is not None:
        try:
            value = float(raw_value)
        except ValueError:
            pass
    return max(MIN_SYNC_INTERVAL_SECONDS, value)
