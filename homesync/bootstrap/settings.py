from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from homesync.infrastructure.db import DB_FILENAME

DEFAULT_SYNC_INTERVAL_SECONDS = 300.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
APP_DIR_NAME = "HomeSync"


def _float_env(name: str, default: float) -> float:
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = float(raw_value)
    except ValueError:
        return default
    return value if value > 0 else default


def _is_writable_dir(candidate: Path) -> bool:
    try:
        candidate.mkdir(parents=True, exist_ok=True)
        test_file = candidate / "_write_test.tmp"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except OSError:
        return False
    return True


def resolve_data_dir() -> Path:
    candidates: list[Path] = []
    env_dir = os.environ.get("HOMESYNC_DATA_DIR")
    if env_dir:
        candidates.append(Path(env_dir))
    candidates.append(Path.home() / f".{APP_DIR_NAME.lower()}")
    candidates.append(Path(tempfile.gettempdir()) / APP_DIR_NAME)
    for candidate in candidates:
        if _is_writable_dir(candidate):
            return candidate
    return Path.cwd()


def resolve_log_dir(data_dir: Path | None = None) -> Path:
    candidates: list[Path] = []
    env_dir = os.environ.get("HOMESYNC_LOG_DIR")
    if env_dir:
        candidates.append(Path(env_dir))
    candidates.append((data_dir or resolve_data_dir()) / "logs")
    candidates.append(Path(tempfile.gettempdir()) / APP_DIR_NAME / "logs")
    for candidate in candidates:
        if _is_writable_dir(candidate):
            return candidate
    return Path.cwd()


@dataclass(frozen=True)
class SyncSettings:
    data_dir: Path
    log_dir: Path
    sync_interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    @property
    def db_path(self) -> Path:
        return self.data_dir / DB_FILENAME

    @property
    def config_path(self) -> Path:
        return self.data_dir / "sync_config.json"

    @classmethod
    def from_env(cls) -> "SyncSettings":
        data_dir = resolve_data_dir()
        return cls(
            data_dir=data_dir,
            log_dir=resolve_log_dir(data_dir),
            sync_interval_seconds=_float_env("HOMESYNC_SYNC_INTERVAL_SECONDS", DEFAULT_SYNC_INTERVAL_SECONDS),
            http_timeout_seconds=_float_env("HOMESYNC_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS),
        )
