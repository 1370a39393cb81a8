from __future__ import annotations

import importlib
import os
import platform
import sqlite3
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _is_linux_headless() -> bool:
    if platform.system() != "Linux":
        return False
    return not (os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))


if _is_linux_headless():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


_UI_BACKEND_ERROR: str | None = None


def _detect_ui_backend_issue() -> str | None:
    try:
        importlib.import_module("PySide6")
        importlib.import_module("PySide6.QtCore")
        return None
    except Exception as exc:  # pragma: no cover - depends on the host
        return f"PySide6/Qt not available for UI tests: {exc}"


def pytest_configure(config: pytest.Config) -> None:
    global _UI_BACKEND_ERROR
    config.addinivalue_line("markers", "ui: Qt scheduler tests (need PySide6)")
    _UI_BACKEND_ERROR = _detect_ui_backend_issue()


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    skip_ui = None
    if _UI_BACKEND_ERROR is not None:
        skip_ui = pytest.mark.skip(reason=_UI_BACKEND_ERROR)

    for item in items:
        if "tests/ui/" in item.nodeid:
            item.add_marker(pytest.mark.ui)
        if skip_ui is not None and "ui" in item.keywords:
            item.add_marker(skip_ui)


from homesync.core.metrics import metrics_registry
from homesync.infrastructure.db import get_connection
from homesync.infrastructure.entity_store_sqlite import SQLiteEntityStore
from homesync.infrastructure.kv_store_sqlite import SQLiteKeyValueStore
from homesync.infrastructure.migrations import run_migrations
from tests.fakes import FixedClock


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def connection() -> Iterator[sqlite3.Connection]:
    conn = get_connection(":memory:")
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(connection: sqlite3.Connection, clock: FixedClock) -> SQLiteEntityStore:
    return SQLiteEntityStore(connection, clock=clock)


@pytest.fixture
def kv_store(connection: sqlite3.Connection, clock: FixedClock) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(connection, clock=clock)


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    metrics_registry.reset()
    yield
    metrics_registry.reset()
