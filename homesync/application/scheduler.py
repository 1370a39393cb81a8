from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

from homesync.bootstrap.logging import log_operational_error
from homesync.domain.sync_models import SyncSummary

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 300.0


class SyncRunner(Protocol):
    def sync(self) -> SyncSummary | None:
        ...


ResultListener = Callable[["SyncSummary | None"], None]


class SyncScheduler:
    """Runs ``engine.sync()`` every ``interval_seconds`` on a worker thread.

    ``trigger_now`` wakes the worker for a manual refresh. A trigger that
    arrives while a pass is running is dropped, not queued. ``stop`` is
    final: once it returns no further pass starts.
    """

    def __init__(
        self,
        engine: SyncRunner,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        *,
        on_result: ResultListener | None = None,
        thread_name: str = "homesync-sync",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._engine = engine
        self._interval_seconds = interval_seconds
        self._on_result = on_result
        self._thread_name = thread_name
        self._wake = threading.Event()
        self._stopped = threading.Event()
        self._in_pass = threading.Event()
        self._thread: threading.Thread | None = None
        self._lifecycle_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stopped.is_set()

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._stopped.is_set():
                raise RuntimeError("SyncScheduler cannot be restarted after stop()")
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self._thread_name, daemon=True)
            self._thread.start()
        logger.info("Sync scheduler started (interval=%ss)", self._interval_seconds)

    def trigger_now(self) -> bool:
        if not self.is_running:
            logger.warning("Manual sync ignored: scheduler is not running")
            return False
        if self._in_pass.is_set():
            logger.info("Manual sync dropped: a pass is already running")
            return False
        self._wake.set()
        return True

    def stop(self, timeout: float | None = None) -> None:
        with self._lifecycle_lock:
            self._stopped.set()
            self._wake.set()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Sync scheduler stopped")

    def _run(self) -> None:
        while not self._stopped.is_set():
            manual = self._wake.wait(timeout=self._interval_seconds)
            if self._stopped.is_set():
                break
            self._in_pass.set()
            try:
                self._tick("manual" if manual else "interval")
            finally:
                self._wake.clear()
                self._in_pass.clear()

    def _tick(self, trigger: str) -> None:
        try:
            summary = self._engine.sync()
        except Exception as exc:
            log_operational_error(logger, "Scheduled sync raised", exc=exc, extra={"trigger": trigger})
            return
        if self._on_result is None:
            return
        try:
            self._on_result(summary)
        except Exception as exc:
            log_operational_error(logger, "Sync result listener raised", exc=exc, extra={"trigger": trigger})
