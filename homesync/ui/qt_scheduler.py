from __future__ import annotations

import logging
import traceback

from PySide6.QtCore import QObject, QThread, QTimer, Signal, Slot

from homesync.application.scheduler import DEFAULT_INTERVAL_SECONDS, SyncRunner
from homesync.bootstrap.logging import log_operational_error

logger = logging.getLogger(__name__)


class _SyncWorker(QObject):
    finished = Signal(object)
    failed = Signal(object)

    def __init__(self, engine: SyncRunner, trigger: str) -> None:
        super().__init__()
        self._engine = engine
        self._trigger = trigger

    @Slot()
    def run(self) -> None:
        try:
            summary = self._engine.sync()
        except Exception as exc:
            log_operational_error(logger, "Scheduled sync raised", exc=exc, extra={"trigger": self._trigger})
            self.failed.emit({"error": exc, "details": traceback.format_exc()})
            return
        self.finished.emit(summary)


class QtSyncScheduler(QObject):
    """Qt flavour of ``SyncScheduler``: a ``QTimer`` on the GUI thread and
    one ``QThread`` worker per pass, so the event loop never blocks on the
    network. ``sync_finished`` carries the ``SyncSummary`` (or ``None`` when
    the pass was skipped or failed).
    """

    sync_finished = Signal(object)
    sync_failed = Signal(object)

    def __init__(
        self,
        engine: SyncRunner,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._engine = engine
        self._timer = QTimer(self)
        self._timer.setInterval(int(interval_seconds * 1000))
        self._timer.timeout.connect(self._on_timeout)
        self._thread: QThread | None = None
        self._worker: _SyncWorker | None = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    @property
    def pass_in_flight(self) -> bool:
        return self._thread is not None

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError("QtSyncScheduler cannot be restarted after stop()")
        self._timer.start()
        logger.info("Qt sync scheduler started (interval=%sms)", self._timer.interval())

    def trigger_now(self) -> bool:
        return self._launch("manual")

    def stop(self, wait_ms: int = 30000) -> None:
        self._stopped = True
        self._timer.stop()
        thread = self._thread
        if thread is not None:
            thread.quit()
            thread.wait(wait_ms)
        logger.info("Qt sync scheduler stopped")

    @Slot()
    def _on_timeout(self) -> None:
        self._launch("interval")

    def _launch(self, trigger: str) -> bool:
        if self._stopped or self._thread is not None:
            return False
        thread = QThread()
        worker = _SyncWorker(self._engine, trigger)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self.sync_finished)
        worker.failed.connect(self.sync_failed)
        worker.finished.connect(thread.quit)
        worker.failed.connect(thread.quit)
        thread.finished.connect(self._on_thread_finished)
        self._thread = thread
        self._worker = worker
        thread.start()
        return True

    @Slot()
    def _on_thread_finished(self) -> None:
        if self._worker is not None:
            self._worker.deleteLater()
        if self._thread is not None:
            self._thread.deleteLater()
        self._worker = None
        self._thread = None
