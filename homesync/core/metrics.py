from __future__ import annotations

from collections import deque
from functools import wraps
from threading import Lock
from time import perf_counter
from typing import Any, Callable, Mapping

SYNC_PASSES = "sync.passes"
SYNC_SKIPPED = "sync.skipped"
SYNC_FAILURES = "sync.failures"
SYNC_PASS_MS = "sync.pass_ms"

# Timing samples kept per metric; the scheduler runs for the life of the app.
TIMING_WINDOW = 256


class MetricsRegistry:
    """Process-wide counters and timings for the sync engine.

    Counters are plain totals since the last ``reset``. Timings keep the
    last ``TIMING_WINDOW`` samples; ``count`` in the snapshot is the total.
    """

    def __init__(self, timing_window: int = TIMING_WINDOW) -> None:
        self._lock = Lock()
        self._timing_window = timing_window
        self._counters: dict[str, int] = {}
        self._timings: dict[str, deque[float]] = {}
        self._timing_counts: dict[str, int] = {}

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def increment(self, name: str, value: int = 1) -> None:
        if value == 0:
            return
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def record_counts(self, prefix: str, counts: Mapping[str, int]) -> None:
        """Adds every non-zero entry of ``counts`` as ``<prefix>.<key>``."""
        with self._lock:
            for key, value in counts.items():
                if value:
                    name = f"{prefix}.{key}"
                    self._counters[name] = self._counters.get(name, 0) + value

    def record_failure(self, error_type: str) -> None:
        with self._lock:
            for name in (SYNC_FAILURES, f"{SYNC_FAILURES}.{error_type}"):
                self._counters[name] = self._counters.get(name, 0) + 1

    def record_timing(self, name: str, milliseconds: float) -> None:
        with self._lock:
            bucket = self._timings.get(name)
            if bucket is None:
                bucket = self._timings[name] = deque(maxlen=self._timing_window)
            bucket.append(milliseconds)
            self._timing_counts[name] = self._timing_counts.get(name, 0) + 1

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()
            self._timing_counts.clear()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            counters = dict(self._counters)
            timings = {name: list(values) for name, values in self._timings.items()}
            totals = dict(self._timing_counts)
        return {
            "counters": counters,
            "timings_ms": {
                name: {
                    "count": totals.get(name, len(values)),
                    "last": values[-1] if values else 0.0,
                    "avg": (sum(values) / len(values)) if values else 0.0,
                    "max": max(values) if values else 0.0,
                }
                for name, values in timings.items()
            },
        }


metrics_registry = MetricsRegistry()


def measure_time(metric_name: str, registry: MetricsRegistry | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (perf_counter() - started) * 1000
                (registry or metrics_registry).record_timing(metric_name, elapsed_ms)

        return wrapper

    return decorator
