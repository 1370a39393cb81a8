from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable, Iterable

from homesync.application.pull_planner import PullAction, plan_pull_record
from homesync.application.push_router import PushRouter
from homesync.bootstrap.logging import log_operational_error
from homesync.core.errors import AuthError, StorageError, TransportError
from homesync.core.metrics import SYNC_PASS_MS, SYNC_PASSES, SYNC_SKIPPED, measure_time, metrics_registry
from homesync.core.observability import OperationContext, log_event
from homesync.core.time_utils import Clock, latest_iso, now_iso, utc_now
from homesync.domain.field_mapping import map_remote_fields
from homesync.domain.models import PULL_ORDER, EntityType, LocalRecord, RemoteRecord, new_local_id
from homesync.domain.ports import ActionQueue, CursorStore, LocalEntityStore, RemoteGateway
from homesync.domain.sync_models import SyncState, SyncStatus, SyncSummary

logger = logging.getLogger(__name__)

# Failures that make the rest of the queue pointless to attempt this pass.
PUSH_ABORT_ERRORS: tuple[type[BaseException], ...] = (AuthError, StorageError, TransportError)

StateListener = Callable[[SyncState], None]


class ReconciliationEngine:
    """Single orchestration point between the local store and the remote.

    One pass is push (drain the offline queue) then pull (merge remote deltas
    since the cursor). At most one pass runs at a time; a concurrent call is
    dropped and returns ``None``. Errors never escape ``sync``: they land in
    ``state`` and in the logs, and the cursor stays where it was.
    """

    def __init__(
        self,
        store: LocalEntityStore,
        gateway: RemoteGateway,
        queue: ActionQueue,
        cursor_store: CursorStore,
        *,
        entity_types: Iterable[EntityType] = PULL_ORDER,
        clock: Clock = utc_now,
        on_state_change: StateListener | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._queue = queue
        self._cursor_store = cursor_store
        self._entity_types = tuple(entity_types)
        self._clock = clock
        self._on_state_change = on_state_change
        self._push_router = PushRouter(store, gateway)
        self._pass_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._state = SyncState(last_sync_at=cursor_store.load())

    @property
    def state(self) -> SyncState:
        with self._state_lock:
            return replace(self._state, pending_actions=len(self._queue))

    @property
    def is_syncing(self) -> bool:
        return self._pass_lock.locked()

    def sync(self) -> SyncSummary | None:
        return self._run_guarded("sync", self._full_pass)

    def push(self) -> SyncSummary | None:
        return self._run_guarded("push", self._push_phase)

    def pull(self) -> SyncSummary | None:
        return self._run_guarded("pull", self._pull_and_advance)

    def _run_guarded(self, operation: str, body: Callable[[], SyncSummary]) -> SyncSummary | None:
        if not self._pass_lock.acquire(blocking=False):
            log_event(logger, "sync_skipped", {"operation": operation, "reason": "pass_in_flight"})
            metrics_registry.increment(SYNC_SKIPPED)
            return None
        try:
            with OperationContext(f"sync.{operation}"):
                return self._run_pass(operation, body)
        finally:
            self._pass_lock.release()

    def _run_pass(self, operation: str, body: Callable[[], SyncSummary]) -> SyncSummary | None:
        self._update_state(status=SyncStatus.SYNCING)
        log_event(logger, "sync_started", {"operation": operation, "pending_actions": len(self._queue)})
        metrics_registry.increment(SYNC_PASSES)
        try:
            summary = body()
        except Exception as exc:
            metrics_registry.record_failure(type(exc).__name__)
            self._update_state(
                status=SyncStatus.ERROR,
                last_error=str(exc) or type(exc).__name__,
                requires_reauthentication=isinstance(exc, AuthError),
            )
            log_event(
                logger,
                "sync_failed",
                {"operation": operation, "error_type": type(exc).__name__, "error": str(exc)},
            )
            log_operational_error(
                logger,
                "Sync failed",
                exc=exc,
                extra={"operation": operation, "pending_actions": len(self._queue)},
            )
            return None
        metrics_registry.record_counts("sync", summary.to_dict())
        self._update_state(status=SyncStatus.IDLE, last_error=None, requires_reauthentication=False)
        log_event(logger, "sync_succeeded", {"operation": operation, "summary": summary.to_dict()})
        return summary

    @measure_time(SYNC_PASS_MS)
    def _full_pass(self) -> SyncSummary:
        pushed = self._push_phase()
        pulled = self._pull_and_advance()
        return pushed.merge(pulled)

    def _push_phase(self) -> SyncSummary:
        queued_before = len(self._queue)
        if not queued_before:
            return SyncSummary()
        removed = self._queue.drain(self._push_router, abort_on=PUSH_ABORT_ERRORS)
        failed = max(0, queued_before - removed)
        logger.info("Push phase finished: pushed=%s failed=%s", removed, failed)
        return SyncSummary(pushed=removed, push_failed=failed)

    def _pull_and_advance(self) -> SyncSummary:
        previous_cursor = self._cursor_store.load()
        pull_started_at = now_iso(self._clock)
        summary = SyncSummary()
        for entity_type in self._entity_types:
            summary = summary.merge(self._pull_entity_type(entity_type, previous_cursor))
        new_cursor = latest_iso(previous_cursor, pull_started_at)
        self._cursor_store.save(new_cursor)
        self._update_state(last_sync_at=new_cursor)
        return summary

    def _pull_entity_type(self, entity_type: EntityType, since: str | None) -> SyncSummary:
        created = updated = unchanged = skipped = 0
        for remote in self._gateway.list(entity_type, since=since):
            existing = self._store.find_by_remote_id(entity_type, remote.remote_id) if remote.remote_id else None
            mapped = map_remote_fields(entity_type, remote.fields) if remote.remote_id else {}
            action = plan_pull_record(remote.remote_id, mapped, existing)
            if action.command == "CREATE_LOCAL":
                self._create_local(remote, action)
                created += 1
            elif action.command == "UPDATE_LOCAL" and existing is not None:
                self._store.upsert(existing.with_fields(action.payload["fields"]))
                updated += 1
            elif action.reason_code == "unchanged":
                unchanged += 1
            else:
                logger.warning(
                    "remote_record_skipped",
                    extra={"extra": {"entity_type": entity_type.value, "reason": action.reason_code}},
                )
                skipped += 1
        return SyncSummary(
            pulled_created=created,
            pulled_updated=updated,
            pulled_unchanged=unchanged,
            pulled_skipped=skipped,
        )

    def _create_local(self, remote: RemoteRecord, action: PullAction) -> LocalRecord:
        timestamp = now_iso(self._clock)
        return self._store.upsert(
            LocalRecord(
                entity_type=remote.entity_type,
                id=new_local_id(),
                remote_id=remote.remote_id,
                fields=action.payload["fields"],
                created_at=remote.created_at or timestamp,
                updated_at=timestamp,
            )
        )

    def _update_state(self, **changes: object) -> None:
        with self._state_lock:
            self._state = replace(self._state, **changes)  # type: ignore[arg-type]
            snapshot = self._state
        if self._on_state_change is not None:
            self._on_state_change(replace(snapshot, pending_actions=len(self._queue)))
