from __future__ import annotations

import json
import logging
import threading
from typing import Callable

from homesync.core.errors import StorageError
from homesync.domain.pending_actions import PendingAction, decode_action, encode_action
from homesync.domain.ports import ActionQueue, KeyValueStore
from homesync.infrastructure.kv_store_sqlite import OFFLINE_QUEUE_KEY

logger = logging.getLogger(__name__)


class PersistentActionQueue(ActionQueue):
    """Durable FIFO of pending actions stored as one JSON list.

    ``drain`` keeps per-entity order: once an action for a given
    ``(entity_type, local_id)`` fails, the later actions for that same record
    stay queued behind it. Actions for other records keep flowing.
    """

    def __init__(self, kv_store: KeyValueStore, key: str = OFFLINE_QUEUE_KEY) -> None:
        self._kv_store = kv_store
        self._key = key
        self._lock = threading.RLock()
        self._actions: list[PendingAction] = self._load()

    def enqueue(self, action: PendingAction) -> None:
        with self._lock:
            self._actions.append(action)
            self._persist()
        logger.info(
            "action_enqueued",
            extra={"extra": {"kind": action.kind, "action_id": action.action_id, "entity_type": action.entity_type.value}},
        )

    def pending(self) -> list[PendingAction]:
        with self._lock:
            return list(self._actions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)

    def drain(
        self,
        process_fn: Callable[[PendingAction], None],
        *,
        abort_on: tuple[type[BaseException], ...] = (),
    ) -> int:
        snapshot = self.pending()
        blocked: set[tuple[str, str]] = set()
        removed = 0
        for action in snapshot:
            target = (action.entity_type.value, action.local_id)
            if target in blocked:
                continue
            try:
                process_fn(action)
            except abort_on:
                logger.warning(
                    "queue_drain_aborted",
                    extra={"extra": {"action_id": action.action_id, "removed": removed}},
                )
                raise
            except Exception as exc:
                blocked.add(target)
                logger.warning(
                    "queued_action_failed",
                    extra={
                        "extra": {
                            "kind": action.kind,
                            "action_id": action.action_id,
                            "error_type": type(exc).__name__,
                            "error": str(exc),
                        }
                    },
                )
                continue
            self._remove(action.action_id)
            removed += 1
        return removed

    def _remove(self, action_id: str) -> None:
        with self._lock:
            self._actions = [action for action in self._actions if action.action_id != action_id]
            self._persist()

    def _persist(self) -> None:
        self._kv_store.set(self._key, json.dumps([encode_action(action) for action in self._actions]))

    def _load(self) -> list[PendingAction]:
        raw = self._kv_store.get(self._key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Offline queue under {self._key!r} is not valid JSON") from exc
        if not isinstance(items, list):
            raise StorageError(f"Offline queue under {self._key!r} is not a list")
        return [decode_action(item) for item in items]
