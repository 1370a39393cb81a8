from __future__ import annotations

import json

import pytest

from homesync.core.errors import AuthError, ServerError, StorageError
from homesync.domain.models import EntityType
from homesync.domain.pending_actions import CreateEntity, UpdateEntity, UpdateStatus
from homesync.infrastructure.action_queue import PersistentActionQueue
from homesync.infrastructure.kv_store_sqlite import OFFLINE_QUEUE_KEY
from tests.fakes import InMemoryKeyValueStore

T0 = "2025-01-01T00:00:00Z"


def _create(local_id: str, action_id: str) -> CreateEntity:
    return CreateEntity(EntityType.PROPERTY, local_id, {"name": local_id}, T0, action_id)


def _update(local_id: str, action_id: str) -> UpdateEntity:
    return UpdateEntity(EntityType.PROPERTY, local_id, {"name": "renamed"}, T0, action_id)


def test_drain_removes_every_successful_action_in_order() -> None:
    queue = PersistentActionQueue(InMemoryKeyValueStore())
    for index in range(3):
        queue.enqueue(_create(f"l{index}", f"a{index}"))
    processed: list[str] = []

    removed = queue.drain(lambda action: processed.append(action.action_id))

    assert removed == 3
    assert processed == ["a0", "a1", "a2"]
    assert len(queue) == 0


def test_failed_action_and_later_actions_for_same_record_stay_queued() -> None:
    queue = PersistentActionQueue(InMemoryKeyValueStore())
    queue.enqueue(_create("l1", "a1"))
    queue.enqueue(_create("l2", "a2"))
    queue.enqueue(_update("l1", "a3"))
    queue.enqueue(_update("l2", "a4"))
    processed: list[str] = []

    def process(action) -> None:
        processed.append(action.action_id)
        if action.action_id == "a1":
            raise ServerError("HTTP 500", 500)

    removed = queue.drain(process)

    assert removed == 2
    assert processed == ["a1", "a2", "a4"]
    assert [action.action_id for action in queue.pending()] == ["a1", "a3"]


def test_abort_error_stops_the_drain_and_keeps_the_rest() -> None:
    queue = PersistentActionQueue(InMemoryKeyValueStore())
    queue.enqueue(_create("l1", "a1"))
    queue.enqueue(_create("l2", "a2"))
    queue.enqueue(_create("l3", "a3"))

    def process(action) -> None:
        if action.action_id == "a2":
            raise AuthError("token expired")

    with pytest.raises(AuthError):
        queue.drain(process, abort_on=(AuthError,))

    assert [action.action_id for action in queue.pending()] == ["a2", "a3"]


def test_repeated_failing_drains_remove_nothing() -> None:
    queue = PersistentActionQueue(InMemoryKeyValueStore())
    queue.enqueue(_create("l1", "a1"))
    queue.enqueue(UpdateStatus(EntityType.MAINTENANCE_REQUEST, "m1", "completed", T0, "a2"))

    def always_fails(action) -> None:
        raise ServerError("down", 503)

    assert [queue.drain(always_fails) for _ in range(3)] == [0, 0, 0]
    assert len(queue) == 2


def test_queue_survives_reload_from_the_same_store() -> None:
    kv_store = InMemoryKeyValueStore()
    queue = PersistentActionQueue(kv_store)
    queue.enqueue(_create("l1", "a1"))
    queue.enqueue(_update("l1", "a2"))

    def push_creates_only(action) -> None:
        if action.kind != "create-entity":
            raise ServerError("update rejected", 409)

    queue.drain(push_creates_only)

    reloaded = PersistentActionQueue(kv_store)

    assert [action.action_id for action in reloaded.pending()] == ["a2"]
    assert json.loads(kv_store.get(OFFLINE_QUEUE_KEY))[0]["kind"] == "update-entity"


def test_queue_works_over_sqlite_kv_store(kv_store) -> None:
    PersistentActionQueue(kv_store).enqueue(_create("l1", "a1"))

    assert [action.local_id for action in PersistentActionQueue(kv_store).pending()] == ["l1"]


@pytest.mark.parametrize("raw", ["{not json", json.dumps({"kind": "create-entity"})])
def test_corrupt_queue_raises_storage_error(raw) -> None:
    kv_store = InMemoryKeyValueStore()
    kv_store.set(OFFLINE_QUEUE_KEY, raw)

    with pytest.raises(StorageError):
        PersistentActionQueue(kv_store)
