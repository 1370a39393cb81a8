from __future__ import annotations

from types import SimpleNamespace

import pytest

from homesync.application.push_router import PushRouter
from homesync.core.errors import UnacknowledgedRecordError, ValidationError
from homesync.domain.models import EntityType, LocalRecord
from homesync.domain.pending_actions import CreateEntity, DeleteEntity, RecordPayment, UpdateEntity, UpdateStatus
from tests.fakes import FakeRemoteGateway, InMemoryEntityStore

T0 = "2025-01-01T00:00:00Z"


@pytest.fixture
def memory_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def remote() -> FakeRemoteGateway:
    return FakeRemoteGateway()


def _local(entity_type: EntityType, local_id: str, remote_id: str | None = None) -> LocalRecord:
    return LocalRecord(entity_type, local_id, {}, T0, T0, remote_id=remote_id)


def test_create_assigns_the_remote_id(memory_store, remote) -> None:
    memory_store.upsert(_local(EntityType.PROPERTY, "l1"))

    PushRouter(memory_store, remote)(CreateEntity(EntityType.PROPERTY, "l1", {"name": "Elm"}, T0))

    assert memory_store.get(EntityType.PROPERTY, "l1").remote_id == "remote-1"
    assert remote.documents[EntityType.PROPERTY] == [{"name": "Elm", "_id": "remote-1"}]


def test_create_for_acknowledged_record_is_not_sent_twice(memory_store, remote) -> None:
    memory_store.upsert(_local(EntityType.PROPERTY, "l1", remote_id="r1"))

    PushRouter(memory_store, remote)(CreateEntity(EntityType.PROPERTY, "l1", {"name": "Elm"}, T0))

    assert remote.calls_named("create") == []


def test_record_payment_creates_a_rent_payment(memory_store, remote) -> None:
    memory_store.upsert(_local(EntityType.RENT_PAYMENT, "p1"))

    PushRouter(memory_store, remote)(RecordPayment("p1", {"amount": 900}, T0))

    assert remote.calls_named("create") == [("create", EntityType.RENT_PAYMENT, {"amount": 900})]


def test_update_and_status_target_the_remote_id(memory_store, remote) -> None:
    memory_store.upsert(_local(EntityType.MAINTENANCE_REQUEST, "m1", remote_id="r5"))
    router = PushRouter(memory_store, remote)

    router(UpdateEntity(EntityType.MAINTENANCE_REQUEST, "m1", {"title": "Leak"}, T0))
    router(UpdateStatus(EntityType.MAINTENANCE_REQUEST, "m1", "completed", T0))

    assert remote.calls_named("update")[0][2] == ("r5", {"title": "Leak"})
    assert remote.calls_named("update_status")[0][2] == ("r5", "completed")


def test_update_before_acknowledgement_is_rejected(memory_store, remote) -> None:
    memory_store.upsert(_local(EntityType.TENANT, "t1"))

    with pytest.raises(UnacknowledgedRecordError):
        PushRouter(memory_store, remote)(UpdateEntity(EntityType.TENANT, "t1", {"phone": "1"}, T0))
    assert remote.calls == []


def test_action_for_unknown_local_record_is_a_validation_error(memory_store, remote) -> None:
    with pytest.raises(ValidationError):
        PushRouter(memory_store, remote)(CreateEntity(EntityType.PROPERTY, "ghost", {}, T0))


def test_delete_removes_remote_then_local(memory_store, remote) -> None:
    memory_store.upsert(_local(EntityType.PROPERTY, "l1", remote_id="r1"))
    remote.seed(EntityType.PROPERTY, {"_id": "r1", "name": "Elm"})

    PushRouter(memory_store, remote)(DeleteEntity(EntityType.PROPERTY, "l1", T0))

    assert remote.documents[EntityType.PROPERTY] == []
    assert memory_store.get(EntityType.PROPERTY, "l1") is None


def test_delete_of_already_removed_record_is_a_no_op(memory_store, remote) -> None:
    PushRouter(memory_store, remote)(DeleteEntity(EntityType.PROPERTY, "gone", T0))

    assert remote.calls == []


def test_action_whose_kind_does_not_match_its_type_is_rejected(memory_store, remote) -> None:
    memory_store.upsert(_local(EntityType.PROPERTY, "l1"))
    forged = SimpleNamespace(kind="create-entity", entity_type=EntityType.PROPERTY, local_id="l1", fields={})

    with pytest.raises(ValidationError, match="CreateEntity"):
        PushRouter(memory_store, remote)(forged)

    assert remote.calls == []
