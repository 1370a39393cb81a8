from __future__ import annotations

import pytest

from homesync.core.errors import StorageError
from homesync.domain.models import EntityType
from homesync.domain.pending_actions import (
    CreateEntity,
    RecordPayment,
    UpdateStatus,
    decode_action,
    encode_action,
)


def test_encoded_action_has_the_stored_shape() -> None:
    action = UpdateStatus(EntityType.MAINTENANCE_REQUEST, "local-1", "completed", "2025-01-01T00:00:00Z", "a-1")

    assert encode_action(action) == {
        "kind": "update-status",
        "action_id": "a-1",
        "created_at": "2025-01-01T00:00:00Z",
        "entity_type": "maintenance_request",
        "local_id": "local-1",
        "payload": {"status": "completed"},
    }


def test_record_payment_is_always_a_rent_payment() -> None:
    action = decode_action(encode_action(RecordPayment("p-1", {"amount": 900}, "2025-01-01T00:00:00Z")))

    assert isinstance(action, RecordPayment)
    assert action.entity_type is EntityType.RENT_PAYMENT
    assert action.fields == {"amount": 900}


def test_action_ids_are_unique_by_default() -> None:
    first = CreateEntity(EntityType.PROPERTY, "l1", {}, "2025-01-01T00:00:00Z")
    second = CreateEntity(EntityType.PROPERTY, "l1", {}, "2025-01-01T00:00:00Z")

    assert first.action_id != second.action_id


@pytest.mark.parametrize(
    "data",
    [
        {"kind": "create-entity"},
        {
            "kind": "create-entity",
            "action_id": "a",
            "created_at": "t",
            "entity_type": "spaceship",
            "local_id": "l",
            "payload": {"fields": {}},
        },
        {
            "kind": "update-status",
            "action_id": "a",
            "created_at": "t",
            "entity_type": "rent_payment",
            "local_id": "l",
            "payload": {},
        },
    ],
)
def test_decode_rejects_malformed_actions(data) -> None:
    with pytest.raises(StorageError, match="Malformed"):
        decode_action(data)


def test_decode_rejects_unknown_kind() -> None:
    with pytest.raises(StorageError, match="Unknown queued action kind"):
        decode_action(
            {
                "kind": "archive-entity",
                "action_id": "a",
                "created_at": "t",
                "entity_type": "property",
                "local_id": "l",
            }
        )
