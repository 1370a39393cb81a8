"""Queued local mutations awaiting remote confirmation.

One frozen dataclass per action kind. ``encode_action``/``decode_action``
convert to and from the JSON object stored in the offline queue::

    {"kind", "action_id", "created_at", "entity_type", "local_id", "payload"}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from homesync.core.errors import StorageError
from homesync.domain.models import EntityType, new_local_id

ActionKind = Literal["create-entity", "update-entity", "update-status", "record-payment", "delete-entity"]


@dataclass(frozen=True)
class CreateEntity:
    entity_type: EntityType
    local_id: str
    fields: dict[str, Any]
    created_at: str
    action_id: str = field(default_factory=new_local_id)
    kind: ActionKind = field(default="create-entity", init=False)

    def payload(self) -> dict[str, Any]:
        return {"fields": dict(self.fields)}


@dataclass(frozen=True)
class UpdateEntity:
    entity_type: EntityType
    local_id: str
    fields: dict[str, Any]
    created_at: str
    action_id: str = field(default_factory=new_local_id)
    kind: ActionKind = field(default="update-entity", init=False)

    def payload(self) -> dict[str, Any]:
        return {"fields": dict(self.fields)}


@dataclass(frozen=True)
class UpdateStatus:
    entity_type: EntityType
    local_id: str
    status: str
    created_at: str
    action_id: str = field(default_factory=new_local_id)
    kind: ActionKind = field(default="update-status", init=False)

    def payload(self) -> dict[str, Any]:
        return {"status": self.status}


@dataclass(frozen=True)
class RecordPayment:
    local_id: str
    fields: dict[str, Any]
    created_at: str
    action_id: str = field(default_factory=new_local_id)
    entity_type: EntityType = field(default=EntityType.RENT_PAYMENT, init=False)
    kind: ActionKind = field(default="record-payment", init=False)

    def payload(self) -> dict[str, Any]:
        return {"fields": dict(self.fields)}


@dataclass(frozen=True)
class DeleteEntity:
    entity_type: EntityType
    local_id: str
    created_at: str
    action_id: str = field(default_factory=new_local_id)
    kind: ActionKind = field(default="delete-entity", init=False)

    def payload(self) -> dict[str, Any]:
        return {}


PendingAction = Union[CreateEntity, UpdateEntity, UpdateStatus, RecordPayment, DeleteEntity]


def encode_action(action: PendingAction) -> dict[str, Any]:
    return {
        "kind": action.kind,
        "action_id": action.action_id,
        "created_at": action.created_at,
        "entity_type": action.entity_type.value,
        "local_id": action.local_id,
        "payload": action.payload(),
    }


def decode_action(data: dict[str, Any]) -> PendingAction:
    try:
        kind = data["kind"]
        action_id = str(data["action_id"])
        created_at = str(data["created_at"])
        entity_type = EntityType(data["entity_type"])
        local_id = str(data["local_id"])
        payload = data.get("payload") or {}
        if kind == "create-entity":
            return CreateEntity(entity_type, local_id, dict(payload["fields"]), created_at, action_id)
        if kind == "update-entity":
            return UpdateEntity(entity_type, local_id, dict(payload["fields"]), created_at, action_id)
        if kind == "update-status":
            return UpdateStatus(entity_type, local_id, str(payload["status"]), created_at, action_id)
        if kind == "record-payment":
            return RecordPayment(local_id, dict(payload["fields"]), created_at, action_id)
        if kind == "delete-entity":
            return DeleteEntity(entity_type, local_id, created_at, action_id)
    except (KeyError, TypeError, ValueError) as exc:
        raise StorageError(f"Malformed queued action: {exc}") from exc
    raise StorageError(f"Unknown queued action kind: {kind!r}")
