from __future__ import annotations

import logging
from typing import Callable, TypeVar

from homesync.core.errors import ServerError, UnacknowledgedRecordError, ValidationError
from homesync.domain.models import EntityType, LocalRecord, RemoteRecord
from homesync.domain.pending_actions import (
    CreateEntity,
    DeleteEntity,
    PendingAction,
    RecordPayment,
    UpdateEntity,
    UpdateStatus,
)
from homesync.domain.ports import LocalEntityStore, RemoteGateway

logger = logging.getLogger(__name__)

ActionHandler = Callable[[PendingAction], None]
_A = TypeVar("_A", CreateEntity, UpdateEntity, UpdateStatus, RecordPayment, DeleteEntity)


def _expect(action: PendingAction, action_type: type[_A]) -> _A:
    if not isinstance(action, action_type):
        raise ValidationError(f"Action kind {action.kind!r} does not match {action_type.__name__}")
    return action


class PushRouter:
    """Routes each queued action to the matching gateway mutation.

    Used as the ``process_fn`` of ``ActionQueue.drain``: returning means the
    remote confirmed the action, raising keeps it queued.
    """

    def __init__(self, store: LocalEntityStore, gateway: RemoteGateway) -> None:
        self._store = store
        self._gateway = gateway
        self._handlers: dict[str, ActionHandler] = {
            "create-entity": self._push_create,
            "update-entity": self._push_update,
            "update-status": self._push_status,
            "record-payment": self._push_payment,
            "delete-entity": self._push_delete,
        }

    def __call__(self, action: PendingAction) -> None:
        handler = self._handlers.get(action.kind)
        if handler is None:
            raise ValidationError(f"No push handler for action kind {action.kind!r}")
        handler(action)

    def _push_create(self, action: PendingAction) -> None:
        create = _expect(action, CreateEntity)
        self._create_and_acknowledge(create.entity_type, create.local_id, create.fields)

    def _push_payment(self, action: PendingAction) -> None:
        payment = _expect(action, RecordPayment)
        self._create_and_acknowledge(EntityType.RENT_PAYMENT, payment.local_id, payment.fields)

    def _push_update(self, action: PendingAction) -> None:
        update = _expect(action, UpdateEntity)
        record = self._acknowledged_record(update.entity_type, update.local_id)
        self._gateway.update(update.entity_type, record.remote_id or "", update.fields)

    def _push_status(self, action: PendingAction) -> None:
        change = _expect(action, UpdateStatus)
        record = self._acknowledged_record(change.entity_type, change.local_id)
        self._gateway.update_status(change.entity_type, record.remote_id or "", change.status)

    def _push_delete(self, action: PendingAction) -> None:
        delete = _expect(action, DeleteEntity)
        if self._store.get(delete.entity_type, delete.local_id) is None:
            logger.info(
                "delete_already_applied",
                extra={"extra": {"entity_type": delete.entity_type.value, "local_id": delete.local_id}},
            )
            return
        record = self._acknowledged_record(delete.entity_type, delete.local_id)
        self._gateway.delete(delete.entity_type, record.remote_id or "")
        self._store.delete(delete.entity_type, delete.local_id)

    def _create_and_acknowledge(self, entity_type: EntityType, local_id: str, payload: dict) -> RemoteRecord | None:
        record = self._store.get(entity_type, local_id)
        if record is None:
            raise ValidationError(f"Unknown local record {entity_type.value}:{local_id}")
        if record.is_acknowledged:
            logger.info(
                "create_already_acknowledged",
                extra={"extra": {"entity_type": entity_type.value, "local_id": local_id, "remote_id": record.remote_id}},
            )
            return None
        created = self._gateway.create(entity_type, payload)
        if not created.remote_id:
            raise ServerError(f"{entity_type.remote_table}: create returned no id")
        self._store.assign_remote_id(entity_type, local_id, created.remote_id)
        return created

    def _acknowledged_record(self, entity_type: EntityType, local_id: str) -> LocalRecord:
        record = self._store.get(entity_type, local_id)
        if record is None:
            raise ValidationError(f"Unknown local record {entity_type.value}:{local_id}")
        if not record.is_acknowledged:
            raise UnacknowledgedRecordError(f"{entity_type.value}:{local_id} has no remote id yet")
        return record
