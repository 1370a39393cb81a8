from __future__ import annotations

import logging
from typing import Any

from homesync.core.errors import ValidationError
from homesync.core.time_utils import Clock, now_iso, parse_timestamp, utc_now
from homesync.domain.field_mapping import (
    MAINTENANCE_STATUS,
    MAPPINGS,
    PAYMENT_STATUS,
    map_local_fields,
    map_remote_fields,
)
from homesync.domain.models import DELETABLE_ENTITY_TYPES, EntityType, LocalRecord, new_local_id
from homesync.domain.pending_actions import CreateEntity, DeleteEntity, RecordPayment, UpdateEntity, UpdateStatus
from homesync.domain.ports import ActionQueue, LocalEntityStore

logger = logging.getLogger(__name__)

_STATUS_TABLES = {
    EntityType.MAINTENANCE_REQUEST: MAINTENANCE_STATUS,
    EntityType.RENT_PAYMENT: PAYMENT_STATUS,
}


class LocalChangeService:
    """Applies user edits locally and queues the matching remote mutation.

    Creates and updates are written locally first so the UI reflects them
    immediately; deletes wait for the remote. The queued action carries the
    payload already in the remote's shape.
    """

    def __init__(self, store: LocalEntityStore, queue: ActionQueue, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._queue = queue
        self._clock = clock

    def create(self, entity_type: EntityType, fields: dict[str, Any]) -> LocalRecord:
        if entity_type is EntityType.RENT_PAYMENT:
            return self.record_payment(fields)
        record = self._insert_local(entity_type, fields)
        self._queue.enqueue(
            CreateEntity(
                entity_type=entity_type,
                local_id=record.id,
                fields=map_local_fields(entity_type, record.fields),
                created_at=record.created_at,
            )
        )
        return record

    def record_payment(self, fields: dict[str, Any]) -> LocalRecord:
        record = self._insert_local(EntityType.RENT_PAYMENT, fields)
        self._queue.enqueue(
            RecordPayment(
                local_id=record.id,
                fields=map_local_fields(EntityType.RENT_PAYMENT, record.fields),
                created_at=record.created_at,
            )
        )
        return record

    def update(self, entity_type: EntityType, local_id: str, changes: dict[str, Any]) -> LocalRecord:
        _validate_field_names(entity_type, changes)
        cleared = sorted(key for key, value in changes.items() if value is None)
        if cleared:
            raise ValidationError(f"{entity_type.value} fields cannot be cleared: {', '.join(cleared)}")
        record = self._require(entity_type, local_id)
        normalized = _normalize_local_fields(entity_type, changes)
        dropped = sorted(key for key, value in normalized.items() if value is None)
        if dropped:
            raise ValidationError(f"Invalid {entity_type.value} values for: {', '.join(dropped)}")
        updated = self._store.upsert(record.with_fields({**record.fields, **normalized}))
        self._queue.enqueue(
            UpdateEntity(
                entity_type=entity_type,
                local_id=local_id,
                fields=map_local_fields(entity_type, normalized),
                created_at=now_iso(self._clock),
            )
        )
        return updated

    def update_status(self, entity_type: EntityType, local_id: str, status: Any) -> LocalRecord:
        table = _STATUS_TABLES.get(entity_type)
        if table is None:
            raise ValidationError(f"{entity_type.value} has no status to update")
        record = self._require(entity_type, local_id)
        local_status = table.to_local(status)
        updated = self._store.upsert(record.with_fields({**record.fields, "status": local_status}))
        self._queue.enqueue(
            UpdateStatus(
                entity_type=entity_type,
                local_id=local_id,
                status=table.to_remote(local_status),
                created_at=now_iso(self._clock),
            )
        )
        logger.info(
            "local_status_changed",
            extra={"extra": {"entity_type": entity_type.value, "local_id": local_id, "status": local_status}},
        )
        return updated

    def delete(self, entity_type: EntityType, local_id: str) -> LocalRecord:
        """Queues a remote delete. The local record is removed once the remote confirms."""
        if entity_type not in DELETABLE_ENTITY_TYPES:
            raise ValidationError(f"{entity_type.value} records cannot be deleted")
        record = self._require(entity_type, local_id)
        self._queue.enqueue(DeleteEntity(entity_type=entity_type, local_id=local_id, created_at=now_iso(self._clock)))
        return record

    def _insert_local(self, entity_type: EntityType, fields: dict[str, Any]) -> LocalRecord:
        _validate_field_names(entity_type, fields)
        timestamp = now_iso(self._clock)
        return self._store.upsert(
            LocalRecord(
                entity_type=entity_type,
                id=new_local_id(),
                remote_id=None,
                fields=_normalize_local_fields(entity_type, fields, fill_defaults=True),
                created_at=timestamp,
                updated_at=timestamp,
            )
        )

    def _require(self, entity_type: EntityType, local_id: str) -> LocalRecord:
        record = self._store.get(entity_type, local_id)
        if record is None:
            raise ValidationError(f"Unknown local record {entity_type.value}:{local_id}")
        return record


def _validate_field_names(entity_type: EntityType, fields: dict[str, Any]) -> None:
    known = {spec.local for spec in MAPPINGS[entity_type].fields}
    unknown = sorted(set(fields) - known)
    if unknown:
        raise ValidationError(f"Unknown {entity_type.value} fields: {', '.join(unknown)}")


def _validate_timestamps(entity_type: EntityType, fields: dict[str, Any]) -> None:
    for spec in MAPPINGS[entity_type].fields:
        value = fields.get(spec.local)
        if spec.kind == "timestamp" and value is not None and parse_timestamp(value) is None:
            raise ValidationError(f"Invalid {entity_type.value}.{spec.local} timestamp: {value!r}")


def _normalize_local_fields(
    entity_type: EntityType, fields: dict[str, Any], *, fill_defaults: bool = False
) -> dict[str, Any]:
    """Round-trips through the remote shape so values match what a pull stores."""
    _validate_timestamps(entity_type, fields)
    normalized = map_remote_fields(entity_type, map_local_fields(entity_type, fields))
    if fill_defaults:
        return normalized
    return {key: normalized.get(key) for key in fields}
