from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal
import uuid


class EntityType(str, Enum):
    PROPERTY = "property"
    TENANT = "tenant"
    MAINTENANCE_REQUEST = "maintenance_request"
    CONTRACTOR = "contractor"
    RENT_PAYMENT = "rent_payment"
    FEED_EVENT = "feed_event"

    @property
    def remote_table(self) -> str:
        return _REMOTE_TABLES[self]


_REMOTE_TABLES: dict[EntityType, str] = {
    EntityType.PROPERTY: "properties",
    EntityType.TENANT: "tenants",
    EntityType.MAINTENANCE_REQUEST: "maintenanceRequests",
    EntityType.CONTRACTOR: "contractors",
    EntityType.RENT_PAYMENT: "rentPayments",
    EntityType.FEED_EVENT: "feedEvents",
}

# Pull order: parents before the records that reference them.
PULL_ORDER: tuple[EntityType, ...] = (
    EntityType.PROPERTY,
    EntityType.TENANT,
    EntityType.CONTRACTOR,
    EntityType.MAINTENANCE_REQUEST,
    EntityType.RENT_PAYMENT,
    EntityType.FEED_EVENT,
)


# Entity types whose remote exposes a delete mutation.
DELETABLE_ENTITY_TYPES: frozenset[EntityType] = frozenset({EntityType.PROPERTY, EntityType.RENT_PAYMENT})


def new_local_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class LocalRecord:
    """A persisted on-device entity.

    ``id`` is generated on the device and never changes. ``remote_id`` stays
    ``None`` until the remote confirms the record exists; from then on it is
    fixed. ``fields`` holds the local representation (split names, local enum
    values) so the UI never has to know the remote spelling.
    """

    entity_type: EntityType
    id: str
    fields: dict[str, Any]
    created_at: str
    updated_at: str
    remote_id: str | None = None

    @property
    def is_acknowledged(self) -> bool:
        return self.remote_id is not None

    def with_fields(self, fields: dict[str, Any]) -> "LocalRecord":
        return replace(self, fields=dict(fields))

    def with_remote_id(self, remote_id: str) -> "LocalRecord":
        return replace(self, remote_id=remote_id)


@dataclass(frozen=True)
class RemoteRecord:
    """Wire-shape record as returned by the remote (camelCase, remote enums)."""

    entity_type: EntityType
    remote_id: str | None
    fields: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None


BackendKind = Literal["convex", "sheets"]


@dataclass(frozen=True)
class RemoteConfig:
    backend: BackendKind
    device_id: str
    deployment_url: str = ""
    spreadsheet_id: str = ""
    credentials_path: str = ""
    user_id: str = ""
