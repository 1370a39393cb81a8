"""Remote <-> local field translation, one table per entity type.

Remote documents use camelCase names, epoch-millisecond timestamps and the
backend's own enum spellings (some of them legacy: ``pending`` for a new
maintenance request, ``medium`` priority, ``bank_transfer``...). Local records
use snake_case names, ISO timestamps and the values of the enums in
``homesync.domain.enums``. Unknown enum spellings never fail a pull: each
``EnumTable`` carries an explicit fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from enum import Enum
import re
from typing import Any, Literal

from homesync.core.time_utils import parse_timestamp, to_epoch_millis, to_iso
from homesync.domain.enums import (
    FeedEventType,
    FeedPriority,
    MaintenanceCategory,
    MaintenancePriority,
    MaintenanceStatus,
    OccupancyStatus,
    PaymentMethod,
    PaymentStatus,
    PropertyType,
)
from homesync.domain.models import EntityType, RemoteRecord

FieldKind = Literal["text", "number", "bool", "timestamp", "list", "ref", "enum"]

_NON_ALNUM = re.compile(r"[^0-9a-z]+")

# Remote bookkeeping keys never copied into local fields.
_REMOTE_META_KEYS = frozenset({"_id", "id", "_creationTime", "createdAt", "updatedAt", "userId"})


def normalize_enum_key(value: Any) -> str:
    return _NON_ALNUM.sub("", str(value).casefold())


@dataclass(frozen=True)
class EnumTable:
    enum_cls: type[Enum]
    fallback: Enum
    aliases: dict[str, Enum] = field(default_factory=dict)

    @cached_property
    def _lookup(self) -> dict[str, Enum]:
        table: dict[str, Enum] = {}
        for member in self.enum_cls:
            table[normalize_enum_key(member.value)] = member
            table[normalize_enum_key(member.name)] = member
        for alias, member in self.aliases.items():
            table[normalize_enum_key(alias)] = member
        return table

    def to_local(self, raw: Any) -> Any:
        if isinstance(raw, self.enum_cls):
            return raw.value
        if raw is None or isinstance(raw, bool):
            return self.fallback.value
        if isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        if isinstance(raw, int):
            for member in self.enum_cls:
                if member.value == raw:
                    return member.value
            return self.fallback.value
        return self._lookup.get(normalize_enum_key(raw), self.fallback).value

    def to_remote(self, local_value: Any) -> Any:
        return self.to_local(local_value)


MAINTENANCE_STATUS = EnumTable(
    MaintenanceStatus,
    MaintenanceStatus.NEW,
    {"pending": MaintenanceStatus.NEW, "open": MaintenanceStatus.NEW, "done": MaintenanceStatus.COMPLETED},
)
MAINTENANCE_PRIORITY = EnumTable(
    MaintenancePriority,
    MaintenancePriority.NORMAL,
    {"medium": MaintenancePriority.NORMAL},
)
MAINTENANCE_CATEGORY = EnumTable(
    MaintenanceCategory,
    MaintenanceCategory.OTHER,
    {
        "appliances": MaintenanceCategory.APPLIANCE,
        "pest": MaintenanceCategory.PEST,
        "painting": MaintenanceCategory.OTHER,
        "flooring": MaintenanceCategory.OTHER,
        "roofing": MaintenanceCategory.OTHER,
        "general": MaintenanceCategory.OTHER,
    },
)
PROPERTY_TYPE = EnumTable(
    PropertyType,
    PropertyType.SINGLE_FAMILY,
    {"house": PropertyType.SINGLE_FAMILY, "multifamily": PropertyType.MULTI_FAMILY, "duplex": PropertyType.MULTI_FAMILY},
)
OCCUPANCY_STATUS = EnumTable(OccupancyStatus, OccupancyStatus.VACANT)
PAYMENT_METHOD = EnumTable(
    PaymentMethod,
    PaymentMethod.OTHER,
    {"ach": PaymentMethod.BANK_TRANSFER, "card": PaymentMethod.CREDIT_CARD},
)
PAYMENT_STATUS = EnumTable(
    PaymentStatus,
    PaymentStatus.PENDING,
    {
        "overdue": PaymentStatus.PENDING,
        "late": PaymentStatus.PENDING,
        "paid": PaymentStatus.COMPLETED,
        "cancelled": PaymentStatus.FAILED,
        "canceled": PaymentStatus.FAILED,
    },
)
FEED_EVENT_TYPE = EnumTable(FeedEventType, FeedEventType.SYSTEM_ALERT)
FEED_PRIORITY = EnumTable(FeedPriority, FeedPriority.NORMAL)


@dataclass(frozen=True)
class FieldSpec:
    local: str
    remote: str
    kind: FieldKind = "text"
    enum: EnumTable | None = None
    remote_aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if (self.kind == "enum") != (self.enum is not None):
            raise ValueError(f"{self.local}: enum fields need an enum table and other kinds take none")


@dataclass(frozen=True)
class EntityMapping:
    entity_type: EntityType
    fields: tuple[FieldSpec, ...]

    def to_local(self, remote_fields: dict[str, Any]) -> dict[str, Any]:
        local: dict[str, Any] = {}
        for spec in self.fields:
            raw = _first_present(remote_fields, (spec.remote, *spec.remote_aliases))
            if raw is _MISSING and spec.kind != "enum":
                continue
            local[spec.local] = _decode(spec, None if raw is _MISSING else raw)
        return local

    def to_remote(self, local_fields: dict[str, Any]) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for spec in self.fields:
            if spec.local not in local_fields:
                continue
            value = _encode(spec, local_fields[spec.local])
            if value is None:
                continue
            payload[spec.remote] = value
        return payload


_MISSING = object()


def _first_present(source: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in source and source[key] is not None:
            return source[key]
    return _MISSING


def _decode(spec: FieldSpec, raw: Any) -> Any:
    if spec.enum is not None:
        return spec.enum.to_local(raw)
    if raw is None:
        return None
    if spec.kind == "timestamp":
        parsed = parse_timestamp(raw)
        return to_iso(parsed) if parsed is not None else None
    if spec.kind == "number":
        return _to_number(raw)
    if spec.kind == "bool":
        return _to_bool(raw)
    if spec.kind == "list":
        if isinstance(raw, (list, tuple)):
            return [str(item) for item in raw]
        return [item.strip() for item in str(raw).split(",") if item.strip()]
    return str(raw)


def _encode(spec: FieldSpec, value: Any) -> Any:
    if value is None:
        return None
    if spec.enum is not None:
        return spec.enum.to_remote(value)
    if spec.kind == "timestamp":
        return to_epoch_millis(value)
    if spec.kind == "list":
        return list(value)
    return value


def _to_number(raw: Any) -> int | float | None:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return raw
    text = str(raw).strip().replace(",", "")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return int(number) if number.is_integer() and "." not in text else number


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    return str(raw).strip().lower() in {"1", "true", "yes", "y"}


PROPERTY_MAPPING = EntityMapping(
    EntityType.PROPERTY,
    (
        FieldSpec("name", "name"),
        FieldSpec("address", "address"),
        FieldSpec("city", "city"),
        FieldSpec("state", "state"),
        FieldSpec("zip_code", "zipCode"),
        FieldSpec("property_type", "propertyType", "enum", PROPERTY_TYPE),
        FieldSpec("occupancy", "occupancy", "enum", OCCUPANCY_STATUS, ("status",)),
        FieldSpec("units", "units", "number"),
        FieldSpec("monthly_rent", "monthlyRent", "number"),
        FieldSpec("purchase_price", "purchasePrice", "number"),
        FieldSpec("current_value", "currentValue", "number"),
        FieldSpec("image_url", "imageURL"),
        FieldSpec("notes", "notes"),
    ),
)

TENANT_MAPPING = EntityMapping(
    EntityType.TENANT,
    (
        FieldSpec("first_name", "firstName"),
        FieldSpec("last_name", "lastName"),
        FieldSpec("email", "email"),
        FieldSpec("phone", "phone"),
        FieldSpec("unit", "unit"),
        FieldSpec("property_id", "propertyId", "ref"),
        FieldSpec("lease_start_date", "leaseStartDate", "timestamp"),
        FieldSpec("lease_end_date", "leaseEndDate", "timestamp"),
        FieldSpec("monthly_rent", "monthlyRent", "number"),
        FieldSpec("security_deposit", "securityDeposit", "number"),
        FieldSpec("is_active", "isActive", "bool"),
        FieldSpec("emergency_contact_name", "emergencyContactName"),
        FieldSpec("emergency_contact_phone", "emergencyContactPhone"),
        FieldSpec("notes", "notes"),
    ),
)

MAINTENANCE_REQUEST_MAPPING = EntityMapping(
    EntityType.MAINTENANCE_REQUEST,
    (
        FieldSpec("property_id", "propertyId", "ref"),
        FieldSpec("tenant_id", "tenantId", "ref"),
        FieldSpec("contractor_id", "contractorId", "ref"),
        FieldSpec("title", "title"),
        FieldSpec("description", "descriptionText", remote_aliases=("description",)),
        FieldSpec("category", "category", "enum", MAINTENANCE_CATEGORY),
        FieldSpec("priority", "priority", "enum", MAINTENANCE_PRIORITY),
        FieldSpec("status", "status", "enum", MAINTENANCE_STATUS),
        FieldSpec("photo_urls", "photoURLs", "list"),
        FieldSpec("scheduled_date", "scheduledDate", "timestamp"),
        FieldSpec("completed_date", "completedDate", "timestamp"),
        FieldSpec("estimated_cost", "estimatedCost", "number"),
        FieldSpec("actual_cost", "actualCost", "number"),
        FieldSpec("notes", "notes"),
    ),
)

CONTRACTOR_MAPPING = EntityMapping(
    EntityType.CONTRACTOR,
    (
        FieldSpec("company_name", "companyName"),
        FieldSpec("contact_name", "contactName"),
        FieldSpec("email", "email"),
        FieldSpec("phone", "phone"),
        FieldSpec("address", "address"),
        FieldSpec("website", "website"),
        FieldSpec("specialty", "specialty", "list"),
        FieldSpec("hourly_rate", "hourlyRate", "number"),
        FieldSpec("rating", "rating", "number"),
        FieldSpec("is_preferred", "isPreferred", "bool"),
        FieldSpec("notes", "notes"),
    ),
)

RENT_PAYMENT_MAPPING = EntityMapping(
    EntityType.RENT_PAYMENT,
    (
        FieldSpec("property_id", "propertyId", "ref"),
        FieldSpec("tenant_id", "tenantId", "ref"),
        FieldSpec("amount", "amount", "number"),
        FieldSpec("payment_date", "paymentDate", "timestamp"),
        FieldSpec("due_date", "dueDate", "timestamp"),
        FieldSpec("payment_method", "paymentMethod", "enum", PAYMENT_METHOD),
        FieldSpec("status", "status", "enum", PAYMENT_STATUS),
        FieldSpec("transaction_id", "transactionId"),
        FieldSpec("notes", "notes"),
    ),
)

FEED_EVENT_MAPPING = EntityMapping(
    EntityType.FEED_EVENT,
    (
        FieldSpec("event_type", "eventType", "enum", FEED_EVENT_TYPE, ("type",)),
        FieldSpec("title", "title"),
        FieldSpec("subtitle", "subtitle"),
        FieldSpec("detail", "detail"),
        FieldSpec("timestamp", "timestamp", "timestamp"),
        FieldSpec("is_read", "isRead", "bool"),
        FieldSpec("is_action_required", "isActionRequired", "bool"),
        FieldSpec("action_label", "actionLabel"),
        FieldSpec("priority", "priority", "enum", FEED_PRIORITY),
        FieldSpec("property_id", "propertyId", "ref"),
        FieldSpec("tenant_id", "tenantId", "ref"),
        FieldSpec("maintenance_request_id", "maintenanceRequestId", "ref"),
        FieldSpec("contractor_id", "contractorId", "ref"),
        FieldSpec("rent_payment_id", "rentPaymentId", "ref"),
    ),
)

MAPPINGS: dict[EntityType, EntityMapping] = {
    mapping.entity_type: mapping
    for mapping in (
        PROPERTY_MAPPING,
        TENANT_MAPPING,
        MAINTENANCE_REQUEST_MAPPING,
        CONTRACTOR_MAPPING,
        RENT_PAYMENT_MAPPING,
        FEED_EVENT_MAPPING,
    )
}


def split_full_name(full_name: Any) -> tuple[str, str]:
    """Splits at the first space: ``"Mary Ann Smith"`` -> ``("Mary", "Ann Smith")``."""
    text = str(full_name or "").strip()
    if not text:
        return "", ""
    first, _, last = text.partition(" ")
    return first, last.strip()


def map_remote_fields(entity_type: EntityType, remote_fields: dict[str, Any]) -> dict[str, Any]:
    source = dict(remote_fields)
    if entity_type is EntityType.TENANT and not source.get("firstName") and source.get("name"):
        source["firstName"], source["lastName"] = split_full_name(source["name"])
    return MAPPINGS[entity_type].to_local(source)


def map_local_fields(entity_type: EntityType, local_fields: dict[str, Any]) -> dict[str, Any]:
    return MAPPINGS[entity_type].to_remote(local_fields)


def map_status_to_remote(entity_type: EntityType, status: Any) -> str:
    table = PAYMENT_STATUS if entity_type is EntityType.RENT_PAYMENT else MAINTENANCE_STATUS
    return table.to_remote(status)


def to_remote_record(entity_type: EntityType, document: dict[str, Any]) -> RemoteRecord:
    """Builds the DTO from a raw remote document.

    Id comes from ``_id`` (falling back to ``id``); a blank id yields a record
    with ``remote_id=None`` which the pull planner skips.
    """
    raw_id = document.get("_id") or document.get("id")
    remote_id = str(raw_id).strip() if raw_id is not None else ""
    created = parse_timestamp(document.get("createdAt") or document.get("_creationTime"))
    updated = parse_timestamp(document.get("updatedAt"))
    fields = {key: value for key, value in document.items() if key not in _REMOTE_META_KEYS}
    return RemoteRecord(
        entity_type=entity_type,
        remote_id=remote_id or None,
        fields=fields,
        created_at=to_iso(created) if created else None,
        updated_at=to_iso(updated) if updated else None,
    )
