from __future__ import annotations

from typing import Any, Callable, Protocol

from homesync.domain.models import EntityType, LocalRecord, RemoteRecord
from homesync.domain.pending_actions import PendingAction


class LocalEntityStore(Protocol):
    def fetch_all(
        self, entity_type: EntityType, sort_by: str | None = None, descending: bool = False
    ) -> list[LocalRecord]:
        ...

    def get(self, entity_type: EntityType, local_id: str) -> LocalRecord | None:
        ...

    def upsert(self, record: LocalRecord) -> LocalRecord:
        ...

    def find_by_remote_id(self, entity_type: EntityType, remote_id: str) -> LocalRecord | None:
        ...

    def assign_remote_id(self, entity_type: EntityType, local_id: str, remote_id: str) -> LocalRecord:
        ...

    def count(self, entity_type: EntityType) -> int:
        ...

    def delete(self, entity_type: EntityType, local_id: str) -> bool:
        ...


class RemoteGateway(Protocol):
    def list(self, entity_type: EntityType, since: str | None = None) -> list[RemoteRecord]:
        ...

    def create(self, entity_type: EntityType, payload: dict[str, Any]) -> RemoteRecord:
        ...

    def update(self, entity_type: EntityType, remote_id: str, payload: dict[str, Any]) -> RemoteRecord:
        ...

    def update_status(self, entity_type: EntityType, remote_id: str, status: str) -> RemoteRecord:
        ...

    def delete(self, entity_type: EntityType, remote_id: str) -> None:
        ...


class ActionQueue(Protocol):
    def enqueue(self, action: PendingAction) -> None:
        ...

    def drain(
        self,
        process_fn: Callable[[PendingAction], None],
        *,
        abort_on: tuple[type[BaseException], ...] = (),
    ) -> int:
        ...

    def pending(self) -> list[PendingAction]:
        ...

    def __len__(self) -> int:
        ...


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class CursorStore(Protocol):
    def load(self) -> str | None:
        ...

    def save(self, value: str) -> None:
        ...
