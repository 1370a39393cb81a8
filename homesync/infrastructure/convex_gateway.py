from __future__ import annotations

import logging
from typing import Any, Callable, Literal

import httpx

from homesync.core.errors import AuthError, ServerError, TransportError, ValidationError
from homesync.core.time_utils import to_epoch_millis
from homesync.domain.field_mapping import to_remote_record
from homesync.domain.models import EntityType, RemoteRecord
from homesync.domain.ports import RemoteGateway

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

# Delete mutations are not named uniformly across tables.
DELETE_FUNCTIONS: dict[EntityType, str] = {
    EntityType.PROPERTY: "deleteProperty",
    EntityType.RENT_PAYMENT: "remove",
}

# Only these list queries declare a `since` argument; the rest reject unknown args.
SINCE_ARG_TABLES: frozenset[EntityType] = frozenset({EntityType.FEED_EVENT})

TokenProvider = Callable[[], "str | None"]
FunctionKind = Literal["query", "mutation", "action"]


def _older_than(record: RemoteRecord, since_ms: int) -> bool:
    updated_ms = to_epoch_millis(record.updated_at)
    return updated_ms is not None and updated_ms < since_ms


def looks_like_jwt(token: str | None) -> bool:
    if not token:
        return False
    parts = token.split(".")
    return len(parts) == 3 and all(parts)


class ConvexHttpGateway(RemoteGateway):
    """Remote gateway over the Convex HTTP function API.

    Every call is a POST to ``/api/query`` or ``/api/mutation`` with
    ``{"path": "<table>:<function>", "args": {...}, "format": "json"}`` and
    answers with ``{"status": "success", "value": ...}`` or
    ``{"status": "error", "errorMessage": ...}``. No retries here: the
    reconciliation engine decides what to replay.
    """

    def __init__(
        self,
        deployment_url: str,
        *,
        token_provider: TokenProvider | None = None,
        user_id: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self._deployment_url = deployment_url.rstrip("/")
        self._token_provider = token_provider
        self._user_id = user_id
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ConvexHttpGateway":
        return self

    def __exit__(self, exc_type: object, exc: object, exc_tb: object) -> None:
        self.close()

    def list(self, entity_type: EntityType, since: str | None = None) -> list[RemoteRecord]:
        args: dict[str, Any] = self._owner_args()
        since_ms = to_epoch_millis(since)
        server_side = entity_type in SINCE_ARG_TABLES
        if since_ms is not None and server_side:
            args["since"] = since_ms
        value = self._call("query", f"{entity_type.remote_table}:list", args)
        if value is None:
            return []
        if not isinstance(value, list):
            raise ServerError(f"{entity_type.remote_table}:list returned {type(value).__name__}, expected a list")
        records = [to_remote_record(entity_type, document) for document in value if isinstance(document, dict)]
        if since_ms is None or server_side:
            return records
        return [record for record in records if not _older_than(record, since_ms)]

    def create(self, entity_type: EntityType, payload: dict[str, Any]) -> RemoteRecord:
        args = {**payload, **self._owner_args()}
        value = self._call("mutation", f"{entity_type.remote_table}:create", args)
        return self._record_from_mutation(entity_type, value, payload)

    def update(self, entity_type: EntityType, remote_id: str, payload: dict[str, Any]) -> RemoteRecord:
        value = self._call("mutation", f"{entity_type.remote_table}:update", {**payload, "id": remote_id})
        return self._record_from_mutation(entity_type, value, payload, remote_id=remote_id)

    def update_status(self, entity_type: EntityType, remote_id: str, status: str) -> RemoteRecord:
        value = self._call(
            "mutation",
            f"{entity_type.remote_table}:updateStatus",
            {"id": remote_id, "status": status},
        )
        return self._record_from_mutation(entity_type, value, {"status": status}, remote_id=remote_id)

    def delete(self, entity_type: EntityType, remote_id: str) -> None:
        function = DELETE_FUNCTIONS.get(entity_type)
        if function is None:
            raise ValidationError(f"{entity_type.remote_table} has no delete mutation")
        self._call("mutation", f"{entity_type.remote_table}:{function}", {"id": remote_id})

    def _owner_args(self) -> dict[str, Any]:
        return {"userId": self._user_id} if self._user_id else {}

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._token_provider() if self._token_provider else None
        if looks_like_jwt(token):
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _call(self, kind: FunctionKind, path: str, args: dict[str, Any]) -> Any:
        url = f"{self._deployment_url}/api/{kind}"
        body = {"path": path, "args": args, "format": "json"}
        try:
            response = self._client.post(url, json=body, headers=self._headers())
        except httpx.TransportError as exc:
            logger.warning("convex_transport_error", extra={"extra": {"path": path, "error": str(exc)}})
            raise TransportError(f"{path}: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthError(f"{path}: credentials rejected (HTTP {response.status_code})")
        if not response.is_success:
            raise ServerError(f"{path}: HTTP {response.status_code} {response.text[:200]}", response.status_code)
        try:
            envelope = response.json()
        except ValueError as exc:
            raise ServerError(f"{path}: response is not JSON", response.status_code) from exc
        if not isinstance(envelope, dict):
            raise ServerError(f"{path}: unexpected response envelope", response.status_code)
        if envelope.get("status") == "error":
            raise ServerError(f"{path}: {envelope.get('errorMessage') or 'remote function failed'}", response.status_code)
        if envelope.get("status") != "success":
            raise ServerError(f"{path}: unexpected envelope status {envelope.get('status')!r}", response.status_code)
        return envelope.get("value")

    @staticmethod
    def _record_from_mutation(
        entity_type: EntityType,
        value: Any,
        payload: dict[str, Any],
        *,
        remote_id: str | None = None,
    ) -> RemoteRecord:
        if isinstance(value, dict):
            return to_remote_record(entity_type, value)
        if isinstance(value, str) and value:
            remote_id = value
        if not remote_id:
            raise ServerError(f"{entity_type.remote_table}: mutation returned no document id")
        return RemoteRecord(entity_type=entity_type, remote_id=remote_id, fields=dict(payload))
