from __future__ import annotations

import json

import httpx
import pytest

from homesync.core.errors import AuthError, ServerError, TransportError, ValidationError
from homesync.domain.models import EntityType
from homesync.infrastructure.convex_gateway import ConvexHttpGateway, looks_like_jwt

DEPLOYMENT = "https://happy-otter-123.convex.cloud"
JWT = "aaa.bbb.ccc"


class _Recorder:
    def __init__(self, responder) -> None:
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def _gateway(responder, **kwargs) -> tuple[ConvexHttpGateway, _Recorder]:
    recorder = _Recorder(responder)
    client = httpx.Client(transport=httpx.MockTransport(recorder))
    return ConvexHttpGateway(DEPLOYMENT + "/", client=client, **kwargs), recorder


def _success(value) -> httpx.Response:
    return httpx.Response(200, json={"status": "success", "value": value})


def test_feed_list_posts_query_envelope_with_since_in_millis() -> None:
    gateway, recorder = _gateway(
        lambda request: _success([{"_id": "e1", "title": "Rent due", "timestamp": 1_740_817_800_000}]),
        user_id="user-1",
        token_provider=lambda: JWT,
    )

    records = gateway.list(EntityType.FEED_EVENT, since="2025-03-01T08:30:00Z")

    request = recorder.requests[0]
    assert str(request.url) == f"{DEPLOYMENT}/api/query"
    assert request.headers["Authorization"] == f"Bearer {JWT}"
    assert recorder.body() == {
        "path": "feedEvents:list",
        "args": {"userId": "user-1", "since": 1_740_817_800_000},
        "format": "json",
    }
    assert [record.remote_id for record in records] == ["e1"]


def test_list_with_cursor_filters_other_tables_on_the_client() -> None:
    gateway, recorder = _gateway(
        lambda request: _success(
            [
                {"_id": "r1", "title": "Leak", "status": "pending", "updatedAt": 1_740_817_800_000},
                {"_id": "r0", "title": "Old", "status": "pending", "updatedAt": 1_740_817_799_999},
                {"_id": "r2", "title": "No stamp", "status": "pending"},
            ]
        ),
        user_id="user-1",
    )

    records = gateway.list(EntityType.MAINTENANCE_REQUEST, since="2025-03-01T08:30:00Z")

    assert recorder.body() == {
        "path": "maintenanceRequests:list",
        "args": {"userId": "user-1"},
        "format": "json",
    }
    assert [record.remote_id for record in records] == ["r1", "r2"]
    assert records[0].fields == {"title": "Leak", "status": "pending"}
    assert records[0].updated_at == "2025-03-01T08:30:00Z"

def test_token_that_is_not_a_jwt_is_not_sent() -> None:
    gateway, recorder = _gateway(lambda request: _success([]), token_provider=lambda: "opaque-token")

    assert gateway.list(EntityType.PROPERTY) == []
    assert "Authorization" not in recorder.requests[0].headers
    assert recorder.body()["args"] == {}


def test_create_returns_record_from_document_id_string() -> None:
    gateway, recorder = _gateway(lambda request: _success("new-remote-id"), user_id="user-1")

    record = gateway.create(EntityType.PROPERTY, {"name": "Elm"})

    assert str(recorder.requests[0].url).endswith("/api/mutation")
    assert recorder.body() == {"path": "properties:create", "args": {"name": "Elm", "userId": "user-1"}, "format": "json"}
    assert record.remote_id == "new-remote-id"
    assert record.fields == {"name": "Elm"}


def test_update_and_update_status_send_the_remote_id() -> None:
    gateway, recorder = _gateway(lambda request: _success(None))

    gateway.update(EntityType.TENANT, "r9", {"phone": "555"})
    record = gateway.update_status(EntityType.RENT_PAYMENT, "r7", "completed")

    assert recorder.body(0) == {"path": "tenants:update", "args": {"phone": "555", "id": "r9"}, "format": "json"}
    assert recorder.body(1) == {
        "path": "rentPayments:updateStatus",
        "args": {"id": "r7", "status": "completed"},
        "format": "json",
    }
    assert record.remote_id == "r7"


@pytest.mark.parametrize("status_code", [401, 403])
def test_rejected_credentials_raise_auth_error(status_code) -> None:
    gateway, _ = _gateway(lambda request: httpx.Response(status_code, text="nope"))

    with pytest.raises(AuthError):
        gateway.list(EntityType.PROPERTY)


def test_server_failure_keeps_status_code() -> None:
    gateway, _ = _gateway(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(ServerError) as excinfo:
        gateway.create(EntityType.PROPERTY, {"name": "Elm"})
    assert excinfo.value.status_code == 500


def test_error_envelope_raises_server_error_with_message() -> None:
    gateway, _ = _gateway(
        lambda request: httpx.Response(200, json={"status": "error", "errorMessage": "Validator failed"})
    )

    with pytest.raises(ServerError, match="Validator failed"):
        gateway.update(EntityType.PROPERTY, "r1", {"units": "many"})


def test_non_list_query_result_is_rejected() -> None:
    gateway, _ = _gateway(lambda request: _success({"page": []}))

    with pytest.raises(ServerError, match="expected a list"):
        gateway.list(EntityType.PROPERTY)


def test_network_failure_raises_transport_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway, _ = _gateway(refuse)

    with pytest.raises(TransportError):
        gateway.list(EntityType.PROPERTY)


def test_create_without_any_id_is_a_server_error() -> None:
    gateway, _ = _gateway(lambda request: _success(None))

    with pytest.raises(ServerError, match="no document id"):
        gateway.create(EntityType.PROPERTY, {"name": "Elm"})


@pytest.mark.parametrize(
    ("token", "expected"),
    [(JWT, True), (None, False), ("", False), ("a.b", False), ("a..c", False)],
)
def test_looks_like_jwt(token, expected) -> None:
    assert looks_like_jwt(token) is expected


def test_delete_uses_the_table_specific_mutation() -> None:
    gateway, recorder = _gateway(lambda request: _success(None))

    gateway.delete(EntityType.PROPERTY, "r1")
    gateway.delete(EntityType.RENT_PAYMENT, "p1")

    assert [recorder.body(index)["path"] for index in (0, 1)] == ["properties:deleteProperty", "rentPayments:remove"]
    assert recorder.body(0)["args"] == {"id": "r1"}
    with pytest.raises(ValidationError):
        gateway.delete(EntityType.TENANT, "t1")
