from __future__ import annotations

import json

import pytest

from homesync.bootstrap.container import build_container, build_gateway
from homesync.bootstrap.settings import SyncSettings
from homesync.core.errors import ValidationError
from homesync.domain.models import EntityType, RemoteConfig
from homesync.infrastructure.convex_gateway import ConvexHttpGateway
from homesync.infrastructure.sheets_gateway import SheetsRemoteGateway
from tests.fakes import FakeRemoteGateway


@pytest.fixture
def settings(tmp_path) -> SyncSettings:
    return SyncSettings(data_dir=tmp_path / "data", log_dir=tmp_path / "logs")


def test_container_wires_a_working_sync_stack(settings) -> None:
    remote = FakeRemoteGateway()
    remote.seed(EntityType.PROPERTY, {"_id": "r1", "name": "Elm"})

    container = build_container(settings, gateway=remote, configure_logs=False)
    record = container.local_changes.create(EntityType.TENANT, {"first_name": "Ana"})
    summary = container.engine.sync()

    assert settings.db_path.exists()
    assert summary.pushed == 1
    assert summary.pulled_created == 1
    assert container.store.get(EntityType.TENANT, record.id).remote_id == "remote-1"
    assert container.cursor_store.load() == container.engine.state.last_sync_at


def test_queue_and_cursor_survive_a_restart(settings) -> None:
    remote = FakeRemoteGateway()
    remote.failures["create"] = ValueError("rejected")
    first = build_container(settings, gateway=remote, configure_logs=False)
    first.local_changes.create(EntityType.PROPERTY, {"name": "Elm"})
    first.engine.sync()

    second = build_container(settings, gateway=FakeRemoteGateway(), configure_logs=False)

    assert len(second.queue) == 1
    assert second.engine.state.last_sync_at is not None


def test_container_builds_gateway_from_the_config_file(settings) -> None:
    settings.data_dir.mkdir(parents=True)
    settings.config_path.write_text(
        json.dumps({"backend": "convex", "device_id": "d1", "deployment_url": "https://x.convex.cloud"}),
        encoding="utf-8",
    )

    container = build_container(settings, configure_logs=False)

    assert isinstance(container.gateway, ConvexHttpGateway)
    container.gateway.close()


def test_missing_config_without_gateway_is_rejected(settings) -> None:
    with pytest.raises(ValidationError, match="No remote backend"):
        build_container(settings, configure_logs=False)


def test_build_gateway_validates_backend_settings(settings) -> None:
    with pytest.raises(ValidationError):
        build_gateway(RemoteConfig(backend="convex", device_id="d1"), settings)
    with pytest.raises(ValidationError):
        build_gateway(RemoteConfig(backend="sheets", device_id="d1", spreadsheet_id="abc"), settings)

    gateway = build_gateway(
        RemoteConfig(backend="sheets", device_id="d1", spreadsheet_id="abc", credentials_path="sa.json"),
        settings,
    )
    assert isinstance(gateway, SheetsRemoteGateway)
