from __future__ import annotations

import json

from homesync.domain.models import RemoteConfig
from homesync.infrastructure.local_config import LocalConfigStore


def test_missing_file_means_not_configured(tmp_path) -> None:
    assert LocalConfigStore(tmp_path / "sync_config.json").load() is None


def test_device_id_is_generated_and_persisted_even_without_backend(tmp_path) -> None:
    config_path = tmp_path / "sync_config.json"
    config_path.write_text(json.dumps({"backend": ""}), encoding="utf-8")

    assert LocalConfigStore(config_path).load() is None

    stored = json.loads(config_path.read_text(encoding="utf-8"))
    assert stored["device_id"]


def test_save_then_load_round_trip(tmp_path) -> None:
    store = LocalConfigStore(tmp_path / "nested" / "sync_config.json")
    saved = store.save(RemoteConfig(backend="convex", device_id="", deployment_url="https://x.convex.cloud"))

    loaded = store.load()

    assert saved.device_id
    assert loaded == saved


def test_invalid_json_is_ignored(tmp_path) -> None:
    config_path = tmp_path / "sync_config.json"
    config_path.write_text("{oops", encoding="utf-8")

    assert LocalConfigStore(config_path).load() is None


def test_backend_name_is_case_insensitive(tmp_path) -> None:
    config_path = tmp_path / "sync_config.json"
    config_path.write_text(
        json.dumps({"backend": " Sheets ", "device_id": "dev-1", "spreadsheet_id": "abc", "credentials_path": "sa.json"}),
        encoding="utf-8",
    )

    config = LocalConfigStore(config_path).load()

    assert config == RemoteConfig(
        backend="sheets", device_id="dev-1", spreadsheet_id="abc", credentials_path="sa.json"
    )
