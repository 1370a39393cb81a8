from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any

from homesync.domain.models import RemoteConfig

logger = logging.getLogger(__name__)

_BACKENDS = ("convex", "sheets")


class LocalConfigStore:
    """JSON file holding which remote this device syncs with.

    A ``device_id`` is generated on first read and written back, so it stays
    stable even before the user configures a backend.
    """

    def __init__(self, config_path: Path) -> None:
        self._config_path = config_path

    def load(self) -> RemoteConfig | None:
        if not self._config_path.exists():
            return None
        try:
            payload = json.loads(self._config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.exception("Could not read %s: %s", self._config_path.name, exc)
            return None
        if not isinstance(payload, dict):
            logger.error("Ignoring %s: expected a JSON object", self._config_path.name)
            return None
        device_id = str(payload.get("device_id", "")).strip()
        if not device_id:
            device_id = self._generate_device_id()
            payload["device_id"] = device_id
            self._write_payload(payload)
        backend = str(payload.get("backend", "")).strip().lower()
        if backend not in _BACKENDS:
            return None
        return RemoteConfig(
            backend=backend,  # type: ignore[arg-type]
            device_id=device_id,
            deployment_url=_text(payload, "deployment_url"),
            spreadsheet_id=_text(payload, "spreadsheet_id"),
            credentials_path=_text(payload, "credentials_path"),
            user_id=_text(payload, "user_id"),
        )

    def save(self, config: RemoteConfig) -> RemoteConfig:
        payload = {
            "backend": config.backend,
            "device_id": config.device_id or self._generate_device_id(),
            "deployment_url": config.deployment_url,
            "spreadsheet_id": config.spreadsheet_id,
            "credentials_path": config.credentials_path,
            "user_id": config.user_id,
        }
        self._write_payload(payload)
        return RemoteConfig(**payload)

    def _write_payload(self, payload: dict[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    @staticmethod
    def _generate_device_id() -> str:
        return str(uuid.uuid4())


def _text(payload: dict[str, Any], key: str) -> str:
    return str(payload.get(key, "") or "").strip()
