from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from homesync.application.local_changes import LocalChangeService
from homesync.application.reconciliation import ReconciliationEngine, StateListener
from homesync.application.scheduler import SyncScheduler
from homesync.bootstrap.logging import configure_logging
from homesync.bootstrap.settings import SyncSettings
from homesync.core.errors import ValidationError
from homesync.domain.models import RemoteConfig
from homesync.domain.ports import RemoteGateway
from homesync.infrastructure.action_queue import PersistentActionQueue
from homesync.infrastructure.convex_gateway import ConvexHttpGateway, TokenProvider
from homesync.infrastructure.db import get_connection
from homesync.infrastructure.entity_store_sqlite import SQLiteEntityStore
from homesync.infrastructure.kv_store_sqlite import KeyValueCursorStore, SQLiteKeyValueStore
from homesync.infrastructure.local_config import LocalConfigStore
from homesync.infrastructure.migrations import run_migrations
from homesync.infrastructure.sheets_gateway import SheetsRemoteGateway

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[Path], sqlite3.Connection]


@dataclass
class SyncContainer:
    settings: SyncSettings
    config_store: LocalConfigStore
    store: SQLiteEntityStore
    queue: PersistentActionQueue
    cursor_store: KeyValueCursorStore
    gateway: RemoteGateway
    engine: ReconciliationEngine
    local_changes: LocalChangeService
    scheduler: SyncScheduler


def build_gateway(
    remote_config: RemoteConfig,
    settings: SyncSettings,
    *,
    token_provider: TokenProvider | None = None,
) -> RemoteGateway:
    if remote_config.backend == "convex":
        if not remote_config.deployment_url:
            raise ValidationError("Convex backend needs a deployment_url")
        return ConvexHttpGateway(
            remote_config.deployment_url,
            token_provider=token_provider,
            user_id=remote_config.user_id or None,
            timeout_seconds=settings.http_timeout_seconds,
        )
    if remote_config.backend == "sheets":
        if not remote_config.spreadsheet_id or not remote_config.credentials_path:
            raise ValidationError("Sheets backend needs spreadsheet_id and credentials_path")
        return SheetsRemoteGateway.from_service_account(
            Path(remote_config.credentials_path),
            remote_config.spreadsheet_id,
        )
    raise ValidationError(f"Unknown backend {remote_config.backend!r}")


def build_container(
    settings: SyncSettings | None = None,
    *,
    gateway: RemoteGateway | None = None,
    token_provider: TokenProvider | None = None,
    connection_factory: ConnectionFactory = get_connection,
    on_state_change: StateListener | None = None,
    configure_logs: bool = True,
) -> SyncContainer:
    """Wires the sync stack for one device database.

    ``gateway`` overrides the backend chosen in the local config file (tests,
    embedding hosts with their own transport).
    """
    resolved_settings = settings or SyncSettings.from_env()
    if configure_logs:
        configure_logging(resolved_settings.log_dir)

    # One connection per writer: the UI thread and the sync worker never share a transaction.
    store_connection = connection_factory(resolved_settings.db_path)
    run_migrations(store_connection)
    kv_connection = connection_factory(resolved_settings.db_path)

    config_store = LocalConfigStore(resolved_settings.config_path)
    if gateway is None:
        remote_config = config_store.load()
        if remote_config is None:
            raise ValidationError(f"No remote backend configured in {resolved_settings.config_path}")
        gateway = build_gateway(remote_config, resolved_settings, token_provider=token_provider)

    store = SQLiteEntityStore(store_connection)
    kv_store = SQLiteKeyValueStore(kv_connection)
    queue = PersistentActionQueue(kv_store)
    cursor_store = KeyValueCursorStore(kv_store)
    engine = ReconciliationEngine(store, gateway, queue, cursor_store, on_state_change=on_state_change)
    scheduler = SyncScheduler(engine, resolved_settings.sync_interval_seconds)
    logger.info("Sync container ready (db=%s, pending_actions=%s)", resolved_settings.db_path.name, len(queue))

    return SyncContainer(
        settings=resolved_settings,
        config_store=config_store,
        store=store,
        queue=queue,
        cursor_store=cursor_store,
        gateway=gateway,
        engine=engine,
        local_changes=LocalChangeService(store, queue),
        scheduler=scheduler,
    )
