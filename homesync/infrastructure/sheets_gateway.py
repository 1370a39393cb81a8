from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

import gspread
from gspread.utils import rowcol_to_a1
from google.auth.exceptions import DefaultCredentialsError

from homesync.bootstrap.logging import log_operational_error
from homesync.core.errors import AuthError, ServerError
from homesync.core.observability import get_correlation_id
from homesync.core.time_utils import Clock, now_iso, parse_timestamp, utc_now
from homesync.domain.field_mapping import MAPPINGS, to_remote_record
from homesync.domain.models import EntityType, RemoteRecord, new_local_id
from homesync.domain.ports import RemoteGateway
from homesync.infrastructure.sheets_errors import map_gspread_exception

logger = logging.getLogger(__name__)

T = TypeVar("T")

_META_COLUMNS = ("id", "createdAt", "updatedAt")
_NEW_WORKSHEET_ROWS = 1000


def worksheet_header(entity_type: EntityType) -> list[str]:
    remote_columns = [spec.remote for spec in MAPPINGS[entity_type].fields]
    return [*_META_COLUMNS, *remote_columns]


def to_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return value


def documents_with_row_numbers(values: list[list[Any]]) -> list[tuple[int, dict[str, Any]]]:
    """Pairs each non-blank data row with its 1-based sheet row number."""
    if not values:
        return []
    header = [str(cell).strip() for cell in values[0]]
    result: list[tuple[int, dict[str, Any]]] = []
    for row_number, row in enumerate(values[1:], start=2):
        document = {
            column: row[index]
            for index, column in enumerate(header)
            if column and index < len(row) and str(row[index]).strip() != ""
        }
        if document:
            result.append((row_number, document))
    return result


def rows_to_documents(values: list[list[Any]]) -> list[dict[str, Any]]:
    return [document for _, document in documents_with_row_numbers(values)]


def open_spreadsheet(credentials_path: Path, spreadsheet_id: str) -> gspread.Spreadsheet:
    logger.info("Connecting to Google Sheets with service account %s", credentials_path.name)
    try:
        client = gspread.service_account(filename=str(credentials_path))
        return client.open_by_key(spreadsheet_id)
    except (
        gspread.exceptions.GSpreadException,
        FileNotFoundError,
        json.JSONDecodeError,
        DefaultCredentialsError,
        OSError,
    ) as exc:
        mapped_error = map_gspread_exception(exc)
        if isinstance(mapped_error, AuthError):
            log_operational_error(
                logger,
                "Sync failed: Google Sheets credentials rejected",
                exc=mapped_error,
                extra={
                    "correlation_id": get_correlation_id(),
                    "operation": "sheets_open_spreadsheet",
                    "spreadsheet_id": spreadsheet_id,
                },
            )
        raise mapped_error from exc


class SheetsRemoteGateway(RemoteGateway):
    """Remote gateway backed by one Google Sheets worksheet per entity type.

    Worksheets are named after the remote tables (``properties``,
    ``maintenanceRequests``...). The gateway owns the ``id``, ``createdAt``
    and ``updatedAt`` columns; ``since`` is applied client side on
    ``updatedAt`` because the Sheets API has no server-side filter.
    """

    def __init__(self, open_spreadsheet: Callable[[], Any], *, clock: Clock = utc_now) -> None:
        self._open_spreadsheet = open_spreadsheet
        self._spreadsheet_handle: Any | None = None
        self._clock = clock
        self._worksheet_cache: dict[str, Any] = {}

    @classmethod
    def from_service_account(
        cls, credentials_path: Path, spreadsheet_id: str, *, clock: Clock = utc_now
    ) -> "SheetsRemoteGateway":
        """Connects lazily: nothing touches the network until the first call."""
        return cls(lambda: open_spreadsheet(credentials_path, spreadsheet_id), clock=clock)

    @property
    def _spreadsheet(self) -> Any:
        if self._spreadsheet_handle is None:
            self._spreadsheet_handle = self._open_spreadsheet()
        return self._spreadsheet_handle

    def list(self, entity_type: EntityType, since: str | None = None) -> list[RemoteRecord]:
        worksheet = self._worksheet(entity_type)
        values = self._guard(f"{entity_type.remote_table}.get_all_values", worksheet.get_all_values)
        lower_bound = parse_timestamp(since)
        records: list[RemoteRecord] = []
        for document in rows_to_documents(values):
            if lower_bound is not None:
                updated = parse_timestamp(document.get("updatedAt"))
                if updated is not None and updated < lower_bound:
                    continue
            records.append(to_remote_record(entity_type, document))
        return records

    def create(self, entity_type: EntityType, payload: dict[str, Any]) -> RemoteRecord:
        worksheet = self._worksheet(entity_type)
        timestamp = now_iso(self._clock)
        document = {**payload, "id": new_local_id(), "createdAt": timestamp, "updatedAt": timestamp}
        row = [to_cell(document.get(column)) for column in worksheet_header(entity_type)]
        self._guard(
            f"{entity_type.remote_table}.append_row",
            lambda: worksheet.append_row(row, value_input_option="RAW"),
        )
        return to_remote_record(entity_type, document)

    def update(self, entity_type: EntityType, remote_id: str, payload: dict[str, Any]) -> RemoteRecord:
        return self._rewrite_row(entity_type, remote_id, payload)

    def update_status(self, entity_type: EntityType, remote_id: str, status: str) -> RemoteRecord:
        return self._rewrite_row(entity_type, remote_id, {"status": status})

    def delete(self, entity_type: EntityType, remote_id: str) -> None:
        worksheet = self._worksheet(entity_type)
        values = self._guard(f"{entity_type.remote_table}.get_all_values", worksheet.get_all_values)
        for row_number, document in documents_with_row_numbers(values):
            if str(document.get("id", "")).strip() == remote_id:
                self._guard(f"{entity_type.remote_table}.delete_rows", lambda: worksheet.delete_rows(row_number))
                return
        logger.info(
            "sheets_row_already_absent",
            extra={"extra": {"worksheet": entity_type.remote_table, "remote_id": remote_id}},
        )

    def _rewrite_row(self, entity_type: EntityType, remote_id: str, changes: dict[str, Any]) -> RemoteRecord:
        worksheet = self._worksheet(entity_type)
        values = self._guard(f"{entity_type.remote_table}.get_all_values", worksheet.get_all_values)
        header = worksheet_header(entity_type)
        for row_number, document in documents_with_row_numbers(values):
            if str(document.get("id", "")).strip() != remote_id:
                continue
            merged = {**document, **changes, "id": remote_id, "updatedAt": now_iso(self._clock)}
            row = [to_cell(merged.get(column)) for column in header]
            self._guard(
                f"{entity_type.remote_table}.update_row",
                lambda: worksheet.update(
                    range_name=rowcol_to_a1(row_number, 1),
                    values=[row],
                    value_input_option="RAW",
                ),
            )
            return to_remote_record(entity_type, merged)
        raise ServerError(f"{entity_type.remote_table}: no row with id {remote_id}", 404)

    def _worksheet(self, entity_type: EntityType) -> Any:
        name = entity_type.remote_table
        if name in self._worksheet_cache:
            return self._worksheet_cache[name]
        header = worksheet_header(entity_type)
        try:
            worksheet = self._spreadsheet.worksheet(name)
        except gspread.exceptions.WorksheetNotFound:
            logger.info("Creating worksheet %s", name)
            worksheet = self._guard(
                f"spreadsheet.add_worksheet({name})",
                lambda: self._spreadsheet.add_worksheet(title=name, rows=_NEW_WORKSHEET_ROWS, cols=len(header)),
            )
        except Exception as exc:
            raise map_gspread_exception(exc) from exc
        first_row = self._guard(f"{name}.row_values", lambda: worksheet.row_values(1))
        if not any(str(cell).strip() for cell in first_row):
            self._guard(f"{name}.append_header", lambda: worksheet.append_row(header, value_input_option="RAW"))
        self._worksheet_cache[name] = worksheet
        return worksheet

    @staticmethod
    def _guard(operation_name: str, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except Exception as exc:
            mapped = map_gspread_exception(exc)
            logger.warning(
                "sheets_operation_failed",
                extra={"extra": {"operation": operation_name, "error_type": type(mapped).__name__}},
            )
            raise mapped from exc
