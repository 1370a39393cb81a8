from __future__ import annotations

import json

import gspread
from google.auth.exceptions import DefaultCredentialsError, RefreshError

from homesync.core.errors import AuthError, RemoteError, ServerError, TransportError

_AUTH_TOKENS = ("permission_denied", "unauthenticated", "invalid_grant", "[401]", "[403]")


def extract_response_status_code(ex: Exception) -> int | None:
    response = getattr(ex, "response", None)
    return getattr(response, "status_code", None)


def _extract_api_error_text(ex: gspread.exceptions.APIError) -> str:
    response = getattr(ex, "response", None)
    if response is not None:
        text = getattr(response, "text", "")
        if text:
            return text
    return str(ex)


def classify_api_error(text: str, status_code: int | None) -> RemoteError:
    text_lower = text.strip().lower()
    if status_code in (401, 403) or any(token in text_lower for token in _AUTH_TOKENS):
        return AuthError(f"Google Sheets rejected the service account: {text.strip()[:200]}")
    return ServerError(f"Google Sheets API error: {text.strip()[:200]}", status_code)


def map_gspread_exception(ex: Exception) -> RemoteError:
    """Translates gspread / google-auth / network failures into the sync taxonomy."""
    if isinstance(ex, RemoteError):
        return ex
    if isinstance(ex, gspread.exceptions.APIError):
        return classify_api_error(_extract_api_error_text(ex), extract_response_status_code(ex))
    if isinstance(ex, FileNotFoundError):
        path = getattr(ex, "filename", None)
        return AuthError(f"Service account credentials not found{f' at {path}' if path else ''}.")
    if isinstance(ex, (json.JSONDecodeError, DefaultCredentialsError, RefreshError)):
        return AuthError("Service account credentials are not valid.")
    if isinstance(ex, gspread.exceptions.SpreadsheetNotFound):
        return ServerError("Spreadsheet not found or not shared with the service account.", 404)
    if isinstance(ex, OSError):
        return TransportError(f"Google Sheets unreachable: {ex}")
    return ServerError(str(ex) or type(ex).__name__)
