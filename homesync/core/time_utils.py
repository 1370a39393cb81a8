from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

Clock = Callable[[], datetime]

# Remote numbers above this are epoch milliseconds, below it epoch seconds.
_EPOCH_MILLIS_THRESHOLD = 10_000_000_000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def now_iso(clock: Clock = utc_now) -> str:
    return to_iso(clock())


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(value: Any) -> datetime | None:
    """Accepts ISO strings and epoch numbers (seconds or milliseconds)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.lstrip("-").replace(".", "", 1).isdigit():
        return parse_timestamp(float(text))
    return parse_iso(text)


def to_epoch_millis(value: Any) -> int | None:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return int(parsed.timestamp() * 1000)


def latest_iso(previous: str | None, candidate: str) -> str:
    parsed_previous = parse_iso(previous)
    parsed_candidate = parse_iso(candidate)
    if parsed_previous is None or parsed_candidate is None:
        return candidate
    return previous if parsed_previous > parsed_candidate else candidate
