from __future__ import annotations

from datetime import datetime, timezone

import pytest

from homesync.core.time_utils import latest_iso, parse_iso, parse_timestamp, to_epoch_millis, to_iso


def test_to_iso_uses_z_suffix_and_assumes_utc_for_naive_values() -> None:
    assert to_iso(datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)) == "2025-03-01T08:30:00Z"
    assert to_iso(datetime(2025, 3, 1, 8, 30)) == "2025-03-01T08:30:00Z"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2025-03-01T08:30:00Z", datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)),
        (1_740_817_800, datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)),
        (1_740_817_800_000, datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)),
        ("1740817800000", datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp_accepts_iso_and_epoch_values(raw, expected) -> None:
    assert parse_timestamp(raw) == expected


@pytest.mark.parametrize("raw", [None, True, "", "not a date"])
def test_parse_timestamp_returns_none_for_unusable_values(raw) -> None:
    assert parse_timestamp(raw) is None


def test_parse_iso_rejects_garbage() -> None:
    assert parse_iso("2025-13-45") is None
    assert parse_iso("   ") is None


def test_to_epoch_millis_round_trips_whole_seconds() -> None:
    assert to_epoch_millis("2025-03-01T08:30:00Z") == 1_740_817_800_000
    assert to_epoch_millis(None) is None


def test_to_epoch_millis_accepts_epoch_numbers_and_datetimes() -> None:
    assert to_epoch_millis(1_740_817_800_000) == 1_740_817_800_000
    assert to_epoch_millis(1_740_817_800) == 1_740_817_800_000
    assert to_epoch_millis(datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)) == 1_740_817_800_000
    assert to_epoch_millis("next tuesday") is None


def test_latest_iso_never_moves_backwards() -> None:
    assert latest_iso(None, "2025-01-01T00:00:00Z") == "2025-01-01T00:00:00Z"
    assert latest_iso("2025-02-01T00:00:00Z", "2025-01-01T00:00:00Z") == "2025-02-01T00:00:00Z"
    assert latest_iso("2025-01-01T00:00:00Z", "2025-02-01T00:00:00Z") == "2025-02-01T00:00:00Z"
