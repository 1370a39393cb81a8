from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from homesync.domain.models import LocalRecord

PullCommand = Literal["SKIP", "CREATE_LOCAL", "UPDATE_LOCAL"]


@dataclass(frozen=True)
class PullAction:
    command: PullCommand
    reason_code: str
    payload: dict[str, Any] = field(default_factory=dict)


def plan_pull_record(
    remote_id: str | None,
    mapped_fields: dict[str, Any],
    existing: LocalRecord | None,
) -> PullAction:
    """Decides what one remote record does to the local store.

    ``existing`` is the local record bound to ``remote_id``, if any. Records
    with no remote id yet are never looked up here, so a pull cannot blank a
    write the remote has not acknowledged.
    """
    if not remote_id:
        return PullAction("SKIP", "missing_remote_id")
    if existing is None:
        return PullAction("CREATE_LOCAL", "unknown_remote_id", {"fields": dict(mapped_fields)})
    if existing.fields == mapped_fields:
        return PullAction("SKIP", "unchanged")
    changed = sorted(
        key
        for key in set(existing.fields) | set(mapped_fields)
        if existing.fields.get(key) != mapped_fields.get(key)
    )
    return PullAction("UPDATE_LOCAL", "remote_wins", {"fields": dict(mapped_fields), "changed": changed})
