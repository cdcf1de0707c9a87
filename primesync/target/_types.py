# primesync/target/_types.py
# types, protocols and errors for sync-down targets.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

# Local bookkeeping fields written into every saved record
LOCAL = "__local__"
LOCALLY_CREATED = "__locally_created__"
LOCALLY_UPDATED = "__locally_updated__"
LOCALLY_DELETED = "__locally_deleted__"
SYNC_ID = "__sync_id__"
LOCAL_FLAGS = (LOCAL, LOCALLY_CREATED, LOCALLY_UPDATED, LOCALLY_DELETED)

ATTRIBUTES = "attributes"
TYPE = "type"
RECORDS = "records"


# Collaborators

class RemoteClient(Protocol):
    def get_priming_records(self, api_version: str, relay_token: str | None = None) -> Mapping[str, Any]: ...
    def query(self, api_version: str, soql: str) -> Mapping[str, Any]: ...


class LocalStore(Protocol):
    def transaction(self) -> Any: ...
    def upsert(self, soup: str, record: Mapping[str, Any], external_id_path: str) -> dict[str, Any]: ...
    def delete_by_ids(self, soup: str, id_field: str, ids: Iterable[str]) -> int: ...
    def non_dirty_ids(self, soup: str, id_field: str, sync_id: int | str | None = None) -> list[str]: ...
    def has_index(self, soup: str, path: str) -> bool: ...


class SyncGate(Protocol):
    api_version: str
    client: RemoteClient
    store: LocalStore

    def check_accepting_syncs(self) -> None: ...


# Run state

@dataclass(frozen=True)
class RunState:
    watermark: int = 0
    relay_token: str | None = None
    total_estimate: int = -1
    pages: int = 0

    @property
    def exhausted(self) -> bool:
        return self.relay_token is None


@dataclass
class FetchResult:
    records: list[dict[str, Any]]
    state: RunState
    counts: dict[str, int] = field(default_factory=dict)


# Errors

class SyncTargetError(RuntimeError): ...
class ConfigError(SyncTargetError): ...
class SyncParseError(SyncTargetError): ...
class PrimingParseError(SyncParseError): ...
class QueryParseError(SyncParseError): ...
class SyncStoppedError(SyncTargetError): ...
class FeedNotExhaustedError(SyncTargetError): ...


class GhostCleanupError(SyncTargetError):
    """Raised after every type was attempted when at least one type failed."""

    def __init__(self, counts: Mapping[str, int], failures: Mapping[str, BaseException]):
        self.counts = dict(counts)
        self.failures = dict(failures)
        failed = ", ".join(sorted(self.failures))
        super().__init__(
            f"ghost cleanup failed for {failed}; "
            f"{len(self.counts)} type(s) reconciled, {sum(self.counts.values())} ghost(s) deleted"
        )

    @property
    def deleted(self) -> int:
        return sum(self.counts.values())


# Time helpers

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_BASIC_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def iso_to_ms(value: Any) -> int:
    """Epoch milliseconds for an ISO-8601 string (or a number already in ms)."""
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    s = str(value or "").strip()
    if not s:
        raise ValueError("empty timestamp")
    s = s.replace("Z", "+00:00")
    s = _BASIC_OFFSET.sub(r"\1:\2", s)
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def ms_to_iso(ms: int) -> str:
    dt = _EPOCH + timedelta(milliseconds=int(ms or 0))
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def record_type_of(record: Mapping[str, Any]) -> str | None:
    attrs = record.get(ATTRIBUTES) if isinstance(record, Mapping) else None
    if not isinstance(attrs, Mapping):
        return None
    t = attrs.get(TYPE)
    return str(t) if t else None
