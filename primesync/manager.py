# primesync/manager.py
# PrimeSync - sync manager: admission gate, collaborators and a sync-down driver
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Mapping

from ._log import bind, log
from .config_base import store_path
from .store import SoupStore
from .target import FeedNotExhaustedError, GhostCleanupError, PrimingSyncDownTarget, SyncStoppedError
from .target._types import LOCAL, SYNC_ID, RemoteClient
from .transport import RestClient, RestConfig
from .transport.rest import DEFAULT_API_VERSION


class ManagerState(Enum):
    ACCEPTING_SYNCS = auto()
    STOP_REQUESTED = auto()


class SyncStatus(Enum):
    SUCCESS = auto()
    WARNING = auto()
    FAILED = auto()
    CANCELLED = auto()


@dataclass
class SyncResult:
    status: SyncStatus
    started_at: float
    finished_at: float
    duration_ms: int
    items_total: int = 0
    items_added: int = 0
    items_removed: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


class SyncManager:
    def __init__(self, client: RemoteClient, store: SoupStore, *, api_version: str = DEFAULT_API_VERSION):
        self.client = client
        self.store = store
        self.api_version = api_version
        self._state = ManagerState.ACCEPTING_SYNCS
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "SyncManager":
        remote = dict(cfg.get("remote") or {})
        client = RestClient(RestConfig.from_config(cfg))
        store = SoupStore(store_path(dict(cfg)))
        return cls(client, store, api_version=str(remote.get("api_version") or DEFAULT_API_VERSION))

    # Admission
    @property
    def is_stopping(self) -> bool:
        return self._state is ManagerState.STOP_REQUESTED

    def stop(self) -> None:
        with self._lock:
            self._state = ManagerState.STOP_REQUESTED
        log("MANAGER", "state", "info", "stop requested")

    def restart(self) -> None:
        with self._lock:
            self._state = ManagerState.ACCEPTING_SYNCS

    def check_accepting_syncs(self) -> None:
        if self._state is not ManagerState.ACCEPTING_SYNCS:
            raise SyncStoppedError("sync manager is not accepting syncs")

    # Store setup
    def ensure_soups(self, target: PrimingSyncDownTarget) -> None:
        for spec in target.registry:
            self.store.register_soup(spec.destination, [spec.id_field, spec.mod_time_field, LOCAL, SYNC_ID])

    # Driver
    def sync_down(
        self,
        target: PrimingSyncDownTarget,
        sync_id: int | str,
        *,
        watermark: int = 0,
        clean_ghosts: bool = False,
    ) -> SyncResult:
        """Fetch and save every page newer than `watermark`, then optionally delete ghosts."""
        started = time.time()
        meta: dict[str, Any] = {"sync_id": sync_id, "watermark": watermark, "pages": 0,
                                "total_estimate": -1, "max_timestamp": watermark, "dropped": 0}
        saved = removed = 0
        errors: list[str] = []
        status = SyncStatus.SUCCESS

        with bind(sync_id=sync_id):
            try:
                self.check_accepting_syncs()
                res = target.start_fetch(self, watermark)
                seen_tokens: set[str] = set()
                while res is not None:
                    meta["pages"] = res.state.pages
                    meta["total_estimate"] = res.state.total_estimate
                    if res.records:
                        out = target.save_records(self.store, res.records, sync_id)
                        saved += int(out["saved"])
                        meta["dropped"] += int(out["dropped"])
                        meta["max_timestamp"] = max(
                            meta["max_timestamp"], target.get_latest_modification_timestamp(res.records)
                        )
                    if not res.state.exhausted:
                        token = res.state.relay_token
                        if token in seen_tokens or res.state.pages >= target.max_priming_pages:
                            raise FeedNotExhaustedError(f"priming feed not exhausted after {res.state.pages} page(s)")
                        seen_tokens.add(token)
                        self.check_accepting_syncs()
                    res = target.continue_fetch(self, res.state)

                if clean_ghosts:
                    removed = target.clean_ghosts(self, sync_id)
            except SyncStoppedError as e:
                status = SyncStatus.CANCELLED
                errors.append(str(e))
            except GhostCleanupError as e:
                status = SyncStatus.FAILED
                removed = e.deleted
                meta["ghost_types_reconciled"] = sorted(e.counts)
                meta["ghost_types_failed"] = sorted(e.failures)
                errors.append(str(e))
            except Exception as e:
                status = SyncStatus.FAILED
                errors.append(f"{type(e).__name__}: {e}")

        if status is SyncStatus.SUCCESS and meta["dropped"]:
            status = SyncStatus.WARNING

        finished = time.time()
        log("MANAGER", "sync_down", "error" if errors else "info", "sync down finished",
            status=status.name, saved=saved, ghosts=removed, pages=meta["pages"], sync_id=sync_id)
        return SyncResult(
            status=status,
            started_at=started,
            finished_at=finished,
            duration_ms=int((finished - started) * 1000),
            items_total=saved + int(meta["dropped"]),
            items_added=saved,
            items_removed=removed,
            warnings=[f"{meta['dropped']} record(s) had no matching type spec"] if meta["dropped"] else [],
            errors=errors,
            metadata=meta,
        )
