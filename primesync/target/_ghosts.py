# primesync/target/_ghosts.py
# delete local records that no longer exist remotely.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Iterable

from .._log import log
from ._logging import Emitter
from ._priming import DEFAULT_MAX_PAGES, PrimingCursor
from ._registry import TypeSpec
from ._types import SYNC_ID, GhostCleanupError, LocalStore, SyncGate


def ghost_ids(local_ids: Iterable[str], remote_ids: Iterable[str]) -> list[str]:
    return sorted(set(local_ids) - set(remote_ids))


class GhostReconciler:
    def __init__(
        self,
        cursor: PrimingCursor,
        *,
        max_pages: int = DEFAULT_MAX_PAGES,
        emitter: Emitter | None = None,
        scope: str = "TARGET",
    ):
        self.cursor = cursor
        self.max_pages = max_pages
        self.emitter = emitter or Emitter(None, scope)
        self.scope = scope

    def local_ids(self, store: LocalStore, spec: TypeSpec, sync_id: int | str | None) -> list[str]:
        # only scope to the run when the destination can answer that cheaply
        scoped = sync_id if (sync_id is not None and store.has_index(spec.destination, SYNC_ID)) else None
        return store.non_dirty_ids(spec.destination, spec.id_field, scoped)

    def reconcile_type(
        self,
        store: LocalStore,
        spec: TypeSpec,
        remote_ids: Iterable[str],
        sync_id: int | str | None,
    ) -> int:
        doomed = ghost_ids(self.local_ids(store, spec, sync_id), remote_ids)
        if not doomed:
            return 0
        with store.transaction():
            deleted = store.delete_by_ids(spec.destination, spec.id_field, doomed)
        if deleted != len(doomed):
            log(self.scope, "ghosts", "warn", "fewer ghosts deleted than found",
                type=spec.record_type, found=len(doomed), deleted=deleted)
        return deleted

    def reconcile(self, manager: SyncGate, sync_id: int | str | None = None) -> dict[str, int]:
        """Ghost count per type; raises GhostCleanupError after all types were tried if any failed."""
        remote = self.cursor.scan(manager, max_pages=self.max_pages)

        counts: dict[str, int] = {}
        failures: dict[str, BaseException] = {}
        for spec in self.cursor.registry:
            try:
                n = self.reconcile_type(manager.store, spec, remote.get(spec.record_type, []), sync_id)
            except Exception as e:
                failures[spec.record_type] = e
                log(self.scope, "ghosts", "error", "ghost cleanup failed",
                    type=spec.record_type, destination=spec.destination, error=str(e))
                continue
            counts[spec.record_type] = n
            self.emitter.emit("ghosts:type", type=spec.record_type, destination=spec.destination, deleted=n)
            if n:
                log(self.scope, "ghosts", "info", "ghosts deleted",
                    type=spec.record_type, destination=spec.destination, count=n)

        if failures:
            first = next(iter(failures.values()))
            raise GhostCleanupError(counts, failures) from first
        return counts
