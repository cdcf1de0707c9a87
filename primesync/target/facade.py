# primesync/target/facade.py
# sync-down target driven by the priming records feed.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from ._types import (
    ConfigError,
    FetchResult,
    LocalStore,
    RunState,
    SyncGate,
    iso_to_ms,
)
from .._log import log
from ._chunking import DEFAULT_COUNT_IDS_PER_QUERY, effective_slice_size
from ._fetcher import BatchFetcher
from ._ghosts import GhostReconciler
from ._logging import Emitter
from ._priming import DEFAULT_MAX_PAGES, PrimingCursor
from ._registry import TypeSpecRegistry
from ._router import DestinationRouter

__all__ = ["PrimingSyncDownTarget", "TARGET_TYPE"]

TARGET_TYPE = "priming"
INFOS = "infos"
COUNT_IDS_PER_QUERY = "count_ids_per_query"
MAX_PRIMING_PAGES = "max_priming_pages"
# older serialized targets used these keys
_LEGACY_COUNT_KEYS = ("coundIdsPerSoql", "countIdsPerSoql")


def _max_pages(value: Any) -> int:
    if value in (None, ""):
        return DEFAULT_MAX_PAGES
    try:
        return max(1, int(value))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{MAX_PRIMING_PAGES} must be a number, got {value!r}") from e


@dataclass
class PrimingSyncDownTarget:
    registry: TypeSpecRegistry
    count_ids_per_query: int = DEFAULT_COUNT_IDS_PER_QUERY
    max_priming_pages: int = DEFAULT_MAX_PAGES
    on_progress: Callable[[str], None] | None = None
    scope: str = "TARGET"

    emitter: Emitter = field(init=False)
    cursor: PrimingCursor = field(init=False)
    fetcher: BatchFetcher = field(init=False)
    router: DestinationRouter = field(init=False)
    reconciler: GhostReconciler = field(init=False)

    def __post_init__(self) -> None:
        if not len(self.registry):
            raise ConfigError("at least one type spec is required")
        self.count_ids_per_query = effective_slice_size(self.count_ids_per_query)
        self.max_priming_pages = _max_pages(self.max_priming_pages)
        self.emitter = Emitter(self.on_progress, self.scope)
        self.cursor = PrimingCursor(self.registry, scope=self.scope)
        self.fetcher = BatchFetcher(self.count_ids_per_query, emitter=self.emitter, scope=self.scope)
        self.router = DestinationRouter(self.registry, scope=self.scope)
        self.reconciler = GhostReconciler(
            self.cursor, max_pages=self.max_priming_pages, emitter=self.emitter, scope=self.scope
        )

    # Serialization
    @classmethod
    def from_config(
        cls,
        raw: Mapping[str, Any],
        *,
        on_progress: Callable[[str], None] | None = None,
    ) -> "PrimingSyncDownTarget":
        if not isinstance(raw, Mapping):
            raise ConfigError("target config must be an object")
        kind = raw.get("type")
        if kind not in (None, TARGET_TYPE):
            raise ConfigError(f"not a {TARGET_TYPE} target: {kind!r}")
        count = raw.get(COUNT_IDS_PER_QUERY)
        for key in _LEGACY_COUNT_KEYS:
            if count is None:
                count = raw.get(key)
        return cls(
            registry=TypeSpecRegistry.from_config(raw.get(INFOS)),
            count_ids_per_query=effective_slice_size(count),
            max_priming_pages=_max_pages(raw.get(MAX_PRIMING_PAGES)),
            on_progress=on_progress,
        )

    def as_config(self) -> dict[str, Any]:
        return {
            "type": TARGET_TYPE,
            INFOS: self.registry.as_config(),
            COUNT_IDS_PER_QUERY: self.count_ids_per_query,
            MAX_PRIMING_PAGES: self.max_priming_pages,
        }

    def set_count_ids_per_query(self, count: int) -> int:
        self.count_ids_per_query = effective_slice_size(count)
        self.fetcher.slice_size = self.count_ids_per_query
        return self.count_ids_per_query

    # Incremental fetch
    def start_fetch(self, manager: SyncGate, watermark: int = 0) -> FetchResult:
        state = RunState(watermark=int(watermark or 0))
        self.emitter.emit("fetch:start", watermark=state.watermark)
        return self._fetch_page(manager, state)

    def continue_fetch(self, manager: SyncGate, state: RunState) -> FetchResult | None:
        if state.exhausted:
            return None
        return self._fetch_page(manager, state)

    def _fetch_page(self, manager: SyncGate, state: RunState) -> FetchResult:
        ids_by_type, token = self.cursor.advance(manager, state.relay_token, state.watermark)

        records: list[dict[str, Any]] = []
        counts: dict[str, int] = {}
        for spec in self.registry:
            ids = ids_by_type.get(spec.record_type) or []
            if not ids:
                continue
            got = self.fetcher.fetch(manager, spec, ids, spec.fetch_fields())
            counts[spec.record_type] = len(got)
            records.extend(got)

        # Estimate only: one feed page, and the feed's own total ignores the watermark.
        total = state.total_estimate if state.total_estimate >= 0 else len(records)
        new_state = replace(state, relay_token=token, total_estimate=total, pages=state.pages + 1)

        self.emitter.emit("fetch:done", page=new_state.pages, records=len(records),
                          total_estimate=total, more=not new_state.exhausted)
        log(self.scope, "fetch", "info", "page fetched",
            page=new_state.pages, records=len(records), more=not new_state.exhausted)
        return FetchResult(records=records, state=new_state, counts=counts)

    # Save / cleanup
    def save_records(
        self,
        store: LocalStore,
        records: Iterable[Mapping[str, Any]],
        sync_id: int | str | None = None,
    ) -> dict[str, Any]:
        return self.router.save(store, records, sync_id)

    def clean_ghosts(self, manager: SyncGate, sync_id: int | str | None = None) -> int:
        counts = self.reconciler.reconcile(manager, sync_id)
        return sum(counts.values())

    def get_latest_modification_timestamp(self, records: Iterable[Mapping[str, Any]]) -> int:
        latest = -1
        for record in records:
            spec = self.router.route(record)
            if spec is None:
                continue
            value = record.get(spec.mod_time_field)
            if value in (None, ""):
                continue
            try:
                latest = max(latest, iso_to_ms(value))
            except (TypeError, ValueError):
                log(self.scope, "fetch", "warn", "unparseable modification time",
                    type=spec.record_type, field=spec.mod_time_field, value=value)
        return latest
