# primesync/target/_router.py
# route fetched records to their per-type destination and save them atomically.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from .._log import log
from ._registry import TypeSpec, TypeSpecRegistry
from ._types import LOCAL_FLAGS, SYNC_ID, LocalStore, record_type_of


def _preview(record: Mapping[str, Any], limit: int = 200) -> str:
    try:
        s = json.dumps(record, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        s = repr(record)
    return s if len(s) <= limit else s[:limit] + "..."


def clean_for_save(record: Mapping[str, Any], sync_id: int | str | None) -> dict[str, Any]:
    out = dict(record)
    for flag in LOCAL_FLAGS:
        out[flag] = False
    if sync_id is not None:
        out[SYNC_ID] = sync_id
    return out


class DestinationRouter:
    """Dispatches records by declared type to one or many destinations."""

    def __init__(self, registry: TypeSpecRegistry, *, scope: str = "TARGET"):
        self.registry = registry
        self.scope = scope

    def route(self, record: Mapping[str, Any]) -> TypeSpec | None:
        return self.registry.match(record)

    def save(
        self,
        store: LocalStore,
        records: Iterable[Mapping[str, Any]],
        sync_id: int | str | None = None,
    ) -> dict[str, Any]:
        saved = dropped = 0
        by_destination: dict[str, int] = {}
        with store.transaction():
            for record in records:
                spec = self.route(record)
                if spec is None:
                    dropped += 1
                    # unroutable means a response described a type we were not configured for
                    log(self.scope, "save", "error", "no matching type spec, record dropped",
                        type=record_type_of(record), record=_preview(record))
                    continue
                store.upsert(spec.destination, clean_for_save(record, sync_id), spec.id_field)
                saved += 1
                by_destination[spec.destination] = by_destination.get(spec.destination, 0) + 1
        log(self.scope, "save", "debug", "saved", saved=saved, dropped=dropped, sync_id=sync_id)
        return {"saved": saved, "dropped": dropped, "by_destination": by_destination}
