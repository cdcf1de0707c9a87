# primesync/target/_fetcher.py
# fetch full records for a list of ids in bounded query slices.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .._log import log
from ..transport.soql import SOQLBuilder, in_clause
from ._chunking import count_slices, effective_slice_size, slices
from ._logging import Emitter
from ._registry import TypeSpec
from ._types import RECORDS, QueryParseError, SyncGate


class BatchFetcher:
    def __init__(self, slice_size: int, *, emitter: Emitter | None = None, scope: str = "TARGET"):
        self.slice_size = effective_slice_size(slice_size)
        self.emitter = emitter or Emitter(None, scope)
        self.scope = scope

    def build_query(self, spec: TypeSpec, ids: Sequence[str], fields: Sequence[str]) -> str:
        return (
            SOQLBuilder.with_fields(fields)
            .from_(spec.record_type)
            .where(in_clause(spec.id_field, ids))
            .build()
        )

    def fetch_slice(
        self,
        manager: SyncGate,
        spec: TypeSpec,
        ids: Sequence[str],
        fields: Sequence[str],
    ) -> list[dict[str, Any]]:
        manager.check_accepting_syncs()
        soql = self.build_query(spec, ids, fields)
        body = manager.client.query(manager.api_version, soql)
        records = body.get(RECORDS) if isinstance(body, Mapping) else None
        if not isinstance(records, list):
            raise QueryParseError(f"query response for {spec.record_type} has no records array")
        return [dict(r) for r in records if isinstance(r, Mapping)]

    def fetch(
        self,
        manager: SyncGate,
        spec: TypeSpec,
        ids: Sequence[str],
        fields: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Slices run sequentially in index order; any failure aborts the whole fetch.

        Repeated ids (the feed may list one id under several rules) are fetched once.
        """
        ids = list(dict.fromkeys(ids))
        fieldlist = list(fields) if fields is not None else spec.fetch_fields()
        total = count_slices(len(ids), self.slice_size)
        out: list[dict[str, Any]] = []
        for n, chunk in enumerate(slices(ids, self.slice_size), start=1):
            got = self.fetch_slice(manager, spec, chunk, fieldlist)
            out.extend(got)
            self.emitter.emit("fetch:slice", type=spec.record_type, slice=n, slices=total,
                              requested=len(chunk), received=len(got))
        log(self.scope, "fetch", "debug", "fetched",
            type=spec.record_type, ids=len(ids), records=len(out), slices=total)
        return out
