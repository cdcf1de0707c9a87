# primesync/target/_priming.py
# priming-records feed: page cursor and per-type identifier collection.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .._log import log
from ._registry import TypeSpecRegistry
from ._types import FeedNotExhaustedError, PrimingParseError, SyncGate, iso_to_ms, ms_to_iso

DEFAULT_MAX_PAGES = 10000


# Wire shape

class PrimingRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    modstamp: str | int = Field(alias="systemModstamp")


class PrimingPage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # record type -> priming rule id -> entries
    records: dict[str, dict[str, list[PrimingRecord]]] = Field(alias="primingRecords")
    relay_token: str | None = Field(default=None, alias="relayToken")
    rule_errors: list[dict[str, Any]] = Field(default_factory=list, alias="ruleErrors")
    stats: dict[str, Any] = Field(default_factory=dict)


def parse_page(body: Any) -> PrimingPage:
    if not isinstance(body, Mapping):
        raise PrimingParseError(f"priming response is not an object: {type(body).__name__}")
    try:
        return PrimingPage.model_validate(dict(body))
    except ValidationError as e:
        raise PrimingParseError(f"could not parse response from priming records API: {e}") from e


# Collection

class IdentifierCollector:
    """Accumulates ids per configured type; every configured type always has a list."""

    def __init__(self, registry: TypeSpecRegistry):
        self.buckets: dict[str, list[str]] = {t: [] for t in registry.types()}

    def merge(self, ids_by_type: Mapping[str, list[str]]) -> None:
        for record_type, ids in ids_by_type.items():
            bucket = self.buckets.get(record_type)
            if bucket is not None:
                bucket.extend(ids)

    def total(self) -> int:
        return sum(len(v) for v in self.buckets.values())


class PrimingCursor:
    def __init__(self, registry: TypeSpecRegistry, *, scope: str = "TARGET"):
        self.registry = registry
        self.scope = scope

    def advance(
        self,
        manager: SyncGate,
        relay_token: str | None,
        watermark: int = 0,
    ) -> tuple[dict[str, list[str]], str | None]:
        """Fetch one page; return ids newer than `watermark` per type and the next token."""
        body = manager.client.get_priming_records(manager.api_version, relay_token)
        page = parse_page(body)

        if page.rule_errors:
            log(self.scope, "priming", "warn", "priming rules reported errors",
                count=len(page.rule_errors), first=page.rule_errors[0])

        unknown = [t for t in page.records if t not in self.registry]
        if unknown:
            log(self.scope, "priming", "debug", "ignoring unconfigured record types", types=",".join(unknown))

        collector = IdentifierCollector(self.registry)
        seen = skipped = 0
        for spec in self.registry:
            ids: list[str] = []
            for entries in (page.records.get(spec.record_type) or {}).values():
                for entry in entries:
                    seen += 1
                    try:
                        ts = iso_to_ms(entry.modstamp)
                    except (TypeError, ValueError) as e:
                        raise PrimingParseError(
                            f"bad systemModstamp {entry.modstamp!r} for {spec.record_type} {entry.id}"
                        ) from e
                    if watermark > 0 and ts <= watermark:
                        skipped += 1
                        continue
                    ids.append(entry.id)
            collector.merge({spec.record_type: ids})

        next_token = page.relay_token or None
        log(self.scope, "priming", "debug", "page",
            seen=seen, kept=seen - skipped, since=ms_to_iso(watermark) if watermark > 0 else None,
            more=next_token is not None)
        return collector.buckets, next_token

    def scan(self, manager: SyncGate, *, max_pages: int = DEFAULT_MAX_PAGES) -> dict[str, list[str]]:
        """Walk the feed to exhaustion with no watermark; complete id set per type."""
        collector = IdentifierCollector(self.registry)
        token: str | None = None
        seen_tokens: set[str] = set()
        pages = 0
        while True:
            ids_by_type, token = self.advance(manager, token, 0)
            collector.merge(ids_by_type)
            pages += 1
            if token is None:
                break
            if token in seen_tokens:
                raise FeedNotExhaustedError(f"priming feed repeated relay token after {pages} page(s)")
            if pages >= max_pages:
                raise FeedNotExhaustedError(f"priming feed not exhausted after {pages} page(s)")
            seen_tokens.add(token)
        log(self.scope, "priming", "info", "full scan done", pages=pages, ids=collector.total())
        return collector.buckets
