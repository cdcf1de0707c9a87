# primesync/store.py
# JSON-backed soup store with transactions.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
import json
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ._log import log
from .target._types import LOCAL, SYNC_ID

SOUP_ENTRY_ID = "_soupEntryId"


def _lookup_key(value: Any) -> str | None:
    return None if value in (None, "") else str(value)


class StoreError(RuntimeError): ...


class SoupStore:
    """Named soups of JSON records.

    Writers serialise on one re-entrant lock. Work inside `transaction()` is
    committed to disk once at the outermost exit, or rolled back on error.
    Without a path the store lives in memory only.
    """

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot: dict[str, Any] | None = None
        self._data: dict[str, Any] = self._read()
        # (soup, field) -> field value -> entry keys; built on first use, dropped on rollback
        self._lookup: dict[tuple[str, str], dict[str, list[str]]] = {}

    # Files
    def _read(self) -> dict[str, Any]:
        empty: dict[str, Any] = {"soups": {}}
        if not self.path or not self.path.exists():
            return empty
        try:
            data = json.loads(self.path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"cannot read store {self.path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("soups"), dict):
            raise StoreError(f"store {self.path} has an unexpected layout")
        return data

    def _write_atomic(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), "utf-8")
        tmp.replace(self.path)

    # Transactions
    @contextmanager
    def transaction(self) -> Iterator["SoupStore"]:
        with self._lock:
            if self._depth == 0:
                self._snapshot = copy.deepcopy(self._data)
            self._depth += 1
            try:
                yield self
            except BaseException:
                if self._depth == 1 and self._snapshot is not None:
                    self._data = self._snapshot
                    self._lookup = {}
                    log("STORE", "tx", "debug", "rolled back")
                raise
            else:
                if self._depth == 1:
                    self._write_atomic()
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._snapshot = None

    # Soups
    def register_soup(self, name: str, indexes: Iterable[str] = ()) -> None:
        with self.transaction():
            soup = self._data["soups"].setdefault(name, {"indexes": [], "seq": 0, "entries": {}})
            soup["indexes"] = list(dict.fromkeys([*soup.get("indexes", []), *indexes]))

    def has_index(self, soup: str, path: str) -> bool:
        node = self._data["soups"].get(soup)
        return bool(node) and path in (node.get("indexes") or [])

    def _soup(self, name: str) -> dict[str, Any]:
        node = self._data["soups"].get(name)
        if node is None:
            raise StoreError(f"unknown soup: {name}")
        return node

    def _entries(self, name: str) -> dict[str, dict[str, Any]]:
        return self._soup(name)["entries"]

    # Lookup
    def _index(self, soup: str, path: str) -> dict[str, list[str]]:
        idx = self._lookup.get((soup, path))
        if idx is None:
            idx = {}
            for key, rec in self._entries(soup).items():
                v = _lookup_key(rec.get(path))
                if v is not None:
                    idx.setdefault(v, []).append(key)
            self._lookup[(soup, path)] = idx
        return idx

    def _reindex(
        self,
        soup: str,
        key: str,
        old: Mapping[str, Any] | None,
        new: Mapping[str, Any] | None,
    ) -> None:
        for (name, path), idx in self._lookup.items():
            if name != soup:
                continue
            before = _lookup_key(old.get(path)) if old is not None else None
            after = _lookup_key(new.get(path)) if new is not None else None
            if old is not None and new is not None and before == after:
                continue
            if before is not None and key in idx.get(before, ()):
                idx[before].remove(key)
                if not idx[before]:
                    del idx[before]
            if after is not None:
                idx.setdefault(after, []).append(key)

    # Records
    def upsert(self, soup: str, record: Mapping[str, Any], external_id_path: str) -> dict[str, Any]:
        """Insert, or merge over the record with the same external id (fields not in `record` survive)."""
        ext = _lookup_key(record.get(external_id_path))
        if ext is None:
            raise StoreError(f"{soup}: record has no {external_id_path}")
        with self.transaction():
            node = self._soup(soup)
            entries = node["entries"]
            keys = self._index(soup, external_id_path).get(ext)
            if keys:
                key = keys[0]
                cur = entries[key]
                merged = {**cur, **record, SOUP_ENTRY_ID: cur[SOUP_ENTRY_ID]}
                entries[key] = merged
                self._reindex(soup, key, cur, merged)
                return dict(merged)
            node["seq"] = int(node.get("seq") or 0) + 1
            key = str(node["seq"])
            created = {**record, SOUP_ENTRY_ID: node["seq"]}
            entries[key] = created
            self._reindex(soup, key, None, created)
            return dict(created)

    def delete_by_ids(self, soup: str, id_field: str, ids: Iterable[Any]) -> int:
        """Delete every record whose `id_field` matches one of `ids` (compared as strings)."""
        wanted = {v for v in map(_lookup_key, ids) if v is not None}
        if not wanted:
            return 0
        with self.transaction():
            entries = self._entries(soup)
            idx = self._index(soup, id_field)
            doomed = [k for v in sorted(wanted) for k in idx.get(v, ())]
            for k in doomed:
                self._reindex(soup, k, entries.pop(k), None)
        return len(doomed)

    def non_dirty_ids(self, soup: str, id_field: str, sync_id: int | str | None = None) -> list[str]:
        """Ids of records not awaiting upload, optionally limited to one sync run; sorted."""
        with self._lock:
            out = set()
            for rec in self._entries(soup).values():
                if rec.get(LOCAL) is True or rec.get(LOCAL) == "true":
                    continue
                if sync_id is not None and rec.get(SYNC_ID) != sync_id:
                    continue
                v = _lookup_key(rec.get(id_field))
                if v is not None:
                    out.add(v)
            return sorted(out)

    def retrieve(self, soup: str, id_field: str, ext_id: Any) -> dict[str, Any] | None:
        v = _lookup_key(ext_id)
        with self._lock:
            keys = self._index(soup, id_field).get(v) if v is not None else None
            return dict(self._entries(soup)[keys[0]]) if keys else None

    def count(self, soup: str) -> int:
        with self._lock:
            return len(self._entries(soup))
