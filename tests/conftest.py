# PrimeSync test scripts
from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from primesync.manager import SyncManager  # noqa: E402
from primesync.store import SoupStore  # noqa: E402
from primesync.target import PrimingSyncDownTarget, TypeSpecRegistry  # noqa: E402

_SOQL = re.compile(r"^SELECT (?P<fields>.+) FROM (?P<type>\w+) WHERE (?P<idf>\w+) IN \((?P<ids>.*)\)$")
_QUOTED = re.compile(r"'((?:[^'\\]|\\.)*)'")


def record(record_type: str, rec_id: str, ts: str = "2024-01-01T00:00:00.000Z", **fields: Any) -> dict[str, Any]:
    return {"attributes": {"type": record_type}, "Id": rec_id, "LastModifiedDate": ts, **fields}


def page(entries: Mapping[str, list[tuple[str, Any]]], token: str | None = None) -> dict[str, Any]:
    return {
        "primingRecords": {
            t: {"rule-1": [{"id": i, "systemModstamp": ts} for i, ts in rows]}
            for t, rows in entries.items()
        },
        "relayToken": token,
        "ruleErrors": [],
        "stats": {"recordCountTotal": 1000},
    }


@dataclass
class FakeRemote:
    pages: dict[str | None, Any]
    records: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    priming_calls: list[str | None] = field(default_factory=list)
    queries: list[str] = field(default_factory=list)
    on_query: Callable[[int], None] | None = None

    def get_priming_records(self, api_version: str, relay_token: str | None = None) -> Any:
        self.priming_calls.append(relay_token)
        body = self.pages[relay_token]
        if isinstance(body, Exception):
            raise body
        return body

    def query(self, api_version: str, soql: str) -> Mapping[str, Any]:
        self.queries.append(soql)
        if self.on_query:
            self.on_query(len(self.queries))
        m = _SOQL.match(soql)
        assert m, soql
        ids = [s.replace("\\'", "'") for s in _QUOTED.findall(m.group("ids"))]
        table = self.records.get(m.group("type"), {})
        rows = [dict(table[i]) for i in ids if i in table]
        return {"totalSize": len(rows), "done": True, "records": rows}

    def queried_ids(self) -> list[list[str]]:
        out = []
        for q in self.queries:
            m = _SOQL.match(q)
            assert m
            out.append(_QUOTED.findall(m.group("ids")))
        return out


INFOS = [
    {"record_type": "Account", "destination": "accounts", "fields": ["Id", "Name"]},
    {"record_type": "Contact", "destination": "contacts", "fields": ["Name", "Email"]},
]


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("PS_CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture()
def registry() -> TypeSpecRegistry:
    return TypeSpecRegistry.from_config(INFOS)


@pytest.fixture()
def target(registry: TypeSpecRegistry) -> PrimingSyncDownTarget:
    return PrimingSyncDownTarget(registry, count_ids_per_query=2)


@pytest.fixture()
def store() -> SoupStore:
    s = SoupStore()
    for name in ("accounts", "contacts"):
        s.register_soup(name, ["Id", "__local__", "__sync_id__"])
    return s


@pytest.fixture()
def make_manager(store: SoupStore) -> Callable[[FakeRemote], SyncManager]:
    def _make(remote: FakeRemote) -> SyncManager:
        return SyncManager(remote, store)

    return _make
