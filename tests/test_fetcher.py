# PrimeSync test scripts
from __future__ import annotations

import pytest

from conftest import FakeRemote, record
from primesync.target import QueryParseError, SyncStoppedError, TypeSpecRegistry
from primesync.target._chunking import count_slices, slices
from primesync.target._fetcher import BatchFetcher


def _accounts(n: int) -> dict[str, dict]:
    return {f"a{i}": record("Account", f"a{i}", Name=f"Acme {i}") for i in range(n)}


def test_slices_and_counts() -> None:
    assert [list(s) for s in slices([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert count_slices(5, 2) == 3
    assert count_slices(0, 500) == 0
    assert list(slices([], 3)) == []


def test_fetch_issues_one_query_per_slice(registry: TypeSpecRegistry, make_manager) -> None:
    remote = FakeRemote({}, records={"Account": _accounts(5)})
    spec = registry.get("Account")
    ids = [f"a{i}" for i in range(5)]

    out = BatchFetcher(2).fetch(make_manager(remote), spec, ids)

    assert [len(q) for q in remote.queried_ids()] == [2, 2, 1]
    assert sorted(sum(remote.queried_ids(), [])) == sorted(ids)
    assert [r["Id"] for r in out] == ids
    assert remote.queries[0] == "SELECT Id, Name, LastModifiedDate FROM Account WHERE Id IN ('a0', 'a1')"


def test_ids_missing_remotely_are_simply_absent(registry, make_manager) -> None:
    remote = FakeRemote({}, records={"Account": _accounts(2)})
    out = BatchFetcher(10).fetch(make_manager(remote), registry.get("Account"), ["a0", "gone", "a1"])
    assert [r["Id"] for r in out] == ["a0", "a1"]
    assert len(remote.queries) == 1


def test_quotes_in_ids_are_escaped(registry, make_manager) -> None:
    remote = FakeRemote({}, records={"Account": {"o'brien": record("Account", "o'brien")}})
    out = BatchFetcher(10).fetch(make_manager(remote), registry.get("Account"), ["o'brien"])
    assert "IN ('o\\'brien')" in remote.queries[0]
    assert [r["Id"] for r in out] == ["o'brien"]


def test_admission_is_checked_before_every_slice(registry, make_manager) -> None:
    remote = FakeRemote({}, records={"Account": _accounts(6)})
    manager = make_manager(remote)
    remote.on_query = lambda n: manager.stop() if n == 1 else None

    with pytest.raises(SyncStoppedError):
        BatchFetcher(2).fetch(manager, registry.get("Account"), [f"a{i}" for i in range(6)])
    assert len(remote.queries) == 1


def test_stopped_manager_issues_no_query(registry, make_manager) -> None:
    remote = FakeRemote({}, records={"Account": _accounts(1)})
    manager = make_manager(remote)
    manager.stop()
    with pytest.raises(SyncStoppedError):
        BatchFetcher(2).fetch(manager, registry.get("Account"), ["a0"])
    assert remote.queries == []

    manager.restart()
    assert len(BatchFetcher(2).fetch(manager, registry.get("Account"), ["a0"])) == 1


def test_response_without_records_is_a_parse_fault(registry, make_manager) -> None:
    class NoRecords(FakeRemote):
        def query(self, api_version: str, soql: str):
            self.queries.append(soql)
            return {"totalSize": 0, "done": True}

    with pytest.raises(QueryParseError):
        BatchFetcher(2).fetch(make_manager(NoRecords({})), registry.get("Account"), ["a0"])


def test_failing_slice_aborts_the_fetch(registry, make_manager) -> None:
    remote = FakeRemote({}, records={"Account": _accounts(6)})

    def boom(n: int) -> None:
        if n == 2:
            raise ConnectionError("lost")

    remote.on_query = boom
    with pytest.raises(ConnectionError):
        BatchFetcher(2).fetch(make_manager(remote), registry.get("Account"), [f"a{i}" for i in range(6)])
    assert len(remote.queries) == 2
