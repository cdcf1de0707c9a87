# PrimeSync test scripts
from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from primesync.transport import RestClient, RestConfig, ResponseParseError, SOQLBuilder
from primesync.transport._mod_common import label_rest, parse_rate_limit
from primesync.transport.soql import in_clause, quote

BASE = "https://example.my.salesforce.com"


def _resp(status: int, body: Any = None, headers: dict[str, str] | None = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r.encoding = "utf-8"
    raw = body if isinstance(body, str) else json.dumps(body if body is not None else {})
    r._content = raw.encode("utf-8")
    r.headers.update(headers or {})
    r.url = BASE
    return r


class QueueSession(requests.Session):
    def __init__(self, *responses: requests.Response):
        super().__init__()
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def request(self, method, url, **kwargs):  # type: ignore[override]
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)


def _client(*responses: requests.Response, **cfg: Any) -> tuple[RestClient, QueueSession]:
    sess = QueueSession(*responses)
    conf = RestConfig(instance_url=BASE + "/", access_token="tok", **cfg)
    return RestClient(RestConfig.from_config({"remote": conf.__dict__}), session=sess), sess


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("primesync.transport._mod_common.time.sleep", lambda s: None)


def test_priming_request_shape() -> None:
    client, sess = _client(_resp(200, {"primingRecords": {}}), _resp(200, {"primingRecords": {}}))
    client.get_priming_records("v55.0")
    client.get_priming_records("v55.0", "relay-1")

    assert sess.calls[0]["url"] == f"{BASE}/services/data/v55.0/connect/briefcase/priming-records"
    assert sess.calls[0]["params"] == {}
    assert sess.calls[1]["params"] == {"relayToken": "relay-1"}
    assert sess.headers["Authorization"] == "Bearer tok"
    assert sess.headers["Accept"] == "application/json"


def test_query_passes_soql_as_q() -> None:
    client, sess = _client(_resp(200, {"records": [], "totalSize": 0}))
    body = client.query("v60.0", "SELECT Id FROM Account")
    assert body["records"] == []
    assert sess.calls[0]["url"].endswith("/services/data/v60.0/query")
    assert sess.calls[0]["params"] == {"q": "SELECT Id FROM Account"}


def test_server_errors_are_retried() -> None:
    client, sess = _client(_resp(503), _resp(200, {"records": []}), max_retries=3)
    assert client.query("v55.0", "SELECT Id FROM Account") == {"records": []}
    assert len(sess.calls) == 2


def test_http_error_propagates() -> None:
    client, _ = _client(_resp(404, [{"errorCode": "NOT_FOUND"}]))
    with pytest.raises(requests.HTTPError):
        client.get_priming_records("v55.0")


def test_retries_exhausted_returns_last_error() -> None:
    client, sess = _client(_resp(500), _resp(500), max_retries=2)
    with pytest.raises(requests.HTTPError):
        client.query("v55.0", "SELECT Id FROM Account")
    assert len(sess.calls) == 2


@pytest.mark.parametrize("body", ["<html>oops</html>", "", "[1, 2]"])
def test_bad_bodies_are_parse_faults(body: str) -> None:
    client, _ = _client(_resp(200, body))
    with pytest.raises(ResponseParseError):
        client.query("v55.0", "SELECT Id FROM Account")


def test_instance_url_required() -> None:
    with pytest.raises(ValueError):
        RestClient(RestConfig(instance_url=""), session=QueueSession())


def test_rate_limit_headers(capsys: pytest.CaptureFixture[str]) -> None:
    assert parse_rate_limit({"Sforce-Limit-Info": "api-usage=25/15000"}) == {
        "limit": 15000, "remaining": 14975, "reset": None,
    }
    assert parse_rate_limit({"X-RateLimit-Limit": "10", "X-RateLimit-Remaining": "3"})["remaining"] == 3

    client, _ = _client(_resp(200, {"records": []}, {"Sforce-Limit-Info": "api-usage=95/100"}),
                        _resp(200, {"records": []}, {"Sforce-Limit-Info": "api-usage=1/100"}))
    client.query("v55.0", "SELECT Id FROM Account")
    assert "api allowance nearly used" in capsys.readouterr().out
    client.query("v55.0", "SELECT Id FROM Account")
    assert "allowance" not in capsys.readouterr().out


def test_feature_labels() -> None:
    assert label_rest("GET", f"{BASE}/services/data/v55.0/connect/briefcase/priming-records", {}) == "priming"
    assert label_rest("GET", f"{BASE}/services/data/v55.0/query", {}) == "query"


def test_soql_builder() -> None:
    q = SOQLBuilder.with_fields(["Id", "Name", "Id"]).from_("Account").where(in_clause("Id", ["a", "b"])).build()
    assert q == "SELECT Id, Name FROM Account WHERE Id IN ('a', 'b')"
    assert quote("it's\\") == "'it\\'s\\\\'"
    with pytest.raises(ValueError):
        SOQLBuilder(["Id"]).build()
