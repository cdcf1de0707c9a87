# /primesync/transport/rest.py
# PrimeSync REST client (priming records + query)
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

import requests

from .._log import log
from ._mod_common import (
    ResponseParseError,
    build_session,
    label_rest,
    parse_json,
    parse_rate_limit,
    request_with_retries,
)

__VERSION__ = "1.0.0"
__all__ = ["RestConfig", "RestClient"]

UA = os.environ.get("PS_UA", "PrimeSync/1.0 (python-requests)")
DEFAULT_API_VERSION = "v55.0"


@dataclass
class RestConfig:
    instance_url: str
    access_token: str = ""
    timeout: float = 30.0
    max_retries: int = 3

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "RestConfig":
        remote = dict(cfg.get("remote") or cfg)
        return cls(
            instance_url=str(remote.get("instance_url") or "").rstrip("/"),
            access_token=str(remote.get("access_token") or "").strip(),
            timeout=float(remote.get("timeout", 30.0)),
            max_retries=int(remote.get("max_retries", 3)),
        )


class RestClient:
    """Transport for the priming feed and the query facility.

    Non-2xx responses raise `requests.HTTPError`; bodies that are not JSON raise
    `ResponseParseError`. Retries for 429/5xx live here, nowhere above.
    """

    def __init__(self, cfg: RestConfig, ctx: Any = None, session: requests.Session | None = None):
        if not cfg.instance_url:
            raise ValueError("instance_url is required")
        self.cfg = cfg
        self.session: requests.Session = session or build_session("REST", ctx, feature_label=label_rest)
        self.session.headers.update(self._headers())

    def _headers(self) -> dict[str, str]:
        h = {"Accept": "application/json", "User-Agent": UA}
        if self.cfg.access_token:
            h["Authorization"] = f"Bearer {self.cfg.access_token}"
        return h

    def _url(self, api_version: str, path: str) -> str:
        return f"{self.cfg.instance_url}/services/data/{api_version}/{path.lstrip('/')}"

    def _get(self, url: str, *, what: str, params: Mapping[str, Any] | None = None) -> Any:
        r = request_with_retries(
            self.session,
            "GET",
            url,
            params=dict(params or {}),
            timeout=self.cfg.timeout,
            max_retries=self.cfg.max_retries,
        )
        rate = parse_rate_limit(r.headers)
        if rate["limit"] and rate["remaining"] is not None and rate["remaining"] * 10 < rate["limit"]:
            log("REST", what, "warn", "api allowance nearly used", remaining=rate["remaining"], limit=rate["limit"])
        if not r.ok:
            log("REST", what, "error", "request failed", status=r.status_code, url=url)
        r.raise_for_status()
        return parse_json(r, what=what)

    def get_priming_records(self, api_version: str, relay_token: str | None = None) -> Mapping[str, Any]:
        params = {"relayToken": relay_token} if relay_token else None
        body = self._get(self._url(api_version, "connect/briefcase/priming-records"), what="priming", params=params)
        if not isinstance(body, Mapping):
            raise ResponseParseError("priming: response is not a JSON object")
        return body

    def query(self, api_version: str, soql: str) -> Mapping[str, Any]:
        body = self._get(self._url(api_version, "query"), what="query", params={"q": soql})
        if not isinstance(body, Mapping):
            raise ResponseParseError("query: response is not a JSON object")
        return body
