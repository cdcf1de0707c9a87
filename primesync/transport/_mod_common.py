# /primesync/transport/_mod_common.py
# PrimeSync common transport helpers
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import os
import time
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

import requests

from ..target._types import SyncParseError

__VERSION__ = "0.2.0"
__all__ = [
    "HitSession",
    "ResponseParseError",
    "make_emitter",
    "build_session",
    "parse_rate_limit",
    "parse_json",
    "request_with_retries",
    "label_rest",
]

EmitFn = Callable[[str, Mapping[str, Any]], None]
FeatureLabelFn = Callable[[str, str, Mapping[str, Any]], str]


class ResponseParseError(SyncParseError): ...


def make_emitter(ctx: Any) -> EmitFn:
    emit_fn: Callable[..., Any] | None = None
    if ctx is not None:
        if callable(getattr(ctx, "emit", None)):
            emit_fn = getattr(ctx, "emit")
        elif callable(ctx):
            emit_fn = ctx

    def _emit(event: str, payload: Mapping[str, Any]) -> None:
        if not emit_fn:
            return
        try:
            emit_fn(event, **dict(payload))
        except TypeError:
            emit_fn(event, dict(payload))

    return _emit


def default_feature_label(method: str, url: str, kw: Mapping[str, Any]) -> str:
    p = urlparse(url)
    segs = [s for s in (p.path or "/").split("/") if s]
    head = "/".join(segs[:3]) or "unknown"
    return head.lower()


def label_rest(method: str, url: str, kw: Mapping[str, Any]) -> str:
    p = urlparse(url)
    segs = [s for s in (p.path or "/").split("/") if s]
    if segs[:2] == ["services", "data"] and len(segs) >= 4:
        rest = segs[3:]
        if rest[:3] == ["connect", "briefcase", "priming-records"]:
            return "priming"
        if rest[:1] == ["query"]:
            return "query"
        if rest[:1] == ["sobjects"]:
            return "sobjects"
    return default_feature_label(method, url, kw)


class HitSession(requests.Session):
    def __init__(
        self,
        scope: str,
        emit: EmitFn,
        feature_label: FeatureLabelFn | None = None,
        emit_hits: bool | None = None,
    ):
        super().__init__()
        self._scope = scope
        self._emit = emit
        self._label = feature_label or default_feature_label
        self._emit_hits = bool(os.getenv("PS_API_HITS")) if emit_hits is None else bool(emit_hits)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        try:
            return super().request(method, url, **kwargs)
        finally:
            if self._emit_hits:
                self._emit("api:hit", {"scope": self._scope, "feature": self._label(method.upper(), url, kwargs)})


def build_session(
    scope: str,
    ctx: Any = None,
    *,
    feature_label: FeatureLabelFn | None = None,
    emit_hits: bool | None = None,
) -> HitSession:
    return HitSession(scope, make_emitter(ctx), feature_label, emit_hits)


def parse_rate_limit(h: Mapping[str, Any]) -> dict[str, int | None]:
    def _i(x: Any) -> int | None:
        try:
            return int(x)
        except (TypeError, ValueError):
            return None

    # Sforce-Limit-Info: api-usage=25/15000
    usage = str(h.get("Sforce-Limit-Info") or "")
    used = limit = None
    if "api-usage=" in usage:
        a, _, b = usage.split("api-usage=", 1)[1].partition("/")
        used, limit = _i(a), _i(b)
    remaining = (limit - used) if (used is not None and limit is not None) else None
    return {
        "limit": limit if limit is not None else _i(h.get("X-RateLimit-Limit")),
        "remaining": remaining if remaining is not None else _i(h.get("X-RateLimit-Remaining")),
        "reset": _i(h.get("X-RateLimit-Reset")),
    }


def parse_json(resp: requests.Response, *, what: str) -> Any:
    """Decode a JSON body; an undecodable body is a parse fault, not a transport fault."""
    text = resp.text or ""
    if not text.strip():
        raise ResponseParseError(f"{what}: empty response body (HTTP {resp.status_code})")
    try:
        return json.loads(text)
    except ValueError as e:
        raise ResponseParseError(f"{what}: response is not valid JSON (HTTP {resp.status_code})") from e


def request_with_retries(
    session: requests.Session,
    method: str,
    url: str,
    *,
    timeout: float = 10.0,
    max_retries: int = 3,
    retry_on: tuple[int, ...] = (429, 500, 502, 503, 504),
    backoff_base: float = 0.5,
    sleep: Callable[[float], None] | None = None,
    **kwargs: Any,
) -> requests.Response:
    pause = sleep or time.sleep
    attempts = max(1, int(max_retries))
    for i in range(attempts):
        last_try = i == attempts - 1
        try:
            resp = session.request(method, url, timeout=timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout):
            if last_try:
                raise
            pause(backoff_base * (2**i))
            continue
        if resp.status_code in retry_on and not last_try:
            wait = backoff_base * (2**i)
            if resp.status_code == 429:
                ra = resp.headers.get("Retry-After")
                if ra:
                    try:
                        wait = max(wait, float(ra))
                    except ValueError:
                        pass
            pause(wait)
            continue
        return resp
    raise requests.RequestException(f"request failed after retries: {method} {url}")
