# /primesync/_log.py
# PrimeSync - logging utility (one line per event, run context carried along)
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

_LEVELS: dict[str, int] = {
    "off": 99,
    "error": 40,
    "warn": 30,
    "warning": 30,
    "info": 20,
    "debug": 10,
    "trace": 5,
}

_RESET = "\033[0m"
_LEVEL_COLOR: dict[str, str] = {
    "ERROR": "\033[91m",
    "WARN": "\033[33m",
    "WARNING": "\033[33m",
    "INFO": "\033[94m",
    "DEBUG": "\033[33m",
    "TRACE": "\033[90m",
}
_HEAD_COLOR = "\033[90m"

# values longer than this are cut in kv lines (record previews, query strings)
MAX_VALUE_LEN = 300

# fields bound for the current run, e.g. sync_id; added to every line
_CONTEXT: ContextVar[dict[str, Any]] = ContextVar("primesync.log_context", default={})


@dataclass(frozen=True)
class _Settings:
    fmt: str
    color: bool

    @classmethod
    def from_env(cls) -> "_Settings":
        fmt = (os.getenv("PS_LOG_FORMAT") or "kv").strip().lower()
        return cls(fmt=fmt, color=fmt != "json" and _color_allowed())


def _flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


def _color_allowed() -> bool:
    if os.getenv("NO_COLOR") is not None:
        return False
    return (os.getenv("PS_LOG_COLOR") or "auto").strip().lower() not in ("0", "false", "no", "off")


def _rank(level: str) -> int:
    return _LEVELS.get(str(level or "info").strip().lower(), 20)


def _threshold(scope: str) -> int:
    s = str(scope).strip().upper()
    explicit = (os.getenv(f"PS_{s}_LOG_LEVEL") or os.getenv("PS_LOG_LEVEL") or "").strip()
    if explicit:
        return _rank(explicit)
    return _rank("debug") if (_flag("PS_DEBUG") or _flag(f"PS_{s}_DEBUG")) else _rank("info")


def _flat(value: Any) -> str:
    return " ".join(str("" if value is None else value).split())


def _render_kv(fields: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for key in sorted(fields):
        text = _flat(fields[key])
        if not text:
            continue
        if len(text) > MAX_VALUE_LEN:
            text = text[:MAX_VALUE_LEN] + "..."
        if any(ch.isspace() or ch in '"=:' for ch in text):
            text = json.dumps(text, ensure_ascii=False)
        parts.append(f"{key}={text}")
    return " ".join(parts)


@contextmanager
def bind(**fields: Any) -> Iterator[None]:
    """Attach `fields` to every line logged inside the block (nested binds stack)."""
    token = _CONTEXT.set({**_CONTEXT.get(), **fields})
    try:
        yield
    finally:
        _CONTEXT.reset(token)


def enabled(scope: str, level: str) -> bool:
    return _rank(level) >= _threshold(scope)


def log(scope: str, feature: str, level: str, msg: str, **fields: Any) -> None:
    """`[SCOPE:feature] LEVEL msg k=v ...`, or one JSON object with PS_LOG_FORMAT=json."""
    scope_s = str(scope).strip().upper()
    level_s = str(level).strip().upper()
    if not enabled(scope_s, level_s):
        return
    settings = _Settings.from_env()

    extra = {**_CONTEXT.get(), **fields}
    extra = {k: v for k, v in extra.items() if v is not None}
    feature_s = str(feature).strip().lower()

    if settings.fmt == "json":
        ts = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        row = {"ts": ts, "scope": scope_s, "feature": feature_s, "level": level_s, "msg": _flat(msg), **extra}
        print(json.dumps(row, ensure_ascii=False, default=str), flush=True)
        return

    head = f"[{scope_s}:{feature_s}]"
    lvl = level_s
    if settings.color:
        head = f"{_HEAD_COLOR}{head}{_RESET}"
        if level_s in _LEVEL_COLOR:
            lvl = f"{_LEVEL_COLOR[level_s]}{level_s}{_RESET}"
    line = f"{head} {lvl} {_flat(msg)}"
    tail = _render_kv(extra)
    print(f"{line} {tail}" if tail else line, flush=True)
