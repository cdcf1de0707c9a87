# primesync/target/_logging.py
# progress emitter for sync-down targets.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
from typing import Any, Callable

from .._log import log


class Emitter:
    """Forwards progress events to an optional callback as compact JSON lines."""

    def __init__(self, cb: Callable[[str], None] | None, scope: str = "TARGET"):
        self.cb = cb
        self.scope = scope

    def emit(self, event: str, **data: Any) -> None:
        if not self.cb:
            return
        payload: dict[str, Any] = {"event": event}
        payload.update(data)
        try:
            self.cb(json.dumps(payload, separators=(",", ":"), default=str))
        except Exception as e:
            # a broken progress sink must never abort a run
            log(self.scope, "progress", "warn", "progress callback failed", event=event, error=str(e))
