#!/usr/bin/env python3
# One sync-down pass using config.json (optionally followed by ghost cleanup).
from __future__ import annotations

import json
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from primesync import PrimingSyncDownTarget, SyncManager  # noqa: E402
from primesync.config_base import load_config, save_config  # noqa: E402


def main() -> None:
    args = [a.strip().lower() for a in sys.argv[1:]]
    ghosts = "--ghosts" in args
    full = "--full" in args

    cfg = load_config()
    target = PrimingSyncDownTarget.from_config(cfg.get("target") or {})
    manager = SyncManager.from_config(cfg)
    manager.ensure_soups(target)

    state = cfg.setdefault("state", {})
    watermark = 0 if full else int(state.get("watermark") or 0)
    # ghost cleanup is scoped to records saved under the same sync id
    sync_id = int(state.setdefault("sync_id", int(time.time())))

    res = manager.sync_down(target, sync_id, watermark=watermark, clean_ghosts=ghosts)
    print(json.dumps({
        "status": res.status.name,
        "saved": res.items_added,
        "ghosts": res.items_removed,
        "errors": res.errors,
        "metadata": res.metadata,
    }, indent=2))

    if res.status.name in ("SUCCESS", "WARNING"):
        state["watermark"] = max(watermark, int(res.metadata.get("max_timestamp") or 0))
        state["last_run"] = int(time.time())
        save_config(cfg)
    else:
        sys.exit(1)


if __name__ == "__main__":
    main()
