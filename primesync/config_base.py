# primesync/config_base.py
from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config files.

    Priority:
      1) $PS_CONFIG_BASE if set
      2) /config (when running in a container that mounts /config)
      3) Project root (one level up from this package)
    """
    env = os.getenv("PS_CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- Remote --------------------------------------------------------------
    "remote": {
        "instance_url": "",                             # https://<instance> (required)
        "access_token": "",                             # Bearer token; obtained elsewhere, passed through as-is
        "api_version": "v55.0",                         # REST API version used for priming + query calls
        "timeout": 30.0,                                # HTTP timeout (seconds)
        "max_retries": 3,                               # Retry budget for 429/5xx inside the transport
    },

    # --- Local store ---------------------------------------------------------
    "store": {
        "path": "store.json",                           # Relative paths resolve against CONFIG_BASE()
    },

    # --- Sync-down target ----------------------------------------------------
    "target": {
        "type": "priming",
        "infos": [],                                    # [{record_type, destination, fields, id_field, mod_time_field}]
        "count_ids_per_query": 500,                     # Ids per query slice (clamped to 2000)
        "max_priming_pages": 10000,                     # Safety cap for the full ghost scan
    },

    # --- Runtime / Diagnostics -----------------------------------------------
    "runtime": {
        "debug": False,                                 # Sets PS_DEBUG for this process
    },
}


def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    os.replace(tmp, p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def store_path(cfg: Dict[str, Any]) -> Path | None:
    raw = str((cfg.get("store") or {}).get("path") or "").strip()
    if not raw:
        return None
    p = Path(raw)
    return p if p.is_absolute() else CONFIG_BASE() / p


def load_config() -> Dict[str, Any]:
    """
    Read config.json merged over DEFAULT_CFG
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except (OSError, ValueError):
            user_cfg = {}

    cfg = _deep_merge(DEFAULT_CFG, user_cfg)
    if (cfg.get("runtime") or {}).get("debug"):
        os.environ.setdefault("PS_DEBUG", "1")
    return cfg


def save_config(cfg: Dict[str, Any]) -> None:
    """
    Write to config.json
    """
    _write_json_atomic(_cfg_file(), dict(cfg or {}))
