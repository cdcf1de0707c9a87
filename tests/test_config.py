# PrimeSync test scripts
from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from primesync.config_base import CONFIG_BASE, DEFAULT_CFG, load_config, save_config, store_path


def test_config_base_follows_env(config_base: Path) -> None:
    assert CONFIG_BASE() == config_base


def test_defaults_without_config_file(config_base: Path) -> None:
    cfg = load_config()
    assert cfg == DEFAULT_CFG
    assert cfg is not DEFAULT_CFG
    assert store_path(cfg) == config_base / "store.json"


def test_user_values_merge_over_defaults(config_base: Path) -> None:
    (config_base / "config.json").write_text(json.dumps({
        "remote": {"instance_url": "https://x.example.com"},
        "target": {"count_ids_per_query": 50},
    }), "utf-8")

    cfg = load_config()
    assert cfg["remote"]["instance_url"] == "https://x.example.com"
    assert cfg["remote"]["api_version"] == "v55.0"
    assert cfg["target"]["count_ids_per_query"] == 50
    assert cfg["target"]["max_priming_pages"] == 10000


def test_save_then_load(config_base: Path) -> None:
    cfg = load_config()
    cfg["state"] = {"watermark": 1717200000000, "sync_id": 7}
    save_config(cfg)

    assert not (config_base / "config.json.tmp").exists()
    assert load_config()["state"] == {"watermark": 1717200000000, "sync_id": 7}


def test_unreadable_config_falls_back_to_defaults(config_base: Path) -> None:
    (config_base / "config.json").write_text("{not json", "utf-8")
    assert load_config()["store"]["path"] == "store.json"


def test_store_path_variants(config_base: Path, tmp_path: Path) -> None:
    assert store_path({"store": {"path": ""}}) is None
    absolute = tmp_path / "elsewhere.json"
    assert store_path({"store": {"path": str(absolute)}}) == absolute


def test_debug_flag_sets_env(config_base: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PS_DEBUG", "")
    monkeypatch.delenv("PS_DEBUG")
    (config_base / "config.json").write_text(json.dumps({"runtime": {"debug": True}}), "utf-8")
    load_config()
    assert os.environ.get("PS_DEBUG") == "1"
