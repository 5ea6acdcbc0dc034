import json

import pytest

from resourcewatch.config import TrafficOpsSettings, load_raw_config, load_settings, parse_watcher_config
from resourcewatch.credentials import TrafficOpsCredentials


def make_credentials():
    return TrafficOpsCredentials(TrafficOpsSettings(host="to.example.net", username="admin", password="secret"))


def test_parse_watcher_config_reads_prefixed_keys():
    raw = {
        "steering.polling.url": "https://${toHostname}/api/4.0/steering",
        "steering.polling.interval": "30000",
        "steering.polling.timeout": 5000,
        "federation.polling.url": "https://elsewhere.example.net",
    }
    cfg = parse_watcher_config("steering", raw, make_credentials())
    assert cfg.url == "https://to.example.net/api/4.0/steering"
    assert cfg.interval_ms == 30000
    assert cfg.timeout_ms == 5000


@pytest.mark.parametrize("value", [None, 0, -5, "soon", True])
def test_parse_watcher_config_ignores_unusable_numbers(value):
    cfg = parse_watcher_config("steering", {"steering.polling.interval": value}, make_credentials())
    assert cfg.interval_ms is None
    assert cfg.url is None


def test_load_raw_config_handles_missing_nested_and_malformed(tmp_path):
    assert load_raw_config(tmp_path / "absent.json") == {}
    assert load_raw_config(None) == {}

    nested = tmp_path / "cr-config.json"
    nested.write_text(json.dumps({"config": {"steering.polling.interval": 1000}, "stats": {}}))
    assert load_raw_config(nested) == {"steering.polling.interval": 1000}

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ValueError):
        load_raw_config(broken)


def test_load_settings_merges_env_and_cli(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TO_HOST", "to.example.net")
    monkeypatch.setenv("TO_USER", "admin")
    monkeypatch.setenv("TO_PASS", "secret")
    monkeypatch.setenv("CDN_NAME", "cdn1")
    monkeypatch.setenv("POLLING_INTERVAL_MS", "45000")
    monkeypatch.setenv("WATCHER_NAME", "federations")

    settings = load_settings(
        {
            "cache_dir": str(tmp_path / "cache"),
            "logs_dir": str(tmp_path / "logs"),
            "timeout_ms": 2500,
            "name": None,
        }
    )

    assert settings.name == "federations"
    assert settings.prefix == "federations"
    assert settings.resource_name == "federations.json"
    assert settings.polling_interval_ms == 45000
    assert settings.timeout_ms == 2500
    assert settings.traffic_ops.tokens == {"cdnName": "cdn1"}
    assert settings.cache_dir.is_dir()
    assert settings.logs_dir.is_dir()
