import json

from click.testing import CliRunner

from resourcewatch import cli, service


class StubFetcher:
    def __init__(self, auth_url, payload, timeout_ms, user_agent=None) -> None:
        self.timeout_ms = timeout_ms

    def fetch(self, url, since=None):
        return b'{"v":1}'

    def close(self):
        pass


def test_once_prints_cycle_summary(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TO_HOST", "to.example.net")
    monkeypatch.setenv("TO_USER", "admin")
    monkeypatch.setenv("TO_PASS", "secret")
    monkeypatch.setattr(service, "ConditionalFetcher", StubFetcher)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"config": {"steering.polling.interval": 30000}}))

    result = CliRunner().invoke(
        cli.main,
        ["--once", "--config", str(config), "--cache-dir", str(tmp_path / "cache"), "--logs-dir", str(tmp_path / "logs")],
    )

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary["startup"] == "absent"
    assert summary["reconfigure"] == "applied"
    assert summary["refresh"] == "refreshed"
    assert summary["resource_url"] == "https://to.example.net/api/4.0/steering"
    assert (tmp_path / "cache" / "steering.json").read_bytes() == b'{"v":1}'
