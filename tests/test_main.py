"""CLI tests against the built-in fake cloud."""

import json

from click.testing import CliRunner

import cindermon.mock.fake_openstack_server as fake
from cindermon import __version__
from cindermon.main import cli


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_metrics_lists_namespaces():
    result = CliRunner().invoke(cli, ["--mock", "metrics"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert "/cindermon/openstack/cinder/alpha/volumes/count" in lines
    assert "/cindermon/openstack/cinder/beta/limits/maxTotalVolumes" in lines


def test_collect_jsonl():
    result = CliRunner().invoke(cli, [
        "--mock", "collect", "--output", "jsonl",
        "/cindermon/openstack/cinder/alpha/volumes/count",
        "/cindermon/openstack/cinder/beta/limits/maxTotalVolumes",
    ])
    assert result.exit_code == 0, result.output
    records = [json.loads(line) for line in result.output.splitlines()]
    assert [r["data"] for r in records] == [3, 50]


def test_collect_rejects_short_namespace():
    result = CliRunner().invoke(cli, ["--mock", "collect", "/cindermon/openstack/cinder/alpha"])
    assert result.exit_code != 0
    assert "namespace length" in result.output


def test_watch_with_count():
    result = CliRunner().invoke(cli, [
        "--mock", "watch", "--interval", "0", "--count", "2",
        "/cindermon/openstack/cinder/alpha/snapshots/count",
    ])
    assert result.exit_code == 0, result.output
    assert len(result.output.splitlines()) == 2


def test_missing_config_is_reported(monkeypatch):
    for key in ("ENDPOINT", "USER", "PASSWORD", "TENANT"):
        monkeypatch.delenv(f"CINDERMON_{key}", raising=False)
    monkeypatch.delenv("CINDERMON_CONFIG", raising=False)
    result = CliRunner().invoke(cli, ["collect"])
    assert result.exit_code != 0
    assert "Missing required config keys" in result.output


def test_mock_server_is_closed_after_command(monkeypatch):
    started = []
    original = fake.start_fake_server

    def start(*args, **kwargs):
        server, cloud = original(*args, **kwargs)
        started.append(server)
        return server, cloud

    monkeypatch.setattr(fake, "start_fake_server", start)
    result = CliRunner().invoke(cli, ["--mock", "metrics"])

    assert result.exit_code == 0, result.output
    assert started[0].socket.fileno() == -1
