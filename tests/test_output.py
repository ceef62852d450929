"""Tests for table and JSON lines output."""

import io
import json
from datetime import datetime, timezone

from rich.console import Console

import cindermon.output as output
from cindermon.errors import FetchError
from cindermon.metrics import MetricValue
from cindermon.namespace import PREFIX


def _value(tenant="alpha", *path, data=7) -> MetricValue:
    return MetricValue(
        namespace=PREFIX + (tenant,) + (path or ("volumes", "count")),
        timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        data=data,
    )


class _ScriptedCollector:
    """Fails `failures` times, then succeeds."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    def collect(self, namespaces):
        self.calls += 1
        if self.calls <= self.failures:
            raise FetchError("volumes", "boom")
        return [_value()]

    def name(self):
        return "scripted"


def test_write_jsonl():
    stream = io.StringIO()
    output.write_jsonl([_value(), _value("beta", "limits", "maxTotalVolumes", data=-1)], "src", stream)

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert lines[0] == {
        "namespace": "/cindermon/openstack/cinder/alpha/volumes/count",
        "timestamp": "2026-01-01T00:00:00+00:00",
        "data": 7,
        "source": "src",
    }
    assert lines[1]["data"] == -1


def test_table_shows_tenant_and_metric():
    console = Console(file=io.StringIO(), width=120)
    output.print_table([_value(data=1234567), _value("beta", "limits", "maxTotalVolumes", data=-1)],
                       "src", console)
    text = console.file.getvalue()
    assert "alpha" in text
    assert "volumes/count" in text
    assert "1,234,567" in text
    assert "unlimited" in text


def test_table_empty():
    console = Console(file=io.StringIO())
    output.print_table([], "src", console)
    assert "No metrics" in console.file.getvalue()


def test_run_jsonl_recovers_from_errors(monkeypatch):
    monkeypatch.setattr(output.time, "sleep", lambda _: None)
    collector = _ScriptedCollector(failures=2)
    stream = io.StringIO()

    succeeded = output.run_jsonl(collector, [], refresh_interval=0, stream=stream, max_cycles=3)

    assert succeeded == 1
    assert len(stream.getvalue().splitlines()) == 1


def test_run_jsonl_gives_up(monkeypatch):
    monkeypatch.setattr(output.time, "sleep", lambda _: None)
    collector = _ScriptedCollector(failures=100)

    succeeded = output.run_jsonl(collector, [], refresh_interval=0, stream=io.StringIO())

    assert succeeded == 0
    assert collector.calls == output.MAX_CONSECUTIVE_ERRORS
