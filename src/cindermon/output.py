"""Rendering of collected values: a Rich table, or JSON lines for pipelines."""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import List, Optional, Sequence, TextIO

from rich.console import Console
from rich.table import Table

from cindermon.collector.base import MetricsCollector
from cindermon.metrics import MetricValue
from cindermon.namespace import TENANT_INDEX

log = logging.getLogger(__name__)

MAX_CONSECUTIVE_ERRORS = 5


def _format_value(value) -> str:
    if isinstance(value, int) and value < 0:
        return "unlimited"
    return f"{value:,}" if isinstance(value, int) else str(value)


def build_table(values: List[MetricValue], title: Optional[str] = None) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Tenant", style="cyan")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    for value in values:
        tenant = value.namespace[TENANT_INDEX] if len(value.namespace) > TENANT_INDEX else ""
        metric = "/".join(value.namespace[TENANT_INDEX + 1:])
        table.add_row(tenant, metric, _format_value(value.data))
    return table


def print_table(values: List[MetricValue], source_name: str, console: Optional[Console] = None):
    console = console or Console()
    if not values:
        console.print("[dim]No metrics collected.[/dim]")
        return
    console.print(build_table(values, title=source_name))
    console.print(f"[dim]{len(values)} values at {values[0].timestamp.isoformat()}[/dim]")


def write_jsonl(values: List[MetricValue], source_name: str, stream: Optional[TextIO] = None):
    stream = stream or sys.stdout
    for value in values:
        record = value.summary()
        record["source"] = source_name
        stream.write(json.dumps(record) + "\n")
    stream.flush()


def run_jsonl(
    collector: MetricsCollector,
    namespaces: Sequence[Sequence[str]],
    refresh_interval: float = 60.0,
    stream: Optional[TextIO] = None,
    max_cycles: Optional[int] = None,
) -> int:
    """Collect every `refresh_interval` seconds and print one JSON object per value.

    Designed for cron-less hosts, CI pipelines, and log aggregators.
    Gives up after MAX_CONSECUTIVE_ERRORS failed cycles in a row. Returns
    the number of successful cycles.
    """
    source_name = collector.name()
    log.info("Starting JSONL output: source=%s, refresh=%.1fs", source_name, refresh_interval)

    consecutive_errors = 0
    cycles = 0
    succeeded = 0

    try:
        while max_cycles is None or cycles < max_cycles:
            cycles += 1
            try:
                values = collector.collect(namespaces)
                consecutive_errors = 0
            except Exception as e:
                consecutive_errors += 1
                log.warning("Collection failed (attempt %d/%d): %s",
                            consecutive_errors, MAX_CONSECUTIVE_ERRORS, e)
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    log.error("Giving up after %d consecutive failures", MAX_CONSECUTIVE_ERRORS)
                    break
                time.sleep(refresh_interval)
                continue

            succeeded += 1
            write_jsonl(values, source_name, stream)
            if max_cycles is None or cycles < max_cycles:
                time.sleep(refresh_interval)
    except KeyboardInterrupt:
        pass

    return succeeded
