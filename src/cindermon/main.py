"""
cindermon entry point.

Usage:
    cindermon --config cindermon.yaml metrics              List every available namespace
    cindermon --config cindermon.yaml collect              Collect everything once
    cindermon --config cindermon.yaml collect /cindermon/openstack/cinder/alpha/volumes/count
    cindermon --config cindermon.yaml watch --interval 60  JSON lines every minute
    cindermon --mock collect                               Against a built-in fake cloud
"""

from __future__ import annotations

import logging

import click

from cindermon import __version__
from cindermon.collector.cinder_collector import CinderCollector
from cindermon.config import CollectorConfig, load_config
from cindermon.errors import CollectorError
from cindermon.namespace import join_namespace, split_namespace
from cindermon.output import print_table, run_jsonl, write_jsonl


log = logging.getLogger("cindermon")


def _mock_config(ctx) -> CollectorConfig:
    from cindermon.mock.fake_openstack_server import start_fake_server

    server, cloud = start_fake_server()
    # callbacks run last-in first-out: stop serving, then release the socket
    ctx.call_on_close(server.server_close)
    ctx.call_on_close(server.shutdown)
    return CollectorConfig(
        endpoint=f"{cloud.base_url}/v3",
        user=cloud.user,
        password=cloud.password,
        tenant="admin",
        domain_name="Default",
    )


def _build_collector(ctx) -> CinderCollector:
    if ctx.obj["mock"]:
        config = _mock_config(ctx)
    else:
        try:
            config = load_config(ctx.obj["config_path"])
        except CollectorError as e:
            raise click.ClickException(str(e))
    log.debug("Using %r", config)

    collector = CinderCollector(config)
    ctx.call_on_close(collector.close)
    return collector


def _requested(collector: CinderCollector, namespaces) -> list:
    if namespaces:
        return [split_namespace(ns) for ns in namespaces]
    return collector.enumerate_metrics()


@click.group()
@click.version_option(version=__version__, prog_name="cindermon")
@click.option("--config", "config_path", default=None, envvar="CINDERMON_CONFIG",
              help="YAML config file (CINDERMON_* env vars override it)")
@click.option("--mock", is_flag=True, default=False, help="Run against a built-in fake OpenStack")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path: str, mock: bool, verbose: bool):
    """cindermon - Cinder tenant utilization collector."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["mock"] = mock


@cli.command()
@click.pass_context
def metrics(ctx):
    """List every namespace that can be collected."""
    collector = _build_collector(ctx)
    try:
        namespaces = collector.enumerate_metrics()
    except CollectorError as e:
        raise click.ClickException(str(e))
    for ns in namespaces:
        click.echo(join_namespace(ns))


@cli.command()
@click.argument("namespaces", nargs=-1)
@click.option("--output", type=click.Choice(["table", "jsonl"]), default="table",
              help="Output mode: table (Rich) or jsonl (one JSON line per value)")
@click.pass_context
def collect(ctx, namespaces, output: str):
    """Collect NAMESPACES once (all available metrics when none are given)."""
    collector = _build_collector(ctx)
    try:
        values = collector.collect(_requested(collector, namespaces))
    except CollectorError as e:
        raise click.ClickException(str(e))

    if output == "jsonl":
        write_jsonl(values, collector.name())
    else:
        print_table(values, collector.name())


@cli.command()
@click.argument("namespaces", nargs=-1)
@click.option("--interval", default=60.0, help="Seconds between collections")
@click.option("--count", default=None, type=int, help="Stop after this many cycles")
@click.pass_context
def watch(ctx, namespaces, interval: float, count: int):
    """Collect NAMESPACES repeatedly, printing JSON lines."""
    collector = _build_collector(ctx)
    try:
        requested = _requested(collector, namespaces)
    except CollectorError as e:
        raise click.ClickException(str(e))

    succeeded = run_jsonl(collector, requested, refresh_interval=interval,
                          max_cycles=count)
    if succeeded == 0:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
