"""
Main CLI entry point for Replication Orchestrator

Replicates one, several or all databases from a source cluster to a target
cluster. Exit codes:

    1  invalid source URL
    2  invalid target URL
    3  --nomonitor without --live
    4  no database names supplied
    5  database names supplied in URLs and as options
    6  run failed
"""

import asyncio
import functools
import json
import os
import signal
import sys
from typing import Any, Callable, Optional

import click

from ..core.orchestrator import ReplicationOrchestrator
from ..core.exceptions import (
    AmbiguousDatabaseSelectionError,
    ConfigurationError,
    InvalidURLError,
    MonitorSuppressionError,
    NoDatabasesSelectedError,
    ReplicationOrchestratorError
)
from ..models.execution import RunConfig, RunSummary
from ..services.monitoring_service import SilentCounterSink
from ..utils.store_client import HttpStoreClient
from ..utils.config import load_config_file
from ..utils.logger import setup_logger
from .progress import ConsoleProgressSink

EXIT_INVALID_SOURCE = 1
EXIT_INVALID_TARGET = 2
EXIT_MONITOR_WITHOUT_LIVE = 3
EXIT_NO_DATABASES = 4
EXIT_AMBIGUOUS_SELECTION = 5
EXIT_RUN_FAILED = 6

DEBUG_ENV_VALUE = "couchreplicate"


def _load_config(ctx, param, value):
    """Use a config file's values as defaults for the other options."""
    if not value:
        return value
    try:
        options = load_config_file(value)
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        ctx.exit(EXIT_RUN_FAILED)
    if isinstance(options.get("databases"), list):
        options["databases"] = ",".join(options["databases"])
    ctx.default_map = {**(ctx.default_map or {}), **options}
    return value


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option('--config', type=click.Path(exists=True, dir_okay=False), is_eager=True, expose_value=False,
              callback=_load_config, help='YAML or JSON file with option defaults')
@click.option('--source', '-s', 'source_url', required=True, envvar='COUCHREPLICATE_SOURCE',
              help='Source URL')
@click.option('--target', '-t', 'target_url', required=True, envvar='COUCHREPLICATE_TARGET',
              help='Target URL')
@click.option('--concurrency', '-c', type=click.IntRange(min=1), default=1, show_default=True,
              help='Number of replications to run at once')
@click.option('--databases', '-d', default='', help='Names of the databases to replicate e.g. a,b,c')
@click.option('--all', '-a', 'all_databases', is_flag=True, help='Replicate all databases')
@click.option('--auth', '-x', 'copy_security', is_flag=True, help='Also copy _security document')
@click.option('--quiet', '-q', is_flag=True, help='Suppress progress output')
@click.option('--live', '-l', is_flag=True, help='Set up live (continuous) replications instead')
@click.option('--nomonitor', '-n', 'no_monitor', is_flag=True,
              help="Don't monitor the replications after setup")
@click.option('--log-level', default='WARNING', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
              help='Log level')
@click.option('--plain-logs', is_flag=True, help='Plain text instead of JSON log lines')
@click.option('--debug', is_flag=True, help='Print raw replication status on every poll')
@click.option('--json', 'json_output', is_flag=True, help='Print the run summary as JSON')
def cli(source_url, target_url, concurrency, databases, all_databases, copy_security, quiet,
        live, no_monitor, log_level, plain_logs, debug, json_output):
    """Replicate databases from a source cluster to a target cluster"""

    setup_logger("replication_orchestrator", level=log_level, structured=not plain_logs)

    config = RunConfig(
        source_url=source_url,
        target_url=target_url,
        databases=[name.strip() for name in databases.split(',') if name.strip()],
        all_databases=all_databases,
        concurrency=concurrency,
        live=live,
        copy_security=copy_security,
        quiet=quiet,
        no_monitor=no_monitor
    )

    debug_sink = None
    if debug or os.environ.get("DEBUG") == DEBUG_ENV_VALUE:
        debug_sink = functools.partial(click.echo, err=True)

    try:
        summary = asyncio.run(_run(config, debug_sink, show_progress=not (quiet or json_output)))
    except InvalidURLError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(EXIT_INVALID_SOURCE if e.which == "source" else EXIT_INVALID_TARGET)
    except MonitorSuppressionError:
        click.echo("Error: --nomonitor/-n is only applicable with the --live/-l option", err=True)
        sys.exit(EXIT_MONITOR_WITHOUT_LIVE)
    except NoDatabasesSelectedError as e:
        click.echo(f"ERROR: {e.message}.", err=True)
        click.echo("Either:", err=True)
        click.echo(" 1) supply source and target database names in the URLs", err=True)
        click.echo(" 2) supply database name(s) with -d or --databases parameters", err=True)
        click.echo(" 3) use the -a parameter to replicate all databases", err=True)
        sys.exit(EXIT_NO_DATABASES)
    except AmbiguousDatabaseSelectionError as e:
        click.echo(f"ERROR: {e.message}", err=True)
        sys.exit(EXIT_AMBIGUOUS_SELECTION)
    except ReplicationOrchestratorError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(EXIT_RUN_FAILED)

    if json_output:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    elif not quiet:
        _display_summary(summary)


async def _run(config: RunConfig, debug_sink: Optional[Callable[[str], Any]],
               show_progress: bool = True) -> RunSummary:
    async with HttpStoreClient() as store:
        orchestrator = ReplicationOrchestrator(store, debug_sink=debug_sink)
        _install_signal_handlers(orchestrator)
        sinks = [ConsoleProgressSink()] if show_progress else [SilentCounterSink()]
        return await orchestrator.run(config, sinks)


def _install_signal_handlers(orchestrator: ReplicationOrchestrator):
    """Turn SIGINT/SIGTERM into a request to stop observing."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.request_stop)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not supported on this platform or outside the main thread
            pass


def _display_summary(summary: RunSummary):
    """Display the run summary"""
    click.echo()
    click.echo(f"Databases: {summary.total}")
    click.echo(f"  Succeeded: {summary.succeeded}")
    click.echo(f"  Failed: {summary.failed}")
    if summary.detached:
        click.echo(f"  Not monitored: {summary.detached}")
    duration = summary.get_duration()
    if duration is not None:
        click.echo(f"Duration: {duration:.1f}s")


def main():
    """Main CLI entry point"""
    cli()


if __name__ == '__main__':
    main()
