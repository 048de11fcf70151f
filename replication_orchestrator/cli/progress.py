"""
Plain-text progress output for the CLI
"""

from typing import Dict, Tuple

import click

from ..models.execution import JobOutcome, JobRecord
from ..services.monitoring_service import ProgressSink, ProgressUpdate

BAR_WIDTH = 20


def render_bar(fraction: float) -> str:
    filled = max(0, min(BAR_WIDTH, int(fraction * BAR_WIDTH)))
    return "#" * filled + "-" * (BAR_WIDTH - filled)


class ConsoleProgressSink(ProgressSink):
    """Echoes a progress line whenever a job's state or whole percentage changes."""

    def __init__(self, name_width: int = 30):
        self.name_width = name_width
        self._last: Dict[str, Tuple[str, int]] = {}

    def on_status(self, update: ProgressUpdate):
        percent = int(update.percent_complete * 100)
        key = (update.state.value, percent)
        if self._last.get(update.database_name) == key:
            return
        self._last[update.database_name] = key
        click.echo(f"{update.database_name:<{self.name_width}} [{render_bar(update.percent_complete)}] "
                   f"{percent:>3}% | {update.state.value}")

    def on_finalized(self, record: JobRecord):
        if record.outcome == JobOutcome.FAILED:
            click.secho(f"{record.database_name}: {record.error_message or 'error'}", fg="red", err=True)
        if record.security_error:
            click.secho(f"{record.database_name}: {record.security_error}", fg="yellow", err=True)
