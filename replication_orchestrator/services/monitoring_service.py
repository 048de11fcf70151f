"""
MonitoringService for Replication Orchestrator

Thin fan-out of per-job status events to caller-supplied sinks, plus the
run-completion signal once every job has been finalized.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models.job import ReplicationState, StatusEvent, utcnow
from ..models.execution import JobRecord, RunSummary
from ..utils.logger import get_logger


@dataclass(frozen=True)
class ProgressUpdate:
    """What a progress display needs to know about one job."""
    database_name: str
    percent_complete: float
    state: ReplicationState


class ProgressSink:
    """
    Receiver of aggregated progress. Subclass and override what you need.
    """

    def on_status(self, update: ProgressUpdate):
        pass

    def on_finalized(self, record: JobRecord):
        pass

    def on_run_complete(self, summary: RunSummary):
        pass


class SilentCounterSink(ProgressSink):
    """Counts events without displaying anything (quiet mode)."""

    def __init__(self):
        self.status_updates = 0
        self.finalized = 0
        self.failed = 0
        self.run_completed = False

    def on_status(self, update: ProgressUpdate):
        self.status_updates += 1

    def on_finalized(self, record: JobRecord):
        self.finalized += 1
        if record.has_error:
            self.failed += 1

    def on_run_complete(self, summary: RunSummary):
        self.run_completed = True


class MonitoringService:
    """
    Aggregates status events of all jobs in a run.

    Provides capabilities for:
    - Forwarding progress of every job to subscribed sinks
    - Collecting one finalized record per job
    - Signalling run completion when all expected jobs are finalized
    """

    def __init__(self, sinks: Optional[List[ProgressSink]] = None):
        self.sinks: List[ProgressSink] = list(sinks or [])
        self.summary = RunSummary()
        self.latest: Dict[str, StatusEvent] = {}
        self.run_complete = asyncio.Event()
        self._expected: Optional[int] = None

        self.logger = get_logger(__name__)

    def subscribe(self, sink: ProgressSink):
        """Add a sink."""
        self.sinks.append(sink)

    def expect(self, job_count: int):
        """Set how many finalized records complete the run."""
        self._expected = job_count
        self._check_complete()

    def publish(self, event: StatusEvent):
        """Forward a status event to every sink."""
        self.latest[event.database_name] = event
        update = ProgressUpdate(
            database_name=event.database_name,
            percent_complete=event.percent_complete,
            state=event.state
        )
        for sink in self.sinks:
            self._deliver(sink.on_status, update)

    def finalize(self, record: JobRecord):
        """Record a job's terminal outcome and forward it to every sink."""
        self.summary.records.append(record)
        self.logger.info("Job finalized", extra={
            "database_name": record.database_name,
            "job_id": record.job_id,
            "outcome": record.outcome.value,
            "error": record.error_message
        })
        for sink in self.sinks:
            self._deliver(sink.on_finalized, record)
        self._check_complete()

    async def wait_for_completion(self) -> RunSummary:
        await self.run_complete.wait()
        return self.summary

    def _check_complete(self):
        if self.run_complete.is_set() or self._expected is None:
            return
        if len(self.summary.records) >= self._expected:
            self.summary.completed_at = utcnow()
            self.run_complete.set()
            for sink in self.sinks:
                self._deliver(sink.on_run_complete, self.summary)

    def _deliver(self, callback, payload):
        # Sink failures are logged, never propagated
        try:
            callback(payload)
        except Exception:
            self.logger.warning("Progress sink failed", exc_info=True, extra={
                "sink": callback.__qualname__
            })
