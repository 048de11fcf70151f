"""
JobManager service for Replication Orchestrator

Runs the per-database pipeline: build the job, register it with the store,
observe it, and optionally copy its security document. Every pipeline ends
with exactly one finalized record handed to the monitoring service.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from ..models.job import ReplicationJob, ReplicationState, StatusEvent
from ..models.execution import JobOutcome, JobRecord
from ..services.job_builder import JobDescriptorBuilder
from ..services.registrar import ReplicationRegistrar
from ..services.status_poller import StatusPoller
from ..services.security_migrator import SecurityMigrator
from ..services.monitoring_service import MonitoringService
from ..utils.logger import get_logger, LoggerContext
from ..core.exceptions import (
    ErrorRegistry,
    RegistrationError,
    ReplicationFailedError,
    ReplicationOrchestratorError,
    SecurityMigrationError
)


@dataclass
class PipelineOptions:
    """Per-run settings shared by every pipeline."""
    source_url: str
    target_url: str
    live: bool = False
    monitor: bool = True
    copy_security: bool = False
    skip_extend: bool = False


class JobManager:
    """
    Drives one database at a time through the replication pipeline.

    The job record is created here and passed in sequence through the
    registrar, poller and security migrator; no other pipeline sees it.
    """

    def __init__(
        self,
        options: PipelineOptions,
        builder: JobDescriptorBuilder,
        registrar: ReplicationRegistrar,
        poller: StatusPoller,
        security_migrator: SecurityMigrator,
        monitoring: MonitoringService,
        error_registry: Optional[ErrorRegistry] = None,
        stop_event: Optional[asyncio.Event] = None
    ):
        self.options = options
        self.builder = builder
        self.registrar = registrar
        self.poller = poller
        self.security_migrator = security_migrator
        self.monitoring = monitoring
        self.error_registry = error_registry or ErrorRegistry()
        self.stop_event = stop_event

        self.logger = get_logger(__name__)

    async def process(self, database_name: str) -> JobRecord:
        """
        Run the pipeline for one database.

        Per-job errors are recorded on the returned record, never raised.
        """
        try:
            job = self.builder.build(
                self.options.source_url,
                self.options.target_url,
                database_name,
                live=self.options.live,
                skip_extend=self.options.skip_extend
            )
        except ReplicationOrchestratorError as e:
            self.error_registry.record_error(e)
            self.monitoring.publish(StatusEvent(
                database_name=database_name,
                job_id=None,
                state=ReplicationState.ERROR,
                source_doc_count=0,
                target_doc_count=0,
                percent_complete=0.0,
                doc_failures=0,
                has_error=True,
                terminal=True,
                reason=e.message
            ))
            record = JobRecord(database_name=database_name, job_id=None, outcome=JobOutcome.FAILED,
                               state=ReplicationState.ERROR, error_message=e.message)
            self.monitoring.finalize(record)
            return record

        with LoggerContext(database_name=database_name, job_id=job.job_id):
            try:
                record = await self._run(job)
            except Exception as e:
                job.mark_failed(f"error - {e}")
                self.monitoring.publish(job.snapshot(terminal=True))
                self.monitoring.finalize(JobRecord.from_job(job, JobOutcome.FAILED))
                raise
        self.monitoring.finalize(record)
        return record

    async def _run(self, job: ReplicationJob) -> JobRecord:
        try:
            await self.registrar.fetch_source_count(job)
            await self.registrar.submit_job(job)
        except RegistrationError as e:
            self.error_registry.record_error(e)
            job.mark_failed(f"error - {e.reason}" if e.reason else e.message)
            self.monitoring.publish(job.snapshot(terminal=True))
            return JobRecord.from_job(job, JobOutcome.FAILED)

        self.monitoring.publish(job.snapshot())

        if job.is_live and self.options.copy_security:
            await self._copy_security(job)

        if job.is_live and not self.options.monitor:
            self.logger.info("Live replication submitted without monitoring")
            self.monitoring.publish(job.snapshot(terminal=True, reason="submitted, not monitored"))
            return JobRecord.from_job(job, JobOutcome.DETACHED)

        terminal = None
        async for event in self.poller.observe(job, stop_event=self.stop_event):
            self.monitoring.publish(event)
            if event.terminal:
                terminal = event

        if job.has_error:
            self.error_registry.record_error(ReplicationFailedError(job.database_name, job.error_reason or "error"))
            return JobRecord.from_job(job, JobOutcome.FAILED)

        if terminal is None or terminal.state != ReplicationState.COMPLETED:
            return JobRecord.from_job(job, JobOutcome.DETACHED)

        if self.options.copy_security and not job.is_live:
            await self._copy_security(job)
        return JobRecord.from_job(job, JobOutcome.SUCCEEDED)

    async def _copy_security(self, job: ReplicationJob):
        try:
            await self.security_migrator.migrate(job)
        except SecurityMigrationError as e:
            self.error_registry.record_error(e)
            job.security_error = e.message
            self.logger.warning("Security document not copied", extra={"error": e.message})
