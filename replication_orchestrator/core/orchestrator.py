"""
Main ReplicationOrchestrator class that coordinates all services

Validates a run, resolves which databases to replicate, enforces the
run-wide limits and drives every database through the replication pipeline
with bounded concurrency.
"""

import asyncio
from typing import Any, Callable, List, Optional

from ..models.execution import RunConfig, RunSummary, MAX_LIVE_REPLICATIONS
from ..services.job_builder import JobDescriptorBuilder, validate_urls
from ..services.registrar import ReplicationRegistrar
from ..services.status_poller import StatusPoller, POLL_INTERVAL_SECONDS
from ..services.security_migrator import SecurityMigrator
from ..services.monitoring_service import MonitoringService, ProgressSink
from ..services.job_manager import JobManager, PipelineOptions
from ..services.queue_manager import QueueManager, is_reserved_name
from ..utils.store_client import StoreClient
from ..utils.urls import database_name_from_url, extend_url, server_url, redact_url
from ..utils.logger import get_logger, set_log_context
from ..core.exceptions import (
    AmbiguousDatabaseSelectionError,
    ErrorRegistry,
    InvalidURLError,
    MonitorSuppressionError,
    NoDatabasesSelectedError,
    OrchestratorError,
    StoreError,
    TooManyLiveReplicationsError
)


class ReplicationOrchestrator:
    """
    Main orchestrator class that coordinates all services.

    Provides a unified interface for:
    - Run validation (URLs, flags, database selection)
    - Replicating one database, a list of databases, or all databases
    - Enforcing the live-replication cap
    - Progress aggregation across concurrently running jobs
    """

    def __init__(
        self,
        store: StoreClient,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        debug_sink: Optional[Callable[[str], Any]] = None
    ):
        """
        Initialize the ReplicationOrchestrator.

        Args:
            store: Document store client
            poll_interval: Seconds between status polls of one job
            debug_sink: Optional callable receiving raw poll results
        """
        self.store = store
        self.registrar = ReplicationRegistrar(store)
        self.poller = StatusPoller(store, poll_interval=poll_interval, debug_sink=debug_sink)
        self.security_migrator = SecurityMigrator(store)
        self.builder = JobDescriptorBuilder()
        self.error_registry = ErrorRegistry()

        self._stop_event = asyncio.Event()
        self.last_queue_statistics = {}

        self.logger = get_logger(__name__)
        set_log_context(component="orchestrator")

    def request_stop(self):
        """
        Stop observing running jobs.

        Replications already submitted to the store keep running there.
        """
        self.logger.info("Stop requested, detaching from running replications")
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def validate(self, config: RunConfig):
        """
        Validate a run before anything is scheduled.

        Raises:
            InvalidURLError: Source or target URL is not absolute
            MonitorSuppressionError: no_monitor without live
            AmbiguousDatabaseSelectionError: Names in URLs and as options
            NoDatabasesSelectedError: No names anywhere
        """
        validate_urls(config.source_url, config.target_url)

        if config.no_monitor and not config.live:
            raise MonitorSuppressionError()

        source_name = database_name_from_url(config.source_url)
        target_name = database_name_from_url(config.target_url)
        names_in_urls = bool(source_name or target_name)

        if names_in_urls and (config.databases or config.all_databases):
            raise AmbiguousDatabaseSelectionError()

        if not names_in_urls and not config.databases and not config.all_databases:
            raise NoDatabasesSelectedError()

        if target_name and not source_name:
            raise InvalidURLError("source", config.source_url,
                                  "source URL must name a database when the target URL does")

    async def run(self, config: RunConfig, sinks: Optional[List[ProgressSink]] = None) -> RunSummary:
        """
        Validate and execute a run, choosing the selection mode from the config.

        Returns:
            RunSummary with one record per replicated database
        """
        self.validate(config)

        if database_name_from_url(config.source_url):
            return await self.migrate_db(config, sinks)
        if config.all_databases:
            return await self.migrate_all(config, sinks)
        return await self.migrate_list(config, config.databases, sinks)

    async def migrate_db(self, config: RunConfig, sinks: Optional[List[ProgressSink]] = None) -> RunSummary:
        """Replicate the single database named in the source URL."""
        name = database_name_from_url(config.source_url)
        target_url = config.target_url
        if not database_name_from_url(target_url):
            target_url = extend_url(target_url, name)
        return await self._migrate(config, [name], config.source_url, target_url,
                                   skip_extend=True, sinks=sinks)

    async def migrate_list(self, config: RunConfig, databases: List[str],
                           sinks: Optional[List[ProgressSink]] = None) -> RunSummary:
        """Replicate a list of databases between two clusters."""
        return await self._migrate(config, databases, config.source_url, config.target_url,
                                   skip_extend=False, sinks=sinks)

    async def migrate_all(self, config: RunConfig, sinks: Optional[List[ProgressSink]] = None) -> RunSummary:
        """Replicate every non-system database of the source cluster."""
        try:
            names = await self.store.list_databases(server_url(config.source_url))
        except StoreError as e:
            raise OrchestratorError(f"cannot list source databases: {e.message}")
        return await self.migrate_list(config, names, sinks)

    async def _migrate(self, config: RunConfig, databases: List[str], source_url: str, target_url: str,
                       skip_extend: bool, sinks: Optional[List[ProgressSink]]) -> RunSummary:
        names = [name for name in databases if name and not is_reserved_name(name)]
        if not names:
            raise NoDatabasesSelectedError("no replicable databases found")

        if config.live and len(names) > MAX_LIVE_REPLICATIONS:
            raise TooManyLiveReplicationsError(len(names), MAX_LIVE_REPLICATIONS)

        concurrency = config.effective_concurrency
        self.logger.info("Starting replication run", extra={
            "source": redact_url(server_url(source_url)),
            "target": redact_url(server_url(target_url)),
            "databases": len(names),
            "concurrency": concurrency,
            "live": config.live,
            "copy_security": config.copy_security
        })

        await self.registrar.ensure_control_database(source_url)

        monitoring = MonitoringService(sinks)
        monitoring.expect(len(names))

        job_manager = JobManager(
            PipelineOptions(
                source_url=source_url,
                target_url=target_url,
                live=config.live,
                monitor=not config.no_monitor,
                copy_security=config.copy_security,
                skip_extend=skip_extend
            ),
            builder=self.builder,
            registrar=self.registrar,
            poller=self.poller,
            security_migrator=self.security_migrator,
            monitoring=monitoring,
            error_registry=self.error_registry,
            stop_event=self._stop_event
        )

        queue = QueueManager(concurrency, error_registry=self.error_registry)
        queue.enqueue(names)
        await queue.run(job_manager.process)
        self.last_queue_statistics = queue.get_queue_statistics()

        if not monitoring.run_complete.is_set():
            raise OrchestratorError("run finished with unsettled jobs")

        summary = monitoring.summary
        summary.error_statistics = self.error_registry.get_error_statistics()
        self.logger.info("Replication run finished", extra={
            "total": summary.total,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "detached": summary.detached,
            "duration_seconds": summary.get_duration()
        })
        return summary
