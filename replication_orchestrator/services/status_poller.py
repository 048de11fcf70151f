"""
StatusPoller for Replication Orchestrator

Observes a submitted replication until the store reports a terminal state,
producing a lazy sequence of status snapshots.
"""

import asyncio
from typing import AsyncIterator, Callable, Optional, Any

from ..models.job import ReplicationJob, ReplicationState, StatusEvent
from ..utils.store_client import StoreClient
from ..utils.logger import get_logger
from ..core.exceptions import ObservationTransientFailure, StoreError

# Seconds between poll cycles
POLL_INTERVAL_SECONDS = 5.0

DETACHED_REASON = "monitoring stopped"


class StatusPoller:
    """
    Per-job polling state machine: observing -> completed | error | failed.

    Each cycle fetches the replication request document and the target
    database info concurrently. A failed fetch means "no new information
    this cycle"; the previously known state is kept.
    """

    def __init__(self,
                 store: StoreClient,
                 poll_interval: float = POLL_INTERVAL_SECONDS,
                 debug_sink: Optional[Callable[[str], Any]] = None):
        """
        Initialize StatusPoller.

        Args:
            store: Document store client
            poll_interval: Seconds to wait between cycles
            debug_sink: Optional callable receiving raw fetch results each cycle
        """
        self.store = store
        self.poll_interval = poll_interval
        self.debug_sink = debug_sink
        self.logger = get_logger(__name__)

    async def observe(self, job: ReplicationJob,
                      stop_event: Optional[asyncio.Event] = None) -> AsyncIterator[StatusEvent]:
        """
        Poll a job until it reaches a terminal state.

        Yields one non-terminal snapshot per cycle, then exactly one terminal
        snapshot. Live jobs are observed until ``stop_event`` is set; the
        terminal snapshot of a stopped job keeps its last observed state.
        """
        while True:
            await self.poll_once(job)
            yield job.snapshot()

            if job.state.is_terminal:
                break
            if await self._wait(stop_event):
                yield job.snapshot(terminal=True, reason=DETACHED_REASON)
                return

        yield job.snapshot(terminal=True)

    async def poll_once(self, job: ReplicationJob):
        """Run one observation cycle and apply its results to the job."""
        doc_result, info_result = await asyncio.gather(
            self.store.get_document(job.control_url, job.job_id),
            self.store.get_database_info(job.target_url),
            return_exceptions=True
        )

        if self.debug_sink is not None:
            self.debug_sink(f"{job.database_name} {job.job_id}: doc={doc_result!r} info={info_result!r}")

        if self._usable(job, "replication document", doc_result):
            self._apply_replication_document(job, doc_result)

        if self._usable(job, "target info", info_result):
            job.target_doc_count = info_result.total

    def _usable(self, job: ReplicationJob, operation: str, result) -> bool:
        if isinstance(result, StoreError):
            failure = ObservationTransientFailure(job.database_name, operation, result.message)
            self.logger.debug(failure.message, extra={"job_id": job.job_id})
            return False
        if isinstance(result, BaseException):
            raise result
        return True

    def _apply_replication_document(self, job: ReplicationJob, doc: dict):
        stats = doc.get("_replication_stats")
        if isinstance(stats, dict):
            job.doc_failures = int(stats.get("doc_write_failures") or 0)

        state = ReplicationState.from_store(doc.get("_replication_state"))
        store_reason = doc.get("_replication_state_reason")

        # Jobs finish as completed or error; the store's "failed" ends as error
        if state in (ReplicationState.ERROR, ReplicationState.FAILED):
            state = ReplicationState.ERROR
            job.has_error = True
            job.error_reason = f"error - {store_reason}" if store_reason else "error"
        elif state == ReplicationState.COMPLETED and job.doc_failures > 0:
            state = ReplicationState.ERROR
            job.has_error = True
            job.error_reason = f"error - {job.doc_failures} document write failures"

        if job.advance(state):
            self.logger.info("Replication state changed", extra={
                "database_name": job.database_name,
                "job_id": job.job_id,
                "state": job.state.value
            })

    async def _wait(self, stop_event: Optional[asyncio.Event]) -> bool:
        """Sleep one poll interval; True if asked to stop observing."""
        if stop_event is None:
            await asyncio.sleep(self.poll_interval)
            return False
        if stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return False
        return True
