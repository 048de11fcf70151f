"""
QueueManager service for Replication Orchestrator

Bounded scheduler: a fixed-size pool of asyncio workers draining a queue of
database names, each name handled by one pipeline run.
"""

import asyncio
import re
from typing import Awaitable, Callable, Dict, Iterable, List, Any

from ..utils.logger import get_logger, LoggerContext
from ..core.exceptions import QueueError, ReplicationOrchestratorError, ErrorRegistry

# System databases (_replicator, _users, ...) are never replicated
RESERVED_NAME_PATTERN = re.compile(r"^_")


def is_reserved_name(name: str) -> bool:
    return bool(RESERVED_NAME_PATTERN.match(name))


class QueueManager:
    """
    Runs a per-name handler for every queued name with bounded concurrency.

    Guarantees:
    - at most ``concurrency`` handlers run at once
    - every queued name is handled exactly once
    - a failing handler never cancels the others
    - run() returns only after every handler has settled
    """

    def __init__(self, concurrency: int = 1, error_registry: ErrorRegistry = None):
        """
        Initialize QueueManager.

        Args:
            concurrency: Worker pool size
            error_registry: Registry recording handler failures
        """
        if concurrency < 1:
            raise QueueError("configure", f"concurrency must be at least 1, got {concurrency}")

        self.concurrency = concurrency
        self.error_registry = error_registry or ErrorRegistry()
        self._pending: List[str] = []
        self._active = 0
        self._peak_active = 0
        self._processed = 0
        self._failed = 0
        self._skipped: List[str] = []

        self.logger = get_logger(__name__)

    def enqueue(self, names: Iterable[str]) -> int:
        """
        Add database names to the queue, dropping reserved names.

        Returns:
            Number of names enqueued
        """
        added = 0
        for name in names:
            if is_reserved_name(name):
                self._skipped.append(name)
                continue
            self._pending.append(name)
            added += 1

        self.logger.info("Databases enqueued", extra={
            "enqueued": added,
            "queue_size": len(self._pending),
            "skipped_reserved": len(self._skipped)
        })
        return added

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    async def run(self, handler: Callable[[str], Awaitable[Any]]):
        """
        Drain the queue through ``handler`` and wait for every run to settle.

        Args:
            handler: Coroutine function processing one database name
        """
        queue: asyncio.Queue = asyncio.Queue()
        for name in self._pending:
            queue.put_nowait(name)
        self._pending = []

        worker_count = min(self.concurrency, queue.qsize())
        if worker_count == 0:
            self.logger.info("Queue empty, nothing to schedule")
            return

        self.logger.info("Starting workers", extra={
            "workers": worker_count,
            "queue_size": queue.qsize()
        })

        workers = [
            asyncio.create_task(self._worker(f"worker-{i}", queue, handler))
            for i in range(worker_count)
        ]
        try:
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        self.logger.info("Queue drained", extra=self.get_queue_statistics())

    async def _worker(self, worker_name: str, queue: asyncio.Queue, handler: Callable[[str], Awaitable[Any]]):
        while True:
            name = await queue.get()
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
            try:
                with LoggerContext(worker=worker_name, database_name=name):
                    await handler(name)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._failed += 1
                if isinstance(e, ReplicationOrchestratorError):
                    self.error_registry.record_error(e)
                self.logger.error("Pipeline failed", exc_info=True, extra={
                    "database_name": name,
                    "error": str(e)
                })
            finally:
                self._active -= 1
                self._processed += 1
                queue.task_done()

    def get_queue_statistics(self) -> Dict[str, Any]:
        """Get queue statistics."""
        return {
            "queue_size": len(self._pending),
            "active": self._active,
            "peak_active": self._peak_active,
            "processed": self._processed,
            "failed": self._failed,
            "skipped_reserved": len(self._skipped),
            "concurrency": self.concurrency
        }
