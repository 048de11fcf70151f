"""
ReplicationRegistrar for Replication Orchestrator

Makes sure the source cluster has a control database and submits
replication request documents to it.
"""

from typing import Set

from ..models.job import ReplicationJob, utcnow
from ..utils.store_client import StoreClient
from ..utils.urls import CONTROL_DATABASE, server_url, redact_url
from ..utils.logger import get_logger
from ..core.exceptions import ControlDatabaseError, RegistrationError, StoreError


class ReplicationRegistrar:
    """
    Registers replication jobs with the store.

    All jobs against one source cluster share its control database.
    """

    def __init__(self, store: StoreClient):
        """
        Initialize ReplicationRegistrar.

        Args:
            store: Document store client
        """
        self.store = store
        self._ensured: Set[str] = set()
        self.logger = get_logger(__name__)

    async def ensure_control_database(self, url: str):
        """
        Create the control database on the cluster hosting ``url``.

        Idempotent; concurrent callers tolerate the "already exists" outcome.

        Raises:
            ControlDatabaseError: For any failure other than "already exists"
        """
        cluster = server_url(url)
        if cluster in self._ensured:
            return

        try:
            created = await self.store.create_database(cluster, CONTROL_DATABASE)
        except StoreError as e:
            self.logger.error("Failed to create control database", extra={
                "server_url": redact_url(cluster),
                "error": str(e)
            })
            raise ControlDatabaseError(cluster, e.reason or e.message)

        self._ensured.add(cluster)
        self.logger.info("Control database ready", extra={
            "server_url": redact_url(cluster),
            "newly_created": created
        })

    async def fetch_source_count(self, job: ReplicationJob):
        """
        Record the source database's document count on the job.

        Raises:
            RegistrationError: If the source database cannot be read
        """
        try:
            info = await self.store.get_database_info(job.source_url)
        except StoreError as e:
            raise RegistrationError(job.database_name, "source database unavailable", reason=e.reason or e.message)
        job.source_doc_count = info.total

    async def submit_job(self, job: ReplicationJob):
        """
        Write the replication request document for a job.

        Raises:
            RegistrationError: If the store rejects the document
        """
        try:
            await self.store.insert_document(job.control_url, job.replication_document())
        except StoreError as e:
            self.logger.warning("Replication request rejected", extra={
                "database_name": job.database_name,
                "job_id": job.job_id,
                "status_code": e.status_code,
                "reason": e.reason
            })
            raise RegistrationError(job.database_name, e.message, reason=e.reason)

        job.started_at = utcnow()
        self.logger.info("Replication request submitted", extra={
            "database_name": job.database_name,
            "job_id": job.job_id,
            "continuous": job.is_live
        })
