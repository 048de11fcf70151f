"""
SecurityMigrator for Replication Orchestrator

Copies a database's access-control (``_security``) document from source to
target, without the grant belonging to the account used to read the source.
"""

from typing import Any, Dict

from ..models.job import ReplicationJob
from ..utils.store_client import StoreClient
from ..utils.urls import url_username
from ..utils.logger import get_logger
from ..core.exceptions import SecurityMigrationError, StoreError

SECURITY_DOCUMENT = "_security"


class SecurityMigrator:
    """Copies security documents for successfully replicated databases."""

    def __init__(self, store: StoreClient):
        self.store = store
        self.logger = get_logger(__name__)

    async def migrate(self, job: ReplicationJob) -> bool:
        """
        Copy the source security document to the target.

        Returns:
            True if a document was written, False if the source had none

        Raises:
            SecurityMigrationError: If reading or writing the document fails
        """
        try:
            security = await self.store.get_document(job.source_url, SECURITY_DOCUMENT)
        except StoreError as e:
            raise SecurityMigrationError(job.database_name, e.message)

        if not security:
            self.logger.debug("No security document to copy", extra={"database_name": job.database_name})
            return False

        security = strip_account(security, url_username(job.source_url))

        try:
            await self.store.update_document(job.target_url, SECURITY_DOCUMENT, security)
        except StoreError as e:
            raise SecurityMigrationError(job.database_name, e.message)

        self.logger.info("Security document copied", extra={"database_name": job.database_name})
        return True


def strip_account(security: Dict[str, Any], username) -> Dict[str, Any]:
    """Return a copy of a security document without the given user's Cloudant grant."""
    result = dict(security)
    result.pop("_id", None)
    result.pop("_rev", None)
    cloudant = result.get("cloudant")
    if username and isinstance(cloudant, dict):
        result["cloudant"] = {user: roles for user, roles in cloudant.items() if user != username}
    return result
