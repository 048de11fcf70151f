"""
JobDescriptorBuilder for Replication Orchestrator

Turns (source URL, target URL, database name) into a fully specified
ReplicationJob.
"""

import re
import time
from typing import Set

from ..models.job import ReplicationJob
from ..utils.urls import is_absolute_url, extend_url, control_database_url
from ..core.exceptions import InvalidURLError

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9]")


def validate_urls(source_url: str, target_url: str):
    """
    Check that both URLs are absolute.

    Raises:
        InvalidURLError: Naming whichever URL is invalid, source first
    """
    if not is_absolute_url(source_url):
        raise InvalidURLError("source", source_url)
    if not is_absolute_url(target_url):
        raise InvalidURLError("target", target_url)


class JobDescriptorBuilder:
    """
    Builds ReplicationJobs.

    Job ids are the sanitized database name plus a millisecond timestamp.
    The builder remembers every id it issued, so ids stay unique within a
    run even when the same name is built twice in the same millisecond.
    """

    def __init__(self):
        self._issued_ids: Set[str] = set()

    def build(self, source_url: str, target_url: str, database_name: str,
              live: bool = False, skip_extend: bool = False) -> ReplicationJob:
        """
        Build a job in state NEW.

        Args:
            source_url: Source base URL, or source database URL if skip_extend
            target_url: Target base URL, or target database URL if skip_extend
            database_name: Logical database name
            live: Whether the replication is continuous
            skip_extend: The URLs already name the databases

        Returns:
            New ReplicationJob

        Raises:
            InvalidURLError: If either URL lacks a scheme or host
        """
        validate_urls(source_url, target_url)

        if not skip_extend:
            source_url = extend_url(source_url, database_name)
            target_url = extend_url(target_url, database_name)

        return ReplicationJob(
            source_url=source_url,
            target_url=target_url,
            database_name=database_name,
            control_url=control_database_url(source_url),
            job_id=self._next_job_id(database_name),
            is_live=live
        )

    def _next_job_id(self, database_name: str) -> str:
        prefix = _UNSAFE_ID_CHARS.sub("", database_name)
        stamp = int(time.time() * 1000)
        job_id = f"{prefix}_{stamp}"
        while job_id in self._issued_ids:
            stamp += 1
            job_id = f"{prefix}_{stamp}"
        self._issued_ids.add(job_id)
        return job_id
