"""
Services package for Replication Orchestrator

Contains the pipeline stages, the bounded scheduler and the progress aggregator.
"""

from .job_builder import JobDescriptorBuilder
from .registrar import ReplicationRegistrar
from .status_poller import StatusPoller, POLL_INTERVAL_SECONDS
from .security_migrator import SecurityMigrator
from .monitoring_service import MonitoringService, ProgressSink, ProgressUpdate, SilentCounterSink
from .job_manager import JobManager, PipelineOptions
from .queue_manager import QueueManager

__all__ = [
    "JobDescriptorBuilder",
    "ReplicationRegistrar",
    "StatusPoller",
    "POLL_INTERVAL_SECONDS",
    "SecurityMigrator",
    "MonitoringService",
    "ProgressSink",
    "ProgressUpdate",
    "SilentCounterSink",
    "JobManager",
    "PipelineOptions",
    "QueueManager"
]
