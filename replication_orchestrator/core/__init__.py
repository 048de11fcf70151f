"""
Core package for Replication Orchestrator

Contains the main orchestrator class and the exception hierarchy.
"""

from .exceptions import (
    ReplicationOrchestratorError,
    InvalidURLError,
    AmbiguousDatabaseSelectionError,
    NoDatabasesSelectedError,
    ConfigurationError,
    MonitorSuppressionError,
    TooManyLiveReplicationsError,
    OrchestratorError,
    QueueError,
    ControlDatabaseError,
    StoreError,
    DocumentNotFoundError,
    RegistrationError,
    ObservationTransientFailure,
    ReplicationFailedError,
    SecurityMigrationError,
    ErrorRegistry
)
from .orchestrator import ReplicationOrchestrator

__all__ = [
    "ReplicationOrchestrator",
    "ReplicationOrchestratorError",
    "InvalidURLError",
    "AmbiguousDatabaseSelectionError",
    "NoDatabasesSelectedError",
    "ConfigurationError",
    "MonitorSuppressionError",
    "TooManyLiveReplicationsError",
    "OrchestratorError",
    "QueueError",
    "ControlDatabaseError",
    "StoreError",
    "DocumentNotFoundError",
    "RegistrationError",
    "ObservationTransientFailure",
    "ReplicationFailedError",
    "SecurityMigrationError",
    "ErrorRegistry"
]
