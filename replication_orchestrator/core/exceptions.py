"""
Exception classes for Replication Orchestrator

Provides the hierarchy of exceptions raised while validating a run, talking
to the document store and driving individual replication jobs.
"""

from typing import Optional, Dict, Any

from ..utils.urls import redact_url


class ReplicationOrchestratorError(Exception):
    """Base exception for all replication orchestrator errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# Run-level validation errors. All of these abort before any job starts.

class InvalidURLError(ReplicationOrchestratorError):
    """Raised when a source or target URL lacks a scheme or host."""

    def __init__(self, which: str, url: str, message: Optional[str] = None):
        super().__init__(
            message or f"invalid {which} URL",
            error_code="INVALID_URL",
            details={"which": which, "url": redact_url(url)}
        )
        self.which = which


class AmbiguousDatabaseSelectionError(ReplicationOrchestratorError):
    """Raised when database names are given in the URLs and as options."""

    def __init__(self):
        super().__init__(
            "database names supplied in URLs and as other options",
            error_code="AMBIGUOUS_DATABASE_SELECTION"
        )


class NoDatabasesSelectedError(ReplicationOrchestratorError):
    """Raised when no database names can be resolved from any source."""

    def __init__(self, message: str = "no source or target database names supplied"):
        super().__init__(message, error_code="NO_DATABASES_SELECTED")


class ConfigurationError(ReplicationOrchestratorError):
    """Raised when there's an error in configuration."""

    def __init__(self, config_key: str, message: str):
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key}
        )
        self.config_key = config_key


class MonitorSuppressionError(ConfigurationError):
    """Raised when monitoring is suppressed for a non-live run."""

    def __init__(self):
        super().__init__("no_monitor", "only applicable together with live replication")


class TooManyLiveReplicationsError(ReplicationOrchestratorError):
    """Raised when a live run asks for more replications than the store allows."""

    def __init__(self, requested: int, limit: int):
        super().__init__(
            f"Maximum number of continuous replications is {limit} ({requested} requested)",
            error_code="TOO_MANY_LIVE_REPLICATIONS",
            details={"requested": requested, "limit": limit}
        )
        self.requested = requested
        self.limit = limit


class OrchestratorError(ReplicationOrchestratorError):
    """Raised when orchestrator-level operations fail."""

    def __init__(self, message: str):
        super().__init__(
            f"Orchestrator error: {message}",
            error_code="ORCHESTRATOR_ERROR"
        )


class QueueError(ReplicationOrchestratorError):
    """Raised when queue operations fail."""

    def __init__(self, operation: str, message: str):
        super().__init__(
            f"Queue operation '{operation}' failed: {message}",
            error_code="QUEUE_ERROR",
            details={"operation": operation}
        )


class ControlDatabaseError(OrchestratorError):
    """Raised when the source cluster's control database cannot be created."""

    def __init__(self, server_url: str, message: str):
        super().__init__(f"cannot create control database on {redact_url(server_url)}: {message}")
        self.details = {"server_url": redact_url(server_url)}


# Store errors

class StoreError(ReplicationOrchestratorError):
    """Raised when a document store request fails."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None,
                 reason: Optional[str] = None):
        super().__init__(
            f"Store operation '{operation}' failed: {message}",
            error_code="STORE_ERROR",
            details={"operation": operation, "status_code": status_code, "reason": reason}
        )
        self.operation = operation
        self.status_code = status_code
        self.reason = reason


class DocumentNotFoundError(StoreError):
    """Raised when a requested document or database does not exist."""

    def __init__(self, operation: str, doc_id: str, reason: Optional[str] = None):
        super().__init__(operation, f"{doc_id} not found", status_code=404, reason=reason)
        self.doc_id = doc_id


# Per-job errors. These never abort the run.

class RegistrationError(ReplicationOrchestratorError):
    """Raised when the store refuses a replication request."""

    def __init__(self, database_name: str, message: str, reason: Optional[str] = None):
        super().__init__(
            f"Replication of {database_name} could not be registered: {message}",
            error_code="REGISTRATION_ERROR",
            details={"database_name": database_name, "reason": reason}
        )
        self.database_name = database_name
        self.reason = reason


class ObservationTransientFailure(ReplicationOrchestratorError):
    """A single poll cycle could not fetch fresh state; retried next cycle."""

    def __init__(self, database_name: str, operation: str, message: str):
        super().__init__(
            f"Polling {operation} for {database_name} failed: {message}",
            error_code="OBSERVATION_TRANSIENT_FAILURE",
            details={"database_name": database_name, "operation": operation}
        )


class ReplicationFailedError(ReplicationOrchestratorError):
    """The store reported a replication as failed or lossy."""

    def __init__(self, database_name: str, reason: str):
        super().__init__(
            f"Replication of {database_name} failed: {reason}",
            error_code="REPLICATION_FAILED",
            details={"database_name": database_name, "reason": reason}
        )
        self.database_name = database_name
        self.reason = reason


class SecurityMigrationError(ReplicationOrchestratorError):
    """Raised when the security document could not be copied to the target."""

    def __init__(self, database_name: str, message: str):
        super().__init__(
            f"Security document of {database_name} not copied: {message}",
            error_code="SECURITY_MIGRATION_ERROR",
            details={"database_name": database_name}
        )
        self.database_name = database_name


class ErrorRegistry:
    """Registry for tracking and analyzing errors."""

    def __init__(self):
        self.error_counts = {}

    def record_error(self, error: ReplicationOrchestratorError):
        """Record an error for analysis."""
        error_type = error.__class__.__name__
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics for monitoring."""
        return {
            "total_errors": sum(self.error_counts.values()),
            "error_counts": dict(self.error_counts),
            "most_common_error": max(self.error_counts.items(), key=lambda x: x[1])[0] if self.error_counts else None
        }
