"""
Run-level models for Replication Orchestrator

Defines the run configuration, the finalized per-job record handed to the
aggregator, and the summary of a whole orchestration run.
"""

from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, fields

from .job import ReplicationJob, ReplicationState, utcnow

# Hard ceiling on simultaneous continuous replications
MAX_LIVE_REPLICATIONS = 50


class JobOutcome(Enum):
    """Final outcome of one database's pipeline."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    # Submitted but no longer observed (live without monitoring, or stopped)
    DETACHED = "detached"


@dataclass
class RunConfig:
    """Inputs of one orchestration run."""

    source_url: str
    target_url: str
    databases: List[str] = field(default_factory=list)
    all_databases: bool = False
    concurrency: int = 1
    live: bool = False
    copy_security: bool = False
    quiet: bool = False
    no_monitor: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        """Create a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if isinstance(values.get("databases"), str):
            values["databases"] = [name for name in values["databases"].split(",") if name]
        return cls(**values)

    @property
    def effective_concurrency(self) -> int:
        """Live runs always use the live-replication cap as their pool size."""
        if self.live:
            return MAX_LIVE_REPLICATIONS
        return max(1, int(self.concurrency))


@dataclass
class JobRecord:
    """Finalized record of one database's pipeline."""

    database_name: str
    job_id: Optional[str]
    outcome: JobOutcome
    state: ReplicationState = ReplicationState.NEW
    percent_complete: float = 0.0
    source_doc_count: int = 0
    target_doc_count: int = 0
    doc_failures: int = 0
    error_message: Optional[str] = None
    security_error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_job(cls, job: ReplicationJob, outcome: JobOutcome) -> "JobRecord":
        return cls(
            database_name=job.database_name,
            job_id=job.job_id,
            outcome=outcome,
            state=job.state,
            percent_complete=job.percent_complete,
            source_doc_count=job.source_doc_count,
            target_doc_count=job.target_doc_count,
            doc_failures=job.doc_failures,
            error_message=job.error_reason,
            security_error=job.security_error,
            started_at=job.started_at
        )

    @property
    def has_error(self) -> bool:
        return self.outcome == JobOutcome.FAILED or self.security_error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "database_name": self.database_name,
            "job_id": self.job_id,
            "outcome": self.outcome.value,
            "state": self.state.value,
            "percent_complete": self.percent_complete,
            "source_doc_count": self.source_doc_count,
            "target_doc_count": self.target_doc_count,
            "doc_failures": self.doc_failures,
            "error_message": self.error_message,
            "security_error": self.security_error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat()
        }


@dataclass
class RunSummary:
    """Aggregate of all jobs started from one invocation."""

    records: List[JobRecord] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error_statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.records if r.outcome == JobOutcome.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.records if r.outcome == JobOutcome.FAILED)

    @property
    def detached(self) -> int:
        return sum(1 for r in self.records if r.outcome == JobOutcome.DETACHED)

    @property
    def has_errors(self) -> bool:
        return any(r.has_error for r in self.records)

    def get_duration(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "detached": self.detached,
            "has_errors": self.has_errors,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.get_duration(),
            "error_statistics": self.error_statistics,
            "records": [r.to_dict() for r in self.records]
        }
