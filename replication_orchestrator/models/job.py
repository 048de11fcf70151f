"""
Replication job data models for Replication Orchestrator

Defines the per-database replication job, its states, and the status
snapshots emitted while it is observed.
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReplicationState(Enum):
    """Replication state as reported by the store's replicator."""
    NEW = "new"
    TRIGGERED = "triggered"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    FAILED = "failed"

    @classmethod
    def from_store(cls, value: Optional[str]) -> "ReplicationState":
        """
        Map a ``_replication_state`` value onto a ReplicationState.

        A missing value means the replicator has not picked the document up
        yet. Values outside the known set (e.g. newer scheduler states such
        as "pending" or "crashing") count as running.
        """
        if not value:
            return cls.NEW
        try:
            return cls(value)
        except ValueError:
            return cls.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({ReplicationState.COMPLETED, ReplicationState.ERROR, ReplicationState.FAILED})

# State transition rules. Terminal states have no exits and nothing re-enters NEW.
STATE_TRANSITIONS = {
    ReplicationState.NEW: [ReplicationState.TRIGGERED, ReplicationState.RUNNING,
                           ReplicationState.COMPLETED, ReplicationState.ERROR, ReplicationState.FAILED],
    ReplicationState.TRIGGERED: [ReplicationState.RUNNING,
                                 ReplicationState.COMPLETED, ReplicationState.ERROR, ReplicationState.FAILED],
    ReplicationState.RUNNING: [ReplicationState.TRIGGERED,
                               ReplicationState.COMPLETED, ReplicationState.ERROR, ReplicationState.FAILED],
    ReplicationState.COMPLETED: [],
    ReplicationState.ERROR: [],
    ReplicationState.FAILED: [],
}


def can_transition_to(current: ReplicationState, target: ReplicationState) -> bool:
    """Check if a job can move from its current state to the target state."""
    return target in STATE_TRANSITIONS.get(current, [])


def get_valid_transitions(current: ReplicationState) -> List[ReplicationState]:
    """Get list of valid state transitions from the current state."""
    return STATE_TRANSITIONS.get(current, [])


@dataclass(frozen=True)
class StatusEvent:
    """Immutable snapshot of a job, emitted once per poll cycle and once at the end."""

    database_name: str
    job_id: Optional[str]
    state: ReplicationState
    source_doc_count: int
    target_doc_count: int
    percent_complete: float
    doc_failures: int
    has_error: bool
    terminal: bool = False
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "database_name": self.database_name,
            "job_id": self.job_id,
            "state": self.state.value,
            "source_doc_count": self.source_doc_count,
            "target_doc_count": self.target_doc_count,
            "percent_complete": self.percent_complete,
            "doc_failures": self.doc_failures,
            "has_error": self.has_error,
            "terminal": self.terminal,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class ReplicationJob:
    """
    One database being replicated from source to target.

    A job is owned by exactly one pipeline stage at a time, so its fields
    are mutated without locking.
    """

    # Locations
    source_url: str
    target_url: str
    database_name: str
    control_url: str

    # Replication request document id
    job_id: str

    # Mode
    is_live: bool = False

    # Observed state
    state: ReplicationState = ReplicationState.NEW
    source_doc_count: int = 0
    target_doc_count: int = 0
    doc_failures: int = 0
    has_error: bool = False
    error_reason: Optional[str] = None
    security_error: Optional[str] = None

    # Timing
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def percent_complete(self) -> float:
        """Fraction of source documents present on the target (0.0 - 1.0, may exceed 1.0)."""
        if self.source_doc_count > 0:
            return self.target_doc_count / self.source_doc_count
        return 0.0

    def advance(self, state: ReplicationState) -> bool:
        """
        Move to a new state if the transition is allowed.

        Returns:
            True if the state changed
        """
        if state == self.state or not can_transition_to(self.state, state):
            return False
        self.state = state
        if state.is_terminal:
            self.completed_at = utcnow()
        return True

    def mark_failed(self, reason: str):
        """Record a failure and finish the job in the error state."""
        self.has_error = True
        self.error_reason = reason
        if not self.state.is_terminal:
            self.advance(ReplicationState.ERROR)

    def snapshot(self, terminal: bool = False, reason: Optional[str] = None) -> StatusEvent:
        """Take an immutable status snapshot."""
        return StatusEvent(
            database_name=self.database_name,
            job_id=self.job_id,
            state=self.state,
            source_doc_count=self.source_doc_count,
            target_doc_count=self.target_doc_count,
            percent_complete=self.percent_complete,
            doc_failures=self.doc_failures,
            has_error=self.has_error,
            terminal=terminal,
            reason=reason if reason is not None else self.error_reason
        )

    def replication_document(self) -> Dict[str, Any]:
        """Body of the replication request written to the control database."""
        return {
            "_id": self.job_id,
            "source": self.source_url,
            "target": self.target_url,
            "create_target": True,
            "continuous": self.is_live
        }

    def get_duration(self) -> Optional[float]:
        """Get job duration in seconds if finished."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None
