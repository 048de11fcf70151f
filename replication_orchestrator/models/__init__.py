"""
Data models for Replication Orchestrator

Contains the replication job, its status snapshots, and run-level records.
"""

# Job models
from .job import (
    ReplicationJob,
    ReplicationState,
    StatusEvent,
    TERMINAL_STATES,
    STATE_TRANSITIONS,
    can_transition_to,
    get_valid_transitions
)

# Run models
from .execution import (
    RunConfig,
    RunSummary,
    JobRecord,
    JobOutcome,
    MAX_LIVE_REPLICATIONS
)

__all__ = [
    # Job models
    "ReplicationJob",
    "ReplicationState",
    "StatusEvent",
    "TERMINAL_STATES",
    "STATE_TRANSITIONS",
    "can_transition_to",
    "get_valid_transitions",

    # Run models
    "RunConfig",
    "RunSummary",
    "JobRecord",
    "JobOutcome",
    "MAX_LIVE_REPLICATIONS"
]
