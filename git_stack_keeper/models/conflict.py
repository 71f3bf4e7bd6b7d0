"""Conflict resolution enums"""
from enum import Enum


class ConflictOperationType(Enum):
    """Kind of operation that stopped on a conflict."""
    MERGE = "merge"
    REBASE = "rebase"


class ConflictResolutionResult(Enum):
    """Outcome of waiting for a user to resolve conflicts."""
    NOT_STARTED = "not-started"
    COMPLETED = "completed"
    ABORTED = "aborted"
    TIMEOUT = "timeout"
