"""Git-related services for git-stack-keeper."""

from .operations import GitOperations
from .worktrees import WorkingTreeResolver
from .github import GitHubService
from .conflicts import ConflictResolutionDetector
from .branch_status_parser import parse_branch_status, parse_branch_statuses

__all__ = [
    "GitOperations",
    "WorkingTreeResolver",
    "GitHubService",
    "ConflictResolutionDetector",
    "parse_branch_status",
    "parse_branch_statuses",
]
