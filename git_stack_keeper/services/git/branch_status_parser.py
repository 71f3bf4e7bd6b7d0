"""Parsing of ``git branch -vv`` output"""

import re
from typing import Dict, Iterable, Optional, Pattern

from git_stack_keeper.models.branch import Commit, GitBranchStatus

# Format:
# * main                1234567 [origin/main: ahead 1, behind 2] Commit message
# + feature             89abcde (/path/to/worktree) [origin/feature: gone] Commit message
#   local-only          fedcba9 Commit message
_HEAD = r"^(?P<marker>[*+])?\s*(?P<name>\S+)\s+(?P<sha>[0-9a-fA-F]+)"
# Worktree paths may contain parentheses, so the closing one must be followed by the rest of the line
_WORKTREE = r"(?:\s+\((?P<worktree>.*?)\)(?=\s+\[|\s+\S))?"
_TRACKING = (
    r"(?:\s+\[(?P<remote>[^\]:]+)"
    r"(?::\s*(?:"
    r"ahead\s+(?P<ahead>\d+)(?:,\s*behind\s+(?P<behind>\d+))?"
    r"|behind\s+(?P<behind_only>\d+)"
    r"|(?P<gone>gone)"
    r"))?\])?"
)
_MESSAGE = r"\s+(?P<message>.*)$"

BRANCH_STATUS_PATTERN = re.compile(_HEAD + _TRACKING + _MESSAGE)
WORKTREE_BRANCH_STATUS_PATTERN = re.compile(_HEAD + _WORKTREE + _TRACKING + _MESSAGE)


def _pattern_for(line: str) -> Pattern:
    # Only branches checked out in another worktree ("+") carry a worktree path
    if line.lstrip().startswith("+"):
        return WORKTREE_BRANCH_STATUS_PATTERN
    return BRANCH_STATUS_PATTERN


def parse_branch_status(line: str) -> Optional[GitBranchStatus]:
    """Parse one line of ``git branch -vv`` output.

    Returns None for lines that do not describe a branch (e.g. detached HEAD).
    """
    line = line.rstrip("\n")
    match = _pattern_for(line).match(line)
    if not match:
        return None

    name = match.group("name")
    if name.startswith("("):
        return None

    remote = match.group("remote")
    gone = match.group("gone") is not None
    ahead = int(match.group("ahead") or 0)
    behind = int(match.group("behind") or match.group("behind_only") or 0)

    return GitBranchStatus(
        branch_name=name,
        remote_tracking_branch_name=remote,
        remote_branch_exists=remote is not None and not gone,
        is_current_branch=match.group("marker") == "*",
        ahead=ahead,
        behind=behind,
        tip=Commit(sha=match.group("sha"), message=match.group("message").strip()),
        worktree_path=match.groupdict().get("worktree"),
    )


def parse_branch_statuses(output: str, branch_names: Optional[Iterable[str]] = None) -> Dict[str, GitBranchStatus]:
    """Parse full ``git branch -vv`` output, optionally keeping only ``branch_names``."""
    wanted = set(branch_names) if branch_names is not None else None
    statuses: Dict[str, GitBranchStatus] = {}
    for line in output.splitlines():
        if not line.strip():
            continue
        status = parse_branch_status(line)
        if status is None:
            continue
        if wanted is not None and status.branch_name not in wanted:
            continue
        statuses[status.branch_name] = status
    return statuses
