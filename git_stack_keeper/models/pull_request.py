"""Pull request model"""
from enum import Enum
from dataclasses import dataclass


class PullRequestState(Enum):
    """State of a pull request."""
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


@dataclass(frozen=True)
class PullRequest:
    """A pull request whose head is a stack branch."""
    number: int
    title: str
    body: str
    state: PullRequestState
    url: str
    is_draft: bool = False
    head_ref_name: str = ""
