"""Branch status models used to describe a stack"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from git_stack_keeper.models.pull_request import PullRequest, PullRequestState


@dataclass(frozen=True)
class Commit:
    """Tip commit of a branch."""
    sha: str
    message: str


@dataclass(frozen=True)
class RemoteTrackingBranchStatus:
    """Remote tracking branch of a local branch.

    ``exists`` is False when the tracking ref is configured but the remote branch is gone.
    """
    name: str
    exists: bool
    ahead: int = 0
    behind: int = 0


@dataclass(frozen=True)
class GitBranchStatus:
    """Raw status of one branch as reported by ``git branch -vv``."""
    branch_name: str
    remote_tracking_branch_name: Optional[str]
    remote_branch_exists: bool
    is_current_branch: bool
    ahead: int
    behind: int
    tip: Commit
    worktree_path: Optional[str] = None


class BranchState(Enum):
    """Lifecycle state of a branch within a stack."""
    ACTIVE = "active"
    REMOTE_GONE = "remote-gone"
    PULL_REQUEST_MERGED = "pull-request-merged"
    NEVER_PUSHED = "never-pushed"
    MISSING = "missing"

    @property
    def is_active(self) -> bool:
        return self is BranchState.ACTIVE

    @property
    def could_be_cleaned_up(self) -> bool:
        return self in (BranchState.REMOTE_GONE, BranchState.PULL_REQUEST_MERGED)

    @classmethod
    def resolve(
        cls,
        exists: bool,
        remote_tracking: Optional[RemoteTrackingBranchStatus],
        pull_request_merged: bool = False,
    ) -> "BranchState":
        """Derive the state from local existence, remote tracking and pull request state."""
        if not exists:
            return cls.MISSING
        if pull_request_merged:
            return cls.PULL_REQUEST_MERGED
        if remote_tracking is None:
            return cls.NEVER_PUSHED
        if not remote_tracking.exists:
            return cls.REMOTE_GONE
        return cls.ACTIVE


@dataclass(frozen=True)
class ParentBranchStatus:
    """Position of a branch relative to its effective parent."""
    name: str
    ahead: int
    behind: int


@dataclass(frozen=True)
class BranchDetailBase:
    """Shape shared by the source branch and the stack branches."""
    name: str
    exists: bool = False
    tip: Optional[Commit] = None
    remote_tracking: Optional[RemoteTrackingBranchStatus] = None
    worktree_path: Optional[str] = None
    state: BranchState = field(init=False, default=BranchState.MISSING)

    def __post_init__(self):
        object.__setattr__(
            self,
            "state",
            BranchState.resolve(self.exists, self.remote_tracking, self._pull_request_merged()),
        )

    def _pull_request_merged(self) -> bool:
        return False

    @property
    def is_active(self) -> bool:
        return self.state.is_active

    @property
    def could_be_cleaned_up(self) -> bool:
        return self.state.could_be_cleaned_up

    @property
    def ahead_of_remote(self) -> int:
        return self.remote_tracking.ahead if self.remote_tracking else 0

    @property
    def behind_remote(self) -> int:
        return self.remote_tracking.behind if self.remote_tracking else 0


@dataclass(frozen=True)
class SourceBranchDetail(BranchDetailBase):
    """The branch every stack is rooted on."""


@dataclass(frozen=True)
class BranchDetail(BranchDetailBase):
    """A stack branch with its pull request, effective parent and children."""
    pull_request: Optional[PullRequest] = None
    parent: Optional[ParentBranchStatus] = None
    children: Tuple["BranchDetail", ...] = ()

    def _pull_request_merged(self) -> bool:
        return self.pull_request is not None and self.pull_request.state == PullRequestState.MERGED


@dataclass(frozen=True)
class StackStatus:
    """Snapshot of a stack's branches. Recomputed after anything that changes branches."""
    name: str
    source_branch: SourceBranchDetail
    root_branches: Tuple[BranchDetail, ...] = ()
    current_branch: Optional[str] = None

    def all_branches(self) -> List[BranchDetail]:
        """All stack branches in pre-order."""
        return list(self._walk(self.root_branches))

    def all_branch_lines(self) -> List[List[BranchDetail]]:
        """Every root-to-leaf path in document order."""
        lines: List[List[BranchDetail]] = []
        for branch in self.root_branches:
            self._collect_lines(branch, [], lines)
        return lines

    def worktree_paths(self) -> Dict[str, str]:
        """Branches checked out in another worktree, mapped to that worktree's path."""
        paths = {}
        for branch in [self.source_branch, *self.all_branches()]:
            if branch.worktree_path:
                paths[branch.name] = branch.worktree_path
        return paths

    @classmethod
    def _walk(cls, branches) -> Iterator[BranchDetail]:
        for branch in branches:
            yield branch
            yield from cls._walk(branch.children)

    @classmethod
    def _collect_lines(cls, branch: BranchDetail, path: List[BranchDetail], lines: List[List[BranchDetail]]):
        path = path + [branch]
        if not branch.children:
            lines.append(path)
            return
        for child in branch.children:
            cls._collect_lines(child, path, lines)
