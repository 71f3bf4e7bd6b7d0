"""Service for computing the status tree of a stack"""

from dataclasses import replace
from typing import Dict, Mapping, Optional, TYPE_CHECKING

from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import (
    BranchDetail,
    GitBranchStatus,
    ParentBranchStatus,
    RemoteTrackingBranchStatus,
    SourceBranchDetail,
    StackStatus,
)
from git_stack_keeper.models.pull_request import PullRequest
from git_stack_keeper.models.stack import BranchNode, Stack

if TYPE_CHECKING:
    from git_stack_keeper.services.git import GitHubService, GitOperations

logger = get_logger(__name__)


def _remote_tracking(status: GitBranchStatus) -> Optional[RemoteTrackingBranchStatus]:
    if status.remote_tracking_branch_name is None:
        return None
    return RemoteTrackingBranchStatus(
        name=status.remote_tracking_branch_name,
        exists=status.remote_branch_exists,
        ahead=status.ahead,
        behind=status.behind,
    )


class StackStatusService:
    """Builds StackStatus snapshots from stack configuration and raw git status."""

    def __init__(self, git_service: "GitOperations", github_service: Optional["GitHubService"] = None):
        """Initialize the service."""
        self.git_service = git_service
        self.github_service = github_service

    def compute_status(
        self,
        stack: Stack,
        current_branch: Optional[str] = None,
        include_pull_requests: bool = True,
    ) -> StackStatus:
        """Compute a fresh status tree for ``stack``.

        Issues one batched branch status query, plus one pull request lookup per
        stack branch when ``include_pull_requests`` is set.
        """
        branch_names = stack.all_branch_names()
        statuses = self.git_service.get_branch_statuses([stack.source_branch, *branch_names])

        pull_requests: Dict[str, Optional[PullRequest]] = {}
        if include_pull_requests and self.github_service is not None:
            pull_requests = self.github_service.get_pull_requests(branch_names)

        source_status = statuses.get(stack.source_branch)
        if source_status is None:
            logger.warning(f"Source branch '{stack.source_branch}' of stack '{stack.name}' does not exist locally")

        source = SourceBranchDetail(
            name=stack.source_branch,
            exists=source_status is not None,
            tip=source_status.tip if source_status else None,
            remote_tracking=_remote_tracking(source_status) if source_status else None,
            worktree_path=source_status.worktree_path if source_status else None,
        )

        root_branches = tuple(
            self._build_branch(node, stack.source_branch, source.exists, statuses, pull_requests)
            for node in stack.branches
        )

        return StackStatus(
            name=stack.name,
            source_branch=source,
            root_branches=root_branches,
            current_branch=current_branch,
        )

    def _build_branch(
        self,
        node: BranchNode,
        parent_name: str,
        parent_exists: bool,
        statuses: Mapping[str, GitBranchStatus],
        pull_requests: Mapping[str, Optional[PullRequest]],
    ) -> BranchDetail:
        """Build the detail for ``node``, measured against its effective parent ``parent_name``.

        Only the source branch can be a missing effective parent. Branches under it
        get no parent status.
        """
        status = statuses.get(node.name)
        pull_request = pull_requests.get(node.name)

        if status is None:
            children = tuple(
                self._build_branch(child, parent_name, parent_exists, statuses, pull_requests)
                for child in node.children
            )
            return BranchDetail(name=node.name, exists=False, pull_request=pull_request, children=children)

        parent = None
        if parent_exists:
            ahead, behind = 0, 0
            if status.remote_branch_exists:
                ahead, behind = self.git_service.compare_branches(node.name, parent_name)
            parent = ParentBranchStatus(name=parent_name, ahead=ahead, behind=behind)

        branch = BranchDetail(
            name=node.name,
            exists=True,
            tip=status.tip,
            remote_tracking=_remote_tracking(status),
            worktree_path=status.worktree_path,
            pull_request=pull_request,
            parent=parent,
        )

        # Inactive branches are skipped when establishing parents for descendants
        if branch.is_active:
            child_parent, child_parent_exists = node.name, True
        else:
            child_parent, child_parent_exists = parent_name, parent_exists
            logger.debug(f"Branch {node.name} is {branch.state.value}, children measured against {parent_name}")

        children = tuple(
            self._build_branch(child, child_parent, child_parent_exists, statuses, pull_requests)
            for child in node.children
        )
        return replace(branch, children=children)
