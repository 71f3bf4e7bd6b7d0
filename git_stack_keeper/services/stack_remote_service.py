"""Service for pushing and pulling stack branches"""

from typing import List

from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import StackStatus
from git_stack_keeper.services.git import GitOperations
from git_stack_keeper.services.git.worktrees import GitOperationsFactory

logger = get_logger(__name__)


def batched(items: List[str], size: int) -> List[List[str]]:
    """Split ``items`` into consecutive batches of at most ``size``."""
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    return [items[i:i + size] for i in range(0, len(items), size)]


class StackRemoteService:
    """Synchronizes stack branches with the remote using as few git calls as possible.

    Branch status is re-read from git on every call, so the StackStatus passed in
    only decides which branches belong to the stack.
    """

    def __init__(self, git_factory: GitOperationsFactory, working_dir: str):
        """Initialize the service."""
        self.git_factory = git_factory
        self.working_dir = working_dir

    def _default_git(self) -> GitOperations:
        return self.git_factory(self.working_dir)

    def pull(self, status: StackStatus) -> None:
        """Bring every branch that is behind its remote up to date.

        The current branch is pulled, branches checked out in other worktrees are
        pulled inside those worktrees, and everything else is fetched into its local
        ref in one call.
        """
        git_ops = self._default_git()
        names = list(dict.fromkeys([status.source_branch.name, *(b.name for b in status.all_branches())]))
        statuses = git_ops.get_branch_statuses(names)
        current_branch = git_ops.get_current_branch()

        behind = [
            name for name in names
            if name in statuses and statuses[name].remote_branch_exists and statuses[name].behind > 0
        ]
        if not behind:
            logger.debug("All branches are up to date with the remote")
            return

        in_other_worktrees = [
            name for name in behind
            if name != current_branch
            and not statuses[name].is_current_branch
            and statuses[name].worktree_path is not None
        ]
        others = [name for name in behind if name != current_branch and name not in in_other_worktrees]

        if current_branch in behind:
            logger.info(f"Pulling changes for {current_branch} from remote")
            git_ops.pull_branch(current_branch)

        for name in in_other_worktrees:
            worktree_path = statuses[name].worktree_path
            assert worktree_path is not None
            logger.info(f"Pulling changes for {name} (worktree: \"{worktree_path}\") from remote")
            git_ops.pull_branch_for_worktree(name, worktree_path)

        if others:
            logger.info(f"Fetching changes for {', '.join(others)} from remote")
            git_ops.fetch_branch_ref_specs(others)

    def push(self, status: StackStatus, max_batch_size: int, force_with_lease: bool = False) -> None:
        """Push new branches one at a time and branches ahead of their remote in batches."""
        git_ops = self._default_git()
        names = list(dict.fromkeys(b.name for b in status.all_branches()))
        statuses = git_ops.get_branch_statuses(names)

        new_branches = [
            name for name in names
            if name in statuses and statuses[name].remote_tracking_branch_name is None
        ]
        for name in new_branches:
            logger.info(f"Pushing new branch {name} to remote")
            git_ops.push_new_branch(name)

        ahead = [
            name for name in names
            if name in statuses and statuses[name].remote_branch_exists and statuses[name].ahead > 0
        ]
        for batch in batched(ahead, max_batch_size):
            logger.info(f"Pushing changes for {', '.join(batch)} to remote")
            git_ops.push_branches(batch, force_with_lease)
