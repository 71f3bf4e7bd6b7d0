"""Service for replaying source branch changes down a stack"""

import asyncio
from functools import partial
from typing import Callable, List, Optional

from git_stack_keeper.constants import DEFAULT_POLL_INTERVAL
from git_stack_keeper.exceptions import (
    ConflictError,
    ConflictResolutionTimeoutError,
    OperationAbortedError,
)
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import BranchDetail, BranchDetailBase, StackStatus
from git_stack_keeper.models.conflict import ConflictOperationType, ConflictResolutionResult
from git_stack_keeper.models.stack import UpdateStrategy
from git_stack_keeper.services.git import ConflictResolutionDetector, GitOperations, WorkingTreeResolver
from git_stack_keeper.services.git.worktrees import GitOperationsFactory

logger = get_logger(__name__)


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError()


class StackUpdateService:
    """Updates every branch line of a stack by merge or rebase.

    Precondition: nothing else runs git commands against the affected working
    trees while an update is in progress. Operations are strictly sequential.
    """

    def __init__(
        self,
        git_factory: GitOperationsFactory,
        working_dir: str,
        detector: Optional[ConflictResolutionDetector] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        conflict_timeout: Optional[float] = None,
    ):
        """Initialize the service.

        Args:
            git_factory: Creates GitOperations for a working directory
            working_dir: Default working directory
            detector: Conflict resolution detector
            poll_interval: Seconds between conflict resolution checks
            conflict_timeout: Seconds to wait for conflict resolution (None = no limit)
        """
        self.git_factory = git_factory
        self.working_dir = working_dir
        self.detector = detector or ConflictResolutionDetector()
        self.poll_interval = poll_interval
        self.conflict_timeout = conflict_timeout

    def _resolver(self, status: StackStatus) -> WorkingTreeResolver:
        return WorkingTreeResolver(self.git_factory, self.working_dir, status.worktree_paths())

    async def update(
        self,
        status: StackStatus,
        strategy: UpdateStrategy,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        if strategy == UpdateStrategy.REBASE:
            await self.update_using_rebase(status, cancel_event)
        else:
            await self.update_using_merge(status, cancel_event)

    # Merge

    async def update_using_merge(self, status: StackStatus, cancel_event: Optional[asyncio.Event] = None) -> None:
        """Merge each branch's effective parent into it, line by line from the source branch down.

        Branches shared by several lines are merged again for each line.
        """
        logger.info(f"Updating stack '{status.name}' using merge...")
        resolver = self._resolver(status)

        for line in status.all_branch_lines():
            await self._update_line_using_merge(resolver, status.source_branch.name, line, cancel_event)

    async def _update_line_using_merge(
        self,
        resolver: WorkingTreeResolver,
        source_branch: str,
        line: List[BranchDetail],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        current_parent = source_branch
        for branch in line:
            if not branch.is_active:
                logger.debug(f"Branch {branch.name} is {branch.state.value}, skipping")
                continue

            _check_cancelled(cancel_event)
            logger.info(f"Merging {current_parent} into {branch.name}")
            git_ops = resolver.for_branch(branch.name)
            git_ops.change_branch(branch.name)
            await self._run_with_conflict_handling(
                git_ops,
                ConflictOperationType.MERGE,
                partial(git_ops.merge_from_local_source_branch, current_parent),
                cancel_event,
            )
            current_parent = branch.name

    # Rebase

    async def update_using_rebase(self, status: StackStatus, cancel_event: Optional[asyncio.Event] = None) -> None:
        """Rebase the lowest active branch of each line onto every active ancestor, nearest first.

        ``git rebase --update-refs`` moves the branches in between along with it.
        """
        logger.info(f"Updating stack '{status.name}' using rebase...")
        resolver = self._resolver(status)

        for line in status.all_branch_lines():
            await self._update_line_using_rebase(resolver, status, line, cancel_event)

    async def _update_line_using_rebase(
        self,
        resolver: WorkingTreeResolver,
        status: StackStatus,
        line: List[BranchDetail],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        logger.debug(
            f"Rebasing branch line {status.source_branch.name} -> {' -> '.join(b.name for b in line)}"
        )
        active_indexes = [index for index, branch in enumerate(line) if branch.is_active]
        if not active_indexes:
            logger.info("No active branches found for branch line.")
            return

        lowest_index = active_indexes[-1]
        lowest = line[lowest_index]
        # Nearest ancestor first, ending with the source branch
        ancestors: List[BranchDetailBase] = [*reversed(line[:lowest_index]), status.source_branch]

        inactive_to_re_parent_from: Optional[BranchDetailBase] = None
        for ancestor in ancestors:
            if ancestor is not status.source_branch and not ancestor.is_active:
                if inactive_to_re_parent_from is None:
                    inactive_to_re_parent_from = ancestor
                logger.debug(f"Branch {ancestor.name} is {ancestor.state.value}, not rebasing onto it")
                continue

            _check_cancelled(cancel_event)
            old_base = None
            if inactive_to_re_parent_from is not None and inactive_to_re_parent_from.exists:
                old_base = self._commit_to_re_parent_from(
                    resolver.default, lowest.name, inactive_to_re_parent_from.name, ancestor.name
                )

            git_ops = resolver.for_branch(lowest.name)
            git_ops.change_branch(lowest.name)
            if old_base is not None:
                logger.info(f"Rebasing {lowest.name} onto new parent {ancestor.name}")
                operation = partial(git_ops.rebase_onto_new_parent, ancestor.name, old_base)
            else:
                logger.info(f"Rebasing {lowest.name} onto {ancestor.name}")
                operation = partial(git_ops.rebase_from_local_source_branch, ancestor.name)

            await self._run_with_conflict_handling(
                git_ops, ConflictOperationType.REBASE, operation, cancel_event
            )

    @staticmethod
    def _commit_to_re_parent_from(
        git_ops: GitOperations,
        branch: str,
        inactive_branch: str,
        new_parent: str,
    ) -> Optional[str]:
        """Old base for an onto-new-parent rebase, or None when an ordinary rebase is enough.

        If the merge base of ``branch`` and ``inactive_branch`` is not reachable from
        ``new_parent``, ``inactive_branch`` was squash merged and its commits must not be replayed.
        """
        merge_base = git_ops.get_merge_base(branch, inactive_branch)
        if merge_base is None:
            return None

        logger.debug(f"Merge base of {branch} and {inactive_branch} is {merge_base}")
        if git_ops.is_commit_reachable_from_branch(merge_base, new_parent):
            logger.debug(f"Commit {merge_base} exists in {new_parent}, no need to re-parent")
            return None

        logger.debug(
            f"Commit {merge_base} does not exist in {new_parent}, "
            f"treating {inactive_branch} as squash merged and re-parenting"
        )
        return merge_base

    # Conflicts

    async def _run_with_conflict_handling(
        self,
        git_ops: GitOperations,
        operation_type: ConflictOperationType,
        operation: Callable[[], None],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        try:
            operation()
        except ConflictError:
            result = await self.detector.wait_for_conflict_resolution(
                git_ops,
                operation_type,
                self.poll_interval,
                self.conflict_timeout,
                cancel_event,
            )
            self._handle_resolution_result(result, operation_type)

    @staticmethod
    def _handle_resolution_result(result: ConflictResolutionResult, operation_type: ConflictOperationType) -> None:
        if result == ConflictResolutionResult.COMPLETED:
            logger.info(f"Conflicts resolved, {operation_type.value} completed")
        elif result == ConflictResolutionResult.ABORTED:
            raise OperationAbortedError(operation_type)
        elif result == ConflictResolutionResult.TIMEOUT:
            raise ConflictResolutionTimeoutError(operation_type)
        else:
            logger.warning(
                f"Expected {operation_type.value} to be in progress but it is not. Continuing."
            )
