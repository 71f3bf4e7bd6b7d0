"""Waiting for the user to resolve merge/rebase conflicts"""

import asyncio
import time
from typing import Callable, Optional

from rich.console import Console

from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.conflict import ConflictOperationType, ConflictResolutionResult
from git_stack_keeper.services.git.operations import GitOperations

console = Console(stderr=True)
logger = get_logger(__name__)


class ConflictResolutionDetector:
    """Polls repository state until a paused merge or rebase is completed or aborted."""

    LOG_EVERY_N_POLLS = 5

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock

    @staticmethod
    def _is_in_progress(git_ops: GitOperations, operation_type: ConflictOperationType) -> bool:
        if operation_type == ConflictOperationType.REBASE:
            return git_ops.is_rebase_in_progress()
        return git_ops.is_merge_in_progress()

    @staticmethod
    def _initial_head(git_ops: GitOperations, operation_type: ConflictOperationType) -> Optional[str]:
        # During a rebase HEAD moves with every replayed commit; ORIG_HEAD is the tip it started from
        if operation_type == ConflictOperationType.REBASE:
            original = git_ops.get_original_head_commit_sha()
            if original:
                return original
        return git_ops.get_head_commit_sha()

    @staticmethod
    async def _pause(poll_interval: float, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await asyncio.sleep(poll_interval)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            pass

    async def wait_for_conflict_resolution(
        self,
        git_ops: GitOperations,
        operation_type: ConflictOperationType,
        poll_interval: float,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ConflictResolutionResult:
        """Wait until the user finishes or abandons conflict resolution.

        Args:
            git_ops: Operations for the working directory the conflict happened in
            operation_type: Whether a merge or a rebase is paused
            poll_interval: Seconds between checks
            timeout: Seconds to wait before giving up (None = wait indefinitely)
            cancel_event: Setting it stops the wait by raising asyncio.CancelledError

        Returns:
            NOT_STARTED if nothing is in progress, COMPLETED if the user committed a
            resolution, ABORTED if HEAD is back where it started, TIMEOUT on deadline.
        """
        started_at = self.clock()
        initial_head = self._initial_head(git_ops, operation_type)

        if not self._is_in_progress(git_ops, operation_type) or not initial_head:
            logger.debug(f"No {operation_type.value} in progress in {git_ops.repo_path}")
            return ConflictResolutionResult.NOT_STARTED

        message = (
            f"Conflicts detected during {operation_type.value}. "
            "Please resolve conflicts to continue or press CTRL+C to abort..."
        )
        logger.info(message)
        console.print(f"[yellow]{message}[/yellow]")

        polls = 0
        while True:
            await self._pause(poll_interval, cancel_event)
            if cancel_event is not None and cancel_event.is_set():
                logger.debug(f"Cancelled while waiting for {operation_type.value} conflict resolution")
                raise asyncio.CancelledError()

            polls += 1
            if self._is_in_progress(git_ops, operation_type):
                if timeout is not None and self.clock() - started_at >= timeout:
                    logger.debug(f"Timed out after {polls} polls")
                    return ConflictResolutionResult.TIMEOUT
                if polls % self.LOG_EVERY_N_POLLS == 0:
                    logger.debug(f"Still waiting for {operation_type.value} conflict resolution ({polls} polls)")
                continue

            head = git_ops.get_head_commit_sha()
            if head != initial_head:
                logger.debug(f"HEAD moved from {initial_head} to {head}, {operation_type.value} completed")
                return ConflictResolutionResult.COMPLETED

            logger.debug(f"HEAD still at {initial_head}, {operation_type.value} aborted")
            return ConflictResolutionResult.ABORTED
