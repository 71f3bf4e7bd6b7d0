"""Tests for StackUpdateService"""
import asyncio
from unittest.mock import AsyncMock, Mock, call

import pytest

from git_stack_keeper.exceptions import (
    ConflictError,
    ConflictResolutionTimeoutError,
    GitOperationError,
    OperationAbortedError,
)
from git_stack_keeper.models.conflict import ConflictOperationType, ConflictResolutionResult
from git_stack_keeper.models.stack import UpdateStrategy
from git_stack_keeper.services.stack_update_service import StackUpdateService

from conftest import make_branch, make_status

WORKING_DIR = "/fake/repo/path"


def build_service(git_factory, result=ConflictResolutionResult.COMPLETED):
    detector = Mock()
    detector.wait_for_conflict_resolution = AsyncMock(return_value=result)
    return StackUpdateService(git_factory, WORKING_DIR, detector=detector, poll_interval=0.5, conflict_timeout=30)


def run_update(service, status, strategy, cancel_event=None):
    return asyncio.run(service.update(status, strategy, cancel_event))


class TestUpdateUsingMerge:
    """Test the merge strategy."""

    def test_merges_each_line_from_source(self, mock_git_factory, mock_git_ops):
        """Test that branches shared by several lines are merged again for each line."""
        status = make_status(
            make_branch("a", children=[make_branch("b"), make_branch("c")]),
            make_branch("d"),
        )

        run_update(build_service(mock_git_factory), status, UpdateStrategy.MERGE)

        assert mock_git_ops.method_calls == [
            call.change_branch("a"),
            call.merge_from_local_source_branch("main"),
            call.change_branch("b"),
            call.merge_from_local_source_branch("a"),
            call.change_branch("a"),
            call.merge_from_local_source_branch("main"),
            call.change_branch("c"),
            call.merge_from_local_source_branch("a"),
            call.change_branch("d"),
            call.merge_from_local_source_branch("main"),
        ]

    def test_inactive_branches_are_skipped(self, mock_git_factory, mock_git_ops):
        """Test that an inactive branch is neither merged nor used as a parent."""
        status = make_status(
            make_branch("a", "remote-gone", children=[
                make_branch("b", "merged", children=[make_branch("c", children=[make_branch("d", "never-pushed")])]),
            ]),
        )

        run_update(build_service(mock_git_factory), status, UpdateStrategy.MERGE)

        assert mock_git_ops.method_calls == [
            call.change_branch("c"),
            call.merge_from_local_source_branch("main"),
        ]

    def test_missing_branches_are_skipped(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", "missing", children=[make_branch("b")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.MERGE)

        assert mock_git_ops.method_calls == [
            call.change_branch("b"),
            call.merge_from_local_source_branch("main"),
        ]

    def test_branch_in_worktree_is_updated_there(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", children=[make_branch("b", worktree_path="/tmp/worktrees/b")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.MERGE)

        worktree_ops = mock_git_factory.clients["/tmp/worktrees/b"]
        assert mock_git_ops.method_calls == [
            call.change_branch("a"),
            call.merge_from_local_source_branch("main"),
        ]
        assert worktree_ops.method_calls == [
            call.change_branch("b"),
            call.merge_from_local_source_branch("a"),
        ]


class TestUpdateUsingRebase:
    """Test the rebase strategy."""

    def test_rebases_lowest_branch_onto_each_ancestor(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", children=[make_branch("b", children=[make_branch("c")])]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        assert mock_git_ops.method_calls == [
            call.change_branch("c"),
            call.rebase_from_local_source_branch("b"),
            call.change_branch("c"),
            call.rebase_from_local_source_branch("a"),
            call.change_branch("c"),
            call.rebase_from_local_source_branch("main"),
        ]

    def test_each_line_is_rebased(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", children=[make_branch("b"), make_branch("c")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        assert mock_git_ops.method_calls == [
            call.change_branch("b"),
            call.rebase_from_local_source_branch("a"),
            call.change_branch("b"),
            call.rebase_from_local_source_branch("main"),
            call.change_branch("c"),
            call.rebase_from_local_source_branch("a"),
            call.change_branch("c"),
            call.rebase_from_local_source_branch("main"),
        ]

    def test_lowest_active_branch_is_chosen(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", children=[make_branch("b", "never-pushed")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        assert mock_git_ops.method_calls == [
            call.change_branch("a"),
            call.rebase_from_local_source_branch("main"),
        ]

    def test_line_without_active_branches(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", "remote-gone", children=[make_branch("b", "missing")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        assert mock_git_ops.method_calls == []

    def test_squash_merged_parent_is_re_parented(self, mock_git_factory, mock_git_ops):
        """Test that commits of a squash merged parent are not replayed."""
        mock_git_ops.get_merge_base.return_value = "base123"
        mock_git_ops.is_commit_reachable_from_branch.return_value = False
        status = make_status(make_branch("a", "merged", children=[make_branch("b")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        assert mock_git_ops.method_calls == [
            call.get_merge_base("b", "a"),
            call.is_commit_reachable_from_branch("base123", "main"),
            call.change_branch("b"),
            call.rebase_onto_new_parent("main", "base123"),
        ]

    def test_merged_parent_reachable_from_new_parent(self, mock_git_factory, mock_git_ops):
        """Test that an ordinary rebase is used when the parent was merged without squashing."""
        mock_git_ops.get_merge_base.return_value = "base123"
        mock_git_ops.is_commit_reachable_from_branch.return_value = True
        status = make_status(make_branch("a", "remote-gone", children=[make_branch("b")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        assert mock_git_ops.method_calls[-2:] == [
            call.change_branch("b"),
            call.rebase_from_local_source_branch("main"),
        ]

    def test_no_merge_base(self, mock_git_factory, mock_git_ops):
        mock_git_ops.get_merge_base.return_value = None
        status = make_status(make_branch("a", "remote-gone", children=[make_branch("b")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        mock_git_ops.is_commit_reachable_from_branch.assert_not_called()
        mock_git_ops.rebase_from_local_source_branch.assert_called_once_with("main")

    def test_first_inactive_ancestor_is_kept(self, mock_git_factory, mock_git_ops):
        """Test that the inactive branch nearest to the rebased branch is used for re-parenting."""
        mock_git_ops.get_merge_base.return_value = "base123"
        mock_git_ops.is_commit_reachable_from_branch.return_value = False
        status = make_status(
            make_branch("a", children=[
                make_branch("b", "remote-gone", children=[
                    make_branch("c", "merged", children=[make_branch("d")]),
                ]),
            ]),
        )

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        assert mock_git_ops.get_merge_base.call_args_list == [call("d", "c"), call("d", "c")]
        assert mock_git_ops.rebase_onto_new_parent.call_args_list == [
            call("a", "base123"),
            call("main", "base123"),
        ]

    def test_missing_ancestor_is_not_re_parented_from(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", "missing", children=[make_branch("b")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        mock_git_ops.get_merge_base.assert_not_called()
        mock_git_ops.rebase_from_local_source_branch.assert_called_once_with("main")

    def test_rebase_in_worktree(self, mock_git_factory, mock_git_ops):
        status = make_status(make_branch("a", children=[make_branch("b", worktree_path="/tmp/worktrees/b")]))

        run_update(build_service(mock_git_factory), status, UpdateStrategy.REBASE)

        worktree_ops = mock_git_factory.clients["/tmp/worktrees/b"]
        assert worktree_ops.method_calls == [
            call.change_branch("b"),
            call.rebase_from_local_source_branch("a"),
            call.change_branch("b"),
            call.rebase_from_local_source_branch("main"),
        ]
        assert mock_git_ops.method_calls == []


class TestConflictHandling:
    """Test waiting for conflict resolution."""

    def test_completed_resolution_continues(self, mock_git_factory, mock_git_ops):
        mock_git_ops.merge_from_local_source_branch.side_effect = [
            ConflictError(ConflictOperationType.MERGE, "main"),
            None,
        ]
        service = build_service(mock_git_factory, ConflictResolutionResult.COMPLETED)
        status = make_status(make_branch("a", children=[make_branch("b")]))

        run_update(service, status, UpdateStrategy.MERGE)

        service.detector.wait_for_conflict_resolution.assert_awaited_once_with(
            mock_git_ops, ConflictOperationType.MERGE, 0.5, 30, None
        )
        assert mock_git_ops.merge_from_local_source_branch.call_args_list == [call("main"), call("a")]

    def test_not_started_continues(self, mock_git_factory, mock_git_ops):
        mock_git_ops.merge_from_local_source_branch.side_effect = [
            ConflictError(ConflictOperationType.MERGE, "main"),
            None,
        ]
        service = build_service(mock_git_factory, ConflictResolutionResult.NOT_STARTED)
        status = make_status(make_branch("a", children=[make_branch("b")]))

        run_update(service, status, UpdateStrategy.MERGE)

        assert mock_git_ops.merge_from_local_source_branch.call_count == 2

    def test_aborted_merge_stops_update(self, mock_git_factory, mock_git_ops):
        mock_git_ops.merge_from_local_source_branch.side_effect = ConflictError(ConflictOperationType.MERGE, "main")
        service = build_service(mock_git_factory, ConflictResolutionResult.ABORTED)
        status = make_status(make_branch("a", children=[make_branch("b")]))

        with pytest.raises(OperationAbortedError, match="Merge aborted due to conflicts."):
            run_update(service, status, UpdateStrategy.MERGE)

        mock_git_ops.merge_from_local_source_branch.assert_called_once_with("main")

    def test_aborted_rebase_stops_update(self, mock_git_factory, mock_git_ops):
        mock_git_ops.rebase_from_local_source_branch.side_effect = ConflictError(ConflictOperationType.REBASE, "a")
        service = build_service(mock_git_factory, ConflictResolutionResult.ABORTED)
        status = make_status(make_branch("a", children=[make_branch("b")]))

        with pytest.raises(OperationAbortedError, match="Rebase aborted due to conflicts."):
            run_update(service, status, UpdateStrategy.REBASE)

        service.detector.wait_for_conflict_resolution.assert_awaited_once_with(
            mock_git_ops, ConflictOperationType.REBASE, 0.5, 30, None
        )

    def test_timeout_stops_update(self, mock_git_factory, mock_git_ops):
        mock_git_ops.merge_from_local_source_branch.side_effect = ConflictError(ConflictOperationType.MERGE, "main")
        service = build_service(mock_git_factory, ConflictResolutionResult.TIMEOUT)
        status = make_status(make_branch("a"))

        with pytest.raises(ConflictResolutionTimeoutError):
            run_update(service, status, UpdateStrategy.MERGE)

    def test_other_failures_propagate(self, mock_git_factory, mock_git_ops):
        mock_git_ops.merge_from_local_source_branch.side_effect = GitOperationError("merge", "main", "boom")
        service = build_service(mock_git_factory)
        status = make_status(make_branch("a"))

        with pytest.raises(GitOperationError):
            run_update(service, status, UpdateStrategy.MERGE)

        service.detector.wait_for_conflict_resolution.assert_not_awaited()

    def test_cancel_event_stops_update(self, mock_git_factory, mock_git_ops):
        cancel_event = asyncio.Event()
        cancel_event.set()
        status = make_status(make_branch("a"))

        with pytest.raises(asyncio.CancelledError):
            run_update(build_service(mock_git_factory), status, UpdateStrategy.MERGE, cancel_event)

        mock_git_ops.merge_from_local_source_branch.assert_not_called()
