"""Tests for StackRemoteService"""
from unittest.mock import call

import pytest

from git_stack_keeper.services.stack_remote_service import StackRemoteService, batched

from conftest import make_branch, make_git_status, make_status

WORKING_DIR = "/fake/repo/path"


def test_batched():
    assert batched(["a", "b", "c"], 2) == [["a", "b"], ["c"]]
    assert batched([], 3) == []


def test_batched_rejects_non_positive_size():
    with pytest.raises(ValueError):
        batched(["a"], 0)


class TestPush:
    """Test pushing stack branches."""

    def test_pushes_in_batches(self, mock_git_factory, mock_git_ops):
        mock_git_ops.get_branch_statuses.return_value = {
            "a": make_git_status("a", ahead=1),
            "b": make_git_status("b", ahead=2),
            "c": make_git_status("c", ahead=1),
        }
        status = make_status(make_branch("a", children=[make_branch("b", children=[make_branch("c")])]))

        StackRemoteService(mock_git_factory, WORKING_DIR).push(status, max_batch_size=2)

        mock_git_ops.get_branch_statuses.assert_called_once_with(["a", "b", "c"])
        assert mock_git_ops.push_branches.call_args_list == [
            call(["a", "b"], False),
            call(["c"], False),
        ]
        mock_git_ops.push_new_branch.assert_not_called()

    def test_force_with_lease(self, mock_git_factory, mock_git_ops):
        mock_git_ops.get_branch_statuses.return_value = {"a": make_git_status("a", ahead=1, behind=1)}
        status = make_status(make_branch("a"))

        StackRemoteService(mock_git_factory, WORKING_DIR).push(status, 5, force_with_lease=True)

        mock_git_ops.push_branches.assert_called_once_with(["a"], True)

    def test_new_branches_pushed_individually(self, mock_git_factory, mock_git_ops):
        mock_git_ops.get_branch_statuses.return_value = {
            "a": make_git_status("a", remote=None),
            "b": make_git_status("b", remote=None),
            "c": make_git_status("c", ahead=1),
        }
        status = make_status(make_branch("a", "never-pushed"), make_branch("b", "never-pushed"), make_branch("c"))

        StackRemoteService(mock_git_factory, WORKING_DIR).push(status, 5)

        assert mock_git_ops.push_new_branch.call_args_list == [call("a"), call("b")]
        mock_git_ops.push_branches.assert_called_once_with(["c"], False)

    def test_skips_up_to_date_gone_and_missing(self, mock_git_factory, mock_git_ops):
        mock_git_ops.get_branch_statuses.return_value = {
            "a": make_git_status("a"),
            "b": make_git_status("b", gone=True, ahead=0),
        }
        status = make_status(make_branch("a"), make_branch("b", "remote-gone"), make_branch("c", "missing"))

        StackRemoteService(mock_git_factory, WORKING_DIR).push(status, 5)

        mock_git_ops.push_branches.assert_not_called()
        mock_git_ops.push_new_branch.assert_not_called()


class TestPull:
    """Test pulling stack branches."""

    def test_pull_targets(self, mock_git_factory, mock_git_ops):
        """Test that each branch is brought up to date the way its checkout allows."""
        mock_git_ops.get_current_branch.return_value = "a"
        mock_git_ops.get_branch_statuses.return_value = {
            "main": make_git_status("main", behind=3),
            "a": make_git_status("a", behind=1, current=True),
            "b": make_git_status("b", behind=2, worktree_path="/tmp/worktrees/b"),
            "c": make_git_status("c", behind=1),
            "d": make_git_status("d"),
            "e": make_git_status("e", gone=True),
        }
        status = make_status(
            make_branch("a", children=[make_branch("b"), make_branch("c"), make_branch("d")]),
            make_branch("e", "remote-gone"),
            current_branch="a",
        )

        StackRemoteService(mock_git_factory, WORKING_DIR).pull(status)

        mock_git_ops.get_branch_statuses.assert_called_once_with(["main", "a", "b", "c", "d", "e"])
        mock_git_ops.pull_branch.assert_called_once_with("a")
        mock_git_ops.pull_branch_for_worktree.assert_called_once_with("b", "/tmp/worktrees/b")
        mock_git_ops.fetch_branch_ref_specs.assert_called_once_with(["main", "c"])

    def test_nothing_behind(self, mock_git_factory, mock_git_ops):
        mock_git_ops.get_current_branch.return_value = "main"
        mock_git_ops.get_branch_statuses.return_value = {
            "main": make_git_status("main", current=True),
            "a": make_git_status("a", ahead=1),
        }
        status = make_status(make_branch("a"))

        StackRemoteService(mock_git_factory, WORKING_DIR).pull(status)

        mock_git_ops.pull_branch.assert_not_called()
        mock_git_ops.pull_branch_for_worktree.assert_not_called()
        mock_git_ops.fetch_branch_ref_specs.assert_not_called()
