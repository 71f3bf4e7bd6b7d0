"""Git operations service"""

import os
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING, Union

import git

from git_stack_keeper.exceptions import ConflictError, GitOperationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import GitBranchStatus
from git_stack_keeper.models.conflict import ConflictOperationType
from git_stack_keeper.services.git.branch_status_parser import parse_branch_statuses

if TYPE_CHECKING:
    from git_stack_keeper.config import Config

logger = get_logger(__name__)


def _error_text(error: git.exc.GitCommandError) -> str:
    text = (error.stderr or error.stdout or "").strip()
    if text.startswith("stderr:"):
        text = text[len("stderr:"):].strip()
    return text.strip("'").strip() or str(error)


class GitOperations:
    """Git commands for a single working directory (the main checkout or a worktree)."""

    def __init__(self, repo_path: str, config: Union["Config", dict, None] = None):
        """Initialize the service.

        Args:
            repo_path: Path to the working directory (string path, not repo object)
            config: Configuration dictionary or Config object
        """
        config = config or {}
        self.repo_path = repo_path
        self.remote_name = config.get("remote_name", "origin") or "origin"
        self.in_git_operation = False  # Track if a mutating command is running

    def _get_repo(self, path: Optional[str] = None) -> git.Repo:
        """Get a fresh git.Repo instance.

        GitPython repos are lightweight - they don't clone, just open the existing repo.
        """
        return git.Repo(path or self.repo_path)

    @contextmanager
    def _git_operation(self, operation: str, branch: Optional[str] = None):
        """Track a mutating operation and convert git failures to GitOperationError."""
        self.in_git_operation = True
        try:
            yield
        except git.exc.GitCommandError as e:
            raise GitOperationError(operation, branch, _error_text(e)) from e
        finally:
            self.in_git_operation = False

    # Branches

    def get_current_branch(self) -> str:
        """Name of the checked out branch (empty when HEAD is detached)."""
        return self._get_repo().git.branch("--show-current").strip()

    def change_branch(self, branch_name: str) -> None:
        logger.debug(f"Checking out {branch_name} in {self.repo_path}")
        with self._git_operation("checkout", branch_name):
            self._get_repo().git.checkout(branch_name)

    def does_local_branch_exist(self, branch_name: str) -> bool:
        return branch_name in [head.name for head in self._get_repo().heads]

    def create_branch(self, branch_name: str, start_point: str) -> None:
        """Create ``branch_name`` at ``start_point`` without checking it out."""
        logger.debug(f"Creating branch {branch_name} from {start_point}")
        with self._git_operation("create_branch", branch_name):
            self._get_repo().git.branch(branch_name, start_point)

    def delete_local_branch(self, branch_name: str) -> None:
        logger.debug(f"Deleting local branch {branch_name}")
        with self._git_operation("delete_branch", branch_name):
            self._get_repo().git.branch("-D", branch_name)

    def get_branch_statuses(self, branch_names: Iterable[str]) -> Dict[str, GitBranchStatus]:
        """Status of the given local branches from a single ``git branch -vv`` call.

        Branches that do not exist locally are absent from the result.
        """
        names = list(branch_names)
        output = self._get_repo().git.branch("-vv")
        statuses = parse_branch_statuses(output, names)
        logger.debug(f"Found status for {len(statuses)} of {len(names)} branches")
        return statuses

    def compare_branches(self, branch_name: str, other_branch_name: str) -> Tuple[int, int]:
        """Commits ``branch_name`` is ahead of and behind ``other_branch_name``."""
        output = self._get_repo().git.rev_list(
            "--left-right", "--count", f"{branch_name}...{other_branch_name}"
        )
        ahead, behind = output.split()
        return int(ahead), int(behind)

    # Merge / rebase

    def merge_from_local_source_branch(self, source_branch: str) -> None:
        """Merge ``source_branch`` into the current branch.

        Raises:
            ConflictError: The merge stopped on conflicts
            GitOperationError: The merge failed for another reason
        """
        repo = self._get_repo()
        try:
            repo.git.merge(source_branch, "--no-edit")
        except git.exc.GitCommandError as e:
            if self.is_merge_in_progress():
                raise ConflictError(ConflictOperationType.MERGE, source_branch, _error_text(e)) from e
            raise GitOperationError("merge", source_branch, _error_text(e)) from e

    def rebase_from_local_source_branch(self, source_branch: str) -> None:
        """Rebase the current branch onto ``source_branch``, carrying dependent branch refs along."""
        self._rebase(source_branch, source_branch, "--update-refs")

    def rebase_onto_new_parent(self, new_parent_branch: str, old_parent_commit: str) -> None:
        """Replay commits after ``old_parent_commit`` onto ``new_parent_branch``."""
        self._rebase(new_parent_branch, "--onto", new_parent_branch, old_parent_commit, "--update-refs")

    def _rebase(self, target: str, *args: str) -> None:
        repo = self._get_repo()
        try:
            repo.git.rebase(*args)
        except git.exc.GitCommandError as e:
            if self.is_rebase_in_progress():
                raise ConflictError(ConflictOperationType.REBASE, target, _error_text(e)) from e
            raise GitOperationError("rebase", target, _error_text(e)) from e

    def abort_merge(self) -> None:
        with self._git_operation("merge --abort"):
            self._get_repo().git.merge("--abort")

    def abort_rebase(self) -> None:
        with self._git_operation("rebase --abort"):
            self._get_repo().git.rebase("--abort")

    def continue_rebase(self) -> None:
        repo = self._get_repo()
        with self._git_operation("rebase --continue"):
            with repo.git.custom_environment(GIT_EDITOR="true"):
                repo.git.rebase("--continue")

    def is_merge_in_progress(self) -> bool:
        try:
            self._get_repo().git.rev_parse("-q", "--verify", "MERGE_HEAD")
            return True
        except git.exc.GitCommandError:
            return False

    def is_rebase_in_progress(self) -> bool:
        repo = self._get_repo()
        for marker in ("rebase-merge", "rebase-apply"):
            # --git-path resolves to the per-worktree git dir
            path = repo.git.rev_parse("--git-path", marker)
            if os.path.exists(os.path.join(repo.working_dir, path)):
                return True
        return False

    # Commits

    def get_head_commit_sha(self) -> str:
        return self._get_repo().git.rev_parse("HEAD").strip()

    def get_original_head_commit_sha(self) -> Optional[str]:
        """ORIG_HEAD, which rebase sets to the branch tip before rewriting it."""
        try:
            return self._get_repo().git.rev_parse("-q", "--verify", "ORIG_HEAD").strip() or None
        except git.exc.GitCommandError:
            return None

    def get_merge_base(self, branch_name: str, other_branch_name: str) -> Optional[str]:
        try:
            return self._get_repo().git.merge_base(branch_name, other_branch_name).strip() or None
        except git.exc.GitCommandError as e:
            logger.debug(f"No merge base between {branch_name} and {other_branch_name}: {e}")
            return None

    def is_commit_reachable_from_branch(self, commit_sha: str, branch_name: str) -> bool:
        try:
            self._get_repo().git.merge_base("--is-ancestor", commit_sha, branch_name)
            return True
        except git.exc.GitCommandError as e:
            if e.status == 1:
                return False
            raise GitOperationError("merge-base --is-ancestor", branch_name, _error_text(e)) from e

    # Remote

    def fetch(self, prune: bool = True) -> None:
        args = [self.remote_name]
        if prune:
            args.append("--prune")
        with self._git_operation("fetch"):
            self._get_repo().git.fetch(*args)

    def pull_branch(self, branch_name: str) -> None:
        """Pull the checked out ``branch_name`` from the remote."""
        with self._git_operation("pull", branch_name):
            self._get_repo().git.pull(self.remote_name, branch_name)

    def pull_branch_for_worktree(self, branch_name: str, worktree_path: str) -> None:
        """Pull ``branch_name`` inside the worktree where it is checked out."""
        with self._git_operation("pull", branch_name):
            self._get_repo(worktree_path).git.pull(self.remote_name, branch_name)

    def push_new_branch(self, branch_name: str) -> None:
        """Push a branch that has no remote yet and set up tracking."""
        with self._git_operation("push", branch_name):
            self._get_repo().git.push("-u", self.remote_name, branch_name)

    def push_branches(self, branch_names: List[str], force_with_lease: bool = False) -> None:
        args = [self.remote_name, *branch_names]
        if force_with_lease:
            args.append("--force-with-lease")
        with self._git_operation("push", ", ".join(branch_names)):
            self._get_repo().git.push(*args)

    def fetch_branch_ref_specs(self, branch_names: List[str]) -> None:
        """Fast-forward local branches that are not checked out, without touching a working tree."""
        refspecs = [f"{name}:{name}" for name in branch_names]
        with self._git_operation("fetch", ", ".join(branch_names)):
            self._get_repo().git.fetch(self.remote_name, *refspecs)

    def get_remote_uri(self) -> Optional[str]:
        try:
            return self._get_repo().git.remote("get-url", self.remote_name).strip() or None
        except git.exc.GitCommandError:
            return None

    # Config

    def get_config_value(self, key: str) -> Optional[str]:
        try:
            value = self._get_repo().git.config("--get", key).strip()
        except git.exc.GitCommandError:
            return None
        return value or None
