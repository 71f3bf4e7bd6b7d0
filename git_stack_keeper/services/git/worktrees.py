"""Routing of git operations to the worktree a branch is checked out in."""

from threading import Lock
from typing import Callable, Dict, Mapping, Optional

from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.services.git.operations import GitOperations

logger = get_logger(__name__)

GitOperationsFactory = Callable[[str], GitOperations]


class WorkingTreeResolver:
    """Picks the GitOperations instance that must drive a given branch.

    A branch checked out in another worktree can only be switched to and
    updated from that worktree's directory; every other branch uses the
    default working directory.
    """

    def __init__(
        self,
        git_factory: GitOperationsFactory,
        working_dir: str,
        worktree_paths: Optional[Mapping[str, str]] = None,
    ):
        self.git_factory = git_factory
        self.working_dir = working_dir
        self.worktree_paths: Dict[str, str] = dict(worktree_paths or {})
        self._clients: Dict[str, GitOperations] = {}
        self._cache_lock = Lock()  # Thread safety for client cache access

    def _client_for_path(self, path: str) -> GitOperations:
        with self._cache_lock:
            if path not in self._clients:
                self._clients[path] = self.git_factory(path)
            return self._clients[path]

    @property
    def default(self) -> GitOperations:
        """Operations for the default working directory."""
        return self._client_for_path(self.working_dir)

    def for_branch(self, branch_name: str) -> GitOperations:
        """Operations for the working directory ``branch_name`` must be driven from."""
        worktree_path = self.worktree_paths.get(branch_name)
        if worktree_path:
            logger.debug(f"Branch {branch_name} is checked out in worktree {worktree_path}")
            return self._client_for_path(worktree_path)
        return self.default
