"""Pytest fixtures for git-stack-keeper tests"""
import tempfile
from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import git
import pytest

from git_stack_keeper.models.branch import (
    BranchDetail,
    Commit,
    GitBranchStatus,
    ParentBranchStatus,
    RemoteTrackingBranchStatus,
    SourceBranchDetail,
    StackStatus,
)
from git_stack_keeper.models.pull_request import PullRequest, PullRequestState
from git_stack_keeper.services.git import GitOperations


def configure_identity(repo):
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")


def commit_file(repo, filename, content, message=None):
    """Write a file in the repository's working tree and commit it."""
    path = Path(repo.working_dir) / filename
    path.write_text(content)
    repo.index.add([filename])
    return repo.index.commit(message or f"Update {filename}").hexsha


def create_branch(repo, name, start_point="main", filename=None, content=None):
    """Create a branch from ``start_point`` with one commit on it, then return to the branch checked out before."""
    original_branch = repo.active_branch.name
    repo.git.checkout("-b", name, start_point)
    commit_file(repo, filename or f"{name.replace('/', '_')}.txt", content or f"{name}\n")
    repo.git.checkout(original_branch)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_config(temp_dir):
    """Create a mock configuration dictionary."""
    return {
        'verbose': False,
        'debug': False,
        'dry_run': False,
        'update_strategy': None,
        'max_batch_size': 5,
        'poll_interval': 0.01,
        'remote_name': 'origin',
        'include_pull_requests': False,
        'github_token': 'test_token_for_testing',
        'stacks_file': str(temp_dir / 'stacks.json'),
    }


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with a single commit on main."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)
    configure_identity(repo)

    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")
    repo.git.branch('-M', 'main')

    yield repo

    repo.close()


@pytest.fixture
def remote_repo(temp_dir, git_repo):
    """Connect ``git_repo`` to a bare ``origin`` with main pushed and tracked."""
    origin_path = temp_dir / "origin.git"
    origin = git.Repo.init(origin_path, bare=True)
    origin.git.symbolic_ref("HEAD", "refs/heads/main")

    git_repo.create_remote('origin', str(origin_path))
    git_repo.git.push('-u', 'origin', 'main')

    yield git_repo

    origin.close()


@pytest.fixture
def other_clone(temp_dir, remote_repo):
    """A second clone of ``origin`` standing in for another developer."""
    origin_url = remote_repo.remotes.origin.url
    clone = git.Repo.clone_from(origin_url, temp_dir / "other_clone")
    configure_identity(clone)

    yield clone

    clone.close()


# Builders for status snapshots

def make_branch(
    name: str,
    state: str = "active",
    children=(),
    worktree_path: Optional[str] = None,
    parent: Optional[str] = None,
    parent_behind: int = 0,
    ahead_of_remote: int = 0,
    pull_request: Optional[PullRequest] = None,
) -> BranchDetail:
    """Build a BranchDetail in the given state ("active", "remote-gone", "never-pushed", "missing", "merged")."""
    exists = state != "missing"
    remote_tracking = None
    if state in ("active", "merged"):
        remote_tracking = RemoteTrackingBranchStatus(f"origin/{name}", True, ahead=ahead_of_remote)
    elif state == "remote-gone":
        remote_tracking = RemoteTrackingBranchStatus(f"origin/{name}", False)

    if state == "merged" and pull_request is None:
        pull_request = make_pull_request(name, state=PullRequestState.MERGED)

    return BranchDetail(
        name=name,
        exists=exists,
        tip=Commit("abc1234def", f"Work on {name}") if exists else None,
        remote_tracking=remote_tracking,
        worktree_path=worktree_path,
        pull_request=pull_request,
        parent=ParentBranchStatus(parent, 0, parent_behind) if parent and exists else None,
        children=tuple(children),
    )


def make_status(*root_branches: BranchDetail, source: str = "main", current_branch: Optional[str] = "main",
                name: str = "stack") -> StackStatus:
    return StackStatus(
        name=name,
        source_branch=SourceBranchDetail(
            name=source,
            exists=True,
            tip=Commit("0000000aaa", "Initial commit"),
            remote_tracking=RemoteTrackingBranchStatus(f"origin/{source}", True),
        ),
        root_branches=root_branches,
        current_branch=current_branch,
    )


def make_pull_request(branch: str, number: int = 1, state: PullRequestState = PullRequestState.OPEN,
                      body: str = "") -> PullRequest:
    return PullRequest(
        number=number,
        title=f"Pull request for {branch}",
        body=body,
        state=state,
        url=f"https://github.com/test/repo/pull/{number}",
        head_ref_name=branch,
    )


def make_git_status(
    name: str,
    remote: Optional[str] = "default",
    gone: bool = False,
    ahead: int = 0,
    behind: int = 0,
    current: bool = False,
    worktree_path: Optional[str] = None,
) -> GitBranchStatus:
    """Build a raw GitBranchStatus. ``remote=None`` means no tracking branch."""
    if remote == "default":
        remote = f"origin/{name}"
    return GitBranchStatus(
        branch_name=name,
        remote_tracking_branch_name=remote,
        remote_branch_exists=remote is not None and not gone,
        is_current_branch=current,
        ahead=ahead,
        behind=behind,
        tip=Commit("abc1234def", f"Work on {name}"),
        worktree_path=worktree_path,
    )


@pytest.fixture
def mock_git_ops():
    """Create a mock GitOperations for the default working directory."""
    git_ops = Mock(spec=GitOperations)
    git_ops.repo_path = "/fake/repo/path"
    return git_ops


@pytest.fixture
def mock_git_factory(mock_git_ops):
    """Factory returning ``mock_git_ops`` for the default path and a new mock per worktree path."""
    clients = {"/fake/repo/path": mock_git_ops}

    def factory(path):
        if path not in clients:
            client = Mock(spec=GitOperations)
            client.repo_path = path
            clients[path] = client
        return clients[path]

    factory.clients = clients
    return factory


@pytest.fixture
def mock_github_service():
    """Create a mock GitHubService with no pull requests."""
    service = Mock()
    service.is_available = False
    service.get_pull_requests.side_effect = lambda names: {name: None for name in names}
    return service
