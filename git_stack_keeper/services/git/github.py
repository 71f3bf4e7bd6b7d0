"""GitHub API integration service"""

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from threading import Lock
from typing import Dict, Iterable, Optional, TYPE_CHECKING, Union
from urllib.parse import urlparse

from github import Auth, Github

from git_stack_keeper.exceptions import GitHubAPIError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.pull_request import PullRequest, PullRequestState

if TYPE_CHECKING:
    from github.PullRequest import PullRequest as GitHubPullRequest
    from github.Repository import Repository
    from git_stack_keeper.config import Config

logger = get_logger(__name__)

_MISSING = object()


def parse_github_repo(remote_url: str) -> Optional[str]:
    """Extract ``org/repo`` from an SSH or HTTPS GitHub remote URL."""
    if "github.com" not in remote_url:
        return None

    if remote_url.startswith("git@"):
        # Handle SSH URL format (git@github.com:org/repo.git)
        path = remote_url.split("github.com:", 1)[1]
    else:
        # Handle HTTPS URL format (https://github.com/org/repo.git)
        path = urlparse(remote_url).path.strip("/")

    if path.endswith(".git"):
        path = path[:-4]
    return path or None


def to_pull_request(pr: "GitHubPullRequest") -> PullRequest:
    """Convert a PyGithub pull request into the stack model."""
    if pr.merged:
        state = PullRequestState.MERGED
    elif pr.state == "closed":
        state = PullRequestState.CLOSED
    else:
        state = PullRequestState.OPEN

    return PullRequest(
        number=pr.number,
        title=pr.title,
        body=pr.body or "",
        state=state,
        url=pr.html_url,
        is_draft=bool(pr.draft),
        head_ref_name=pr.head.ref,
    )


class GitHubService:
    """Reads and edits the pull requests backing stack branches.

    Reads are cached per branch and never raise: failures are logged, a warning
    is shown once, and the branch is treated as having no pull request.
    """

    def __init__(self, repo_path: str, config: Union["Config", dict]):
        """Initialize the service."""
        self.repo_path = repo_path
        self.config = config
        self.debug_mode = config.get("debug", False)
        self.github_token = config.get("github_token") or os.environ.get("GITHUB_TOKEN")
        self.workers = config.get("workers") or 4
        self.github_repo: Optional[str] = None
        self.github: Optional[Github] = None
        self.gh_repo: Optional["Repository"] = None
        self._pull_request_cache: Dict[str, Optional[PullRequest]] = {}
        self._cache_lock = Lock()  # Thread safety for cache access
        self._warned = False

    @property
    def is_available(self) -> bool:
        return self.gh_repo is not None and self.github_repo is not None

    def setup_github_api(self, remote_url: str) -> bool:
        """Setup GitHub API access. Returns True when pull requests can be looked up."""
        path = parse_github_repo(remote_url)
        if path is None:
            logger.debug("[GitHub] Not a GitHub repository")
            return False

        self.github_repo = path

        if not self.github_token:
            logger.debug("[GitHub] No GitHub token found. Pull request status disabled")
            return False

        try:
            self.github = Github(auth=Auth.Token(self.github_token))
            self.gh_repo = self.github.get_repo(self.github_repo)
        except Exception as e:
            self._warn_once(f"Failed to setup GitHub API: {e}")
            self.gh_repo = None
            return False

        logger.debug(f"[GitHub] GitHub integration enabled for: {path}")
        return True

    def _warn_once(self, message: str) -> None:
        logger.debug(f"[GitHub] {message}")
        if not self._warned:
            self._warned = True
            logger.warning(f"[GitHub] {message}. Pull request status will not be shown.")

    def get_pull_request(self, branch_name: str) -> Optional[PullRequest]:
        """Most recent pull request whose head is ``branch_name``, or None."""
        if not self.is_available:
            return None

        with self._cache_lock:
            cached = self._pull_request_cache.get(branch_name, _MISSING)
        if cached is not _MISSING:
            return cached  # type: ignore[return-value]

        try:
            assert self.gh_repo is not None
            assert self.github_repo is not None

            pulls = list(self.gh_repo.get_pulls(
                state="all",
                head=f"{self.github_repo.split('/')[0]}:{branch_name}",
            ))
            pull_request = to_pull_request(max(pulls, key=lambda pr: pr.created_at)) if pulls else None
        except Exception as e:
            self._warn_once(f"Error getting pull request for {branch_name}: {e}")
            return None

        if pull_request is not None:
            logger.debug(f"[GitHub] Branch {branch_name} has pull request #{pull_request.number} ({pull_request.state.value})")

        with self._cache_lock:
            self._pull_request_cache[branch_name] = pull_request
        return pull_request

    def get_pull_requests(self, branch_names: Iterable[str]) -> Dict[str, Optional[PullRequest]]:
        """Look up pull requests for several branches in parallel."""
        names = list(dict.fromkeys(branch_names))
        if not names or not self.is_available:
            return {name: None for name in names}

        max_workers = min(self.workers, len(names))
        logger.debug(f"[GitHub] Fetching pull requests for {len(names)} branches using {max_workers} workers")

        result: Dict[str, Optional[PullRequest]] = {}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_branch = {
                executor.submit(self.get_pull_request, name): name for name in names
            }
            for future in as_completed(future_to_branch):
                result[future_to_branch[future]] = future.result()

        # Keep the caller's order
        return {name: result[name] for name in names}

    def edit_pull_request(self, number: int, body: str) -> None:
        """Replace the description of pull request ``number``."""
        if not self.is_available:
            raise GitHubAPIError("edit_pull_request", "GitHub integration is not available")

        try:
            assert self.gh_repo is not None
            self.gh_repo.get_pull(number).edit(body=body)
        except Exception as e:
            raise GitHubAPIError("edit_pull_request", f"#{number}: {e}") from e

        with self._cache_lock:
            self._pull_request_cache.clear()
