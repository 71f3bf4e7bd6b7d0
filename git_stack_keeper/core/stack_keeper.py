"""Core functionality for git-stack-keeper"""

import asyncio
from typing import Callable, List, Optional, Union

import git
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from git_stack_keeper.config import Config
from git_stack_keeper.constants import UPDATE_STRATEGY_CONFIG_KEY
from git_stack_keeper.exceptions import (
    BranchNotFoundError,
    ConfigurationError,
    ConflictError,
    GitOperationError,
    GitStackKeeperError,
    StackNotFoundError,
)
from git_stack_keeper.formatters import (
    build_status_tree,
    format_stack_pr_list,
    get_stack_hints,
    update_stack_pr_list,
)
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.branch import StackStatus
from git_stack_keeper.models.pull_request import PullRequestState
from git_stack_keeper.models.stack import Stack, UpdateStrategy
from git_stack_keeper.services.git import ConflictResolutionDetector, GitHubService, GitOperations
from git_stack_keeper.services.stack_remote_service import StackRemoteService
from git_stack_keeper.services.stack_repository import StackRepository, order_stacks, stacks_for_remote
from git_stack_keeper.services.stack_status_service import StackStatusService
from git_stack_keeper.services.stack_update_service import StackUpdateService

console = Console()
logger = get_logger(__name__)


class StackKeeper:
    """Main class for managing stacks of branches."""

    def __init__(
        self,
        repo_path: str,
        config: Union[Config, dict],
        git_factory: Optional[Callable[[str], GitOperations]] = None,
        github_service: Optional[GitHubService] = None,
        stack_repository: Optional[StackRepository] = None,
    ):
        """Initialize StackKeeper.

        Args:
            repo_path: Path to git repository
            config: Configuration dict or Config object
            git_factory: Creates GitOperations for a working directory
            github_service: Pull request collaborator (set up from the remote when omitted)
            stack_repository: Stack configuration store (the configured stacks file when omitted)
        """
        self.repo_path = repo_path
        self.config = Config.from_dict(config) if isinstance(config, dict) else config

        try:
            git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise GitStackKeeperError(f"Not a git repository: {self.repo_path}") from e

        self.git_factory = git_factory or (lambda path: GitOperations(path, self.config))
        self.git_service = self.git_factory(self.repo_path)
        self.remote_uri = self.git_service.get_remote_uri() or ""

        if github_service is None:
            github_service = GitHubService(self.repo_path, self.config)
            if self.remote_uri and self.config.include_pull_requests:
                github_service.setup_github_api(self.remote_uri)
        self.github_service = github_service

        self.stack_repository = stack_repository or StackRepository(self.config.stacks_file)
        self.status_service = StackStatusService(self.git_service, self.github_service)
        self.update_service = StackUpdateService(
            self.git_factory,
            self.repo_path,
            detector=ConflictResolutionDetector(),
            poll_interval=self.config.poll_interval,
            conflict_timeout=self.config.conflict_timeout,
        )
        self.remote_service = StackRemoteService(self.git_factory, self.repo_path)

    # Stack resolution

    def load_stacks(self) -> List[Stack]:
        """Stacks for this repository, the one containing the current branch first."""
        stacks = stacks_for_remote(self.stack_repository.load(), self.remote_uri)
        return order_stacks(stacks, self.git_service.get_current_branch())

    def resolve_stack(self, stack_name: Optional[str] = None) -> Stack:
        """Find a stack by name, or infer it from the current branch."""
        stacks = self.load_stacks()

        if stack_name:
            for stack in stacks:
                if stack.name == stack_name:
                    return stack
            raise StackNotFoundError(stack_name)

        if not stacks:
            raise StackNotFoundError(message="No stacks found for this repository")
        if len(stacks) == 1:
            return stacks[0]

        current_branch = self.git_service.get_current_branch()
        for stack in stacks:
            if current_branch and stack.contains(current_branch):
                return stack
        raise StackNotFoundError(message="Multiple stacks found. Use --stack to choose one")

    def _modify_stacks(self, stack_name: str, change: Callable[[Stack], None]) -> Stack:
        """Apply ``change`` to a stack of this repository and save all stacks."""
        all_stacks = self.stack_repository.load()
        for stack in all_stacks:
            if stack.name == stack_name and stack.remote_uri == self.remote_uri:
                change(stack)
                self.stack_repository.save(all_stacks)
                return stack
        raise StackNotFoundError(stack_name)

    # Status

    def compute_status(self, stack: Stack, include_pull_requests: Optional[bool] = None) -> StackStatus:
        if include_pull_requests is None:
            include_pull_requests = self.config.include_pull_requests
        return self.status_service.compute_status(
            stack,
            current_branch=self.git_service.get_current_branch(),
            include_pull_requests=include_pull_requests,
        )

    def status(self, stack_name: Optional[str] = None, include_pull_requests: Optional[bool] = None) -> StackStatus:
        """Compute and display the status tree of a stack."""
        stack = self.resolve_stack(stack_name)
        status = self.compute_status(stack, include_pull_requests)

        console.print(build_status_tree(status))
        for hint in get_stack_hints(status):
            console.print()
            console.print(hint)
        return status

    def list_stacks(self) -> List[Stack]:
        """Display the stacks of this repository."""
        stacks = self.load_stacks()
        if not stacks:
            console.print("[yellow]No stacks found for this repository[/yellow]")
            return stacks

        table = Table()
        table.add_column("Stack")
        table.add_column("Source Branch")
        table.add_column("Branches", justify="right")
        for stack in stacks:
            table.add_row(stack.name, stack.source_branch, str(len(stack.all_branch_names())))
        console.print(table)
        return stacks

    # Update

    def resolve_update_strategy(self, strategy: Union[UpdateStrategy, str, None] = None) -> UpdateStrategy:
        """Pick the update strategy: explicit, then config, then git config, then merge."""
        if isinstance(strategy, UpdateStrategy):
            return strategy

        value = strategy or self.config.update_strategy
        source = "configuration"
        if value is None:
            value = self.git_service.get_config_value(UPDATE_STRATEGY_CONFIG_KEY)
            source = f"git config '{UPDATE_STRATEGY_CONFIG_KEY}'"
        if value is None:
            return UpdateStrategy.MERGE

        try:
            return UpdateStrategy(value.strip().lower())
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid update strategy '{value}' in {source}. Use 'merge' or 'rebase'"
            ) from e

    def _return_to_branch(self, branch_name: Optional[str]) -> None:
        if branch_name and self.git_service.get_current_branch() != branch_name:
            logger.debug(f"Switching back to {branch_name}")
            self.git_service.change_branch(branch_name)

    def _return_to_branch_after_failure(self, branch_name: Optional[str]) -> None:
        """Switch back after a failed git command without hiding the original error."""
        try:
            self._return_to_branch(branch_name)
        except GitOperationError as e:
            logger.warning(f"Could not switch back to {branch_name}: {e}")

    def _batch_size(self, max_batch_size: Optional[int]) -> int:
        if max_batch_size is None:
            return self.config.max_batch_size
        if max_batch_size <= 0:
            raise ConfigurationError(f"Maximum batch size must be positive, got {max_batch_size}")
        return max_batch_size

    async def _update(
        self,
        stack: Stack,
        strategy: UpdateStrategy,
        cancel_event: Optional[asyncio.Event],
    ) -> bool:
        status = self.compute_status(stack)
        if not status.source_branch.exists:
            logger.warning(f"Source branch '{stack.source_branch}' does not exist locally. Skipping update.")
            return False

        await self.update_service.update(status, strategy, cancel_event)
        return True

    async def update_async(
        self,
        stack_name: Optional[str] = None,
        strategy: Union[UpdateStrategy, str, None] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> UpdateStrategy:
        """Update every branch in a stack with changes from its parents."""
        stack = self.resolve_stack(stack_name)
        resolved = self.resolve_update_strategy(strategy)
        original_branch = self.git_service.get_current_branch()

        try:
            updated = await self._update(stack, resolved, cancel_event)
        except ConflictError:
            raise
        except GitOperationError:
            self._return_to_branch_after_failure(original_branch)
            raise

        if updated:
            console.print(f"[green]Stack '{stack.name}' updated using {resolved.value}[/green]")
        self._return_to_branch(original_branch)
        return resolved

    def update(self, stack_name: Optional[str] = None, strategy: Union[UpdateStrategy, str, None] = None) -> UpdateStrategy:
        return asyncio.run(self.update_async(stack_name, strategy))

    # Remote

    def pull(self, stack_name: Optional[str] = None) -> None:
        """Pull changes from the remote for every branch in a stack."""
        stack = self.resolve_stack(stack_name)
        self.remote_service.pull(self.compute_status(stack, include_pull_requests=False))

    def push(
        self,
        stack_name: Optional[str] = None,
        force_with_lease: bool = False,
        max_batch_size: Optional[int] = None,
    ) -> None:
        """Push every branch in a stack to the remote."""
        stack = self.resolve_stack(stack_name)
        self.remote_service.push(
            self.compute_status(stack, include_pull_requests=False),
            self._batch_size(max_batch_size),
            force_with_lease,
        )

    async def sync_async(
        self,
        stack_name: Optional[str] = None,
        strategy: Union[UpdateStrategy, str, None] = None,
        max_batch_size: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> UpdateStrategy:
        """Fetch, pull, update and push a stack, then return to the starting branch."""
        stack = self.resolve_stack(stack_name)
        resolved = self.resolve_update_strategy(strategy)
        batch_size = self._batch_size(max_batch_size)
        original_branch = self.git_service.get_current_branch()

        try:
            logger.info("Fetching changes from remote")
            self.git_service.fetch(prune=True)

            self.remote_service.pull(self.compute_status(stack, include_pull_requests=False))
            await self._update(stack, resolved, cancel_event)
            self.remote_service.push(
                self.compute_status(stack, include_pull_requests=False),
                batch_size,
                force_with_lease=resolved == UpdateStrategy.REBASE,
            )
        except ConflictError:
            raise
        except GitOperationError:
            self._return_to_branch_after_failure(original_branch)
            raise

        self._return_to_branch(original_branch)
        console.print(f"[green]Stack '{stack.name}' synced with the remote[/green]")
        return resolved

    def sync(
        self,
        stack_name: Optional[str] = None,
        strategy: Union[UpdateStrategy, str, None] = None,
        max_batch_size: Optional[int] = None,
    ) -> UpdateStrategy:
        return asyncio.run(self.sync_async(stack_name, strategy, max_batch_size))

    # Cleanup

    def cleanup(self, stack_name: Optional[str] = None, dry_run: Optional[bool] = None) -> List[str]:
        """Delete local branches whose remote branch is gone or whose pull request was merged.

        Returns:
            Names of the branches deleted (or that would be deleted in dry-run mode)
        """
        if dry_run is None:
            dry_run = self.config.dry_run

        stack = self.resolve_stack(stack_name)
        status = self.compute_status(stack)

        to_delete = []
        for branch in status.all_branches():
            if not branch.could_be_cleaned_up:
                continue
            if branch.name == status.current_branch:
                console.print(f"[yellow]Skipping {branch.name} - cannot delete the current branch[/yellow]")
                continue
            if branch.worktree_path:
                console.print(f"[yellow]Skipping {branch.name} - checked out in worktree {branch.worktree_path}[/yellow]")
                continue
            to_delete.append(branch.name)

        if not to_delete:
            console.print("No branches to clean up")
            return []

        if dry_run:
            for name in to_delete:
                console.print(f"[yellow]Would delete branch {name} (local only)[/yellow]")
            return to_delete

        for name in to_delete:
            self.git_service.delete_local_branch(name)
            console.print(f"[green]Deleted branch {name} (local only)[/green]")

        def remove_deleted(target: Stack) -> None:
            for name in to_delete:
                if target.find_branch(name) is not None:
                    target.remove_branch(name)

        self._modify_stacks(stack.name, remove_deleted)
        return to_delete

    # Pull requests

    def update_pull_request_lists(self, stack_name: Optional[str] = None) -> int:
        """Write the list of stack pull requests into every open pull request description.

        Returns:
            Number of pull requests edited
        """
        if not self.github_service.is_available:
            raise GitStackKeeperError("GitHub integration is not available (needs a GitHub remote and GITHUB_TOKEN)")

        stack = self.resolve_stack(stack_name)
        pull_requests = [
            pr for pr in self.github_service.get_pull_requests(stack.all_branch_names()).values()
            if pr is not None and pr.state != PullRequestState.CLOSED
        ]
        if not pull_requests:
            console.print("No pull requests found for this stack")
            return 0

        block = format_stack_pr_list(stack.name, [pr.url for pr in pull_requests])
        edited = 0
        for pr in pull_requests:
            if pr.state != PullRequestState.OPEN:
                continue
            body = update_stack_pr_list(pr.body, block)
            if body == pr.body:
                logger.debug(f"Pull request #{pr.number} already lists the stack")
                continue
            console.print(f"Updating pull request #{pr.number} with stack details")
            self.github_service.edit_pull_request(pr.number, body)
            edited += 1
        return edited

    # Stack management

    def new_stack(self, name: str, source_branch: Optional[str] = None) -> Stack:
        """Create a stack on ``source_branch`` (the current branch by default)."""
        source_branch = source_branch or self.git_service.get_current_branch()
        if not source_branch:
            raise GitStackKeeperError("Cannot determine the source branch (HEAD is detached)")
        if not self.git_service.does_local_branch_exist(source_branch):
            raise BranchNotFoundError(source_branch)

        all_stacks = self.stack_repository.load()
        if any(s.name == name and s.remote_uri == self.remote_uri for s in all_stacks):
            raise ValueError(f"Stack '{name}' already exists")

        stack = Stack(name=name, remote_uri=self.remote_uri, source_branch=source_branch)
        all_stacks.append(stack)
        self.stack_repository.save(all_stacks)
        console.print(f"[green]Stack '{name}' created from {source_branch}[/green]")
        return stack

    def add_branch(self, stack_name: Optional[str], branch_name: str, parent: Optional[str] = None) -> Stack:
        """Add an existing local branch to a stack."""
        if not self.git_service.does_local_branch_exist(branch_name):
            raise BranchNotFoundError(branch_name)

        stack = self.resolve_stack(stack_name)
        stack = self._modify_stacks(stack.name, lambda s: s.add_branch(branch_name, parent))
        console.print(f"[green]Branch {branch_name} added to stack '{stack.name}'[/green]")
        return stack

    def remove_branch(self, stack_name: Optional[str], branch_name: str) -> Stack:
        """Remove a branch from a stack. Its children move up to its parent."""
        stack = self.resolve_stack(stack_name)
        stack = self._modify_stacks(stack.name, lambda s: s.remove_branch(branch_name))
        console.print(f"[green]Branch {branch_name} removed from stack '{stack.name}'[/green]")
        return stack

    def new_branch(self, stack_name: Optional[str], branch_name: str, parent: Optional[str] = None) -> Stack:
        """Create a branch from ``parent`` (the source branch by default), add it to a stack,
        push it and check it out.
        """
        stack = self.resolve_stack(stack_name)
        if stack.contains(branch_name):
            raise ValueError(f"Branch '{branch_name}' is already in stack '{stack.name}'")
        if self.git_service.does_local_branch_exist(branch_name):
            raise ValueError(f"Branch '{branch_name}' already exists locally")
        if parent and parent != stack.source_branch and stack.find_branch(parent) is None:
            raise ValueError(f"Parent branch '{parent}' not found in stack '{stack.name}'")

        start_point = parent or stack.source_branch
        console.print(f"Creating branch {branch_name} from {start_point} in stack '{stack.name}'")
        self.git_service.create_branch(branch_name, start_point)
        stack = self._modify_stacks(stack.name, lambda s: s.add_branch(branch_name, parent))

        try:
            self.git_service.push_new_branch(branch_name)
        except GitOperationError as e:
            logger.warning(
                f"Could not push {branch_name} to the remote ({e}). "
                f"Run 'git-stack-keeper push --stack \"{stack.name}\"' to push it."
            )

        self.git_service.change_branch(branch_name)
        console.print(f"[green]Branch {branch_name} created[/green]")
        return stack

    def move_branch(
        self,
        stack_name: Optional[str],
        branch_name: str,
        new_parent: Optional[str] = None,
        re_parent_children: bool = False,
    ) -> Stack:
        """Move a branch under a new parent (the source branch by default).

        Its children move with it unless ``re_parent_children`` is set, in which case
        they stay where the branch was.
        """
        stack = self.resolve_stack(stack_name)
        stack = self._modify_stacks(
            stack.name, lambda s: s.move_branch(branch_name, new_parent, re_parent_children)
        )
        console.print(
            f"[green]Branch {branch_name} moved under {new_parent or stack.source_branch}[/green]\n"
            f"Run [cyan]git-stack-keeper update --stack \"{stack.name}\"[/cyan] to update the stack locally, or "
            f"[cyan]git-stack-keeper sync --stack \"{stack.name}\"[/cyan] to sync with the remote."
        )
        return stack

    def switch_branch(self, branch_name: str) -> None:
        """Check out a local branch."""
        if not self.git_service.does_local_branch_exist(branch_name):
            raise BranchNotFoundError(branch_name)
        self.git_service.change_branch(branch_name)
        console.print(f"Switched to {branch_name}")

    def rename_stack(self, stack_name: Optional[str], new_name: str) -> Stack:
        stack = self.resolve_stack(stack_name)
        for other in self.load_stacks():
            if other.name.lower() == new_name.lower() and other.name != stack.name:
                raise ValueError(f"A stack named '{new_name}' already exists for this remote")

        old_name = stack.name
        stack = self._modify_stacks(old_name, lambda s: setattr(s, "name", new_name))
        console.print(f"[green]Stack '{old_name}' renamed to '{new_name}'[/green]")
        return stack

    def delete_stack(self, stack_name: Optional[str], confirm: bool = True) -> Optional[Stack]:
        """Delete a stack's configuration. Its branches are left untouched.

        Returns:
            The deleted stack, or None when the user declined
        """
        stack = self.resolve_stack(stack_name)
        if confirm and not Confirm.ask(f"Are you sure you want to delete stack '{stack.name}'?", console=console):
            console.print("Stack not deleted")
            return None

        all_stacks = [
            s for s in self.stack_repository.load()
            if not (s.name == stack.name and s.remote_uri == self.remote_uri)
        ]
        self.stack_repository.save(all_stacks)
        console.print(f"[green]Stack '{stack.name}' deleted[/green]")
        return stack
