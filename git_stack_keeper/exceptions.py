"""Custom exceptions for git-stack-keeper"""

from typing import Optional

from git_stack_keeper.models.conflict import ConflictOperationType


class GitStackKeeperError(Exception):
    """Base exception for all git-stack-keeper errors."""
    pass


class GitOperationError(GitStackKeeperError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.branch = branch
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class ConflictError(GitOperationError):
    """Exception raised when a merge or rebase stops on conflicts."""

    def __init__(self, operation_type: ConflictOperationType, branch: Optional[str] = None,
                 message: Optional[str] = None):
        self.operation_type = operation_type
        super().__init__(operation_type.value, branch, message or "Conflicts detected")


class OperationAbortedError(GitStackKeeperError):
    """Exception raised when the user aborts a conflicted merge or rebase."""

    def __init__(self, operation_type: ConflictOperationType):
        self.operation_type = operation_type
        super().__init__(f"{operation_type.value.capitalize()} aborted due to conflicts.")


class ConflictResolutionTimeoutError(GitStackKeeperError):
    """Exception raised when conflicts are not resolved before the deadline."""

    def __init__(self, operation_type: ConflictOperationType):
        self.operation_type = operation_type
        super().__init__(f"Timed out waiting for {operation_type.value} conflict resolution.")


class GitHubAPIError(GitStackKeeperError):
    """Exception raised for errors in GitHub API operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"GitHub API operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class StackNotFoundError(GitStackKeeperError):
    """Exception raised when a stack cannot be resolved."""

    def __init__(self, name: Optional[str] = None, message: Optional[str] = None):
        self.name = name
        if message is None:
            message = f"Stack '{name}' not found" if name else "No stack found for the current branch"
        super().__init__(message)


class ConfigurationError(GitStackKeeperError):
    """Exception raised for invalid configuration or stack files."""
    pass


class BranchNotFoundError(GitOperationError):
    """Exception raised when a branch is not found."""

    def __init__(self, branch: str):
        super().__init__("find_branch", branch, "Branch not found")
