"""Configuration handling for git-stack-keeper"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from git_stack_keeper.constants import (
    CONFIG_DIR_NAME,
    DEFAULT_MAX_BATCH_SIZE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REMOTE_NAME,
    STACKS_FILE_NAME,
)


def default_stacks_file() -> str:
    """Location of the stack configuration file."""
    return str(Path.home() / CONFIG_DIR_NAME / STACKS_FILE_NAME)


@dataclass
class Config:
    """Configuration for git-stack-keeper with validation."""

    # Execution modes
    verbose: bool = False
    debug: bool = False
    dry_run: bool = False

    # Stack updates
    update_strategy: Optional[str] = None  # merge, rebase (None = git config or merge)
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    poll_interval: float = DEFAULT_POLL_INTERVAL
    conflict_timeout: Optional[float] = None  # None = wait until resolved or cancelled

    # Remote / GitHub integration
    remote_name: str = DEFAULT_REMOTE_NAME
    include_pull_requests: bool = True
    github_token: Optional[str] = None
    workers: Optional[int] = None  # Parallel pull request lookups (None = auto)

    # Persistence
    stacks_file: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_update_strategy()
        self._validate_max_batch_size()
        self._validate_poll_interval()
        self._validate_conflict_timeout()
        self._validate_remote_name()
        self._validate_workers()
        if self.github_token is None:
            self.github_token = os.environ.get("GITHUB_TOKEN")
        if not self.stacks_file:
            self.stacks_file = default_stacks_file()

    def _validate_update_strategy(self):
        """Validate update_strategy is one of allowed values."""
        allowed = ["merge", "rebase"]
        if self.update_strategy is not None and self.update_strategy not in allowed:
            raise ValueError(f"update_strategy must be one of {allowed}, got '{self.update_strategy}'")

    def _validate_max_batch_size(self):
        """Validate max_batch_size is positive."""
        if self.max_batch_size <= 0:
            raise ValueError(f"max_batch_size must be positive, got {self.max_batch_size}")

    def _validate_poll_interval(self):
        """Validate poll_interval is positive."""
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")

    def _validate_conflict_timeout(self):
        """Validate conflict_timeout is positive when set."""
        if self.conflict_timeout is not None and self.conflict_timeout <= 0:
            raise ValueError(f"conflict_timeout must be positive, got {self.conflict_timeout}")

    def _validate_remote_name(self):
        """Validate remote_name is not empty."""
        if not self.remote_name or not self.remote_name.strip():
            raise ValueError("remote_name cannot be empty")
        self.remote_name = self.remote_name.strip()

    def _validate_workers(self):
        """Validate workers is positive when set."""
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "verbose": self.verbose,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "update_strategy": self.update_strategy,
            "max_batch_size": self.max_batch_size,
            "poll_interval": self.poll_interval,
            "conflict_timeout": self.conflict_timeout,
            "remote_name": self.remote_name,
            "include_pull_requests": self.include_pull_requests,
            "github_token": self.github_token,
            "workers": self.workers,
            "stacks_file": self.stacks_file,
        }

    def get(self, key: str, default=None):
        """Get config value by key so services accept a Config or a dict."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        known_fields = {
            "verbose",
            "debug",
            "dry_run",
            "update_strategy",
            "max_batch_size",
            "poll_interval",
            "conflict_timeout",
            "remote_name",
            "include_pull_requests",
            "github_token",
            "workers",
            "stacks_file",
        }

        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)
