"""Persistence of stack configuration as JSON."""
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Union

from git_stack_keeper.exceptions import ConfigurationError
from git_stack_keeper.logging_config import get_logger
from git_stack_keeper.models.stack import Stack

# Import fcntl for POSIX file locking (Unix/Linux/macOS)
try:
    import fcntl
    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False

logger = get_logger(__name__)


class StackRepository:
    """Loads and saves the stacks file."""

    def __init__(self, path: Union[str, Path]):
        """Initialize the repository.

        Args:
            path: Location of the stacks JSON file
        """
        self.path = Path(path).expanduser()

    @contextmanager
    def _acquire_lock(self, file_handle, operation: str = "read"):
        """Acquire an advisory lock on the stacks file.

        Args:
            file_handle: Open file handle to lock
            operation: Type of operation ("read" or "write")
        """
        if not HAS_FCNTL:
            logger.debug("File locking not available on this platform")
            yield
            return

        # Exclusive lock for writes, shared lock for reads
        lock_type = fcntl.LOCK_EX if operation == "write" else fcntl.LOCK_SH
        fcntl.flock(file_handle.fileno(), lock_type)
        try:
            yield
        finally:
            fcntl.flock(file_handle.fileno(), fcntl.LOCK_UN)

    @staticmethod
    def _validate(data: Dict) -> None:
        if not isinstance(data, dict) or not isinstance(data.get("stacks"), list):
            raise ConfigurationError("Stacks file must contain a 'stacks' list")

        for entry in data["stacks"]:
            if not isinstance(entry, dict):
                raise ConfigurationError("Each stack must be an object")
            for field in ("name", "source_branch"):
                if not entry.get(field):
                    raise ConfigurationError(f"Stack is missing required field '{field}'")

    def load(self) -> List[Stack]:
        """Load all stacks. A missing file means no stacks."""
        if not self.path.exists():
            logger.debug(f"No stacks file at {self.path}")
            return []

        try:
            with open(self.path, "r") as f:
                with self._acquire_lock(f, operation="read"):
                    data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in stacks file {self.path}: {e}") from e

        self._validate(data)
        try:
            stacks = [Stack.from_dict(entry) for entry in data["stacks"]]
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Invalid stack definition in {self.path}: {e}") from e

        logger.debug(f"Loaded {len(stacks)} stacks from {self.path}")
        return stacks

    def save(self, stacks: List[Stack]) -> None:
        """Save all stacks using an atomic write."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"stacks": [stack.to_dict() for stack in stacks]}

        # Atomic write: write to temp file, then rename
        temp_file = self.path.with_suffix(".tmp")
        try:
            with open(temp_file, "w") as f:
                with self._acquire_lock(f, operation="write"):
                    json.dump(data, f, indent=2)
                    f.flush()
            temp_file.replace(self.path)
            logger.debug(f"Saved {len(stacks)} stacks to {self.path}")
        finally:
            if temp_file.exists():
                temp_file.unlink()


def stacks_for_remote(stacks: List[Stack], remote_uri: Optional[str]) -> List[Stack]:
    """Stacks that belong to the repository with ``remote_uri``."""
    return [stack for stack in stacks if stack.remote_uri == (remote_uri or "")]


def order_stacks(stacks: List[Stack], current_branch: Optional[str]) -> List[Stack]:
    """The stack containing ``current_branch`` first, then by name."""
    return sorted(
        stacks,
        key=lambda s: (not (current_branch and s.contains(current_branch)), s.name.lower()),
    )
