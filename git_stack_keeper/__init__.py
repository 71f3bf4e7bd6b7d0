"""
git-stack-keeper - Keep stacks of dependent Git branches up to date
"""

from .__version__ import __version__
from .core.stack_keeper import StackKeeper
from .cli.main import main

__all__ = ["StackKeeper", "main", "__version__"]
