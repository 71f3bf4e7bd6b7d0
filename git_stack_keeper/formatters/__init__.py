"""Formatting utilities for git-stack-keeper.

This package provides formatting functions organized into logical modules:
- status: Status tree, branch lines and follow-up hints
- pull_requests: Stack section of pull request descriptions
"""

# Status formatters
from .status import (
    format_branch_name,
    format_remote_status,
    format_parent_status,
    format_state_note,
    format_tip,
    format_pr_link,
    format_branch_status,
    build_status_tree,
    get_stack_hints,
)

# Pull request formatters
from .pull_requests import format_stack_pr_list, update_stack_pr_list

__all__ = [
    # Status
    "format_branch_name",
    "format_remote_status",
    "format_parent_status",
    "format_state_note",
    "format_tip",
    "format_pr_link",
    "format_branch_status",
    "build_status_tree",
    "get_stack_hints",
    # Pull requests
    "format_stack_pr_list",
    "update_stack_pr_list",
]
