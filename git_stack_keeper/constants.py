"""Shared constants for git-stack-keeper."""

# Defaults
DEFAULT_REMOTE_NAME = "origin"
DEFAULT_MAX_BATCH_SIZE = 5
DEFAULT_POLL_INTERVAL = 1.0
STACKS_FILE_NAME = "stacks.json"
CONFIG_DIR_NAME = ".git-stack-keeper"

# Git config key used to pick the update strategy when none is given
UPDATE_STRATEGY_CONFIG_KEY = "stack.update.strategy"

# Markers wrapping the stack section of pull request descriptions
STACK_PR_LIST_MARKER_START = "<!-- stack-pr-list -->"
STACK_PR_LIST_MARKER_END = "<!-- /stack-pr-list -->"
STACK_PR_LIST_DESCRIPTION = "This PR is part of a stack **{name}**:"


# Symbol constants
SYMBOL_AHEAD = "↑"
SYMBOL_BEHIND = "↓"
SYMBOL_CURRENT_BRANCH = " *"


# Notes shown next to branches that are not active, keyed by BranchState value
STATE_NOTES = {
    "never-pushed": "(no remote tracking branch)",
    "remote-gone": "(remote branch deleted)",
    "pull-request-merged": "(pull request merged)",
}


# Pull request colors (Rich color names), keyed by PullRequestState value
PR_STATE_COLORS = {
    "open": "green",
    "closed": "red",
    "merged": "magenta",
}
