"""Status tree formatting utilities."""

from typing import List, Optional, Union

from rich.markup import escape
from rich.tree import Tree

from git_stack_keeper.constants import (
    PR_STATE_COLORS,
    STATE_NOTES,
    SYMBOL_AHEAD,
    SYMBOL_BEHIND,
    SYMBOL_CURRENT_BRANCH,
)
from git_stack_keeper.models.branch import BranchDetail, BranchDetailBase, StackStatus
from git_stack_keeper.models.pull_request import PullRequest


def format_branch_name(branch: BranchDetailBase, current_branch: Optional[str] = None) -> str:
    """
    Format a branch name, struck through when it no longer exists locally.

    Args:
        branch: Branch to format
        current_branch: Name of the checked out branch

    Returns:
        Rich markup for the branch name
    """
    name = escape(branch.name)
    if not branch.exists:
        return f"[strike grey50]{name}[/]"
    if branch.name == current_branch:
        return f"[bold]{name}{SYMBOL_CURRENT_BRANCH}[/bold]"
    return name


def format_remote_status(branch: BranchDetailBase) -> str:
    """Format commits behind/ahead of the remote, e.g. ``2↓1↑``. Empty when in sync."""
    if not branch.is_active or (branch.ahead_of_remote == 0 and branch.behind_remote == 0):
        return ""
    return f"{branch.behind_remote}{SYMBOL_BEHIND}{branch.ahead_of_remote}{SYMBOL_AHEAD}"


def format_parent_status(branch: BranchDetail) -> str:
    """Format the position relative to the effective parent."""
    parent = branch.parent
    if not branch.is_active or parent is None:
        return ""
    parent_name = escape(parent.name)
    if parent.ahead > 0 and parent.behind > 0:
        return f"[dim]({parent.ahead} ahead, {parent.behind} behind {parent_name})[/dim]"
    if parent.ahead > 0:
        return f"[dim]({parent.ahead} ahead of {parent_name})[/dim]"
    if parent.behind > 0:
        return f"[dim]({parent.behind} behind {parent_name})[/dim]"
    return ""


def format_state_note(branch: BranchDetailBase) -> str:
    note = STATE_NOTES.get(branch.state.value)
    return f"[dim]{note}[/dim]" if note else ""


def format_tip(branch: BranchDetailBase) -> str:
    if branch.tip is None:
        return ""
    return f"[dim]{escape(branch.tip.sha[:7])}[/dim] {escape(branch.tip.message)}"


def format_pr_link(pull_request: Optional[PullRequest]) -> str:
    """
    Format a pull request as a clickable, state-colored link.

    Args:
        pull_request: Pull request or None

    Returns:
        Rich markup, empty when there is no pull request
    """
    if pull_request is None:
        return ""
    color = PR_STATE_COLORS.get(pull_request.state.value, "white")
    text = f"[link={pull_request.url}][{color}]#{pull_request.number}[/{color}][/link] {escape(pull_request.title)}"
    if pull_request.is_draft:
        text += " [dim](draft)[/dim]"
    return text


def format_branch_status(branch: Union[BranchDetail, BranchDetailBase], current_branch: Optional[str] = None) -> str:
    """Format one line of the status tree."""
    parts = [format_branch_name(branch, current_branch), format_remote_status(branch)]
    if isinstance(branch, BranchDetail):
        parts.append(format_parent_status(branch))
    parts.append(format_state_note(branch))
    if branch.exists:
        parts.append(format_tip(branch))
    if isinstance(branch, BranchDetail):
        parts.append(format_pr_link(branch.pull_request))
    return " ".join(part for part in parts if part)


def build_status_tree(status: StackStatus) -> Tree:
    """Build a rich Tree for a stack, rooted at its source branch."""
    tree = Tree(format_branch_status(status.source_branch, status.current_branch))

    def add_children(node: Tree, branches):
        for branch in branches:
            child = node.add(format_branch_status(branch, status.current_branch))
            add_children(child, branch.children)

    add_children(tree, status.root_branches)
    return tree


def get_stack_hints(status: StackStatus) -> List[str]:
    """Suggestions for follow-up commands based on a stack's status."""
    branches = status.all_branches()
    if not branches:
        return []

    name = status.name
    hints = []
    if all(branch.could_be_cleaned_up for branch in branches):
        hints.append(
            "All branches exist locally but are either not in the remote repository or the pull request "
            "associated with the branch is no longer open. This stack might be able to be deleted."
        )
    elif any(branch.could_be_cleaned_up for branch in branches):
        hints.append(
            "Some branches exist locally but are either not in the remote repository or the pull request "
            f"associated with the branch is no longer open. Run [cyan]git-stack-keeper cleanup --stack \"{escape(name)}\"[/cyan] "
            "to clean up local branches."
        )
    elif all(not branch.exists for branch in branches):
        hints.append("No branches exist locally. This stack might be able to be deleted.")

    if any(b.is_active and b.parent is not None and b.parent.behind > 0 for b in branches):
        hints.append(
            f"There are changes in parent branches. Run [cyan]git-stack-keeper update --stack \"{escape(name)}\"[/cyan] "
            "to update the stack."
        )
    if any(b.is_active and b.ahead_of_remote > 0 for b in branches):
        hints.append(
            f"There are changes in local branches. Run [cyan]git-stack-keeper push --stack \"{escape(name)}\"[/cyan] "
            "to push them to the remote."
        )
    return hints
