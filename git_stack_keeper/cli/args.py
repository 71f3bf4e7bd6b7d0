"""Command-line argument parsing for git-stack-keeper."""

import argparse

from git_stack_keeper.__version__ import __version__
from git_stack_keeper.constants import DEFAULT_MAX_BATCH_SIZE


def _add_stack_argument(parser):
    parser.add_argument("--stack", "-s", metavar="NAME", help="Stack to use (default: inferred from current branch)")


def _add_strategy_arguments(parser):
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--merge", dest="strategy", action="store_const", const="merge",
        help="Update branches by merging parents into children",
    )
    group.add_argument(
        "--rebase", dest="strategy", action="store_const", const="rebase",
        help="Update branches by rebasing them onto their parents",
    )
    parser.add_argument(
        "--timeout", type=float, metavar="SECONDS",
        help="Give up waiting for conflict resolution after SECONDS (default: wait forever)",
    )


def _add_batch_size_argument(parser):
    parser.add_argument(
        "--max-batch-size", type=int, metavar="N", default=None,
        help=f"Maximum number of branches pushed in one command (default: {DEFAULT_MAX_BATCH_SIZE})",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="git-stack-keeper",
        description="Keep stacks of dependent Git branches up to date",
        epilog="Pull request details need the GITHUB_TOKEN environment variable. "
        "Get a token at https://github.com/settings/tokens (scopes: repo or public_repo)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--debug", action="store_true", help="Show debug information for troubleshooting")
    parser.add_argument("--version", action="version", version=f"git-stack-keeper {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    status = subparsers.add_parser("status", help="Show the status of a stack")
    _add_stack_argument(status)
    status.add_argument("--no-pr", action="store_true", help="Skip pull request lookups")

    update = subparsers.add_parser("update", help="Update branches with changes from their parents")
    _add_stack_argument(update)
    _add_strategy_arguments(update)

    pull = subparsers.add_parser("pull", help="Pull changes from the remote for every branch")
    _add_stack_argument(pull)

    push = subparsers.add_parser("push", help="Push every branch to the remote")
    _add_stack_argument(push)
    _add_batch_size_argument(push)
    push.add_argument(
        "--force-with-lease", action="store_true",
        help="Force push (with lease), needed after rebasing",
    )

    sync = subparsers.add_parser("sync", help="Pull, update and push a stack")
    _add_stack_argument(sync)
    _add_strategy_arguments(sync)
    _add_batch_size_argument(sync)

    cleanup = subparsers.add_parser("cleanup", help="Delete branches that were merged or deleted remotely")
    _add_stack_argument(cleanup)
    cleanup.add_argument(
        "--dry-run", action="store_true",
        help="Preview mode - show what would be deleted without actually deleting",
    )

    pr_list = subparsers.add_parser("pr-list", help="List the stack's pull requests in each description")
    _add_stack_argument(pr_list)

    new = subparsers.add_parser("new", help="Create a new stack")
    new.add_argument("name", help="Name of the stack")
    new.add_argument("--source-branch", metavar="BRANCH", help="Branch the stack is based on (default: current)")

    add = subparsers.add_parser("add", help="Add an existing branch to a stack")
    _add_stack_argument(add)
    add.add_argument("branch", help="Branch to add")
    add.add_argument("--parent", metavar="BRANCH", help="Parent branch in the stack (default: top level)")

    remove = subparsers.add_parser("remove", help="Remove a branch from a stack")
    _add_stack_argument(remove)
    remove.add_argument("branch", help="Branch to remove")

    new_branch = subparsers.add_parser("branch", help="Create a branch, add it to a stack and check it out")
    _add_stack_argument(new_branch)
    new_branch.add_argument("branch", help="Branch to create")
    new_branch.add_argument("--parent", metavar="BRANCH", help="Branch to create it from (default: the source branch)")

    move = subparsers.add_parser("move", help="Move a branch under a new parent")
    _add_stack_argument(move)
    move.add_argument("branch", help="Branch to move")
    move.add_argument("--parent", metavar="BRANCH", help="New parent branch (default: the source branch)")
    move.add_argument(
        "--keep-children", action="store_true",
        help="Leave the branch's children under its old parent instead of moving them with it",
    )

    switch = subparsers.add_parser("switch", help="Check out a branch")
    switch.add_argument("branch", help="Branch to check out")

    rename = subparsers.add_parser("rename", help="Rename a stack")
    _add_stack_argument(rename)
    rename.add_argument("name", help="New name of the stack")

    delete = subparsers.add_parser("delete", help="Delete a stack (its branches are kept)")
    _add_stack_argument(delete)
    delete.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser("list", help="List stacks for this repository")

    return parser


def parse_args(argv=None):
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
