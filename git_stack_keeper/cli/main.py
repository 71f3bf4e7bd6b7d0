"""Command-line interface for git-stack-keeper"""

import os
import sys

from rich.console import Console

from git_stack_keeper.cli.args import parse_args
from git_stack_keeper.config import Config
from git_stack_keeper.core.stack_keeper import StackKeeper
from git_stack_keeper.exceptions import GitStackKeeperError
from git_stack_keeper.logging_config import setup_logging

console = Console()


def build_config(parsed_args) -> Config:
    """Build config from parsed arguments."""
    return Config(
        verbose=parsed_args.verbose,
        debug=parsed_args.debug,
        dry_run=getattr(parsed_args, "dry_run", False),
        update_strategy=getattr(parsed_args, "strategy", None),
        conflict_timeout=getattr(parsed_args, "timeout", None),
        include_pull_requests=not getattr(parsed_args, "no_pr", False),
    )


def run_command(keeper: StackKeeper, parsed_args) -> None:
    command = parsed_args.command
    stack = getattr(parsed_args, "stack", None)

    if command == "status":
        keeper.status(stack)
    elif command == "update":
        keeper.update(stack)
    elif command == "pull":
        keeper.pull(stack)
    elif command == "push":
        keeper.push(stack, force_with_lease=parsed_args.force_with_lease, max_batch_size=parsed_args.max_batch_size)
    elif command == "sync":
        keeper.sync(stack, max_batch_size=parsed_args.max_batch_size)
    elif command == "cleanup":
        keeper.cleanup(stack)
    elif command == "pr-list":
        edited = keeper.update_pull_request_lists(stack)
        console.print(f"Updated {edited} pull request(s)")
    elif command == "new":
        keeper.new_stack(parsed_args.name, parsed_args.source_branch)
    elif command == "add":
        keeper.add_branch(stack, parsed_args.branch, parsed_args.parent)
    elif command == "remove":
        keeper.remove_branch(stack, parsed_args.branch)
    elif command == "branch":
        keeper.new_branch(stack, parsed_args.branch, parsed_args.parent)
    elif command == "move":
        keeper.move_branch(stack, parsed_args.branch, parsed_args.parent, re_parent_children=parsed_args.keep_children)
    elif command == "switch":
        keeper.switch_branch(parsed_args.branch)
    elif command == "rename":
        keeper.rename_stack(stack, parsed_args.name)
    elif command == "delete":
        keeper.delete_stack(stack, confirm=not parsed_args.yes)
    elif command == "list":
        keeper.list_stacks()
    else:
        raise ValueError(f"Unknown command: {command}")


def main(argv=None):
    """Main entry point for the application."""
    parsed_args = parse_args(argv)

    # Setup logging before creating StackKeeper
    log_file = setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

    try:
        config = build_config(parsed_args)

        if parsed_args.debug:
            console.print(f"[yellow]Debug mode enabled, logging to {log_file}[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                if key == "github_token" and value:
                    value = "****"
                console.print(f"  {key}: {value}")

        keeper = StackKeeper(os.getcwd(), config)
        run_command(keeper, parsed_args)
        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except (GitStackKeeperError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        if parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
