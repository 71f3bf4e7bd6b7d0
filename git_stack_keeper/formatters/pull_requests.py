"""Pull request description formatting utilities."""

from typing import List

from git_stack_keeper.constants import (
    STACK_PR_LIST_DESCRIPTION,
    STACK_PR_LIST_MARKER_END,
    STACK_PR_LIST_MARKER_START,
)


def format_stack_pr_list(stack_name: str, pull_request_urls: List[str]) -> str:
    """
    Build the marked block listing every pull request in a stack.

    Args:
        stack_name: Name of the stack
        pull_request_urls: URLs in stack order

    Returns:
        Markdown block wrapped in the stack list markers
    """
    pr_list = "\n".join(f"- {url}" for url in pull_request_urls)
    description = STACK_PR_LIST_DESCRIPTION.format(name=stack_name)
    return f"{STACK_PR_LIST_MARKER_START}\n{description}\n\n{pr_list}\n{STACK_PR_LIST_MARKER_END}"


def update_stack_pr_list(body: str, pr_list_block: str) -> str:
    """
    Replace the stack list in a pull request body, or prepend it when absent.

    Args:
        body: Current pull request description
        pr_list_block: Block from format_stack_pr_list

    Returns:
        The new description
    """
    lowered = body.lower()
    start = lowered.find(STACK_PR_LIST_MARKER_START.lower())
    end = lowered.find(STACK_PR_LIST_MARKER_END.lower())

    if start >= 0 and end >= start:
        return body[:start] + pr_list_block + body[end + len(STACK_PR_LIST_MARKER_END):]

    if body:
        return f"{pr_list_block}\n\n{body}"
    return pr_list_block
