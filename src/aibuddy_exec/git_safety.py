"""Guard git commands that can corrupt or strand a dirty working tree.

Pull, rebase, merge, checkout and switch refuse to run (or half-run) when
the tree has uncommitted changes. Before any of them we record the status
and stash everything, and we restore the stash once the batch is done.
A push with no preceding pull/fetch/rebase gets a branch check first so a
fast-forward rejection can be diagnosed against the right branch.
"""

import re
from typing import List

from aibuddy_exec.constants import AUTO_STASH_MESSAGE


GIT_STATUS_COMMAND = "git status --porcelain"
GIT_STASH_COMMAND = f'git stash --include-untracked -m "{AUTO_STASH_MESSAGE}"'
GIT_STASH_POP_COMMAND = "git stash pop 2>/dev/null || true"
GIT_BRANCH_CHECK_COMMAND = "git rev-parse --abbrev-ref HEAD"

CLEAN_WORKTREE_SUBCOMMANDS = ("pull", "rebase", "merge", "checkout", "switch")
SYNC_SUBCOMMANDS = ("pull", "fetch", "rebase")

_CLEAN_WORKTREE = re.compile(r"^git\s+(?:" + "|".join(CLEAN_WORKTREE_SUBCOMMANDS) + r")\b")
_PUSH = re.compile(r"^git\s+push\b")
_SYNC = re.compile(r"^git\s+(?:" + "|".join(SYNC_SUBCOMMANDS) + r")\b")


def needs_clean_worktree(command: str) -> bool:
    return _CLEAN_WORKTREE.match(command.strip()) is not None


def is_git_push(command: str) -> bool:
    return _PUSH.match(command.strip()) is not None


def is_git_mutating(command: str) -> bool:
    return needs_clean_worktree(command) or is_git_push(command)


def needs_branch_check(commands: List[str]) -> bool:
    """True if a push is not preceded by a pull/fetch/rebase or a rev-parse."""
    if any("rev-parse" in command for command in commands):
        return False
    for command in commands:
        if _SYNC.match(command.strip()):
            return False
        if is_git_push(command):
            return True
    return False


def build_git_safe_sequence(commands: List[str]) -> List[str]:
    """
    Wrap a command batch with git safety guards.

    Returns the input unchanged when nothing in it mutates git state.
    Otherwise returns a new list:

        [status, stash]        if a clean-worktree command is present
        [rev-parse]            if a push needs a branch check
        <commands, in order>
        [stash pop]            if a stash was inserted
    """
    if not any(is_git_mutating(command) for command in commands):
        return commands

    result: List[str] = []
    stashed = any(needs_clean_worktree(command) for command in commands)
    if stashed:
        result.append(GIT_STATUS_COMMAND)
        result.append(GIT_STASH_COMMAND)

    if needs_branch_check(commands):
        result.append(GIT_BRANCH_CHECK_COMMAND)

    result.extend(commands)

    if stashed:
        result.append(GIT_STASH_POP_COMMAND)

    return result
