"""Add non-interactive flags to CLI tools that would otherwise prompt."""

import re
from typing import Dict, List, Optional


# tool -> flag appended to suppress prompts. An empty flag means the tool is
# handled some other way (stdin piping, env vars) and is left as written.
NON_INTERACTIVE_FLAGS: Dict[str, str] = {
    "composer": "--no-interaction",
    "artisan": "--no-interaction",
    "phpunit": "--no-interaction",
    "pint": "--no-interaction",
    "npm": "--yes",
    "npx": "--yes",
    "yarn": "--non-interactive",
    "apt-get": "-y",
    "gcloud": "--quiet",
    "firebase": "--non-interactive",
    "eas": "--non-interactive",
    "ssh-keygen": "",
}

_ENV_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=\S*$")

# Shell operator ending the leading simple command, matched at whitespace
_SHELL_OPERATOR = re.compile(r"\s+(?:\|\||&&|\||;|\d?>>?|<)\s*")

# `<<` and `<<-` heredoc openers; `<<<` here-strings stay single-line
_HEREDOC_OPEN = re.compile(r"(?<!<)<<(?!<)")


def _leading_tool(command: str) -> Optional[str]:
    """Path-stripped name of the program the command starts with.

    Skips ``VAR=value`` prefixes and a ``php`` interpreter so that
    ``php artisan migrate`` resolves to ``artisan``.
    """
    tokens = command.split()
    while tokens and _ENV_ASSIGNMENT.match(tokens[0]):
        tokens = tokens[1:]
    if tokens and tokens[0].rsplit("/", 1)[-1] == "php" and len(tokens) > 1:
        tokens = tokens[1:]
    if not tokens:
        return None
    for tool in NON_INTERACTIVE_FLAGS:
        if re.match(rf"^(?:.*/)?{re.escape(tool)}$", tokens[0]):
            return tool
    return None


def _has_flag(command: str, flag: str) -> bool:
    return re.search(rf"(?<!\S){re.escape(flag)}(?!\S)", command) is not None


def _first_operator(command: str) -> Optional[int]:
    """Index of the first shell operator outside quotes and escapes, or None."""
    quote = None
    escaped = False
    for i, char in enumerate(command):
        if escaped:
            escaped = False
        elif char == "\\" and quote != "'":
            escaped = True
        elif quote:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char.isspace() and _SHELL_OPERATOR.match(command, i):
            return i
    return None


def add_non_interactive_flag(command: str) -> str:
    """Return ``command`` with its tool's non-interactive flag, if it needs one.

    Backslash continuations get the flag at the end of their last line.
    Heredocs and commands ending in a dangling backslash are left as written.
    """
    if "\n" in command and _HEREDOC_OPEN.search(command):
        return command
    if command.rstrip().endswith("\\"):
        return command
    tool = _leading_tool(command)
    if tool is None:
        return command
    flag = NON_INTERACTIVE_FLAGS[tool]
    if not flag or _has_flag(command, flag):
        return command

    operator = _first_operator(command)
    if operator is None:
        return f"{command.rstrip()} {flag}"
    head = command[:operator]
    return f"{head} {flag}{command[operator:]}"


def inject_non_interactive_flags(commands: List[str]) -> List[str]:
    """Apply ``add_non_interactive_flag`` to every command. Idempotent."""
    return [add_non_interactive_flag(command) for command in commands]
