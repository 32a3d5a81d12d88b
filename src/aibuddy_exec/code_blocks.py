"""Extract runnable shell blocks from AI response markdown."""

import re
from typing import List

from aibuddy_exec.models import CodeBlock


# Only blocks tagged with one of these are executed; anything else is
# assumed to be illustrative (config files, source listings, output).
SHELL_LANGUAGES = ("bash", "sh", "shell", "zsh")

_FENCE_PATTERN = re.compile(
    r"```[ \t]*(" + "|".join(SHELL_LANGUAGES) + r")[ \t]*\r?\n(.*?)```",
    re.DOTALL | re.IGNORECASE,
)


def extract_code_blocks(text: str) -> List[CodeBlock]:
    """Return the shell-tagged fenced blocks of ``text`` in document order."""
    if not text:
        return []
    return [
        CodeBlock(language=language.lower(), code=code)
        for language, code in _FENCE_PATTERN.findall(text)
    ]
