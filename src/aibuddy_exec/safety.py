"""Risk classification for commands before they are dispatched."""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple


LOW = "low"
MEDIUM = "medium"
HIGH = "high"
CRITICAL = "critical"


@dataclass(frozen=True)
class SafetyResult:
    safe: bool
    reason: str
    risk_level: str


CRITICAL_PATTERNS: List[Tuple[str, str]] = [
    (r"\brm\s+(-[a-zA-Z]*[rf][a-zA-Z]*\s+)+(/|~|\*|/\*)(\s|$)", "Recursive delete of root, home or wildcard"),
    (r"--no-preserve-root", "Recursive delete from root"),
    (r"\bmkfs(\.[a-z0-9]+)?\b", "Filesystem creation (mkfs)"),
    (r"\bfdisk\b", "Partition table edit"),
    (r"\bdd\b[^\n]*\bof=/dev/", "Raw device write with dd"),
    (r":\s*\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", "Fork bomb"),
    (r"\b(curl|wget)\b[^\n]*\|\s*(sudo\s+)?(sh|bash|zsh)\b", "Pipe remote script to shell"),
    (r"\b(shutdown|reboot|halt|poweroff)\b", "System power action"),
    (r"\bgit\s+push\b[^\n]*(\s--force\b|\s-f\b)", "Force push"),
    (r"\bgit\s+reset\s+--hard\b", "Hard reset discards local changes"),
    (r"\bgit\s+clean\s+-[a-zA-Z]*f", "git clean deletes untracked files"),
    (r"\b(DROP\s+(DATABASE|TABLE)|TRUNCATE\s+TABLE)\b", "Destructive SQL"),
    (r"\b(npm|yarn|pnpm|cargo)\s+publish\b", "Package publishing"),
    (r"\btwine\s+upload\b", "Package publishing"),
    (r"\bchmod\s+(-R\s+)?777\s+/(\s|$)", "World-writable root"),
]

# Read-only commands that never need a second look
TRUSTED_PREFIXES = [
    "ls", "pwd", "cat", "head", "tail", "grep", "rg", "find", "tree", "which",
    "echo", "env", "printenv", "wc", "stat", "du", "df",
    "git status", "git log", "git diff", "git branch", "git remote", "git show",
    "git rev-parse", "git stash list",
    "node -v", "node --version", "npm -v", "npm ls", "npm list", "npm view",
    "python --version", "python3 --version", "pip list", "pip show", "pip freeze",
    "go version", "cargo --version", "rustc --version", "java -version",
]


def _matches_prefix(command: str, prefix: str) -> bool:
    return command == prefix or command.startswith(prefix + " ")


def analyze_command_safety(command: str) -> SafetyResult:
    """Classify ``command`` as low, medium, high or critical risk."""
    normalized = command.strip()

    for pattern, label in CRITICAL_PATTERNS:
        if re.search(pattern, normalized, re.IGNORECASE):
            return SafetyResult(safe=False, reason=label, risk_level=CRITICAL)

    if re.match(r"^sudo\b", normalized) or re.search(r"[;&|]\s*sudo\b", normalized):
        return SafetyResult(safe=False, reason="Requires elevated privileges", risk_level=CRITICAL)

    if re.search(r">\s*/(etc|boot|bin|sbin|usr)/", normalized):
        return SafetyResult(safe=False, reason="Redirection into system path", risk_level=HIGH)

    if any(_matches_prefix(normalized, prefix) for prefix in TRUSTED_PREFIXES):
        return SafetyResult(safe=True, reason="Trusted command pattern", risk_level=LOW)

    return SafetyResult(safe=True, reason="Unknown command - proceed with caution", risk_level=MEDIUM)


def critical_command_guard(command: str) -> Optional[str]:
    """Executor guard: the reason to block ``command``, or None to run it."""
    result = analyze_command_safety(command)
    if result.risk_level == CRITICAL:
        return f"Blocked ({result.reason})"
    return None
