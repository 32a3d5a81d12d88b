"""Sequential command execution with progress tracking.

Commands run strictly one after another: later commands routinely depend on
what earlier ones did (directories created, dependencies installed), so
there is no parallel mode.
"""

import re
from typing import Callable, List, Optional, Tuple

from aibuddy_exec.constants import MAX_ERROR_OUTPUT_CHARS
from aibuddy_exec.models import (
    CancellationToken,
    CommandResult,
    ExecutionOutcome,
    StepStatus,
    TaskProgress,
)
from aibuddy_exec.terminal import Terminal
from aibuddy_exec.terminal_buffer import TerminalBuffer


# (pattern, label) checked in order against the trimmed command
COMMAND_LABELS: List[Tuple[str, str]] = [
    (r"^git\s+status\b", "git status"),
    (r"^git\s+stash\s+pop\b", "Restoring stashed changes"),
    (r"^git\s+stash\b", "Stashing local changes"),
    (r"^git\s+rev-parse\b", "Checking current branch"),
    (r"^git\s+(checkout|switch)\b", "git checkout"),
    (r"^git\s+pull\b", "git pull"),
    (r"^git\s+fetch\b", "git fetch"),
    (r"^git\s+rebase\b", "git rebase"),
    (r"^git\s+merge\b", "git merge"),
    (r"^git\s+push\b", "git push"),
    (r"^git\s+commit\b", "git commit"),
    (r"^git\s+add\b", "git add"),
    (r"^git\s+clone\b", "git clone"),
    (r"(^|\s)(npm|yarn|pnpm)\s+(run\s+)?test\b|^npx\s+(jest|vitest)\b|^(pytest|python3?\s+-m\s+pytest)\b"
     r"|^(go|cargo|dotnet|flutter)\s+test\b|phpunit\b|artisan\s+test\b", "Running tests"),
    (r"^(npm|yarn|pnpm)\s+(install|i|add|ci)\b|^pip3?\s+install\b|^composer\s+(install|require|update)\b"
     r"|^bundle\s+install\b|^cargo\s+add\b|^go\s+mod\s+(download|tidy)\b|^poetry\s+install\b", "Installing dependencies"),
    (r"^(npm|yarn|pnpm)\s+(run\s+)?build\b|^(cargo|go|dotnet|flutter|swift)\s+build\b"
     r"|gradlew?\s+(assemble|build)\b|^mvn\s+(package|compile)\b|^make\b", "Building project"),
    (r"^(npm|yarn|pnpm)\s+(run\s+)?(lint|format)\b|^(eslint|prettier|ruff|flake8|black|pint)\b", "Linting"),
    (r"^(php\s+)?artisan\s+migrate\b|\bmigrate\b", "Running migrations"),
    (r"^mkdir\b", "Creating directory"),
    (r"^cd\b", "Changing directory"),
    (r"^(touch|cat\s+>|tee)\b", "Writing file"),
]

_LABEL_PATTERNS = [(re.compile(pattern), label) for pattern, label in COMMAND_LABELS]


def command_label(command: str) -> str:
    """Short human label for a command; unknown commands get a 40-char prefix."""
    stripped = command.strip()
    for pattern, label in _LABEL_PATTERNS:
        if pattern.search(stripped):
            return label
    first_line = stripped.splitlines()[0] if stripped else ""
    return first_line[:40]


def _clip(text: str, limit: int = MAX_ERROR_OUTPUT_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... ({len(text) - limit} more chars)"


def build_error_summary(results: List[CommandResult]) -> str:
    """One paragraph per failed command: quoted command, exit code, output."""
    parts = []
    for result in results:
        if result.exit_code == 0:
            continue
        output = result.stderr.strip() or result.stdout.strip()
        parts.append(
            f'"{result.command}" failed with exit code {result.exit_code}:\n{_clip(output)}\n\n'
        )
    return "".join(parts)


def execute_commands(
    commands: List[str],
    cwd: str,
    terminal: Terminal,
    buffer: Optional[TerminalBuffer] = None,
    progress_callback: Optional[Callable[[TaskProgress], None]] = None,
    cancel_token: Optional[CancellationToken] = None,
    guard: Optional[Callable[[str], Optional[str]]] = None,
) -> ExecutionOutcome:
    """
    Run ``commands`` in order against ``terminal``.

    Args:
        commands: Commands to run, in order
        cwd: Workspace directory passed to every command
        terminal: Terminal used to run commands
        buffer: Sink for command/success/error/output lines
        progress_callback: Called with the live TaskProgress after every change
        cancel_token: Checked before each command; never interrupts a running one
        guard: Returns a reason to block a command, or None to allow it

    Returns:
        ExecutionOutcome; a failing or raising command never stops the batch
    """
    if buffer is None:
        buffer = TerminalBuffer()

    progress = TaskProgress(
        total_commands=len(commands),
        steps=[StepStatus(command=c, label=command_label(c)) for c in commands],
    )

    def notify():
        if progress_callback is not None:
            progress_callback(progress)

    results: List[CommandResult] = []
    cancelled = False

    for index, command in enumerate(commands):
        if cancel_token is not None and cancel_token.cancelled:
            cancelled = True
            for step in progress.steps[index:]:
                step.status = "skipped"
            buffer.add("warning", f"Cancelled; {len(commands) - index} command(s) not run")
            notify()
            break

        step = progress.steps[index]
        progress.current_step = index
        step.status = "running"
        notify()

        buffer.add("command", f"$ {command}")

        blocked = guard(command) if guard is not None else None
        if blocked:
            result = CommandResult(command=command, stdout="", stderr=blocked, exit_code=-1, executed=False)
        else:
            try:
                raw = terminal.execute(command, cwd)
                result = CommandResult(
                    command=command,
                    stdout=raw.stdout,
                    stderr=raw.stderr,
                    exit_code=raw.exit_code,
                )
            except Exception as e:
                result = CommandResult(command=command, stdout="", stderr=str(e), exit_code=-1, executed=False)

        results.append(result)

        if result.stdout.strip():
            buffer.add("output", _clip(result.stdout, 1000))
        if result.passed:
            buffer.add("success", f"✓ {step.label}")
        else:
            detail = result.stderr.strip().splitlines()[0] if result.stderr.strip() else ""
            message = f"✗ {step.label} (exit code {result.exit_code})"
            buffer.add("error", f"{message}: {detail}" if detail else message)

        step.status = "passed" if result.passed else "failed"
        progress.record(result.passed)
        notify()

    needs_more_help = any(r.exit_code != 0 for r in results)
    return ExecutionOutcome(
        results=results,
        needs_more_help=needs_more_help,
        error_summary=build_error_summary(results) if needs_more_help else "",
        cancelled=cancelled,
        progress=progress,
    )
