"""Value types shared by the planning pipeline, executor and recovery loop."""

import threading
from dataclasses import dataclass, field
from typing import List, Optional


# Task phases (see recovery.after_execution / recovery.after_analysis)
IDLE = "IDLE"
PLANNING = "PLANNING"
EXECUTING = "EXECUTING"
ANALYZING = "ANALYZING"
DONE = "DONE"

# Reasons a task reached DONE
STOP_COMPLETED = "completed"
STOP_RETRIES_EXHAUSTED = "retries_exhausted"
STOP_NO_ACTIONABLE_FIX = "no_actionable_fix"
STOP_ANALYSIS_FAILED = "analysis_failed"
STOP_NO_COMMANDS = "no_commands"
STOP_CANCELLED = "cancelled"


@dataclass(frozen=True)
class CodeBlock:
    """One fenced block from an AI response."""
    language: str
    code: str


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one attempted command. Never mutated after creation."""
    command: str
    stdout: str
    stderr: str
    exit_code: int
    executed: bool = True

    @property
    def passed(self) -> bool:
        return self.exit_code == 0


@dataclass
class StepStatus:
    command: str
    label: str
    status: str = "pending"  # pending | running | passed | failed | skipped


@dataclass
class TaskProgress:
    """Progress of one executor run, mutated in place as commands complete."""
    total_commands: int
    completed_commands: int = 0
    passed_commands: int = 0
    failed_commands: int = 0
    current_step: int = -1
    steps: List[StepStatus] = field(default_factory=list)

    def record(self, passed: bool) -> None:
        self.completed_commands += 1
        if passed:
            self.passed_commands += 1
        else:
            self.failed_commands += 1


@dataclass
class ExecutionOutcome:
    """Result of one executor invocation."""
    results: List[CommandResult]
    needs_more_help: bool
    error_summary: str
    cancelled: bool = False
    progress: Optional[TaskProgress] = None


@dataclass
class RetryState:
    """Loop state owned by the recovery orchestrator for one task."""
    attempt: int = 0
    commands_to_run: List[str] = field(default_factory=list)
    phase: str = IDLE
    stop_reason: Optional[str] = None


@dataclass
class TaskResult:
    """Everything surfaced to the user once a task reaches DONE."""
    results: List[CommandResult]
    passed: int
    failed: int
    attempts: int
    stop_reason: str
    summary: str
    # Failures in the final round; earlier failures may have been fixed since
    failed_in_last_round: int = 0
    ai_responses: List[str] = field(default_factory=list)
    terminal_lines: List["TerminalLine"] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.stop_reason == STOP_COMPLETED and self.failed_in_last_round == 0


@dataclass(frozen=True)
class TerminalLine:
    type: str  # command | output | success | error | info | warning
    text: str
    timestamp: float = 0.0


class CancellationToken:
    """Cooperative cancellation flag shared between the caller and a running task.

    Checked by the executor between commands and while waiting on an AI call.
    It never interrupts a command that has already been dispatched.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)
