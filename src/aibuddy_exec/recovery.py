"""Bounded AI-assisted recovery loop.

One task moves through

    IDLE -> PLANNING -> EXECUTING -> {DONE | ANALYZING -> PLANNING}* -> DONE

The transitions are plain functions over RetryState (``start``,
``after_execution``, ``after_analysis``) so the retry bound can be checked
without a terminal or a model. ``RecoveryOrchestrator`` drives them with
real collaborators. Every failure inside a task ends up in the TaskResult;
nothing is raised to the caller.
"""

import threading
from dataclasses import replace
from typing import Callable, List, Optional, Sequence, Tuple

from aibuddy_exec.constants import MAX_ERROR_RETRIES
from aibuddy_exec.environment import detect_environment, environment_summary
from aibuddy_exec.executor import execute_commands
from aibuddy_exec.model_client import Message, ModelClient
from aibuddy_exec.models import (
    ANALYZING,
    DONE,
    EXECUTING,
    IDLE,
    PLANNING,
    STOP_ANALYSIS_FAILED,
    STOP_CANCELLED,
    STOP_COMPLETED,
    STOP_NO_ACTIONABLE_FIX,
    STOP_NO_COMMANDS,
    STOP_RETRIES_EXHAUSTED,
    CancellationToken,
    CommandResult,
    ExecutionOutcome,
    RetryState,
    TaskProgress,
    TaskResult,
)
from aibuddy_exec.pipeline import plan_commands
from aibuddy_exec.segmenter import DEFAULT_NOISE_FILTERS, NoiseFilter
from aibuddy_exec.terminal import Terminal
from aibuddy_exec.terminal_buffer import TerminalBuffer


FIX_SYSTEM_PROMPT = """You are a senior engineer fixing failed terminal commands.
Your job is to get the user's task done from the current state of their machine.

Rules:
- Put every command to run in a single ```bash block.
- Commands run non-interactively, one at a time, in the workspace directory.
- Keep prose short. Explain the root cause in one or two sentences."""


FIX_ANALYSIS_PROMPT = """The commands I ran for this request failed.

ORIGINAL REQUEST:
{request}

ERRORS:
{errors}
{history}
ENVIRONMENT:
{environment}

Analyze the errors and give me corrected commands.

Git guidance:
- If a git command failed, run `git status` first to see the repository state.
- Stash uncommitted changes before `git pull`, `git rebase` or `git merge`.
- If a push was rejected because the remote has new commits, use `git pull --rebase` and push again.

Do NOT retry the same command that already failed unless you changed something
that makes it succeed; take a different approach instead.
If nothing can be fixed by running commands, say so and do not include a bash block."""


# =============================================================================
# STATE TRANSITIONS
# =============================================================================

def start(commands: List[str]) -> RetryState:
    """IDLE -> PLANNING -> EXECUTING, or DONE when there is nothing to run."""
    if not commands:
        return RetryState(attempt=0, commands_to_run=[], phase=DONE, stop_reason=STOP_NO_COMMANDS)
    return RetryState(attempt=0, commands_to_run=list(commands), phase=EXECUTING)


def after_execution(state: RetryState, outcome: ExecutionOutcome, max_retries: int) -> RetryState:
    """EXECUTING -> ANALYZING (attempt + 1) or DONE."""
    if outcome.cancelled:
        return replace(state, phase=DONE, stop_reason=STOP_CANCELLED)
    if not outcome.needs_more_help:
        return replace(state, phase=DONE, stop_reason=STOP_COMPLETED)
    if state.attempt < max_retries:
        return replace(state, attempt=state.attempt + 1, phase=ANALYZING)
    return replace(state, phase=DONE, stop_reason=STOP_RETRIES_EXHAUSTED)


def after_analysis(state: RetryState, commands: Optional[List[str]]) -> RetryState:
    """ANALYZING -> PLANNING -> EXECUTING with the fix, or DONE.

    ``commands`` is None when the AI call itself failed and [] when the
    reply contained nothing runnable.
    """
    if commands is None:
        return replace(state, commands_to_run=[], phase=DONE, stop_reason=STOP_ANALYSIS_FAILED)
    if not commands:
        return replace(state, commands_to_run=[], phase=DONE, stop_reason=STOP_NO_ACTIONABLE_FIX)
    return replace(state, commands_to_run=list(commands), phase=EXECUTING)


# =============================================================================
# PROMPT AND SUMMARY
# =============================================================================

def build_fix_prompt(
    user_request: str,
    error_summary: str,
    environment_context: str,
    previously_failed: Sequence[str] = (),
) -> str:
    history = ""
    if previously_failed:
        listed = "\n".join(f"- {command}" for command in previously_failed)
        history = f"\nCOMMANDS THAT ALREADY FAILED IN EARLIER ATTEMPTS:\n{listed}\n"
    return FIX_ANALYSIS_PROMPT.format(
        request=user_request.strip() or "(not provided)",
        errors=error_summary.strip(),
        history=history,
        environment=environment_context.strip() or "(unknown)",
    )


def _first_line(text: str) -> str:
    stripped = text.strip()
    return stripped.splitlines()[0] if stripped else ""


def build_task_summary(
    results: List[CommandResult],
    stop_reason: str,
    attempts: int,
    max_retries: int,
    detail: str = "",
) -> str:
    """Short transcript entry: tallies, one line per failure, and why we stopped."""
    passed = sum(1 for r in results if r.passed)
    failed = len(results) - passed
    lines = [f"Ran {len(results)} command(s) in {attempts} attempt(s): {passed} passed, {failed} failed."]

    for result in results:
        if result.passed:
            continue
        reason = _first_line(result.stderr) or _first_line(result.stdout) or f"exit code {result.exit_code}"
        lines.append(f"  ✗ {_first_line(result.command)[:80]}: {reason}")

    if stop_reason == STOP_RETRIES_EXHAUSTED:
        lines.append(f"⚠ Stopped after {max_retries} fix attempt(s); some commands still fail.")
    elif stop_reason == STOP_NO_ACTIONABLE_FIX:
        lines.append("⚠ The AI suggested no runnable fix.")
    elif stop_reason == STOP_ANALYSIS_FAILED:
        lines.append("⚠ Could not get a fix from the AI.")
    elif stop_reason == STOP_CANCELLED:
        lines.append("⚠ Cancelled.")
    elif stop_reason == STOP_NO_COMMANDS:
        lines.append("No runnable commands found.")

    if detail.strip():
        lines.append(detail.strip()[:500])
    return "\n".join(lines)


class AnalysisCancelled(Exception):
    """Raised internally when the caller cancels while waiting on the AI."""
    pass


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class RecoveryOrchestrator:
    """Runs a command batch and repairs failures with the AI, within a retry bound."""

    def __init__(
        self,
        terminal: Terminal,
        ai_client: ModelClient,
        cwd: str,
        max_retries: int = MAX_ERROR_RETRIES,
        buffer: Optional[TerminalBuffer] = None,
        progress_callback: Optional[Callable[[TaskProgress], None]] = None,
        phase_callback: Optional[Callable[[RetryState], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
        guard: Optional[Callable[[str], Optional[str]]] = None,
        environment_context: Optional[str] = None,
        noise_filters: Sequence[NoiseFilter] = DEFAULT_NOISE_FILTERS,
        poll_interval: float = 0.1,
    ):
        self.terminal = terminal
        self.ai_client = ai_client
        self.cwd = cwd
        self.max_retries = max_retries
        self.buffer = buffer if buffer is not None else TerminalBuffer()
        self.progress_callback = progress_callback
        self.phase_callback = phase_callback
        self.cancel_token = cancel_token
        self.guard = guard
        self.environment_context = environment_context
        self.noise_filters = noise_filters
        self.poll_interval = poll_interval

    def enter_phase(self, state: RetryState) -> RetryState:
        if self.phase_callback is not None:
            self.phase_callback(state)
        return state

    def begin(self, commands: List[str]) -> RetryState:
        """Walk IDLE -> PLANNING for the first batch, then apply ``start``."""
        self.enter_phase(RetryState(phase=IDLE))
        self.enter_phase(RetryState(commands_to_run=list(commands), phase=PLANNING))
        return self.enter_phase(start(commands))

    def _environment(self) -> str:
        if self.environment_context is None:
            self.environment_context = environment_summary(detect_environment(self.cwd))
        return self.environment_context

    def plan(self, response_text: str) -> List[str]:
        return plan_commands(response_text, self.noise_filters)

    def execute_round(self, commands: List[str]) -> ExecutionOutcome:
        return execute_commands(
            commands,
            self.cwd,
            self.terminal,
            buffer=self.buffer,
            progress_callback=self.progress_callback,
            cancel_token=self.cancel_token,
            guard=self.guard,
        )

    def _chat(self, messages: List[Message]) -> str:
        if self.cancel_token is None:
            return self.ai_client.chat(messages, FIX_SYSTEM_PROMPT).response_text

        # Daemon worker: an abandoned call must not keep the interpreter alive
        outcome = {}

        def call():
            try:
                outcome["result"] = self.ai_client.chat(messages, FIX_SYSTEM_PROMPT)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=call, name="aibuddy-fix-request", daemon=True)
        worker.start()
        while worker.is_alive():
            if self.cancel_token.wait(self.poll_interval):
                self.ai_client.abort()
                raise AnalysisCancelled()
        if "error" in outcome:
            raise outcome["error"]
        return outcome["result"].response_text

    def request_fix(
        self,
        user_request: str,
        error_summary: str,
        previously_failed: Sequence[str] = (),
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Ask the AI for corrected commands.

        Returns:
            (response_text, None) on success, (None, error_text) on failure

        Raises:
            AnalysisCancelled: if the cancel token fires while waiting
        """
        prompt = build_fix_prompt(user_request, error_summary, self._environment(), previously_failed)
        try:
            return self._chat([Message(role="user", content=prompt)]), None
        except AnalysisCancelled:
            raise
        except Exception as e:
            return None, f"AI fix request failed: {e}"

    def run_response(self, response_text: str, user_request: str) -> TaskResult:
        """Plan the commands in an AI response, then ``run`` them."""
        return self.run(self.plan(response_text), user_request)

    def run(self, commands: List[str], user_request: str) -> TaskResult:
        """
        Execute ``commands`` and recover from failures.

        At most ``max_retries + 1`` execution rounds happen. Results of all
        rounds are accumulated in order.
        """
        all_results: List[CommandResult] = []
        ai_responses: List[str] = []
        failed_commands: List[str] = []
        rounds = 0
        last_failed = 0
        detail = ""

        state = self.begin(commands)

        while state.phase == EXECUTING and state.commands_to_run and state.attempt <= self.max_retries:
            if state.attempt:
                self.buffer.add("info", f"Running fix attempt {state.attempt}/{self.max_retries}")
            outcome = self.execute_round(state.commands_to_run)
            rounds += 1
            all_results.extend(outcome.results)
            last_failed = sum(1 for r in outcome.results if not r.passed)

            state = self.enter_phase(after_execution(state, outcome, self.max_retries))
            if state.phase != ANALYZING:
                break

            self.buffer.add("info", f"Asking AI for a fix (attempt {state.attempt}/{self.max_retries})")
            try:
                response_text, error = self.request_fix(user_request, outcome.error_summary, failed_commands)
            except AnalysisCancelled:
                state = self.enter_phase(replace(state, phase=DONE, stop_reason=STOP_CANCELLED))
                break
            failed_commands.extend(r.command for r in outcome.results if not r.passed)

            if response_text is None:
                detail = error or ""
                self.buffer.add("error", detail)
                state = self.enter_phase(after_analysis(state, None))
                break

            ai_responses.append(response_text)
            state = self.enter_phase(replace(state, phase=PLANNING))
            state = self.enter_phase(after_analysis(state, self.plan(response_text)))
            if state.phase == DONE:
                # The AI's explanation is all the user gets in this case
                detail = response_text

        return self.finish(state, all_results, rounds, last_failed, ai_responses, detail)

    def finish(
        self,
        state: RetryState,
        results: List[CommandResult],
        rounds: int,
        last_failed: int,
        ai_responses: List[str],
        detail: str = "",
    ) -> TaskResult:
        """Close out a task: force DONE, log why it stopped and build the TaskResult."""
        if state.phase != DONE:
            state = self.enter_phase(replace(state, phase=DONE, stop_reason=state.stop_reason or STOP_COMPLETED))

        if state.stop_reason in (STOP_RETRIES_EXHAUSTED, STOP_NO_ACTIONABLE_FIX, STOP_ANALYSIS_FAILED):
            self.buffer.add("warning", f"Recovery stopped: {state.stop_reason}")

        passed = sum(1 for r in results if r.passed)
        return TaskResult(
            results=results,
            passed=passed,
            failed=len(results) - passed,
            attempts=rounds,
            stop_reason=state.stop_reason,
            summary=build_task_summary(results, state.stop_reason, rounds, self.max_retries, detail),
            failed_in_last_round=last_failed,
            ai_responses=ai_responses,
            terminal_lines=self.buffer.lines(),
        )
