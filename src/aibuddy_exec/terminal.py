"""Terminal interface and a subprocess-backed implementation."""

import os
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from aibuddy_exec.constants import DEFAULT_COMMAND_TIMEOUT_S


@dataclass
class TerminalResult:
    """Captured output of one shell command."""
    stdout: str
    stderr: str
    exit_code: int


class TerminalError(Exception):
    """Raised when a command could not be run to completion."""
    pass


class Terminal(ABC):
    """Abstract interface for running one shell command in a directory."""

    @abstractmethod
    def execute(self, command: str, cwd: str) -> TerminalResult:
        """
        Run ``command`` through a shell with ``cwd`` as working directory.

        Returns:
            TerminalResult with stdout, stderr and the exit code

        Raises:
            TerminalError (or any exception): the command did not complete
        """
        pass


def default_shell() -> str:
    shell = os.environ.get("SHELL")
    if shell and os.path.exists(shell):
        return shell
    return shutil.which("bash") or "/bin/sh"


_SHELL_OPERATORS = ("&&", "||", ";", "|", ">", "<", "$(", "`")


class SubprocessTerminal(Terminal):
    """Runs each command in a fresh shell process.

    A bare ``cd <dir>`` is not sent to a shell; it moves the directory used
    for later commands issued against the same workspace, so a block like
    ``mkdir app`` / ``cd app`` / ``npm init`` behaves as it would when typed.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_COMMAND_TIMEOUT_S,
        shell: Optional[str] = None,
        env: Optional[dict] = None,
    ):
        self.timeout = timeout
        self.shell = shell or default_shell()
        self.env = env
        # workspace -> directory reached by bare `cd` commands
        self._directories: Dict[str, str] = {}

    def current_directory(self, cwd: str) -> str:
        return self._directories.get(cwd, cwd)

    def reset(self) -> None:
        self._directories.clear()

    def _change_directory(self, command: str, cwd: str) -> Optional[TerminalResult]:
        """Handle a bare ``cd``; returns None if ``command`` is anything else."""
        stripped = command.strip()
        if not (stripped == "cd" or stripped.startswith("cd ")):
            return None
        if any(op in stripped for op in _SHELL_OPERATORS):
            return None
        try:
            parts = shlex.split(stripped)
        except ValueError:
            return None
        if len(parts) > 2:
            return None

        base = self.current_directory(cwd)
        if "$" in stripped:
            # Variables are expanded by the shell itself, then `pwd` reports where it landed
            result = self._run(f"{stripped} && pwd", base)
            if result.exit_code == 0:
                self._directories[cwd] = os.path.normpath(result.stdout.strip())
                return TerminalResult(stdout="", stderr=result.stderr, exit_code=0)
            return result

        target = os.path.expanduser(parts[1] if len(parts) == 2 else "~")
        new_dir = os.path.normpath(os.path.join(base, target))
        if not os.path.isdir(new_dir):
            return TerminalResult(
                stdout="",
                stderr=f"cd: no such file or directory: {parts[1] if len(parts) == 2 else target}",
                exit_code=1,
            )
        self._directories[cwd] = new_dir
        return TerminalResult(stdout="", stderr="", exit_code=0)

    def _run(self, command: str, directory: str) -> TerminalResult:
        env = dict(os.environ)
        # Tools that honour CI skip their interactive prompts
        env.setdefault("CI", "1")
        if self.env:
            env.update(self.env)

        try:
            proc = subprocess.run(
                command,
                shell=True,
                executable=self.shell,
                cwd=directory,
                env=env,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise TerminalError(f"Command timed out after {self.timeout:g}s: {command}")
        except OSError as e:
            raise TerminalError(f"Could not start shell: {e}")

        return TerminalResult(
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            exit_code=proc.returncode,
        )

    def execute(self, command: str, cwd: str) -> TerminalResult:
        changed = self._change_directory(command, cwd)
        if changed is not None:
            return changed
        return self._run(command, self.current_directory(cwd))
