"""Shared fakes for the terminal and AI collaborators."""

import pytest

from aibuddy_exec.model_client import ChatResult, ModelClient
from aibuddy_exec.terminal import Terminal, TerminalResult


class FakeTerminal(Terminal):
    """Scripted terminal: every command succeeds unless told otherwise."""

    def __init__(self):
        self.calls = []
        self._outcomes = {}
        self._predicates = []
        self.on_execute = None

    def fail(self, command, exit_code=1, stderr="error", stdout=""):
        self._outcomes[command] = TerminalResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    def fail_when(self, predicate, exit_code=1, stderr="error"):
        self._predicates.append((predicate, TerminalResult(stdout="", stderr=stderr, exit_code=exit_code)))

    def respond(self, command, stdout):
        self._outcomes[command] = TerminalResult(stdout=stdout, stderr="", exit_code=0)

    def raise_on(self, command, error):
        self._outcomes[command] = error

    @property
    def commands(self):
        return [command for command, _ in self.calls]

    def execute(self, command, cwd):
        self.calls.append((command, cwd))
        if self.on_execute is not None:
            self.on_execute(command)
        outcome = self._outcomes.get(command)
        if outcome is None:
            for predicate, result in self._predicates:
                if predicate(command):
                    outcome = result
                    break
        if isinstance(outcome, Exception):
            raise outcome
        return outcome or TerminalResult(stdout="", stderr="", exit_code=0)


class FakeModelClient(ModelClient):
    """Replies from a script; the last reply repeats once the script runs out."""

    def __init__(self, replies=None):
        self.replies = list(replies or ["I could not find a fix."])
        self.calls = []
        self.on_call = None
        self.aborted = 0

    def chat(self, messages, system_prompt):
        self.calls.append((messages, system_prompt))
        if self.on_call is not None:
            self.on_call()
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        return ChatResult(response_text=reply, model="fake/model", cost=0.0)

    def abort(self):
        self.aborted += 1


@pytest.fixture
def fake_terminal():
    return FakeTerminal()


@pytest.fixture
def fake_ai():
    return FakeModelClient()


@pytest.fixture
def workspace(tmp_path):
    return str(tmp_path)


@pytest.fixture
def make_ai():
    """Factory for a FakeModelClient with scripted replies."""
    return FakeModelClient
