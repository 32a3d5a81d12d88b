"""Tests for the LangGraph recovery harness."""

import pytest

from aibuddy_exec.models import (
    ANALYZING,
    DONE,
    EXECUTING,
    IDLE,
    PLANNING,
    STOP_COMPLETED,
    STOP_NO_ACTIONABLE_FIX,
    STOP_NO_COMMANDS,
    STOP_RETRIES_EXHAUSTED,
)
from aibuddy_exec.recovery import RecoveryOrchestrator
from aibuddy_exec.recovery_graph import build_recovery_graph, recovery_graph, run_recovery_graph


def make_orchestrator(terminal, ai, cwd, **kwargs):
    return RecoveryOrchestrator(terminal=terminal, ai_client=ai, cwd=cwd, environment_context="- OS: test", **kwargs)


class TestGraphStructure:

    def test_nodes(self):
        graph = build_recovery_graph()
        assert {"start", "execute", "analyze"} <= set(graph.nodes)

    def test_precompiled_graph_available(self):
        assert recovery_graph is not None


class TestRunRecoveryGraph:
    """The graph must give the same answers as RecoveryOrchestrator.run."""

    def test_success(self, fake_terminal, fake_ai, workspace):
        result = run_recovery_graph(make_orchestrator(fake_terminal, fake_ai, workspace), ["ls"], "list")
        assert result.stop_reason == STOP_COMPLETED
        assert result.attempts == 1
        assert fake_ai.calls == []

    def test_no_commands(self, fake_terminal, fake_ai, workspace):
        result = run_recovery_graph(make_orchestrator(fake_terminal, fake_ai, workspace), [], "nothing")
        assert result.stop_reason == STOP_NO_COMMANDS
        assert result.attempts == 0

    @pytest.mark.parametrize("max_retries", [0, 2, 3, 10])
    def test_bounded(self, fake_terminal, make_ai, workspace, max_retries):
        ai = make_ai(["```bash\nnpm install\n```"])
        fake_terminal.fail_when(lambda c: c.startswith("npm"))
        orchestrator = make_orchestrator(fake_terminal, ai, workspace, max_retries=max_retries)

        result = run_recovery_graph(orchestrator, ["npm install --yes"], "install")

        assert result.attempts == max_retries + 1
        assert len(ai.calls) == max_retries
        assert result.stop_reason == STOP_RETRIES_EXHAUSTED

    def test_no_actionable_fix(self, fake_terminal, make_ai, workspace):
        ai = make_ai(["Reinstall Node.js manually."])
        fake_terminal.fail("node app.js")
        result = run_recovery_graph(make_orchestrator(fake_terminal, ai, workspace), ["node app.js"], "run")
        assert result.stop_reason == STOP_NO_ACTIONABLE_FIX
        assert "Reinstall Node.js" in result.summary

    def test_matches_orchestrator_run(self, fake_terminal, make_ai, workspace):
        fake_terminal.fail("npm install --yes")

        graph_phases, loop_phases = [], []
        graph_result = run_recovery_graph(
            make_orchestrator(fake_terminal, make_ai(["```bash\nnpm ci\n```"]), workspace,
                              phase_callback=lambda s: graph_phases.append(s.phase)),
            ["npm install --yes"],
            "install",
        )
        loop_result = make_orchestrator(
            fake_terminal, make_ai(["```bash\nnpm ci\n```"]), workspace,
            phase_callback=lambda s: loop_phases.append(s.phase),
        ).run(["npm install --yes"], "install")

        assert graph_phases == loop_phases == [IDLE, PLANNING, EXECUTING, ANALYZING, PLANNING, EXECUTING, DONE]
        assert [r.command for r in graph_result.results] == [r.command for r in loop_result.results]
        assert graph_result.stop_reason == loop_result.stop_reason == STOP_COMPLETED
