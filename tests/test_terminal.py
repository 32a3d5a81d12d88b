"""Tests for the subprocess-backed terminal (runs a real shell)."""

import os

import pytest

from aibuddy_exec.terminal import SubprocessTerminal, TerminalError


@pytest.fixture
def terminal():
    return SubprocessTerminal(timeout=10, shell="/bin/sh")


class TestSubprocessTerminal:

    def test_captures_output_and_exit_code(self, terminal, tmp_path):
        result = terminal.execute("echo out; echo err >&2; exit 3", str(tmp_path))
        assert result.stdout == "out\n"
        assert result.stderr == "err\n"
        assert result.exit_code == 3

    def test_runs_in_workspace(self, terminal, tmp_path):
        terminal.execute("touch marker.txt", str(tmp_path))
        assert (tmp_path / "marker.txt").exists()

    def test_stdin_is_closed(self, terminal, tmp_path):
        result = terminal.execute("read answer || echo no-input", str(tmp_path))
        assert result.stdout.strip() == "no-input"

    def test_ci_env_set(self, terminal, tmp_path, monkeypatch):
        monkeypatch.delenv("CI", raising=False)
        assert terminal.execute('echo "$CI"', str(tmp_path)).stdout.strip() == "1"

    def test_bare_cd_carries_over(self, terminal, tmp_path):
        (tmp_path / "app").mkdir()
        workspace = str(tmp_path)

        assert terminal.execute("cd app", workspace).exit_code == 0
        terminal.execute("touch inside.txt", workspace)

        assert (tmp_path / "app" / "inside.txt").exists()
        assert terminal.current_directory(workspace) == str(tmp_path / "app")

        terminal.reset()
        assert terminal.current_directory(workspace) == workspace

    def test_cd_to_missing_directory(self, terminal, tmp_path):
        result = terminal.execute("cd nowhere", str(tmp_path))
        assert result.exit_code == 1
        assert "nowhere" in result.stderr
        assert terminal.current_directory(str(tmp_path)) == str(tmp_path)

    def test_cd_with_operators_runs_in_shell(self, terminal, tmp_path):
        (tmp_path / "app").mkdir()
        result = terminal.execute("cd app && pwd", str(tmp_path))
        assert result.stdout.strip().endswith("app")
        assert terminal.current_directory(str(tmp_path)) == str(tmp_path)

    def test_timeout_raises(self, tmp_path):
        terminal = SubprocessTerminal(timeout=0.2, shell="/bin/sh")
        with pytest.raises(TerminalError, match="timed out"):
            terminal.execute("sleep 5", str(tmp_path))

    def test_cd_expands_variables(self, terminal, tmp_path, monkeypatch):
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "src").mkdir()
        monkeypatch.setenv("PROJ", str(tmp_path / "app"))
        workspace = str(tmp_path)

        assert terminal.execute("cd $PROJ", workspace).exit_code == 0
        assert os.path.samefile(terminal.current_directory(workspace), tmp_path / "app")

        assert terminal.execute("cd ${PROJ}/src", workspace).exit_code == 0
        terminal.execute("touch here.txt", workspace)
        assert (tmp_path / "app" / "src" / "here.txt").exists()

    def test_cd_to_missing_variable_directory(self, terminal, tmp_path, monkeypatch):
        monkeypatch.setenv("PROJ", str(tmp_path / "nowhere"))
        result = terminal.execute("cd $PROJ", str(tmp_path))
        assert result.exit_code != 0
        assert terminal.current_directory(str(tmp_path)) == str(tmp_path)
