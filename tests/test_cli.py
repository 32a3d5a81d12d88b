"""CLI tests via click's CliRunner (real shell, no AI calls)."""

import json

import pytest
import yaml
from click.testing import CliRunner

from aibuddy_exec import config as config_module
from aibuddy_exec.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: None)
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.delenv("AIBUDDY_MAX_RETRIES", raising=False)


class TestCheckConfig:

    def test_missing_key(self, runner, monkeypatch):
        monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: None)
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

        result = runner.invoke(cli, ["check-config"])

        assert result.exit_code == 1
        assert "OPENROUTER_API_KEY" in result.output

    def test_configured(self, runner, api_key):
        result = runner.invoke(cli, ["check-config"])
        assert result.exit_code == 0
        assert "Configuration loaded successfully!" in result.output


class TestPlan:

    def test_lists_planned_commands(self, runner, tmp_path):
        response = tmp_path / "reply.md"
        response.write_text("```bash\ngit pull\nnpm install\n```")

        result = runner.invoke(cli, ["plan", str(response)])

        assert result.exit_code == 0
        assert "5 command(s):" in result.output
        assert "git stash --include-untracked" in result.output
        assert "npm install --yes" in result.output

    def test_nothing_to_run(self, runner, tmp_path):
        response = tmp_path / "reply.md"
        response.write_text("All done, nothing to run.")
        result = runner.invoke(cli, ["plan", str(response)])
        assert result.exit_code == 0
        assert "No runnable commands found." in result.output

    def test_flags_critical_commands(self, runner, tmp_path):
        response = tmp_path / "reply.md"
        response.write_text("```bash\ngit push --force\n```")
        result = runner.invoke(cli, ["plan", str(response)])
        assert "risk=critical" in result.output
        assert "Force push" in result.output


class TestRun:

    def test_runs_commands_in_workspace(self, runner, api_key, tmp_path):
        response = tmp_path / "reply.md"
        response.write_text("```bash\nmkdir app\ncd app\necho hello > greeting.txt\n```")

        result = runner.invoke(cli, ["run", str(response), "--cwd", str(tmp_path), "--request", "greet"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "app" / "greeting.txt").read_text().strip() == "hello"
        assert "Ran 3 command(s) in 1 attempt(s): 3 passed, 0 failed." in result.output

    def test_critical_command_blocked(self, runner, api_key, tmp_path):
        response = tmp_path / "reply.md"
        response.write_text("```bash\ngit push --force origin main\n```")

        result = runner.invoke(cli, ["run", str(response), "--cwd", str(tmp_path), "--max-retries", "0"])

        assert result.exit_code == 1
        assert "Blocked (Force push)" in result.output

    def test_missing_key(self, runner, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: None)
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        response = tmp_path / "reply.md"
        response.write_text("```bash\nls\n```")

        result = runner.invoke(cli, ["run", str(response)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestExecAndObserve:

    def test_exec_writes_report_then_observe(self, runner, api_key, tmp_path):
        task_file = tmp_path / "task.yaml"
        task_file.write_text(yaml.safe_dump({
            "task_id": "cli-001",
            "request": "create a notes folder",
            "response": "```bash\nmkdir -p notes\n```",
        }))
        reports = tmp_path / "reports"

        result = runner.invoke(cli, ["exec", str(task_file), "--output-dir", str(reports), "--no-trace"])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "notes").is_dir()
        report = json.loads(next(reports.glob("cli-001_*.json")).read_text())
        assert report["stop_reason"] == "completed"

        observed = runner.invoke(cli, ["observe", "cli-001", "--reports-dir", str(reports)])
        assert observed.exit_code == 0
        assert "TASK SUMMARY: cli-001" in observed.output
        assert "COMPLETE" in observed.output

    def test_exec_invalid_task(self, runner, api_key, tmp_path):
        task_file = tmp_path / "task.yaml"
        task_file.write_text(yaml.safe_dump({"task_id": "cli-002"}))

        result = runner.invoke(cli, ["exec", str(task_file), "--output-dir", str(tmp_path / "reports")])

        assert result.exit_code == 1
        assert "Invalid task definition" in result.output
        assert "'request' is a required property" in result.output

    def test_observe_unknown_task(self, runner, tmp_path):
        result = runner.invoke(cli, ["observe", "missing", "--reports-dir", str(tmp_path)])
        assert result.exit_code == 0
        assert "No task reports found." in result.output
