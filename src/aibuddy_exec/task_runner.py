"""Thin task runner.

Loads a task definition, runs the recovery loop on real terminals, writes a
report. Uses jsonschema for Draft-07 validation, PyYAML for YAML reading.
"""

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import jsonschema
import yaml

from aibuddy_exec.config import Config, load_config
from aibuddy_exec.constants import DEFAULT_COMMAND_TIMEOUT_S, DEFAULT_TERMINAL_LINES, MAX_ERROR_RETRIES
from aibuddy_exec.model_client import ModelClient, OpenRouterClient, TracedClient
from aibuddy_exec.models import TaskResult
from aibuddy_exec.recovery import RecoveryOrchestrator
from aibuddy_exec.terminal import SubprocessTerminal, Terminal
from aibuddy_exec.terminal_buffer import TerminalBuffer


class TaskDefinitionError(Exception):
    """Task file is unreadable or does not match TASK_SCHEMA."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


TASK_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["task_id", "request"],
    "properties": {
        "task_id": {"type": "string", "pattern": "^[A-Za-z0-9_.-]+$"},
        "request": {"type": "string"},
        "response": {"type": "string"},
        "response_file": {"type": "string"},
        "cwd": {"type": "string"},
        "max_retries": {"type": "integer", "minimum": 0},
    },
    "oneOf": [
        {"required": ["response"]},
        {"required": ["response_file"]},
    ],
    "additionalProperties": False,
}


def _validate_schema(data: dict, filename: str) -> List[str]:
    """Validate against TASK_SCHEMA, returning ALL errors (not just first)."""
    errors = []
    validator = jsonschema.Draft7Validator(TASK_SCHEMA)
    for error in validator.iter_errors(data):
        path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"
        errors.append(f"{filename}: {error.message} at {path}")
    return errors


def load_task_definition(task_file: Path) -> dict:
    """
    Load a task definition from YAML or JSON.

    Required fields:
        - task_id: str (used in report filenames)
        - request: str (what the user originally asked for)
        - response or response_file: the AI response whose commands to run

    Optional fields:
        - cwd: str (workspace directory, default: directory of the task file)
        - max_retries: int (default from config)

    Relative ``response_file`` and ``cwd`` are resolved against the task
    file's directory.
    """
    try:
        content = task_file.read_text()
    except OSError as e:
        raise TaskDefinitionError(f"Cannot read task file {task_file}: {e}")

    try:
        if task_file.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif task_file.suffix == ".json":
            data = json.loads(content)
        else:
            raise TaskDefinitionError(f"Unsupported file type: {task_file.suffix}. Use .yaml, .yml, or .json")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise TaskDefinitionError(f"Cannot parse {task_file.name}: {e}")

    if not isinstance(data, dict):
        raise TaskDefinitionError(f"{task_file.name}: task definition must be a mapping")

    errors = _validate_schema(data, task_file.name)
    if errors:
        raise TaskDefinitionError(f"Invalid task definition: {task_file.name}", errors)

    base = task_file.parent
    if "response_file" in data:
        response_path = base / data["response_file"]
        try:
            data["response"] = response_path.read_text()
        except OSError as e:
            raise TaskDefinitionError(f"Cannot read response_file {response_path}: {e}")

    data["cwd"] = str((base / data.get("cwd", ".")).resolve())
    return data


def write_task_report(
    task_def: dict,
    result: TaskResult,
    task_file: Path,
    output_dir: Path,
    start_time: datetime,
    end_time: datetime,
    max_retries: int,
) -> Path:
    """
    Write a structured task report to disk.

    Report format: JSON with every command result and the summary.
    Filename: {task_id}_{timestamp}.json
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = end_time.strftime("%Y%m%d_%H%M%S")
    report_path = output_dir / f"{task_def['task_id']}_{timestamp}.json"

    report = {
        "task_id": task_def["task_id"],
        "task_file": str(task_file),
        "request": task_def["request"],
        "cwd": task_def["cwd"],
        "stop_reason": result.stop_reason,
        "success": result.success,
        "passed": result.passed,
        "failed": result.failed,
        "failed_in_last_round": result.failed_in_last_round,
        "attempts": result.attempts,
        "max_retries": max_retries,
        "results": [asdict(r) for r in result.results],
        "ai_responses": result.ai_responses,
        "summary": result.summary,
        "start_time": start_time.isoformat(),
        "end_time": end_time.isoformat(),
        "duration_seconds": (end_time - start_time).total_seconds(),
    }

    report_path.write_text(json.dumps(report, indent=2))

    return report_path


def run_task(
    task_file: Path,
    output_dir: Optional[Path] = None,
    use_graph: bool = False,
    config: Optional[Config] = None,
    ai_client: Optional[ModelClient] = None,
    terminal: Optional[Terminal] = None,
    guard: Optional[Callable[[str], Optional[str]]] = None,
) -> TaskResult:
    """
    Main entry point: load task, run the recovery loop, write report.

    Args:
        task_file: Path to task definition (YAML or JSON)
        output_dir: Directory for task reports (default: ./execution/reports/)
        use_graph: If True, run through the LangGraph harness for tracing
        config: Loaded configuration (default: load_config())
        ai_client: Overrides the OpenRouter client
        terminal: Overrides the subprocess terminal
        guard: Optional command guard (see safety.critical_command_guard)

    Returns:
        Final TaskResult
    """
    if output_dir is None:
        output_dir = Path("execution/reports")

    task_def = load_task_definition(task_file)

    if config is None:
        config = load_config(require_all=ai_client is None)
    max_retries = task_def.get("max_retries", config.max_retries if config else MAX_ERROR_RETRIES)

    if ai_client is None:
        ai_client = TracedClient(
            OpenRouterClient(api_key=config.openrouter_api_key, model=config.model),
            task_id=task_def["task_id"],
        )
    if terminal is None:
        terminal = SubprocessTerminal(timeout=config.command_timeout if config else DEFAULT_COMMAND_TIMEOUT_S)

    orchestrator = RecoveryOrchestrator(
        terminal=terminal,
        ai_client=ai_client,
        cwd=task_def["cwd"],
        max_retries=max_retries,
        buffer=TerminalBuffer(config.terminal_lines if config else DEFAULT_TERMINAL_LINES),
        guard=guard,
    )

    start_time = datetime.now()

    if use_graph:
        from aibuddy_exec.recovery_graph import run_recovery_graph
        result = run_recovery_graph(
            orchestrator,
            orchestrator.plan(task_def["response"]),
            task_def["request"],
            task_id=task_def["task_id"],
        )
    else:
        result = orchestrator.run_response(task_def["response"], task_def["request"])

    end_time = datetime.now()

    report_path = write_task_report(
        task_def=task_def,
        result=result,
        task_file=task_file,
        output_dir=output_dir,
        start_time=start_time,
        end_time=end_time,
        max_retries=max_retries,
    )

    print("Task complete.")
    print(f"  Stop reason: {result.stop_reason}")
    print(f"  Commands: {result.passed} passed, {result.failed} failed")
    print(f"  Attempts: {result.attempts}")
    print(f"  Report: {report_path}")

    return result
