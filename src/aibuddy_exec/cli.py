"""CLI entrypoint for the command runner."""

import threading
from pathlib import Path

import click
from dotenv import load_dotenv

from aibuddy_exec.config import ConfigError, load_config

# Load .env file on CLI startup
load_dotenv()


LINE_COLORS = {
    "command": "cyan",
    "success": "green",
    "error": "red",
    "warning": "yellow",
}


def _echo_line(line) -> None:
    """Buffer listener: stream terminal lines as they are produced."""
    fg = LINE_COLORS.get(line.type)
    click.secho(line.text, fg=fg, err=line.type == "error")


def _print_result(result) -> None:
    click.echo()
    click.echo("=" * 60)
    click.echo(result.summary)
    click.echo("=" * 60)


def _run_cancellable(target, cancel_token):
    """Run ``target`` on a worker thread; Ctrl-C sets ``cancel_token`` and waits for it."""
    box = {}

    def worker():
        try:
            box["result"] = target()
        except BaseException as e:
            box["error"] = e

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    while thread.is_alive():
        try:
            thread.join(0.2)
        except KeyboardInterrupt:
            click.echo("\nCancelling after the current command...", err=True)
            cancel_token.cancel()
    if "error" in box:
        raise box["error"]
    return box["result"]


@click.group()
@click.version_option(package_name="aibuddy-exec")
def cli():
    """aibuddy-exec - Run the shell commands in an AI response, with bounded AI recovery."""
    pass


@cli.command()
def check_config():
    """Check if required environment variables are configured."""
    try:
        config = load_config(require_all=True)
        click.echo("Configuration loaded successfully!")
        click.echo("  OPENROUTER_API_KEY: [set]")
        click.echo(f"  Model: {config.model}")
        click.echo(f"  Max retries: {config.max_retries}")
        click.echo(f"  Command timeout: {config.command_timeout:g}s")
        click.echo(f"  Terminal lines: {config.terminal_lines}")
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)


@cli.command("plan")
@click.argument("response_file", type=click.Path(exists=True, dir_okay=False))
def plan_response(response_file: str):
    """Show the commands that would run for an AI response. Nothing is executed.

    RESPONSE_FILE: Text file holding the AI response (markdown with ```bash blocks)
    """
    from aibuddy_exec.executor import command_label
    from aibuddy_exec.pipeline import plan_commands
    from aibuddy_exec.safety import analyze_command_safety

    commands = plan_commands(Path(response_file).read_text())
    if not commands:
        click.echo("No runnable commands found.")
        return

    click.echo(f"{len(commands)} command(s):")
    for i, command in enumerate(commands, 1):
        safety = analyze_command_safety(command)
        click.echo(f"\n{i}. [{command_label(command)}] risk={safety.risk_level}")
        for line in command.splitlines():
            click.echo(f"   {line}")
        if safety.risk_level in ("high", "critical"):
            click.secho(f"   ! {safety.reason}", fg="yellow")


@cli.command("run")
@click.argument("response_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--request", "user_request", default="", help="The original request the response answers")
@click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Workspace directory commands run in (default: current directory)",
)
@click.option("--max-retries", type=int, default=None, help="Fix attempts after the first run (default: config)")
@click.option("--allow-risky", is_flag=True, help="Do not block critical commands (rm -rf /, force push, ...)")
@click.option("--graph", "use_graph", is_flag=True, help="Run through the LangGraph harness for tracing")
def run_response(
    response_file: str,
    user_request: str,
    cwd: str,
    max_retries: int,
    allow_risky: bool,
    use_graph: bool,
):
    """Execute the commands in an AI response and recover from failures.

    RESPONSE_FILE: Text file holding the AI response (markdown with ```bash blocks)

    Press Ctrl-C to cancel; the running command finishes first.
    """
    from aibuddy_exec.model_client import ModelClientError, OpenRouterClient, TracedClient
    from aibuddy_exec.models import CancellationToken
    from aibuddy_exec.recovery import RecoveryOrchestrator
    from aibuddy_exec.safety import critical_command_guard
    from aibuddy_exec.terminal import SubprocessTerminal
    from aibuddy_exec.terminal_buffer import TerminalBuffer

    try:
        config = load_config(require_all=True)
        client = TracedClient(OpenRouterClient(api_key=config.openrouter_api_key, model=config.model))
    except (ConfigError, ModelClientError) as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)

    if max_retries is not None and max_retries < 0:
        click.echo("Error: --max-retries must be >= 0", err=True)
        raise SystemExit(2)

    response_text = Path(response_file).read_text()
    cancel_token = CancellationToken()
    orchestrator = RecoveryOrchestrator(
        terminal=SubprocessTerminal(timeout=config.command_timeout),
        ai_client=client,
        cwd=str(Path(cwd).resolve()),
        max_retries=config.max_retries if max_retries is None else max_retries,
        buffer=TerminalBuffer(config.terminal_lines, listener=_echo_line),
        cancel_token=cancel_token,
        guard=None if allow_risky else critical_command_guard,
    )

    if use_graph:
        from aibuddy_exec.recovery_graph import run_recovery_graph

        def target():
            return run_recovery_graph(orchestrator, orchestrator.plan(response_text), user_request)
    else:
        def target():
            return orchestrator.run_response(response_text, user_request)

    result = _run_cancellable(target, cancel_token)
    _print_result(result)
    raise SystemExit(0 if result.success else 1)


@cli.command("exec")
@click.argument("task_file", type=click.Path(exists=True))
@click.option(
    "--output-dir",
    type=click.Path(),
    default="execution/reports",
    help="Directory for task reports (default: execution/reports)",
)
@click.option(
    "--no-trace",
    is_flag=True,
    help="Disable LangGraph tracing (run without graph wrapper)",
)
@click.option("--allow-risky", is_flag=True, help="Do not block critical commands")
def exec_task(task_file: str, output_dir: str, no_trace: bool, allow_risky: bool):
    """Execute a task definition file and write a report.

    TASK_FILE: Path to task definition (YAML or JSON)

    By default, uses LangGraph for tracing visibility in Studio.
    Use --no-trace to run without the graph wrapper.

    Task definition format:

    \b
        task_id: my-task-001
        request: Set up a new Laravel project
        response_file: response.md   # or inline `response:`
        cwd: ./workspace             # optional
        max_retries: 3               # optional
    """
    from aibuddy_exec.model_client import ModelClientError
    from aibuddy_exec.safety import critical_command_guard
    from aibuddy_exec.task_runner import TaskDefinitionError, run_task

    task_path = Path(task_file).resolve()
    out_path = Path(output_dir).resolve()

    click.echo(f"Executing task: {task_path}")
    if not no_trace:
        click.echo("  (LangGraph tracing enabled)")
    click.echo()

    try:
        result = run_task(
            task_path,
            out_path,
            use_graph=not no_trace,
            guard=None if allow_risky else critical_command_guard,
        )
    except TaskDefinitionError as e:
        click.echo(f"Error: {e}", err=True)
        for error in e.errors:
            click.echo(f"  - {error}", err=True)
        raise SystemExit(1)
    except (ConfigError, ModelClientError) as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)

    _print_result(result)
    raise SystemExit(0 if result.success else 1)


@cli.command("observe")
@click.argument("task_id")
@click.option(
    "--reports-dir",
    type=click.Path(),
    default="execution/reports",
    help="Directory for task reports",
)
def observe_task(task_id: str, reports_dir: str):
    """Show a summary of a task's run history.

    TASK_ID: The task identifier to observe

    Read-only. Displays the reports written by `exec`.
    """
    from aibuddy_exec.observe import print_summary

    print_summary(task_id=task_id, reports_dir=Path(reports_dir))


if __name__ == "__main__":
    cli()
