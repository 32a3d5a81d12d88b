"""Minimal observation surface for task reports.

Read-only. Prints what `aibuddy-exec exec` wrote to the reports directory.
"""

import json
from pathlib import Path
from typing import Optional


def find_reports(task_id: str, reports_dir: Path) -> list[dict]:
    """Find all task reports for a task_id, most recent first."""
    reports = []

    if not reports_dir.exists():
        return reports

    for f in reports_dir.glob(f"{task_id}_*.json"):
        try:
            data = json.loads(f.read_text())
        except (json.JSONDecodeError, OSError):
            continue
        if data.get("task_id") != task_id:
            continue
        data["_report_file"] = str(f)
        reports.append(data)

    reports.sort(key=lambda r: r.get("start_time", ""), reverse=True)
    return reports


def format_duration(seconds: float) -> str:
    """Format duration in human-readable form."""
    if seconds < 1:
        return f"{seconds*1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        mins = int(seconds // 60)
        secs = seconds % 60
        return f"{mins}m {secs:.0f}s"


def print_summary(task_id: str, reports_dir: Optional[Path] = None) -> None:
    """Print a human-readable summary of a task's run history."""
    if reports_dir is None:
        reports_dir = Path("execution/reports")

    reports = find_reports(task_id, reports_dir)

    print("=" * 60)
    print(f"TASK SUMMARY: {task_id}")
    print("=" * 60)
    print()

    if not reports:
        print("No task reports found.")
        print()
        print(f"Searched: {reports_dir}")
        return

    latest = reports[0]
    print("LATEST RUN")
    print("-" * 40)
    print(f"  Stop reason: {latest['stop_reason']}")
    print(f"  Commands:    {latest['passed']} passed, {latest['failed']} failed")
    print(f"  Attempts:    {latest['attempts']} (max retries {latest['max_retries']})")
    print(f"  Duration:    {format_duration(latest['duration_seconds'])}")
    print(f"  Workspace:   {latest['cwd']}")
    print(f"  Time:        {latest['start_time'][:19]}")
    print()

    failures = [r for r in latest.get("results", []) if r.get("exit_code") != 0]
    if failures:
        print("  Failures:")
        for r in failures[:5]:
            detail = (r.get("stderr") or r.get("stdout") or "").strip().split("\n")[0]
            print(f"    ✗ {r['command'].splitlines()[0][:50]} (exit {r['exit_code']})")
            if detail:
                print(f"      {detail[:60]}")
        if len(failures) > 5:
            print(f"    ... and {len(failures) - 5} more")
        print()

    if len(reports) > 1:
        print("HISTORY")
        print("-" * 40)
        print(f"  Runs:        {len(reports)}")
        for r in reports[:5]:
            status_icon = "✓" if r.get("success") else "✗"
            print(f"    {status_icon} {r['start_time'][:16]} - {r['stop_reason']}")
        if len(reports) > 5:
            print(f"    ... and {len(reports) - 5} more")
        print()

    print("VERDICT")
    print("-" * 40)
    if latest.get("success"):
        print("  ✓ COMPLETE - All commands succeeded")
    elif latest["stop_reason"] == "no_commands":
        print("  ? NOTHING TO RUN - No commands found in the response")
    else:
        print(f"  ✗ STOPPED - {latest['stop_reason']}")
    print()
