#!/usr/bin/env python3
"""Proof script for the recovery loop against a real model."""

import os
import tempfile

# Ensure .env is loaded
from dotenv import load_dotenv
load_dotenv()

from aibuddy_exec.model_client import get_openrouter_client
from aibuddy_exec.recovery import RecoveryOrchestrator
from aibuddy_exec.terminal import SubprocessTerminal
from aibuddy_exec.terminal_buffer import TerminalBuffer


# The second command reads a file that was never created
BROKEN_RESPONSE = """Here is how to set up the notes folder:

```bash
mkdir -p notes
cat notes/todo.txt
echo "done"
```
"""


def main():
    if not os.environ.get("OPENROUTER_API_KEY"):
        print("ERROR: OPENROUTER_API_KEY not set")
        return

    workspace = tempfile.mkdtemp(prefix="recovery_proof_")
    print(f"Workspace: {workspace}")
    print(f"\n=== ORIGINAL RESPONSE ===")
    print(BROKEN_RESPONSE)

    orchestrator = RecoveryOrchestrator(
        terminal=SubprocessTerminal(),
        ai_client=get_openrouter_client(),
        cwd=workspace,
        buffer=TerminalBuffer(listener=lambda line: print(f"  [{line.type}] {line.text}")),
        phase_callback=lambda state: print(f"-- phase={state.phase} attempt={state.attempt}"),
    )

    print(f"\n=== RUNNING RECOVERY LOOP ===")
    result = orchestrator.run_response(
        BROKEN_RESPONSE,
        "Create a notes folder with a todo.txt file and show its contents",
    )

    print(f"\n=== RESULT ===")
    print(f"  stop_reason: {result.stop_reason}")
    print(f"  attempts: {result.attempts}")
    print(f"  passed: {result.passed}")
    print(f"  failed: {result.failed}")
    print(f"  failed_in_last_round: {result.failed_in_last_round}")
    print(f"\n{result.summary}")

    if result.ai_responses:
        print(f"\n=== LAST AI FIX ===")
        print(result.ai_responses[-1][:1000])


if __name__ == "__main__":
    main()
