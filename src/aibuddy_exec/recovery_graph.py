"""LangGraph wrapper for the recovery loop - trace harness only.

This wraps the RecoveryOrchestrator primitives in a LangGraph StateGraph
so that each round of execute / analyze is visible as a node in
LangGraph Studio.

NO new orchestration logic. The edges reuse the same transition functions
as RecoveryOrchestrator.run, so the retry bound is identical.
"""

from typing import Any, List, Optional
from typing_extensions import TypedDict

from langgraph.graph import StateGraph, END

from aibuddy_exec.models import ANALYZING, DONE, EXECUTING, IDLE, PLANNING, STOP_CANCELLED, RetryState, TaskResult
from aibuddy_exec.recovery import (
    AnalysisCancelled,
    RecoveryOrchestrator,
    after_analysis,
    after_execution,
)


class RecoveryGraphState(TypedDict):
    """State for the recovery graph - mirrors RetryState plus the running tallies."""
    task_id: str
    user_request: str
    attempt: int
    commands_to_run: List[str]
    phase: str
    stop_reason: Optional[str]
    results: list
    rounds: int
    last_failed: int
    error_summary: str
    failed_commands: List[str]
    ai_responses: List[str]
    detail: str
    # Orchestrator reference (passed through state)
    orchestrator: Any


def graph_to_retry_state(state: RecoveryGraphState) -> RetryState:
    return RetryState(
        attempt=state["attempt"],
        commands_to_run=list(state["commands_to_run"]),
        phase=state["phase"],
        stop_reason=state.get("stop_reason"),
    )


def retry_state_update(rs: RetryState) -> dict:
    return {
        "attempt": rs.attempt,
        "commands_to_run": rs.commands_to_run,
        "phase": rs.phase,
        "stop_reason": rs.stop_reason,
    }


# --- Graph Nodes ---

def node_start(state: RecoveryGraphState) -> RecoveryGraphState:
    """IDLE -> PLANNING -> EXECUTING, or DONE when there are no commands."""
    orchestrator: RecoveryOrchestrator = state["orchestrator"]
    rs = orchestrator.begin(state["commands_to_run"])
    return {**state, **retry_state_update(rs)}


def node_execute(state: RecoveryGraphState) -> RecoveryGraphState:
    """Run the current batch and decide between ANALYZING and DONE."""
    orchestrator: RecoveryOrchestrator = state["orchestrator"]
    if state["attempt"]:
        orchestrator.buffer.add("info", f"Running fix attempt {state['attempt']}/{orchestrator.max_retries}")
    outcome = orchestrator.execute_round(state["commands_to_run"])
    rs = orchestrator.enter_phase(after_execution(graph_to_retry_state(state), outcome, orchestrator.max_retries))
    return {
        **state,
        **retry_state_update(rs),
        "results": state["results"] + outcome.results,
        "rounds": state["rounds"] + 1,
        "last_failed": sum(1 for r in outcome.results if not r.passed),
        "error_summary": outcome.error_summary,
    }


def node_analyze(state: RecoveryGraphState) -> RecoveryGraphState:
    """Ask the AI for a fix and plan its commands."""
    orchestrator: RecoveryOrchestrator = state["orchestrator"]
    rs = graph_to_retry_state(state)
    failed_now = [r.command for r in state["results"][-len(state["commands_to_run"]):] if not r.passed]

    orchestrator.buffer.add("info", f"Asking AI for a fix (attempt {rs.attempt}/{orchestrator.max_retries})")
    try:
        response_text, error = orchestrator.request_fix(
            state["user_request"], state["error_summary"], state["failed_commands"]
        )
    except AnalysisCancelled:
        rs = orchestrator.enter_phase(RetryState(rs.attempt, [], DONE, STOP_CANCELLED))
        return {**state, **retry_state_update(rs)}

    update = {"failed_commands": state["failed_commands"] + failed_now}
    if response_text is None:
        rs = orchestrator.enter_phase(after_analysis(rs, None))
        return {**state, **update, **retry_state_update(rs), "detail": error or ""}

    rs = orchestrator.enter_phase(RetryState(rs.attempt, rs.commands_to_run, PLANNING, None))
    rs = orchestrator.enter_phase(after_analysis(rs, orchestrator.plan(response_text)))
    update["ai_responses"] = state["ai_responses"] + [response_text]
    if rs.phase == DONE:
        update["detail"] = response_text
    return {**state, **update, **retry_state_update(rs)}


# --- Conditional Edges ---

def route_after_start(state: RecoveryGraphState) -> str:
    return "execute" if state["phase"] == EXECUTING else "end"


def route_after_execute(state: RecoveryGraphState) -> str:
    return "analyze" if state["phase"] == ANALYZING else "end"


def route_after_analyze(state: RecoveryGraphState) -> str:
    return "execute" if state["phase"] == EXECUTING else "end"


# --- Graph Builder ---

def build_recovery_graph() -> StateGraph:
    """
    Build the recovery graph.

    Flow:
        start -> execute -> (completed / cancelled / retries exhausted?) -> end
                         -> (failed + retries left?) -> analyze -> execute ...
                                                              -> (no fix / AI failed?) -> end
    """
    graph = StateGraph(RecoveryGraphState)

    graph.add_node("start", node_start)
    graph.add_node("execute", node_execute)
    graph.add_node("analyze", node_analyze)

    graph.set_entry_point("start")

    graph.add_conditional_edges("start", route_after_start, {"execute": "execute", "end": END})
    graph.add_conditional_edges("execute", route_after_execute, {"analyze": "analyze", "end": END})
    graph.add_conditional_edges("analyze", route_after_analyze, {"execute": "execute", "end": END})

    return graph


def run_recovery_graph(
    orchestrator: RecoveryOrchestrator,
    commands: List[str],
    user_request: str,
    task_id: str = "",
) -> TaskResult:
    """
    Run the recovery graph and return the TaskResult.

    This is the traced equivalent of RecoveryOrchestrator.run().
    """
    compiled = build_recovery_graph().compile()

    initial_state: RecoveryGraphState = {
        "task_id": task_id,
        "user_request": user_request,
        "attempt": 0,
        "commands_to_run": list(commands),
        "phase": IDLE,
        "stop_reason": None,
        "results": [],
        "rounds": 0,
        "last_failed": 0,
        "error_summary": "",
        "failed_commands": [],
        "ai_responses": [],
        "detail": "",
        "orchestrator": orchestrator,
    }

    # start + (execute + analyze) per round, plus slack
    recursion_limit = 2 * (orchestrator.max_retries + 1) + 5
    final_state = compiled.invoke(initial_state, config={"recursion_limit": recursion_limit})

    return orchestrator.finish(
        graph_to_retry_state(final_state),
        final_state["results"],
        final_state["rounds"],
        final_state["last_failed"],
        final_state["ai_responses"],
        final_state["detail"],
    )


# Pre-compiled graph for Studio discovery
recovery_graph = build_recovery_graph().compile()
