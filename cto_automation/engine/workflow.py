# =============================================================================
# CTO AUTOMATION - TASK WORKFLOW
# =============================================================================
"""
Task Workflow Module

One scheduled run of the CTO automation, expressed as a two-node
LangGraph state machine:

    ┌───────────────────────────────────────────────────────────┐
    │                      TASK WORKFLOW                         │
    ├───────────────────────────────────────────────────────────┤
    │                                                           │
    │   ┌──────────┐        ┌──────────┐                        │
    │   │ DISCOVER │ ─────▶ │  REPORT  │ ─────▶ END             │
    │   └──────────┘        └──────────┘                        │
    │   agent loop +        structured log,                     │
    │   text parsing        audit event, metrics                │
    │                                                           │
    └───────────────────────────────────────────────────────────┘

Phases: IDLE → DISCOVERING → AGENT_RUNNING → REPORTING → IDLE

The counts in the result are parsed from the agent's final free text
and are approximate by construction. ``run()`` never raises.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TypedDict

import structlog
from langgraph.graph import END, StateGraph

from cto_automation.engine.agent_loop import AgentLoop
from cto_automation.engine.prompts import AGENT_INSTRUCTIONS, build_run_instruction
from monitoring.logger import AuditLogger, LogContext
from monitoring.metrics import MetricsCollector


logger = logging.getLogger(__name__)
report_logger = structlog.get_logger("cto_automation.report")


TASKS_PROCESSED_PATTERN = re.compile(r"(\d+)\s*tasks?\s*(processed|completed|handled)", re.IGNORECASE)
PULL_REQUEST_PATTERN = re.compile(r"pull requests?\s*#?(\d+)", re.IGNORECASE)

AGENT_ERROR_MESSAGE = "Some tasks encountered errors - check agent logs for details"
SUMMARY_EXCERPT_LENGTH = 500


# =============================================================================
# STATE TYPES
# =============================================================================


class WorkflowPhase(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    AGENT_RUNNING = "agent_running"
    REPORTING = "reporting"


class WorkflowState(TypedDict, total=False):
    """State flowing through the graph."""
    run_id: str
    workflow_executed: bool
    agent_text: str
    agent_steps: int
    tool_calls: int
    tasks_processed: int
    completed_tasks: List[str]
    errors: List[str]
    summary: str
    notifications_sent: int
    report_generated: bool


@dataclass
class WorkflowResult:
    """Outcome of one scheduled run."""
    run_id: str
    workflow_executed: bool = False
    tasks_processed: int = 0
    completed_tasks: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    summary: str = ""
    notifications_sent: int = 0
    report_generated: bool = False
    agent_steps: int = 0
    tool_calls: int = 0
    started_at: str = ""
    finished_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "workflowExecuted": self.workflow_executed,
            "tasksProcessed": self.tasks_processed,
            "completedTasks": list(self.completed_tasks),
            "errors": list(self.errors),
            "summary": self.summary,
            "notificationsSent": self.notifications_sent,
            "reportGenerated": self.report_generated,
            "agentSteps": self.agent_steps,
            "toolCalls": self.tool_calls,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }


# =============================================================================
# RESPONSE PARSING
# =============================================================================


def parse_agent_response(text: str) -> Tuple[int, List[str], List[str]]:
    """
    Extract coarse metrics from the agent's final text.

    Returns:
        (tasks_processed, completed_tasks, errors). ``completed_tasks``
        holds every matched "pull request #N" phrase as written.
    """
    text = text or ""

    match = TASKS_PROCESSED_PATTERN.search(text)
    tasks_processed = int(match.group(1)) if match else 0

    completed_tasks = [m.group(0) for m in PULL_REQUEST_PATTERN.finditer(text)]

    errors = []
    lowered = text.lower()
    if "error" in lowered or "failed" in lowered:
        errors.append(AGENT_ERROR_MESSAGE)

    return tasks_processed, completed_tasks, errors


def build_summary(tasks_processed: int, completed_tasks: List[str], text: str) -> str:
    excerpt = text[:SUMMARY_EXCERPT_LENGTH]
    if len(text) > SUMMARY_EXCERPT_LENGTH:
        excerpt += "..."
    return (
        f"CTO Automation completed: {tasks_processed} tasks processed, "
        f"{len(completed_tasks)} pull requests created. Agent response: {excerpt}"
    )


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# WORKFLOW
# =============================================================================


class TaskWorkflow:
    """
    Runs the agent against the board once and reports the outcome.

    Usage:
        workflow = TaskWorkflow(agent_loop, config, metrics=metrics, audit=audit)
        result = await workflow.run()
        print(result.summary)
    """

    def __init__(
        self,
        agent_loop: AgentLoop,
        config: Dict[str, Any],
        metrics: Optional[MetricsCollector] = None,
        audit: Optional[AuditLogger] = None,
        system_prompt: str = AGENT_INSTRUCTIONS,
    ):
        self.agent_loop = agent_loop
        self.config = config
        self.metrics = metrics
        self.audit = audit
        self.system_prompt = system_prompt
        self.phase = WorkflowPhase.IDLE
        self.graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(WorkflowState)

        graph.add_node("discover", self._discover_node)
        graph.add_node("report", self._report_node)

        graph.set_entry_point("discover")
        graph.add_edge("discover", "report")
        graph.add_edge("report", END)

        return graph.compile()

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def run(self) -> WorkflowResult:
        """Execute one run. Never raises."""
        started_at = _utc_now()
        run_id = f"cto-session-{started_at}"
        start = time.monotonic()

        with LogContext(run_id=run_id):
            logger.info("Starting CTO automation run")
            try:
                state = await self.graph.ainvoke({"run_id": run_id})
            except Exception as e:
                # Nodes handle their own failures; this covers graph-level faults
                logger.exception(f"Workflow graph failed: {e}")
                state = self._failure_state(run_id, e)
            finally:
                self.phase = WorkflowPhase.IDLE

        result = WorkflowResult(
            run_id=run_id,
            workflow_executed=state.get("workflow_executed", False),
            tasks_processed=state.get("tasks_processed", 0),
            completed_tasks=state.get("completed_tasks", []),
            errors=state.get("errors", []),
            summary=state.get("summary", ""),
            notifications_sent=state.get("notifications_sent", 0),
            report_generated=state.get("report_generated", False),
            agent_steps=state.get("agent_steps", 0),
            tool_calls=state.get("tool_calls", 0),
            started_at=started_at,
            finished_at=_utc_now(),
        )
        self._record_run(result, time.monotonic() - start)
        return result

    # =========================================================================
    # NODES
    # =========================================================================

    async def _discover_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Run the agent and parse its final text."""
        self.phase = WorkflowPhase.DISCOVERING
        instruction = build_run_instruction(self.config)

        try:
            self.phase = WorkflowPhase.AGENT_RUNNING
            run = await self.agent_loop.run(instruction, system_prompt=self.system_prompt)
        except Exception as e:
            logger.error(f"Workflow execution failed: {e}")
            if self.metrics is not None:
                self.metrics.record_error("workflow", type(e).__name__)
            if self.audit is not None:
                self.audit.log_error("workflow", type(e).__name__, str(e))
            return self._failure_state(state["run_id"], e)

        logger.info(
            f"Agent execution completed: {len(run.steps)} step(s), "
            f"response length {len(run.text)}"
        )

        tasks_processed, completed_tasks, errors = parse_agent_response(run.text)
        return {
            "workflow_executed": True,
            "agent_text": run.text,
            "agent_steps": len(run.steps),
            "tool_calls": len(run.tool_calls),
            "tasks_processed": tasks_processed,
            "completed_tasks": completed_tasks,
            "errors": errors,
            "summary": build_summary(tasks_processed, completed_tasks, run.text),
        }

    async def _report_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Emit the run report. Never raises."""
        self.phase = WorkflowPhase.REPORTING

        try:
            report_logger.info(
                "automation_report",
                timestamp=_utc_now(),
                tasks_processed=state.get("tasks_processed", 0),
                pull_requests_created=len(state.get("completed_tasks", [])),
                errors=len(state.get("errors", [])),
                summary=state.get("summary", ""),
                completed_tasks=state.get("completed_tasks", []),
                error_details=state.get("errors", []),
            )
            return {"notifications_sent": 1, "report_generated": True}
        except Exception as e:
            logger.error(f"Notification step failed: {e}")
            return {"notifications_sent": 0, "report_generated": False}

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _failure_state(run_id: str, error: Exception) -> Dict[str, Any]:
        return {
            "run_id": run_id,
            "workflow_executed": False,
            "tasks_processed": 0,
            "completed_tasks": [],
            "errors": [f"Workflow execution failed: {error}"],
            "summary": f"CTO Automation failed: {error}",
        }

    def _record_run(self, result: WorkflowResult, duration: float) -> None:
        if not result.workflow_executed:
            outcome = "failed"
        elif result.errors:
            outcome = "completed_with_errors"
        else:
            outcome = "success"

        if self.metrics is not None:
            self.metrics.record_workflow_run(outcome, result.tasks_processed, duration)
        if self.audit is not None:
            self.audit.log_workflow_run(
                result.run_id,
                result.tasks_processed,
                result.completed_tasks,
                result.errors,
                duration,
            )

        logger.info(
            f"Workflow summary: {result.tasks_processed} task(s), "
            f"{len(result.completed_tasks)} pull request(s), {len(result.errors)} error(s)"
        )


__all__ = [
    "TaskWorkflow",
    "WorkflowResult",
    "WorkflowPhase",
    "WorkflowState",
    "parse_agent_response",
    "build_summary",
    "AGENT_ERROR_MESSAGE",
]
