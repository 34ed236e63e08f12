# =============================================================================
# CTO AUTOMATION - AGENT LOOP
# =============================================================================
"""
Agent Loop

Drives a planner through a bounded tool-calling loop:

    instruction ─▶ planner ─▶ tool calls? ─yes─▶ registry.execute (one at a time)
                      ▲                                   │
                      └───────────── results ◀────────────┘
                                     │ no
                                     ▼
                                final text

One step is one planner turn plus the tool calls it requested. The run
stops when the planner answers without tool calls or when the step
budget is spent; the budget is the only cancellation mechanism.

Planners:
    - LLMPlanner: backed by an LLM client (OpenAI / Anthropic)
    - ScriptedPlanner: deterministic replies, used by tests and dry runs
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from cto_automation.engine.llm import (
    LLMClientInterface,
    LLMMetrics,
    LLMResponse,
    ToolCall,
    ToolResult,
)
from cto_automation.engine.tools import ToolRegistry
from monitoring.metrics import MetricsCollector


logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 20


# =============================================================================
# PLANNERS
# =============================================================================

class Planner(ABC):
    """Decides the next assistant turn from the conversation so far."""

    @abstractmethod
    async def next_step(
        self,
        conversation: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
    ) -> LLMResponse:
        """Return text and/or tool calls for the next turn."""


class LLMPlanner(Planner):
    """Planner backed by a tool-calling LLM."""

    def __init__(self, client: LLMClientInterface, metrics: Optional[MetricsCollector] = None):
        self.client = client
        self.metrics = metrics
        self.usage = LLMMetrics()

    async def next_step(self, conversation, tools) -> LLMResponse:
        try:
            response = await self.client.invoke(conversation, tools)
        except Exception:
            self.usage.record_error()
            raise

        self.usage.record(response)
        if self.metrics is not None:
            self.metrics.record_llm_call(
                response.model or self.client.get_model_name(),
                response.input_tokens,
                response.output_tokens,
            )
        return response


ScriptedStep = Union[LLMResponse, Callable[[List[Dict[str, Any]]], LLMResponse]]


class ScriptedPlanner(Planner):
    """
    Replays a fixed list of turns.

    A step is either an ``LLMResponse`` or a callable receiving the
    conversation (so later turns can use ids returned by earlier tool
    results). Once the script is exhausted, ``final_text`` is returned
    without tool calls.
    """

    def __init__(self, steps: Sequence[ScriptedStep], final_text: str = ""):
        self.steps = list(steps)
        self.final_text = final_text
        self.calls = 0

    async def next_step(self, conversation, tools) -> LLMResponse:
        index = self.calls
        self.calls += 1
        if index >= len(self.steps):
            return LLMResponse(content=self.final_text, model="scripted")
        step = self.steps[index]
        if callable(step):
            step = step(conversation)
        return step


def tool_step(name: str, arguments: Dict[str, Any], content: str = "") -> LLMResponse:
    """Build a scripted turn with a single tool call."""
    return LLMResponse(
        content=content,
        tool_calls=[ToolCall(id=f"call_{uuid.uuid4().hex[:12]}", name=name, arguments=arguments)],
        model="scripted",
    )


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class ToolCallRecord:
    """One executed tool call and its result."""
    name: str
    arguments: Dict[str, Any]
    result: ToolResult


@dataclass
class StepRecord:
    """What happened in one step."""
    index: int
    text: str
    tool_calls: List[ToolCallRecord] = field(default_factory=list)


@dataclass
class AgentRunResult:
    """Outcome of one agent run."""
    text: str
    steps: List[StepRecord] = field(default_factory=list)
    finished: bool = True

    @property
    def tool_calls(self) -> List[ToolCallRecord]:
        return [call for step in self.steps for call in step.tool_calls]


# =============================================================================
# AGENT LOOP
# =============================================================================

class AgentLoop:
    """
    Bounded tool-calling loop.

    Usage:
        loop = AgentLoop(planner, registry, max_steps=20)
        result = await loop.run(instruction, system_prompt=AGENT_INSTRUCTIONS)
        print(result.text)
    """

    def __init__(
        self,
        planner: Planner,
        registry: ToolRegistry,
        max_steps: int = DEFAULT_MAX_STEPS,
        on_step_finish: Optional[Callable[[StepRecord], None]] = None,
    ):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.planner = planner
        self.registry = registry
        self.max_steps = max_steps
        self.on_step_finish = on_step_finish

    async def run(self, instruction: str, system_prompt: Optional[str] = None) -> AgentRunResult:
        """
        Run the loop until the planner stops calling tools or the budget
        is spent. Planner exceptions propagate to the caller.
        """
        conversation: List[Dict[str, Any]] = []
        if system_prompt:
            conversation.append({"role": "system", "content": system_prompt})
        conversation.append({"role": "user", "content": instruction})

        tools = self.registry.get_tools()
        steps: List[StepRecord] = []
        text = ""

        for index in range(self.max_steps):
            response = await self.planner.next_step(conversation, tools)
            text = response.content or ""
            step = StepRecord(index=index, text=text)

            if response.has_tool_calls:
                conversation.append({
                    "role": "assistant",
                    "content": response.content,
                    "tool_calls": [tc.to_dict() for tc in response.tool_calls],
                })

                # Sequential: each tool call is awaited before the next
                for tool_call in response.tool_calls:
                    result = await self.registry.execute(tool_call)
                    step.tool_calls.append(ToolCallRecord(tool_call.name, tool_call.arguments, result))
                    conversation.append({
                        "role": "tool",
                        "tool_call_id": tool_call.id,
                        "content": result.to_message_content(),
                    })

            steps.append(step)
            self._step_finished(step)

            if not response.has_tool_calls:
                return AgentRunResult(text=text, steps=steps, finished=True)

        logger.warning(f"Agent loop stopped after reaching the step budget ({self.max_steps})")
        return AgentRunResult(text=text, steps=steps, finished=False)

    def _step_finished(self, step: StepRecord) -> None:
        logger.info(
            f"Agent step {step.index + 1} completed: "
            f"{len(step.tool_calls)} tool call(s), text={step.text[:200]!r}"
        )
        if self.on_step_finish is not None:
            self.on_step_finish(step)


__all__ = [
    "Planner",
    "LLMPlanner",
    "ScriptedPlanner",
    "tool_step",
    "AgentLoop",
    "AgentRunResult",
    "StepRecord",
    "ToolCallRecord",
    "DEFAULT_MAX_STEPS",
]
