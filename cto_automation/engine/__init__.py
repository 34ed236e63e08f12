# =============================================================================
# CTO AUTOMATION - ENGINE PACKAGE
# =============================================================================
"""
Engine Package

The agent runtime: LLM clients, tool registry, the bounded agent loop and
the LangGraph task workflow that wraps one scheduled run.

Components:
    - llm: Tool-calling LLM clients (OpenAI, Anthropic)
    - tools: ToolRegistry (schemas + handlers)
    - agent_loop: Planner interface and AgentLoop
    - prompts: Agent system prompt and run instruction
    - workflow: TaskWorkflow (discover -> report)
"""

from cto_automation.engine.llm import (
    LLMConfig,
    LLMResponse,
    ToolCall,
    ToolResult,
    LLMProviderError,
    create_llm_client,
)
from cto_automation.engine.tools import ToolRegistry
from cto_automation.engine.agent_loop import (
    AgentLoop,
    AgentRunResult,
    Planner,
    LLMPlanner,
    ScriptedPlanner,
    tool_step,
)
from cto_automation.engine.prompts import AGENT_INSTRUCTIONS, build_run_instruction
from cto_automation.engine.workflow import (
    TaskWorkflow,
    WorkflowResult,
    WorkflowPhase,
    parse_agent_response,
)

__all__ = [
    "LLMConfig",
    "LLMResponse",
    "ToolCall",
    "ToolResult",
    "LLMProviderError",
    "create_llm_client",
    "ToolRegistry",
    "AgentLoop",
    "AgentRunResult",
    "Planner",
    "LLMPlanner",
    "ScriptedPlanner",
    "tool_step",
    "AGENT_INSTRUCTIONS",
    "build_run_instruction",
    "TaskWorkflow",
    "WorkflowResult",
    "WorkflowPhase",
    "parse_agent_response",
]
