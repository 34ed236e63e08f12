# =============================================================================
# CTO AUTOMATION - TOOL REGISTRY
# =============================================================================
"""
Tool Registry

Holds the tool schemas offered to the model and the Python handlers that
implement them. The model speaks camelCase argument names
(``branchName``, ``notionTaskUrl``); handlers are plain Python
functions, so argument keys are converted to snake_case on the way in.

``execute`` never raises: unknown tools, bad arguments and handler
exceptions all come back as an error ``ToolResult``, so the agent loop
always has a well-formed result to feed to the model.
"""

import inspect
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from cto_automation.engine.llm import ToolCall, ToolResult
from monitoring.logger import AuditLogger, log_context
from monitoring.metrics import MetricsCollector


logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """``notionTaskUrl`` -> ``notion_task_url``"""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class ToolRegistry:
    """Registry for agent tools."""

    def __init__(
        self,
        metrics: Optional[MetricsCollector] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.tools: Dict[str, Dict[str, Any]] = {}
        self.handlers: Dict[str, Callable] = {}
        self.metrics = metrics
        self.audit = audit

    def register(self, schema: Dict[str, Any], handler: Callable):
        """Register a tool schema together with its handler."""
        name = schema["name"]
        if name in self.tools:
            raise ValueError(f"Tool already registered: {name}")
        self.tools[name] = schema
        self.handlers[name] = handler
        logger.debug(f"Registered tool: {name}")

    def get_tool(self, name: str) -> Optional[Dict[str, Any]]:
        return self.tools.get(name)

    def get_tools(self, names: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Get tool schemas, optionally filtered by names."""
        if names is None:
            return list(self.tools.values())
        return [self.tools[name] for name in names if name in self.tools]

    @property
    def names(self) -> List[str]:
        return list(self.tools)

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Execute a tool call."""
        handler = self.handlers.get(tool_call.name)

        if handler is None:
            return ToolResult(
                tool_call_id=tool_call.id,
                output=None,
                error=f"No handler registered for tool: {tool_call.name}",
            )

        kwargs = {to_snake_case(k): v for k, v in (tool_call.arguments or {}).items()}
        start = time.monotonic()

        with log_context(tool=tool_call.name):
            try:
                if inspect.iscoroutinefunction(handler):
                    output = await handler(**kwargs)
                else:
                    output = handler(**kwargs)
                result = ToolResult(tool_call_id=tool_call.id, output=output)
            except Exception as e:
                logger.error(f"Tool execution error ({tool_call.name}): {e}")
                result = ToolResult(tool_call_id=tool_call.id, output=None, error=str(e))

        result.duration = time.monotonic() - start
        self._record(tool_call, result)
        return result

    def _record(self, tool_call: ToolCall, result: ToolResult) -> None:
        # Mutating tools report failure in their payload instead of raising
        success = result.success
        if success and isinstance(result.output, dict) and result.output.get("success") is False:
            success = False

        if self.metrics is not None:
            self.metrics.record_tool_call(tool_call.name, success, result.duration)
        if self.audit is not None:
            self.audit.log_tool_call(
                tool_call.name,
                tool_call.arguments,
                success,
                result.duration,
                error=result.error,
            )


__all__ = ["ToolRegistry", "to_snake_case"]
