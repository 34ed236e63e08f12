# =============================================================================
# CTO AUTOMATION - METRICS COLLECTION
# =============================================================================
"""
Metrics Collection Module

Collects and exports Prometheus metrics for the automation runs.

Metric Categories:
    - Workflow metrics: Scheduled runs, tasks processed, run duration
    - Tool metrics: Calls per tool and outcome, latency
    - LLM metrics: Planner steps, token usage, estimated cost
    - System metrics: Errors per component
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

logger = logging.getLogger(__name__)


# =============================================================================
# LLM COST ESTIMATOR
# =============================================================================

# Pricing per 1K tokens (USD) – update as providers adjust rates
LLM_PRICING: Dict[str, Dict[str, float]] = {
    # OpenAI
    "gpt-4o": {"input": 0.0025, "output": 0.01},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4.1": {"input": 0.002, "output": 0.008},
    # Anthropic
    "claude-sonnet-4-20250514": {"input": 0.003, "output": 0.015},
    "claude-3-5-haiku-20241022": {"input": 0.0008, "output": 0.004},
}

# Fallback pricing for unknown models
_DEFAULT_PRICING = {"input": 0.01, "output": 0.03}


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """
    Estimate the dollar cost of an LLM call.

    Args:
        model: Model identifier.
        input_tokens: Number of input tokens.
        output_tokens: Number of output tokens.

    Returns:
        Estimated cost in USD.
    """
    rates = LLM_PRICING.get(model)
    if rates is None:
        for key in LLM_PRICING:
            if model.startswith(key):
                rates = LLM_PRICING[key]
                break
    if rates is None:
        rates = _DEFAULT_PRICING

    return (input_tokens * rates["input"] + output_tokens * rates["output"]) / 1000


# =============================================================================
# METRICS COLLECTOR
# =============================================================================


class MetricsCollector:
    """
    Central metrics collector.

    Each collector owns its own ``CollectorRegistry`` so several
    instances (one per service, one per test) never clash on metric
    registration.

    Usage::

        metrics = MetricsCollector()
        metrics.record_tool_call("createBranch", success=True, duration=0.42)
        metrics.record_workflow_run("success", tasks_processed=1, duration=95.0)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._start_time = time.monotonic()

        # Workflow metrics
        self.workflow_runs = Counter(
            "cto_workflow_runs_total",
            "Scheduled workflow runs",
            ["result"],
            registry=self.registry,
        )
        self.tasks_processed = Counter(
            "cto_tasks_processed_total",
            "Tasks reported as processed by the agent",
            registry=self.registry,
        )
        self.workflow_duration = Histogram(
            "cto_workflow_duration_seconds",
            "Duration of a full workflow run",
            buckets=[10, 30, 60, 120, 300, 600, 1200],
            registry=self.registry,
        )

        # Tool metrics
        self.tool_calls = Counter(
            "cto_tool_calls_total",
            "Tool invocations made by the agent loop",
            ["tool", "result"],
            registry=self.registry,
        )
        self.tool_latency = Histogram(
            "cto_tool_duration_seconds",
            "Tool execution duration",
            ["tool"],
            buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
            registry=self.registry,
        )

        # LLM metrics
        self.llm_requests = Counter(
            "cto_llm_requests_total",
            "Planner model invocations",
            ["model"],
            registry=self.registry,
        )
        self.llm_tokens = Counter(
            "cto_llm_tokens_total",
            "Tokens used by the planner",
            ["model", "token_type"],
            registry=self.registry,
        )
        self.llm_cost = Counter(
            "cto_llm_cost_dollars",
            "Estimated LLM cost in dollars",
            ["model"],
            registry=self.registry,
        )

        # System metrics
        self.errors_total = Counter(
            "cto_errors_total",
            "Errors by component",
            ["component", "error_type"],
            registry=self.registry,
        )

    # -- Workflow metrics -------------------------------------------------

    def record_workflow_run(
        self, result: str, tasks_processed: int, duration: float
    ) -> None:
        """Record one completed scheduled run."""
        self.workflow_runs.labels(result=result).inc()
        if tasks_processed > 0:
            self.tasks_processed.inc(tasks_processed)
        self.workflow_duration.observe(duration)

    # -- Tool metrics -----------------------------------------------------

    def record_tool_call(self, tool: str, success: bool, duration: float) -> None:
        """Record a tool invocation."""
        result = "success" if success else "failure"
        self.tool_calls.labels(tool=tool, result=result).inc()
        self.tool_latency.labels(tool=tool).observe(duration)

    # -- LLM metrics ------------------------------------------------------

    def record_llm_call(
        self, model: str, input_tokens: int, output_tokens: int
    ) -> None:
        """Record one planner step with its token usage."""
        self.llm_requests.labels(model=model).inc()
        self.llm_tokens.labels(model=model, token_type="input").inc(input_tokens)
        self.llm_tokens.labels(model=model, token_type="output").inc(output_tokens)
        self.llm_cost.labels(model=model).inc(
            estimate_cost(model, input_tokens, output_tokens)
        )

    # -- System metrics ---------------------------------------------------

    def record_error(self, component: str, error_type: str) -> None:
        """Record an error occurrence."""
        self.errors_total.labels(component=component, error_type=error_type).inc()

    def get_uptime(self) -> float:
        """Return seconds since this collector was created."""
        return time.monotonic() - self._start_time

    # =====================================================================
    # EXPORT / SNAPSHOT
    # =====================================================================

    def start_http_server(self, port: int = 9090) -> None:
        """Expose this collector's registry on ``/metrics``."""
        start_http_server(port, registry=self.registry)
        logger.info(f"Metrics HTTP server started on port {port}")

    def value(self, name: str, **labels: str) -> float:
        """Read a single sample value (0.0 when never recorded)."""
        sample = self.registry.get_sample_value(name, labels or None)
        return sample or 0.0

    def snapshot(self) -> Dict[str, Any]:
        """Return a plain dict of the headline counters."""
        result: Dict[str, Any] = {
            "uptime_seconds": round(self.get_uptime(), 1),
            "tasks_processed": self.value("cto_tasks_processed_total"),
        }

        for metric in self.registry.collect():
            if metric.name not in ("cto_workflow_runs", "cto_tool_calls", "cto_errors"):
                continue
            values = {}
            for sample in metric.samples:
                if not sample.name.endswith("_total"):
                    continue
                key = ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items()))
                values[key] = sample.value
            result[metric.name] = values

        return result


# =============================================================================
# FACTORY
# =============================================================================


def create_metrics_collector(
    config: Optional[Dict[str, Any]] = None,
) -> MetricsCollector:
    """
    Create a MetricsCollector from the ``metrics`` config section.

    Starts the HTTP exposition server when a port is configured.
    """
    config = config or {}
    collector = MetricsCollector()

    port = config.get("port")
    if port:
        try:
            collector.start_http_server(int(port))
        except OSError as e:
            logger.warning(f"Could not start metrics server on port {port}: {e}")

    return collector


__all__ = [
    "MetricsCollector",
    "create_metrics_collector",
    "estimate_cost",
    "LLM_PRICING",
]
