# =============================================================================
# CTO AUTOMATION - MONITORING PACKAGE
# =============================================================================
"""
Monitoring Package

Logging, audit trail and metrics infrastructure for the automation runs.

Components:
    - Logger: Structured logging with structlog over stdlib logging
    - Audit: Audit trail recording to JSONL
    - Metrics: Prometheus metrics collection

Usage:
    from monitoring import setup_logging, MetricsCollector, AuditLogger

    setup_logging(level="INFO", fmt="json", log_file="./logs/cto.log")

    metrics = MetricsCollector()
    metrics.record_tool_call("commitCode", success=True, duration=1.2)

    audit = AuditLogger("./logs/audit.jsonl")
    audit.log_tool_call("commitCode", {"branch": "feature/x"}, True, 1.2)
"""

from monitoring.logger import (
    setup_logging,
    AuditLogger,
    LogContext,
    log_context,
    mask_sensitive_data,
    mask_dict,
)

from monitoring.metrics import (
    MetricsCollector,
    create_metrics_collector,
    estimate_cost,
    LLM_PRICING,
)


__all__ = [
    # Logger
    "setup_logging",
    "AuditLogger",
    "LogContext",
    "log_context",
    "mask_sensitive_data",
    "mask_dict",
    # Metrics
    "MetricsCollector",
    "create_metrics_collector",
    "estimate_cost",
    "LLM_PRICING",
]
