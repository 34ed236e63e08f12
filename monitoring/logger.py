# =============================================================================
# CTO AUTOMATION - STRUCTURED LOGGING
# =============================================================================
"""
Structured Logging Module

Provides consistent, structured logging across all components.
Uses structlog on top of the stdlib logging tree, so records emitted
through ``logging.getLogger(__name__)`` and ``structlog.get_logger()``
share one rendering pipeline.

Features:
    - JSON-formatted logs for easy parsing
    - Contextual information bound per run or per tool call
    - Sensitive data masking (tokens never reach the log sink)
    - File output with rotation
    - Audit trail logger (JSONL)
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import re
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars, merge_contextvars


# =============================================================================
# SENSITIVE DATA MASKING
# =============================================================================

# Keys whose values should be masked
SENSITIVE_KEYS = frozenset([
    "token", "api_key", "password", "secret", "credential", "credentials",
    "private_key", "access_token", "refresh_token", "authorization",
    "github_token", "notion_token", "x_replit_token", "openai_api_key",
    "anthropic_api_key",
])

NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "openai", "anthropic")


def _key_segments(key: str) -> str:
    """Normalise ``apiKey`` / ``api-key`` / ``API_KEY`` to ``_api_key_``."""
    snake = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key).lower()
    return "_" + re.sub(r"[^a-z0-9]+", "_", snake).strip("_") + "_"


def _is_sensitive(key: str) -> bool:
    """Check if a key name indicates sensitive data (whole segments only)."""
    segments = _key_segments(key)
    return any(f"_{s}_" in segments for s in SENSITIVE_KEYS)


def _mask_value(value: Any) -> str:
    """Mask a sensitive value, keeping first/last 4 chars if long enough."""
    if not isinstance(value, str):
        return "****"
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "****"


def mask_sensitive_data(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Structlog processor that masks sensitive data in log events.

    Recursively processes dictionaries to mask values whose keys
    match known sensitive patterns.
    """

    def _process(d: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for key, value in d.items():
            if _is_sensitive(key):
                result[key] = _mask_value(value)
            elif isinstance(value, dict):
                result[key] = _process(value)
            else:
                result[key] = value
        return result

    return _process(event_dict)


def mask_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Mask sensitive data in an arbitrary dict (e.g. audit events)."""
    return mask_sensitive_data(None, "", data)


# =============================================================================
# LOGGING SETUP
# =============================================================================


def setup_logging(
    level: str = "INFO",
    fmt: str = "json",
    log_file: Optional[str] = None,
    mask_sensitive: bool = True,
    max_bytes: int = 50 * 1024 * 1024,  # 50 MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: Output format, ``"json"`` or ``"text"``.
        log_file: Optional log file path (rotated, always JSON).
        mask_sensitive: Mask sensitive values in logs.
        max_bytes: Max file size before rotation.
        backup_count: Number of rotated files to keep.

    Returns:
        Root logger instance.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
        processors: list = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
        ]
        if mask_sensitive:
            processors.append(mask_sensitive_data)
        processors.append(renderer)
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=processors,
        )

    root = logging.getLogger()
    root.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(numeric_level)
    if fmt == "json":
        console.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    else:
        console.setFormatter(_formatter(structlog.dev.ConsoleRenderer()))
    root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # capture everything to file
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


# =============================================================================
# LOG CONTEXT MANAGER
# =============================================================================


class LogContext:
    """
    Context manager that binds key-value pairs to all logs emitted
    inside the block.

    Usage::

        with LogContext(run_id="cto-session-...", tool="commitCode"):
            logger.info("Committing files")
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_contextvars(*self.context.keys())


@contextmanager
def log_context(**kwargs: Any):
    """Functional alias for :class:`LogContext`."""
    with LogContext(**kwargs) as ctx:
        yield ctx


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Records structured audit events to a JSONL file (one JSON object
    per line).

    Event categories:
        - ``workflow_run``: One per scheduled run, with its result
        - ``tool_call``: Every tool invoked by the agent loop
        - ``error``: Failures surfaced by any component

    Usage::

        audit = AuditLogger("./logs/audit.jsonl")
        audit.log_tool_call("createBranch", {"branchName": "feature/x"}, True, 0.4)
    """

    def __init__(
        self,
        output_path: str = "./logs/audit.jsonl",
        max_bytes: int = 100 * 1024 * 1024,  # 100 MB
        backup_count: int = 10,
    ):
        self.output_path = output_path
        self._logger = logging.getLogger(f"audit.{output_path}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False  # don't echo to root logger

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        if not self._logger.handlers:
            handler = logging.handlers.RotatingFileHandler(
                output_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)

    def _write_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Write a single audit event."""
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            **mask_dict(data),
        }
        self._logger.info(json.dumps(event, default=str))

    def log_workflow_run(
        self,
        run_id: str,
        tasks_processed: int,
        completed_tasks: list,
        errors: list,
        duration: float,
    ) -> None:
        """Log the outcome of one scheduled workflow run."""
        self._write_event("workflow_run", {
            "run_id": run_id,
            "tasks_processed": tasks_processed,
            "completed_tasks": completed_tasks,
            "errors": errors,
            "duration_seconds": round(duration, 2),
        })

    def log_tool_call(
        self,
        tool_name: str,
        arguments: Dict[str, Any],
        success: bool,
        duration: float,
        error: Optional[str] = None,
    ) -> None:
        """Log a tool invocation made by the agent loop."""
        self._write_event("tool_call", {
            "tool": tool_name,
            "arguments": arguments,
            "success": success,
            "duration_seconds": round(duration, 3),
            "error": error,
        })

    def log_error(self, component: str, error_type: str, message: str) -> None:
        """Log an error event."""
        self._write_event("error", {
            "component": component,
            "error_type": error_type,
            "message": message,
        })

    def close(self) -> None:
        """Flush and detach the file handler."""
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "setup_logging",
    "mask_sensitive_data",
    "mask_dict",
    "LogContext",
    "log_context",
    "AuditLogger",
]
