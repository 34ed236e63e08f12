# =============================================================================
# CTO AUTOMATION - SERVICE ENTRY POINT
# =============================================================================
"""
CTO Automation Main Module

Entry point for the automation service. It wires the board, repository,
LLM and monitoring components together and triggers the task workflow
on a fixed interval.

Each run asks the agent to pick up exactly one 'To Do' task, implement
it on a fresh branch, open a pull request and report back to the board.

Usage:
    python -m cto_automation.main
    python -m cto_automation.main --config config/cto_automation.yaml
    python -m cto_automation.main --once --debug
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from cto_automation.credentials import create_token_provider
from cto_automation.engine.agent_loop import AgentLoop, LLMPlanner, Planner
from cto_automation.engine.llm import LLMConfig, create_llm_client
from cto_automation.engine.workflow import TaskWorkflow, WorkflowResult
from cto_automation.github.client import GitHubClient
from cto_automation.github.repository import RepositoryManager
from cto_automation.notion.board import BoardManager
from cto_automation.notion.client import NotionClient
from cto_automation.tools import build_tool_registry
from monitoring.logger import AuditLogger, setup_logging
from monitoring.metrics import MetricsCollector, create_metrics_collector


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/cto_automation.yaml"


# =============================================================================
# CONFIGURATION
# =============================================================================

ENV_MAPPINGS = {
    # Board
    "NOTION_DATABASE_ID": ("notion", "database_id"),
    "NOTION_TOKEN": ("notion", "token"),
    # Repository
    "GITHUB_OWNER": ("github", "owner"),
    "GITHUB_REPO": ("github", "repo"),
    "GITHUB_BASE_BRANCH": ("github", "base_branch"),
    "GITHUB_TOKEN": ("github", "token"),
    # Connectors
    "REPLIT_CONNECTORS_HOSTNAME": ("connectors", "hostname"),
    # LLM
    "LLM_PROVIDER": ("llm", "provider"),
    "LLM_MODEL": ("llm", "model"),
    "OPENAI_BASE_URL": ("llm", "api_base"),
    # Agent / scheduler
    "MAX_STEPS": ("agent", "max_steps"),
    "POLL_INTERVAL": ("scheduler", "poll_interval"),
    # Monitoring
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_FILE": ("logging", "file"),
    "AUDIT_LOG_PATH": ("audit", "path"),
    "METRICS_PORT": ("metrics", "port"),
}

NUMERIC_KEYS = {
    ("agent", "max_steps"),
    ("scheduler", "poll_interval"),
    ("metrics", "port"),
}

DEFAULTS = {
    "notion": {
        "database_id": "",
        "token": "",
    },
    "github": {
        "owner": "",
        "repo": "",
        "base_branch": "main",
        "token": "",
    },
    "connectors": {
        "hostname": "",
    },
    "llm": {
        "provider": "openai",
        "model": "gpt-4o",
        "temperature": 0.0,
        "max_tokens": 4096,
    },
    "agent": {
        "max_steps": 20,
    },
    "scheduler": {
        "poll_interval": 3600,
    },
    "logging": {
        "level": "INFO",
        "format": "json",
        "file": None,
    },
    "audit": {
        "enabled": True,
        "path": "./logs/audit.jsonl",
    },
    "metrics": {
        "port": None,
    },
}


def load_config(config_path: str = DEFAULT_CONFIG_PATH, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file and environment variables.

    Environment variables override YAML values; defaults fill the rest.
    """
    environ = environ if environ is not None else os.environ
    config: Dict[str, Any] = {}

    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            config = yaml.safe_load(f) or {}
        # An empty section such as "notion:" loads as None
        config = {section: values or {} for section, values in config.items()}
        logger.info(f"Loaded config from {config_path}")
    else:
        logger.warning(f"Config file not found: {config_path}, using defaults")

    for env_var, (section, key) in ENV_MAPPINGS.items():
        value = environ.get(env_var)
        if value is None or value == "":
            continue
        if (section, key) in NUMERIC_KEYS and value.isdigit():
            value = int(value)
        config.setdefault(section, {})[key] = value

    for section, section_defaults in DEFAULTS.items():
        config.setdefault(section, {})
        for key, default_value in section_defaults.items():
            config[section].setdefault(key, default_value)

    return config


# =============================================================================
# SERVICE CLASS
# =============================================================================


class CTOAutomation:
    """
    Wires the components and triggers the task workflow.

    Attributes:
        config: Merged configuration dictionary
        planner: Optional planner override (defaults to the configured LLM)
    """

    def __init__(self, config: Dict[str, Any], planner: Optional[Planner] = None):
        self.config = config
        self.planner = planner
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in setup())
        self.notion_client: Optional[NotionClient] = None
        self.github_client: Optional[GitHubClient] = None
        self.metrics: Optional[MetricsCollector] = None
        self.audit: Optional[AuditLogger] = None
        self.workflow: Optional[TaskWorkflow] = None

    async def setup(self) -> None:
        """Initialize all components. Must be called before run()."""
        logger.info("Initializing CTO automation components...")

        hostname = self.config["connectors"].get("hostname") or None
        notion_config = self.config["notion"]
        github_config = self.config["github"]

        # 1. Monitoring
        self.metrics = create_metrics_collector(self.config.get("metrics", {}))
        audit_config = self.config.get("audit", {})
        if audit_config.get("enabled", True):
            self.audit = AuditLogger(audit_config.get("path", "./logs/audit.jsonl"))

        # 2. Board
        self.notion_client = NotionClient(
            create_token_provider("notion", token=notion_config.get("token"), hostname=hostname)
        )
        board = BoardManager(self.notion_client)

        # 3. Repository
        self.github_client = GitHubClient(
            create_token_provider("github", token=github_config.get("token"), hostname=hostname)
        )
        repository = RepositoryManager(self.github_client)

        # 4. Agent
        if self.planner is None:
            llm_client = create_llm_client(LLMConfig.from_dict(self.config))
            self.planner = LLMPlanner(llm_client, metrics=self.metrics)

        registry = build_tool_registry(board, repository, metrics=self.metrics, audit=self.audit)
        agent_loop = AgentLoop(
            self.planner,
            registry,
            max_steps=int(self.config["agent"].get("max_steps", 20)),
        )

        # 5. Workflow
        self.workflow = TaskWorkflow(agent_loop, self.config, metrics=self.metrics, audit=self.audit)

        logger.info(f"All components initialized ({len(registry.names)} tools registered)")

    async def run_once(self) -> WorkflowResult:
        """Trigger one workflow run. Never raises."""
        try:
            if self.workflow is None:
                await self.setup()
            result = await self.workflow.run()
        except Exception as e:
            logger.critical(f"Scheduled run failed: {e}", exc_info=True)
            result = WorkflowResult(
                run_id="setup",
                errors=[f"Workflow execution failed: {e}"],
                summary=f"CTO Automation failed: {e}",
            )

        logger.info(result.summary)
        return result

    async def run(self) -> None:
        """Polling loop. Runs until stop() is called."""
        self._running = True
        poll_interval = int(self.config["scheduler"].get("poll_interval", 3600))

        logger.info(f"Starting CTO automation (poll interval {poll_interval}s)")

        try:
            while self._running:
                await self.run_once()

                # Wait for next poll or shutdown
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=poll_interval)
                    break
                except asyncio.TimeoutError:
                    continue
        finally:
            self.close()

        logger.info("CTO automation stopped")

    async def stop(self) -> None:
        """Gracefully stop the polling loop."""
        logger.info("Stopping CTO automation...")
        self._running = False
        self._shutdown_event.set()

    def close(self) -> None:
        """Release HTTP sessions and the audit file."""
        if self.github_client:
            self.github_client.close()
        if self.notion_client:
            self.notion_client.close()
        if self.audit:
            self.audit.close()


# =============================================================================
# CLI ARGUMENT PARSING
# =============================================================================


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="CTO Automation - autonomous kanban-to-pull-request agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle, print the result as JSON and exit",
    )
    return parser.parse_args(argv)


# =============================================================================
# SIGNAL HANDLING
# =============================================================================


def setup_signal_handlers(service: CTOAutomation, loop: asyncio.AbstractEventLoop) -> None:
    """Setup signal handlers for graceful shutdown."""

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, initiating shutdown...")
        loop.create_task(service.stop())

    if sys.platform != "win32":
        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


async def async_main(config: Dict[str, Any], once: bool = False) -> None:
    service = CTOAutomation(config)

    if once:
        try:
            result = await service.run_once()
        finally:
            service.close()
        print(json.dumps(result.to_dict(), indent=2))
        return

    loop = asyncio.get_running_loop()
    setup_signal_handlers(service, loop)
    await service.run()


def main(argv=None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    config = load_config(args.config)

    log_config = config["logging"]
    setup_logging(
        level="DEBUG" if args.debug else log_config.get("level", "INFO"),
        fmt=log_config.get("format", "json"),
        log_file=log_config.get("file"),
    )

    logger.info("=" * 60)
    logger.info("CTO Automation")
    logger.info("=" * 60)

    try:
        asyncio.run(async_main(config, once=args.once))
    except KeyboardInterrupt:
        logger.info("CTO automation stopped by user")
    except Exception as e:
        logger.critical(f"CTO automation failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
