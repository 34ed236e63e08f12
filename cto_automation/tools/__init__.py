# =============================================================================
# CTO AUTOMATION - AGENT TOOLS PACKAGE
# =============================================================================
"""
Agent Tools Package

The thirteen tools offered to the CTO agent:

    Board:        readKanbanBoard, queryTaskDetails, updateTaskStatus, addTaskComment
    Repository:   createBranch, commitCode, createPullRequest,
                  getRepositoryContent, listRepositoryBranches
    Development:  analyzeCodebase, implementCodeChanges, runCodeTests,
                  validateCodeQuality

Usage:
    registry = build_tool_registry(board, repository, metrics=metrics, audit=audit)
"""

from typing import Optional

from cto_automation.engine.tools import ToolRegistry
from cto_automation.github.repository import RepositoryManager
from cto_automation.notion.board import BoardManager
from cto_automation.tools.board_tools import BoardTools, register_board_tools
from cto_automation.tools.development_tools import (
    CodeIntelligenceProvider,
    PlaceholderCodeIntelligence,
    register_development_tools,
)
from cto_automation.tools.repository_tools import RepositoryTools, register_repository_tools
from monitoring.logger import AuditLogger
from monitoring.metrics import MetricsCollector


def build_tool_registry(
    board: BoardManager,
    repository: RepositoryManager,
    provider: Optional[CodeIntelligenceProvider] = None,
    metrics: Optional[MetricsCollector] = None,
    audit: Optional[AuditLogger] = None,
) -> ToolRegistry:
    """Registry holding every agent tool."""
    registry = ToolRegistry(metrics=metrics, audit=audit)
    register_board_tools(registry, board)
    register_repository_tools(registry, repository)
    register_development_tools(registry, provider)
    return registry


__all__ = [
    "build_tool_registry",
    "BoardTools",
    "RepositoryTools",
    "CodeIntelligenceProvider",
    "PlaceholderCodeIntelligence",
    "register_board_tools",
    "register_repository_tools",
    "register_development_tools",
]
