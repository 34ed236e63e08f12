# =============================================================================
# CTO AUTOMATION - NOTION INTEGRATION PACKAGE
# =============================================================================
"""
Notion Integration Package

Kanban board access: reading tasks, task details, status changes and
comments.

Usage:
    from cto_automation.notion import NotionClient, BoardManager

    board = BoardManager(NotionClient(token_provider))
    tasks = await board.list_open_tasks(database_id, "To Do")
"""

from cto_automation.notion.client import NotionClient, NotionAPIError
from cto_automation.notion.board import (
    BoardManager,
    Task,
    page_to_task,
    flatten_blocks,
)

__all__ = [
    "NotionClient",
    "NotionAPIError",
    "BoardManager",
    "Task",
    "page_to_task",
    "flatten_blocks",
]
