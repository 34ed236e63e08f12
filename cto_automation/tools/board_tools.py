# =============================================================================
# CTO AUTOMATION - BOARD TOOLS
# =============================================================================
"""
Kanban board tools: readKanbanBoard, queryTaskDetails, updateTaskStatus,
addTaskComment.

The two read tools raise on failure (the registry turns the exception
into an error result). The two mutating tools report failure in their
payload as ``{"success": False, "message": ...}``.
"""

import logging
from typing import Any, Dict, Optional

from cto_automation.engine.tools import ToolRegistry
from cto_automation.notion.board import BoardManager


logger = logging.getLogger(__name__)


TOOL_SCHEMAS = {
    "readKanbanBoard": {
        "name": "readKanbanBoard",
        "description": "Read tasks from a Notion kanban board database, filtering by status columns",
        "parameters": {
            "type": "object",
            "properties": {
                "databaseId": {"type": "string", "description": "The Notion database ID for the kanban board"},
                "statusFilter": {
                    "type": "string",
                    "description": "Filter tasks by status (e.g., 'To Do', 'In Progress', 'Done')",
                },
            },
            "required": ["databaseId"],
        },
    },
    "queryTaskDetails": {
        "name": "queryTaskDetails",
        "description": "Get detailed information about a specific task including its full content and properties",
        "parameters": {
            "type": "object",
            "properties": {
                "pageId": {"type": "string", "description": "The Notion page ID of the task"},
            },
            "required": ["pageId"],
        },
    },
    "updateTaskStatus": {
        "name": "updateTaskStatus",
        "description": "Update the status of a task in the Notion kanban board",
        "parameters": {
            "type": "object",
            "properties": {
                "pageId": {"type": "string", "description": "The Notion page ID of the task"},
                "newStatus": {
                    "type": "string",
                    "description": "The new status to set (e.g., 'To Do', 'In Progress', 'Done', 'Blocked')",
                },
            },
            "required": ["pageId", "newStatus"],
        },
    },
    "addTaskComment": {
        "name": "addTaskComment",
        "description": "Add a comment to a task in Notion with progress updates or completion details",
        "parameters": {
            "type": "object",
            "properties": {
                "pageId": {"type": "string", "description": "The Notion page ID of the task"},
                "comment": {"type": "string", "description": "The comment text to add to the task"},
            },
            "required": ["pageId", "comment"],
        },
    },
}


class BoardTools:
    """Tool handlers bound to one BoardManager."""

    def __init__(self, board: BoardManager):
        self.board = board

    async def read_kanban_board(self, database_id: str, status_filter: Optional[str] = None) -> Dict[str, Any]:
        tasks = await self.board.list_open_tasks(database_id, status_filter)
        return {"tasks": [task.to_dict() for task in tasks]}

    async def query_task_details(self, page_id: str) -> Dict[str, Any]:
        task = await self.board.get_task_detail(page_id)
        return {"task": task.to_dict()}

    async def update_task_status(self, page_id: str, new_status: str) -> Dict[str, Any]:
        try:
            await self.board.set_status(page_id, new_status)
        except Exception as e:
            logger.error(f"Failed to update status of {page_id}: {e}")
            return {"success": False, "message": f"Failed to update task status: {e}"}
        return {"success": True, "message": f'Task status updated to "{new_status}"'}

    async def add_task_comment(self, page_id: str, comment: str) -> Dict[str, Any]:
        try:
            await self.board.add_comment(page_id, comment)
        except Exception as e:
            logger.error(f"Failed to comment on {page_id}: {e}")
            return {"success": False, "message": f"Failed to add comment: {e}"}
        return {"success": True, "message": "Comment added successfully"}


def register_board_tools(registry: ToolRegistry, board: BoardManager) -> BoardTools:
    tools = BoardTools(board)
    registry.register(TOOL_SCHEMAS["readKanbanBoard"], tools.read_kanban_board)
    registry.register(TOOL_SCHEMAS["queryTaskDetails"], tools.query_task_details)
    registry.register(TOOL_SCHEMAS["updateTaskStatus"], tools.update_task_status)
    registry.register(TOOL_SCHEMAS["addTaskComment"], tools.add_task_comment)
    return tools


__all__ = ["BoardTools", "TOOL_SCHEMAS", "register_board_tools"]
