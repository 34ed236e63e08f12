# =============================================================================
# CTO AUTOMATION - KANBAN BOARD MANAGER
# =============================================================================
"""
Kanban Board Manager

Reads tasks from a Notion database and writes status/comment updates
back. Board pages are projected into ``Task`` objects using a fixed
property alias order, so boards named ``Name`` instead of ``Title``
(and similar) still work.

Property aliases (first present wins):
    title        Title, Name, title, name      default "Untitled"
    status       Status, status                default "Unknown"
    description  Description, description     rich text
    assignee     Assignee, assignee            first person's name
    priority     Priority, priority            select name

Usage:
    board = BoardManager(NotionClient(provider))
    todo = await board.list_open_tasks(database_id, status_filter="To Do")
    await board.set_status(todo[0].id, "In Progress")
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cto_automation.notion.client import NotionClient


logger = logging.getLogger(__name__)


TITLE_ALIASES = ("Title", "Name", "title", "name")
STATUS_ALIASES = ("Status", "status")
DESCRIPTION_ALIASES = ("Description", "description")
ASSIGNEE_ALIASES = ("Assignee", "assignee")
PRIORITY_ALIASES = ("Priority", "priority")

DEFAULT_TITLE = "Untitled"
DEFAULT_STATUS = "Unknown"

BLOCK_PREFIXES = {
    "paragraph": "",
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "- ",
    "numbered_list_item": "1. ",
}


# =============================================================================
# TASK MODEL
# =============================================================================


@dataclass
class Task:
    """A board page projected into the fields the agent works with."""
    id: str
    title: str
    status: str
    description: str = ""
    assignee: str = ""
    priority: str = ""
    created_time: str = ""
    last_edited_time: str = ""
    url: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "description": self.description,
            "assignee": self.assignee,
            "priority": self.priority,
            "createdTime": self.created_time,
            "lastEditedTime": self.last_edited_time,
            "url": self.url,
            "properties": self.properties,
        }
        if self.content is not None:
            data["content"] = self.content
        return data


# =============================================================================
# PROPERTY EXTRACTION
# =============================================================================


def _first_property(properties: Dict[str, Any], aliases) -> Optional[dict]:
    for alias in aliases:
        prop = properties.get(alias)
        if prop:
            return prop
    return None


def _plain_text(fragments: List[dict]) -> str:
    return "".join(f.get("plain_text", "") for f in fragments or [])


def extract_title(properties: Dict[str, Any]) -> str:
    prop = _first_property(properties, TITLE_ALIASES)
    if prop and prop.get("title"):
        return prop["title"][0].get("plain_text", DEFAULT_TITLE)
    return DEFAULT_TITLE


def extract_status(properties: Dict[str, Any]) -> str:
    prop = _first_property(properties, STATUS_ALIASES)
    if not prop:
        return DEFAULT_STATUS
    # Boards use either a select column or Notion's native status column
    option = prop.get("select") or prop.get("status")
    if option and option.get("name"):
        return option["name"]
    return DEFAULT_STATUS


def status_update(properties: Dict[str, Any], status: str) -> Dict[str, Any]:
    """Property payload that writes ``status`` under the column the board uses."""
    for alias in STATUS_ALIASES:
        prop = properties.get(alias)
        if prop:
            kind = "status" if prop.get("type") == "status" or "status" in prop else "select"
            return {alias: {kind: {"name": status}}}
    return {"Status": {"select": {"name": status}}}


def extract_description(properties: Dict[str, Any]) -> str:
    prop = _first_property(properties, DESCRIPTION_ALIASES)
    if prop and prop.get("rich_text"):
        return _plain_text(prop["rich_text"])
    return ""


def extract_assignee(properties: Dict[str, Any]) -> str:
    prop = _first_property(properties, ASSIGNEE_ALIASES)
    if prop and prop.get("people"):
        return prop["people"][0].get("name") or ""
    return ""


def extract_priority(properties: Dict[str, Any]) -> str:
    prop = _first_property(properties, PRIORITY_ALIASES)
    if prop and prop.get("select"):
        return prop["select"].get("name") or ""
    return ""


def page_to_task(page: Dict[str, Any]) -> Task:
    properties = page.get("properties") or {}
    return Task(
        id=page["id"],
        title=extract_title(properties),
        status=extract_status(properties),
        description=extract_description(properties),
        assignee=extract_assignee(properties),
        priority=extract_priority(properties),
        created_time=page.get("created_time", ""),
        last_edited_time=page.get("last_edited_time", ""),
        url=page.get("url", ""),
        properties=properties,
    )


def flatten_blocks(blocks: List[Dict[str, Any]]) -> str:
    """
    Flatten page blocks into markdown-ish text.

    Unsupported block types are skipped; order is preserved and the
    result is whitespace-trimmed.
    """
    lines = []
    for block in blocks:
        block_type = block.get("type")
        prefix = BLOCK_PREFIXES.get(block_type)
        if prefix is None:
            continue
        rich_text = (block.get(block_type) or {}).get("rich_text")
        if rich_text is None:
            continue
        lines.append(prefix + _plain_text(rich_text))
    return "\n".join(lines).strip()


def _normalize_id(value: str) -> str:
    return (value or "").replace("-", "").lower()


def page_in_database(page: Dict[str, Any], database_id: str) -> bool:
    parent = page.get("parent") or {}
    return _normalize_id(parent.get("database_id")) == _normalize_id(database_id)


# =============================================================================
# BOARD MANAGER
# =============================================================================


class BoardManager:
    """
    Async task operations on one Notion workspace.

    The search endpoint is workspace-wide; pages from other databases are
    filtered out locally.
    """

    def __init__(self, client: NotionClient):
        self.client = client

    async def list_open_tasks(
        self, database_id: str, status_filter: Optional[str] = None
    ) -> List[Task]:
        """Tasks of ``database_id``, optionally restricted to one status."""
        pages = await asyncio.to_thread(self.client.search_pages)

        tasks = []
        for page in pages:
            if not page_in_database(page, database_id):
                continue
            task = page_to_task(page)
            if status_filter and task.status != status_filter:
                continue
            tasks.append(task)

        logger.info(
            f"Read {len(tasks)} task(s) from board {database_id}"
            + (f" with status '{status_filter}'" if status_filter else "")
        )
        return tasks

    async def get_task_detail(self, task_id: str) -> Task:
        """Task properties plus flattened page content."""
        page, blocks = await asyncio.gather(
            asyncio.to_thread(self.client.retrieve_page, task_id),
            asyncio.to_thread(self.client.get_all_block_children, task_id),
        )
        task = page_to_task(page)
        task.content = flatten_blocks(blocks)
        return task

    async def set_status(self, task_id: str, status: str) -> None:
        """Write ``status`` using the property name and column type the page already has."""
        page = await asyncio.to_thread(self.client.retrieve_page, task_id)
        properties = status_update(page.get("properties") or {}, status)
        await asyncio.to_thread(self.client.update_page, task_id, properties)
        logger.info(f"Task {task_id} moved to '{status}'")

    async def add_comment(self, task_id: str, text: str) -> None:
        await asyncio.to_thread(self.client.create_comment, task_id, text)
        logger.info(f"Comment added to task {task_id}")


__all__ = [
    "Task",
    "BoardManager",
    "page_to_task",
    "flatten_blocks",
    "extract_title",
    "extract_status",
    "status_update",
    "extract_description",
    "extract_assignee",
    "extract_priority",
]
