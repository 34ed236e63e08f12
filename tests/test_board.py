"""Tests for the Notion client and the kanban board manager."""

from unittest.mock import MagicMock

import pytest

from cto_automation.credentials import StaticTokenProvider
from cto_automation.notion.board import (
    extract_assignee,
    extract_description,
    extract_status,
    extract_title,
    flatten_blocks,
    page_to_task,
    status_update,
)
from cto_automation.notion.client import NotionAPIError, NotionClient
from tests.conftest import (
    DATABASE_ID,
    OTHER_DATABASE_ID,
    make_block,
    make_page,
    rich_text,
)


# =============================================================================
# NOTION CLIENT
# =============================================================================


class TestNotionClient:

    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def client(self, session):
        return NotionClient(StaticTokenProvider("secret_abc"), session=session)

    def test_search_filters_pages(self, client, session, mock_response):
        session.request.return_value = mock_response(200, {"results": [], "has_more": False})

        client.search_pages()

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "https://api.notion.com/v1/search"
        assert kwargs["json"] == {"filter": {"value": "page", "property": "object"}, "page_size": 100}
        assert kwargs["headers"]["Authorization"] == "Bearer secret_abc"

    def test_search_follows_cursor(self, client, session, mock_response):
        session.request.side_effect = [
            mock_response(200, {"results": [{"id": "a"}], "has_more": True, "next_cursor": "c1"}),
            mock_response(200, {"results": [{"id": "b"}], "has_more": False, "next_cursor": None}),
        ]

        pages = client.search_pages()

        assert [p["id"] for p in pages] == ["a", "b"]
        assert session.request.call_args.kwargs["json"]["start_cursor"] == "c1"

    def test_block_children_paginate(self, client, session, mock_response):
        session.request.side_effect = [
            mock_response(200, {"results": [{"id": 1}], "has_more": True, "next_cursor": "n"}),
            mock_response(200, {"results": [{"id": 2}], "has_more": False}),
        ]

        blocks = client.get_all_block_children("page-1")

        assert [b["id"] for b in blocks] == [1, 2]
        assert session.request.call_args.kwargs["params"] == {"page_size": 100, "start_cursor": "n"}

    def test_comment_payload(self, client, session, mock_response):
        session.request.return_value = mock_response(200, {"object": "comment"})

        client.create_comment("page-1", "Implemented in PR #4")

        assert session.request.call_args.kwargs["json"] == {
            "parent": {"page_id": "page-1"},
            "rich_text": [{"text": {"content": "Implemented in PR #4"}}],
        }

    def test_error_carries_code(self, client, session, mock_response):
        session.request.return_value = mock_response(
            404, {"object": "error", "code": "object_not_found", "message": "Could not find page"}
        )

        with pytest.raises(NotionAPIError) as excinfo:
            client.retrieve_page("missing")

        assert excinfo.value.status_code == 404
        assert excinfo.value.code == "object_not_found"
        assert "Could not find page" in str(excinfo.value)


# =============================================================================
# PROPERTY EXTRACTION
# =============================================================================


class TestExtraction:

    def test_title_prefers_title_over_name(self):
        properties = {
            "Name": {"type": "title", "title": rich_text("From Name")},
            "Title": {"type": "title", "title": rich_text("From Title")},
        }
        assert extract_title(properties) == "From Title"

    def test_title_falls_back_to_name(self):
        page = make_page("p1", "Add dark mode", title_key="Name")
        assert page_to_task(page).title == "Add dark mode"

    def test_defaults(self):
        assert extract_title({}) == "Untitled"
        assert extract_status({}) == "Unknown"
        assert extract_description({}) == ""
        assert extract_assignee({}) == ""

    def test_native_status_column(self):
        properties = {"Status": {"type": "status", "status": {"name": "In Progress"}}}
        assert extract_status(properties) == "In Progress"

    def test_description_joins_fragments(self):
        properties = {
            "Description": {
                "type": "rich_text",
                "rich_text": rich_text("Toggle in ") + rich_text("settings"),
            }
        }
        assert extract_description(properties) == "Toggle in settings"

    def test_page_projection(self):
        page = make_page(
            "p1", "Add dark mode", description="Add a theme toggle",
            assignee="Dana", priority="High",
        )

        task = page_to_task(page)

        assert task.status == "To Do"
        assert task.assignee == "Dana"
        assert task.priority == "High"
        data = task.to_dict()
        assert data["createdTime"] == "2024-05-01T09:00:00.000Z"
        assert "content" not in data


class TestFlattenBlocks:

    def test_prefixes_and_order(self):
        blocks = [
            make_block("heading_1", "Goal"),
            make_block("paragraph", "Support a dark theme."),
            make_block("heading_2", "Steps"),
            make_block("bulleted_list_item", "Add CSS variables"),
            make_block("numbered_list_item", "Wire the toggle"),
            make_block("heading_3", "Notes"),
        ]

        assert flatten_blocks(blocks) == (
            "# Goal\nSupport a dark theme.\n## Steps\n- Add CSS variables\n1. Wire the toggle\n### Notes"
        )

    def test_unsupported_blocks_skipped(self):
        blocks = [
            {"type": "image", "image": {"file": {"url": "https://x"}}},
            make_block("paragraph", "Kept"),
            {"type": "divider", "divider": {}},
        ]
        assert flatten_blocks(blocks) == "Kept"

    def test_trimmed(self):
        blocks = [make_block("paragraph", "  "), make_block("paragraph", "Body  ")]
        assert flatten_blocks(blocks) == "Body"


# =============================================================================
# BOARD MANAGER
# =============================================================================


class TestBoardManager:

    @pytest.mark.asyncio
    async def test_other_databases_filtered(self, board, fake_notion):
        fake_notion.pages = {
            "p1": make_page("p1", "Mine"),
            "p2": make_page("p2", "Elsewhere", database_id=OTHER_DATABASE_ID),
        }

        tasks = await board.list_open_tasks(DATABASE_ID)

        assert [t.id for t in tasks] == ["p1"]

    @pytest.mark.asyncio
    async def test_database_id_format_insensitive(self, board, fake_notion):
        fake_notion.pages = {"p1": make_page("p1", "Mine")}

        tasks = await board.list_open_tasks(DATABASE_ID.replace("-", "").upper())

        assert len(tasks) == 1

    @pytest.mark.asyncio
    async def test_status_filter(self, board, fake_notion):
        fake_notion.pages = {
            "p1": make_page("p1", "Todo", status="To Do"),
            "p2": make_page("p2", "Doing", status="In Progress"),
            "p3": make_page("p3", "Done", status="Done"),
        }

        todo = await board.list_open_tasks(DATABASE_ID, status_filter="To Do")
        everything = await board.list_open_tasks(DATABASE_ID)

        assert [t.id for t in todo] == ["p1"]
        assert len(everything) == 3

    @pytest.mark.asyncio
    async def test_task_detail_includes_content(self, board, fake_notion):
        fake_notion.pages = {"p1": make_page("p1", "Add dark mode")}
        fake_notion.blocks["p1"] = [make_block("paragraph", "Use CSS variables.")]

        task = await board.get_task_detail("p1")

        assert task.title == "Add dark mode"
        assert task.to_dict()["content"] == "Use CSS variables."

    @pytest.mark.asyncio
    async def test_task_detail_missing_page(self, board):
        with pytest.raises(NotionAPIError):
            await board.get_task_detail("nope")

    @pytest.mark.asyncio
    async def test_set_status_and_comment(self, board, fake_notion):
        fake_notion.pages = {"p1": make_page("p1", "Add dark mode")}

        await board.set_status("p1", "Done")
        await board.add_comment("p1", "Shipped")

        assert fake_notion.status_updates == [("p1", "Done")]
        assert fake_notion.comments == [("p1", "Shipped")]
        assert page_to_task(fake_notion.pages["p1"]).status == "Done"

    @pytest.mark.asyncio
    async def test_set_status_keeps_native_status_column(self, board, fake_notion):
        page = make_page("p1", "Add dark mode")
        del page["properties"]["Status"]
        page["properties"]["status"] = {"type": "status", "status": {"name": "To Do"}}
        fake_notion.pages = {"p1": page}

        await board.set_status("p1", "In Progress")

        assert page["properties"]["status"] == {"type": "status", "status": {"name": "In Progress"}}
        assert "Status" not in page["properties"]
        assert page_to_task(page).status == "In Progress"


class TestStatusUpdate:

    @pytest.mark.parametrize("properties,expected", [
        ({"Status": {"type": "select", "select": {"name": "To Do"}}}, {"Status": {"select": {"name": "Done"}}}),
        ({"Status": {"type": "status", "status": {"name": "To Do"}}}, {"Status": {"status": {"name": "Done"}}}),
        ({"status": {"type": "select", "select": None}}, {"status": {"select": {"name": "Done"}}}),
        ({}, {"Status": {"select": {"name": "Done"}}}),
    ])
    def test_payload_follows_board_column(self, properties, expected):
        assert status_update(properties, "Done") == expected
