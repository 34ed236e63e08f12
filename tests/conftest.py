"""Shared fixtures: in-memory stand-ins for the Notion and GitHub hosts."""

import base64
import itertools
import json
import threading
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from cto_automation.github.client import GitHubAPIError, NotFoundError, ValidationError
from cto_automation.github.repository import RepositoryManager
from cto_automation.notion.board import BoardManager
from cto_automation.notion.client import NotionAPIError
from monitoring.logger import AuditLogger
from monitoring.metrics import MetricsCollector


DATABASE_ID = "1f0c2d3e-4a5b-6c7d-8e9f-0a1b2c3d4e5f"
OTHER_DATABASE_ID = "99999999-0000-0000-0000-000000000000"


# =============================================================================
# NOTION PAGE BUILDERS
# =============================================================================


def rich_text(text: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "plain_text": text, "text": {"content": text}}]


def make_page(
    page_id: str,
    title: str,
    status: str = "To Do",
    database_id: str = DATABASE_ID,
    title_key: str = "Title",
    description: str = "",
    assignee: Optional[str] = None,
    priority: Optional[str] = None,
    extra_properties: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        title_key: {"type": "title", "title": rich_text(title)},
        "Status": {"type": "select", "select": {"name": status}},
    }
    if description:
        properties["Description"] = {"type": "rich_text", "rich_text": rich_text(description)}
    if assignee:
        properties["Assignee"] = {"type": "people", "people": [{"name": assignee}]}
    if priority:
        properties["Priority"] = {"type": "select", "select": {"name": priority}}
    properties.update(extra_properties or {})

    return {
        "object": "page",
        "id": page_id,
        "parent": {"type": "database_id", "database_id": database_id},
        "created_time": "2024-05-01T09:00:00.000Z",
        "last_edited_time": "2024-05-02T10:30:00.000Z",
        "url": f"https://www.notion.so/{page_id.replace('-', '')}",
        "properties": properties,
    }


def make_block(block_type: str, text: str) -> Dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: {"rich_text": rich_text(text)}}


# =============================================================================
# IN-MEMORY HOSTS
# =============================================================================


class FakeNotionClient:
    """Mimics NotionClient with pages held in memory."""

    def __init__(self, pages: Optional[List[dict]] = None):
        self.pages: Dict[str, dict] = {p["id"]: p for p in pages or []}
        self.blocks: Dict[str, List[dict]] = {}
        self.status_updates: List[tuple] = []
        self.comments: List[tuple] = []
        self.fail_mutations = False

    def search_pages(self) -> List[dict]:
        return list(self.pages.values())

    def retrieve_page(self, page_id: str) -> dict:
        if page_id not in self.pages:
            raise NotionAPIError("Could not find page", 404, "object_not_found")
        return self.pages[page_id]

    def get_all_block_children(self, block_id: str) -> List[dict]:
        return self.blocks.get(block_id, [])

    def update_page(self, page_id: str, properties: dict) -> dict:
        if self.fail_mutations:
            raise NotionAPIError("Invalid status option", 400, "validation_error")
        for key, prop in properties.items():
            kind, option = next(iter(prop.items()))
            self.status_updates.append((page_id, option["name"]))
            self.pages[page_id]["properties"][key] = {"type": kind, kind: option}
        return self.pages[page_id]

    def create_comment(self, page_id: str, text: str) -> dict:
        if self.fail_mutations:
            raise NotionAPIError("Insufficient permissions", 403, "restricted_resource")
        self.comments.append((page_id, text))
        return {"object": "comment", "id": f"comment-{len(self.comments)}"}


class FakeGitHubClient:
    """Mimics GitHubClient for one repository; records every call in order."""

    def __init__(self, branches: Optional[Dict[str, str]] = None):
        self.refs: Dict[str, str] = {
            f"heads/{name}": sha for name, sha in (branches or {"main": "sha-main"}).items()
        }
        self.protected = {"main"}
        self.contents: Dict[str, Any] = {}
        self.failing_paths = set()
        self.calls: List[str] = []
        self.blobs: List[dict] = []
        self.trees: List[dict] = []
        self.commits: List[dict] = []
        self.pulls: List[dict] = []
        self.reviewer_requests: List[tuple] = []
        self.ref_updates: List[tuple] = []

        self.fail_pull_request = False
        self.fail_reviewers = False
        self.reject_ref_update = False

        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _record(self, name: str) -> int:
        with self._lock:
            self.calls.append(name)
            return next(self._ids)

    def get_ref(self, owner, repo, ref):
        self._record("get_ref")
        if ref not in self.refs:
            raise NotFoundError("Not Found")
        return {"ref": f"refs/{ref}", "object": {"sha": self.refs[ref]}}

    def create_ref(self, owner, repo, ref, sha):
        self._record("create_ref")
        name = ref[len("refs/"):]
        if name in self.refs:
            raise ValidationError("Reference already exists")
        self.refs[name] = sha
        return {"ref": ref, "object": {"sha": sha}}

    def update_ref(self, owner, repo, ref, sha, force=False):
        self._record("update_ref")
        if self.reject_ref_update:
            raise ValidationError("Update is not a fast forward")
        self.ref_updates.append((ref, sha, force))
        self.refs[ref] = sha
        return {"ref": f"refs/{ref}", "object": {"sha": sha}}

    def get_commit(self, owner, repo, commit_sha):
        self._record("get_commit")
        return {"sha": commit_sha, "tree": {"sha": f"tree-of-{commit_sha}"}}

    def create_blob(self, owner, repo, content, encoding="utf-8"):
        n = self._record("create_blob")
        with self._lock:
            self.blobs.append({"content": content, "encoding": encoding})
        return {"sha": f"blob-{n}"}

    def create_tree(self, owner, repo, tree, base_tree=None):
        n = self._record("create_tree")
        self.trees.append({"tree": tree, "base_tree": base_tree})
        return {"sha": f"tree-{n}"}

    def create_commit(self, owner, repo, message, tree, parents):
        n = self._record("create_commit")
        self.commits.append({"message": message, "tree": tree, "parents": parents})
        return {"sha": f"commit-{n}"}

    def create_pull_request(self, owner, repo, title, head, base, body=None, draft=False):
        self._record("create_pull_request")
        if self.fail_pull_request:
            raise ValidationError("No commits between main and " + head)
        number = len(self.pulls) + 1
        self.pulls.append({"title": title, "head": head, "base": base, "body": body, "draft": draft})
        return {"number": number, "html_url": f"https://github.com/{owner}/{repo}/pull/{number}"}

    def request_reviewers(self, owner, repo, pull_number, reviewers):
        self._record("request_reviewers")
        if self.fail_reviewers:
            raise GitHubAPIError("Reviews may only be requested from collaborators", 422)
        self.reviewer_requests.append((pull_number, reviewers))
        return {}

    def get_contents(self, owner, repo, path="", ref=None):
        self._record("get_contents")
        if path in self.failing_paths or path not in self.contents:
            raise NotFoundError("Not Found")
        return self.contents[path]

    def list_branches(self, owner, repo, per_page=100):
        self._record("list_branches")
        return [
            {"name": ref[len("heads/"):], "commit": {"sha": sha}, "protected": ref[len("heads/"):] in self.protected}
            for ref, sha in self.refs.items()
        ]

    def add_file(self, path: str, text: str, size: Optional[int] = None):
        """Register a file both as a directory entry and as a single-file payload."""
        name = path.rsplit("/", 1)[-1]
        entry = {
            "name": name,
            "path": path,
            "type": "file",
            "sha": f"sha-{name}",
            "size": len(text) if size is None else size,
        }
        self.contents[path] = dict(entry, content=base64.b64encode(text.encode()).decode(), encoding="base64")
        return entry


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def fake_notion():
    return FakeNotionClient()


@pytest.fixture
def fake_github():
    return FakeGitHubClient()


@pytest.fixture
def board(fake_notion):
    return BoardManager(fake_notion)


@pytest.fixture
def repository(fake_github):
    return RepositoryManager(fake_github)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def audit(tmp_path):
    audit_logger = AuditLogger(str(tmp_path / "audit.jsonl"))
    yield audit_logger
    audit_logger.close()


@pytest.fixture
def mock_response():
    """Factory for ``requests.Response``-like mocks."""

    def _make(status_code: int = 200, payload: Any = None, headers: Optional[dict] = None, text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        response.headers = headers or {}
        response.text = text or (json.dumps(payload) if payload is not None else "")
        if payload is None:
            response.json.side_effect = ValueError("No JSON")
        else:
            response.json.return_value = payload
        return response

    return _make


def last_tool_output(conversation: List[Dict[str, Any]]) -> Any:
    """Decode the most recent tool result in an agent conversation."""
    for message in reversed(conversation):
        if message["role"] == "tool":
            return json.loads(message["content"])
    raise AssertionError("No tool result in conversation")
