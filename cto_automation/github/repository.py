# =============================================================================
# CTO AUTOMATION - REPOSITORY MANAGER
# =============================================================================
"""
Repository Manager

High-level, async repository operations on top of the raw API client:
branch creation, multi-file commits, pull requests, content listing.

The client is synchronous; every call is pushed to a worker thread with
``asyncio.to_thread`` so the agent loop never blocks the event loop.

Commit ordering:
    read ref ─▶ read commit ─▶ blobs (fan-out) ─▶ tree ─▶ commit ─▶ update ref
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cto_automation.github.client import (
    GitHubAPIError,
    GitHubClient,
    NotFoundError,
    ValidationError,
)


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Files at or above this size are listed without content
MAX_CONTENT_SIZE = 100_000

REVIEW_CHECKLIST = (
    "## Review Checklist\n"
    "- [ ] Code follows the project coding standards\n"
    "- [ ] Tests have been added/updated\n"
    "- [ ] Documentation has been updated\n"
    "- [ ] No breaking changes introduced\n"
    "- [ ] Security considerations addressed"
)

BLOB_MODE = "100644"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class RefNotFoundError(NotFoundError):
    """The base branch of a new branch does not exist."""


class RefExistsError(ValidationError):
    """The branch to create already exists."""


class ReviewerRequestError(GitHubAPIError):
    """
    The pull request was created but requesting reviewers failed.

    The pull request persists; ``pull_request`` describes it.
    """

    def __init__(self, message: str, pull_request: "PullRequestRef", status_code: int = None):
        super().__init__(message, status_code)
        self.pull_request = pull_request


# =============================================================================
# DATA STRUCTURES
# =============================================================================


@dataclass
class FileChange:
    """One entry of a commit set."""
    path: str
    content: str
    encoding: str = "utf-8"

    def __post_init__(self):
        if self.encoding not in ("utf-8", "base64"):
            raise ValueError(f"Unsupported encoding: {self.encoding}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileChange":
        return cls(
            path=data["path"],
            content=data["content"],
            encoding=data.get("encoding") or "utf-8",
        )


@dataclass
class BranchRef:
    """A branch created for a task."""
    name: str
    head_sha: str
    base_branch: str


@dataclass
class CommitResult:
    """Outcome of a multi-file commit."""
    commit_sha: str
    tree_sha: str
    parent_sha: str
    file_count: int


@dataclass
class PullRequestRef:
    """A created pull request."""
    number: int
    url: str
    title: str
    head: str
    base: str
    draft: bool = False
    reviewers: List[str] = field(default_factory=list)


@dataclass
class RepositoryItem:
    """A file or directory entry returned by a content listing."""
    name: str
    path: str
    type: str
    sha: str
    size: int = 0
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "size": self.size,
            "sha": self.sha,
        }
        if self.content is not None:
            data["content"] = self.content
        return data


@dataclass
class BranchInfo:
    """A branch as listed by the host."""
    name: str
    sha: str
    protected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "sha": self.sha, "protected": self.protected}


# =============================================================================
# HELPERS
# =============================================================================


def build_pull_request_body(body: str, task_url: Optional[str] = None) -> str:
    """Append the task back-link (when known) and the review checklist."""
    pr_body = body or ""
    if task_url:
        pr_body += f"\n\n## Related Task\n- Original Notion Task: {task_url}"
    pr_body += f"\n\n{REVIEW_CHECKLIST}"
    return pr_body


def decode_content(encoded: str) -> str:
    """Decode a base64 content payload as returned by the contents API."""
    raw = base64.b64decode(encoded)
    return raw.decode("utf-8", errors="replace")


# =============================================================================
# REPOSITORY MANAGER
# =============================================================================


class RepositoryManager:
    """
    Workflow-level repository operations.

    Usage:
        manager = RepositoryManager(client)
        branch = await manager.create_branch("octo", "app", "feature/dark-mode", "main")
        await manager.commit_files("octo", "app", branch.name, "feat: dark mode", files)
    """

    def __init__(self, client: GitHubClient, max_content_size: int = MAX_CONTENT_SIZE):
        self.client = client
        self.max_content_size = max_content_size

    # =========================================================================
    # BRANCHES
    # =========================================================================

    async def create_branch(
        self, owner: str, repo: str, name: str, base_branch: str = "main"
    ) -> BranchRef:
        """
        Create ``name`` pointing at the current head of ``base_branch``.

        Raises:
            RefNotFoundError: The base branch doesn't exist
            RefExistsError: ``name`` is already taken
        """
        try:
            base_ref = await asyncio.to_thread(
                self.client.get_ref, owner, repo, f"heads/{base_branch}"
            )
        except NotFoundError as e:
            raise RefNotFoundError(f"Base branch '{base_branch}' not found") from e

        base_sha = base_ref["object"]["sha"]

        try:
            new_ref = await asyncio.to_thread(
                self.client.create_ref, owner, repo, f"refs/heads/{name}", base_sha
            )
        except ValidationError as e:
            message = e.args[0] if e.args else str(e)
            if "already exists" in message.lower():
                raise RefExistsError(f"Branch '{name}': {message}", e.errors) from e
            raise

        logger.info(f"Created branch {name} from {base_branch} at {base_sha[:7]}")
        return BranchRef(
            name=name,
            head_sha=new_ref.get("object", {}).get("sha", base_sha),
            base_branch=base_branch,
        )

    async def list_branches(self, owner: str, repo: str) -> List[BranchInfo]:
        """List every branch with its head sha and protection flag."""
        raw = await asyncio.to_thread(self.client.list_branches, owner, repo)
        return [
            BranchInfo(
                name=b["name"],
                sha=b.get("commit", {}).get("sha", ""),
                protected=bool(b.get("protected", False)),
            )
            for b in raw
        ]

    # =========================================================================
    # COMMITS
    # =========================================================================

    async def commit_files(
        self,
        owner: str,
        repo: str,
        branch: str,
        message: str,
        files: List[FileChange],
    ) -> CommitResult:
        """
        Commit a set of files as one new commit on ``branch``.

        The head is read immediately before building the tree and becomes
        the sole parent. A rejected ref update fails the whole operation;
        the blobs, tree and commit already created are left orphaned.
        """
        if not files:
            raise ValueError("At least one file is required for a commit")

        ref = await asyncio.to_thread(self.client.get_ref, owner, repo, f"heads/{branch}")
        parent_sha = ref["object"]["sha"]

        parent_commit = await asyncio.to_thread(
            self.client.get_commit, owner, repo, parent_sha
        )
        base_tree_sha = parent_commit["tree"]["sha"]

        # Blobs are independent objects
        blobs = await asyncio.gather(*[
            asyncio.to_thread(self.client.create_blob, owner, repo, f.content, f.encoding)
            for f in files
        ])

        tree_entries = [
            {"path": f.path, "mode": BLOB_MODE, "type": "blob", "sha": blob["sha"]}
            for f, blob in zip(files, blobs)
        ]

        tree = await asyncio.to_thread(
            self.client.create_tree, owner, repo, tree_entries, base_tree_sha
        )

        commit = await asyncio.to_thread(
            self.client.create_commit, owner, repo, message, tree["sha"], [parent_sha]
        )

        await asyncio.to_thread(
            self.client.update_ref, owner, repo, f"heads/{branch}", commit["sha"]
        )

        logger.info(
            f"Committed {len(files)} file(s) to {owner}/{repo}@{branch}: {commit['sha'][:7]}"
        )
        return CommitResult(
            commit_sha=commit["sha"],
            tree_sha=tree["sha"],
            parent_sha=parent_sha,
            file_count=len(files),
        )

    # =========================================================================
    # PULL REQUESTS
    # =========================================================================

    async def open_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str,
        task_url: Optional[str] = None,
        reviewers: Optional[List[str]] = None,
        draft: bool = False,
    ) -> PullRequestRef:
        """
        Open a pull request, then request reviewers when any are given.

        Raises:
            GitHubAPIError: PR creation failed (no reviewer request is made)
            ReviewerRequestError: PR exists but the reviewer request failed
        """
        pr_body = build_pull_request_body(body, task_url)

        data = await asyncio.to_thread(
            self.client.create_pull_request,
            owner, repo, title, head, base, pr_body, draft,
        )

        pull_request = PullRequestRef(
            number=data["number"],
            url=data.get("html_url", ""),
            title=title,
            head=head,
            base=base,
            draft=draft,
        )
        logger.info(f"Opened pull request #{pull_request.number} ({head} -> {base})")

        if reviewers:
            try:
                await asyncio.to_thread(
                    self.client.request_reviewers,
                    owner, repo, pull_request.number, list(reviewers),
                )
            except GitHubAPIError as e:
                raise ReviewerRequestError(
                    f"Pull request #{pull_request.number} created but reviewer request failed: {e}",
                    pull_request,
                    e.status_code,
                ) from e
            pull_request.reviewers = list(reviewers)

        return pull_request

    # =========================================================================
    # CONTENTS
    # =========================================================================

    async def get_content(
        self, owner: str, repo: str, path: str = "", ref: Optional[str] = None
    ) -> List[RepositoryItem]:
        """
        List one directory level, or a single file.

        Files under the size threshold get a second fetch for their
        decoded content. A failed content fetch is logged and the item
        is returned without content.
        """
        data = await asyncio.to_thread(self.client.get_contents, owner, repo, path, ref)
        entries = data if isinstance(data, list) else [data]

        return list(await asyncio.gather(*[
            self._load_item(owner, repo, entry, ref) for entry in entries
        ]))

    async def _load_item(
        self, owner: str, repo: str, entry: Dict[str, Any], ref: Optional[str]
    ) -> RepositoryItem:
        item = RepositoryItem(
            name=entry.get("name", ""),
            path=entry.get("path", ""),
            type=entry.get("type", "file"),
            sha=entry.get("sha", ""),
            size=entry.get("size") or 0,
        )

        if item.type != "file" or item.size >= self.max_content_size:
            return item

        try:
            file_data = await asyncio.to_thread(
                self.client.get_contents, owner, repo, item.path, ref
            )
            encoded = file_data.get("content") if isinstance(file_data, dict) else None
            if encoded is not None:
                item.content = decode_content(encoded)
        except (GitHubAPIError, binascii.Error) as e:
            logger.warning(f"Could not fetch content of {item.path}: {e}")

        return item


__all__ = [
    "RepositoryManager",
    "FileChange",
    "BranchRef",
    "CommitResult",
    "PullRequestRef",
    "RepositoryItem",
    "BranchInfo",
    "RefNotFoundError",
    "RefExistsError",
    "ReviewerRequestError",
    "MAX_CONTENT_SIZE",
    "REVIEW_CHECKLIST",
    "build_pull_request_body",
    "decode_content",
]
