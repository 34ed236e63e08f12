# =============================================================================
# CTO AUTOMATION - REPOSITORY TOOLS
# =============================================================================
"""
Repository tools: createBranch, commitCode, createPullRequest,
getRepositoryContent, listRepositoryBranches.

Every tool reports failure in its payload (``success: False`` plus a
``Failed to ...`` message) rather than raising.
"""

import logging
from typing import Any, Dict, List, Optional

from cto_automation.engine.tools import ToolRegistry
from cto_automation.github.repository import (
    FileChange,
    RepositoryManager,
    ReviewerRequestError,
)


logger = logging.getLogger(__name__)


_OWNER = {"type": "string", "description": "Repository owner/organization"}
_REPO = {"type": "string", "description": "Repository name"}

TOOL_SCHEMAS = {
    "createBranch": {
        "name": "createBranch",
        "description": "Create a new branch in a GitHub repository for feature development",
        "parameters": {
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "branchName": {"type": "string", "description": "Name for the new branch"},
                "baseBranch": {
                    "type": "string",
                    "default": "main",
                    "description": "Base branch to create from (default: main)",
                },
            },
            "required": ["owner", "repo", "branchName"],
        },
    },
    "commitCode": {
        "name": "commitCode",
        "description": "Commit one or more files to a branch as a single commit",
        "parameters": {
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "branch": {"type": "string", "description": "Branch name to commit to"},
                "message": {"type": "string", "description": "Commit message"},
                "files": {
                    "type": "array",
                    "description": "Array of files to commit",
                    "items": {
                        "type": "object",
                        "properties": {
                            "path": {"type": "string", "description": "File path"},
                            "content": {"type": "string", "description": "File content"},
                            "encoding": {
                                "type": "string",
                                "enum": ["utf-8", "base64"],
                                "default": "utf-8",
                                "description": "File encoding",
                            },
                        },
                        "required": ["path", "content"],
                    },
                },
            },
            "required": ["owner", "repo", "branch", "message", "files"],
        },
    },
    "createPullRequest": {
        "name": "createPullRequest",
        "description": "Create a pull request with a description, task link and review checklist",
        "parameters": {
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "title": {"type": "string", "description": "Pull request title"},
                "head": {"type": "string", "description": "Branch containing the changes"},
                "base": {
                    "type": "string",
                    "default": "main",
                    "description": "Base branch to merge into (default: main)",
                },
                "body": {"type": "string", "description": "Pull request description"},
                "notionTaskUrl": {"type": "string", "description": "URL of the original Notion task"},
                "reviewers": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "GitHub usernames to request reviews from",
                },
                "draft": {"type": "boolean", "default": False, "description": "Create as draft pull request"},
            },
            "required": ["owner", "repo", "title", "head", "body"],
        },
    },
    "getRepositoryContent": {
        "name": "getRepositoryContent",
        "description": "Get the contents of a directory or file in a GitHub repository",
        "parameters": {
            "type": "object",
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "path": {
                    "type": "string",
                    "default": "",
                    "description": "Path to directory or file (empty for root)",
                },
                "ref": {
                    "type": "string",
                    "description": "Branch or commit SHA (defaults to default branch)",
                },
            },
            "required": ["owner", "repo"],
        },
    },
    "listRepositoryBranches": {
        "name": "listRepositoryBranches",
        "description": "List all branches in a GitHub repository",
        "parameters": {
            "type": "object",
            "properties": {"owner": _OWNER, "repo": _REPO},
            "required": ["owner", "repo"],
        },
    },
}


class RepositoryTools:
    """Tool handlers bound to one RepositoryManager."""

    def __init__(self, repository: RepositoryManager):
        self.repository = repository

    async def create_branch(
        self, owner: str, repo: str, branch_name: str, base_branch: str = "main"
    ) -> Dict[str, Any]:
        try:
            branch = await self.repository.create_branch(owner, repo, branch_name, base_branch)
        except Exception as e:
            logger.error(f"Branch creation failed: {e}")
            return {
                "success": False,
                "branchName": branch_name,
                "sha": "",
                "message": f"Failed to create branch: {e}",
            }

        return {
            "success": True,
            "branchName": branch.name,
            "sha": branch.head_sha,
            "message": f'Branch "{branch.name}" created successfully from "{base_branch}"',
        }

    async def commit_code(
        self, owner: str, repo: str, branch: str, message: str, files: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        try:
            changes = [FileChange.from_dict(f) for f in files]
            commit = await self.repository.commit_files(owner, repo, branch, message, changes)
        except Exception as e:
            logger.error(f"Commit failed: {e}")
            return {"success": False, "message": f"Failed to commit code: {e}"}

        return {
            "success": True,
            "commitSha": commit.commit_sha,
            "message": f'Successfully committed {commit.file_count} files to branch "{branch}"',
        }

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        body: str,
        base: str = "main",
        notion_task_url: Optional[str] = None,
        reviewers: Optional[List[str]] = None,
        draft: bool = False,
    ) -> Dict[str, Any]:
        try:
            pr = await self.repository.open_pull_request(
                owner, repo, title, head, base, body,
                task_url=notion_task_url,
                reviewers=reviewers,
                draft=draft,
            )
        except ReviewerRequestError as e:
            logger.error(f"Reviewer request failed: {e}")
            return {
                "success": False,
                "pullRequestUrl": e.pull_request.url,
                "pullRequestNumber": e.pull_request.number,
                "message": f"Failed to create pull request: {e}",
            }
        except Exception as e:
            logger.error(f"Pull request creation failed: {e}")
            return {"success": False, "message": f"Failed to create pull request: {e}"}

        return {
            "success": True,
            "pullRequestUrl": pr.url,
            "pullRequestNumber": pr.number,
            "message": f"Pull request #{pr.number} created successfully",
        }

    async def get_repository_content(
        self, owner: str, repo: str, path: str = "", ref: Optional[str] = None
    ) -> Dict[str, Any]:
        try:
            items = await self.repository.get_content(owner, repo, path, ref)
        except Exception as e:
            logger.error(f"Content listing failed: {e}")
            return {"success": False, "items": [], "message": f"Failed to get repository content: {e}"}

        return {
            "success": True,
            "items": [item.to_dict() for item in items],
            "message": f"Retrieved {len(items)} items from {path or 'root'}",
        }

    async def list_repository_branches(self, owner: str, repo: str) -> Dict[str, Any]:
        try:
            branches = await self.repository.list_branches(owner, repo)
        except Exception as e:
            logger.error(f"Branch listing failed: {e}")
            return {"success": False, "branches": [], "message": f"Failed to list branches: {e}"}

        return {
            "success": True,
            "branches": [b.to_dict() for b in branches],
            "message": f"Found {len(branches)} branches",
        }


def register_repository_tools(registry: ToolRegistry, repository: RepositoryManager) -> RepositoryTools:
    tools = RepositoryTools(repository)
    registry.register(TOOL_SCHEMAS["createBranch"], tools.create_branch)
    registry.register(TOOL_SCHEMAS["commitCode"], tools.commit_code)
    registry.register(TOOL_SCHEMAS["createPullRequest"], tools.create_pull_request)
    registry.register(TOOL_SCHEMAS["getRepositoryContent"], tools.get_repository_content)
    registry.register(TOOL_SCHEMAS["listRepositoryBranches"], tools.list_repository_branches)
    return tools


__all__ = ["RepositoryTools", "TOOL_SCHEMAS", "register_repository_tools"]
