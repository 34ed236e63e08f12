# =============================================================================
# CTO AUTOMATION - GITHUB INTEGRATION PACKAGE
# =============================================================================
"""
GitHub Integration Package

Repository access for the agent: branch creation, multi-file commits,
pull requests, content listing and branch listing.

Components:
    - GitHubClient: Low-level API client
    - RepositoryManager: High-level async repository operations

Authentication:
    A credential provider is passed in explicitly. Either a static
    token (GITHUB_TOKEN) or the connector-backed CredentialStore.

Usage:
    from cto_automation.github import GitHubClient, RepositoryManager

    client = GitHubClient(token_provider=StaticTokenProvider("ghp_xxx"))
    manager = RepositoryManager(client)
    branches = await manager.list_branches("octo", "app")
"""

from cto_automation.github.client import (
    GitHubClient,
    GitHubAPIError,
    RateLimitError,
    NotFoundError,
    AuthenticationError,
    ValidationError,
)

from cto_automation.github.repository import (
    RepositoryManager,
    # Data structures
    FileChange,
    BranchRef,
    CommitResult,
    PullRequestRef,
    RepositoryItem,
    BranchInfo,
    # Exceptions
    RefNotFoundError,
    RefExistsError,
    ReviewerRequestError,
    # Constants
    MAX_CONTENT_SIZE,
    REVIEW_CHECKLIST,
    build_pull_request_body,
)

__all__ = [
    # Client
    "GitHubClient",
    "GitHubAPIError",
    "RateLimitError",
    "NotFoundError",
    "AuthenticationError",
    "ValidationError",
    # Repository
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
]
