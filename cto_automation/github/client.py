# =============================================================================
# CTO AUTOMATION - GITHUB API CLIENT
# =============================================================================
"""
GitHub API Client

Low-level client for the GitHub REST API endpoints the automation
needs: git refs, blobs, trees, commits, pull requests, contents and
branches. Handles authentication, rate limiting, and error mapping.

Features:
    - Token resolved per request from a credential provider
    - Automatic rate limit handling
    - Retry with exponential backoff for idempotent methods
    - Request/response logging

Usage:
    client = GitHubClient(token_provider=StaticTokenProvider("ghp_xxx"))
    ref = client.get_ref("octo", "app", "heads/main")
"""

import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from cto_automation.errors import RemoteError


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class GitHubAPIError(RemoteError):
    """Base exception for GitHub API errors."""


class RateLimitError(GitHubAPIError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, reset_time: int = None):
        super().__init__(message, status_code=403)
        self.reset_time = reset_time


class NotFoundError(GitHubAPIError):
    """Raised when resource is not found."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class AuthenticationError(GitHubAPIError):
    """Raised when authentication fails."""

    def __init__(self, message: str):
        super().__init__(message, status_code=401)


class ValidationError(GitHubAPIError):
    """Raised when request validation fails (HTTP 422)."""

    def __init__(self, message: str, errors: list = None):
        super().__init__(message, status_code=422)
        self.errors = errors or []


# =============================================================================
# GITHUB CLIENT CLASS
# =============================================================================

class GitHubClient:
    """
    Low-level GitHub API client.

    Attributes:
        token_provider: Object exposing ``get_access_token()``
        base_url: GitHub API base URL
        timeout: Request timeout in seconds

    Every method takes ``owner``/``repo`` explicitly: the agent chooses
    the repository per tool call.
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30
    DEFAULT_RETRY_COUNT = 3
    DEFAULT_BACKOFF_FACTOR = 0.5
    RATE_LIMIT_THRESHOLD = 10  # Wait when remaining requests below this
    MAX_RATE_LIMIT_WAIT = 900

    def __init__(
        self,
        token_provider,
        base_url: str = None,
        timeout: int = None,
        retry_count: int = None,
        backoff_factor: float = None,
        session: requests.Session = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token_provider: Credential provider (StaticTokenProvider or CredentialStore)
            base_url: API base URL (default: github.com)
            timeout: Request timeout in seconds
            retry_count: Number of retries on 5xx for idempotent methods
            backoff_factor: Backoff multiplier for retries
            session: Pre-built session (tests)
        """
        self.token_provider = token_provider
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_count = retry_count if retry_count is not None else self.DEFAULT_RETRY_COUNT
        self.backoff_factor = backoff_factor or self.DEFAULT_BACKOFF_FACTOR

        self._session = session or self._create_session()
        self._rate_limit_remaining = None
        self._rate_limit_reset = None

    def _create_session(self) -> requests.Session:
        """Create configured HTTP session with retry logic."""
        session = requests.Session()

        session.headers.update({
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "CTO-Automation/1.0",
        })

        # POST/PATCH create or move objects and are not retried
        retry_strategy = Retry(
            total=self.retry_count,
            backoff_factor=self.backoff_factor,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "PUT", "DELETE"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    # =========================================================================
    # GIT DATA: REFS
    # =========================================================================

    def get_ref(self, owner: str, repo: str, ref: str) -> dict:
        """
        Get a git reference.

        Args:
            ref: Reference without the ``refs/`` prefix, e.g. ``heads/main``

        Raises:
            NotFoundError: If the reference doesn't exist
        """
        return self._request("GET", f"/repos/{owner}/{repo}/git/ref/{ref}")

    def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> dict:
        """
        Create a git reference.

        Args:
            ref: Fully qualified name, e.g. ``refs/heads/feature/x``
            sha: Commit the reference points at

        Raises:
            ValidationError: If the reference already exists
        """
        return self._request(
            "POST", f"/repos/{owner}/{repo}/git/refs",
            data={"ref": ref, "sha": sha},
        )

    def update_ref(
        self, owner: str, repo: str, ref: str, sha: str, force: bool = False
    ) -> dict:
        """
        Move a reference to a new commit.

        Non-forced updates are rejected (422) unless they fast-forward.
        """
        return self._request(
            "PATCH", f"/repos/{owner}/{repo}/git/refs/{ref}",
            data={"sha": sha, "force": force},
        )

    # =========================================================================
    # GIT DATA: OBJECTS
    # =========================================================================

    def get_commit(self, owner: str, repo: str, commit_sha: str) -> dict:
        """Get a git commit object (includes ``tree.sha``)."""
        return self._request("GET", f"/repos/{owner}/{repo}/git/commits/{commit_sha}")

    def create_blob(
        self, owner: str, repo: str, content: str, encoding: str = "utf-8"
    ) -> dict:
        """
        Create a blob.

        Args:
            content: Raw text or base64 payload
            encoding: ``"utf-8"`` or ``"base64"``
        """
        return self._request(
            "POST", f"/repos/{owner}/{repo}/git/blobs",
            data={"content": content, "encoding": encoding},
        )

    def create_tree(
        self, owner: str, repo: str, tree: List[dict], base_tree: str = None
    ) -> dict:
        """Create a tree, optionally layered over ``base_tree``."""
        data: Dict[str, Any] = {"tree": tree}
        if base_tree:
            data["base_tree"] = base_tree
        return self._request("POST", f"/repos/{owner}/{repo}/git/trees", data=data)

    def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: List[str]
    ) -> dict:
        """Create a commit object."""
        return self._request(
            "POST", f"/repos/{owner}/{repo}/git/commits",
            data={"message": message, "tree": tree, "parents": parents},
        )

    # =========================================================================
    # PULL REQUESTS
    # =========================================================================

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str = None,
        draft: bool = False,
    ) -> dict:
        """
        Open a pull request.

        Returns:
            Pull request data with ``number`` and ``html_url``
        """
        data: Dict[str, Any] = {
            "title": title,
            "head": head,
            "base": base,
            "draft": draft,
        }
        if body is not None:
            data["body"] = body
        return self._request("POST", f"/repos/{owner}/{repo}/pulls", data=data)

    def request_reviewers(
        self, owner: str, repo: str, pull_number: int, reviewers: List[str]
    ) -> dict:
        """Request reviews from users on a pull request."""
        return self._request(
            "POST", f"/repos/{owner}/{repo}/pulls/{pull_number}/requested_reviewers",
            data={"reviewers": reviewers},
        )

    # =========================================================================
    # REPOSITORY OPERATIONS
    # =========================================================================

    def get_contents(self, owner: str, repo: str, path: str = "", ref: str = None) -> Any:
        """
        Get contents of a file or directory.

        Args:
            path: Path to file/directory ("" for root)
            ref: Git reference (branch, tag, commit)

        Returns:
            A list for directories, a dict for a single file
        """
        endpoint = f"/repos/{owner}/{repo}/contents/{quote(path.strip('/'))}"
        params = {}
        if ref:
            params["ref"] = ref

        return self._request("GET", endpoint, params=params if params else None)

    def list_branches(self, owner: str, repo: str, per_page: int = 100) -> List[dict]:
        """List all branches (handles pagination)."""
        endpoint = f"/repos/{owner}/{repo}/branches"
        branches: List[dict] = []
        page = 1

        while True:
            batch = self._request(
                "GET", endpoint, params={"per_page": per_page, "page": page}
            )
            if not batch:
                break
            branches.extend(batch)
            if len(batch) < per_page:
                break
            page += 1

        return branches

    # =========================================================================
    # RATE LIMIT HANDLING
    # =========================================================================

    def _update_rate_limit(self, response: requests.Response):
        """Update rate limit info from response headers."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining is None:
            return
        try:
            self._rate_limit_remaining = int(remaining)
            self._rate_limit_reset = int(reset) if reset is not None else None
        except (ValueError, TypeError):
            pass

    def _check_rate_limit(self):
        """Wait until the reset time when remaining requests are low."""
        if self._rate_limit_remaining is None:
            return

        if self._rate_limit_remaining <= self.RATE_LIMIT_THRESHOLD and self._rate_limit_reset:
            wait_time = max(0, self._rate_limit_reset - time.time()) + 1
            if wait_time < self.MAX_RATE_LIMIT_WAIT:
                logger.warning(
                    f"Rate limit low ({self._rate_limit_remaining} remaining). "
                    f"Waiting {wait_time:.0f} seconds..."
                )
                time.sleep(wait_time)

    # =========================================================================
    # HTTP METHODS
    # =========================================================================

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict = None,
        params: dict = None,
    ) -> Any:
        """
        Make authenticated API request.

        Handles:
        - Per-request token resolution
        - Rate limit checking
        - Error responses
        """
        self._check_rate_limit()

        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.token_provider.get_access_token()}"}

        logger.debug(f"GitHub API: {method} {endpoint}")

        try:
            response = self._session.request(
                method=method,
                url=url,
                json=data,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise GitHubAPIError(f"Request timed out: {method} {endpoint}")
        except requests.exceptions.ConnectionError as e:
            raise GitHubAPIError(f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise GitHubAPIError(f"Request failed: {e}")

        self._update_rate_limit(response)

        if response.status_code >= 400:
            self._handle_error(response)

        if response.status_code == 204:
            return {}

        try:
            return response.json()
        except ValueError:
            raise GitHubAPIError(f"Invalid JSON in response: {method} {endpoint}", response.status_code)

    def _handle_error(self, response: requests.Response) -> None:
        """Raise the exception matching an error response."""
        status_code = response.status_code

        try:
            error_data = response.json()
            message = error_data.get("message", response.text)
            errors = error_data.get("errors", [])
        except ValueError:
            error_data = {}
            message = response.text
            errors = []

        logger.error(f"GitHub API error [{status_code}]: {message}")

        if status_code == 401:
            raise AuthenticationError(
                "Authentication failed. Check the GitHub token or connector."
            )

        if status_code in (403, 429):
            if "rate limit" in message.lower():
                raise RateLimitError(message, reset_time=self._rate_limit_reset)
            raise GitHubAPIError(message, status_code, error_data)

        if status_code == 404:
            raise NotFoundError(f"Resource not found: {message}")

        if status_code == 422:
            raise ValidationError(message, errors)

        raise GitHubAPIError(message, status_code, error_data)

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the HTTP session."""
        if self._session:
            self._session.close()
            logger.debug("GitHubClient session closed")
