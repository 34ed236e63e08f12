# =============================================================================
# CTO AUTOMATION - NOTION API CLIENT
# =============================================================================
"""
Notion API Client

Low-level client for the Notion REST endpoints used by the board layer:
search, page retrieval/update, block children and comments.

Features:
    - Token resolved per request from a credential provider
    - Retry with exponential backoff for reads
    - Cursor pagination helpers
    - Error mapping to NotionAPIError

Usage:
    client = NotionClient(token_provider=StaticTokenProvider("secret_xxx"))
    pages = client.search_pages()
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from cto_automation.errors import RemoteError


logger = logging.getLogger(__name__)


class NotionAPIError(RemoteError):
    """Raised when the Notion API returns a failure."""

    def __init__(self, message: str, status_code: int = None, code: str = None, response: dict = None):
        super().__init__(message, status_code, response)
        self.code = code


class NotionClient:
    """
    Low-level Notion API client.

    Attributes:
        token_provider: Object exposing ``get_access_token()``
        base_url: API base URL
        notion_version: Value of the ``Notion-Version`` header
    """

    DEFAULT_BASE_URL = "https://api.notion.com/v1"
    DEFAULT_VERSION = "2022-06-28"
    DEFAULT_TIMEOUT = 30
    PAGE_SIZE = 100

    def __init__(
        self,
        token_provider,
        base_url: str = None,
        notion_version: str = None,
        timeout: int = None,
        session: requests.Session = None,
    ):
        self.token_provider = token_provider
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.notion_version = notion_version or self.DEFAULT_VERSION
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Notion-Version": self.notion_version,
        })

        # Search is a POST but read-only, so it is retried too
        retry_strategy = Retry(
            total=3,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    # =========================================================================
    # SEARCH
    # =========================================================================

    def search(self, start_cursor: Optional[str] = None) -> dict:
        """Run one page-object search request."""
        body: Dict[str, Any] = {
            "filter": {"value": "page", "property": "object"},
            "page_size": self.PAGE_SIZE,
        }
        if start_cursor:
            body["start_cursor"] = start_cursor
        return self._request("POST", "/search", data=body)

    def search_pages(self) -> List[dict]:
        """Every page visible to the integration."""
        return list(self._paginate(lambda cursor: self.search(cursor)))

    # =========================================================================
    # PAGES
    # =========================================================================

    def retrieve_page(self, page_id: str) -> dict:
        return self._request("GET", f"/pages/{page_id}")

    def update_page(self, page_id: str, properties: dict) -> dict:
        return self._request("PATCH", f"/pages/{page_id}", data={"properties": properties})

    # =========================================================================
    # BLOCKS
    # =========================================================================

    def list_block_children(self, block_id: str, start_cursor: Optional[str] = None) -> dict:
        params: Dict[str, Any] = {"page_size": self.PAGE_SIZE}
        if start_cursor:
            params["start_cursor"] = start_cursor
        return self._request("GET", f"/blocks/{block_id}/children", params=params)

    def get_all_block_children(self, block_id: str) -> List[dict]:
        """Top-level blocks of a page, in document order."""
        return list(self._paginate(lambda cursor: self.list_block_children(block_id, cursor)))

    # =========================================================================
    # COMMENTS
    # =========================================================================

    def create_comment(self, page_id: str, text: str) -> dict:
        data = {
            "parent": {"page_id": page_id},
            "rich_text": [{"text": {"content": text}}],
        }
        return self._request("POST", "/comments", data=data)

    # =========================================================================
    # HTTP METHODS
    # =========================================================================

    def _paginate(self, fetch) -> Iterator[dict]:
        cursor = None
        while True:
            page = fetch(cursor)
            yield from page.get("results", [])
            if not page.get("has_more") or not page.get("next_cursor"):
                return
            cursor = page["next_cursor"]

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict = None,
        params: dict = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.token_provider.get_access_token()}"}

        logger.debug(f"Notion API: {method} {endpoint}")

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
            raise NotionAPIError(f"Request timed out: {method} {endpoint}")
        except requests.exceptions.RequestException as e:
            raise NotionAPIError(f"Request failed: {e}")

        if response.status_code >= 400:
            self._handle_error(response)

        try:
            return response.json()
        except ValueError:
            raise NotionAPIError(f"Invalid JSON in response: {method} {endpoint}", response.status_code)

    def _handle_error(self, response: requests.Response) -> None:
        try:
            error_data = response.json()
            message = error_data.get("message", response.text)
            code = error_data.get("code")
        except ValueError:
            error_data = {}
            message = response.text
            code = None

        logger.error(f"Notion API error [{response.status_code}]: {message}")
        raise NotionAPIError(message, response.status_code, code, error_data)

    def close(self):
        if self._session:
            self._session.close()


__all__ = ["NotionClient", "NotionAPIError"]
