# =============================================================================
# CTO AUTOMATION - CREDENTIAL PROVIDERS
# =============================================================================
"""
Credential Providers

Resolves access tokens for the board (Notion) and repository (GitHub)
hosts. Two providers share the ``get_access_token()`` contract:

    - StaticTokenProvider: a token supplied directly (GITHUB_TOKEN, NOTION_TOKEN)
    - CredentialStore: fetches connection settings from the connector
      endpoint and caches the token until its declared expiry

The store is passed explicitly to each client constructor. Its refresh
is guarded by a lock: while one caller is fetching, concurrent callers
wait and then reuse the freshly cached token.

Usage:
    store = CredentialStore("github", hostname="connectors.example.dev")
    token = store.get_access_token()
"""

import logging
import os
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from cto_automation.errors import ConfigurationError, ConnectorConnectionError


logger = logging.getLogger(__name__)


class StaticTokenProvider:
    """Provider for a token that never expires from our point of view."""

    def __init__(self, token: str):
        if not token:
            raise ConfigurationError("Static token provider requires a non-empty token")
        self._token = token

    def get_access_token(self) -> str:
        return self._token


class CredentialStore:
    """
    Cached access token for one connector.

    Attributes:
        connector_name: Connector to resolve (``"github"`` or ``"notion"``)
        hostname: Connector endpoint host (default: REPLIT_CONNECTORS_HOSTNAME env)

    The cached token is reused while ``now < expires_at``; a call made
    exactly at the expiry instant refreshes. Settings without a declared
    expiry are never reused.
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        connector_name: str,
        hostname: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        timeout: int = None,
    ):
        self.connector_name = connector_name
        self._environ = environ if environ is not None else os.environ
        self.hostname = hostname or self._environ.get("REPLIT_CONNECTORS_HOSTNAME")
        self._session = session or requests.Session()
        self._clock = clock
        self.timeout = timeout or self.DEFAULT_TIMEOUT

        self._lock = threading.Lock()
        self._access_token: Optional[str] = None
        self._expires_at: Optional[float] = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def get_access_token(self) -> str:
        """
        Return a valid access token, refreshing it when missing or expired.

        Raises:
            ConfigurationError: No identity token (or hostname) is available
            ConnectorConnectionError: The connector returned no usable token
        """
        token = self._cached_token()
        if token is not None:
            return token

        with self._lock:
            # Another caller may have refreshed while we waited
            token = self._cached_token()
            if token is not None:
                return token

            settings = self._fetch_connection_settings()
            token = self._extract_token(settings)
            self._access_token = token
            self._expires_at = self._parse_expiry(settings.get("expires_at"))

            logger.info(
                f"Refreshed {self.connector_name} access token "
                f"(expires_at={settings.get('expires_at') or 'unknown'})"
            )
            return token

    def invalidate(self) -> None:
        """Drop the cached token so the next call refetches it."""
        with self._lock:
            self._access_token = None
            self._expires_at = None

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _cached_token(self) -> Optional[str]:
        if self._access_token is None or self._expires_at is None:
            return None
        if self._clock() < self._expires_at:
            return self._access_token
        return None

    def _identity_header(self) -> str:
        """Resolve the identity token: interactive first, deployment renewal second."""
        repl_identity = self._environ.get("REPL_IDENTITY")
        if repl_identity:
            return f"repl {repl_identity}"

        renewal = self._environ.get("WEB_REPL_RENEWAL")
        if renewal:
            return f"depl {renewal}"

        raise ConfigurationError(
            "X_REPLIT_TOKEN not found for repl/depl. "
            "Set REPL_IDENTITY or WEB_REPL_RENEWAL."
        )

    def _fetch_connection_settings(self) -> Dict[str, Any]:
        identity = self._identity_header()
        if not self.hostname:
            raise ConfigurationError(
                "Connector hostname required. Set REPLIT_CONNECTORS_HOSTNAME."
            )

        url = f"https://{self.hostname}/api/v2/connection"
        params = {
            "include_secrets": "true",
            "connector_names": self.connector_name,
        }
        headers = {
            "Accept": "application/json",
            "X_REPLIT_TOKEN": identity,
        }

        logger.debug(f"Fetching {self.connector_name} connection settings from {self.hostname}")

        try:
            response = self._session.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise ConnectorConnectionError(
                f"{self.connector_name.capitalize()} connection lookup failed: {e}"
            ) from e
        except ValueError as e:
            raise ConnectorConnectionError(
                f"{self.connector_name.capitalize()} connection lookup returned invalid JSON"
            ) from e

        items = data.get("items") or []
        if not items:
            raise ConnectorConnectionError(f"{self.connector_name.capitalize()} not connected")

        return items[0].get("settings") or {}

    def _extract_token(self, settings: Dict[str, Any]) -> str:
        token = settings.get("access_token")
        if not token:
            token = (
                settings.get("oauth", {})
                .get("credentials", {})
                .get("access_token")
            )
        if not token:
            raise ConnectorConnectionError(f"{self.connector_name.capitalize()} not connected")
        return token

    @staticmethod
    def _parse_expiry(value: Any) -> Optional[float]:
        """Convert an ISO-8601 (or epoch) expiry into a POSIX timestamp."""
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp()
        except ValueError:
            logger.warning(f"Unparseable token expiry: {value!r}")
            return None


def create_token_provider(
    connector_name: str,
    token: Optional[str] = None,
    hostname: Optional[str] = None,
):
    """
    Build the provider for a connector.

    A directly configured token wins; otherwise the connector endpoint
    is used.
    """
    if token:
        return StaticTokenProvider(token)
    return CredentialStore(connector_name, hostname=hostname)


__all__ = [
    "StaticTokenProvider",
    "CredentialStore",
    "create_token_provider",
]
