# =============================================================================
# CTO AUTOMATION - ERROR TAXONOMY
# =============================================================================
"""
Exceptions shared across the board, repository and credential layers.

    CTOAutomationError
    ├── ConfigurationError          missing credential / identity input
    ├── ConnectorConnectionError    credential exchange failed (also a ConnectionError)
    └── RemoteError                 board or repository host returned a failure
        ├── GitHubAPIError          (cto_automation.github.client)
        └── NotionAPIError          (cto_automation.notion.client)
"""

from typing import Optional


class CTOAutomationError(Exception):
    """Base exception for the automation service."""


class ConfigurationError(CTOAutomationError):
    """Raised when a required credential or configuration value is missing."""


class ConnectorConnectionError(CTOAutomationError, ConnectionError):
    """Raised when the connector endpoint yields no usable access token."""


class RemoteError(CTOAutomationError):
    """A remote host (board or repository) rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}

    def __str__(self):
        if self.status_code:
            return f"[{self.status_code}] {super().__str__()}"
        return super().__str__()


__all__ = [
    "CTOAutomationError",
    "ConfigurationError",
    "ConnectorConnectionError",
    "RemoteError",
]
