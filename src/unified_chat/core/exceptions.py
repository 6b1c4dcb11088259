"""Shared error hierarchy.

Integration-specific errors compose these bases so severity and retry
behavior stay consistent across layers.
"""

from __future__ import annotations

from typing import Optional


class UnifiedChatError(Exception):
    """Base error for the package."""

    recoverable = True
    severity = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransientError(UnifiedChatError):
    """Retryable failure (network, rate limits, temporarily unavailable)."""

    recoverable = True
    severity = "warning"


class PermanentError(UnifiedChatError):
    """Non-retryable failure (invalid input, auth, configuration)."""

    recoverable = False
    severity = "error"


class ConfigError(PermanentError):
    """Raised when the chat configuration file is invalid."""


class StateStoreError(PermanentError):
    """Raised when persisted state cannot be read or written."""
