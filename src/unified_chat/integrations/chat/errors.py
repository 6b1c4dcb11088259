"""Error types raised by the chat orchestration layer."""

from __future__ import annotations

from typing import Optional

from ...core.exceptions import PermanentError, UnifiedChatError
from .constants import TOKEN_NOT_FOUND


class ChatError(UnifiedChatError):
    """Base chat orchestration error."""


class TokenNotFoundError(ChatError, PermanentError):
    """No provider token exists after an authentication attempt."""

    def __init__(self, message: str = TOKEN_NOT_FOUND) -> None:
        super().__init__(message, user_message=message)


class InvalidTokenError(ChatError, PermanentError):
    """The backend rejected a token during validation."""

    def __init__(self, provider: str, *, reason: Optional[str] = None) -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"Invalid token for {provider}{detail}")
        self.provider = provider


class ProviderNotEnabledError(ChatError, PermanentError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is not enabled")
        self.provider = provider


class CommandPayloadError(ChatError, PermanentError):
    """A command payload failed validation at the bus boundary."""

    def __init__(self, command: str, detail: str) -> None:
        super().__init__(f"Invalid payload for '{command}': {detail}")
        self.command = command
        self.detail = detail


class UnknownCommandError(ChatError, PermanentError):
    def __init__(self, command: str) -> None:
        super().__init__(f"Unknown command '{command}'")
        self.command = command
