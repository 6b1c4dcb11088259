"""Per-provider backend client contract.

Wire protocols live behind this interface; the orchestration layer invokes
every backend the same way through the provider registry.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence

from .capabilities import ProviderCapabilities
from .models import Channel, CurrentUser, User, UserPreferences, UserPresence

PresenceListener = Callable[[str, UserPresence], Awaitable[None]]


class ChatBackend(Protocol):
    provider: str
    capabilities: ProviderCapabilities

    async def validate_token(self, token: str) -> CurrentUser:
        """Return the token's user or raise when the backend rejects it."""
        ...

    async def connect(self) -> Optional[CurrentUser]: ...

    async def fetch_users(self, team_id: Optional[str]) -> Mapping[str, User]:
        """Return the members of ``team_id``, or of the token's only team."""
        ...

    async def fetch_channels(
        self, users: Mapping[str, User], team_id: Optional[str]
    ) -> Sequence[Channel]:
        """Return channels scoped to ``team_id``; IM names resolve via ``users``."""
        ...

    async def fetch_user_prefs(self) -> Optional[UserPreferences]: ...

    async def subscribe_presence(self, listener: PresenceListener) -> None: ...

    async def update_self_presence(
        self, presence: UserPresence, duration_minutes: int
    ) -> Optional[UserPresence]: ...

    async def send_message(
        self, text: str, channel_id: str, parent_timestamp: Optional[str]
    ) -> None: ...

    async def load_channel_history(self, channel_id: str) -> Mapping[str, Any]: ...

    async def fetch_thread_replies(
        self, channel_id: str, parent_timestamp: str
    ) -> Mapping[str, Any]: ...

    async def mark_channel(self, channel: Channel, timestamp: str) -> Channel: ...

    async def create_im_channel(self, user: User) -> Optional[Channel]: ...

    async def add_reaction(
        self, channel_id: str, msg_timestamp: str, user_id: str, reaction_name: str
    ) -> None: ...

    async def remove_reaction(
        self, channel_id: str, msg_timestamp: str, user_id: str, reaction_name: str
    ) -> None: ...

    async def destroy(self) -> None: ...


# Builds a backend for (provider, token); token is None for tokenless backends.
BackendFactory = Callable[[str, Optional[str]], ChatBackend]
