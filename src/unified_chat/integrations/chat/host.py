"""Contracts for the editor host, the view surface and the collaboration API.

Every interactive primitive returns ``None`` when the user dismisses it;
callers treat that as a clean abort, never as an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

from .models import CollaborationContact


@dataclass(frozen=True)
class QuickPickItem:
    label: str
    description: Optional[str] = None
    detail: Optional[str] = None


class HostEnvironment(Protocol):
    async def show_quick_pick(
        self,
        items: Sequence[QuickPickItem],
        *,
        placeholder: str,
        match_on_detail: bool = False,
        match_on_description: bool = False,
    ) -> Optional[QuickPickItem]: ...

    async def show_input_box(
        self, *, placeholder: str, password: bool = False
    ) -> Optional[str]: ...

    async def show_error_message(
        self, message: str, *actions: str
    ) -> Optional[str]: ...

    async def show_information_message(
        self, message: str, *actions: str
    ) -> Optional[str]: ...

    async def open_url(self, url: str) -> None: ...

    def set_context(self, key: str, value: Any) -> None: ...


class ChatView(Protocol):
    """Rendering surface (webview, tree views and status items)."""

    def update_current_state(self, provider: str, channel_id: str) -> None: ...

    def load_ui(self) -> None: ...

    def send_to_ui(self, message: Mapping[str, Any]) -> None: ...

    def refresh(self, provider: Optional[str] = None) -> None: ...


class LiveShareApi(Protocol):
    async def share(self, *, suppress_notification: bool = True) -> Optional[str]: ...

    async def notify_invite_received(self, contact_id: str, uri: str) -> None: ...

    async def request_contacts(self) -> Sequence[CollaborationContact]:
        """Contacts the collaboration service wants matched to chat users."""
        ...


class CollaborationHost(Protocol):
    def is_available(self) -> bool: ...

    async def get_api(self) -> Optional[LiveShareApi]: ...


async def ask_single(
    host: HostEnvironment, labels: Sequence[str], *, placeholder: str
) -> Optional[str]:
    """Single-select over plain labels; returns the chosen label."""

    selected = await host.show_quick_pick(
        [QuickPickItem(label=label) for label in labels], placeholder=placeholder
    )
    return selected.label if selected is not None else None
