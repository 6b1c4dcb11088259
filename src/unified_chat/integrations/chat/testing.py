"""In-memory host, view, backend and collaboration fakes for session tests."""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from .backend import PresenceListener
from .capabilities import ProviderCapabilities, capabilities_for
from .host import LiveShareApi, QuickPickItem
from .models import (
    Channel,
    ChannelType,
    CollaborationContact,
    CurrentUser,
    User,
    UserPreferences,
    UserPresence,
)

QuickPickChooser = Callable[[Sequence[QuickPickItem]], Optional[QuickPickItem]]
QuickPickResponse = Union[None, str, QuickPickChooser]


class FakeHost:
    """Scripted host: each prompt pops the next queued response.

    Quick-pick responses are a label (matched against the offered items), a
    callable choosing from the items, or ``None`` for a dismissed prompt.
    An exhausted queue behaves like a dismissal.
    """

    def __init__(
        self,
        *,
        quick_picks: Iterable[QuickPickResponse] = (),
        inputs: Iterable[Optional[str]] = (),
        error_actions: Iterable[Optional[str]] = (),
        info_actions: Iterable[Optional[str]] = (),
    ) -> None:
        self._quick_picks: Deque[QuickPickResponse] = deque(quick_picks)
        self._inputs: Deque[Optional[str]] = deque(inputs)
        self._error_actions: Deque[Optional[str]] = deque(error_actions)
        self._info_actions: Deque[Optional[str]] = deque(info_actions)
        self.quick_pick_calls: list[tuple[tuple[QuickPickItem, ...], str]] = []
        self.input_calls: list[tuple[str, bool]] = []
        self.errors: list[tuple[str, tuple[str, ...]]] = []
        self.infos: list[tuple[str, tuple[str, ...]]] = []
        self.opened_urls: list[str] = []
        self.context: Dict[str, Any] = {}

    def queue_quick_pick(self, *responses: QuickPickResponse) -> None:
        self._quick_picks.extend(responses)

    def queue_input(self, *responses: Optional[str]) -> None:
        self._inputs.extend(responses)

    async def show_quick_pick(
        self,
        items: Sequence[QuickPickItem],
        *,
        placeholder: str,
        match_on_detail: bool = False,
        match_on_description: bool = False,
    ) -> Optional[QuickPickItem]:
        offered = tuple(items)
        self.quick_pick_calls.append((offered, placeholder))
        response = self._quick_picks.popleft() if self._quick_picks else None
        if response is None:
            return None
        if callable(response):
            return response(offered)
        for item in offered:
            if item.label == response:
                return item
        return None

    async def show_input_box(
        self, *, placeholder: str, password: bool = False
    ) -> Optional[str]:
        self.input_calls.append((placeholder, password))
        return self._inputs.popleft() if self._inputs else None

    async def show_error_message(self, message: str, *actions: str) -> Optional[str]:
        self.errors.append((message, actions))
        return self._error_actions.popleft() if self._error_actions else None

    async def show_information_message(
        self, message: str, *actions: str
    ) -> Optional[str]:
        self.infos.append((message, actions))
        return self._info_actions.popleft() if self._info_actions else None

    async def open_url(self, url: str) -> None:
        self.opened_urls.append(url)

    def set_context(self, key: str, value: Any) -> None:
        self.context[key] = value


class FakeChatView:
    def __init__(self) -> None:
        self.current_state: Optional[tuple[str, str]] = None
        self.load_count = 0
        self.sent: list[Mapping[str, Any]] = []
        self.refreshes: list[Optional[str]] = []

    def update_current_state(self, provider: str, channel_id: str) -> None:
        self.current_state = (provider, channel_id)

    def load_ui(self) -> None:
        self.load_count += 1

    def send_to_ui(self, message: Mapping[str, Any]) -> None:
        self.sent.append(message)

    def refresh(self, provider: Optional[str] = None) -> None:
        self.refreshes.append(provider)


class FakeBackend:
    """Backend double that records every call in ``calls``."""

    def __init__(
        self,
        provider: str,
        token: Optional[str] = None,
        *,
        capabilities: Optional[ProviderCapabilities] = None,
        current_user: Optional[CurrentUser] = None,
        users: Optional[Mapping[str, User]] = None,
        channels: Sequence[Channel] = (),
        prefs: Optional[UserPreferences] = None,
        history: Optional[Mapping[str, Any]] = None,
        replies: Optional[Mapping[str, Any]] = None,
        valid_tokens: Optional[Iterable[str]] = None,
        connect_error: Optional[Exception] = None,
    ) -> None:
        self.provider = provider
        self.token = token
        self.capabilities = capabilities or capabilities_for(provider)
        self.current_user = current_user
        self.users: Dict[str, User] = dict(users or {})
        self.channels = list(channels)
        self.prefs = prefs
        self.history = dict(history or {})
        self.replies = dict(replies or {})
        self.valid_tokens = set(valid_tokens) if valid_tokens is not None else None
        self.connect_error = connect_error
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.listeners: list[PresenceListener] = []
        self.sent: list[tuple[str, str, Optional[str]]] = []
        self.destroyed = False

    def call_count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def validate_token(self, token: str) -> CurrentUser:
        self.calls.append(("validate_token", (token,)))
        if self.valid_tokens is not None and token not in self.valid_tokens:
            raise ValueError("invalid_auth")
        if self.current_user is None:
            return CurrentUser(id="me", name="me", provider=self.provider)
        return self.current_user

    async def connect(self) -> Optional[CurrentUser]:
        self.calls.append(("connect", ()))
        if self.connect_error is not None:
            raise self.connect_error
        return self.current_user

    async def fetch_users(self, team_id: Optional[str]) -> Mapping[str, User]:
        self.calls.append(("fetch_users", (team_id,)))
        return dict(self.users)

    async def fetch_channels(
        self, users: Mapping[str, User], team_id: Optional[str]
    ) -> Sequence[Channel]:
        """Channels without a team belong to every team."""
        self.calls.append(("fetch_channels", (len(users), team_id)))
        return [
            channel
            for channel in self.channels
            if team_id is None or channel.team_id in (None, team_id)
        ]

    async def fetch_user_prefs(self) -> Optional[UserPreferences]:
        self.calls.append(("fetch_user_prefs", ()))
        return self.prefs

    async def subscribe_presence(self, listener: PresenceListener) -> None:
        self.calls.append(("subscribe_presence", ()))
        self.listeners.append(listener)

    async def emit_presence(self, user_id: str, presence: UserPresence) -> None:
        for listener in list(self.listeners):
            await listener(user_id, presence)

    async def update_self_presence(
        self, presence: UserPresence, duration_minutes: int
    ) -> Optional[UserPresence]:
        self.calls.append(("update_self_presence", (presence, duration_minutes)))
        return presence

    async def send_message(
        self, text: str, channel_id: str, parent_timestamp: Optional[str]
    ) -> None:
        self.calls.append(("send_message", (text, channel_id, parent_timestamp)))
        self.sent.append((text, channel_id, parent_timestamp))

    async def load_channel_history(self, channel_id: str) -> Mapping[str, Any]:
        self.calls.append(("load_channel_history", (channel_id,)))
        return dict(self.history)

    async def fetch_thread_replies(
        self, channel_id: str, parent_timestamp: str
    ) -> Mapping[str, Any]:
        self.calls.append(("fetch_thread_replies", (channel_id, parent_timestamp)))
        return dict(self.replies)

    async def mark_channel(self, channel: Channel, timestamp: str) -> Channel:
        self.calls.append(("mark_channel", (channel.id, timestamp)))
        return replace(channel, read_timestamp=timestamp, unread_count=0)

    async def create_im_channel(self, user: User) -> Optional[Channel]:
        self.calls.append(("create_im_channel", (user.id,)))
        channel = Channel(id=f"im-{user.id}", name=user.name, type=ChannelType.IM)
        self.channels.append(channel)
        return channel

    async def add_reaction(
        self, channel_id: str, msg_timestamp: str, user_id: str, reaction_name: str
    ) -> None:
        self.calls.append(
            ("add_reaction", (channel_id, msg_timestamp, user_id, reaction_name))
        )

    async def remove_reaction(
        self, channel_id: str, msg_timestamp: str, user_id: str, reaction_name: str
    ) -> None:
        self.calls.append(
            ("remove_reaction", (channel_id, msg_timestamp, user_id, reaction_name))
        )

    async def destroy(self) -> None:
        self.calls.append(("destroy", ()))
        self.destroyed = True


class FakeBackendFactory:
    """Builds ``FakeBackend`` instances from per-provider keyword templates."""

    def __init__(self, **templates: Mapping[str, Any]) -> None:
        self._templates = {name: dict(kwargs) for name, kwargs in templates.items()}
        self.created: list[FakeBackend] = []

    def __call__(self, provider: str, token: Optional[str]) -> FakeBackend:
        backend = FakeBackend(provider, token, **self._templates.get(provider, {}))
        self.created.append(backend)
        return backend

    def created_for(self, provider: str) -> list[FakeBackend]:
        return [backend for backend in self.created if backend.provider == provider]

    def latest(self, provider: str) -> FakeBackend:
        created = self.created_for(provider)
        if not created:
            raise LookupError(f"no backend created for {provider}")
        return created[-1]


class FakeLiveShare(LiveShareApi):
    def __init__(
        self,
        *,
        session_uri: Optional[str] = "https://example.invalid/join/abc",
        share_error: Optional[Exception] = None,
        contacts: Sequence[CollaborationContact] = (),
        contacts_error: Optional[Exception] = None,
    ) -> None:
        self.session_uri = session_uri
        self.share_error = share_error
        self.contacts = list(contacts)
        self.contacts_error = contacts_error
        self.share_calls: list[bool] = []
        self.contact_requests = 0
        self.invites: list[tuple[str, str]] = []

    async def share(self, *, suppress_notification: bool = True) -> Optional[str]:
        self.share_calls.append(suppress_notification)
        if self.share_error is not None:
            raise self.share_error
        return self.session_uri

    async def notify_invite_received(self, contact_id: str, uri: str) -> None:
        self.invites.append((contact_id, uri))

    async def request_contacts(self) -> Sequence[CollaborationContact]:
        self.contact_requests += 1
        if self.contacts_error is not None:
            raise self.contacts_error
        return list(self.contacts)


class FakeCollaborationHost:
    def __init__(
        self, api: Optional[FakeLiveShare] = None, *, available: bool = True
    ) -> None:
        self.api = api if api is not None else FakeLiveShare()
        self.available = available

    def is_available(self) -> bool:
        return self.available

    async def get_api(self) -> Optional[LiveShareApi]:
        return self.api if self.available else None
