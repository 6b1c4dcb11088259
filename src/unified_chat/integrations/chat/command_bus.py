"""Command routing from UI and host events into session operations.

Each command maps to a payload type and a handler. Payloads are parsed at
the boundary, so a malformed payload fails with ``CommandPayloadError``
before any state is touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type
from urllib.parse import urlparse

from ...core.config import COLLABORATION_PROVIDER, CONFIG_ROOT, ConfigHelper
from ...core.logging_utils import log_event
from ...core.telemetry import EventSource, EventType, TelemetryReporter
from ...core.utils import sanitise_token_string, to_title_case
from . import command_contract as names
from .collaboration import CollaborationBridge
from .commands import (
    ChangeChannelPayload,
    ChannelMarkedPayload,
    ChatArgsPayload,
    CommandPayload,
    ConfigurationChangedPayload,
    ContactItemPayload,
    FetchRepliesPayload,
    IncomingLinkPayload,
    MessageReplyPayload,
    PresenceStatusPayload,
    ProviderPayload,
    ReactionPayload,
    SelfPresencePayload,
    SendMessagePayload,
    SendToWebviewPayload,
    SessionChangedPayload,
    SetupNewProviderPayload,
    SignInPayload,
    ThreadReplyPayload,
    UpdateMessagesPayload,
)
from .constants import (
    LIVE_SHARE_BASE_URL,
    OAUTH_PROVIDER,
    OAUTH_URLS,
    REPORT_ISSUE,
    TOKEN_PLACEHOLDER,
    invalid_token_message,
)
from .errors import CommandPayloadError, InvalidTokenError, UnknownCommandError
from .host import ChatView, HostEnvironment
from .issues import open_new_issue
from .models import ChatArgs
from .orchestrator import SessionOrchestrator
from .presence import PresenceController
from .registry import ProviderRegistry
from .selections import SelectionFlows

CommandHandler = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class CommandRoute:
    name: str
    handler: CommandHandler
    payload_type: Optional[Type[CommandPayload]] = None
    payload_optional: bool = False


class CommandBus:
    def __init__(
        self,
        *,
        registry: ProviderRegistry,
        orchestrator: SessionOrchestrator,
        selections: SelectionFlows,
        presence: PresenceController,
        bridge: CollaborationBridge,
        telemetry: TelemetryReporter,
        host: HostEnvironment,
        view: ChatView,
        config: ConfigHelper,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry
        self._store = registry.store
        self._orchestrator = orchestrator
        self._selections = selections
        self._presence = presence
        self._bridge = bridge
        self._telemetry = telemetry
        self._host = host
        self._view = view
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._routes: Dict[str, CommandRoute] = {}
        self._register_routes()

    def _route(
        self,
        name: str,
        handler: CommandHandler,
        payload_type: Optional[Type[CommandPayload]] = None,
        *,
        payload_optional: bool = False,
    ) -> None:
        self._routes[name] = CommandRoute(
            name=name,
            handler=handler,
            payload_type=payload_type,
            payload_optional=payload_optional,
        )

    def _register_routes(self) -> None:
        self._route(
            names.OPEN_VIEW, self._open_view, ChatArgsPayload, payload_optional=True
        )
        self._route(names.CHANGE_WORKSPACE, self._change_workspace)
        self._route(
            names.CHANGE_CHANNEL,
            self._change_channel,
            ChangeChannelPayload,
            payload_optional=True,
        )
        self._route(names.SIGN_IN, self._sign_in, SignInPayload, payload_optional=True)
        self._route(names.SIGN_OUT, self._sign_out)
        self._route(names.RESET, self._reset)
        self._route(
            names.SETUP_NEW_PROVIDER, self._setup_new_provider, SetupNewProviderPayload
        )
        self._route(names.CONFIGURE_TOKEN, self._configure_token)
        self._route(names.SEND_MESSAGE, self._send_message, SendMessagePayload)
        self._route(names.SEND_THREAD_REPLY, self._send_message, ThreadReplyPayload)
        self._route(
            names.LIVE_SHARE_FROM_MENU, self._live_share_from_menu, ChatArgsPayload
        )
        self._route(names.LIVE_SHARE_SLASH, self._live_share_slash, ProviderPayload)
        self._route(
            names.LIVE_SHARE_SESSION_CHANGED,
            self._live_share_session_changed,
            SessionChangedPayload,
        )
        self._route(names.FETCH_REPLIES, self._fetch_replies, FetchRepliesPayload)
        self._route(names.UPDATE_MESSAGES, self._update_messages, UpdateMessagesPayload)
        self._route(names.ADD_MESSAGE_REACTION, self._add_reaction, ReactionPayload)
        self._route(
            names.REMOVE_MESSAGE_REACTION, self._remove_reaction, ReactionPayload
        )
        self._route(
            names.UPDATE_PRESENCE_STATUSES,
            self._update_presence_statuses,
            PresenceStatusPayload,
        )
        self._route(names.UPDATE_SELF_PRESENCE, self._ask_for_self_presence)
        self._route(
            names.UPDATE_SELF_PRESENCE_VIA_VSLS,
            self._update_self_presence,
            SelfPresencePayload,
        )
        self._route(
            names.CHAT_WITH_VSLS_CONTACT, self._chat_with_contact, ContactItemPayload
        )
        self._route(names.CHANNEL_MARKED, self._channel_marked, ChannelMarkedPayload)
        self._route(
            names.UPDATE_MESSAGE_REPLIES,
            self._update_message_replies,
            MessageReplyPayload,
        )
        self._route(
            names.HANDLE_INCOMING_LINKS, self._handle_incoming_link, IncomingLinkPayload
        )
        self._route(names.SEND_TO_WEBVIEW, self._send_to_webview, SendToWebviewPayload)
        self._route(
            names.CONFIGURATION_CHANGED,
            self.configuration_changed,
            ConfigurationChangedPayload,
        )

    @property
    def command_names(self) -> tuple[str, ...]:
        return tuple(self._routes)

    def parse(
        self, name: str, payload: Optional[Mapping[str, Any]] = None
    ) -> Optional[CommandPayload]:
        route = self._routes.get(name)
        if route is None:
            raise UnknownCommandError(name)
        if route.payload_type is None:
            return None
        if payload is None:
            if route.payload_optional:
                return None
            raise CommandPayloadError(name, "payload is required")
        if not isinstance(payload, Mapping):
            raise CommandPayloadError(name, "payload must be an object")
        return route.payload_type.from_payload(name, payload)

    async def execute(
        self, name: str, payload: Optional[Mapping[str, Any]] = None
    ) -> Any:
        parsed = self.parse(name, payload)
        log_event(self._logger, logging.INFO, "chat.command.received", command=name)
        try:
            result = await self._routes[name].handler(parsed)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.command.failed",
                command=name,
                exc=exc,
            )
            raise
        log_event(self._logger, logging.INFO, "chat.command.done", command=name)
        return result

    # Views, channels and workspaces

    async def _open_view(self, payload: Optional[ChatArgsPayload]) -> bool:
        return await self._orchestrator.open_chat_view(
            payload.args if payload is not None else None
        )

    async def _change_workspace(self, _payload: None) -> bool:
        return await self._orchestrator.change_workspace()

    async def _change_channel(self, payload: Optional[ChangeChannelPayload]) -> bool:
        if payload is None:
            return await self._orchestrator.change_channel()
        return await self._orchestrator.change_channel(
            payload.provider_name, payload.source
        )

    # Authentication

    async def _sign_in(self, payload: Optional[SignInPayload]) -> None:
        source = payload.source if payload is not None else EventSource.COMMAND
        await self.start_oauth(source)

    async def start_oauth(self, source: EventSource = EventSource.COMMAND) -> None:
        provider = OAUTH_PROVIDER
        self._telemetry.record(EventType.AUTH_STARTED, source, None, provider)
        await self._host.open_url(OAUTH_URLS[provider])

    async def _sign_out(self, _payload: None) -> None:
        await self._registry.signout()

    async def _reset(self, _payload: None) -> None:
        await self._orchestrator.reset()

    async def _setup_new_provider(self, payload: SetupNewProviderPayload) -> None:
        await self._orchestrator.setup(False, payload.new_provider)

    async def _configure_token(self, _payload: None) -> bool:
        return await self.configure_token()

    async def configure_token(self) -> bool:
        """Prompt for, validate and persist a provider token."""

        provider = await self._selections.ask_for_provider()
        self._telemetry.record(
            EventType.TOKEN_CONFIGURED, EventSource.COMMAND, None, provider
        )
        if provider is None:
            return False
        raw_token = await self._host.show_input_box(
            placeholder=TOKEN_PLACEHOLDER, password=True
        )
        if not raw_token:
            return False
        token = sanitise_token_string(raw_token)
        try:
            await self._registry.validate_token(provider, token)
        except InvalidTokenError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.token.invalid",
                provider=provider,
                exc=exc,
            )
            issues_url = self._config.load().issues_url
            actions = (REPORT_ISSUE,) if issues_url else ()
            selected = await self._host.show_error_message(
                invalid_token_message(to_title_case(provider)), *actions
            )
            if issues_url and selected == REPORT_ISSUE:
                await open_new_issue(
                    self._host, issues_url, f"[{provider}] Invalid token"
                )
            return False
        self._config.set_token(token, provider)
        log_event(
            self._logger, logging.INFO, "chat.token.configured", provider=provider
        )
        await self.configuration_changed(
            ConfigurationChangedPayload(sections=(CONFIG_ROOT,))
        )
        return True

    async def configuration_changed(
        self, payload: ConfigurationChangedPayload
    ) -> bool:
        if not payload.affects(CONFIG_ROOT):
            return False
        await self._orchestrator.reset()
        return True

    # Messages

    async def _send_message(self, payload: SendMessagePayload) -> bool:
        provider = payload.provider
        channel_id = self._store.get_last_channel_id(provider)
        if channel_id is None:
            log_event(
                self._logger,
                logging.INFO,
                "chat.message.skipped",
                provider=provider,
                reason="no_last_channel",
            )
            return False
        await self._registry.update_read_marker(provider)
        await self._registry.send_message(
            provider, payload.text, channel_id, payload.parent_timestamp
        )
        self._telemetry.record(EventType.MESSAGE_SENT, None, channel_id, provider)
        return True

    async def _fetch_replies(self, payload: FetchRepliesPayload) -> None:
        await self._registry.fetch_thread_replies(
            payload.provider, payload.parent_timestamp
        )

    async def _update_messages(self, payload: UpdateMessagesPayload) -> None:
        self._registry.update_messages(
            payload.provider, payload.channel_id, payload.messages
        )

    async def _update_message_replies(self, payload: MessageReplyPayload) -> None:
        self._registry.update_message_reply(
            payload.provider,
            payload.parent_timestamp,
            payload.channel_id,
            payload.reply,
        )

    async def _add_reaction(self, payload: ReactionPayload) -> None:
        await self._registry.add_reaction(
            payload.provider,
            payload.channel_id,
            payload.msg_timestamp,
            payload.user_id,
            payload.reaction_name,
        )

    async def _remove_reaction(self, payload: ReactionPayload) -> None:
        await self._registry.remove_reaction(
            payload.provider,
            payload.channel_id,
            payload.msg_timestamp,
            payload.user_id,
            payload.reaction_name,
        )

    async def _channel_marked(self, payload: ChannelMarkedPayload) -> None:
        await self._registry.update_channel_marked(
            payload.provider,
            payload.channel_id,
            payload.read_timestamp,
            payload.unread_count,
        )

    async def _send_to_webview(self, payload: SendToWebviewPayload) -> None:
        self._view.send_to_ui(payload.ui_message)

    # Presence

    async def _update_presence_statuses(self, payload: PresenceStatusPayload) -> None:
        self._registry.update_presence_for_user(
            payload.provider, payload.user_id, payload.presence
        )

    async def _ask_for_self_presence(self, _payload: None) -> Any:
        return await self._presence.ask_for_self_presence()

    async def _update_self_presence(self, payload: SelfPresencePayload) -> int:
        return await self._presence.update_self_presence(
            payload.provider, payload.presence
        )

    # Collaboration

    async def _live_share_from_menu(self, payload: ChatArgsPayload) -> bool:
        args = payload.args
        return await self._bridge.share_vsls_link(
            ChatArgs(
                provider_name=args.provider_name,
                channel_id=args.channel_id,
                user=args.user,
                source=EventSource.ACTIVITY,
            )
        )

    async def _live_share_slash(self, payload: ProviderPayload) -> bool:
        provider = payload.provider
        return await self._bridge.share_vsls_link(
            ChatArgs(
                provider_name=provider,
                channel_id=self._store.get_last_channel_id(provider),
                source=EventSource.SLASH,
            )
        )

    async def _live_share_session_changed(
        self, payload: SessionChangedPayload
    ) -> bool:
        if not self._registry.is_provider_enabled(COLLABORATION_PROVIDER):
            return False
        if payload.current_user is not None:
            self._store.update_current_user(
                COLLABORATION_PROVIDER, payload.current_user
            )
        self._registry.update_all_ui()
        return True

    async def _chat_with_contact(self, payload: ContactItemPayload) -> bool:
        return await self._bridge.chat_with_vsls_contact(payload.contact)

    async def _handle_incoming_link(self, payload: IncomingLinkPayload) -> bool:
        if urlparse(payload.uri).netloc != LIVE_SHARE_BASE_URL:
            return False
        current_user = self._registry.get_current_user_for(payload.provider)
        if current_user is None or current_user.id == payload.sender_id:
            return False
        return await self._bridge.notify_invite_received(payload.sender_id, payload.uri)
