"""Provider registry: enabled backends, their tokens and cached state.

Every mutation here is register-or-replace or invalidate-and-refetch, so any
flow (including concurrent ``setup`` runs) can repeat it safely.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from ...core.config import COLLABORATION_PROVIDER, ConfigHelper
from ...core.logging_utils import log_event
from ...core.utils import to_title_case
from .backend import BackendFactory, ChatBackend
from .capabilities import ProviderCapabilities, capabilities_for
from .errors import InvalidTokenError, ProviderNotEnabledError
from .host import ChatView, CollaborationHost
from .models import (
    Channel,
    ChannelLabel,
    ChannelType,
    CurrentUser,
    Team,
    User,
    UserPresence,
)
from .state_store import ChatStateStore


@dataclass
class ProviderEntry:
    provider: str
    token: Optional[str]
    backend: ChatBackend
    connect_task: Optional["asyncio.Task[Optional[CurrentUser]]"] = None
    connected: bool = False
    presence_subscribed: bool = False


def _timestamp_key(value: str) -> tuple[float, str]:
    try:
        return (float(value), value)
    except ValueError:
        return (0.0, value)


class ProviderRegistry:
    def __init__(
        self,
        *,
        store: ChatStateStore,
        config: ConfigHelper,
        backend_factory: BackendFactory,
        view: ChatView,
        collaboration: Optional[CollaborationHost] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._config = config
        self._backend_factory = backend_factory
        self._view = view
        self._collaboration = collaboration
        self._logger = logger or logging.getLogger(__name__)
        self._entries: Dict[str, ProviderEntry] = {}
        self._messages: Dict[tuple[str, str], Dict[str, Any]] = {}

    @property
    def store(self) -> ChatStateStore:
        return self._store

    @property
    def supported_providers(self) -> tuple[str, ...]:
        return self._config.load().supported_providers

    @property
    def is_token_initialized(self) -> bool:
        return bool(self._entries)

    def collaboration_available(self) -> bool:
        if self._collaboration is None:
            return False
        if not self._config.load().collaboration_enabled:
            return False
        return self._collaboration.is_available()

    def get_enabled_providers(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def is_provider_enabled(self, provider: str) -> bool:
        return provider in self._entries

    def capabilities(self, provider: str) -> ProviderCapabilities:
        entry = self._entries.get(provider)
        if entry is not None:
            return entry.backend.capabilities
        return capabilities_for(provider)

    def _entry(self, provider: str) -> ProviderEntry:
        entry = self._entries.get(provider)
        if entry is None:
            raise ProviderNotEnabledError(provider)
        return entry

    # Tokens and provider lifecycle

    async def initialize_token(self, new_provider: Optional[str] = None) -> None:
        """Register one entry per provider that currently has a token."""

        candidates = list(self.supported_providers)
        if (
            new_provider
            and new_provider not in candidates
            and new_provider != COLLABORATION_PROVIDER
        ):
            candidates.append(new_provider)
        for provider in candidates:
            token = self._config.get_token(provider)
            if token:
                await self._register(provider, token)
            elif provider in self._entries:
                await self._unregister(provider)
        if self.collaboration_available():
            await self._register(COLLABORATION_PROVIDER, None)
        elif COLLABORATION_PROVIDER in self._entries:
            await self._unregister(COLLABORATION_PROVIDER)
        log_event(
            self._logger,
            logging.INFO,
            "chat.registry.tokens_initialized",
            providers=list(self._entries),
            forced=new_provider,
        )

    async def _register(self, provider: str, token: Optional[str]) -> ProviderEntry:
        existing = self._entries.get(provider)
        if existing is not None and existing.token == token:
            return existing
        entry = ProviderEntry(
            provider=provider,
            token=token,
            backend=self._backend_factory(provider, token),
        )
        self._entries[provider] = entry
        log_event(
            self._logger,
            logging.INFO,
            "chat.registry.provider_registered",
            provider=provider,
            replaced=existing is not None,
        )
        if existing is not None:
            await self._destroy_backend(existing)
        return entry

    async def _unregister(self, provider: str) -> None:
        entry = self._entries.pop(provider, None)
        if entry is None:
            return
        for key in [key for key in self._messages if key[0] == provider]:
            self._messages.pop(key, None)
        await self._destroy_backend(entry)
        log_event(
            self._logger,
            logging.INFO,
            "chat.registry.provider_removed",
            provider=provider,
        )

    async def _destroy_backend(self, entry: ProviderEntry) -> None:
        if entry.connect_task is not None and not entry.connect_task.done():
            entry.connect_task.cancel()
        try:
            await entry.backend.destroy()
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.registry.destroy_failed",
                provider=entry.provider,
                exc=exc,
            )

    async def initialize_providers(self) -> None:
        for provider in list(self._entries):
            await self._connect(provider)

    async def _connect(self, provider: str) -> None:
        entry = self._entries.get(provider)
        if entry is None or entry.connected:
            return
        if entry.connect_task is None:
            entry.connect_task = asyncio.create_task(entry.backend.connect())
        task = entry.connect_task
        try:
            current_user = await task
        except Exception:
            if entry.connect_task is task:
                entry.connect_task = None
            raise
        if entry.connected:
            return
        entry.connected = True
        if current_user is not None:
            self._store.update_current_user(
                provider, self._merge_current_user(provider, current_user)
            )
        log_event(
            self._logger,
            logging.INFO,
            "chat.registry.provider_connected",
            provider=provider,
            user_id=current_user.id if current_user is not None else None,
        )

    def _merge_current_user(self, provider: str, fresh: CurrentUser) -> CurrentUser:
        stored = self._store.get_current_user(provider)
        fresh = replace(fresh, provider=provider)
        if fresh.current_team_id is not None or stored is None:
            return fresh
        if stored.id != fresh.id:
            return fresh
        if any(team.id == stored.current_team_id for team in fresh.teams):
            return replace(fresh, current_team_id=stored.current_team_id)
        return fresh

    async def validate_token(self, provider: str, token: str) -> CurrentUser:
        """Validate ``token`` against a throwaway backend; raise when rejected."""

        backend = self._backend_factory(provider, token)
        try:
            return await backend.validate_token(token)
        except InvalidTokenError:
            raise
        except Exception as exc:
            raise InvalidTokenError(provider, reason=str(exc)) from exc
        finally:
            try:
                await backend.destroy()
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.DEBUG,
                    "chat.registry.validation_backend_destroy_failed",
                    provider=provider,
                    exc=exc,
                )

    # Users, teams and workspaces

    def get_current_user_for(self, provider: str) -> Optional[CurrentUser]:
        return self._store.get_current_user(provider)

    def get_current_team_for(self, provider: str) -> Optional[Team]:
        user = self._store.get_current_user(provider)
        return user.current_team if user is not None else None

    async def update_current_workspace(
        self, provider: str, team: Team, current_user: CurrentUser
    ) -> CurrentUser:
        updated = replace(current_user, current_team_id=team.id)
        self._store.clear_workspace_state(provider)
        self._clear_messages(provider)
        self._store.update_current_user(provider, updated)
        log_event(
            self._logger,
            logging.INFO,
            "chat.registry.workspace_changed",
            provider=provider,
            team_id=team.id,
        )
        self._view.refresh(provider)
        return updated

    async def clear_old_workspace(self, provider: str) -> None:
        self._store.clear_workspace_state(provider)
        self._clear_messages(provider)
        self._view.refresh(provider)

    async def update_user_prefs(self, provider: str) -> None:
        prefs = await self._entry(provider).backend.fetch_user_prefs()
        if prefs is not None:
            self._store.update_user_prefs(provider, prefs)
            self._view.refresh(provider)

    async def initialize_users_state(self, provider: str) -> None:
        if self._store.get_users(provider) is None:
            await self.fetch_users(provider)

    def _current_team_id(self, provider: str) -> Optional[str]:
        team = self.get_current_team_for(provider)
        return team.id if team is not None else None

    async def fetch_users(self, provider: str) -> Dict[str, User]:
        backend = self._entry(provider).backend
        users = dict(await backend.fetch_users(self._current_team_id(provider)))
        self._store.update_users(provider, users)
        self._view.refresh(provider)
        return users

    def get_user_for_id(self, provider: str, user_id: str) -> Optional[User]:
        return (self._store.get_users(provider) or {}).get(user_id)

    def get_current_user_presence(self, provider: str) -> Optional[UserPresence]:
        current = self._store.get_current_user(provider)
        if current is None:
            return None
        user = self.get_user_for_id(provider, current.id)
        return user.presence if user is not None else None

    async def subscribe_presence(self, provider: str) -> None:
        entry = self._entry(provider)
        if entry.presence_subscribed:
            return
        entry.presence_subscribed = True

        async def _on_presence(user_id: str, presence: UserPresence) -> None:
            self.update_presence_for_user(provider, user_id, presence)

        try:
            await entry.backend.subscribe_presence(_on_presence)
        except Exception:
            entry.presence_subscribed = False
            raise

    def update_presence_for_user(
        self, provider: str, user_id: str, presence: UserPresence
    ) -> None:
        users = self._store.get_users(provider)
        if users is None or user_id not in users:
            return
        if users[user_id].presence == presence:
            return
        users[user_id] = replace(users[user_id], presence=presence)
        self._store.update_users(provider, users)
        self._view.refresh(provider)

    async def update_self_presence(
        self, provider: str, presence: UserPresence, duration_minutes: int
    ) -> None:
        backend = self._entry(provider).backend
        result = await backend.update_self_presence(presence, duration_minutes)
        current = self._store.get_current_user(provider)
        if result is not None and current is not None:
            self.update_presence_for_user(provider, current.id, result)

    # Channels

    async def initialize_channels_state(self, provider: str) -> None:
        if self._store.get_channels(provider) is None:
            await self.fetch_channels(provider)
        self._view.refresh(provider)

    async def fetch_channels(self, provider: str) -> list[Channel]:
        users = self._store.get_users(provider) or {}
        team_id = self._current_team_id(provider)
        backend = self._entry(provider).backend
        channels = list(await backend.fetch_channels(users, team_id))
        self._store.update_channels(provider, channels)
        self._view.refresh(provider)
        return channels

    def get_channel(self, provider: str, channel_id: str) -> Optional[Channel]:
        for channel in self._store.get_channels(provider) or []:
            if channel.id == channel_id:
                return channel
        return None

    def _replace_channel(self, provider: str, updated: Channel) -> None:
        channels = self._store.get_channels(provider) or []
        replaced = [updated if item.id == updated.id else item for item in channels]
        if not any(item.id == updated.id for item in channels):
            replaced.append(updated)
        self._store.update_channels(provider, replaced)

    def get_channel_labels(self, provider: Optional[str] = None) -> list[ChannelLabel]:
        providers = [provider] if provider else list(self._entries)
        labels: list[ChannelLabel] = []
        for name in providers:
            if name not in self._entries:
                continue
            team = self.get_current_team_for(name)
            team_name = team.name if team is not None else ""
            for channel in self._store.get_channels(name) or []:
                labels.append(
                    ChannelLabel(
                        label=self._channel_label(channel),
                        channel=channel,
                        provider_name=name,
                        team_name=team_name,
                        unread=channel.unread_count,
                    )
                )
        return labels

    @staticmethod
    def _channel_label(channel: Channel) -> str:
        if channel.type == ChannelType.CHANNEL:
            return f"#{channel.name}"
        if channel.type == ChannelType.IM:
            return f"@{channel.name}"
        return channel.name

    def provider_title(self, provider: str) -> str:
        return to_title_case(provider)

    def get_im_channel(self, provider: str, user: User) -> Optional[Channel]:
        for channel in self._store.get_channels(provider) or []:
            if channel.type == ChannelType.IM and channel.name == user.name:
                return channel
        return None

    async def create_im_channel(self, provider: str, user: User) -> Optional[Channel]:
        channel = await self._entry(provider).backend.create_im_channel(user)
        if channel is not None:
            self._replace_channel(provider, channel)
            self._view.refresh(provider)
        return channel

    async def update_channel_marked(
        self,
        provider: str,
        channel_id: str,
        read_timestamp: Optional[str],
        unread_count: int,
    ) -> None:
        channel = self.get_channel(provider, channel_id)
        if channel is None:
            return
        self._replace_channel(
            provider,
            replace(channel, read_timestamp=read_timestamp, unread_count=unread_count),
        )
        self._view.refresh(provider)

    async def update_read_marker(self, provider: str) -> None:
        channel_id = self._store.get_last_channel_id(provider)
        if channel_id is None or provider not in self._entries:
            return
        channel = self.get_channel(provider, channel_id)
        messages = self._messages.get((provider, channel_id))
        if channel is None or not messages:
            return
        latest = max(messages, key=_timestamp_key)
        if channel.read_timestamp == latest:
            return
        updated = await self._entry(provider).backend.mark_channel(channel, latest)
        self._replace_channel(provider, updated)
        self._view.refresh(provider)

    # Messages and the webview

    def _clear_messages(self, provider: str) -> None:
        for key in [key for key in self._messages if key[0] == provider]:
            self._messages.pop(key, None)

    def get_messages(self, provider: str, channel_id: str) -> Dict[str, Any]:
        return dict(self._messages.get((provider, channel_id)) or {})

    async def send_message(
        self,
        provider: str,
        text: str,
        channel_id: str,
        parent_timestamp: Optional[str] = None,
    ) -> None:
        await self._entry(provider).backend.send_message(
            text, channel_id, parent_timestamp
        )

    async def load_channel_history(self, provider: str, channel_id: str) -> None:
        messages = await self._entry(provider).backend.load_channel_history(channel_id)
        self.update_messages(provider, channel_id, messages)

    def update_messages(
        self, provider: str, channel_id: str, messages: Mapping[str, Any]
    ) -> None:
        key = (provider, channel_id)
        merged = dict(self._messages.get(key) or {})
        merged.update(messages)
        self._messages[key] = merged
        self._update_webview_if_current(provider, channel_id)

    def update_message_reply(
        self,
        provider: str,
        parent_timestamp: str,
        channel_id: str,
        reply: Mapping[str, Any],
    ) -> None:
        key = (provider, channel_id)
        messages = dict(self._messages.get(key) or {})
        parent = messages.get(parent_timestamp)
        if not isinstance(parent, Mapping):
            return
        reply_ts = str(reply.get("timestamp") or len(parent.get("replies") or {}))
        replies = dict(parent.get("replies") or {})
        replies[reply_ts] = dict(reply)
        messages[parent_timestamp] = {**parent, "replies": replies}
        self._messages[key] = messages
        self._update_webview_if_current(provider, channel_id)

    async def fetch_thread_replies(self, provider: str, parent_timestamp: str) -> None:
        channel_id = self._store.get_last_channel_id(provider)
        if channel_id is None:
            return
        backend = self._entry(provider).backend
        replies = await backend.fetch_thread_replies(channel_id, parent_timestamp)
        key = (provider, channel_id)
        messages = dict(self._messages.get(key) or {})
        parent = messages.get(parent_timestamp)
        if not isinstance(parent, Mapping):
            return
        messages[parent_timestamp] = {**parent, "replies": dict(replies)}
        self._messages[key] = messages
        self._update_webview_if_current(provider, channel_id)

    async def add_reaction(
        self,
        provider: str,
        channel_id: str,
        msg_timestamp: str,
        user_id: str,
        reaction_name: str,
    ) -> None:
        await self._entry(provider).backend.add_reaction(
            channel_id, msg_timestamp, user_id, reaction_name
        )

    async def remove_reaction(
        self,
        provider: str,
        channel_id: str,
        msg_timestamp: str,
        user_id: str,
        reaction_name: str,
    ) -> None:
        await self._entry(provider).backend.remove_reaction(
            channel_id, msg_timestamp, user_id, reaction_name
        )

    def _webview_state(self, provider: str, channel_id: str) -> dict[str, Any]:
        channel = self.get_channel(provider, channel_id)
        current = self._store.get_current_user(provider)
        users = self._store.get_users(provider) or {}
        return {
            "type": "state",
            "provider": provider,
            "channel": channel.to_dict() if channel is not None else None,
            "currentUser": current.to_dict() if current is not None else None,
            "users": {key: user.to_dict() for key, user in users.items()},
            "messages": self.get_messages(provider, channel_id),
        }

    async def update_webview_for_provider(self, provider: str, channel_id: str) -> None:
        """Make ``channel_id`` the provider's last-used channel and render it."""

        if self._store.get_last_channel_id(provider) != channel_id:
            self._store.update_last_channel_id(provider, channel_id)
        self._view.send_to_ui(self._webview_state(provider, channel_id))

    def _update_webview_if_current(self, provider: str, channel_id: str) -> None:
        if self._store.get_last_channel_id(provider) == channel_id:
            self._view.send_to_ui(self._webview_state(provider, channel_id))

    def update_all_ui(self) -> None:
        self._view.refresh(None)

    # Reset and teardown

    async def clear_all(self) -> None:
        """Drop all state except the collaboration provider's."""

        self._store.clear_all(keep=(COLLABORATION_PROVIDER,))
        for provider in [p for p in self._entries if p != COLLABORATION_PROVIDER]:
            await self._unregister(provider)
        log_event(self._logger, logging.INFO, "chat.registry.cleared")

    async def signout(self) -> None:
        for provider in self.supported_providers:
            self._config.clear_token(provider)
            self._store.clear_provider_state(provider)
            await self._unregister(provider)
        self.update_all_ui()
        log_event(self._logger, logging.INFO, "chat.registry.signed_out")

    async def close(self) -> None:
        for provider in list(self._entries):
            await self._unregister(provider)
