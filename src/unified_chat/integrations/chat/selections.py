"""Interactive provider, workspace and channel pickers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ...core.logging_utils import log_event
from ...core.utils import to_title_case
from .constants import (
    CHANGE_CHANNEL_TITLE,
    CHANGE_PROVIDER_TITLE,
    CHANGE_WORKSPACE_TITLE,
    RELOAD_CHANNELS,
)
from .host import HostEnvironment, QuickPickItem, ask_single
from .models import Channel, ChannelLabel, CurrentUser
from .registry import ProviderRegistry


@dataclass(frozen=True)
class ChannelSelection:
    channel: Channel
    provider_name: str


def sort_channel_labels(labels: Sequence[ChannelLabel]) -> list[ChannelLabel]:
    """Most unread first; ``sorted`` is stable so ties keep source order."""

    return sorted(labels, key=lambda item: item.unread, reverse=True)


def _label_item(label: ChannelLabel) -> QuickPickItem:
    return QuickPickItem(
        label=label.label,
        detail=label.channel.category_name,
        description=f"{to_title_case(label.provider_name)} · {label.team_name}",
    )


class SelectionFlows:
    def __init__(
        self,
        *,
        registry: ProviderRegistry,
        host: HostEnvironment,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry
        self._host = host
        self._logger = logger or logging.getLogger(__name__)

    async def ask_for_provider(
        self, choices: Optional[Sequence[str]] = None
    ) -> Optional[str]:
        providers = (
            list(choices) if choices is not None else self._registry.supported_providers
        )
        selection = await ask_single(
            self._host,
            [to_title_case(name) for name in providers],
            placeholder=CHANGE_PROVIDER_TITLE,
        )
        return selection.lower() if selection is not None else None

    async def ask_for_workspace(self, provider: str) -> Optional[CurrentUser]:
        current_user = self._registry.get_current_user_for(provider)
        if current_user is None:
            return None
        selected = await ask_single(
            self._host,
            [team.name for team in current_user.teams],
            placeholder=CHANGE_WORKSPACE_TITLE,
        )
        if selected is None:
            return None
        team = next(
            (team for team in current_user.teams if team.name == selected), None
        )
        if team is None:
            return None
        return await self._registry.update_current_workspace(
            provider, team, current_user
        )

    async def _hydrate_channels(self, provider_name: Optional[str]) -> None:
        providers = (
            [provider_name]
            if provider_name
            else list(self._registry.get_enabled_providers())
        )
        for provider in providers:
            if not self._registry.is_provider_enabled(provider):
                continue
            if self._registry.store.get_channels(provider) is not None:
                continue
            try:
                await self._registry.initialize_users_state(provider)
                await self._registry.initialize_channels_state(provider)
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "chat.selection.channels_fetch_failed",
                    provider=provider,
                    exc=exc,
                )

    async def ask_for_channel(
        self, provider_name: Optional[str] = None
    ) -> Optional[ChannelSelection]:
        """Pick a channel from one provider, or from all when none is given.

        Picking the reload entry refetches and shows the picker again; the
        loop ends when a channel is picked or any prompt is dismissed.
        """

        while True:
            await self._hydrate_channels(provider_name)
            labels = sort_channel_labels(
                self._registry.get_channel_labels(provider_name)
            )
            items = [_label_item(label) for label in labels]
            selected = await self._host.show_quick_pick(
                [*items, QuickPickItem(label=RELOAD_CHANNELS)],
                placeholder=CHANGE_CHANNEL_TITLE,
                match_on_detail=True,
                match_on_description=True,
            )
            if selected is None:
                return None
            if selected.label != RELOAD_CHANNELS:
                return self._resolve_selection(labels, selected)

            enabled = self._registry.get_enabled_providers()
            provider = provider_name or await self.ask_for_provider(enabled)
            if provider is None or provider not in enabled:
                return None
            log_event(
                self._logger,
                logging.INFO,
                "chat.selection.reload_channels",
                provider=provider,
            )
            await self._registry.fetch_users(provider)
            await self._registry.fetch_channels(provider)

    @staticmethod
    def _resolve_selection(
        labels: Sequence[ChannelLabel], selected: QuickPickItem
    ) -> Optional[ChannelSelection]:
        for label in labels:
            if (
                label.label == selected.label
                and label.channel.category_name == selected.detail
            ):
                return ChannelSelection(
                    channel=label.channel, provider_name=label.provider_name.lower()
                )
        return None
