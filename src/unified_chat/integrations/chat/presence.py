"""Self-presence negotiation."""

from __future__ import annotations

import logging
from typing import Optional

from ...core.logging_utils import log_event
from ...core.utils import camel_case_to_title, title_case_to_camel
from .constants import (
    CURRENT_PRESENCE_MARKER,
    DND_DURATION_OPTIONS,
    SELECT_DND_DURATION,
    SELECT_SELF_PRESENCE,
)
from .host import HostEnvironment, QuickPickItem, ask_single
from .models import UserPresence
from .registry import ProviderRegistry

SELF_PRESENCE_CHOICES = (
    UserPresence.AVAILABLE,
    UserPresence.DO_NOT_DISTURB,
    UserPresence.INVISIBLE,
)


class PresenceController:
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

    def presence_target(self) -> Optional[str]:
        for provider in self._registry.get_enabled_providers():
            if not self._registry.capabilities(provider).is_collaboration:
                return provider
        return None

    def presence_choices(self, provider: str) -> list[UserPresence]:
        choices = list(SELF_PRESENCE_CHOICES)
        if self._registry.capabilities(provider).supports_idle:
            choices.append(UserPresence.IDLE)
        return choices

    async def ask_for_self_presence(self) -> Optional[UserPresence]:
        provider = self.presence_target()
        if provider is None:
            return None
        current = self._registry.get_current_user_presence(provider)
        items = [
            QuickPickItem(
                label=camel_case_to_title(choice.value),
                description=CURRENT_PRESENCE_MARKER if choice == current else "",
            )
            for choice in self.presence_choices(provider)
        ]
        selected = await self._host.show_quick_pick(
            items, placeholder=SELECT_SELF_PRESENCE
        )
        if selected is None:
            return None
        presence = UserPresence(title_case_to_camel(selected.label))
        await self.update_self_presence(provider, presence)
        return presence

    async def update_self_presence(
        self, provider: str, presence: UserPresence, duration_minutes: int = 0
    ) -> int:
        """Apply ``presence``; returns the duration that was forwarded."""

        if (
            presence == UserPresence.DO_NOT_DISTURB
            and self._registry.capabilities(provider).supports_snooze
        ):
            selected = await ask_single(
                self._host, list(DND_DURATION_OPTIONS), placeholder=SELECT_DND_DURATION
            )
            duration_minutes = (
                DND_DURATION_OPTIONS[selected] if selected is not None else 0
            )
        log_event(
            self._logger,
            logging.INFO,
            "chat.presence.update",
            provider=provider,
            presence=presence.value,
            duration_minutes=duration_minutes,
        )
        await self._registry.update_self_presence(provider, presence, duration_minutes)
        return duration_minutes
