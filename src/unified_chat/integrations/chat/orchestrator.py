"""Session bootstrap state machine and view-level flows.

``setup`` runs tokens -> providers -> per-provider state -> contacts in a
fixed order. Team selection and state hydration fan out into one step per
enabled provider, and each step event names its provider. Concurrent runs
are allowed; each step is safe to repeat, so the worst case is redundant
backend calls.

Detached work (preference refresh, presence subscription, history loads) is
spawned on ``DetachedTasks`` and never awaited here; nothing after the
spawn may assume it has finished.
"""

from __future__ import annotations

import functools
import itertools
import logging
from typing import Any, Awaitable, Callable, Optional

from ...core.logging_utils import log_event
from ...core.tasks import DetachedTasks
from ...core.telemetry import EventSource, EventType, TelemetryReporter
from .bootstrap import (
    BootstrapReport,
    ChatBootstrapStep,
    SetupRun,
    run_chat_bootstrap_steps,
)
from .collaboration import CollaborationBridge
from .errors import TokenNotFoundError
from .host import ChatView
from .models import ChatArgs
from .registry import ProviderRegistry
from .selections import SelectionFlows

OnboardingPrompt = Callable[[], Awaitable[Any]]


class SessionOrchestrator:
    def __init__(
        self,
        *,
        registry: ProviderRegistry,
        selections: SelectionFlows,
        bridge: CollaborationBridge,
        telemetry: TelemetryReporter,
        view: ChatView,
        tasks: DetachedTasks,
        onboarding: Optional[OnboardingPrompt] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry
        self._store = registry.store
        self._selections = selections
        self._bridge = bridge
        self._telemetry = telemetry
        self._view = view
        self._tasks = tasks
        self._onboarding = onboarding
        self._logger = logger or logging.getLogger(__name__)
        self._run_ids = itertools.count(1)
        self._last_report: Optional[BootstrapReport] = None

    def set_onboarding(self, onboarding: Optional[OnboardingPrompt]) -> None:
        self._onboarding = onboarding

    async def setup(
        self, can_prompt_for_auth: bool = False, forced_provider: Optional[str] = None
    ) -> None:
        run = SetupRun(
            run_id=next(self._run_ids),
            can_prompt_for_auth=can_prompt_for_auth,
            forced_provider=forced_provider,
        )
        log_event(
            self._logger,
            logging.INFO,
            "chat.setup.started",
            can_prompt_for_auth=can_prompt_for_auth,
            **run.log_fields(),
        )

        async def _token() -> None:
            await self._initialize_token(can_prompt_for_auth, forced_provider)

        report = await run_chat_bootstrap_steps(
            run=run,
            logger=self._logger,
            steps=(
                ChatBootstrapStep("migrations", self._store.run_state_migrations),
                ChatBootstrapStep(
                    "installation", self._ensure_installation, required=False
                ),
                ChatBootstrapStep("token", _token),
                ChatBootstrapStep("providers", self._initialize_providers),
                ChatBootstrapStep("provider_state", self._provider_state_steps),
                ChatBootstrapStep(
                    "contacts", self._initialize_contacts, required=False
                ),
            ),
        )
        self._last_report = report
        log_event(
            self._logger,
            logging.INFO,
            "chat.setup.finished",
            run_id=run.run_id,
            providers=list(self._registry.get_enabled_providers()),
            skipped=report.skipped,
        )

    @property
    def last_setup_report(self) -> Optional[BootstrapReport]:
        return self._last_report

    async def _ensure_installation(self) -> None:
        installation_id = self._store.installation_id
        if installation_id is not None:
            self._telemetry.set_unique_id(installation_id)
            return
        installation_id = self._store.generate_installation_id()
        self._telemetry.set_unique_id(installation_id)
        self._telemetry.record(EventType.EXTENSION_INSTALLED)

    async def _initialize_token(
        self, can_prompt_for_auth: bool, forced_provider: Optional[str]
    ) -> None:
        if self._registry.is_token_initialized and not forced_provider:
            return
        await self._registry.initialize_token(forced_provider)
        if self._registry.is_token_initialized:
            return
        if (
            can_prompt_for_auth
            and self._onboarding is not None
            and not self._registry.collaboration_available()
        ):
            self._tasks.spawn(self._onboarding(), name="chat.onboarding")
        raise TokenNotFoundError()

    async def _initialize_providers(self) -> list[ChatBootstrapStep]:
        await self._registry.initialize_providers()
        return [
            ChatBootstrapStep(
                "team_selection",
                functools.partial(self._ensure_team, provider),
                provider=provider,
            )
            for provider in self._registry.get_enabled_providers()
            if self._registry.capabilities(provider).requires_team_selection
        ]

    async def _ensure_team(self, provider: str) -> None:
        if self._registry.get_current_team_for(provider) is None:
            await self._selections.ask_for_workspace(provider)

    async def _provider_state_steps(self) -> list[ChatBootstrapStep]:
        return [
            ChatBootstrapStep(
                "hydrate",
                functools.partial(self._hydrate_provider, provider),
                provider=provider,
            )
            for provider in self._registry.get_enabled_providers()
        ]

    async def _hydrate_provider(self, provider: str) -> None:
        # Preferences may arrive after channels; nothing below reads them.
        self._tasks.spawn(
            self._registry.update_user_prefs(provider),
            name=f"chat.{provider}.user_prefs",
        )
        await self._registry.initialize_users_state(provider)
        self._tasks.spawn(
            self._registry.subscribe_presence(provider),
            name=f"chat.{provider}.presence",
        )
        await self._registry.initialize_channels_state(provider)

    async def _initialize_contacts(self) -> None:
        await self._bridge.initialize_contact_provider()

    async def open_chat_view(self, chat_args: Optional[ChatArgs] = None) -> bool:
        provider = chat_args.provider_name if chat_args is not None else None
        channel_id = chat_args.channel_id if chat_args is not None else None
        source = chat_args.source if chat_args is not None else EventSource.COMMAND

        if chat_args is None:
            selected = await self._selections.ask_for_channel(None)
            if selected is not None:
                provider = selected.provider_name
                channel_id = selected.channel.id

        if not provider or not channel_id:
            return False

        self._view.update_current_state(provider, channel_id)
        self._view.load_ui()
        await self.setup(True, None)
        await self._registry.update_webview_for_provider(provider, channel_id)
        self._telemetry.record(EventType.VIEW_OPENED, source, channel_id, provider)
        self._tasks.spawn(
            self._registry.load_channel_history(provider, channel_id),
            name=f"chat.{provider}.history",
        )
        return True

    async def change_workspace(self) -> bool:
        candidates = [
            provider
            for provider in self._registry.get_enabled_providers()
            if self._registry.capabilities(provider).supports_workspaces
        ]
        if not candidates:
            return False
        if len(candidates) == 1:
            provider: Optional[str] = candidates[0]
        else:
            provider = await self._selections.ask_for_provider(candidates)
        if provider is None:
            return False
        updated = await self._selections.ask_for_workspace(provider)
        if updated is None:
            return False
        await self._registry.clear_old_workspace(provider)
        await self.setup(False, provider)
        return True

    async def change_channel(
        self,
        provider: Optional[str] = None,
        source: EventSource = EventSource.COMMAND,
    ) -> bool:
        self._telemetry.record(EventType.CHANNEL_CHANGED, source, None, provider)
        selected = await self._selections.ask_for_channel(provider)
        if selected is None:
            return False
        return await self.open_chat_view(
            ChatArgs(
                provider_name=selected.provider_name,
                channel_id=selected.channel.id,
                source=source,
            )
        )

    async def reset(self) -> None:
        """Clear all state except collaboration state, then set up again."""

        await self._registry.clear_all()
        self._registry.update_all_ui()
        await self.setup(False, None)
