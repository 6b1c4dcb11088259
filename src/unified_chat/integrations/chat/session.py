"""Session aggregate that wires the chat components together.

A ``ChatSession`` owns every long-lived object for one workspace: config,
state store, provider registry, telemetry, detached tasks, the interactive
flows and the command bus. ``close`` tears all of them down.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from ...core.config import ConfigHelper
from ...core.logging_utils import log_event
from ...core.tasks import DetachedTasks
from ...core.telemetry import TelemetryReporter, TelemetrySink
from .backend import BackendFactory
from .collaboration import CollaborationBridge
from .command_bus import CommandBus
from .constants import VSLS_ENABLED_CONTEXT
from .host import ChatView, CollaborationHost, HostEnvironment
from .models import ChatArgs
from .onboarding import ask_for_auth
from .orchestrator import SessionOrchestrator
from .presence import PresenceController
from .registry import ProviderRegistry
from .selections import SelectionFlows
from .state_store import ChatStateStore


class ChatSession:
    def __init__(
        self,
        root: Path,
        *,
        host: HostEnvironment,
        view: ChatView,
        backend_factory: BackendFactory,
        collaboration: Optional[CollaborationHost] = None,
        telemetry_sink: Optional[TelemetrySink] = None,
        env: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.host = host
        self.view = view
        self.config = ConfigHelper(Path(root), env=env)
        chat_config = self.config.load()
        self.store = ChatStateStore(chat_config.state_file, logger_=self._logger)
        self.telemetry = TelemetryReporter(
            enabled=chat_config.telemetry_enabled,
            sink=telemetry_sink,
            logger=self._logger,
        )
        self.tasks = DetachedTasks(logger=self._logger)
        self.registry = ProviderRegistry(
            store=self.store,
            config=self.config,
            backend_factory=backend_factory,
            view=view,
            collaboration=collaboration,
            logger=self._logger,
        )
        self.selections = SelectionFlows(
            registry=self.registry, host=host, logger=self._logger
        )
        self.presence = PresenceController(
            registry=self.registry, host=host, logger=self._logger
        )
        self.bridge = CollaborationBridge(
            registry=self.registry,
            host=host,
            telemetry=self.telemetry,
            open_view=self._open_view,
            collaboration=collaboration,
            logger=self._logger,
        )
        self.orchestrator = SessionOrchestrator(
            registry=self.registry,
            selections=self.selections,
            bridge=self.bridge,
            telemetry=self.telemetry,
            view=view,
            tasks=self.tasks,
            onboarding=self._ask_for_auth,
            logger=self._logger,
        )
        self.bus = CommandBus(
            registry=self.registry,
            orchestrator=self.orchestrator,
            selections=self.selections,
            presence=self.presence,
            bridge=self.bridge,
            telemetry=self.telemetry,
            host=host,
            view=view,
            config=self.config,
            logger=self._logger,
        )

    async def _open_view(self, args: ChatArgs) -> None:
        await self.orchestrator.open_chat_view(args)

    async def _ask_for_auth(self) -> Optional[str]:
        return await ask_for_auth(
            self.host,
            sign_in=self.bus.start_oauth,
            configure_token=self.bus.configure_token,
        )

    def activate(self) -> None:
        """Start the initial setup in the background and publish host context."""

        self.tasks.spawn(self.orchestrator.setup(True, None), name="chat.setup")
        enabled = self.registry.collaboration_available()
        self.host.set_context(VSLS_ENABLED_CONTEXT, enabled)
        log_event(
            self._logger,
            logging.INFO,
            "chat.session.activated",
            root=str(self.config.root),
            collaboration=enabled,
        )

    async def execute(
        self, command: str, payload: Optional[Mapping[str, Any]] = None
    ) -> Any:
        return await self.bus.execute(command, payload)

    async def close(self) -> None:
        await self.tasks.close()
        await self.registry.close()
        self.telemetry.dispose()
        log_event(self._logger, logging.INFO, "chat.session.closed")
