"""Telemetry event tags and the in-process reporter.

Telemetry is descriptive only: events explain why a state transition
happened and never drive behavior. Transport is pluggable through ``sink``;
without one, events are only logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .logging_utils import log_event
from .utils import now_iso


class EventType(str, Enum):
    EXTENSION_INSTALLED = "extensionInstalled"
    VIEW_OPENED = "webviewOpened"
    MESSAGE_SENT = "messageSent"
    VSLS_SHARED = "vslsShared"
    VSLS_STARTED = "vslsStarted"
    VSLS_ENDED = "vslsEnded"
    TOKEN_CONFIGURED = "tokenConfigured"
    CHANNEL_CHANGED = "channelChanged"
    AUTH_STARTED = "authStarted"
    ACTIVATION_STARTED = "activationStarted"
    ACTIVATION_ENDED = "activationEnded"


class EventSource(str, Enum):
    COMMAND = "command"
    STATUS = "status_item"
    ACTIVITY = "activity_bar"
    INFO = "info_message"
    SLASH = "slash_command"
    VSLS_CONTACTS = "vsls_contacts_panel"
    TESTING = "testing"


@dataclass(frozen=True)
class TelemetryEvent:
    event_type: EventType
    timestamp: str
    installation_id: Optional[str] = None
    source: Optional[EventSource] = None
    channel_id: Optional[str] = None
    provider: Optional[str] = None


TelemetrySink = Callable[[TelemetryEvent], None]


class TelemetryReporter:
    def __init__(
        self,
        *,
        enabled: bool = True,
        sink: Optional[TelemetrySink] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._enabled = enabled
        self._sink = sink
        self._logger = logger or logging.getLogger(__name__)
        self._unique_id: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def unique_id(self) -> Optional[str]:
        return self._unique_id

    def set_unique_id(self, installation_id: Optional[str]) -> None:
        self._unique_id = installation_id

    def record(
        self,
        event_type: EventType,
        source: Optional[EventSource] = None,
        channel_id: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> Optional[TelemetryEvent]:
        """Record an event; never raises."""

        if not self._enabled:
            return None
        event = TelemetryEvent(
            event_type=event_type,
            timestamp=now_iso(),
            installation_id=self._unique_id,
            source=source,
            channel_id=channel_id,
            provider=provider,
        )
        log_event(
            self._logger,
            logging.DEBUG,
            "telemetry.event",
            event_type=event_type.value,
            source=source.value if source is not None else None,
            channel_id=channel_id,
            provider=provider,
        )
        if self._sink is not None:
            try:
                self._sink(event)
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "telemetry.sink_failed",
                    event_type=event_type.value,
                    exc=exc,
                )
        return event

    def dispose(self) -> None:
        self._sink = None
