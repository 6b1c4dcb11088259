"""Multi-provider chat session orchestration (integration layer)."""

from .backend import BackendFactory, ChatBackend, PresenceListener
from .bootstrap import (
    BootstrapReport,
    ChatBootstrapStep,
    SetupRun,
    run_chat_bootstrap_steps,
)
from .capabilities import KNOWN_CAPABILITIES, ProviderCapabilities, capabilities_for
from .collaboration import CollaborationBridge, CollaborationContactProvider
from .command_bus import CommandBus, CommandRoute
from .command_contract import COMMAND_CONTRACT, CommandContractEntry, CommandStatus
from .errors import (
    ChatError,
    CommandPayloadError,
    InvalidTokenError,
    ProviderNotEnabledError,
    TokenNotFoundError,
    UnknownCommandError,
)
from .host import (
    ChatView,
    CollaborationHost,
    HostEnvironment,
    LiveShareApi,
    QuickPickItem,
)
from .models import (
    Channel,
    ChannelLabel,
    ChannelType,
    ChatArgs,
    CollaborationContact,
    CurrentUser,
    Team,
    User,
    UserPreferences,
    UserPresence,
)
from .orchestrator import SessionOrchestrator
from .presence import PresenceController
from .registry import ProviderEntry, ProviderRegistry
from .selections import ChannelSelection, SelectionFlows, sort_channel_labels
from .session import ChatSession
from .state_store import STATE_VERSION, ChatStateStore

__all__ = [
    "BackendFactory",
    "BootstrapReport",
    "COMMAND_CONTRACT",
    "Channel",
    "ChannelLabel",
    "ChannelSelection",
    "ChannelType",
    "ChatArgs",
    "ChatBackend",
    "ChatBootstrapStep",
    "ChatError",
    "ChatSession",
    "ChatStateStore",
    "ChatView",
    "CollaborationBridge",
    "CollaborationContact",
    "CollaborationContactProvider",
    "CollaborationHost",
    "CommandBus",
    "CommandContractEntry",
    "CommandPayloadError",
    "CommandRoute",
    "CommandStatus",
    "CurrentUser",
    "HostEnvironment",
    "InvalidTokenError",
    "KNOWN_CAPABILITIES",
    "LiveShareApi",
    "PresenceController",
    "PresenceListener",
    "ProviderCapabilities",
    "ProviderEntry",
    "ProviderNotEnabledError",
    "ProviderRegistry",
    "QuickPickItem",
    "STATE_VERSION",
    "SelectionFlows",
    "SessionOrchestrator",
    "SetupRun",
    "Team",
    "TokenNotFoundError",
    "UnknownCommandError",
    "User",
    "UserPreferences",
    "UserPresence",
    "capabilities_for",
    "run_chat_bootstrap_steps",
    "sort_channel_labels",
]
