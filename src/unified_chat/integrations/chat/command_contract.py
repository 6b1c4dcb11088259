"""Command contract manifest shared by the bus, the CLI and parity tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

CommandStatus = Literal["stable", "partial", "unsupported"]

OPEN_VIEW = "open-view"
CHANGE_WORKSPACE = "change-workspace"
CHANGE_CHANNEL = "change-channel"
SIGN_IN = "sign-in"
SIGN_OUT = "sign-out"
RESET = "reset"
SETUP_NEW_PROVIDER = "setup-new-provider"
CONFIGURE_TOKEN = "configure-token"
SEND_MESSAGE = "send-message"
SEND_THREAD_REPLY = "send-thread-reply"
LIVE_SHARE_FROM_MENU = "live-share-from-menu"
LIVE_SHARE_SLASH = "live-share-slash"
LIVE_SHARE_SESSION_CHANGED = "live-share-session-changed"
FETCH_REPLIES = "fetch-replies"
UPDATE_MESSAGES = "update-messages"
ADD_MESSAGE_REACTION = "add-message-reaction"
REMOVE_MESSAGE_REACTION = "remove-message-reaction"
UPDATE_PRESENCE_STATUSES = "update-presence-statuses"
UPDATE_SELF_PRESENCE = "update-self-presence"
UPDATE_SELF_PRESENCE_VIA_VSLS = "update-self-presence-via-vsls"
CHAT_WITH_VSLS_CONTACT = "chat-with-vsls-contact"
CHANNEL_MARKED = "channel-marked"
UPDATE_MESSAGE_REPLIES = "update-message-replies"
HANDLE_INCOMING_LINKS = "handle-incoming-links"
SEND_TO_WEBVIEW = "send-to-webview"
CONFIGURATION_CHANGED = "configuration-changed"

_REACTION_KEYS = ("userId", "msgTimestamp", "channelId", "reactionName", "provider")


@dataclass(frozen=True)
class CommandContractEntry:
    id: str
    payload_keys: tuple[str, ...]
    requires_token: bool
    status: CommandStatus


COMMAND_CONTRACT: tuple[CommandContractEntry, ...] = (
    CommandContractEntry(
        id=OPEN_VIEW,
        payload_keys=("providerName", "channelId", "user", "source"),
        requires_token=False,
        status="stable",
    ),
    CommandContractEntry(
        id=CHANGE_WORKSPACE, payload_keys=(), requires_token=True, status="stable"
    ),
    CommandContractEntry(
        id=CHANGE_CHANNEL,
        payload_keys=("providerName", "source"),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=SIGN_IN, payload_keys=("source",), requires_token=False, status="stable"
    ),
    CommandContractEntry(
        id=SIGN_OUT, payload_keys=(), requires_token=False, status="stable"
    ),
    CommandContractEntry(
        id=RESET, payload_keys=(), requires_token=False, status="stable"
    ),
    CommandContractEntry(
        id=SETUP_NEW_PROVIDER,
        payload_keys=("newProvider",),
        requires_token=False,
        status="stable",
    ),
    CommandContractEntry(
        id=CONFIGURE_TOKEN, payload_keys=(), requires_token=False, status="stable"
    ),
    CommandContractEntry(
        id=SEND_MESSAGE,
        payload_keys=("text", "provider"),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=SEND_THREAD_REPLY,
        payload_keys=("text", "parentTimestamp", "provider"),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=LIVE_SHARE_FROM_MENU,
        payload_keys=("providerName", "channel", "user"),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=LIVE_SHARE_SLASH,
        payload_keys=("provider",),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=LIVE_SHARE_SESSION_CHANGED,
        payload_keys=("isSessionActive", "currentUser"),
        requires_token=False,
        status="partial",
    ),
    CommandContractEntry(
        id=FETCH_REPLIES,
        payload_keys=("parentTimestamp", "provider"),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=UPDATE_MESSAGES,
        payload_keys=("channelId", "messages", "provider"),
        requires_token=False,
        status="stable",
    ),
    CommandContractEntry(
        id=ADD_MESSAGE_REACTION,
        payload_keys=_REACTION_KEYS,
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=REMOVE_MESSAGE_REACTION,
        payload_keys=_REACTION_KEYS,
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=UPDATE_PRESENCE_STATUSES,
        payload_keys=("userId", "presence", "provider"),
        requires_token=False,
        status="stable",
    ),
    CommandContractEntry(
        id=UPDATE_SELF_PRESENCE, payload_keys=(), requires_token=True, status="stable"
    ),
    CommandContractEntry(
        id=UPDATE_SELF_PRESENCE_VIA_VSLS,
        payload_keys=("presence", "provider"),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=CHAT_WITH_VSLS_CONTACT,
        payload_keys=("contactModel",),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=CHANNEL_MARKED,
        payload_keys=("channelId", "readTimestamp", "unreadCount", "provider"),
        requires_token=False,
        status="stable",
    ),
    CommandContractEntry(
        id=UPDATE_MESSAGE_REPLIES,
        payload_keys=("provider", "channelId", "parentTimestamp", "reply"),
        requires_token=False,
        status="stable",
    ),
    CommandContractEntry(
        id=HANDLE_INCOMING_LINKS,
        payload_keys=("uri", "senderId", "provider"),
        requires_token=True,
        status="stable",
    ),
    CommandContractEntry(
        id=SEND_TO_WEBVIEW,
        payload_keys=("uiMessage",),
        requires_token=False,
        status="stable",
    ),
    CommandContractEntry(
        id=CONFIGURATION_CHANGED,
        payload_keys=("sections",),
        requires_token=False,
        status="stable",
    ),
)


def contract_entry(command_id: str) -> CommandContractEntry:
    for entry in COMMAND_CONTRACT:
        if entry.id == command_id:
            return entry
    raise KeyError(command_id)
