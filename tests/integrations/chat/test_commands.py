from __future__ import annotations

import pytest

from unified_chat.core.telemetry import EventSource
from unified_chat.integrations.chat.commands import (
    ChangeChannelPayload,
    ChannelMarkedPayload,
    ChatArgsPayload,
    CommandPayload,
    ConfigurationChangedPayload,
    ContactItemPayload,
    PresenceStatusPayload,
    SendMessagePayload,
    SessionChangedPayload,
    SetupNewProviderPayload,
)
from unified_chat.integrations.chat.errors import CommandPayloadError
from unified_chat.integrations.chat.models import UserPresence


def test_chat_args_reads_channel_object_and_source() -> None:
    payload = ChatArgsPayload.from_payload(
        "live-share-from-menu",
        {"provider": "Slack", "channel": {"id": "C1"}, "source": "ACTIVITY"},
    )

    assert payload.args.provider_name == "slack"
    assert payload.args.channel_id == "C1"
    assert payload.args.source == EventSource.ACTIVITY


def test_chat_args_accepts_user_without_channel() -> None:
    payload = ChatArgsPayload.from_payload(
        "open-view",
        {"providerName": "slack", "user": {"id": "U2", "name": "alice"}},
    )

    assert payload.args.channel_id is None
    assert payload.args.user is not None and payload.args.user.name == "alice"
    assert payload.args.source == EventSource.COMMAND


@pytest.mark.parametrize(
    "raw",
    [
        {"providerName": "slack"},
        {"channelId": "C1"},
        {"providerName": "slack", "channelId": "C1", "source": "nowhere"},
        {"providerName": "slack", "user": "alice"},
    ],
)
def test_chat_args_rejects_incomplete_payloads(raw) -> None:
    with pytest.raises(CommandPayloadError) as excinfo:
        ChatArgsPayload.from_payload("open-view", raw)
    assert excinfo.value.command == "open-view"


def test_change_channel_fields_are_optional() -> None:
    payload = ChangeChannelPayload.from_payload("change-channel", {})
    assert payload.provider_name is None
    assert payload.source == EventSource.COMMAND


def test_provider_names_are_lowercased() -> None:
    payload = SetupNewProviderPayload.from_payload(
        "setup-new-provider", {"newProvider": " Discord "}
    )
    assert payload.new_provider == "discord"


@pytest.mark.parametrize("text", [None, "", 42])
def test_send_message_requires_text(text) -> None:
    with pytest.raises(CommandPayloadError):
        SendMessagePayload.from_payload(
            "send-message", {"text": text, "provider": "slack"}
        )


def test_presence_must_be_known() -> None:
    payload = PresenceStatusPayload.from_payload(
        "update-presence-statuses",
        {"userId": 7, "presence": "idle", "provider": "slack"},
    )
    assert payload.user_id == "7"
    assert payload.presence == UserPresence.IDLE

    with pytest.raises(CommandPayloadError):
        PresenceStatusPayload.from_payload(
            "update-presence-statuses",
            {"userId": "U1", "presence": "busy", "provider": "slack"},
        )


def test_channel_marked_clamps_unread_count() -> None:
    payload = ChannelMarkedPayload.from_payload(
        "channel-marked",
        {"channelId": "C1", "unreadCount": -4, "provider": "slack"},
    )
    assert payload.unread_count == 0
    assert payload.read_timestamp is None


def test_contact_item_reads_nested_contact() -> None:
    payload = ContactItemPayload.from_payload(
        "chat-with-vsls-contact",
        {
            "contactModel": {
                "contact": {
                    "id": "c-1",
                    "email": "alice@example.com",
                    "displayName": "Alice",
                }
            }
        },
    )
    assert payload.contact.id == "c-1"
    assert payload.contact.email == "alice@example.com"

    with pytest.raises(CommandPayloadError):
        ContactItemPayload.from_payload("chat-with-vsls-contact", {"contactModel": {}})


def test_session_changed_parses_current_user() -> None:
    payload = SessionChangedPayload.from_payload(
        "live-share-session-changed",
        {"isSessionActive": "true", "currentUser": {"id": "V1"}},
    )
    assert payload.is_session_active is True
    assert payload.current_user is not None and payload.current_user.name == "V1"


def test_configuration_changed_matches_section_prefix() -> None:
    payload = ConfigurationChangedPayload.from_payload(
        "configuration-changed", {"sections": ["chat.providers", "editor"]}
    )
    assert payload.affects("chat")
    assert payload.affects("editor")
    assert not payload.affects("chatter")
    assert not payload.affects("chat.providers.slack")

    with pytest.raises(CommandPayloadError):
        ConfigurationChangedPayload.from_payload(
            "configuration-changed", {"sections": "chat"}
        )


def test_payload_types_must_implement_from_payload() -> None:
    class Incomplete(CommandPayload):
        pass

    with pytest.raises(TypeError):
        CommandPayload()
    with pytest.raises(TypeError):
        Incomplete()
    assert ChangeChannelPayload.from_payload("change-channel", {}) is not None
