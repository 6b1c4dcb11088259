"""Typed payloads for bus commands.

Payloads arrive as JSON-like mappings (camelCase keys) from the UI or the
host. Each command has its own frozen payload type, parsed and validated
before any handler runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Type, TypeVar

from ...core.coercion import (
    coerce_bool,
    coerce_int,
    optional_text,
    optional_text_or_int,
)
from ...core.telemetry import EventSource
from .errors import CommandPayloadError
from .models import ChatArgs, CollaborationContact, CurrentUser, User, UserPresence

P = TypeVar("P", bound="CommandPayload")


class _PayloadReader:
    def __init__(self, command: str, raw: Mapping[str, Any]) -> None:
        self.command = command
        self.raw = raw

    def fail(self, detail: str) -> CommandPayloadError:
        return CommandPayloadError(self.command, detail)

    def text(self, *keys: str) -> str:
        value = self.optional_text(*keys)
        if value is None:
            raise self.fail(f"'{keys[0]}' is required")
        return value

    def optional_text(self, *keys: str) -> Optional[str]:
        for key in keys:
            value = optional_text_or_int(self.raw.get(key))
            if value is not None:
                return value
        return None

    def provider(self, *keys: str) -> str:
        value = optional_text(self.raw.get(keys[0]), lower=True)
        for key in keys[1:]:
            if value is not None:
                break
            value = optional_text(self.raw.get(key), lower=True)
        if value is None:
            raise self.fail(f"'{keys[0]}' is required")
        return value

    def optional_mapping(self, key: str) -> Optional[Mapping[str, Any]]:
        value = self.raw.get(key)
        if value is None:
            return None
        if not isinstance(value, Mapping):
            raise self.fail(f"'{key}' must be an object")
        return value

    def mapping(self, key: str) -> Mapping[str, Any]:
        value = self.optional_mapping(key)
        if value is None:
            raise self.fail(f"'{key}' is required")
        return value

    def presence(self, key: str) -> UserPresence:
        value = self.raw.get(key)
        try:
            return UserPresence(value)
        except ValueError:
            raise self.fail(f"'{key}' is not a known presence: {value!r}") from None

    def source(self, key: str = "source") -> EventSource:
        value = self.raw.get(key)
        if value is None:
            return EventSource.COMMAND
        if isinstance(value, EventSource):
            return value
        for member in EventSource:
            if value in (member.value, member.name, member.name.lower()):
                return member
        raise self.fail(f"'{key}' is not a known event source: {value!r}")

    def user(self, key: str) -> Optional[User]:
        raw_user = self.optional_mapping(key)
        if raw_user is None:
            return None
        try:
            return User.from_dict(raw_user)
        except (KeyError, TypeError) as exc:
            raise self.fail(f"'{key}' is not a valid user: {exc}") from None


class CommandPayload(ABC):
    @classmethod
    @abstractmethod
    def from_payload(cls: Type[P], command: str, raw: Mapping[str, Any]) -> P:
        """Parse ``raw`` or raise ``CommandPayloadError`` naming ``command``."""


@dataclass(frozen=True)
class ChatArgsPayload(CommandPayload):
    args: ChatArgs

    @classmethod
    def from_payload(cls, command: str, raw: Mapping[str, Any]) -> "ChatArgsPayload":
        reader = _PayloadReader(command, raw)
        channel_id = reader.optional_text("channelId")
        channel = reader.optional_mapping("channel")
        if channel_id is None and channel is not None:
            channel_id = optional_text_or_int(channel.get("id"))
        user = reader.user("user")
        if channel_id is None and user is None:
            raise reader.fail("one of 'channelId' or 'user' is required")
        return cls(
            args=ChatArgs(
                provider_name=reader.provider("providerName", "provider"),
                channel_id=channel_id,
                user=user,
                source=reader.source(),
            )
        )


@dataclass(frozen=True)
class ChangeChannelPayload(CommandPayload):
    provider_name: Optional[str] = None
    source: EventSource = EventSource.COMMAND

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "ChangeChannelPayload":
        reader = _PayloadReader(command, raw)
        provider = optional_text(raw.get("providerName"), lower=True) or optional_text(
            raw.get("provider"), lower=True
        )
        return cls(provider_name=provider, source=reader.source())


@dataclass(frozen=True)
class SignInPayload(CommandPayload):
    source: EventSource = EventSource.COMMAND

    @classmethod
    def from_payload(cls, command: str, raw: Mapping[str, Any]) -> "SignInPayload":
        return cls(source=_PayloadReader(command, raw).source())


@dataclass(frozen=True)
class SetupNewProviderPayload(CommandPayload):
    new_provider: str

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "SetupNewProviderPayload":
        return cls(new_provider=_PayloadReader(command, raw).provider("newProvider"))


@dataclass(frozen=True)
class SendMessagePayload(CommandPayload):
    text: str
    provider: str
    parent_timestamp: Optional[str] = None

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "SendMessagePayload":
        reader = _PayloadReader(command, raw)
        text = raw.get("text")
        if not isinstance(text, str) or not text:
            raise reader.fail("'text' is required")
        return cls(
            text=text,
            provider=reader.provider("provider"),
            parent_timestamp=reader.optional_text("parentTimestamp"),
        )


@dataclass(frozen=True)
class ThreadReplyPayload(SendMessagePayload):
    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "ThreadReplyPayload":
        reader = _PayloadReader(command, raw)
        base = SendMessagePayload.from_payload(command, raw)
        return cls(
            text=base.text,
            provider=base.provider,
            parent_timestamp=reader.text("parentTimestamp"),
        )


@dataclass(frozen=True)
class ProviderPayload(CommandPayload):
    provider: str

    @classmethod
    def from_payload(cls, command: str, raw: Mapping[str, Any]) -> "ProviderPayload":
        return cls(provider=_PayloadReader(command, raw).provider("provider"))


@dataclass(frozen=True)
class SessionChangedPayload(CommandPayload):
    is_session_active: bool
    current_user: Optional[CurrentUser] = None

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "SessionChangedPayload":
        reader = _PayloadReader(command, raw)
        raw_user = reader.optional_mapping("currentUser")
        current_user = None
        if raw_user is not None:
            try:
                current_user = CurrentUser.from_dict(raw_user)
            except (KeyError, TypeError) as exc:
                raise reader.fail(f"'currentUser' is invalid: {exc}") from None
        return cls(
            is_session_active=coerce_bool(raw.get("isSessionActive")),
            current_user=current_user,
        )


@dataclass(frozen=True)
class FetchRepliesPayload(CommandPayload):
    parent_timestamp: str
    provider: str

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "FetchRepliesPayload":
        reader = _PayloadReader(command, raw)
        return cls(
            parent_timestamp=reader.text("parentTimestamp"),
            provider=reader.provider("provider"),
        )


@dataclass(frozen=True)
class UpdateMessagesPayload(CommandPayload):
    channel_id: str
    provider: str
    messages: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "UpdateMessagesPayload":
        reader = _PayloadReader(command, raw)
        return cls(
            channel_id=reader.text("channelId"),
            provider=reader.provider("provider"),
            messages=dict(reader.mapping("messages")),
        )


@dataclass(frozen=True)
class ReactionPayload(CommandPayload):
    user_id: str
    msg_timestamp: str
    channel_id: str
    reaction_name: str
    provider: str

    @classmethod
    def from_payload(cls, command: str, raw: Mapping[str, Any]) -> "ReactionPayload":
        reader = _PayloadReader(command, raw)
        return cls(
            user_id=reader.text("userId"),
            msg_timestamp=reader.text("msgTimestamp"),
            channel_id=reader.text("channelId"),
            reaction_name=reader.text("reactionName"),
            provider=reader.provider("provider"),
        )


@dataclass(frozen=True)
class PresenceStatusPayload(CommandPayload):
    user_id: str
    presence: UserPresence
    provider: str

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "PresenceStatusPayload":
        reader = _PayloadReader(command, raw)
        return cls(
            user_id=reader.text("userId"),
            presence=reader.presence("presence"),
            provider=reader.provider("provider"),
        )


@dataclass(frozen=True)
class SelfPresencePayload(CommandPayload):
    presence: UserPresence
    provider: str

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "SelfPresencePayload":
        reader = _PayloadReader(command, raw)
        return cls(
            presence=reader.presence("presence"),
            provider=reader.provider("provider"),
        )


@dataclass(frozen=True)
class ContactItemPayload(CommandPayload):
    contact: CollaborationContact

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "ContactItemPayload":
        reader = _PayloadReader(command, raw)
        model = reader.mapping("contactModel")
        contact = model.get("contact")
        if not isinstance(contact, Mapping):
            raise reader.fail("'contactModel.contact' is required")
        contact_id = optional_text_or_int(contact.get("id"))
        if contact_id is None:
            raise reader.fail("'contactModel.contact.id' is required")
        return cls(
            contact=CollaborationContact(
                id=contact_id,
                email=optional_text(contact.get("email")),
                display_name=optional_text(contact.get("displayName")),
            )
        )


@dataclass(frozen=True)
class ChannelMarkedPayload(CommandPayload):
    channel_id: str
    read_timestamp: Optional[str]
    unread_count: int
    provider: str

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "ChannelMarkedPayload":
        reader = _PayloadReader(command, raw)
        unread = coerce_int(raw.get("unreadCount"), 0)
        return cls(
            channel_id=reader.text("channelId"),
            read_timestamp=reader.optional_text("readTimestamp"),
            unread_count=max(0, unread or 0),
            provider=reader.provider("provider"),
        )


@dataclass(frozen=True)
class MessageReplyPayload(CommandPayload):
    provider: str
    channel_id: str
    parent_timestamp: str
    reply: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "MessageReplyPayload":
        reader = _PayloadReader(command, raw)
        return cls(
            provider=reader.provider("provider"),
            channel_id=reader.text("channelId"),
            parent_timestamp=reader.text("parentTimestamp"),
            reply=dict(reader.mapping("reply")),
        )


@dataclass(frozen=True)
class IncomingLinkPayload(CommandPayload):
    uri: str
    sender_id: str
    provider: str

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "IncomingLinkPayload":
        reader = _PayloadReader(command, raw)
        return cls(
            uri=reader.text("uri"),
            sender_id=reader.text("senderId"),
            provider=reader.provider("provider"),
        )


@dataclass(frozen=True)
class SendToWebviewPayload(CommandPayload):
    ui_message: Mapping[str, Any]

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "SendToWebviewPayload":
        return cls(ui_message=dict(_PayloadReader(command, raw).mapping("uiMessage")))


@dataclass(frozen=True)
class ConfigurationChangedPayload(CommandPayload):
    sections: tuple[str, ...] = ()

    @classmethod
    def from_payload(
        cls, command: str, raw: Mapping[str, Any]
    ) -> "ConfigurationChangedPayload":
        reader = _PayloadReader(command, raw)
        sections = raw.get("sections")
        if not isinstance(sections, (list, tuple)):
            raise reader.fail("'sections' must be a list")
        return cls(sections=tuple(str(item) for item in sections))

    def affects(self, section: str) -> bool:
        return any(
            item == section or item.startswith(f"{section}.") for item in self.sections
        )
