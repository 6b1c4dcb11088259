"""Provider-agnostic chat models shared by the orchestration layer.

All models are frozen; updates go through ``dataclasses.replace`` so a
flow interrupted at a suspension point never leaves an entity half-edited.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from ...core.telemetry import EventSource


class UserPresence(str, Enum):
    AVAILABLE = "available"
    DO_NOT_DISTURB = "doNotDisturb"
    INVISIBLE = "invisible"
    IDLE = "idle"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class ChannelType(str, Enum):
    CHANNEL = "channel"
    GROUP = "group"
    IM = "im"


@dataclass(frozen=True)
class Team:
    id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Team":
        return cls(id=str(raw["id"]), name=str(raw.get("name") or raw["id"]))


@dataclass(frozen=True)
class CurrentUser:
    """The signed-in user for one provider."""

    id: str
    name: str
    provider: str
    teams: tuple[Team, ...] = field(default_factory=tuple)
    current_team_id: Optional[str] = None

    @property
    def current_team(self) -> Optional[Team]:
        for team in self.teams:
            if team.id == self.current_team_id:
                return team
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "teams": [team.to_dict() for team in self.teams],
            "currentTeamId": self.current_team_id,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CurrentUser":
        teams = raw.get("teams") or []
        current_team_id = raw.get("currentTeamId")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            provider=str(raw.get("provider") or ""),
            teams=tuple(Team.from_dict(team) for team in teams),
            current_team_id=(
                str(current_team_id) if current_team_id is not None else None
            ),
        )


@dataclass(frozen=True)
class User:
    id: str
    name: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    image_url: Optional[str] = None
    presence: UserPresence = UserPresence.UNKNOWN
    is_bot: bool = False
    is_deleted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "fullName": self.full_name,
            "email": self.email,
            "imageUrl": self.image_url,
            "presence": self.presence.value,
            "isBot": self.is_bot,
            "isDeleted": self.is_deleted,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "User":
        presence = raw.get("presence")
        try:
            parsed_presence = UserPresence(presence)
        except ValueError:
            parsed_presence = UserPresence.UNKNOWN
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            full_name=raw.get("fullName"),
            email=raw.get("email"),
            image_url=raw.get("imageUrl"),
            presence=parsed_presence,
            is_bot=bool(raw.get("isBot", False)),
            is_deleted=bool(raw.get("isDeleted", False)),
        )


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    type: ChannelType = ChannelType.CHANNEL
    team_id: Optional[str] = None
    category_name: Optional[str] = None
    unread_count: int = 0
    read_timestamp: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "teamId": self.team_id,
            "categoryName": self.category_name,
            "unreadCount": self.unread_count,
            "readTimestamp": self.read_timestamp,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Channel":
        try:
            channel_type = ChannelType(raw.get("type", ChannelType.CHANNEL.value))
        except ValueError:
            channel_type = ChannelType.CHANNEL
        unread = raw.get("unreadCount")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            type=channel_type,
            team_id=raw.get("teamId"),
            category_name=raw.get("categoryName"),
            unread_count=unread if isinstance(unread, int) else 0,
            read_timestamp=raw.get("readTimestamp"),
        )


@dataclass(frozen=True)
class ChannelLabel:
    """Selection-only projection of a channel; recomputed on demand."""

    label: str
    channel: Channel
    provider_name: str
    team_name: str
    unread: int


@dataclass(frozen=True)
class ChatArgs:
    """Addressing tuple used to open or route to a chat view.

    When ``channel_id`` is missing and ``user`` is set, the target is the
    direct-message channel with that user.
    """

    provider_name: str
    channel_id: Optional[str] = None
    user: Optional[User] = None
    source: EventSource = EventSource.COMMAND


@dataclass(frozen=True)
class UserPreferences:
    muted_channels: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"mutedChannels": list(self.muted_channels)}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "UserPreferences":
        muted = raw.get("mutedChannels") or []
        return cls(muted_channels=tuple(str(item) for item in muted))


@dataclass(frozen=True)
class CollaborationContact:
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


__all__ = [
    "ChannelLabel",
    "ChannelType",
    "Channel",
    "ChatArgs",
    "CollaborationContact",
    "CurrentUser",
    "Team",
    "User",
    "UserPreferences",
    "UserPresence",
]
