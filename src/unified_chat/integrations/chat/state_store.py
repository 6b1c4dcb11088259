"""Persistent chat state.

State is a single JSON document keyed by provider. Every update replaces a
whole value (the user map, the channel list, ...) and rewrites the file
atomically, so readers never observe a partially updated entity. A missing
value (``None``) means "not loaded or invalidated"; an empty value means
"loaded and empty".
"""

from __future__ import annotations

import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence

from ...core.exceptions import StateStoreError
from ...core.logging_utils import log_event
from ...core.utils import atomic_write, now_iso
from .models import Channel, CurrentUser, User, UserPreferences

STATE_VERSION = 2
LEGACY_PROVIDER = "slack"
_LEGACY_KEYS = {
    "lastChannelId": "lastChannelId",
    "currentUserInfo": "currentUser",
    "users": "users",
    "channels": "channels",
    "userPrefs": "userPrefs",
}

logger = logging.getLogger(__name__)


def default_state() -> dict[str, Any]:
    return {
        "version": STATE_VERSION,
        "updatedAt": now_iso(),
        "installationId": None,
        "providers": {},
    }


def _migrate_v1_to_v2(state: dict[str, Any]) -> dict[str, Any]:
    # Version 1 stored a single provider's state at the top level.
    migrated = {
        "version": 2,
        "installationId": state.get("installationId"),
        "providers": dict(state.get("providers") or {}),
    }
    legacy: dict[str, Any] = {}
    for old_key, new_key in _LEGACY_KEYS.items():
        if old_key in state:
            legacy[new_key] = state[old_key]
    if legacy:
        existing = dict(migrated["providers"].get(LEGACY_PROVIDER) or {})
        legacy.update(existing)
        if isinstance(legacy.get("currentUser"), dict):
            legacy["currentUser"].setdefault("provider", LEGACY_PROVIDER)
        migrated["providers"][LEGACY_PROVIDER] = legacy
    return migrated


MIGRATIONS: Mapping[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: _migrate_v1_to_v2,
}


class ChatStateStore:
    """JSON-backed state store; ``path=None`` keeps state in memory only."""

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        logger_: Optional[logging.Logger] = None,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._logger = logger_ or logger
        self._state = self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._path is None or not self._path.exists():
            return default_state()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.state.load_failed",
                path=str(self._path),
                exc=exc,
            )
            return default_state()
        if not isinstance(data, dict):
            return default_state()
        data.setdefault("version", 1)
        return data

    def _save(self) -> None:
        self._state["updatedAt"] = now_iso()
        if self._path is None:
            return
        payload = json.dumps(self._state, indent=2, sort_keys=True)
        try:
            atomic_write(self._path, payload)
        except OSError as exc:
            raise StateStoreError(f"Unable to write {self._path}: {exc}") from exc

    def _provider_state(self, provider: str) -> dict[str, Any]:
        providers = self._state.get("providers")
        if not isinstance(providers, dict):
            return {}
        section = providers.get(provider)
        return section if isinstance(section, dict) else {}

    def _set_provider_value(self, provider: str, key: str, value: Any) -> None:
        providers = dict(self._state.get("providers") or {})
        section = dict(providers.get(provider) or {})
        if value is None:
            section.pop(key, None)
        else:
            section[key] = value
        providers[provider] = section
        self._state["providers"] = providers
        self._save()

    async def run_state_migrations(self) -> None:
        version = self._state.get("version")
        if not isinstance(version, int):
            version = 1
        if version >= STATE_VERSION:
            return
        state = self._state
        while version < STATE_VERSION:
            migrate = MIGRATIONS.get(version)
            if migrate is None:
                break
            state = migrate(state)
            version = state["version"]
        self._state = state
        self._save()
        log_event(
            self._logger,
            logging.INFO,
            "chat.state.migrated",
            version=self._state.get("version"),
        )

    @property
    def installation_id(self) -> Optional[str]:
        value = self._state.get("installationId")
        return value if isinstance(value, str) and value else None

    def generate_installation_id(self) -> str:
        installation_id = str(uuid.uuid4())
        self._state["installationId"] = installation_id
        self._save()
        return installation_id

    def providers(self) -> tuple[str, ...]:
        providers = self._state.get("providers")
        if not isinstance(providers, dict):
            return ()
        return tuple(providers)

    def get_last_channel_id(self, provider: str) -> Optional[str]:
        value = self._provider_state(provider).get("lastChannelId")
        return value if isinstance(value, str) and value else None

    def update_last_channel_id(self, provider: str, channel_id: Optional[str]) -> None:
        self._set_provider_value(provider, "lastChannelId", channel_id)

    def get_current_user(self, provider: str) -> Optional[CurrentUser]:
        raw = self._provider_state(provider).get("currentUser")
        if not isinstance(raw, dict):
            return None
        return CurrentUser.from_dict(raw)

    def update_current_user(self, provider: str, user: Optional[CurrentUser]) -> None:
        self._set_provider_value(
            provider, "currentUser", user.to_dict() if user is not None else None
        )

    def get_users(self, provider: str) -> Optional[Dict[str, User]]:
        raw = self._provider_state(provider).get("users")
        if not isinstance(raw, dict):
            return None
        return {str(key): User.from_dict(value) for key, value in raw.items()}

    def update_users(self, provider: str, users: Optional[Mapping[str, User]]) -> None:
        value = (
            {key: user.to_dict() for key, user in users.items()}
            if users is not None
            else None
        )
        self._set_provider_value(provider, "users", value)

    def get_channels(self, provider: str) -> Optional[list[Channel]]:
        raw = self._provider_state(provider).get("channels")
        if not isinstance(raw, list):
            return None
        return [Channel.from_dict(item) for item in raw if isinstance(item, dict)]

    def update_channels(
        self, provider: str, channels: Optional[Sequence[Channel]]
    ) -> None:
        value = (
            [channel.to_dict() for channel in channels]
            if channels is not None
            else None
        )
        self._set_provider_value(provider, "channels", value)

    def get_user_prefs(self, provider: str) -> Optional[UserPreferences]:
        raw = self._provider_state(provider).get("userPrefs")
        if not isinstance(raw, dict):
            return None
        return UserPreferences.from_dict(raw)

    def update_user_prefs(
        self, provider: str, prefs: Optional[UserPreferences]
    ) -> None:
        self._set_provider_value(
            provider, "userPrefs", prefs.to_dict() if prefs is not None else None
        )

    def clear_workspace_state(self, provider: str) -> None:
        """Drop state derived from the current team (channels, users, last channel)."""

        providers = dict(self._state.get("providers") or {})
        section = dict(providers.get(provider) or {})
        for key in ("channels", "users", "lastChannelId", "userPrefs"):
            section.pop(key, None)
        providers[provider] = section
        self._state["providers"] = providers
        self._save()

    def clear_provider_state(self, provider: str) -> None:
        providers = dict(self._state.get("providers") or {})
        if providers.pop(provider, None) is None:
            return
        self._state["providers"] = providers
        self._save()

    def clear_all(self, *, keep: Iterable[str] = ()) -> None:
        """Clear provider state except for providers in ``keep``.

        The installation id survives so a reset is not reported as a fresh
        install.
        """

        kept = set(keep)
        installation_id = self.installation_id
        providers = self._state.get("providers") or {}
        self._state = default_state()
        self._state["installationId"] = installation_id
        self._state["providers"] = {
            name: section for name, section in providers.items() if name in kept
        }
        self._save()

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._state)
