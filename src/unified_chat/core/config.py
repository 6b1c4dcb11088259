"""Chat configuration loading.

Configuration lives in ``unified-chat.yml`` at the workspace root under the
``chat`` section. Tokens may also come from the environment (or a ``.env``
file next to the config); environment values win over file values. Tokens
are written back to the YAML file by ``ConfigHelper.set_token``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .exceptions import ConfigError
from .utils import atomic_write

logger = logging.getLogger("unified_chat.core.config")

CONFIG_ROOT = "chat"
CONFIG_FILENAME = "unified-chat.yml"
DOTENV_FILENAME = ".env"
DEFAULT_STATE_FILE = ".unified-chat/state.json"
DEFAULT_SUPPORTED_PROVIDERS = ("slack", "discord")
COLLABORATION_PROVIDER = "vsls"
TOKEN_ENV_TEMPLATE = "UNIFIED_CHAT_{provider}_TOKEN"


def default_token_env(provider: str) -> str:
    return TOKEN_ENV_TEMPLATE.format(provider=provider.upper())


def _default_chat_section() -> Dict[str, Any]:
    return {
        "providers": list(DEFAULT_SUPPORTED_PROVIDERS),
        "collaboration": {"enabled": True},
        "state_file": DEFAULT_STATE_FILE,
        "telemetry": {"enabled": True},
        "logging": {"level": "INFO"},
    }


@dataclass(frozen=True)
class ChatConfig:
    root: Path
    config_path: Path
    state_file: Path
    supported_providers: tuple[str, ...]
    collaboration_enabled: bool
    telemetry_enabled: bool
    log_level: str
    issues_url: Optional[str] = None
    token_envs: Mapping[str, str] = field(default_factory=dict)
    file_tokens: Mapping[str, str] = field(default_factory=dict)

    def token_for(
        self, provider: str, *, env: Optional[Mapping[str, str]] = None
    ) -> Optional[str]:
        source = os.environ if env is None else env
        env_name = self.token_envs.get(provider) or default_token_env(provider)
        value = source.get(env_name)
        if isinstance(value, str) and value.strip():
            return value.strip()
        token = self.file_tokens.get(provider)
        if isinstance(token, str) and token.strip():
            return token.strip()
        return None


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _chat_section(raw: Mapping[str, Any], path: Path) -> Dict[str, Any]:
    section = raw.get(CONFIG_ROOT)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"{path}: '{CONFIG_ROOT}' must be a mapping")
    return section


def _parse_providers(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list) or not value:
        raise ConfigError(f"{CONFIG_ROOT}.providers must be a non-empty list")
    providers: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"{CONFIG_ROOT}.providers entries must be strings")
        name = item.strip().lower()
        if name == COLLABORATION_PROVIDER:
            raise ConfigError(
                f"{CONFIG_ROOT}.providers must not list '{COLLABORATION_PROVIDER}'"
            )
        if name not in providers:
            providers.append(name)
    return tuple(providers)


def _section_flag(section: Mapping[str, Any], key: str, default: bool) -> bool:
    value = section.get(key)
    if value is None:
        return default
    if not isinstance(value, dict):
        raise ConfigError(f"{CONFIG_ROOT}.{key} must be a mapping")
    enabled = value.get("enabled", default)
    if not isinstance(enabled, bool):
        raise ConfigError(f"{CONFIG_ROOT}.{key}.enabled must be a boolean")
    return enabled


def load_chat_config(root: Path) -> ChatConfig:
    """Load ``unified-chat.yml`` (and ``.env``) from ``root``."""

    root = Path(root)
    config_path = root / CONFIG_FILENAME
    section = _default_chat_section()
    section.update(_chat_section(_read_yaml(config_path), config_path))

    supported = _parse_providers(section.get("providers"))

    state_file_value = section.get("state_file")
    if not isinstance(state_file_value, str) or not state_file_value.strip():
        raise ConfigError(f"{CONFIG_ROOT}.state_file must be a string path")
    state_file = Path(state_file_value).expanduser()
    if not state_file.is_absolute():
        state_file = root / state_file

    logging_section = section.get("logging") or {}
    if not isinstance(logging_section, dict):
        raise ConfigError(f"{CONFIG_ROOT}.logging must be a mapping")
    log_level = str(logging_section.get("level", "INFO")).upper()

    issues_url = section.get("issues_url")
    if issues_url is not None and (
        not isinstance(issues_url, str)
        or not issues_url.startswith(("https://", "http://"))
    ):
        raise ConfigError(f"{CONFIG_ROOT}.issues_url must be an http(s) URL")

    token_envs: Dict[str, str] = {}
    file_tokens: Dict[str, str] = {}
    for provider in supported:
        provider_section = section.get(provider) or {}
        if not isinstance(provider_section, dict):
            raise ConfigError(f"{CONFIG_ROOT}.{provider} must be a mapping")
        token_env = provider_section.get("token_env", default_token_env(provider))
        if not isinstance(token_env, str) or not token_env.strip():
            raise ConfigError(f"{CONFIG_ROOT}.{provider}.token_env must be non-empty")
        token_envs[provider] = token_env.strip()
        token = provider_section.get("token")
        if isinstance(token, str) and token.strip():
            file_tokens[provider] = token.strip()

    dotenv_path = root / DOTENV_FILENAME
    if dotenv_path.exists():
        dotenv = dotenv_values(dotenv_path)
        for provider, env_name in token_envs.items():
            value = dotenv.get(env_name)
            if provider not in file_tokens and isinstance(value, str) and value:
                file_tokens[provider] = value.strip()

    return ChatConfig(
        root=root,
        config_path=config_path,
        state_file=state_file,
        supported_providers=supported,
        collaboration_enabled=_section_flag(section, "collaboration", True),
        telemetry_enabled=_section_flag(section, "telemetry", True),
        log_level=log_level,
        issues_url=issues_url,
        token_envs=token_envs,
        file_tokens=file_tokens,
    )


class ConfigHelper:
    """Reads and writes the chat configuration file.

    Each read reloads the file so token changes made elsewhere are seen by
    the next provider initialization.
    """

    def __init__(self, root: Path, *, env: Optional[Mapping[str, str]] = None) -> None:
        self._root = Path(root)
        self._env = env

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config_path(self) -> Path:
        return self._root / CONFIG_FILENAME

    def load(self) -> ChatConfig:
        return load_chat_config(self._root)

    def get_token(self, provider: str) -> Optional[str]:
        return self.load().token_for(provider, env=self._env)

    def set_token(self, token: str, provider: str) -> None:
        self._update_provider_section(provider, token=token)
        logger.info("Stored token for provider %s", provider)

    def clear_token(self, provider: str) -> None:
        self._update_provider_section(provider, token=None)

    def _update_provider_section(self, provider: str, *, token: Optional[str]) -> None:
        path = self.config_path
        raw = _read_yaml(path)
        section = dict(_chat_section(raw, path))
        provider_section = section.get(provider) or {}
        if not isinstance(provider_section, dict):
            raise ConfigError(f"{CONFIG_ROOT}.{provider} must be a mapping")
        provider_section = dict(provider_section)
        if token is None:
            provider_section.pop("token", None)
        else:
            provider_section["token"] = token
        if provider_section:
            section[provider] = provider_section
        else:
            section.pop(provider, None)
        raw[CONFIG_ROOT] = section
        atomic_write(path, yaml.safe_dump(raw, sort_keys=False))


__all__ = [
    "CONFIG_FILENAME",
    "CONFIG_ROOT",
    "COLLABORATION_PROVIDER",
    "ChatConfig",
    "ConfigHelper",
    "DEFAULT_STATE_FILE",
    "DEFAULT_SUPPORTED_PROVIDERS",
    "default_token_env",
    "load_chat_config",
]
