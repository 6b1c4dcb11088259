from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from unified_chat.core.config import (
    DEFAULT_STATE_FILE,
    ConfigHelper,
    default_token_env,
    load_chat_config,
)
from unified_chat.core.exceptions import ConfigError


def _write(root: Path, section: dict) -> None:
    (root / "unified-chat.yml").write_text(
        yaml.safe_dump({"chat": section}), encoding="utf-8"
    )


def test_load_chat_config_defaults_without_file(tmp_path: Path) -> None:
    config = load_chat_config(tmp_path)

    assert config.supported_providers == ("slack", "discord")
    assert config.collaboration_enabled is True
    assert config.telemetry_enabled is True
    assert config.state_file == tmp_path / DEFAULT_STATE_FILE
    assert config.token_envs["slack"] == "UNIFIED_CHAT_SLACK_TOKEN"
    assert config.issues_url is None


def test_load_chat_config_normalizes_providers(tmp_path: Path) -> None:
    _write(tmp_path, {"providers": ["Slack", "slack", " discord "]})

    config = load_chat_config(tmp_path)

    assert config.supported_providers == ("slack", "discord")


@pytest.mark.parametrize(
    "section",
    [
        {"providers": []},
        {"providers": ["vsls"]},
        {"collaboration": {"enabled": "sometimes"}},
        {"state_file": ""},
        {"slack": "not-a-mapping"},
        {"issues_url": "tracker.example.com/issues"},
        {"issues_url": 42},
    ],
)
def test_load_chat_config_rejects_invalid_shapes(tmp_path: Path, section) -> None:
    _write(tmp_path, section)

    with pytest.raises(ConfigError):
        load_chat_config(tmp_path)


def test_environment_token_overrides_file_token(tmp_path: Path) -> None:
    _write(tmp_path, {"slack": {"token": "from-file"}})
    helper = ConfigHelper(tmp_path, env={default_token_env("slack"): " from-env "})

    assert helper.get_token("slack") == "from-env"
    assert ConfigHelper(tmp_path, env={}).get_token("slack") == "from-file"


def test_custom_token_env_name(tmp_path: Path) -> None:
    _write(tmp_path, {"discord": {"token_env": "MY_DISCORD"}})
    helper = ConfigHelper(tmp_path, env={"MY_DISCORD": "abc"})

    assert helper.get_token("discord") == "abc"


def test_dotenv_supplies_missing_tokens(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("UNIFIED_CHAT_SLACK_TOKEN=xoxp-dotenv\n")

    assert ConfigHelper(tmp_path, env={}).get_token("slack") == "xoxp-dotenv"


def test_set_and_clear_token_round_trip(tmp_path: Path) -> None:
    _write(tmp_path, {"providers": ["slack"], "telemetry": {"enabled": False}})
    helper = ConfigHelper(tmp_path, env={})

    helper.set_token("xoxp-1", "slack")

    raw = yaml.safe_load(helper.config_path.read_text(encoding="utf-8"))
    assert raw["chat"]["slack"] == {"token": "xoxp-1"}
    assert raw["chat"]["telemetry"] == {"enabled": False}
    assert helper.get_token("slack") == "xoxp-1"

    helper.clear_token("slack")

    raw = yaml.safe_load(helper.config_path.read_text(encoding="utf-8"))
    assert "slack" not in raw["chat"]
    assert helper.get_token("slack") is None


def test_issues_url_is_read_from_chat_section(tmp_path: Path) -> None:
    _write(tmp_path, {"issues_url": "https://tracker.example.com/issues/new"})

    config = load_chat_config(tmp_path)

    assert config.issues_url == "https://tracker.example.com/issues/new"
