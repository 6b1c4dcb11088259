"""Test harness configuration.

This repo uses a `src/` layout. In some developer environments an older
installed `unified_chat` package can shadow the local sources.

Ensure tests always import the in-repo code.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import pytest
import yaml

DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS = 120


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    src_path = str(src_dir)
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """
    Apply a default per-test timeout to non-integration tests.

    This relies on `pytest-timeout` when installed; if it isn't installed, the
    marker is inert but still documents the intent.
    """
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS))


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


def write_chat_config(root: Path, **section: Any) -> Path:
    """Write ``unified-chat.yml`` with the given ``chat`` section keys."""

    path = root / "unified-chat.yml"
    path.write_text(yaml.safe_dump({"chat": section}), encoding="utf-8")
    return path


@dataclass
class ChatEnv:
    root: Path
    host: Any
    view: Any
    factory: Any
    collaboration: Any
    session: Any
    env: dict[str, str] = field(default_factory=dict)

    @property
    def registry(self) -> Any:
        return self.session.registry

    @property
    def store(self) -> Any:
        return self.session.store

    def backend(self, provider: str) -> Any:
        return self.factory.latest(provider)


def slack_template() -> dict[str, Any]:
    from unified_chat.integrations.chat.models import (
        Channel,
        ChannelType,
        CurrentUser,
        Team,
        User,
        UserPresence,
    )

    return {
        "current_user": CurrentUser(
            id="U1",
            name="me",
            provider="slack",
            teams=(Team(id="T1", name="Acme"),),
            current_team_id="T1",
        ),
        "users": {
            "U1": User(id="U1", name="me", email="me@example.com"),
            "U2": User(
                id="U2",
                name="alice",
                email="alice@example.com",
                presence=UserPresence.AVAILABLE,
            ),
            "U3": User(id="U3", name="bob", email="bob@example.com"),
        },
        "channels": [
            Channel(id="C1", name="general"),
            Channel(id="C2", name="random", unread_count=3),
            Channel(id="D2", name="alice", type=ChannelType.IM, unread_count=1),
        ],
        "history": {
            "100.1": {"text": "hello", "userId": "U2"},
            "100.2": {"text": "again", "userId": "U2"},
        },
    }


def discord_template() -> dict[str, Any]:
    from unified_chat.integrations.chat.models import Channel, CurrentUser, Team, User

    return {
        "current_user": CurrentUser(
            id="D1",
            name="me",
            provider="discord",
            teams=(Team(id="G1", name="Guild One"), Team(id="G2", name="Guild Two")),
        ),
        "users": {"D1": User(id="D1", name="me")},
        "channels": [
            Channel(id="G1-1", name="lobby", team_id="G1", category_name="Text"),
            Channel(id="G2-1", name="arena", team_id="G2", category_name="Text"),
        ],
    }


@pytest.fixture()
async def chat_env(tmp_path: Path, anyio_backend: str):
    """Builder for a fully wired ``ChatSession`` over in-memory fakes."""

    from unified_chat.core.config import default_token_env
    from unified_chat.integrations.chat.session import ChatSession
    from unified_chat.integrations.chat.testing import (
        FakeBackendFactory,
        FakeChatView,
        FakeCollaborationHost,
        FakeHost,
        FakeLiveShare,
    )

    built: list[ChatEnv] = []

    def _build(
        *,
        tokens: Optional[Mapping[str, str]] = None,
        providers: Sequence[str] = ("slack", "discord"),
        collaboration: bool = False,
        contacts: Sequence[Any] = (),
        issues_url: Optional[str] = None,
        templates: Optional[Mapping[str, Mapping[str, Any]]] = None,
        host: Optional[FakeHost] = None,
        telemetry_sink: Any = None,
    ) -> ChatEnv:
        extra = {"issues_url": issues_url} if issues_url else {}
        write_chat_config(
            tmp_path,
            providers=list(providers),
            collaboration={"enabled": collaboration},
            **extra,
        )
        env = {
            default_token_env(provider): token
            for provider, token in (tokens or {}).items()
        }
        factory = FakeBackendFactory(
            **(
                templates
                if templates is not None
                else {"slack": slack_template(), "discord": discord_template()}
            )
        )
        collab = (
            FakeCollaborationHost(FakeLiveShare(contacts=contacts))
            if collaboration
            else None
        )
        fake_host = host or FakeHost()
        view = FakeChatView()
        session = ChatSession(
            tmp_path,
            host=fake_host,
            view=view,
            backend_factory=factory,
            collaboration=collab,
            telemetry_sink=telemetry_sink,
            env=env,
        )
        chat = ChatEnv(
            root=tmp_path,
            host=fake_host,
            view=view,
            factory=factory,
            collaboration=collab,
            session=session,
            env=env,
        )
        built.append(chat)
        return chat

    yield _build

    for chat in built:
        await chat.session.close()
