from __future__ import annotations

import asyncio
import logging

import pytest

from unified_chat.core.telemetry import EventSource, EventType
from unified_chat.integrations.chat.constants import NO_TOKEN_PROMPT
from unified_chat.integrations.chat.errors import TokenNotFoundError
from unified_chat.integrations.chat.models import ChatArgs
from unified_chat.integrations.chat.testing import FakeHost


@pytest.mark.anyio
async def test_setup_hydrates_enabled_providers(chat_env) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1"})

    await chat.session.orchestrator.setup()
    await chat.session.tasks.wait_idle()

    backend = chat.backend("slack")
    assert backend.call_count("connect") == 1
    assert backend.call_count("fetch_user_prefs") == 1
    assert backend.call_count("subscribe_presence") == 1
    assert chat.store.get_users("slack") is not None
    assert [c.id for c in chat.store.get_channels("slack")] == ["C1", "C2", "D2"]
    assert chat.store.installation_id is not None


@pytest.mark.anyio
async def test_concurrent_setup_is_idempotent(chat_env) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1"})
    chat.store.update_last_channel_id("slack", "C2")

    await asyncio.gather(
        chat.session.orchestrator.setup(),
        chat.session.orchestrator.setup(),
    )
    await chat.session.tasks.wait_idle()

    assert chat.registry.get_enabled_providers() == ("slack",)
    assert len(chat.factory.created_for("slack")) == 1
    backend = chat.backend("slack")
    assert backend.call_count("connect") == 1
    assert backend.call_count("subscribe_presence") == 1
    assert chat.store.get_last_channel_id("slack") == "C2"


@pytest.mark.anyio
async def test_installation_is_recorded_once(chat_env) -> None:
    events = []
    chat = chat_env(tokens={"slack": "xoxp-1"}, telemetry_sink=events.append)

    await chat.session.orchestrator.setup()
    await chat.session.orchestrator.setup()

    installed = [e for e in events if e.event_type == EventType.EXTENSION_INSTALLED]
    assert len(installed) == 1
    assert chat.session.telemetry.unique_id == chat.store.installation_id


@pytest.mark.anyio
async def test_setup_without_token_raises_and_schedules_onboarding(
    chat_env, caplog: pytest.LogCaptureFixture
) -> None:
    host = FakeHost()
    chat = chat_env(tokens={}, host=host)

    with caplog.at_level(logging.INFO):
        with pytest.raises(TokenNotFoundError):
            await chat.session.orchestrator.setup(True)
        await chat.session.tasks.wait_idle()

    assert host.infos and host.infos[0][0] == NO_TOKEN_PROMPT
    assert "chat.bootstrap.step_failed" in caplog.text
    assert chat.factory.created == []


@pytest.mark.anyio
async def test_setup_without_prompt_permission_skips_onboarding(chat_env) -> None:
    host = FakeHost()
    chat = chat_env(tokens={}, host=host)

    with pytest.raises(TokenNotFoundError):
        await chat.session.orchestrator.setup(False)
    await chat.session.tasks.wait_idle()

    assert host.infos == []


@pytest.mark.anyio
async def test_collaboration_only_setup_does_not_prompt(chat_env) -> None:
    host = FakeHost()
    chat = chat_env(tokens={}, collaboration=True, host=host)

    await chat.session.orchestrator.setup(True)
    await chat.session.tasks.wait_idle()

    assert chat.registry.get_enabled_providers() == ("vsls",)
    assert host.infos == []
    assert host.quick_pick_calls == []


@pytest.mark.anyio
async def test_team_selection_is_requested_when_missing(chat_env) -> None:
    host = FakeHost(quick_picks=["Guild Two"])
    chat = chat_env(tokens={"discord": "d-1"}, host=host)

    await chat.session.orchestrator.setup()
    await chat.session.orchestrator.setup()
    await chat.session.tasks.wait_idle()

    team = chat.registry.get_current_team_for("discord")
    assert team is not None and team.id == "G2"
    assert len(host.quick_pick_calls) == 1


@pytest.mark.anyio
async def test_forced_provider_registers_new_token(chat_env) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1"})
    await chat.session.orchestrator.setup()
    chat.session.config.set_token("d-1", "discord")

    await chat.session.orchestrator.setup(False, "discord")

    assert set(chat.registry.get_enabled_providers()) == {"slack", "discord"}


@pytest.mark.anyio
async def test_optional_step_failure_does_not_abort_setup(
    chat_env, caplog: pytest.LogCaptureFixture
) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1"}, collaboration=True)

    async def _broken_api():
        raise RuntimeError("collaboration extension crashed")

    chat.collaboration.get_api = _broken_api

    with caplog.at_level(logging.WARNING):
        await chat.session.orchestrator.setup()

    assert chat.store.get_channels("slack") is not None
    assert "collaboration extension crashed" in caplog.text
    report = chat.session.orchestrator.last_setup_report
    assert report is not None and report.degraded
    assert report.skipped == ["contacts"]


@pytest.mark.anyio
async def test_open_chat_view_renders_and_records(chat_env) -> None:
    events = []
    chat = chat_env(tokens={"slack": "xoxp-1"}, telemetry_sink=events.append)

    opened = await chat.session.orchestrator.open_chat_view(
        ChatArgs(provider_name="slack", channel_id="C2", source=EventSource.ACTIVITY)
    )
    await chat.session.tasks.wait_idle()

    assert opened
    assert chat.view.current_state == ("slack", "C2")
    assert chat.view.load_count == 1
    assert chat.store.get_last_channel_id("slack") == "C2"
    viewed = [e for e in events if e.event_type == EventType.VIEW_OPENED]
    assert viewed and viewed[0].source == EventSource.ACTIVITY
    assert chat.backend("slack").call_count("load_channel_history") == 1
    assert chat.registry.get_messages("slack", "C2")


@pytest.mark.anyio
async def test_open_chat_view_without_args_and_cancel_is_noop(chat_env) -> None:
    host = FakeHost(quick_picks=[None])
    chat = chat_env(tokens={"slack": "xoxp-1"}, host=host)
    await chat.session.orchestrator.setup()

    assert not await chat.session.orchestrator.open_chat_view()
    assert chat.view.load_count == 0


@pytest.mark.anyio
async def test_change_workspace_clears_and_reinitializes(chat_env) -> None:
    host = FakeHost(quick_picks=["Guild One", "Guild Two"])
    chat = chat_env(tokens={"slack": "xoxp-1", "discord": "d-1"}, host=host)
    await chat.session.orchestrator.setup()
    chat.store.update_last_channel_id("discord", "G1-1")
    backend = chat.backend("discord")
    fetched_before = backend.call_count("fetch_channels")

    changed = await chat.session.orchestrator.change_workspace()

    assert changed
    assert chat.registry.get_current_team_for("discord").id == "G2"
    assert chat.store.get_last_channel_id("discord") is None
    assert backend.call_count("fetch_channels") == fetched_before + 1
    assert [channel.id for channel in chat.store.get_channels("discord")] == ["G2-1"]


@pytest.mark.anyio
async def test_change_workspace_without_capable_provider(chat_env) -> None:
    host = FakeHost()
    chat = chat_env(tokens={"slack": "xoxp-1"}, host=host)
    await chat.session.orchestrator.setup()

    assert not await chat.session.orchestrator.change_workspace()
    assert host.quick_pick_calls == []


@pytest.mark.anyio
async def test_reset_keeps_collaboration_state(chat_env) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1"}, collaboration=True)
    await chat.session.orchestrator.setup()
    chat.store.update_last_channel_id("vsls", "V1")
    chat.store.update_last_channel_id("slack", "C1")
    slack_before = chat.backend("slack")

    await chat.session.orchestrator.reset()

    assert chat.store.get_last_channel_id("vsls") == "V1"
    assert chat.store.get_last_channel_id("slack") is None
    assert slack_before.destroyed
    assert chat.backend("slack") is not slack_before
    assert chat.store.get_channels("slack") is not None
    assert None in chat.view.refreshes
