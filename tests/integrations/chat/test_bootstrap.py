from __future__ import annotations

import json
import logging

import pytest

from unified_chat.integrations.chat.bootstrap import (
    ChatBootstrapStep,
    SetupRun,
    run_chat_bootstrap_steps,
)
from unified_chat.integrations.chat.errors import TokenNotFoundError
from unified_chat.integrations.chat.testing import FakeHost

LOGGER = logging.getLogger("test.chat.bootstrap")


def _step_events(caplog: pytest.LogCaptureFixture, event: str) -> list[dict]:
    prefix = f"{event} "
    return [
        json.loads(record.getMessage()[len(prefix) :])
        for record in caplog.records
        if record.getMessage().startswith(prefix)
    ]


@pytest.mark.anyio
async def test_follow_up_steps_run_before_the_rest_of_the_sequence() -> None:
    calls: list[str] = []

    def _record(name: str):
        async def _action() -> None:
            calls.append(name)

        return _action

    async def _fan_out() -> list[ChatBootstrapStep]:
        calls.append("provider_state")
        return [
            ChatBootstrapStep("hydrate", _record("hydrate:slack"), provider="slack"),
            ChatBootstrapStep(
                "hydrate", _record("hydrate:discord"), provider="discord"
            ),
        ]

    report = await run_chat_bootstrap_steps(
        run=SetupRun(run_id=1),
        logger=LOGGER,
        steps=(
            ChatBootstrapStep("provider_state", _fan_out),
            ChatBootstrapStep("contacts", _record("contacts"), required=False),
        ),
    )

    assert calls == ["provider_state", "hydrate:slack", "hydrate:discord", "contacts"]
    assert report.completed == [
        "provider_state",
        "hydrate:slack",
        "hydrate:discord",
        "contacts",
    ]
    assert not report.degraded


@pytest.mark.anyio
async def test_optional_failure_is_skipped_and_required_failure_stops() -> None:
    calls: list[str] = []

    async def _contacts() -> None:
        calls.append("contacts")
        raise RuntimeError("collaboration api missing")

    async def _token() -> None:
        calls.append("token")
        raise TokenNotFoundError()

    async def _providers() -> None:
        calls.append("providers")

    with pytest.raises(TokenNotFoundError):
        await run_chat_bootstrap_steps(
            run=SetupRun(run_id=7),
            logger=LOGGER,
            steps=(
                ChatBootstrapStep("contacts", _contacts, required=False),
                ChatBootstrapStep("token", _token),
                ChatBootstrapStep("providers", _providers),
            ),
        )

    assert calls == ["contacts", "token"]


@pytest.mark.anyio
async def test_setup_step_events_carry_run_and_provider(
    chat_env, caplog: pytest.LogCaptureFixture
) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1", "discord": "d-1"})
    chat.host.queue_quick_pick("Guild One")
    await chat.session.orchestrator.setup()
    caplog.clear()

    with caplog.at_level(logging.INFO):
        await chat.session.orchestrator.setup(False, "discord")

    events = _step_events(caplog, "chat.bootstrap.step_ok")
    assert {event["run_id"] for event in events} == {2}
    assert {event["forced_provider"] for event in events} == {"discord"}
    hydrated = [event["provider"] for event in events if event["step"] == "hydrate"]
    assert hydrated == ["slack", "discord"]
    assert [
        event["provider"] for event in events if event["step"] == "team_selection"
    ] == ["discord"]
    assert all(isinstance(event["elapsed_ms"], int) for event in events)


@pytest.mark.anyio
async def test_setup_report_lists_per_provider_steps(chat_env) -> None:
    host = FakeHost(quick_picks=["Guild Two"])
    chat = chat_env(tokens={"slack": "xoxp-1", "discord": "d-1"}, host=host)

    await chat.session.orchestrator.setup()

    report = chat.session.orchestrator.last_setup_report
    assert report is not None
    assert report.run.run_id == 1
    assert report.completed == [
        "migrations",
        "installation",
        "token",
        "providers",
        "team_selection:discord",
        "provider_state",
        "hydrate:slack",
        "hydrate:discord",
        "contacts",
    ]
    assert report.skipped == []


@pytest.mark.anyio
async def test_failed_hydration_names_the_provider(
    chat_env, caplog: pytest.LogCaptureFixture
) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1"})
    await chat.registry.initialize_token()
    backend = chat.backend("slack")

    async def _users_down(team_id):
        raise RuntimeError("users endpoint down")

    backend.fetch_users = _users_down

    with caplog.at_level(logging.WARNING):
        with pytest.raises(RuntimeError, match="users endpoint down"):
            await chat.session.orchestrator.setup()

    failed = _step_events(caplog, "chat.bootstrap.step_failed")
    assert [(event["step"], event["provider"]) for event in failed] == [
        ("hydrate", "slack")
    ]
    assert failed[0]["exc"] == {
        "type": "RuntimeError",
        "message": "users endpoint down",
    }
