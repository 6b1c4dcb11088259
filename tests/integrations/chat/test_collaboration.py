from __future__ import annotations

import logging
from typing import Optional

import pytest

from unified_chat.core.telemetry import EventSource, EventType
from unified_chat.integrations.chat.constants import UNABLE_TO_MATCH_CONTACT
from unified_chat.integrations.chat.models import ChatArgs, CollaborationContact

SESSION_LINK = "https://example.invalid/join/abc"
INVITE_URI = "https://insiders.liveshare.vsengsaas.visualstudio.com/join?abc"
CONTACTS = (
    CollaborationContact(id="c-2", email="ALICE@example.com"),
    CollaborationContact(id="c-9", email="stranger@example.com"),
    CollaborationContact(id="c-0"),
)


def _contact(contact_id: str, email: Optional[str] = None) -> dict:
    return {"contactModel": {"contact": {"id": contact_id, "email": email}}}


async def _ready(chat_env, **kwargs):
    kwargs.setdefault("contacts", CONTACTS)
    chat = chat_env(tokens={"slack": "xoxp-1"}, collaboration=True, **kwargs)
    await chat.session.orchestrator.setup()
    return chat


@pytest.mark.anyio
async def test_contact_provider_uses_first_team_chat_provider(chat_env) -> None:
    chat = await _ready(chat_env)

    contacts = chat.session.bridge.contact_provider
    assert contacts is not None
    assert contacts.presence_provider_name == "slack"
    assert "vsls" in chat.registry.get_enabled_providers()


@pytest.mark.anyio
async def test_setup_matches_offered_contacts_by_email(chat_env) -> None:
    chat = await _ready(chat_env)
    contacts = chat.session.bridge.contact_provider

    assert chat.collaboration.api.contact_requests == 1
    assert contacts.get_matched_user_id("c-2") == "U2"
    assert contacts.get_matched_user_id("c-9") is None
    assert contacts.get_matched_user_id("c-0") is None
    assert contacts.contact_id_for_user("U2") == "c-2"


@pytest.mark.anyio
async def test_repeated_setup_rematches_on_the_same_contact_provider(
    chat_env,
) -> None:
    chat = await _ready(chat_env, contacts=())
    first = chat.session.bridge.contact_provider
    assert first.get_matched_user_id("c-2") is None

    chat.collaboration.api.contacts = [
        CollaborationContact(id="c-2", email="alice@example.com")
    ]
    await chat.session.orchestrator.setup(False)

    assert chat.session.bridge.contact_provider is first
    assert chat.collaboration.api.contact_requests == 2
    assert first.get_matched_user_id("c-2") == "U2"


@pytest.mark.anyio
async def test_contacts_request_failure_keeps_provider(
    chat_env, caplog: pytest.LogCaptureFixture
) -> None:
    chat = chat_env(tokens={"slack": "xoxp-1"}, collaboration=True)
    chat.collaboration.api.contacts_error = RuntimeError("contacts offline")

    with caplog.at_level(logging.WARNING):
        await chat.session.orchestrator.setup()

    assert chat.session.bridge.contact_provider is not None
    assert "chat.collaboration.contacts_request_failed" in caplog.text
    assert "chat.bootstrap.step_failed" not in caplog.text


@pytest.mark.anyio
async def test_unmatched_contact_shows_notice(chat_env) -> None:
    chat = await _ready(chat_env)

    opened = await chat.session.execute(
        "chat-with-vsls-contact", _contact("c-9", "stranger@example.com")
    )

    assert opened is False
    assert chat.host.infos == [(UNABLE_TO_MATCH_CONTACT, ())]
    assert chat.view.current_state is None


@pytest.mark.anyio
async def test_matched_contact_opens_existing_im(chat_env) -> None:
    events = []
    chat = await _ready(chat_env, telemetry_sink=events.append)

    opened = await chat.session.execute(
        "chat-with-vsls-contact", _contact("c-2", "alice@example.com")
    )
    await chat.session.tasks.wait_idle()

    assert opened is True
    assert chat.view.current_state == ("slack", "D2")
    assert chat.store.get_last_channel_id("slack") == "D2"
    assert chat.backend("slack").call_count("create_im_channel") == 0
    viewed = [e for e in events if e.event_type == EventType.VIEW_OPENED]
    assert viewed[-1].source == EventSource.VSLS_CONTACTS


@pytest.mark.anyio
async def test_contact_without_im_gets_one_created(chat_env) -> None:
    chat = await _ready(chat_env)

    opened = await chat.session.execute("chat-with-vsls-contact", _contact("U3"))
    await chat.session.tasks.wait_idle()

    assert opened is True
    assert chat.view.current_state == ("slack", "im-U3")
    assert chat.registry.get_channel("slack", "im-U3") is not None


@pytest.mark.anyio
async def test_share_to_user_creates_im_and_posts_link(chat_env) -> None:
    events = []
    chat = await _ready(chat_env, telemetry_sink=events.append)

    shared = await chat.session.execute(
        "live-share-from-menu",
        {"providerName": "slack", "user": {"id": "U3", "name": "bob"}},
    )

    assert shared is True
    assert chat.backend("slack").sent == [(SESSION_LINK, "im-U3", None)]
    recorded = [e for e in events if e.event_type == EventType.VSLS_SHARED]
    assert [(e.source, e.channel_id) for e in recorded] == [
        (EventSource.ACTIVITY, "im-U3")
    ]


@pytest.mark.anyio
async def test_share_failure_is_silent(
    chat_env, caplog: pytest.LogCaptureFixture
) -> None:
    events = []
    chat = await _ready(chat_env, telemetry_sink=events.append)
    chat.collaboration.api.share_error = RuntimeError("share refused")

    with caplog.at_level(logging.WARNING):
        shared = await chat.session.execute(
            "live-share-from-menu", {"providerName": "slack", "channelId": "C1"}
        )

    assert shared is False
    assert chat.backend("slack").sent == []
    assert not [e for e in events if e.event_type == EventType.VSLS_SHARED]
    assert "chat.collaboration.share_failed" in caplog.text
    assert chat.host.errors == []


@pytest.mark.anyio
async def test_share_without_channel_sends_nothing(chat_env) -> None:
    chat = await _ready(chat_env)

    shared = await chat.session.execute("live-share-slash", {"provider": "slack"})

    assert shared is False
    assert chat.collaboration.api.share_calls == [True]
    assert chat.backend("slack").sent == []


@pytest.mark.anyio
async def test_share_without_session_link_sends_nothing(chat_env) -> None:
    chat = await _ready(chat_env)
    chat.collaboration.api.session_uri = None

    shared = await chat.session.execute(
        "live-share-from-menu", {"providerName": "slack", "channelId": "C1"}
    )

    assert shared is False
    assert chat.backend("slack").sent == []


@pytest.mark.anyio
async def test_share_when_collaboration_unavailable(chat_env) -> None:
    chat = await _ready(chat_env)
    chat.collaboration.available = False

    shared = await chat.session.execute(
        "live-share-from-menu", {"providerName": "slack", "channelId": "C1"}
    )

    assert shared is False
    assert chat.collaboration.api.share_calls == []


@pytest.mark.anyio
async def test_invite_from_matched_user_uses_contact_id(chat_env) -> None:
    chat = await _ready(chat_env)

    handled = await chat.session.execute(
        "handle-incoming-links",
        {"uri": INVITE_URI, "senderId": "U2", "provider": "slack"},
    )

    assert handled is True
    assert chat.collaboration.api.invites == [("c-2", INVITE_URI)]


@pytest.mark.anyio
async def test_share_send_failure_is_silent(
    chat_env, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    chat = await _ready(chat_env)
    backend = chat.backend("slack")

    async def _rate_limited(text, channel_id, parent_timestamp):
        raise RuntimeError("rate_limited")

    monkeypatch.setattr(backend, "send_message", _rate_limited)

    with caplog.at_level(logging.WARNING):
        shared = await chat.session.bridge.share_vsls_link(
            ChatArgs(provider_name="slack", channel_id="C1")
        )

    assert shared is False
    assert "chat.collaboration.share_failed" in caplog.text
    assert "rate_limited" in caplog.text
    assert chat.host.errors == []
