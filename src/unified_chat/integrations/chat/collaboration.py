"""Bridge between the peer collaboration session and provider channels.

Sharing a session link is best effort: a missing collaboration API, a
missing link, an unresolved channel or a failed send ends the flow quietly.
Contacts offered by the collaboration service are matched to chat users by
email each time the contact provider is initialized.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional

from ...core.logging_utils import log_event
from ...core.telemetry import EventSource, EventType, TelemetryReporter
from .constants import UNABLE_TO_MATCH_CONTACT
from .host import CollaborationHost, HostEnvironment, LiveShareApi
from .models import ChatArgs, CollaborationContact, User
from .registry import ProviderRegistry

OpenView = Callable[[ChatArgs], Awaitable[None]]


class CollaborationContactProvider:
    """Maps collaboration contacts to users of one team-chat provider."""

    def __init__(
        self,
        *,
        presence_provider_name: str,
        registry: ProviderRegistry,
        api: LiveShareApi,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.presence_provider_name = presence_provider_name
        self._registry = registry
        self._api = api
        self._logger = logger or logging.getLogger(__name__)
        self._matched: Dict[str, str] = {}

    def match_contacts(
        self, contacts: Iterable[CollaborationContact]
    ) -> Dict[str, str]:
        """Match contacts to provider users by email; returns contact -> user id."""

        users = self._registry.store.get_users(self.presence_provider_name) or {}
        by_email = {
            user.email.lower(): user.id for user in users.values() if user.email
        }
        matched = dict(self._matched)
        for contact in contacts:
            if not contact.email:
                continue
            user_id = by_email.get(contact.email.lower())
            if user_id is not None:
                matched[contact.id] = user_id
        self._matched = matched
        return dict(matched)

    def get_matched_user_id(self, contact_id: str) -> Optional[str]:
        return self._matched.get(contact_id)

    def contact_id_for_user(self, user_id: str) -> Optional[str]:
        for contact_id, matched_user_id in self._matched.items():
            if matched_user_id == user_id:
                return contact_id
        return None

    async def notify_invite_received(self, sender_id: str, uri: str) -> None:
        contact_id = self.contact_id_for_user(sender_id) or sender_id
        log_event(
            self._logger,
            logging.INFO,
            "chat.collaboration.invite_received",
            provider=self.presence_provider_name,
            sender_id=sender_id,
        )
        await self._api.notify_invite_received(contact_id, uri)


class CollaborationBridge:
    def __init__(
        self,
        *,
        registry: ProviderRegistry,
        host: HostEnvironment,
        telemetry: TelemetryReporter,
        open_view: OpenView,
        collaboration: Optional[CollaborationHost] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry
        self._host = host
        self._telemetry = telemetry
        self._open_view = open_view
        self._collaboration = collaboration
        self._logger = logger or logging.getLogger(__name__)
        self._contact_provider: Optional[CollaborationContactProvider] = None

    @property
    def contact_provider(self) -> Optional[CollaborationContactProvider]:
        return self._contact_provider

    async def _get_api(self) -> Optional[LiveShareApi]:
        if self._collaboration is None or not self._collaboration.is_available():
            return None
        return await self._collaboration.get_api()

    async def initialize_contact_provider(
        self,
    ) -> Optional[CollaborationContactProvider]:
        presence_provider = next(
            (
                provider
                for provider in self._registry.get_enabled_providers()
                if not self._registry.capabilities(provider).is_collaboration
            ),
            None,
        )
        api = await self._get_api() if presence_provider is not None else None
        if presence_provider is None or api is None:
            self._contact_provider = None
            return None
        contact_provider = self._contact_provider
        if (
            contact_provider is None
            or contact_provider.presence_provider_name != presence_provider
        ):
            contact_provider = CollaborationContactProvider(
                presence_provider_name=presence_provider,
                registry=self._registry,
                api=api,
                logger=self._logger,
            )
            self._contact_provider = contact_provider
        await self._refresh_contacts(contact_provider, api)
        return contact_provider

    async def _refresh_contacts(
        self, contact_provider: CollaborationContactProvider, api: LiveShareApi
    ) -> None:
        try:
            contacts = await api.request_contacts()
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.collaboration.contacts_request_failed",
                provider=contact_provider.presence_provider_name,
                exc=exc,
            )
            return
        matched = contact_provider.match_contacts(contacts)
        log_event(
            self._logger,
            logging.INFO,
            "chat.collaboration.contacts_initialized",
            provider=contact_provider.presence_provider_name,
            contacts=len(contacts),
            matched=len(matched),
        )

    async def share_vsls_link(self, args: ChatArgs) -> bool:
        """Send a collaboration session link to a channel or user; True when sent."""

        provider = args.provider_name
        try:
            api = await self._get_api()
            if api is None:
                return False
            session_uri = await api.share(suppress_notification=True)
            channel_id = args.channel_id
            if channel_id is None and args.user is not None:
                channel = self._registry.get_im_channel(provider, args.user)
                if channel is None:
                    channel = await self._registry.create_im_channel(
                        provider, args.user
                    )
                if channel is not None:
                    channel_id = channel.id
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.collaboration.share_failed",
                provider=provider,
                exc=exc,
            )
            return False
        self._telemetry.record(
            EventType.VSLS_SHARED, EventSource.ACTIVITY, channel_id, provider
        )
        if not session_uri or not channel_id:
            log_event(
                self._logger,
                logging.DEBUG,
                "chat.collaboration.share_skipped",
                provider=provider,
                has_link=bool(session_uri),
                has_channel=bool(channel_id),
            )
            return False
        try:
            await self._registry.send_message(provider, str(session_uri), channel_id)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "chat.collaboration.share_failed",
                provider=provider,
                channel_id=channel_id,
                exc=exc,
            )
            return False
        return True

    def _resolve_contact_user(
        self, provider: str, contact: CollaborationContact
    ) -> Optional[User]:
        contact_provider = self._contact_provider
        matched_id = (
            contact_provider.get_matched_user_id(contact.id)
            if contact_provider is not None
            else None
        )
        if matched_id is not None:
            return self._registry.get_user_for_id(provider, matched_id)
        # The contact id may itself be a provider user id.
        return self._registry.get_user_for_id(provider, contact.id)

    async def chat_with_vsls_contact(self, contact: CollaborationContact) -> bool:
        contact_provider = self._contact_provider
        if contact_provider is None:
            return False
        provider = contact_provider.presence_provider_name
        user = self._resolve_contact_user(provider, contact)
        if user is None:
            await self._host.show_information_message(UNABLE_TO_MATCH_CONTACT)
            return False
        channel = self._registry.get_im_channel(provider, user)
        if channel is None:
            channel = await self._registry.create_im_channel(provider, user)
        if channel is None:
            return False
        self._registry.store.update_last_channel_id(provider, channel.id)
        await self._open_view(
            ChatArgs(
                provider_name=provider,
                channel_id=channel.id,
                user=user,
                source=EventSource.VSLS_CONTACTS,
            )
        )
        return True

    async def notify_invite_received(self, sender_id: str, uri: str) -> bool:
        contact_provider = self._contact_provider
        if contact_provider is None:
            return False
        await contact_provider.notify_invite_received(sender_id, uri)
        return True
