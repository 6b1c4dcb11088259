"""Provider capability declarations.

Flows branch on capabilities, never on provider names, so a new backend
only needs a capability entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ...core.config import COLLABORATION_PROVIDER


@dataclass(frozen=True)
class ProviderCapabilities:
    """Capabilities surfaced by a concrete chat backend."""

    supports_workspaces: bool = False
    supports_snooze: bool = False
    supports_idle: bool = True
    requires_team_selection: bool = False
    is_collaboration: bool = False
    requires_token: bool = True


DEFAULT_CAPABILITIES = ProviderCapabilities()

KNOWN_CAPABILITIES: Mapping[str, ProviderCapabilities] = {
    "slack": ProviderCapabilities(supports_snooze=True, supports_idle=False),
    "discord": ProviderCapabilities(
        supports_workspaces=True,
        requires_team_selection=True,
    ),
    COLLABORATION_PROVIDER: ProviderCapabilities(
        requires_team_selection=True,
        is_collaboration=True,
        requires_token=False,
    ),
}


def capabilities_for(provider: str) -> ProviderCapabilities:
    return KNOWN_CAPABILITIES.get(provider, DEFAULT_CAPABILITIES)
