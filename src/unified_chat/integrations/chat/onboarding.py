"""First-run prompt shown when no provider token is available."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from .constants import CONFIGURE_TOKEN_ACTION, NO_TOKEN_PROMPT, SIGN_IN_ACTION
from .host import HostEnvironment

OnboardingAction = Callable[[], Awaitable[Any]]


async def ask_for_auth(
    host: HostEnvironment,
    *,
    sign_in: OnboardingAction,
    configure_token: OnboardingAction,
) -> Optional[str]:
    """Offer sign-in or manual token entry; returns the chosen action label."""

    selected = await host.show_information_message(
        NO_TOKEN_PROMPT, SIGN_IN_ACTION, CONFIGURE_TOKEN_ACTION
    )
    if selected == SIGN_IN_ACTION:
        await sign_in()
    elif selected == CONFIGURE_TOKEN_ACTION:
        await configure_token()
    return selected
