from __future__ import annotations

TOKEN_NOT_FOUND = "Chat token not found. Sign in or configure a token to continue."
TOKEN_PLACEHOLDER = "Paste token here"
CHANGE_CHANNEL_TITLE = "Select a channel"
CHANGE_WORKSPACE_TITLE = "Select a workspace"
CHANGE_PROVIDER_TITLE = "Select a provider"
RELOAD_CHANNELS = "$(sync) Reload Channels"
SELECT_SELF_PRESENCE = "Select your presence status"
SELECT_DND_DURATION = "Select snooze duration for Do Not Disturb"
REPORT_ISSUE = "Report issue"
UNABLE_TO_MATCH_CONTACT = "Unable to match this contact to a chat user."
NO_TOKEN_PROMPT = "Sign in to start chatting from your editor."
SIGN_IN_ACTION = "Sign in with Slack"
CONFIGURE_TOKEN_ACTION = "Configure token"
CURRENT_PRESENCE_MARKER = "current"


def invalid_token_message(provider_title: str) -> str:
    return (
        f"The {provider_title} token cannot be validated. "
        "Please enter a valid token."
    )


LIVE_SHARE_BASE_URL = "insiders.liveshare.vsengsaas.visualstudio.com"
VSLS_ENABLED_CONTEXT = "chat:vslsEnabled"

OAUTH_URLS = {
    "slack": "https://slack.com/oauth/authorize?scope=client",
    "discord": (
        "https://discordapp.com/api/oauth2/authorize"
        "?response_type=code&scope=identify%20guilds"
    ),
}
OAUTH_PROVIDER = "slack"

# Snooze durations (minutes) offered for Do Not Disturb.
DND_DURATION_OPTIONS = {
    "20 minutes": 20,
    "1 hour": 60,
    "2 hours": 120,
    "4 hours": 240,
    "8 hours": 480,
    "24 hours": 1440,
}
