from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ....core.config import ConfigHelper
from ....core.exceptions import ConfigError
from ....core.utils import sanitise_token_string
from .utils import raise_exit, require_chat_config, resolve_root


def _require_supported(path: Optional[Path], provider: str) -> str:
    config = require_chat_config(path)
    key = provider.strip().lower()
    if key not in config.supported_providers:
        supported = ", ".join(config.supported_providers)
        raise_exit(f"Unsupported provider '{key}'. Supported: {supported}")
    return key


def register_token_commands(app: typer.Typer) -> None:
    @app.command("set")
    def token_set(
        provider: str = typer.Argument(..., help="Provider key, e.g. slack"),
        token: Optional[str] = typer.Option(
            None, "--token", help="Token value (prompted when omitted)"
        ),
        path: Optional[Path] = typer.Option(None, "--path", help="Workspace root"),
    ) -> None:
        """Store a provider token in the chat config file."""
        key = _require_supported(path, provider)
        raw = token if token is not None else typer.prompt("Token", hide_input=True)
        value = sanitise_token_string(raw)
        if not value:
            raise_exit("Token must not be empty.")
        helper = ConfigHelper(resolve_root(path))
        try:
            helper.set_token(value, key)
        except ConfigError as exc:
            raise_exit(f"Unable to store token: {exc}", cause=exc)
        typer.echo(f"Stored {key} token in {helper.config_path}")

    @app.command("clear")
    def token_clear(
        provider: str = typer.Argument(..., help="Provider key, e.g. slack"),
        path: Optional[Path] = typer.Option(None, "--path", help="Workspace root"),
    ) -> None:
        """Remove a provider token from the chat config file."""
        key = _require_supported(path, provider)
        helper = ConfigHelper(resolve_root(path))
        try:
            helper.clear_token(key)
        except ConfigError as exc:
            raise_exit(f"Unable to clear token: {exc}", cause=exc)
        typer.echo(f"Cleared {key} token in {helper.config_path}")
