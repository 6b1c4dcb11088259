from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from ....core.config import COLLABORATION_PROVIDER
from ....core.exceptions import StateStoreError
from ....integrations.chat.state_store import ChatStateStore
from .utils import raise_exit, require_chat_config


def _open_store(path: Optional[Path]) -> ChatStateStore:
    return ChatStateStore(require_chat_config(path).state_file)


def register_state_commands(app: typer.Typer) -> None:
    @app.command("show")
    def state_show(
        provider: Optional[str] = typer.Option(
            None, "--provider", help="Only show one provider's state"
        ),
        path: Optional[Path] = typer.Option(None, "--path", help="Workspace root"),
    ) -> None:
        """Print the persisted chat state as JSON."""
        snapshot = _open_store(path).snapshot()
        if provider:
            providers = snapshot.get("providers") or {}
            key = provider.lower()
            if key not in providers:
                raise_exit(f"No state stored for provider '{key}'.")
            snapshot = {key: providers[key]}
        typer.echo(json.dumps(snapshot, indent=2, sort_keys=True))

    @app.command("reset")
    def state_reset(
        include_collaboration: bool = typer.Option(
            False, "--all", help="Also clear collaboration session state"
        ),
        yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
        path: Optional[Path] = typer.Option(None, "--path", help="Workspace root"),
    ) -> None:
        """Clear cached provider state; tokens in the config file are kept."""
        store = _open_store(path)
        if not yes:
            typer.confirm("Clear persisted chat state?", abort=True)
        keep = () if include_collaboration else (COLLABORATION_PROVIDER,)
        try:
            store.clear_all(keep=keep)
        except StateStoreError as exc:
            raise_exit(f"Unable to clear chat state: {exc}", cause=exc)
        typer.echo(f"Cleared chat state in {store.path}")
