from __future__ import annotations

import json
from dataclasses import asdict

import typer

from ....integrations.chat.command_contract import COMMAND_CONTRACT


def register_contract_commands(app: typer.Typer) -> None:
    @app.command("commands")
    def list_commands(
        output_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
    ) -> None:
        """List the commands accepted by the chat command bus."""
        if output_json:
            rows = [asdict(entry) for entry in COMMAND_CONTRACT]
            typer.echo(json.dumps({"commands": rows}, indent=2))
            return
        lines = ["Chat commands:"]
        for entry in COMMAND_CONTRACT:
            keys = ", ".join(entry.payload_keys) or "-"
            auth = " (token)" if entry.requires_token else ""
            lines.append(f"- {entry.id} [{entry.status}]{auth}: {keys}")
        typer.echo("\n".join(lines))
