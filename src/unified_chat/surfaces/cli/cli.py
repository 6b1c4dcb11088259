import logging

import typer

from ...core.logging_utils import setup_logging
from .commands.contract import register_contract_commands
from .commands.state import register_state_commands
from .commands.token import register_token_commands
from .commands.utils import get_version

logger = logging.getLogger("unified_chat.cli")

app = typer.Typer(add_completion=False)
state_app = typer.Typer(add_completion=False)
token_app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"unified-chat {get_version()}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    setup_logging(log_level)


def main() -> None:
    """Entrypoint for CLI execution."""
    app()


register_contract_commands(app)
app.add_typer(state_app, name="state")
register_state_commands(state_app)
app.add_typer(token_app, name="token")
register_token_commands(token_app)
