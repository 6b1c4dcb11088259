from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional

import typer

from ....core.config import ChatConfig, load_chat_config
from ....core.exceptions import ConfigError


def get_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("unified-chat")
    except importlib.metadata.PackageNotFoundError:
        from .... import __version__

        return __version__


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def resolve_root(path: Optional[Path]) -> Path:
    return (path or Path.cwd()).resolve()


def require_chat_config(path: Optional[Path]) -> ChatConfig:
    root = resolve_root(path)
    try:
        return load_chat_config(root)
    except ConfigError as exc:
        raise_exit(f"Invalid chat config in {root}: {exc}", cause=exc)
