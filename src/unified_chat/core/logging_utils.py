"""Structured logging helpers.

Every module logs through `log_event` so log lines share one shape:
``<event> {json fields}``. Field values that are not JSON-serializable are
stringified; exceptions passed as ``exc`` are summarized by type and message.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_MAX_FIELD_CHARS = 2000


def _summarize_exception(exc: BaseException) -> dict[str, str]:
    return {"type": type(exc).__name__, "message": str(exc)}


def _normalize_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        if len(value) > _MAX_FIELD_CHARS:
            return value[:_MAX_FIELD_CHARS] + "..."
        return value
    if isinstance(value, BaseException):
        return _summarize_exception(value)
    if isinstance(value, Mapping):
        return {str(key): _normalize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize_value(item) for item in value]
    return str(value)


def format_event(event: str, fields: Mapping[str, Any]) -> str:
    if not fields:
        return event
    payload = {key: _normalize_value(value) for key, value in fields.items()}
    return f"{event} {json.dumps(payload, sort_keys=True)}"


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Log a named event with structured fields."""

    if not logger.isEnabledFor(level):
        return
    if exc is not None:
        fields["exc"] = exc
    logger.log(level, format_event(event, fields))


def resolve_log_level(value: Any, default: int = logging.INFO) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return default


def setup_logging(level: Any = logging.INFO, *, fmt: str = DEFAULT_LOG_FORMAT) -> None:
    logging.basicConfig(level=resolve_log_level(level), format=fmt)


__all__ = [
    "format_event",
    "log_event",
    "resolve_log_level",
    "setup_logging",
]
