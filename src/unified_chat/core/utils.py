from __future__ import annotations

import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_WORD = re.compile(r"\w\S*")


def now_iso() -> str:
    """UTC timestamp with second precision and a `Z` suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def atomic_write(
    path: Union[str, Path], content: str, *, encoding: str = "utf-8"
) -> None:
    """Write ``content`` to ``path`` via a temp file and an atomic rename."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def _title_word(match: "re.Match[str]") -> str:
    word = match.group(0)
    return word[:1].upper() + word[1:].lower()


def to_title_case(value: str) -> str:
    return _WORD.sub(_title_word, value)


def camel_case_to_title(value: str) -> str:
    """``doNotDisturb`` -> ``Do Not Disturb``."""
    spaced = _CAMEL_BOUNDARY.sub(" ", value)
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split(" ") if word)


def title_case_to_camel(value: str) -> str:
    """``Do Not Disturb`` -> ``doNotDisturb``."""
    words = [word for word in value.strip().split() if word]
    if not words:
        return ""
    head, *rest = words
    return head.lower() + "".join(word[:1].upper() + word[1:].lower() for word in rest)


def sanitise_token_string(token: str) -> str:
    # Tokens pasted from docs or shells often carry whitespace or quotes.
    cleaned = token.strip()
    while len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "'\"":
        cleaned = cleaned[1:-1].strip()
    return cleaned


__all__ = [
    "atomic_write",
    "camel_case_to_title",
    "now_iso",
    "sanitise_token_string",
    "title_case_to_camel",
    "to_title_case",
]
