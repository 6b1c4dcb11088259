from __future__ import annotations

from urllib.parse import urlencode

from .host import HostEnvironment


def build_issue_url(base_url: str, title: str, body: str = "") -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode({'title': title, 'body': body})}"


async def open_new_issue(
    host: HostEnvironment, base_url: str, title: str, body: str = ""
) -> None:
    await host.open_url(build_issue_url(base_url, title, body))
