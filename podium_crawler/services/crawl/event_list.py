"""Season-qualified event identifier list.

The list is a newline-delimited text file, one ranking base URL per line
(``https://www.hyresult.com/ranking/s8-2025-rome``). Lines that do not match the
recognized prefix are reported separately and otherwise ignored. When the remote
list cannot be fetched, the last successfully fetched copy on disk is used.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

import httpx

from .base import TargetListUnavailable


logger = logging.getLogger(__name__)

HttpGet = Callable[[str], Awaitable[Tuple[int, str]]]

_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


@dataclass
class EventList:
    valid: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)
    source: str = "none"  # "remote" | "local" | "none"
    error: Optional[str] = None

    def summary(self) -> dict:
        return {"source": self.source, "valid": len(self.valid), "invalid": list(self.invalid), "error": self.error}


def parse_event_lines(text: str, *, prefix: str) -> Tuple[List[str], List[str]]:
    """Split raw list text into (valid, invalid) lines, preserving order."""
    base = prefix.rstrip("/") + "/"
    valid: List[str] = []
    invalid: List[str] = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        slug = line[len(base):].strip("/") if line.startswith(base) else ""
        if slug and _SLUG_RE.match(slug.split("?", 1)[0]):
            if line not in valid:
                valid.append(line)
        else:
            invalid.append(line)
    return valid, invalid


async def _http_get(url: str, *, timeout: float = 20.0) -> Tuple[int, str]:
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url)
        return resp.status_code, resp.text


async def fetch_remote_list(url: str, *, http_get: Optional[HttpGet] = None) -> str:
    getter = http_get or _http_get
    try:
        status, body = await getter(url)
    except Exception as exc:  # noqa: BLE001 - any transport failure means the list is unavailable
        raise TargetListUnavailable(f"{url}: {exc}") from exc
    if status != 200:
        raise TargetListUnavailable(f"{url}: HTTP {status}")
    return body


async def load_event_list(
    *,
    url: Optional[str],
    fallback_path: str,
    prefix: str,
    http_get: Optional[HttpGet] = None,
) -> EventList:
    text: Optional[str] = None
    source = "none"
    error: Optional[str] = None

    if url:
        try:
            text = await fetch_remote_list(url, http_get=http_get)
            source = "remote"
        except TargetListUnavailable as exc:
            error = str(exc)
            logger.warning("Event list unavailable, trying local copy: %s", exc)

    if text is not None:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(fallback_path)), exist_ok=True)
            with open(fallback_path, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as exc:
            logger.warning("Could not refresh local event list %s: %s", fallback_path, exc)
    elif os.path.isfile(fallback_path):
        with open(fallback_path, "r", encoding="utf-8") as f:
            text = f.read()
        source = "local"

    if text is None:
        logger.warning("No event list available; crawl has zero targets")
        return EventList(source="none", error=error or "no event list configured")

    valid, invalid = parse_event_lines(text, prefix=prefix)
    if invalid:
        logger.warning("Ignoring %d invalid event list line(s)", len(invalid))
    return EventList(valid=valid, invalid=invalid, source=source, error=error)
