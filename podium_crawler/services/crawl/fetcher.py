"""Ranking page fetchers.

Both fetchers are async context managers exposing ``fetch(url) -> str`` and raise
PageUnavailable on timeouts, HTTP errors and network failures. HttpPageFetcher
keeps one httpx.AsyncClient for the whole run. BrowserPageFetcher renders pages in
a single headless Chromium (Playwright) for sites that build the ranking table in
JavaScript; one browser is reused across targets instead of one per page.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .base import PageUnavailable


logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"User-Agent": "PodiumCrawler/0.1 (+https://www.hyresult.com)"}

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-background-networking",
    "--disable-software-rasterizer",
]


class HttpPageFetcher:
    name = "http"

    def __init__(self, *, timeout: float = 60.0, headers: Optional[Dict[str, str]] = None, transport: Any = None) -> None:
        self.timeout = float(timeout)
        self.headers = headers or dict(DEFAULT_HEADERS)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HttpPageFetcher":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=self.headers,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> str:
        if self._client is None:
            raise RuntimeError("HttpPageFetcher must be used as an async context manager")
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise PageUnavailable(url, f"timeout: {exc}") from exc
        except httpx.HTTPError as exc:
            raise PageUnavailable(url, f"network error: {exc}") from exc
        if resp.status_code >= 400:
            raise PageUnavailable(url, resp.reason_phrase or "error", status_code=resp.status_code)
        return resp.text


class BrowserPageFetcher:
    name = "browser"

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        table_timeout: float = 10.0,
        executable_path: Optional[str] = None,
    ) -> None:
        self.timeout = float(timeout)
        self.table_timeout = float(table_timeout)
        self.executable_path = executable_path
        self._playwright = None
        self._browser = None

    async def __aenter__(self) -> "BrowserPageFetcher":
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        launch_kwargs: Dict[str, Any] = {"headless": True, "args": CHROMIUM_ARGS}
        if self.executable_path:
            launch_kwargs["executable_path"] = self.executable_path
        self._browser = await self._playwright.chromium.launch(**launch_kwargs)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def fetch(self, url: str) -> str:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        if self._browser is None:
            raise RuntimeError("BrowserPageFetcher must be used as an async context manager")
        try:
            page = await self._browser.new_page()
        except PlaywrightError as exc:
            raise PageUnavailable(url, f"browser error: {exc}") from exc
        try:
            try:
                resp = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout * 1000)
            except PlaywrightTimeoutError as exc:
                raise PageUnavailable(url, f"timeout: {exc}") from exc
            except PlaywrightError as exc:
                raise PageUnavailable(url, f"network error: {exc}") from exc
            if resp is not None and resp.status >= 400:
                raise PageUnavailable(url, resp.status_text or "error", status_code=resp.status)
            try:
                await page.wait_for_selector("table", timeout=self.table_timeout * 1000)
            except PlaywrightTimeoutError:
                # No table rendered: the extractor reports "no data" for this slice.
                logger.debug("No table rendered within %.0fs: %s", self.table_timeout, url)
            except PlaywrightError as exc:
                raise PageUnavailable(url, f"browser error: {exc}") from exc
            try:
                return await page.content()
            except PlaywrightError as exc:
                raise PageUnavailable(url, f"browser error: {exc}") from exc
        finally:
            try:
                await page.close()
            except PlaywrightError as exc:
                logger.debug("Could not close page for %s: %s", url, exc)


def make_fetcher(kind: str, *, timeout: float = 60.0, chromium_path: Optional[str] = None):
    if kind == BrowserPageFetcher.name:
        return BrowserPageFetcher(timeout=timeout, executable_path=chromium_path)
    if kind == HttpPageFetcher.name:
        return HttpPageFetcher(timeout=timeout)
    raise ValueError(f"Unknown fetcher: {kind!r} (expected 'http' or 'browser')")
