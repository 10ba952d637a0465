import asyncio

import httpx
import pytest

from podium_crawler.services.crawl.base import PageUnavailable
from podium_crawler.services.crawl.fetcher import BrowserPageFetcher, HttpPageFetcher, make_fetcher


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/missing"):
        return httpx.Response(404, text="not found")
    if request.url.path.endswith("/down"):
        raise httpx.ConnectError("connection refused", request=request)
    if request.url.path.endswith("/slow"):
        raise httpx.ReadTimeout("timed out", request=request)
    return httpx.Response(200, text="<table><tr><td>1</td></tr></table>")


def _fetch(url):
    async def go():
        async with HttpPageFetcher(transport=httpx.MockTransport(_handler)) as fetcher:
            return await fetcher.fetch(url)

    return asyncio.run(go())


def test_fetch_returns_page_body():
    assert "<table>" in _fetch("https://ranking.example/s8-2025-rome-hyrox-men?ag=45-49")


def test_http_error_status_raises_page_unavailable():
    with pytest.raises(PageUnavailable) as exc_info:
        _fetch("https://ranking.example/missing")
    assert exc_info.value.status_code == 404


@pytest.mark.parametrize("path, reason", [("down", "network error"), ("slow", "timeout")])
def test_transport_failures_raise_page_unavailable(path, reason):
    with pytest.raises(PageUnavailable) as exc_info:
        _fetch(f"https://ranking.example/{path}")
    assert exc_info.value.reason.startswith(reason)


def test_fetch_outside_context_is_an_error():
    with pytest.raises(RuntimeError):
        asyncio.run(HttpPageFetcher().fetch("https://ranking.example/"))


def test_make_fetcher_kinds():
    assert isinstance(make_fetcher("http", timeout=5), HttpPageFetcher)
    browser = make_fetcher("browser", chromium_path="/usr/bin/chromium")
    assert isinstance(browser, BrowserPageFetcher)
    assert browser.executable_path == "/usr/bin/chromium"
    with pytest.raises(ValueError):
        make_fetcher("curl")


def test_browser_errors_outside_navigation_raise_page_unavailable():
    playwright_api = pytest.importorskip("playwright.async_api")
    closed = playwright_api.Error("Target page, context or browser has been closed")

    class _ClosedBrowser:
        async def new_page(self):
            raise closed

    class _Page:
        async def goto(self, url, **kwargs):
            return None

        async def wait_for_selector(self, selector, **kwargs):
            return None

        async def content(self):
            raise closed

        async def close(self):
            raise closed

    class _OpenBrowser:
        async def new_page(self):
            return _Page()

    url = "https://ranking.example/s8-2025-rome-hyrox-men?ag=45-49"
    for browser in (_ClosedBrowser(), _OpenBrowser()):
        fetcher = BrowserPageFetcher()
        fetcher._browser = browser
        with pytest.raises(PageUnavailable) as exc_info:
            asyncio.run(fetcher.fetch(url))
        assert exc_info.value.reason.startswith("browser error")
