"""Crawl operations exposed to the HTTP API and the CLI.

PodiumService wires the event list, target builder, fetcher, rate limiter and
result cache together for one run at a time. It owns the progress view and the
cancellation token of the active run; the cache snapshot itself is owned by the
orchestrator while a run is in progress.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from typing import Any, Callable, Dict, List, Optional

from podium_crawler.config import APP_NAME, APP_VERSION, Settings, get_settings
from podium_crawler.db.cache_store import ResultCache
from podium_crawler.models.results import ResultRecord
from podium_crawler.services.crawl.base import CrawlAlreadyRunning, CrawlMode, PageUnavailable, TypeSelection, now_iso
from podium_crawler.services.crawl.event_list import EventList, HttpGet, load_event_list
from podium_crawler.services.crawl.extractor import extract_podium
from podium_crawler.services.crawl.fetcher import make_fetcher
from podium_crawler.services.crawl.orchestrator import CancellationToken, CrawlOrchestrator, CrawlProgress
from podium_crawler.services.crawl.rate_limit import FixedIntervalRateLimiter
from podium_crawler.services.crawl.targets import build_targets


logger = logging.getLogger(__name__)

LOG_TAIL_LINES = 1000


class PodiumService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        fetcher_factory: Optional[Callable[[], Any]] = None,
        rate_limiter: Optional[FixedIntervalRateLimiter] = None,
        http_get: Optional[HttpGet] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.cache = ResultCache(self.settings.cache_file)
        self._fetcher_factory = fetcher_factory or self._default_fetcher
        self._rate_limiter = rate_limiter or FixedIntervalRateLimiter(self.settings.crawl_delay)
        self._http_get = http_get
        self.progress = CrawlProgress()
        self._cancel_token: Optional[CancellationToken] = None
        self._busy = False

    # --- Crawl operations ---
    async def trigger_full_crawl(self, year: Optional[int] = None, type_: TypeSelection | str = TypeSelection.ALL) -> Dict[str, Any]:
        self._claim()
        try:
            events = await self._load_events()
            targets = build_targets(events.valid, year, type_, base_url=self.settings.ranking_base_url)
            result = await self._run(targets, CrawlMode.FULL)
        finally:
            self._busy = False
        result["eventList"] = events.summary()
        return result

    async def trigger_missing_crawl(self, year: Optional[int] = None, type_: TypeSelection | str = TypeSelection.ALL) -> Dict[str, Any]:
        self._claim()
        try:
            events = await self._load_events()
            targets = build_targets(events.valid, year, type_, base_url=self.settings.ranking_base_url)
            current = self.cache.read()
            cached_keys = {r.key for r in current.records}
            if all(t.key in cached_keys for t in targets):
                logger.info("No missing targets among %d; cache is up to date", len(targets))
                return {
                    "status": "up-to-date",
                    "mode": CrawlMode.MISSING_ONLY.value,
                    "targets": len(targets),
                    "added": 0,
                    "totalCount": len(current.records),
                    "eventList": events.summary(),
                }
            result = await self._run(targets, CrawlMode.MISSING_ONLY)
        finally:
            self._busy = False
        result["eventList"] = events.summary()
        return result

    def stop(self) -> bool:
        """Ask the active run to halt after its current target."""
        token = self._cancel_token
        if token is None or not self.progress.running:
            return False
        token.cancel()
        logger.info("Stop requested for the running crawl")
        return True

    async def preview(self, url: str) -> Dict[str, Any]:
        """Fetch and extract one page without touching the cache."""
        try:
            async with self._fetcher_factory() as fetcher:
                html = await fetcher.fetch(url)
        except PageUnavailable as exc:
            return {"ok": False, "url": url, "error": str(exc)}
        except Exception as exc:  # noqa: BLE001 - reported to the caller like a failed page
            logger.warning("Preview of %s failed: %s: %s", url, type(exc).__name__, exc, exc_info=True)
            return {"ok": False, "url": url, "error": f"{type(exc).__name__}: {exc}"}
        podium = extract_podium(html)
        if not podium:
            return {"ok": False, "url": url, "error": "no podium found"}
        return {"ok": True, "url": url, "podium": [p.to_dict() for p in podium]}

    # --- Cache operations ---
    def get_cache(self) -> Dict[str, Any]:
        return self.cache.read().to_dict()

    def clear_cache(self) -> Dict[str, Any]:
        snapshot = self.cache.clear()
        logger.info("Cache cleared")
        return {"status": "cleared", "totalCount": snapshot.count}

    def restore_cache(self, records: List[ResultRecord], *, replace: bool = False) -> Dict[str, Any]:
        before = len(self.cache.read().records)
        snapshot = self.cache.restore(records, replace=replace)
        logger.info("Restored %d record(s); cache now holds %d", len(records), snapshot.count)
        return {
            "status": "restored",
            "received": len(records),
            "totalCount": snapshot.count,
            "previousCount": before,
        }

    # --- Introspection ---
    def health(self) -> Dict[str, Any]:
        return {"ok": True, "app": APP_NAME, "version": APP_VERSION, "now": now_iso()}

    def get_progress(self) -> Dict[str, Any]:
        return self.progress.to_dict()

    def logs(self, *, limit: int = LOG_TAIL_LINES) -> Dict[str, Any]:
        path = self.settings.log_file()
        lines: List[str] = []
        if os.path.isfile(path):
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                lines = [line.rstrip("\n") for line in deque(f, maxlen=limit)]
        return {"file": os.path.basename(path), "lines": lines}

    # --- Internals ---
    def _claim(self) -> None:
        if self._busy:
            raise CrawlAlreadyRunning("A crawl is already running in this process")
        self._busy = True

    def _default_fetcher(self):
        return make_fetcher(
            self.settings.fetcher,
            timeout=self.settings.fetch_timeout,
            chromium_path=self.settings.chromium_path,
        )

    async def _load_events(self) -> EventList:
        return await load_event_list(
            url=self.settings.events_url,
            fallback_path=self.settings.events_file,
            prefix=self.settings.ranking_base_url,
            http_get=self._http_get,
        )

    async def _run(self, targets, mode: CrawlMode) -> Dict[str, Any]:
        os.makedirs(self.settings.data_dir, exist_ok=True)
        token = CancellationToken()
        self._cancel_token = token
        try:
            async with self._fetcher_factory() as fetcher:
                orchestrator = CrawlOrchestrator(
                    self.cache,
                    fetcher,
                    rate_limiter=self._rate_limiter,
                    cancel_token=token,
                    progress=self.progress,
                    progress_path=self.settings.progress_file,
                )
                summary = await orchestrator.run(targets, mode)
        finally:
            self._cancel_token = None
        return summary.to_dict()


_service: Optional[PodiumService] = None


def get_podium_service() -> PodiumService:
    global _service
    if _service is None:
        _service = PodiumService()
    return _service
