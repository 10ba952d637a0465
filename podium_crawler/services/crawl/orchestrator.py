"""Sequential crawl loop.

Targets are processed one at a time in the order given. Each target resolves to a
TargetOutcome (added, updated, skipped, empty or failed) before the next one
starts. Every successful merge is persisted immediately, so an interrupted run
loses at most the target in flight. The cancellation token is checked between
targets only.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence

from podium_crawler.db.cache_store import ResultCache
from podium_crawler.models.results import PodiumEntry, ResultRecord

from .base import CrawlMode, PageUnavailable, Target, now_iso
from .extractor import extract_podium
from .rate_limit import FixedIntervalRateLimiter


logger = logging.getLogger(__name__)

OUTCOME_ADDED = "added"
OUTCOME_UPDATED = "updated"
OUTCOME_SKIPPED = "skipped"
OUTCOME_EMPTY = "empty"
OUTCOME_FAILED = "failed"


class PageFetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class TargetOutcome:
    key: str
    url: str
    status: str
    entries: int = 0
    error: Optional[str] = None


@dataclass
class CrawlProgress:
    running: bool = False
    mode: Optional[str] = None
    queued: int = 0
    done: int = 0
    succeeded: int = 0
    skipped: int = 0
    empty: int = 0
    failed: int = 0
    last_url: Optional[str] = None
    last_error: Optional[str] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "mode": self.mode,
            "queued": self.queued,
            "done": self.done,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "empty": self.empty,
            "failed": self.failed,
            "lastUrl": self.last_url,
            "lastError": self.last_error,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }


@dataclass
class RunSummary:
    mode: str
    targets: int
    added: int = 0
    updated: int = 0
    skipped: int = 0
    empty: int = 0
    failed: int = 0
    total_count: int = 0
    cancelled: bool = False
    outcomes: List[TargetOutcome] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "cancelled" if self.cancelled else "completed"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "mode": self.mode,
            "targets": self.targets,
            "added": self.added,
            "updated": self.updated,
            "skipped": self.skipped,
            "empty": self.empty,
            "failed": self.failed,
            "totalCount": self.total_count,
            "failures": [{"url": o.url, "error": o.error} for o in self.outcomes if o.status == OUTCOME_FAILED],
        }


def build_record(target: Target, podium: Sequence[PodiumEntry], *, scraped_at: Optional[str] = None) -> ResultRecord:
    return ResultRecord(
        key=target.key,
        event_name=target.event_name,
        gender=target.gender,
        competition_type=target.competition_type.value,
        year=target.season_year,
        age_group=target.age_group,
        source_url=target.url,
        podium=list(podium),
        scraped_at=scraped_at or now_iso(),
    )


class CrawlOrchestrator:
    def __init__(
        self,
        cache: ResultCache,
        fetcher: PageFetcher,
        *,
        rate_limiter: Optional[FixedIntervalRateLimiter] = None,
        cancel_token: Optional[CancellationToken] = None,
        extract: Callable[[Optional[str]], Optional[List[PodiumEntry]]] = extract_podium,
        progress: Optional[CrawlProgress] = None,
        progress_path: Optional[str] = None,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.rate_limiter = rate_limiter or FixedIntervalRateLimiter(0)
        self.cancel_token = cancel_token or CancellationToken()
        self.extract = extract
        self.progress = progress or CrawlProgress()
        self.progress_path = progress_path

    async def run(self, targets: Sequence[Target], mode: CrawlMode | str = CrawlMode.FULL) -> RunSummary:
        mode = CrawlMode(mode)
        with self.cache.run_lock():
            return await self._run_locked(list(targets), mode)

    async def _run_locked(self, targets: List[Target], mode: CrawlMode) -> RunSummary:
        snapshot = self.cache.load()
        summary = RunSummary(mode=mode.value, targets=len(targets))
        self._start_progress(mode, len(targets))
        logger.info(
            "Starting %s crawl: targets=%d cached=%d", mode.value, len(targets), len(snapshot.records)
        )
        self.rate_limiter.reset()

        try:
            for target in targets:
                if self.cancel_token.cancelled:
                    summary.cancelled = True
                    logger.info("Crawl cancelled after %d/%d targets", self.progress.done, len(targets))
                    break

                if mode is CrawlMode.MISSING_ONLY and self.cache.contains(target.key):
                    outcome = TargetOutcome(key=target.key, url=target.url, status=OUTCOME_SKIPPED)
                    logger.debug("Skipping cached %s", target.key)
                else:
                    await self.rate_limiter.wait()
                    try:
                        outcome, record = await self._process(target)
                    finally:
                        self.rate_limiter.mark_done()
                    if record is not None:
                        snapshot = self.cache.merge(snapshot, [record])
                        self.cache.persist(snapshot)

                self._record(summary, outcome)
        finally:
            summary.total_count = len(self.cache.snapshot.records)
            self._finish_progress()

        logger.info(
            "Crawl %s: added=%d updated=%d skipped=%d empty=%d failed=%d total=%d",
            summary.status,
            summary.added,
            summary.updated,
            summary.skipped,
            summary.empty,
            summary.failed,
            summary.total_count,
        )
        return summary

    async def _process(self, target: Target):
        url = target.url
        self.progress.last_url = url
        try:
            html = await self.fetcher.fetch(url)
        except PageUnavailable as exc:
            logger.warning("FAIL %s: %s", url, exc.reason)
            return TargetOutcome(key=target.key, url=url, status=OUTCOME_FAILED, error=str(exc)), None
        except Exception as exc:  # noqa: BLE001 - one broken page must not end the run
            logger.warning("FAIL %s: unexpected %s: %s", url, type(exc).__name__, exc, exc_info=True)
            error = f"{url}: {type(exc).__name__}: {exc}"
            return TargetOutcome(key=target.key, url=url, status=OUTCOME_FAILED, error=error), None

        podium = self.extract(html)
        if not podium:
            logger.warning("No podium on %s", url)
            return TargetOutcome(key=target.key, url=url, status=OUTCOME_EMPTY), None

        status = OUTCOME_UPDATED if self.cache.contains(target.key) else OUTCOME_ADDED
        logger.info("Extracted %d podium entries from %s", len(podium), url)
        record = build_record(target, podium)
        return TargetOutcome(key=target.key, url=url, status=status, entries=len(podium)), record

    # --- Progress bookkeeping ---
    def _record(self, summary: RunSummary, outcome: TargetOutcome) -> None:
        summary.outcomes.append(outcome)
        p = self.progress
        p.done += 1
        if outcome.status == OUTCOME_ADDED:
            summary.added += 1
            p.succeeded += 1
        elif outcome.status == OUTCOME_UPDATED:
            summary.updated += 1
            p.succeeded += 1
        elif outcome.status == OUTCOME_SKIPPED:
            summary.skipped += 1
            p.skipped += 1
        elif outcome.status == OUTCOME_EMPTY:
            summary.empty += 1
            p.empty += 1
        else:
            summary.failed += 1
            p.failed += 1
            p.last_error = outcome.error
        self._save_progress()

    def _start_progress(self, mode: CrawlMode, queued: int) -> None:
        p = self.progress
        p.running = True
        p.mode = mode.value
        p.queued = queued
        p.done = p.succeeded = p.skipped = p.empty = p.failed = 0
        p.last_url = p.last_error = None
        p.started_at = now_iso()
        p.finished_at = None
        self._save_progress()

    def _finish_progress(self) -> None:
        self.progress.running = False
        self.progress.finished_at = now_iso()
        self._save_progress()

    def _save_progress(self) -> None:
        if not self.progress_path:
            return
        try:
            with open(self.progress_path, "w", encoding="utf-8") as f:
                json.dump(self.progress.to_dict(), f, indent=2)
        except OSError as exc:
            logger.warning("Could not write progress file %s: %s", self.progress_path, exc)
