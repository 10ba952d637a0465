"""Persistent podium result cache.

One JSON document per cache: ``{scrapedAt, count, records: [...]}``. The document
is rewritten whole on every persist (temp file + os.replace), so readers never see
a torn write. Records are unique by ``key``; merging is last-write-wins and keeps
the first-seen position of each key.

Concurrent runs against the same document are serialized with RunLock, an
exclusive flock on a lock file next to the cache.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from podium_crawler.models.results import CacheSnapshot, ResultRecord
from podium_crawler.services.crawl.base import CrawlAlreadyRunning, now_iso


logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """The snapshot could not be written to durable storage."""


class CacheUsageError(ValueError):
    pass


class RunLock:
    """Exclusive flock on a lock file next to the cache, held for a whole run.

    The kernel drops the lock when the holding process exits, so a crashed run
    never blocks the next one. The file itself stays on disk and only carries the
    holder's pid for diagnostics.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        if self._fd is not None:
            raise CrawlAlreadyRunning(f"Run lock {self.path} is already held by this handle")
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            owner = self._read_owner(fd)
            os.close(fd)
            raise CrawlAlreadyRunning(f"Cache is locked by running process {owner or '?'} ({self.path})")
        except OSError:
            os.close(fd)
            raise
        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode("ascii"))
        self._fd = fd

    def release(self) -> None:
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            os.ftruncate(fd, 0)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    @property
    def held(self) -> bool:
        return self._fd is not None

    @staticmethod
    def _read_owner(fd: int) -> Optional[int]:
        try:
            os.lseek(fd, 0, os.SEEK_SET)
            return int(os.read(fd, 32).decode("ascii").strip() or 0) or None
        except (OSError, ValueError):
            return None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class ResultCache:
    def __init__(self, path: str, *, clock: Callable[[], str] = now_iso) -> None:
        self.path = path
        self.lock_path = path + ".lock"
        self._clock = clock
        self._snapshot = CacheSnapshot()
        self._keys: set = set()

    # --- Public API ---
    @property
    def snapshot(self) -> CacheSnapshot:
        return self._snapshot

    def run_lock(self) -> RunLock:
        return RunLock(self.lock_path)

    def read(self) -> CacheSnapshot:
        """Read the persisted snapshot without adopting it as the current one.

        A missing or corrupt file yields an empty snapshot. Safe to call while a
        run owns this cache.
        """
        if not os.path.isfile(self.path):
            return CacheSnapshot()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            return self._from_payload(payload)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Ignoring unreadable cache %s: %s", self.path, exc)
            return CacheSnapshot()

    def load(self) -> CacheSnapshot:
        """Read the persisted snapshot and make it the current one for merges."""
        snapshot = self.read()
        self._set_current(snapshot)
        return snapshot

    def merge(self, snapshot: CacheSnapshot, new_records: Iterable[ResultRecord]) -> CacheSnapshot:
        """Return a new snapshot with ``new_records`` merged in (last write wins).

        Records with an empty podium are dropped. ``scrapedAt`` never moves backwards.
        """
        by_key: Dict[str, ResultRecord] = {r.key: r for r in snapshot.records}
        for rec in new_records:
            if not rec.podium:
                continue
            by_key[rec.key] = rec
        merged_at = self._clock()
        if snapshot.scraped_at and snapshot.scraped_at > merged_at:
            merged_at = snapshot.scraped_at
        records = list(by_key.values())
        return CacheSnapshot(scraped_at=merged_at, count=len(records), records=records)

    def persist(self, snapshot: CacheSnapshot) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        payload = snapshot.model_dump(by_alias=True)
        payload["count"] = len(snapshot.records)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, prefix=".cache-", suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                json.dump(payload, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PersistenceError(f"Failed to write cache {self.path}: {exc}") from exc
        self._set_current(snapshot)

    def restore(self, records: List[ResultRecord], *, replace: bool = False) -> CacheSnapshot:
        """Merge externally supplied records into the persisted snapshot.

        With ``replace`` the current records are discarded first.
        """
        if not records:
            raise CacheUsageError("restore requires at least one record")
        with self.run_lock():
            current = CacheSnapshot() if replace else self.load()
            merged = self.merge(current, records)
            self.persist(merged)
        return merged

    def clear(self) -> CacheSnapshot:
        with self.run_lock():
            empty = CacheSnapshot(scraped_at=self._clock(), count=0, records=[])
            self.persist(empty)
        return empty

    def contains(self, key: str) -> bool:
        return key in self._keys

    # --- Internals ---
    def _set_current(self, snapshot: CacheSnapshot) -> None:
        self._snapshot = snapshot
        self._keys = {r.key for r in snapshot.records}

    def _from_payload(self, payload) -> CacheSnapshot:
        if not isinstance(payload, dict):
            raise ValueError(f"unexpected cache document type {type(payload).__name__}")
        snapshot = CacheSnapshot.model_validate(payload)
        deduped = self.merge(CacheSnapshot(), snapshot.records)
        return CacheSnapshot(scraped_at=snapshot.scraped_at, count=deduped.count, records=deduped.records)
