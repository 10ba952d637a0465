from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional

from podium_crawler.config import configure_logging, get_settings
from podium_crawler.db.cache_store import CacheUsageError, PersistenceError
from podium_crawler.models.results import RestoreRequest
from podium_crawler.services.podium_service import PodiumService

from .base import CrawlAlreadyRunning, TypeSelection


def _print(obj) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _add_selection_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--year", type=int, default=None, help="Season year, e.g. 2025 (default: every year in the list)")
    p.add_argument("--type", choices=[t.value for t in TypeSelection], default=TypeSelection.ALL.value, help="Competition type")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl HYROX masters podiums into the local cache")
    sub = parser.add_subparsers(dest="cmd", required=True)

    full = sub.add_parser("full", help="Crawl every target, overwriting cached results")
    _add_selection_args(full)
    missing = sub.add_parser("missing", help="Crawl only targets missing from the cache")
    _add_selection_args(missing)

    sub.add_parser("cache", help="Print the cache snapshot")
    sub.add_parser("clear", help="Empty the cache")

    restore = sub.add_parser("restore", help="Merge records from a JSON file (snapshot or record list)")
    restore.add_argument("file", help="JSON file path")
    restore.add_argument("--replace", action="store_true", help="Discard current records first")

    one = sub.add_parser("test-one", help="Fetch and extract one ranking page without caching")
    one.add_argument("url", help="Ranking page URL")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=10000)

    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    if args.cmd == "serve":
        import uvicorn

        uvicorn.run("podium_crawler.main:app", host=args.host, port=args.port)
        return 0

    service = PodiumService(settings)
    try:
        return _dispatch(args, service)
    except (CacheUsageError, CrawlAlreadyRunning) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except PersistenceError as exc:
        print(f"fatal: {exc}", file=sys.stderr)
        return 1


def _dispatch(args: argparse.Namespace, service: PodiumService) -> int:
    if args.cmd == "full":
        _print(asyncio.run(service.trigger_full_crawl(args.year, args.type)))
        return 0

    if args.cmd == "missing":
        _print(asyncio.run(service.trigger_missing_crawl(args.year, args.type)))
        return 0

    if args.cmd == "cache":
        _print(service.get_cache())
        return 0

    if args.cmd == "clear":
        _print(service.clear_cache())
        return 0

    if args.cmd == "restore":
        with open(args.file, "r", encoding="utf-8") as f:
            payload = json.load(f)
        if isinstance(payload, list):
            payload = {"records": payload}
        body = RestoreRequest.model_validate(payload)
        _print(service.restore_cache(body.records, replace=args.replace))
        return 0

    if args.cmd == "test-one":
        result = asyncio.run(service.preview(args.url))
        _print(result)
        return 0 if result.get("ok") else 1

    raise ValueError(f"unknown command: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
