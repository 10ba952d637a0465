"""Ranking-page crawling subsystem.

Structure:
- base.py: targets, key rendering, shared errors and small utilities
- targets.py: target-space builder (event x type x gender x age group)
- event_list.py: remote/local list of season-qualified event identifiers
- fetcher.py: page fetchers (httpx, or Playwright Chromium for JS-rendered pages)
- extractor.py: podium extraction from one ranking page
- rate_limit.py: politeness delay between fetches
- orchestrator.py: sequential crawl loop with checkpointing and cancellation
- runner.py: CLI entrypoint for manual runs

The persistent result cache lives in podium_crawler/db/cache_store.py.
"""
