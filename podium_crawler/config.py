"""Process configuration and logging setup.

Configuration comes from environment variables. A ``.env`` file at the project
root is loaded first, filling only variables that are not already set.

- PODIUM_DATA_DIR (default: data)
- PODIUM_CACHE_FILE (default: <data>/latest.json)
- PODIUM_EVENTS_URL (remote newline-delimited event list)
- PODIUM_EVENTS_FILE (default: <data>/events.txt, local fallback copy)
- PODIUM_RANKING_BASE_URL (default: https://www.hyresult.com/ranking)
- PODIUM_CRAWL_DELAY seconds between fetches (default: 2.0)
- PODIUM_FETCH_TIMEOUT seconds per page (default: 60)
- PODIUM_FETCHER "http" or "browser" (default: http)
- PODIUM_CHROMIUM_PATH optional Chromium executable for the browser fetcher
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional


logger = logging.getLogger(__name__)

APP_NAME = "HYROX Podium Crawler"
APP_VERSION = "0.1.0"

DEFAULT_EVENTS_URL = "https://raw.githubusercontent.com/axsion/HyroxScraper/main/events.txt"
DEFAULT_RANKING_BASE_URL = "https://www.hyresult.com/ranking"

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    data_dir: str = "data"
    cache_file: str = os.path.join("data", "latest.json")
    events_url: Optional[str] = DEFAULT_EVENTS_URL
    events_file: str = os.path.join("data", "events.txt")
    ranking_base_url: str = DEFAULT_RANKING_BASE_URL
    crawl_delay: float = 2.0
    fetch_timeout: float = 60.0
    fetcher: str = "http"
    chromium_path: Optional[str] = None

    @property
    def progress_file(self) -> str:
        return os.path.join(self.data_dir, "progress.json")

    def log_file(self, day: Optional[str] = None) -> str:
        day = day or time.strftime("%Y-%m-%d", time.gmtime())
        return os.path.join(self.data_dir, f"scraper-{day}.txt")


def _load_env_from_file() -> None:
    """Load variables from a .env file at the project root if present."""
    try:
        root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
        env_path = os.path.join(root_dir, ".env")
        if not os.path.isfile(env_path):
            return
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                s = line.strip()
                if not s or s.startswith("#") or "=" not in s:
                    continue
                key, val = s.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key and not os.environ.get(key):
                    os.environ[key] = val
    except OSError as exc:
        logger.warning("Could not read .env file: %s", exc)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default


def get_settings() -> Settings:
    _load_env_from_file()
    data_dir = os.getenv("PODIUM_DATA_DIR") or "data"
    events_url = os.getenv("PODIUM_EVENTS_URL")
    if events_url is None:
        events_url = DEFAULT_EVENTS_URL
    return Settings(
        data_dir=data_dir,
        cache_file=os.getenv("PODIUM_CACHE_FILE") or os.path.join(data_dir, "latest.json"),
        events_url=events_url.strip() or None,
        events_file=os.getenv("PODIUM_EVENTS_FILE") or os.path.join(data_dir, "events.txt"),
        ranking_base_url=os.getenv("PODIUM_RANKING_BASE_URL") or DEFAULT_RANKING_BASE_URL,
        crawl_delay=max(0.0, _env_float("PODIUM_CRAWL_DELAY", 2.0)),
        fetch_timeout=max(1.0, _env_float("PODIUM_FETCH_TIMEOUT", 60.0)),
        fetcher=(os.getenv("PODIUM_FETCHER") or "http").strip().lower(),
        chromium_path=os.getenv("PODIUM_CHROMIUM_PATH") or None,
    )


def configure_logging(settings: Settings, *, level: int = logging.INFO) -> None:
    """Log to stderr and to a dated file in the data directory (idempotent)."""
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)
    formatter.converter = time.gmtime

    if not any(getattr(h, "_podium_stream", False) for h in root.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        stream._podium_stream = True  # type: ignore[attr-defined]
        root.addHandler(stream)

    log_path = os.path.abspath(settings.log_file())
    if any(getattr(h, "baseFilename", None) == log_path for h in root.handlers):
        return
    try:
        os.makedirs(settings.data_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as exc:
        logger.warning("File logging disabled (%s): %s", log_path, exc)
        return
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
