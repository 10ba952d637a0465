from __future__ import annotations

import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CompetitionType(str, Enum):
    SOLO = "Solo"
    DOUBLE = "Double"


class TypeSelection(str, Enum):
    SOLO = "solo"
    DOUBLE = "double"
    ALL = "all"


class CrawlMode(str, Enum):
    FULL = "full"
    MISSING_ONLY = "missing"


SOLO_GENDERS = ("men", "women")
DOUBLE_GENDERS = ("men", "women", "mixed")

_SEASON_PREFIX_RE = re.compile(r"^s(?P<season>\d+)-(?P<year>\d{4})-")


class TargetListUnavailable(RuntimeError):
    """The remote event identifier list could not be retrieved."""


class PageUnavailable(RuntimeError):
    """A ranking page could not be fetched (timeout, HTTP error, network failure)."""

    def __init__(self, url: str, reason: str, *, status_code: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.status_code = status_code
        detail = f"HTTP {status_code}: {reason}" if status_code else reason
        super().__init__(f"{url}: {detail}")


class CrawlAlreadyRunning(RuntimeError):
    """Another run holds the advisory lock on the cache."""


@dataclass(frozen=True)
class Target:
    base_slug: str  # e.g. "s8-2025-rome"
    competition_type: CompetitionType
    gender: str  # "men" | "women" | "mixed"
    age_group: str  # e.g. "45-49"
    season_year: int
    base_url: str = "https://www.hyresult.com/ranking"

    @property
    def city(self) -> str:
        return city_from_slug(self.base_slug)

    @property
    def page_slug(self) -> str:
        if self.competition_type is CompetitionType.DOUBLE:
            return f"{self.base_slug}-hyrox-doubles-{self.gender}"
        return f"{self.base_slug}-hyrox-{self.gender}"

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.page_slug}?ag={self.age_group}"

    @property
    def key(self) -> str:
        return record_key(
            city=self.city,
            year=self.season_year,
            gender=self.gender,
            competition_type=self.competition_type,
            age_group=self.age_group,
        )

    @property
    def event_name(self) -> str:
        words = [w for w in self.city.split("-") if w]
        return "HYROX " + " ".join(w.capitalize() for w in words)


def record_key(*, city: str, year: int, gender: str, competition_type: CompetitionType | str, age_group: str) -> str:
    """Render the composite cache key.

    Solo keys carry no type marker (``rome-2025-men-45-49``); Double keys insert
    ``doubles`` (``rome-2025-doubles-mixed-45-49``).
    """
    ctype = CompetitionType(competition_type)
    parts = [city, str(year)]
    if ctype is CompetitionType.DOUBLE:
        parts.append("doubles")
    parts.extend([gender, age_group])
    return "-".join(parts)


def parse_season_slug(base_slug: str) -> tuple[Optional[int], Optional[int]]:
    """Return (season number, year) from a slug like ``s8-2025-rome``."""
    m = _SEASON_PREFIX_RE.match(base_slug)
    if not m:
        return None, None
    return int(m.group("season")), int(m.group("year"))


def city_from_slug(base_slug: str) -> str:
    return _SEASON_PREFIX_RE.sub("", base_slug, count=1)


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
