"""Target-space builder.

Expands a list of season-qualified event identifiers into one Target per
(event, competition type, gender, age group). Pure and deterministic; no I/O.

Age-group buckets depend on the season schema. From season 8 on, the ranking
pages use a fixed seven-bucket masters set. Older seasons used other bucket
conventions, and which one applies cannot always be told from the slug, so every
candidate set for the season is tried and the union is emitted.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .base import (
    DOUBLE_GENDERS,
    SOLO_GENDERS,
    CompetitionType,
    Target,
    TypeSelection,
    parse_season_slug,
)


# Global bucket order; every emitted bucket list is sorted by position here.
BUCKET_ORDER: Tuple[str, ...] = (
    "45-49",
    "50-54",
    "55-59",
    "60-64",
    "65-69",
    "70-74",
    "70+",
    "75-79",
    "80-84",
)

CURRENT_SCHEMA_MIN_SEASON = 8
CURRENT_BUCKETS: Tuple[str, ...] = ("45-49", "50-54", "55-59", "60-64", "65-69", "70-74", "75-79")
LEGACY_BUCKET_CANDIDATES: Tuple[Tuple[str, ...], ...] = (
    ("45-49", "50-54", "55-59", "60-64", "65-69", "70-74", "75-79", "80-84"),
    ("45-49", "50-54", "55-59", "60-64", "65-69", "70+"),
)

DEFAULT_RANKING_BASE_URL = "https://www.hyresult.com/ranking"

_GENDER_SUFFIX_RE = re.compile(r"-hyrox(?:-doubles)?(?:-(?:men|women|mixed))?$")


def base_slug_from_identifier(identifier: str) -> str:
    """Normalize one identifier (URL or slug) to its base slug.

    ``https://www.hyresult.com/ranking/s8-2025-rome-hyrox-men?ag=45-49`` and
    ``s8-2025-rome`` both give ``s8-2025-rome``.
    """
    s = (identifier or "").strip()
    s = s.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    if "/" in s:
        s = s.rsplit("/", 1)[1]
    s = s.lower()
    return _GENDER_SUFFIX_RE.sub("", s)


def candidate_bucket_sets(season: Optional[int]) -> Tuple[Tuple[str, ...], ...]:
    if season is not None and season >= CURRENT_SCHEMA_MIN_SEASON:
        return (CURRENT_BUCKETS,)
    return LEGACY_BUCKET_CANDIDATES


def age_groups_for_slug(base_slug: str) -> List[str]:
    season, _ = parse_season_slug(base_slug)
    merged = {ag for bucket_set in candidate_bucket_sets(season) for ag in bucket_set}
    return sorted(merged, key=BUCKET_ORDER.index)


def _types_for(selection: TypeSelection) -> Sequence[Tuple[CompetitionType, Sequence[str]]]:
    solo = (CompetitionType.SOLO, SOLO_GENDERS)
    double = (CompetitionType.DOUBLE, DOUBLE_GENDERS)
    if selection is TypeSelection.SOLO:
        return (solo,)
    if selection is TypeSelection.DOUBLE:
        return (double,)
    return (solo, double)


def build_targets(
    base_identifiers: Iterable[str],
    year: Optional[int] = None,
    type_: TypeSelection | str = TypeSelection.ALL,
    *,
    base_url: str = DEFAULT_RANKING_BASE_URL,
) -> List[Target]:
    """Build the ordered target list.

    Order: identifier order (first occurrence of each base slug), then Solo before
    Double, then gender (men, women, mixed), then age group in BUCKET_ORDER.

    ``year`` drops identifiers whose embedded year differs; identifiers without an
    embedded year take ``year``. Identifiers that yield no year at all are skipped.
    """
    selection = TypeSelection(type_)
    slugs: Dict[str, int] = {}
    for ident in base_identifiers:
        slug = base_slug_from_identifier(ident)
        if not slug or slug in slugs:
            continue
        _, slug_year = parse_season_slug(slug)
        if year is not None and slug_year is not None and slug_year != int(year):
            continue
        season_year = slug_year if slug_year is not None else year
        if season_year is None:
            continue
        slugs[slug] = int(season_year)

    targets: List[Target] = []
    for slug, season_year in slugs.items():
        age_groups = age_groups_for_slug(slug)
        for ctype, genders in _types_for(selection):
            for gender in genders:
                for ag in age_groups:
                    targets.append(
                        Target(
                            base_slug=slug,
                            competition_type=ctype,
                            gender=gender,
                            age_group=ag,
                            season_year=season_year,
                            base_url=base_url,
                        )
                    )
    return targets
