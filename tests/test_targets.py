from podium_crawler.services.crawl.base import CompetitionType, Target
from podium_crawler.services.crawl.targets import (
    CURRENT_BUCKETS,
    age_groups_for_slug,
    base_slug_from_identifier,
    build_targets,
)


BASE = "https://www.hyresult.com/ranking"


def test_base_slug_strips_prefix_gender_suffix_and_query():
    assert base_slug_from_identifier(f"{BASE}/s8-2025-rome") == "s8-2025-rome"
    assert base_slug_from_identifier(f"{BASE}/s8-2025-rome-hyrox-men?ag=45-49") == "s8-2025-rome"
    assert base_slug_from_identifier("s8-2025-rome-hyrox-doubles-mixed") == "s8-2025-rome"
    assert base_slug_from_identifier("s7-2024-new-york-hyrox") == "s7-2024-new-york"


def test_empty_identifiers_give_empty_list():
    assert build_targets([], 2025, "all") == []


def test_solo_generates_men_and_women_only():
    targets = build_targets([f"{BASE}/s8-2025-rome"], 2025, "solo")
    assert {t.gender for t in targets} == {"men", "women"}
    assert {t.competition_type for t in targets} == {CompetitionType.SOLO}
    assert len(targets) == 2 * len(CURRENT_BUCKETS)


def test_double_generates_three_genders_with_doubles_suffix():
    targets = build_targets([f"{BASE}/s8-2025-rome"], 2025, "double")
    assert [t.gender for t in targets[:: len(CURRENT_BUCKETS)]] == ["men", "women", "mixed"]
    assert all("-hyrox-doubles-" in t.url for t in targets)


def test_all_orders_slug_then_type_then_gender_then_age_group():
    targets = build_targets([f"{BASE}/s8-2025-rome", f"{BASE}/s8-2025-berlin"], 2025, "all")
    per_slug = 5 * len(CURRENT_BUCKETS)
    assert len(targets) == 2 * per_slug
    assert {t.base_slug for t in targets[:per_slug]} == {"s8-2025-rome"}
    rome = targets[:per_slug]
    kinds = [(t.competition_type, t.gender) for t in rome[:: len(CURRENT_BUCKETS)]]
    assert kinds == [
        (CompetitionType.SOLO, "men"),
        (CompetitionType.SOLO, "women"),
        (CompetitionType.DOUBLE, "men"),
        (CompetitionType.DOUBLE, "women"),
        (CompetitionType.DOUBLE, "mixed"),
    ]
    assert [t.age_group for t in rome[: len(CURRENT_BUCKETS)]] == list(CURRENT_BUCKETS)


def test_duplicate_base_slugs_are_collapsed():
    idents = [
        f"{BASE}/s8-2025-rome-hyrox-men",
        f"{BASE}/s8-2025-rome-hyrox-women",
        f"{BASE}/s8-2025-rome",
    ]
    targets = build_targets(idents, 2025, "solo")
    assert len(targets) == 2 * len(CURRENT_BUCKETS)
    assert len({t.key for t in targets}) == len(targets)


def test_build_is_deterministic():
    idents = [f"{BASE}/s8-2025-rome", f"{BASE}/s7-2024-london"]
    assert build_targets(idents, None, "all") == build_targets(idents, None, "all")


def test_year_filters_identifiers_with_other_years():
    targets = build_targets([f"{BASE}/s8-2025-rome", f"{BASE}/s7-2024-london"], 2024, "solo")
    assert {t.base_slug for t in targets} == {"s7-2024-london"}
    assert all(t.season_year == 2024 for t in targets)


def test_legacy_season_tries_every_candidate_bucket_set():
    groups = age_groups_for_slug("s7-2024-london")
    assert "80-84" in groups and "70+" in groups
    assert groups.index("65-69") < groups.index("70-74") < groups.index("70+") < groups.index("75-79")
    assert age_groups_for_slug("s8-2025-rome") == list(CURRENT_BUCKETS)


def test_target_url_and_key():
    solo = Target("s8-2025-rome", CompetitionType.SOLO, "men", "45-49", 2025)
    assert solo.url == "https://www.hyresult.com/ranking/s8-2025-rome-hyrox-men?ag=45-49"
    assert solo.key == "rome-2025-men-45-49"
    assert solo.event_name == "HYROX Rome"

    mixed = Target("s8-2025-new-york", CompetitionType.DOUBLE, "mixed", "50-54", 2025)
    assert mixed.url.endswith("/s8-2025-new-york-hyrox-doubles-mixed?ag=50-54")
    assert mixed.key == "new-york-2025-doubles-mixed-50-54"
    assert mixed.event_name == "HYROX New York"
