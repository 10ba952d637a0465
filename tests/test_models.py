import pytest
from pydantic import ValidationError

from podium_crawler.models.results import CacheSnapshot, PodiumEntry, RestoreRequest, ResultRecord


def _record(**overrides):
    data = {
        "key": "rome-2025-men-45-49",
        "eventName": "HYROX Rome",
        "gender": "men",
        "competitionType": "Solo",
        "year": 2025,
        "ageGroup": "45-49",
        "sourceUrl": "https://www.hyresult.com/ranking/s8-2025-rome-hyrox-men?ag=45-49",
        "podium": [{"rank": "1", "name": "J. Doe", "time": "1:02:10"}],
        "scrapedAt": "2025-06-01T10:00:00Z",
    }
    data.update(overrides)
    return data


def test_record_accepts_camel_case_and_dumps_it_back():
    r = ResultRecord.model_validate(_record())
    assert r.age_group == "45-49"
    assert r.competition_type == "Solo"
    dumped = r.to_dict()
    assert dumped["ageGroup"] == "45-49"
    assert dumped["sourceUrl"].endswith("?ag=45-49")
    assert "age_group" not in dumped


def test_record_accepts_field_names_too():
    e = PodiumEntry(rank="2", name="A. Smith", time="1:03:45")
    assert e.to_dict() == {"rank": "2", "name": "A. Smith", "time": "1:03:45"}


def test_podium_holds_at_most_three_entries():
    entries = [{"rank": str(i), "name": f"P{i}", "time": "1:00:00"} for i in range(1, 5)]
    with pytest.raises(ValidationError):
        ResultRecord.model_validate(_record(podium=entries))


def test_snapshot_and_restore_request():
    snap = CacheSnapshot.model_validate({"scrapedAt": None, "count": 1, "records": [_record()]})
    assert snap.records[0].key == "rome-2025-men-45-49"
    assert snap.to_dict()["scrapedAt"] is None

    body = RestoreRequest.model_validate({"records": [_record(), _record(key="rome-2025-women-45-49")]})
    assert [r.key for r in body.records] == ["rome-2025-men-45-49", "rome-2025-women-45-49"]
