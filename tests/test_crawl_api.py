import pytest
from fastapi.testclient import TestClient

from podium_crawler.config import Settings
from podium_crawler.db.cache_store import ResultCache
from podium_crawler.main import app
from podium_crawler.models.results import CacheSnapshot
from podium_crawler.services.podium_service import PodiumService, get_podium_service


EVENTS = "https://www.hyresult.com/ranking/s8-2025-rome\nnot a url\n"

PODIUM_HTML = """
<table>
  <thead><tr><th>Rank</th><th>Name</th><th>Time</th></tr></thead>
  <tbody>
    <tr><td>1</td><td>J. Doe</td><td>1:02:10</td></tr>
    <tr><td>2</td><td>A. Smith</td><td>1:03:45</td></tr>
    <tr><td>3</td><td>B. Lee</td><td>1:04:02</td></tr>
  </tbody>
</table>
"""


class _FakeFetcher:
    def __init__(self):
        self.calls = []
        self.error = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def fetch(self, url):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return PODIUM_HTML


@pytest.fixture
def service(tmp_path):
    settings = Settings(
        data_dir=str(tmp_path),
        cache_file=str(tmp_path / "latest.json"),
        events_url="https://lists.example/events.txt",
        events_file=str(tmp_path / "events.txt"),
        crawl_delay=0.0,
    )

    async def fake_http_get(url):
        return 200, EVENTS

    fetcher = _FakeFetcher()
    svc = PodiumService(settings, fetcher_factory=lambda: fetcher, http_get=fake_http_get)
    svc.fake_fetcher = fetcher
    return svc


@pytest.fixture
def client(service):
    app.dependency_overrides[get_podium_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_scrape_all_then_cache(client, service):
    resp = client.post("/api/scrape-all", params={"year": 2025, "type": "solo"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "completed"
    assert data["targets"] == 14
    assert data["added"] == 14
    assert data["totalCount"] == 14
    assert data["eventList"]["invalid"] == ["not a url"]

    cache = client.get("/api/cache").json()
    assert cache["count"] == 14
    keys = [r["key"] for r in cache["records"]]
    assert keys[0] == "rome-2025-men-45-49"
    assert "rome-2025-women-75-79" in keys
    assert cache["records"][0]["podium"][0] == {"rank": "1", "name": "J. Doe", "time": "1:02:10"}


def test_scrape_missing_is_up_to_date_after_full_run(client, service):
    client.post("/api/scrape-all", params={"type": "solo"})
    calls_before = len(service.fake_fetcher.calls)

    resp = client.post("/api/scrape-missing", params={"type": "solo"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "up-to-date"
    assert data["added"] == 0
    assert len(service.fake_fetcher.calls) == calls_before


def test_scrape_missing_fetches_only_new_type(client, service):
    client.post("/api/scrape-all", params={"type": "solo"})
    resp = client.post("/api/scrape-missing", params={"type": "all"})
    data = resp.json()
    assert data["skipped"] == 14
    assert data["added"] == 21
    assert data["totalCount"] == 35


def test_scrape_returns_409_while_cache_is_locked(client, service):
    with service.cache.run_lock():
        resp = client.post("/api/scrape-all")
    assert resp.status_code == 409
    # The in-process flag is released after the refusal.
    assert client.post("/api/scrape-all", params={"type": "solo"}).status_code == 200


def test_invalid_type_is_rejected(client):
    assert client.post("/api/scrape-all", params={"type": "relay"}).status_code == 422


def test_clear_and_restore(client):
    client.post("/api/scrape-all", params={"type": "solo"})
    snapshot = client.get("/api/cache").json()

    resp = client.delete("/api/cache")
    assert resp.json() == {"status": "cleared", "totalCount": 0}
    assert client.get("/api/cache").json()["records"] == []

    resp = client.post("/api/cache/restore", json=snapshot)
    assert resp.status_code == 200
    assert resp.json()["totalCount"] == 14

    resp = client.post("/api/cache/restore", params={"replace": True}, json=snapshot["records"][:2])
    assert resp.json()["totalCount"] == 2
    assert resp.json()["previousCount"] == 14


def test_restore_with_no_records_is_a_bad_request(client):
    assert client.post("/api/cache/restore", json={"records": []}).status_code == 400
    assert client.post("/api/cache/restore", json=[]).status_code == 400


def test_stop_and_progress_when_idle(client):
    resp = client.post("/api/scrape/stop")
    assert resp.json()["stopping"] is False

    client.post("/api/scrape-all", params={"type": "double"})
    progress = client.get("/api/progress").json()
    assert progress["running"] is False
    assert progress["mode"] == "full"
    assert progress["queued"] == 21
    assert progress["done"] == 21


def test_test_one_does_not_touch_cache(client):
    resp = client.get("/api/test-one", params={"url": "https://www.hyresult.com/ranking/s8-2025-rome-hyrox-men?ag=45-49"})
    data = resp.json()
    assert data["ok"] is True
    assert [p["name"] for p in data["podium"]] == ["J. Doe", "A. Smith", "B. Lee"]
    assert client.get("/api/cache").json()["count"] == 0


def test_logs_tail_todays_file(client, service):
    with open(service.settings.log_file(), "w", encoding="utf-8") as f:
        f.write("first\nsecond\n")
    data = client.get("/api/logs").json()
    assert data["lines"] == ["first", "second"]


def test_test_one_reports_unexpected_fetch_errors(client, service):
    service.fake_fetcher.error = RuntimeError("Target page, context or browser has been closed")
    resp = client.get("/api/test-one", params={"url": "https://www.hyresult.com/ranking/s8-2025-rome-hyrox-men?ag=45-49"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is False
    assert "RuntimeError" in data["error"]


def test_reading_the_cache_leaves_run_state_alone(client, service):
    client.post("/api/scrape-all", params={"type": "solo"})
    assert service.cache.contains("rome-2025-men-45-49")

    # Document on disk differs from the run-owned view (a reader racing a persist).
    ResultCache(service.settings.cache_file).persist(CacheSnapshot())
    assert client.get("/api/cache").json()["count"] == 0

    assert service.cache.contains("rome-2025-men-45-49")
    assert service.cache.snapshot.count == 14
