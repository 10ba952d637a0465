from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from podium_crawler.db.cache_store import PersistenceError
from podium_crawler.services.crawl.base import CrawlAlreadyRunning, TypeSelection
from podium_crawler.services.podium_service import PodiumService, get_podium_service

router = APIRouter(prefix="/api", tags=["crawl"])


@router.post("/scrape-all")
async def api_scrape_all(
    year: Optional[int] = Query(None, description="Season year, e.g. 2025 (default: all years in the list)"),
    type: TypeSelection = Query(TypeSelection.ALL, description="solo, double or all"),
    service: PodiumService = Depends(get_podium_service),
):
    """Crawl every target and overwrite cached results (last write wins)."""
    try:
        return await service.trigger_full_crawl(year, type)
    except CrawlAlreadyRunning as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=f"Cache write failed, run aborted: {exc}")


@router.post("/scrape-missing")
async def api_scrape_missing(
    year: Optional[int] = Query(None, description="Season year, e.g. 2025 (default: all years in the list)"),
    type: TypeSelection = Query(TypeSelection.ALL, description="solo, double or all"),
    service: PodiumService = Depends(get_podium_service),
):
    """Crawl only targets whose key is not in the cache yet."""
    try:
        return await service.trigger_missing_crawl(year, type)
    except CrawlAlreadyRunning as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=f"Cache write failed, run aborted: {exc}")


@router.post("/scrape/stop")
def api_scrape_stop(service: PodiumService = Depends(get_podium_service)):
    stopping = service.stop()
    return {"stopping": stopping, "note": "Current target will finish first." if stopping else "No crawl running."}


@router.get("/test-one")
async def api_test_one(
    url: str = Query(..., description="Full ranking page URL"),
    service: PodiumService = Depends(get_podium_service),
):
    return await service.preview(url)
