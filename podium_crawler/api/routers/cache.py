from fastapi import APIRouter, Body, Depends, HTTPException
from typing import List, Union

from podium_crawler.db.cache_store import CacheUsageError, PersistenceError
from podium_crawler.models.results import RestoreRequest, ResultRecord
from podium_crawler.services.crawl.base import CrawlAlreadyRunning
from podium_crawler.services.podium_service import PodiumService, get_podium_service

router = APIRouter(prefix="/api", tags=["cache"])


@router.get("/cache")
def api_get_cache(service: PodiumService = Depends(get_podium_service)):
    """Current persisted snapshot, verbatim."""
    return service.get_cache()


@router.delete("/cache")
def api_clear_cache(service: PodiumService = Depends(get_podium_service)):
    try:
        return service.clear_cache()
    except CrawlAlreadyRunning as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/cache/restore")
def api_restore_cache(
    body: Union[RestoreRequest, List[ResultRecord]] = Body(..., description="A snapshot document or a bare record list"),
    replace: bool = False,
    service: PodiumService = Depends(get_podium_service),
):
    records = body.records if isinstance(body, RestoreRequest) else body
    try:
        return service.restore_cache(records, replace=replace)
    except CacheUsageError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except CrawlAlreadyRunning as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
