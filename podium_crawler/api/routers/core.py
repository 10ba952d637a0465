from fastapi import APIRouter, Depends

from podium_crawler.services.podium_service import PodiumService, get_podium_service

router = APIRouter(prefix="/api", tags=["core"])


@router.get("/health")
def api_health(service: PodiumService = Depends(get_podium_service)):
    return service.health()


@router.get("/logs")
def api_logs(service: PodiumService = Depends(get_podium_service)):
    """Last lines of today's crawler log file."""
    return service.logs()


@router.get("/progress")
def api_progress(service: PodiumService = Depends(get_podium_service)):
    return service.get_progress()
