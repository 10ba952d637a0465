from contextlib import asynccontextmanager
from fastapi import FastAPI

from podium_crawler.config import APP_NAME, APP_VERSION, configure_logging, get_settings

# Routers
from podium_crawler.api.routers.core import router as core_router
from podium_crawler.api.routers.crawl import router as crawl_router
from podium_crawler.api.routers.cache import router as cache_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Set up file logging in the data directory before serving."""
    configure_logging(get_settings())
    yield


app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)

app.include_router(core_router)
app.include_router(crawl_router)
app.include_router(cache_router)
