import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Mapping, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from .cache import StatsCache, build_cache
from .config import Settings, get_settings
from .errors import NotFound, StatsError, UpstreamUnavailable
from .fetchers import Fetcher, build_fetchers
from .logging_config import configure_logging
from .profiles import LinkedAccounts, ProfileStore
from .ratelimit import RateLimiter
from .service import StatsService
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> StatsService:
    return request.app.state.service


def get_profiles(request: Request) -> ProfileStore:
    return request.app.state.profiles


def rate_limit(request: Request) -> None:
    request.app.state.rate_limiter(request)


# ---------------------------------------------------
# STATS
# ---------------------------------------------------

@router.get("/stats/{platform}", dependencies=[Depends(rate_limit)])
def platform_stats(
    platform: str,
    username: Optional[str] = Query(None),
    service: StatsService = Depends(get_service),
) -> Dict[str, Any]:
    return service.get_stats(platform.lower(), username)


# ---------------------------------------------------
# PROFILES
# ---------------------------------------------------

def _require_profile(profiles: ProfileStore, user_id: str) -> LinkedAccounts:
    profile = profiles.get_profile(user_id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile


@router.get("/profiles/{user_id}")
def get_profile(user_id: str, profiles: ProfileStore = Depends(get_profiles)) -> LinkedAccounts:
    return _require_profile(profiles, user_id)


@router.put("/profiles/{user_id}/links")
def update_profile_links(
    user_id: str,
    accounts: LinkedAccounts,
    profiles: ProfileStore = Depends(get_profiles),
) -> LinkedAccounts:
    return profiles.update_links(user_id, accounts)


@router.delete("/profiles/{user_id}", status_code=204)
def delete_profile(user_id: str, profiles: ProfileStore = Depends(get_profiles)) -> Response:
    if not profiles.delete_profile(user_id):
        raise NotFound("Profile not found")
    return Response(status_code=204)


@router.get("/profiles/{user_id}/stats", dependencies=[Depends(rate_limit)])
def profile_stats(
    user_id: str,
    profiles: ProfileStore = Depends(get_profiles),
    service: StatsService = Depends(get_service),
) -> Dict[str, Dict[str, Any]]:
    profile = _require_profile(profiles, user_id)
    return service.get_many(profile.linked())


# ---------------------------------------------------
# HEALTH + CACHE ADMIN
# ---------------------------------------------------

@router.get("/health")
def health(service: StatsService = Depends(get_service)) -> Dict[str, str]:
    return {"status": "ok", "cache": service.cache.name}


@router.post("/admin/clear_cache")
def clear_cache(service: StatsService = Depends(get_service)) -> Dict[str, str]:
    return {"cache": "cleared" if service.cache.clear() else "unavailable"}


@router.delete("/admin/cache/{platform}")
def invalidate_entry(
    platform: str,
    username: Optional[str] = Query(None),
    service: StatsService = Depends(get_service),
) -> Dict[str, bool]:
    return {"deleted": service.invalidate(platform.lower(), username)}


# ---------------------------------------------------
# ERROR MAPPING
# ---------------------------------------------------

async def handle_stats_error(request: Request, exc: StatsError) -> JSONResponse:
    if isinstance(exc, UpstreamUnavailable):
        logger.warning("%s %s failed upstream (%s): %s", request.method, request.url.path, exc.cause, exc.message)
    return JSONResponse({"message": exc.message}, status_code=exc.status_code)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


# ---------------------------------------------------
# APP FACTORY
# ---------------------------------------------------

def create_app(
    settings: Optional[Settings] = None,
    *,
    cache: Optional[StatsCache] = None,
    client: Optional[UpstreamClient] = None,
    fetchers: Optional[Mapping[str, Fetcher]] = None,
    profiles: Optional[ProfileStore] = None,
) -> FastAPI:
    settings = settings or get_settings()
    cache = cache if cache is not None else build_cache(settings)
    client = client or UpstreamClient(timeout=settings.http_timeout)
    fetchers = fetchers if fetchers is not None else build_fetchers(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("devstats starting, cache backend: %s", cache.name)
        try:
            yield
        finally:
            client.close()
            logger.info("devstats shut down")

    app = FastAPI(title="Developer Stats API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = StatsService(cache, client, fetchers, settings.cache_ttl)
    app.state.profiles = profiles if profiles is not None else ProfileStore()
    app.state.rate_limiter = RateLimiter(settings.rate_limit, settings.rate_period)

    app.add_exception_handler(StatsError, handle_stats_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app


def build_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    return create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(build_app(), host="0.0.0.0", port=8000)
