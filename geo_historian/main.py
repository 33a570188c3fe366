import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Depends, Request, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from . import storage
from .config import settings
from .db import engine, Base, async_session, get_session, get_session_factory
from .errors import NotFoundError, register_exception_handlers
from .explore import discoveries, explore_point, preload_waypoints
from .geo import Coordinate, generate_waypoints
from .logging_config import setup_logging
from .rate_limit import RateLimiter
from .schemas import (
    ExploreRequest,
    ExploreResponse,
    HistoryAudioUpdate,
    HistoryCreate,
    HistoryOut,
    Point,
    PreloadedDiscovery,
    PreloadRequest,
    RouteCreate,
    RouteDetail,
    RouteOut,
    RoutePlanRequest,
    RoutePlanResponse,
    RouteWaypointOut,
)
from .tasks import purge_old_history, run_periodically, sweep_rate_limits

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    limiter = RateLimiter(settings.RATE_LIMIT_MAX, settings.RATE_LIMIT_WINDOW_SECONDS)
    app.state.rate_limiter = limiter

    background = [
        asyncio.create_task(run_periodically(
            settings.RATE_LIMIT_SWEEP_SECONDS,
            lambda: sweep_rate_limits(limiter),
            "rate-limit sweep",
        )),
        asyncio.create_task(run_periodically(
            settings.HISTORY_SWEEP_SECONDS,
            lambda: purge_old_history(async_session, settings.HISTORY_RETENTION_DAYS),
            "history retention sweep",
        )),
    ]
    logger.info("Geo Historian started")

    yield

    for task in background:
        task.cancel()
    await asyncio.gather(*background, return_exceptions=True)
    await engine.dispose()
    logger.info("Geo Historian stopped")


app = FastAPI(title="Geo Historian", lifespan=lifespan)
register_exception_handlers(app)


def get_rate_limiter(request: Request) -> RateLimiter:
    """Dependency for the process-wide rate limiter created at startup."""
    return request.app.state.rate_limiter


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@app.get("/health", response_class=PlainTextResponse, include_in_schema=False)
def health():
    return "ok"

# ---------- Discovery ----------
@app.post("/api/explore", response_model=ExploreResponse)
async def explore(
    body: ExploreRequest,
    request: Request,
    factory: async_sessionmaker = Depends(get_session_factory),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    found = await explore_point(
        factory, limiter, client_key(request), body.latitude, body.longitude, body.language
    )
    return ExploreResponse.model_validate(found)

@app.post("/api/explore/preload", response_model=List[PreloadedDiscovery])
async def preload(
    body: PreloadRequest,
    request: Request,
    factory: async_sessionmaker = Depends(get_session_factory),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    points = [Coordinate(p.latitude, p.longitude) for p in body.waypoints]
    outcomes = await preload_waypoints(factory, limiter, client_key(request), points, body.language)
    return [PreloadedDiscovery.model_validate(d) for d in discoveries(outcomes)]

# ---------- History ----------
@app.get("/api/history", response_model=List[HistoryOut])
async def list_history(session=Depends(get_session)):
    return await storage.get_history(session, settings.HISTORY_LIST_LIMIT)

@app.post("/api/history", response_model=HistoryOut, status_code=201)
async def add_history(body: HistoryCreate, session=Depends(get_session)):
    return await storage.create_history(session, **body.model_dump())

@app.patch("/api/history/{history_id}", response_model=HistoryOut)
async def set_history_audio(history_id: int, body: HistoryAudioUpdate, session=Depends(get_session)):
    item = await storage.update_history_audio(session, history_id, body.audio)
    if item is None:
        raise NotFoundError("History item not found")
    return item

@app.delete("/api/history/{history_id}", status_code=204)
async def remove_history(history_id: int, session=Depends(get_session)):
    await storage.delete_history(session, history_id)
    return Response(status_code=204)

# ---------- Routes ----------
@app.get("/api/routes", response_model=List[RouteOut])
async def list_routes(session=Depends(get_session)):
    return await storage.get_routes(session)

@app.post("/api/routes/plan", response_model=RoutePlanResponse)
async def plan_route(
    body: RoutePlanRequest,
    request: Request,
    factory: async_sessionmaker = Depends(get_session_factory),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    points = generate_waypoints(
        Coordinate(body.start.latitude, body.start.longitude),
        Coordinate(body.end.latitude, body.end.longitude),
        body.count,
    )
    outcomes = await preload_waypoints(factory, limiter, client_key(request), points, body.language)
    return RoutePlanResponse(
        waypoints=[Point(latitude=p.latitude, longitude=p.longitude) for p in points],
        discoveries=[PreloadedDiscovery.model_validate(d) for d in discoveries(outcomes)],
    )

@app.get("/api/routes/{route_id}", response_model=RouteDetail)
async def route_details(route_id: int, session=Depends(get_session)):
    found = await storage.get_route_with_waypoints(session, route_id)
    if found is None:
        raise NotFoundError("Route not found")
    route, waypoints = found
    return RouteDetail(
        route=RouteOut.model_validate(route),
        waypoints=[RouteWaypointOut.model_validate(w) for w in waypoints],
    )

@app.post("/api/routes", response_model=RouteOut, status_code=201)
async def add_route(body: RouteCreate, session=Depends(get_session)):
    return await storage.create_route(session, **body.model_dump())

@app.delete("/api/routes/{route_id}", status_code=204)
async def remove_route(route_id: int, session=Depends(get_session)):
    await storage.delete_route(session, route_id)
    return Response(status_code=204)
