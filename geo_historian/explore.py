"""
Discovery pipeline: stored-location cache, rate limit, Wikipedia lookup.

Each pipeline opens its own short-lived sessions from the factory it is
given, so preload can run several pipelines concurrently.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy.ext.asyncio import async_sessionmaker

from . import storage
from .config import settings
from .errors import RateLimitError
from .geo import Coordinate
from .rate_limit import RateLimiter
from .wikipedia import explore_location

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

PLACEHOLDERS = {
    "en": (
        "Unexplored Area",
        "No Wikipedia articles found near this location. "
        "Try exploring an area with more historical or cultural landmarks.",
    ),
    "es": (
        "Área sin explorar",
        "No se encontraron artículos de Wikipedia cerca de esta ubicación. "
        "Intenta explorar un área con más lugares de interés histórico o cultural.",
    ),
}


@dataclass
class Discovery:
    latitude: float
    longitude: float
    location_name: str
    content: str
    cached: bool
    history_id: Optional[int] = None


class OmitReason(str, enum.Enum):
    RATE_LIMITED = "rate_limited"
    NO_CONTENT = "no_content"
    FAILED = "failed"


@dataclass
class Omitted:
    latitude: float
    longitude: float
    reason: OmitReason


WaypointOutcome = Union[Discovery, Omitted]


def placeholder_for(language: str) -> Tuple[str, str]:
    return PLACEHOLDERS.get(language, PLACEHOLDERS[DEFAULT_LANGUAGE])


async def _cached_discovery(
    session_factory: async_sessionmaker, latitude: float, longitude: float, language: str
) -> Optional[Discovery]:
    # stored rows are English; other languages always go upstream
    if language != DEFAULT_LANGUAGE:
        return None
    async with session_factory() as session:
        item = await storage.find_nearby_location(session, latitude, longitude, settings.CACHE_RADIUS_M)
    if item is None:
        return None
    return Discovery(
        latitude=latitude,
        longitude=longitude,
        location_name=item.location_name,
        content=item.content,
        cached=True,
        history_id=item.id,
    )


async def _save_discovery(
    session_factory: async_sessionmaker,
    latitude: float,
    longitude: float,
    location_name: str,
    content: str,
) -> Discovery:
    async with session_factory() as session:
        item = await storage.create_history(
            session,
            location_name=location_name,
            latitude=latitude,
            longitude=longitude,
            content=content,
        )
    return Discovery(
        latitude=latitude,
        longitude=longitude,
        location_name=location_name,
        content=content,
        cached=False,
        history_id=item.id,
    )


async def _discover(
    session_factory: async_sessionmaker,
    limiter: RateLimiter,
    client_key: str,
    latitude: float,
    longitude: float,
    language: str,
    use_placeholder: bool,
) -> Optional[Discovery]:
    """
    Run one point through cache, rate limit and lookup.

    Returns None when nothing was found and `use_placeholder` is false.

    Raises:
        RateLimitError: If the lookup would exceed the client's quota
    """
    cached = await _cached_discovery(session_factory, latitude, longitude, language)
    if cached is not None:
        return cached

    if not limiter.allow(client_key):
        raise RateLimitError()

    found = await explore_location(latitude, longitude, language)
    if found is not None:
        return await _save_discovery(session_factory, latitude, longitude, found.location_name, found.content)

    if not use_placeholder:
        return None

    # stored so the next visit nearby is served from the cache
    name, content = placeholder_for(language)
    return await _save_discovery(session_factory, latitude, longitude, name, content)


async def explore_point(
    session_factory: async_sessionmaker,
    limiter: RateLimiter,
    client_key: str,
    latitude: float,
    longitude: float,
    language: Optional[str] = None,
) -> Discovery:
    """
    Discover what is at a single point.

    Cache hits (English only, within CACHE_RADIUS_M) skip the rate limit.
    A point with no nearby articles yields a stored "unexplored" placeholder.

    Raises:
        RateLimitError: If the client has used up its lookups for this window
    """
    return await _discover(
        session_factory, limiter, client_key, latitude, longitude,
        language or DEFAULT_LANGUAGE, use_placeholder=True,
    )


async def _preload_one(
    session_factory: async_sessionmaker,
    limiter: RateLimiter,
    client_key: str,
    point: Coordinate,
    language: str,
) -> WaypointOutcome:
    try:
        found = await _discover(
            session_factory, limiter, client_key, point.latitude, point.longitude,
            language, use_placeholder=False,
        )
    except RateLimitError:
        return Omitted(point.latitude, point.longitude, OmitReason.RATE_LIMITED)
    except Exception:
        logger.exception("Preload failed for waypoint (%s, %s)", point.latitude, point.longitude)
        return Omitted(point.latitude, point.longitude, OmitReason.FAILED)

    if found is None:
        return Omitted(point.latitude, point.longitude, OmitReason.NO_CONTENT)
    return found


async def preload_waypoints(
    session_factory: async_sessionmaker,
    limiter: RateLimiter,
    client_key: str,
    waypoints: Sequence[Coordinate],
    language: Optional[str] = None,
) -> List[WaypointOutcome]:
    """
    Discover several points concurrently.

    Every waypoint gets an outcome: a Discovery, or an Omitted saying why it
    was dropped. One waypoint failing does not affect the others.
    """
    lang = language or DEFAULT_LANGUAGE
    outcomes = await asyncio.gather(*(
        _preload_one(session_factory, limiter, client_key, point, lang) for point in waypoints
    ))
    omitted = [o for o in outcomes if isinstance(o, Omitted)]
    if omitted:
        logger.info(
            "Preload dropped %d of %d waypoints: %s",
            len(omitted), len(outcomes), ", ".join(o.reason.value for o in omitted),
        )
    return list(outcomes)


def discoveries(outcomes: Sequence[WaypointOutcome]) -> List[Discovery]:
    return [o for o in outcomes if isinstance(o, Discovery)]
