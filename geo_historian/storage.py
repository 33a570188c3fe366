"""
Persistence for discovered locations and saved routes.

All functions take an open AsyncSession; write operations commit.
"""
import datetime
from typing import Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .geo import haversine_distance_m
from .models import HistoryItem, Route, RouteWaypoint


async def find_nearby_location(
    session: AsyncSession, latitude: float, longitude: float, radius_m: float = 100.0
) -> Optional[HistoryItem]:
    """
    Return the first stored discovery within `radius_m` meters, if any.

    Linear scan over every row. Fine at this scale; a spatial index
    (geohash grid or R-tree) would replace it without changing the result.
    """
    rows = (await session.execute(select(HistoryItem).order_by(HistoryItem.id))).scalars()
    for item in rows:
        if haversine_distance_m(latitude, longitude, item.latitude, item.longitude) <= radius_m:
            return item
    return None


async def get_history(session: AsyncSession, limit: int = 50) -> List[HistoryItem]:
    rows = await session.execute(
        select(HistoryItem)
        .order_by(HistoryItem.created_at.desc(), HistoryItem.id.desc())
        .limit(limit)
    )
    return list(rows.scalars().all())


async def create_history(
    session: AsyncSession,
    location_name: str,
    latitude: float,
    longitude: float,
    content: str,
    audio: Optional[str] = None,
) -> HistoryItem:
    item = HistoryItem(
        location_name=location_name,
        latitude=latitude,
        longitude=longitude,
        content=content,
        audio=audio,
    )
    session.add(item)
    await session.commit()
    # pick up server-side defaults (id, created_at)
    await session.refresh(item)
    return item


async def update_history_audio(session: AsyncSession, history_id: int, audio: str) -> Optional[HistoryItem]:
    item = await session.get(HistoryItem, history_id)
    if item is None:
        return None
    item.audio = audio
    await session.commit()
    await session.refresh(item)
    return item


async def delete_history(session: AsyncSession, history_id: int) -> bool:
    result = await session.execute(delete(HistoryItem).where(HistoryItem.id == history_id))
    await session.commit()
    return result.rowcount > 0


async def cleanup_old_history(session: AsyncSession, days_old: int) -> int:
    """Delete discoveries created more than `days_old` days ago. Returns the number deleted."""
    cutoff = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=days_old)
    result = await session.execute(delete(HistoryItem).where(HistoryItem.created_at < cutoff))
    await session.commit()
    return result.rowcount or 0


async def get_routes(session: AsyncSession) -> List[Route]:
    rows = await session.execute(select(Route).order_by(Route.created_at.desc(), Route.id.desc()))
    return list(rows.scalars().all())


async def get_route_with_waypoints(
    session: AsyncSession, route_id: int
) -> Optional[Tuple[Route, List[RouteWaypoint]]]:
    route = await session.get(Route, route_id)
    if route is None:
        return None
    waypoints = (
        await session.execute(
            select(RouteWaypoint)
            .where(RouteWaypoint.route_id == route_id)
            .order_by(RouteWaypoint.order_index)
        )
    ).scalars().all()
    return route, list(waypoints)


async def create_route(
    session: AsyncSession,
    name: str,
    start_lat: float,
    start_lng: float,
    end_lat: float,
    end_lng: float,
    transport_mode: str,
    waypoints: Iterable[Mapping],
) -> Route:
    """
    Save a route and its waypoints.

    Waypoints get order_index equal to their position in `waypoints`.
    Each mapping needs location_name, latitude, longitude and content; audio is optional.
    """
    route = Route(
        name=name,
        start_lat=start_lat,
        start_lng=start_lng,
        end_lat=end_lat,
        end_lng=end_lng,
        transport_mode=transport_mode,
    )
    session.add(route)
    await session.flush()

    session.add_all([
        RouteWaypoint(
            route_id=route.id,
            location_name=wp["location_name"],
            latitude=wp["latitude"],
            longitude=wp["longitude"],
            content=wp["content"],
            audio=wp.get("audio"),
            order_index=index,
        )
        for index, wp in enumerate(waypoints)
    ])
    await session.commit()
    await session.refresh(route)
    return route


async def delete_route(session: AsyncSession, route_id: int) -> bool:
    # load the waypoints so the ORM cascade removes them even without FK enforcement
    route = await session.get(
        Route, route_id, options=[selectinload(Route.waypoints)], populate_existing=True
    )
    if route is None:
        return False
    await session.delete(route)
    await session.commit()
    return True
