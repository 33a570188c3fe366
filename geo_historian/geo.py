"""
Geometry helpers: great-circle distance and straight-line route sampling.
"""
import math
from dataclasses import dataclass
from typing import List

EARTH_RADIUS_M: float = 6_371_000.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points using the haversine formula.

    Args:
        lat1, lon1: First point in decimal degrees
        lat2, lon2: Second point in decimal degrees

    Returns:
        Distance in meters
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def generate_waypoints(start: Coordinate, end: Coordinate, count: int = 3) -> List[Coordinate]:
    """
    Sample `count` evenly spaced points strictly between start and end.

    Interpolates linearly in degrees at ratios i / (count + 1).
    """
    waypoints: List[Coordinate] = []
    for i in range(1, count + 1):
        ratio = i / (count + 1)
        waypoints.append(Coordinate(
            latitude=start.latitude + (end.latitude - start.latitude) * ratio,
            longitude=start.longitude + (end.longitude - start.longitude) * ratio,
        ))
    return waypoints
