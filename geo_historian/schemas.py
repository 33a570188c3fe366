"""
Request and response contracts for the HTTP API.

Fields are snake_case in Python and camelCase on the wire.
"""
import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import settings

Language = Literal["en", "es"]
TransportMode = Literal["walk", "car", "bike"]

Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Point(ApiModel):
    latitude: Latitude
    longitude: Longitude


class ExploreRequest(Point):
    language: Optional[Language] = None


class ExploreResponse(ApiModel):
    location_name: str
    content: str
    cached: bool
    history_id: Optional[int] = None


class PreloadRequest(ApiModel):
    waypoints: List[Point] = Field(max_length=settings.PRELOAD_MAX_WAYPOINTS)
    language: Optional[Language] = None


class PreloadedDiscovery(ApiModel):
    latitude: float
    longitude: float
    location_name: str
    content: str
    cached: bool
    history_id: Optional[int] = None


class HistoryCreate(ApiModel):
    location_name: str = Field(min_length=1)
    latitude: Latitude
    longitude: Longitude
    content: str = Field(min_length=1)
    audio: Optional[str] = None


class HistoryAudioUpdate(ApiModel):
    audio: str


class HistoryOut(ApiModel):
    id: int
    location_name: str
    latitude: float
    longitude: float
    content: str
    audio: Optional[str] = None
    created_at: Optional[datetime.datetime] = None


class WaypointCreate(ApiModel):
    location_name: str = Field(min_length=1)
    latitude: Latitude
    longitude: Longitude
    content: str = Field(min_length=1)
    audio: Optional[str] = None


class RouteCreate(ApiModel):
    name: str = Field(min_length=1)
    start_lat: Latitude
    start_lng: Longitude
    end_lat: Latitude
    end_lng: Longitude
    transport_mode: TransportMode
    waypoints: List[WaypointCreate] = Field(default_factory=list)


class RouteOut(ApiModel):
    id: int
    name: str
    start_lat: float
    start_lng: float
    end_lat: float
    end_lng: float
    transport_mode: str
    created_at: Optional[datetime.datetime] = None


class RouteWaypointOut(ApiModel):
    id: int
    route_id: int
    location_name: str
    latitude: float
    longitude: float
    content: str
    audio: Optional[str] = None
    order_index: int


class RouteDetail(ApiModel):
    route: RouteOut
    waypoints: List[RouteWaypointOut]


class RoutePlanRequest(ApiModel):
    start: Point
    end: Point
    count: int = Field(default=3, ge=1, le=settings.PRELOAD_MAX_WAYPOINTS)
    language: Optional[Language] = None


class RoutePlanResponse(ApiModel):
    waypoints: List[Point]
    discoveries: List[PreloadedDiscovery]
