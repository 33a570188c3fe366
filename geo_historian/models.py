"""
SQLAlchemy database models.

Defines tables for discovered locations (history) and saved routes.
"""
from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .db import Base


class HistoryItem(Base):
    """
    A discovered location.

    Doubles as the proximity cache for explore lookups. Rows older than
    the retention period are removed by the daily sweep.
    """
    __tablename__ = "history"

    id = Column(Integer, primary_key=True)
    location_name = Column(Text, nullable=False)
    latitude = Column(Float(precision=53), nullable=False)
    longitude = Column(Float(precision=53), nullable=False)
    content = Column(Text, nullable=False)
    audio = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Route(Base):
    """
    A saved journey between two points.

    Owns its waypoints; deleting a route deletes them too.
    """
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    start_lat = Column(Float(precision=53), nullable=False)
    start_lng = Column(Float(precision=53), nullable=False)
    end_lat = Column(Float(precision=53), nullable=False)
    end_lng = Column(Float(precision=53), nullable=False)
    transport_mode = Column(String, nullable=False)  # walk | car | bike
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    waypoints = relationship(
        "RouteWaypoint",
        back_populates="route",
        order_by="RouteWaypoint.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class RouteWaypoint(Base):
    """A stop along a route. order_index is the travel order, assigned once at creation."""
    __tablename__ = "route_waypoints"

    id = Column(Integer, primary_key=True)
    route_id = Column(Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    location_name = Column(Text, nullable=False)
    latitude = Column(Float(precision=53), nullable=False)
    longitude = Column(Float(precision=53), nullable=False)
    content = Column(Text, nullable=False)
    audio = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False)

    route = relationship("Route", back_populates="waypoints")

    __table_args__ = (
        UniqueConstraint("route_id", "order_index", name="uniq_route_order"),
    )
