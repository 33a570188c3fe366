"""
Tests for the discovery pipeline with the Wikipedia lookup mocked out.
"""
from unittest.mock import AsyncMock, patch

import pytest

from geo_historian import storage
from geo_historian.errors import RateLimitError
from geo_historian.explore import (
    Discovery,
    OmitReason,
    Omitted,
    discoveries,
    explore_point,
    preload_waypoints,
)
from geo_historian.geo import Coordinate
from geo_historian.rate_limit import RateLimiter
from geo_historian.wikipedia import WikipediaLocation

CLIENT = "10.0.0.1"


def location(name, lat=40.0, lng=-3.0):
    return WikipediaLocation(location_name=name, content=f"{name} history.", latitude=lat, longitude=lng, distance=25.0)


@pytest.fixture
def mock_lookup():
    with patch('geo_historian.explore.explore_location', new_callable=AsyncMock) as m:
        yield m


class TestExplorePoint:

    async def test_cache_hit_skips_lookup_and_rate_limit(self, session_factory, limiter, mock_lookup, session):
        """Test a stored location within 100 m is reused without a lookup or quota use."""
        stored = await storage.create_history(
            session, location_name="Puerta del Sol", latitude=40.4168, longitude=-3.7038, content="Kilometre zero."
        )

        result = await explore_point(session_factory, limiter, CLIENT, 40.4170, -3.7038)

        assert result.cached is True
        assert result.history_id == stored.id
        assert result.location_name == "Puerta del Sol"
        mock_lookup.assert_not_awaited()
        assert len(limiter) == 0

    async def test_miss_looks_up_and_stores(self, session_factory, limiter, mock_lookup, session):
        """Test a cache miss calls Wikipedia and stores the result."""
        mock_lookup.return_value = location("Royal Palace")

        result = await explore_point(session_factory, limiter, CLIENT, 40.418, -3.714)

        assert result.cached is False
        assert result.location_name == "Royal Palace"
        mock_lookup.assert_awaited_once_with(40.418, -3.714, "en")
        saved = await storage.get_history(session)
        assert [(h.id, h.latitude, h.longitude) for h in saved] == [(result.history_id, 40.418, -3.714)]

    async def test_spanish_bypasses_cache(self, session_factory, limiter, mock_lookup, session):
        """Test Spanish requests never use the English cache."""
        await storage.create_history(
            session, location_name="Royal Palace", latitude=40.418, longitude=-3.714, content="English text."
        )
        mock_lookup.return_value = location("Palacio Real")

        result = await explore_point(session_factory, limiter, CLIENT, 40.418, -3.714, "es")

        assert result.cached is False
        assert result.location_name == "Palacio Real"
        mock_lookup.assert_awaited_once_with(40.418, -3.714, "es")

    async def test_nothing_found_stores_placeholder(self, session_factory, limiter, mock_lookup, session):
        """Test an area without articles stores the "Unexplored Area" placeholder."""
        mock_lookup.return_value = None

        result = await explore_point(session_factory, limiter, CLIENT, -45.0, -130.0)

        assert result.location_name == "Unexplored Area"
        assert result.cached is False
        saved = await storage.get_history(session)
        assert saved[0].id == result.history_id
        assert saved[0].location_name == "Unexplored Area"

    async def test_placeholder_is_localized(self, session_factory, limiter, mock_lookup):
        """Test the placeholder follows the requested language."""
        mock_lookup.return_value = None

        result = await explore_point(session_factory, limiter, CLIENT, -45.0, -130.0, "es")

        assert result.location_name == "Área sin explorar"
        assert result.content.startswith("No se encontraron")

    async def test_placeholder_served_from_cache_next_time(self, session_factory, limiter, mock_lookup):
        """Test a stored placeholder is served from the cache on the next visit."""
        mock_lookup.return_value = None
        first = await explore_point(session_factory, limiter, CLIENT, -45.0, -130.0)

        second = await explore_point(session_factory, limiter, CLIENT, -45.0, -130.0)

        assert second.cached is True
        assert second.history_id == first.history_id
        assert mock_lookup.await_count == 1

    async def test_rate_limited(self, session_factory, mock_lookup):
        """Test exceeding the quota raises RateLimitError without a lookup."""
        limiter = RateLimiter(max_requests=1, window_seconds=3600)
        mock_lookup.return_value = location("A")
        await explore_point(session_factory, limiter, CLIENT, 10.0, 10.0)

        with pytest.raises(RateLimitError):
            await explore_point(session_factory, limiter, CLIENT, 20.0, 20.0)

        assert mock_lookup.await_count == 1


class TestPreloadWaypoints:

    POINTS = [Coordinate(float(i), float(i)) for i in range(1, 6)]

    async def test_drops_waypoints_without_content(self, session_factory, limiter, mock_lookup):
        """Test preload omits waypoints with no content."""
        async def lookup(lat, lng, language):
            return location(f"Place {lat:.0f}") if lat in (1.0, 4.0) else None
        mock_lookup.side_effect = lookup

        outcomes = await preload_waypoints(session_factory, limiter, CLIENT, self.POINTS)

        found = discoveries(outcomes)
        assert len(outcomes) == 5
        assert sorted(d.location_name for d in found) == ["Place 1", "Place 4"]
        assert all(not d.cached for d in found)
        omitted = [o for o in outcomes if isinstance(o, Omitted)]
        assert {o.reason for o in omitted} == {OmitReason.NO_CONTENT}
        assert len(omitted) == 3

    async def test_no_placeholder_stored_for_empty_waypoints(self, session_factory, limiter, mock_lookup, session):
        """Test preload does not store placeholders."""
        mock_lookup.return_value = None

        outcomes = await preload_waypoints(session_factory, limiter, CLIENT, self.POINTS[:2])

        assert discoveries(outcomes) == []
        assert await storage.get_history(session) == []

    async def test_rate_limited_waypoints_are_omitted(self, session_factory, mock_lookup):
        """Test preload omits waypoints beyond the client's quota."""
        limiter = RateLimiter(max_requests=2, window_seconds=3600)
        mock_lookup.side_effect = lambda lat, lng, language: location(f"Place {lat:.0f}")

        outcomes = await preload_waypoints(session_factory, limiter, CLIENT, self.POINTS)

        assert len(discoveries(outcomes)) == 2
        reasons = [o.reason for o in outcomes if isinstance(o, Omitted)]
        assert reasons == [OmitReason.RATE_LIMITED] * 3

    async def test_failure_in_one_waypoint_does_not_affect_others(self, session_factory, limiter, mock_lookup):
        """Test an exception in one waypoint only drops that waypoint."""
        async def lookup(lat, lng, language):
            if lat == 3.0:
                raise RuntimeError("upstream exploded")
            return location(f"Place {lat:.0f}")
        mock_lookup.side_effect = lookup

        outcomes = await preload_waypoints(session_factory, limiter, CLIENT, self.POINTS)

        assert len(discoveries(outcomes)) == 4
        failed = [o for o in outcomes if isinstance(o, Omitted)]
        assert failed == [Omitted(3.0, 3.0, OmitReason.FAILED)]

    @patch('geo_historian.wikipedia._get_json', new_callable=AsyncMock)
    async def test_malformed_upstream_payload_is_no_content(self, mock_get_json, session_factory, limiter):
        """Test malformed Wikipedia payloads count as no content, not failures."""
        mock_get_json.return_value = {"query": ["weird"]}

        outcomes = await preload_waypoints(session_factory, limiter, CLIENT, self.POINTS[:2])

        assert [o.reason for o in outcomes] == [OmitReason.NO_CONTENT] * 2

    async def test_cached_waypoints_do_not_use_rate_limit(self, session_factory, mock_lookup, session):
        """Test cached waypoints are served without consuming quota."""
        await storage.create_history(session, location_name="Known", latitude=1.0, longitude=1.0, content="Seen.")
        limiter = RateLimiter(max_requests=1, window_seconds=3600)
        mock_lookup.return_value = location("Fresh")

        outcomes = await preload_waypoints(session_factory, limiter, CLIENT, self.POINTS[:2])

        found = {d.location_name: d for d in discoveries(outcomes)}
        assert found["Known"].cached is True
        assert found["Fresh"].cached is False
        assert isinstance(found["Known"], Discovery)
