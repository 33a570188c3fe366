"""
Wikipedia content lookup.

Finds articles near a coordinate with the MediaWiki geosearch API and
fetches a plain-text summary for the best candidate from the REST API.
Upstream failures are logged and reported as "nothing found"; they are
never raised to callers.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from .config import settings

logger = logging.getLogger(__name__)

# Semaphore to limit concurrent API requests (preload fans out several lookups)
_SEM: asyncio.Semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_WIKIPEDIA_REQUESTS)


@dataclass
class GeoSearchResult:
    title: str
    lat: float
    lon: float
    dist: float
    pageid: Optional[int] = None


@dataclass
class WikipediaSummary:
    title: str
    extract: str
    description: Optional[str] = None
    coordinates: Optional[Dict[str, float]] = None


@dataclass
class WikipediaLocation:
    location_name: str
    content: str
    latitude: float
    longitude: float
    distance: float


def base_url(language: str) -> str:
    return settings.WIKIPEDIA_BASE_URL_TEMPLATE.format(language=language)


async def _get_json(url: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """
    GET a JSON document from Wikipedia.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx responses
        ValueError: If the body is not valid JSON
    """
    headers = {"User-Agent": settings.WIKIPEDIA_USER_AGENT}
    async with _SEM:
        async with httpx.AsyncClient(timeout=settings.WIKIPEDIA_API_TIMEOUT, headers=headers) as client:
            r = await client.get(url, params=params)
            r.raise_for_status()
            return r.json()


async def find_nearby_articles(
    latitude: float,
    longitude: float,
    radius_m: int = 1000,
    limit: int = 5,
    language: str = "en",
) -> List[GeoSearchResult]:
    """
    Geosearch for articles around a point.

    Args:
        latitude, longitude: Search center in decimal degrees
        radius_m: Search radius in meters (capped at the upstream maximum)
        limit: Maximum number of articles
        language: Wikipedia edition, e.g. "en" or "es"

    Returns:
        Articles as reported by the API, or an empty list on any failure
    """
    params = {
        "action": "query",
        "list": "geosearch",
        "gscoord": f"{latitude}|{longitude}",
        "gsradius": min(radius_m, settings.MAX_SEARCH_RADIUS_M),
        "gslimit": limit,
        "format": "json",
    }
    try:
        data = await _get_json(f"{base_url(language)}/w/api.php", params=params)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Wikipedia geosearch failed at (%s, %s): %s", latitude, longitude, e)
        return []

    query = data.get("query") if isinstance(data, dict) else None
    raw = query.get("geosearch") if isinstance(query, dict) else None
    if not isinstance(raw, list):
        logger.warning("Unexpected Wikipedia geosearch payload at (%s, %s): %r", latitude, longitude, data)
        return []

    results: List[GeoSearchResult] = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("title"), str):
            logger.warning("Skipping malformed geosearch entry: %r", item)
            continue
        try:
            results.append(GeoSearchResult(
                title=item["title"],
                lat=float(item["lat"]),
                lon=float(item["lon"]),
                dist=float(item.get("dist", 0.0)),
                pageid=item.get("pageid"),
            ))
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed geosearch entry: %r", item)
    return results


async def get_summary(title: str, language: str = "en") -> Optional[WikipediaSummary]:
    """Fetch the page summary for an article title, or None if it cannot be fetched."""
    encoded = quote(title.replace(" ", "_"), safe="")
    try:
        data = await _get_json(f"{base_url(language)}/api/rest_v1/page/summary/{encoded}")
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Wikipedia summary failed for %r: %s", title, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Unexpected Wikipedia summary payload for %r", title)
        return None

    # anything not shaped like a summary is treated as missing
    page_title = data.get("title")
    extract = data.get("extract")
    description = data.get("description")
    coordinates = data.get("coordinates")
    return WikipediaSummary(
        title=page_title if isinstance(page_title, str) and page_title else title,
        extract=extract if isinstance(extract, str) else "",
        description=description if isinstance(description, str) else None,
        coordinates=coordinates if isinstance(coordinates, dict) else None,
    )


def format_content(summary: WikipediaSummary) -> str:
    """Prefix the extract with the short description unless the extract already contains it."""
    content = summary.extract
    if summary.description and summary.description.lower() not in content.lower():
        content = f"{summary.description}\n\n{content}"
    return content


def _to_location(summary: WikipediaSummary, article: GeoSearchResult) -> WikipediaLocation:
    return WikipediaLocation(
        location_name=summary.title,
        content=format_content(summary),
        latitude=article.lat,
        longitude=article.lon,
        distance=article.dist,
    )


async def explore_location(
    latitude: float,
    longitude: float,
    language: str = "en",
) -> Optional[WikipediaLocation]:
    """
    Resolve a coordinate to the nearest article with usable text.

    Searches within the default radius, widening once if nothing is found.
    The nearest candidate wins unless its summary is empty, in which case the
    remaining candidates are tried in order of distance.

    Returns:
        The resolved location, or None if there is no coverage or no
        candidate has any text
    """
    articles = await find_nearby_articles(
        latitude, longitude, settings.SEARCH_RADIUS_M, settings.SEARCH_LIMIT, language
    )
    if not articles:
        articles.extend(await find_nearby_articles(
            latitude, longitude, settings.EXPANDED_SEARCH_RADIUS_M, settings.SEARCH_LIMIT, language
        ))
        if not articles:
            return None

    # sorted() is stable, so upstream order is kept for equal distances
    articles = sorted(articles, key=lambda a: a.dist)

    for article in articles:
        summary = await get_summary(article.title, language)
        if summary and summary.extract:
            return _to_location(summary, article)
        logger.info("No usable summary for %r, trying next candidate", article.title)
    return None
