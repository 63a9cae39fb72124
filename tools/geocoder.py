"""
Geocoding proxy (OpenStreetMap Nominatim).

Provides:
- reverse_geocode(lat, lng): human-readable address for a bus position,
  cached in Redis because passengers poll the tracking page.
- search_places(q): forward search used when registering stops.

Nominatim's usage policy requires an identifying User-Agent; it is taken
from settings.GEOCODER_USER_AGENT.
"""

import logging
from typing import Any, Dict, List

import httpx

from config.settings import settings
from core.errors import GeocodingError
from infra.redis_client import redis_client

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown Location"
UNAVAILABLE = "Location name unavailable"


def _headers() -> Dict[str, str]:
    return {"User-Agent": settings.GEOCODER_USER_AGENT, "Accept-Language": "en-US,en;q=0.5"}


async def reverse_geocode(lat: float, lng: float) -> str:
    """Return the display name for a coordinate; never raises."""
    cached = await redis_client.get_address(lat, lng)
    if cached:
        return cached

    params = {"format": "json", "lat": lat, "lon": lng, "zoom": 18, "addressdetails": 1}
    try:
        async with httpx.AsyncClient(timeout=5.0, headers=_headers()) as client:
            resp = await client.get(f"{settings.NOMINATIM_URL}/reverse", params=params)
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("reverse_geocode failed for (%s,%s): %s", lat, lng, e)
        return UNAVAILABLE

    address = data.get("display_name") if isinstance(data, dict) else None
    if not address:
        return UNKNOWN_LOCATION
    await redis_client.cache_address(lat, lng, address, ttl=settings.GEOCODE_CACHE_TTL_SEC)
    return address


async def search_places(q: str) -> List[Dict[str, Any]]:
    """
    Forward search (first match only). Rate-limit responses from Nominatim
    (429/425) are passed back to the caller with the same status.
    """
    params = {"format": "json", "q": q, "limit": 1}
    try:
        async with httpx.AsyncClient(timeout=5.0, headers=_headers()) as client:
            resp = await client.get(f"{settings.NOMINATIM_URL}/search", params=params)
    except httpx.HTTPError as e:
        logger.error("search_places failed for q=%r: %s", q, e)
        raise GeocodingError(f"Geocoding service unreachable: {e}")

    if resp.status_code in (425, 429):
        raise GeocodingError("Too many requests. Please wait a moment.", status_code=resp.status_code)
    if resp.status_code >= 400:
        raise GeocodingError(f"Geocoding service error: {resp.status_code}")
    return resp.json()
