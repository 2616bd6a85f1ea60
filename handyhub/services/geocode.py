"""Address -> (lng, lat) lookup against a Nominatim-compatible endpoint."""

from __future__ import annotations

import logging

import httpx

from handyhub.config import settings

logger = logging.getLogger("handyhub.geocode")


async def geocode_address(address: str) -> tuple[float, float] | None:
    """Return ``(lng, lat)`` for the first match, or None when the address is
    unknown or the lookup fails."""
    params = {"q": address, "format": "json", "limit": 1}
    headers = {"User-Agent": settings.geocoder_user_agent}
    try:
        async with httpx.AsyncClient(timeout=settings.geocoder_timeout_seconds) as client:
            resp = await client.get(settings.geocoder_url, params=params, headers=headers)
        if resp.status_code != 200:
            logger.warning("Geocoder answered %s for %r", resp.status_code, address)
            return None
        results = resp.json()
        if not results:
            return None
        return float(results[0]["lon"]), float(results[0]["lat"])
    except Exception as e:
        logger.error("Geocoding error for %r: %s", address, e)
        return None
