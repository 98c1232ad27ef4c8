"""Best-effort viewer location: command-line override or IP lookup."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests
from requests import exceptions as requests_exceptions

from globe.common import GeoPoint, parse_location_string

LOGGER = logging.getLogger(__name__)

IP_LOOKUP_URL = "https://ipapi.co/json/"


def lookup_ip_location(url: str = IP_LOOKUP_URL, *, timeout: float = 5.0) -> Optional[GeoPoint]:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests_exceptions.RequestException, ValueError) as exc:
        LOGGER.warning("IP geolocation failed: %s", exc)
        return None
    point = _point_from_payload(payload)
    if point is None:
        LOGGER.warning("IP geolocation returned no usable coordinates")
    else:
        LOGGER.info("Located viewer near lon=%.2f lat=%.2f", point.lon, point.lat)
    return point


def resolve_location(location_text: Optional[str], *, geolocate: bool = False) -> Optional[GeoPoint]:
    """An explicit ``LON,LAT`` wins; otherwise look the address up if asked."""
    if location_text:
        point = parse_location_string(location_text)
        if point is not None:
            return point
        LOGGER.warning("Ignoring unparseable location %r (expected LON,LAT)", location_text)
    if geolocate:
        return lookup_ip_location()
    return None


def _point_from_payload(payload: Any) -> Optional[GeoPoint]:
    if not isinstance(payload, Mapping):
        return None
    lat = payload.get("latitude", payload.get("lat"))
    lon = payload.get("longitude", payload.get("lon"))
    try:
        point = GeoPoint(float(lon), float(lat))
        point.validate()
    except (TypeError, ValueError):
        return None
    return point
