import logging
from typing import Dict, List, Tuple

import requests

from config import HTTP_TIMEOUT_SECONDS, OSRM_BASE_URL
from errors import RouteUnavailable
from models import Location

logger = logging.getLogger(__name__)


def cache_key(start: Location, end: Location) -> Tuple[float, float, float, float]:
    return (round(start.lat, 5), round(start.lng, 5), round(end.lat, 5), round(end.lng, 5))


class OsrmRouteProvider:
    """
    Road paths from an OSRM server. Successful routes are cached by rounded
    start/end coordinates; failures raise RouteUnavailable and are not cached.
    """

    def __init__(self, base_url: str = OSRM_BASE_URL, timeout: float = HTTP_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._cache: Dict[Tuple[float, float, float, float], List[Location]] = {}

    def fetch(self, start: Location, end: Location) -> List[Location]:
        key = cache_key(start, end)
        if key in self._cache:
            return list(self._cache[key])

        # OSRM expects lng,lat order
        url = f"{self.base_url}/route/v1/driving/{start.lng},{start.lat};{end.lng},{end.lat}"
        params = {"overview": "full", "geometries": "geojson"}
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise RouteUnavailable(f"OSRM request failed: {exc}") from exc

        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            raise RouteUnavailable(f"OSRM returned no route (code={data.get('code') if isinstance(data, dict) else None})")

        try:
            path = [Location(lat=lat, lng=lng) for lng, lat in routes[0]["geometry"]["coordinates"]]
        except (KeyError, TypeError, ValueError) as exc:
            raise RouteUnavailable(f"Malformed OSRM geometry: {exc}") from exc

        logger.info("ROUTE_FETCH points=%d start=%s end=%s", len(path), key[:2], key[2:])
        self._cache[key] = path
        return list(path)
