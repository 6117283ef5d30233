"""
Road-path resolution through OSRM.

Turns an ordered list of stops into the road-following line drawn on the
route map. Any failure degrades to an empty path: the map is drawn without
a line and the caller never sees an exception.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence

import httpx
import polyline

from transport_client.config.osrm import osrm_config
from transport_client.models import LatLng
from transport_client.type_defs import LngLat

logger = logging.getLogger(__name__)


def _lng_lat(stop: Any) -> LngLat:
    if isinstance(stop, Mapping):
        return float(stop["stop_lng"]), float(stop["stop_lat"])
    return float(stop.stop_lng), float(stop.stop_lat)


def build_coordinates_param(stops: Sequence[Any]) -> str:
    """Format stops as OSRM's ``lng,lat;lng,lat`` path segment, in input order."""
    return ";".join(f"{lng},{lat}" for lng, lat in map(_lng_lat, stops))


def decode_geometry(geometry: str) -> List[LatLng]:
    """Decode a precision-5 encoded polyline into map points."""
    return [LatLng(latitude=lat, longitude=lng) for lat, lng in polyline.decode(geometry)]


async def get_road_path(
    stops: Optional[Sequence[Any]],
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[LatLng]:
    """
    Resolve the road path through ``stops``.

    Args:
        stops: Ordered stops (models or mappings with ``stop_lat``/``stop_lng``)
        client: Optional shared HTTP client; a short-lived one is used otherwise

    Returns:
        Decoded path points, start to end, or an empty list on any failure
    """
    if not stops or len(stops) < 2:
        return []

    try:
        url = f"{osrm_config.get_route_url()}/{build_coordinates_param(stops)}"
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"[OSRM] Invalid stop coordinates: {e}")
        return []

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=osrm_config.TIMEOUT_SECONDS)

    try:
        response = await client.get(url, params=osrm_config.route_params())
        response.raise_for_status()
        data = response.json()
        routes = data.get("routes") or []
        if not routes:
            logger.warning(f"[OSRM] No route returned (code={data.get('code')})")
            return []
        path = decode_geometry(routes[0]["geometry"])
        logger.debug(f"[OSRM] Resolved {len(path)} points for {len(stops)} stops")
        return path
    except httpx.HTTPError as e:
        logger.warning(f"[OSRM] Request failed: {e}")
    except (ValueError, KeyError, TypeError, IndexError, AttributeError) as e:
        logger.warning(f"[OSRM] Malformed response: {e}")
    finally:
        if owns_client:
            await client.aclose()
    return []


class RoadPathResolver:
    """Keeps one HTTP client alive across road-path lookups."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=osrm_config.TIMEOUT_SECONDS)
            self._owns_client = True
        return self._client

    async def resolve(self, stops: Optional[Sequence[Any]]) -> List[LatLng]:
        return await get_road_path(stops, client=self._get_client())

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "RoadPathResolver":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
