"""
Map composition shared by every role.

One scene holds the road path line, numbered stop markers and the live bus
marker. Taps are dispatched to whichever handler the role wired in: the
route editor for admins, the attendance collector for drivers, nothing for
students.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from transport_client.config import config
from transport_client.models import LatLng, LivePosition, Role, Stop
from transport_client.type_defs import GeoJSON

logger = logging.getLogger(__name__)

PATH_COLOR = "#3182CE"


@dataclass(frozen=True)
class StopMarker:
    stop: Stop
    label: int  # 1-based position along the route


@dataclass(frozen=True)
class BusMarker:
    latitude: float
    longitude: float
    heading: float = 0.0


StopHandler = Callable[[Stop], object]
MapPressHandler = Callable[[float, float], object]


class MapScene:
    def __init__(
        self,
        role: Role,
        on_stop_press: Optional[StopHandler] = None,
        on_map_press: Optional[MapPressHandler] = None,
    ):
        self.role = role
        self._on_stop_press = on_stop_press
        self._on_map_press = on_map_press
        self.road_path: List[LatLng] = []
        self.stop_markers: List[StopMarker] = []
        self.bus: Optional[BusMarker] = None

    @property
    def camera_follows_user(self) -> bool:
        return self.role.drives

    @property
    def line_layer(self) -> List[LatLng]:
        return list(self.road_path)

    def set_road_path(self, path: Sequence[LatLng]) -> None:
        self.road_path = list(path)

    def set_stops(self, stops: Sequence[Stop]) -> None:
        ordered = sorted(stops, key=lambda s: s.stop_order)
        self.stop_markers = [StopMarker(stop=s, label=i) for i, s in enumerate(ordered, start=1)]

    def set_bus(self, position: Optional[LivePosition]) -> None:
        if position is None:
            self.bus = None
            return
        self.bus = BusMarker(latitude=position.lat, longitude=position.lng, heading=position.heading)

    def press_stop(self, stop_id: int) -> bool:
        """Dispatch a marker tap; returns False when the role has no action."""
        if self.role.drives or self.role.edits_routes:
            marker = next((m for m in self.stop_markers if m.stop.id == stop_id), None)
            if marker is None or self._on_stop_press is None:
                return False
            self._on_stop_press(marker.stop)
            return True
        return False

    def press_map(self, lat: float, lng: float) -> bool:
        if not self.role.edits_routes or self._on_map_press is None:
            return False
        self._on_map_press(lat, lng)
        return True

    def style_url(self, api_key: Optional[str] = None) -> Optional[str]:
        key = api_key or config.MAP_TILE_API_KEY
        if not key:
            logger.warning("Map tile API key not configured (TRANSPORT_MAP_TILE_API_KEY)")
            return None
        return config.MAP_STYLE_URL.format(key=key)

    def to_geojson(self) -> GeoJSON:
        features = []
        if self.road_path:
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [[p.longitude, p.latitude] for p in self.road_path],
                    },
                    "properties": {"layer": "road_path", "color": PATH_COLOR},
                }
            )
        for marker in self.stop_markers:
            features.append(
                {
                    "type": "Feature",
                    "geometry": {"type": "Point", "coordinates": list(marker.stop.coordinates)},
                    "properties": {
                        "layer": "stops",
                        "stop_id": marker.stop.id,
                        "label": marker.label,
                        "name": marker.stop.stop_name,
                    },
                }
            )
        if self.bus is not None:
            features.append(
                {
                    "type": "Feature",
                    "geometry": {"type": "Point", "coordinates": [self.bus.longitude, self.bus.latitude]},
                    "properties": {"layer": "bus", "heading": self.bus.heading},
                }
            )
        return {"type": "FeatureCollection", "features": features}
