"""
Transport feature services: road paths, route editing, attendance, map scene.
"""

from transport_client.services.attendance import AttendanceCollector, AttendanceRow
from transport_client.services.map_scene import BusMarker, MapScene, StopMarker
from transport_client.services.osrm_service import RoadPathResolver, get_road_path
from transport_client.services.route_editor import (
    EditorScreen,
    ModalMode,
    ModalTab,
    RouteEditor,
    StopModal,
)

__all__ = [
    "AttendanceCollector",
    "AttendanceRow",
    "BusMarker",
    "EditorScreen",
    "MapScene",
    "ModalMode",
    "ModalTab",
    "RoadPathResolver",
    "RouteEditor",
    "StopMarker",
    "StopModal",
    "get_road_path",
]
