"""
Pydantic models for the transport API payloads.

The backend is not consistent about field names across endpoints (a stop is
``point``/``sno`` on one route, ``stop_name``/``stop_order`` on another), so
the models accept every spelling seen on the wire and expose one.
"""

import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from transport_client.type_defs import EventPayload, LngLat


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    DRIVER = "others"  # drivers and conductors
    STUDENT = "student"
    PARENT = "parent"

    @property
    def edits_routes(self) -> bool:
        return self in (Role.ADMIN, Role.TEACHER)

    @property
    def drives(self) -> bool:
        return self is Role.DRIVER


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class LatLng(BaseModel):
    """One point of a road path."""

    latitude: float
    longitude: float


class Stop(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = Field(None, validation_alias=AliasChoices("id", "stop_id"))
    route_id: Optional[int] = None
    stop_name: str = Field("", validation_alias=AliasChoices("stop_name", "point", "name"))
    stop_lat: float
    stop_lng: float
    stop_order: int = Field(0, validation_alias=AliasChoices("stop_order", "sno", "order"))

    @property
    def coordinates(self) -> LngLat:
        """(lng, lat), the order OSRM and GeoJSON use."""
        return (self.stop_lng, self.stop_lat)


class Route(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: int = Field(..., validation_alias=AliasChoices("id", "route_id"))
    route_name: str = ""
    bus_number: Optional[str] = None
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    conductor_id: Optional[int] = None
    conductor_name: Optional[str] = None
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    stops: List[Stop] = Field(default_factory=list)

    @property
    def driver_label(self) -> str:
        return self.driver_name or "Unassigned"

    def display(self, field: str) -> str:
        """Render an optional field the way list rows show it."""
        value = getattr(self, field, None)
        if value is None or value == "":
            return "-"
        return str(value)

    @property
    def ordered_stops(self) -> List[Stop]:
        return sorted(self.stops, key=lambda s: s.stop_order)


class Passenger(BaseModel):
    """A student record as seen by the transport screens."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: int = Field(..., validation_alias=AliasChoices("id", "user_id", "student_id"))
    full_name: str = Field("", validation_alias=AliasChoices("full_name", "name"))
    class_group: Optional[str] = None
    roll_no: Optional[str] = None
    stop_id: Optional[int] = None

    @property
    def is_assigned(self) -> bool:
        return self.stop_id is not None


class AttendanceMark(BaseModel):
    student_id: int
    stop_id: int
    route_id: int
    status: AttendanceStatus
    date: dt.date = Field(default_factory=dt.date.today)


class DriverRoster(BaseModel):
    """Response of the conductor endpoint: the assigned route and its riders."""

    route: Route
    students: List[Passenger] = Field(default_factory=list)


class RouteDraft(BaseModel):
    route_name: str = Field(..., min_length=1)
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    conductor_id: Optional[int] = None


class StopDraft(BaseModel):
    stop_name: str = Field(..., min_length=1)
    stop_lat: float = Field(..., ge=-90, le=90)
    stop_lng: float = Field(..., ge=-180, le=180)
    stop_order: Optional[int] = None


class LivePosition(BaseModel):
    """
    The bus position as last received over the socket.

    ``ts`` and ``seq`` are stamped by the publisher; ``received_at`` is the
    local monotonic clock at arrival and drives the age indicator.
    """

    lat: float
    lng: float
    heading: float = 0.0
    ts: Optional[int] = None
    seq: Optional[int] = None
    received_at: float = 0.0

    @classmethod
    def from_event(cls, data: EventPayload, received_at: float) -> "LivePosition":
        heading = data.get("bearing")
        if heading is None:
            heading = data.get("heading")
        return cls(
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            heading=float(heading or 0),
            ts=data.get("ts"),
            seq=data.get("seq"),
            received_at=received_at,
        )

    @property
    def coordinates(self) -> List[float]:
        return [self.lng, self.lat]

    def age(self, now: float) -> float:
        return max(0.0, now - self.received_at)

    def is_newer_than(self, other: Optional["LivePosition"]) -> bool:
        """Updates without a sender timestamp are trusted in arrival order."""
        if other is None or self.ts is None or other.ts is None:
            return True
        if self.ts != other.ts:
            return self.ts > other.ts
        if self.seq is None or other.seq is None:
            return False
        return self.seq > other.seq


__all__ = [
    "AttendanceMark",
    "AttendanceStatus",
    "DriverRoster",
    "LatLng",
    "LivePosition",
    "Passenger",
    "Role",
    "Route",
    "RouteDraft",
    "Stop",
    "StopDraft",
]
