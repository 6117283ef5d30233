"""
Route and stop editor for administrators.

Models the admin flow as a small state machine:

    route list  ->  route map (stops, road path, tap-to-add)  ->  stop modal
                                                                  (details / passengers)

Every backend call is guarded at its call site: on ``ApiError`` the user is
alerted through the notifier and the editor keeps the state it had before
the call.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from transport_client.api import TransportApiClient
from transport_client.errors import ApiError
from transport_client.models import LatLng, Passenger, Route, RouteDraft, Stop, StopDraft
from transport_client.notifier import Notifier
from transport_client.services.osrm_service import RoadPathResolver

logger = logging.getLogger(__name__)


class EditorScreen(str, Enum):
    ROUTE_LIST = "route_list"
    ROUTE_MAP = "route_map"
    STOP_DETAIL = "stop_detail"


class ModalMode(str, Enum):
    NEW = "new"
    EDIT = "edit"


class ModalTab(str, Enum):
    DETAILS = "details"
    PASSENGERS = "passengers"


@dataclass
class StopModal:
    mode: ModalMode
    tab: ModalTab = ModalTab.DETAILS
    stop: Optional[Stop] = None
    pending: Optional[Tuple[float, float]] = None  # (lat, lng) of the tapped point
    name: str = ""


class RouteEditor:
    """Admin view state over routes, their stops and stop passengers."""

    def __init__(self, api: TransportApiClient, resolver: RoadPathResolver, notifier: Notifier):
        self.api = api
        self.resolver = resolver
        self.notifier = notifier

        self.routes: List[Route] = []
        self.route: Optional[Route] = None
        self.stops: List[Stop] = []
        self.road_path: List[LatLng] = []
        self.modal: Optional[StopModal] = None
        self.students: List[Passenger] = []

    @property
    def screen(self) -> EditorScreen:
        if self.route is None:
            return EditorScreen.ROUTE_LIST
        if self.modal is None:
            return EditorScreen.ROUTE_MAP
        return EditorScreen.STOP_DETAIL

    def _fail(self, error: ApiError) -> None:
        self.notifier.alert("Error", error.message)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    async def load_routes(self) -> bool:
        try:
            self.routes = await self.api.list_routes()
        except ApiError as e:
            self._fail(e)
            return False
        return True

    async def create_route(self, draft: RouteDraft) -> bool:
        try:
            created = await self.api.create_route(draft)
        except ApiError as e:
            self._fail(e)
            return False
        logger.info(f"Route created: {created.id if created else draft.route_name}")
        await self.load_routes()
        return True

    async def update_route(self, route_id: int, draft: RouteDraft) -> bool:
        try:
            updated = await self.api.update_route(route_id, draft)
        except ApiError as e:
            self._fail(e)
            return False
        if updated is not None and self.route is not None and self.route.id == updated.id:
            self.route = updated.model_copy(update={"stops": self.stops})
        await self.load_routes()
        return True

    async def delete_route(self, route_id: int) -> bool:
        if not self.notifier.confirm("Delete Route", "Are you sure you want to delete this route?"):
            return False
        try:
            await self.api.delete_route(route_id)
        except ApiError as e:
            self._fail(e)
            return False
        self.routes = [r for r in self.routes if r.id != route_id]
        if self.route is not None and self.route.id == route_id:
            self.close_route()
        return True

    # ------------------------------------------------------------------
    # Route map
    # ------------------------------------------------------------------

    async def open_route(self, route: Route) -> bool:
        try:
            stops = await self.api.list_stops(route.id)
        except ApiError as e:
            self._fail(e)
            return False
        self.route = route
        self.modal = None
        await self._apply_stops(stops)
        return True

    async def refresh_stops(self) -> bool:
        if self.route is None:
            return False
        try:
            stops = await self.api.list_stops(self.route.id)
        except ApiError as e:
            self._fail(e)
            return False
        await self._apply_stops(stops)
        return True

    async def _apply_stops(self, stops: List[Stop]) -> None:
        self.stops = stops
        self.road_path = await self.resolver.resolve(stops) if len(stops) >= 2 else []

    def close_route(self) -> None:
        self.route = None
        self.stops = []
        self.road_path = []
        self.modal = None
        self.students = []

    def on_map_press(self, lat: float, lng: float) -> bool:
        """Stage a new stop at the tapped coordinate."""
        if self.route is None:
            return False
        self.modal = StopModal(mode=ModalMode.NEW, pending=(lat, lng))
        return True

    def on_stop_press(self, stop: Stop) -> None:
        self.modal = StopModal(mode=ModalMode.EDIT, stop=stop, name=stop.stop_name)

    def close_modal(self) -> None:
        self.modal = None

    # ------------------------------------------------------------------
    # Stop modal: details tab
    # ------------------------------------------------------------------

    async def save_stop(self, name: str) -> bool:
        if self.modal is None or self.route is None:
            return False
        name = (name or "").strip()
        if not name:
            self.notifier.alert("Required", "Please enter a stop name.")
            return False

        try:
            if self.modal.mode is ModalMode.NEW:
                lat, lng = self.modal.pending
                draft = StopDraft(
                    stop_name=name,
                    stop_lat=lat,
                    stop_lng=lng,
                    stop_order=len(self.stops) + 1,
                )
                await self.api.create_stop(self.route.id, draft)
            else:
                stop = self.modal.stop
                draft = StopDraft(stop_name=name, stop_lat=stop.stop_lat, stop_lng=stop.stop_lng)
                await self.api.update_stop(stop.id, draft)
        except ApiError as e:
            self._fail(e)
            return False

        self.modal = None
        await self.refresh_stops()
        return True

    async def delete_stop(self) -> bool:
        if self.modal is None or self.modal.mode is not ModalMode.EDIT:
            return False
        if not self.notifier.confirm("Delete Stop", f"Remove '{self.modal.stop.stop_name}'?"):
            return False
        try:
            await self.api.delete_stop(self.modal.stop.id)
        except ApiError as e:
            self._fail(e)
            return False
        self.modal = None
        await self.refresh_stops()
        return True

    # ------------------------------------------------------------------
    # Stop modal: passengers tab
    # ------------------------------------------------------------------

    async def show_passengers(self) -> bool:
        if self.modal is None:
            return False
        if self.modal.mode is not ModalMode.EDIT:
            self.notifier.alert("Save Stop", "Save the stop before assigning students.")
            return False
        self.modal.tab = ModalTab.PASSENGERS
        return await self.load_passengers()

    def show_details(self) -> None:
        if self.modal is not None:
            self.modal.tab = ModalTab.DETAILS

    async def load_passengers(self) -> bool:
        try:
            self.students = await self.api.list_students()
        except ApiError as e:
            self._fail(e)
            return False
        return True

    @property
    def visible_passengers(self) -> List[Passenger]:
        """All students except those already riding from a different stop."""
        if self.modal is None or self.modal.stop is None:
            return []
        stop_id = self.modal.stop.id
        return [p for p in self.students if p.stop_id is None or p.stop_id == stop_id]

    def is_assigned_here(self, student_id: int) -> bool:
        if self.modal is None or self.modal.stop is None:
            return False
        return any(p.id == student_id and p.stop_id == self.modal.stop.id for p in self.students)

    async def assign_student(self, student_id: int, assign: bool) -> bool:
        """Toggle one student on or off the open stop; each toggle is its own request."""
        if self.modal is None or self.modal.stop is None:
            return False
        target = self.modal.stop.id if assign else None
        try:
            updated = await self.api.set_student_stop(student_id, target)
        except ApiError as e:
            self._fail(e)
            return False

        new_stop_id = target
        if (
            updated is not None
            and updated.id == student_id
            and "stop_id" in updated.model_fields_set
        ):
            new_stop_id = updated.stop_id
        self.students = [
            p.model_copy(update={"stop_id": new_stop_id}) if p.id == student_id else p
            for p in self.students
        ]
        return True
