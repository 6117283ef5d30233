"""
Role-based entry point for the transport routes feature.

``open_routes_screen`` picks what a signed-in user sees:

- admin / teacher: the route editor, with live tracking of a chosen route
- others (driver, conductor): the trip console and stop attendance
- student / parent: the live map of their own route
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union

from transport_client.api import TransportApiClient
from transport_client.errors import ApiError, UnsupportedRoleError
from transport_client.models import LivePosition, Role, Route
from transport_client.notifier import LoggingNotifier, Notifier
from transport_client.realtime import (
    Fix,
    LiveConnection,
    LocationPublisher,
    LocationSource,
    LocationSubscriber,
)
from transport_client.services import AttendanceCollector, MapScene, RoadPathResolver, RouteEditor
from transport_client.type_defs import EntityId

logger = logging.getLogger(__name__)


class TransportSession:
    """Owns the API client, road-path resolver and socket for one signed-in user."""

    def __init__(
        self,
        api: Optional[TransportApiClient] = None,
        resolver: Optional[RoadPathResolver] = None,
        connection: Optional[LiveConnection] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.api = api or TransportApiClient()
        self.resolver = resolver or RoadPathResolver()
        self.connection = connection or LiveConnection()
        self.notifier = notifier or LoggingNotifier()

    async def aclose(self) -> None:
        try:
            await self.connection.disconnect()
        finally:
            try:
                await self.resolver.aclose()
            finally:
                await self.api.aclose()

    async def __aenter__(self) -> "TransportSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class LiveMapView:
    """Read-only live map of one route."""

    def __init__(self, session: TransportSession, route_id: Optional[EntityId] = None, role: Role = Role.STUDENT):
        self.session = session
        self.route_id = route_id
        self.route: Optional[Route] = None
        self.scene = MapScene(role)
        self.subscriber = LocationSubscriber(session.connection)
        self.subscriber.on_position(self.scene.set_bus)

    async def load(self) -> bool:
        api = self.session.api
        try:
            route = await (api.get_route(self.route_id) if self.route_id is not None else api.get_my_route())
        except ApiError as e:
            self.session.notifier.alert("Error", e.message)
            return False
        self.route = route
        stops = route.ordered_stops
        self.scene.set_stops(stops)
        if route.current_lat is not None and route.current_lng is not None:
            self.subscriber.seed(LivePosition(lat=route.current_lat, lng=route.current_lng))
            self.scene.set_bus(self.subscriber.position)
        self.scene.set_road_path(await self.session.resolver.resolve(stops))
        return True

    @asynccontextmanager
    async def live(self) -> AsyncIterator["LiveMapView"]:
        if self.route is None:
            raise RuntimeError("load() the route before going live")
        async with self.subscriber.follow(self.route.id):
            yield self

    def status(self) -> dict:
        return self.subscriber.snapshot()


class AdminRoutesScreen:
    def __init__(self, session: TransportSession, role: Role = Role.ADMIN):
        self.session = session
        self.role = role
        self.editor = RouteEditor(session.api, session.resolver, session.notifier)
        self.tracking: Optional[LiveMapView] = None
        self._scene = MapScene(
            role,
            on_stop_press=self.editor.on_stop_press,
            on_map_press=self.editor.on_map_press,
        )

    @property
    def scene(self) -> MapScene:
        """The editor map, synced with the open route's stops and path."""
        self._scene.set_stops(self.editor.stops)
        self._scene.set_road_path(self.editor.road_path)
        return self._scene

    async def load(self) -> bool:
        return await self.editor.load_routes()

    async def track(self, route_id: EntityId) -> Optional[LiveMapView]:
        view = LiveMapView(self.session, route_id=route_id, role=self.role)
        if not await view.load():
            return None
        view.subscriber.on_position(self._scene.set_bus)
        self._scene.set_bus(view.subscriber.position)
        self.tracking = view
        return view

    def back(self) -> None:
        if self.tracking is not None:
            self.tracking = None
            self._scene.set_bus(None)
        else:
            self.editor.close_route()


class DriverConsole:
    def __init__(self, session: TransportSession):
        self.session = session
        self.collector = AttendanceCollector(session.api, session.notifier)
        self.publisher: Optional[LocationPublisher] = None
        self.road_path = []
        self.scene = MapScene(Role.DRIVER, on_stop_press=lambda stop: self.collector.select_stop(stop.id))

    @property
    def route(self) -> Optional[Route]:
        return self.collector.route

    async def load(self) -> bool:
        if not await self.collector.load():
            return False
        route = self.route
        self.scene.set_stops(route.stops)
        if route.current_lat is not None and route.current_lng is not None:
            self.scene.set_bus(LivePosition(lat=route.current_lat, lng=route.current_lng))
        self.road_path = await self.session.resolver.resolve(route.ordered_stops)
        self.scene.set_road_path(self.road_path)
        return True

    def _show_bus(self, fix: Fix) -> None:
        self.scene.set_bus(LivePosition(lat=fix.latitude, lng=fix.longitude, heading=fix.heading))

    @property
    def is_tracking(self) -> bool:
        return self.publisher is not None and self.publisher.is_tracking

    async def start_trip(self, source: LocationSource) -> bool:
        if self.route is None:
            self.session.notifier.alert("Error", "No route assigned to you.")
            return False
        if self.is_tracking:
            return True
        self.publisher = LocationPublisher(
            self.session.connection, self.route.id, source, api=self.session.api
        )
        self.publisher.on_fix(self._show_bus)
        await self.publisher.start()
        return True

    async def end_trip(self) -> None:
        if self.publisher is not None:
            await self.publisher.stop()

    @asynccontextmanager
    async def trip(self, source: LocationSource) -> AsyncIterator["DriverConsole"]:
        started = await self.start_trip(source)
        try:
            yield self
        finally:
            if started:
                await self.end_trip()


RoutesScreen = Union[AdminRoutesScreen, DriverConsole, LiveMapView]


def open_routes_screen(role: Union[Role, str, None], session: TransportSession) -> RoutesScreen:
    try:
        role = Role(role)
    except ValueError:
        raise UnsupportedRoleError(role) from None
    if role.edits_routes:
        return AdminRoutesScreen(session, role)
    if role.drives:
        return DriverConsole(session)
    return LiveMapView(session, role=role)
