"""
Tests for role-based screen selection and the driver console.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from transport_client.errors import UnsupportedRoleError
from transport_client.models import AttendanceStatus, Role
from transport_client.realtime import DRIVER_LOCATION_UPDATE, RECEIVE_LOCATION, Fix, ReplayLocationSource
from transport_client.views import (
    AdminRoutesScreen,
    DriverConsole,
    LiveMapView,
    TransportSession,
    open_routes_screen,
)


@pytest.fixture
def session(api, resolver, connection, notifier):
    return TransportSession(api=api, resolver=resolver, connection=connection, notifier=notifier)


class TestOpenRoutesScreen:
    @pytest.mark.parametrize(
        "role, screen_type",
        [
            ("admin", AdminRoutesScreen),
            ("teacher", AdminRoutesScreen),
            ("others", DriverConsole),
            ("student", LiveMapView),
            ("parent", LiveMapView),
        ],
    )
    def test_role_selects_screen(self, role, screen_type, connection, notifier):
        session = TransportSession(api=object(), resolver=object(), connection=connection, notifier=notifier)
        assert isinstance(open_routes_screen(role, session), screen_type)

    @pytest.mark.parametrize("role", ["janitor", None, ""])
    def test_unknown_role(self, role, connection, notifier):
        session = TransportSession(api=object(), resolver=object(), connection=connection, notifier=notifier)
        with pytest.raises(UnsupportedRoleError) as exc_info:
            open_routes_screen(role, session)
        assert exc_info.value.role == role

    def test_accepts_enum(self, connection, notifier):
        session = TransportSession(api=object(), resolver=object(), connection=connection, notifier=notifier)
        screen = open_routes_screen(Role.TEACHER, session)
        assert screen.role is Role.TEACHER


class TestTransportSession:
    @pytest.mark.asyncio
    async def test_close_continues_after_socket_error(self):
        api = MagicMock(aclose=AsyncMock())
        resolver = MagicMock(aclose=AsyncMock())
        connection = MagicMock(disconnect=AsyncMock(side_effect=RuntimeError("socket closed")))
        session = TransportSession(api=api, resolver=resolver, connection=connection, notifier=MagicMock())

        with pytest.raises(RuntimeError):
            await session.aclose()

        resolver.aclose.assert_awaited_once()
        api.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_continues_after_resolver_error(self):
        api = MagicMock(aclose=AsyncMock())
        resolver = MagicMock(aclose=AsyncMock(side_effect=RuntimeError("pool closed")))
        connection = MagicMock(disconnect=AsyncMock())
        session = TransportSession(api=api, resolver=resolver, connection=connection, notifier=MagicMock())

        with pytest.raises(RuntimeError):
            await session.aclose()

        api.aclose.assert_awaited_once()

@pytest.mark.integration
class TestDriverConsole:
    @pytest.mark.asyncio
    async def test_load_resolves_path_and_stops(self, session, diagonal_path):
        console = DriverConsole(session)

        assert await console.load()

        scene = console.scene
        assert scene.camera_follows_user
        assert [(p.latitude, p.longitude) for p in scene.line_layer] == diagonal_path
        assert [m.stop.stop_name for m in scene.stop_markers] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_stop_tap_opens_attendance(self, session):
        console = DriverConsole(session)
        await console.load()

        assert console.scene.press_stop(12)

        assert console.collector.stop.id == 12
        assert [p.full_name for p in console.collector.passengers] == ["Divya"]
        assert await console.collector.mark(204, AttendanceStatus.PRESENT)
        assert console.collector.status_of(204) is AttendanceStatus.PRESENT

    @pytest.mark.asyncio
    async def test_trip_publishes_on_assigned_route(self, session, connection, fake_socket):
        console = DriverConsole(session)
        await console.load()
        await connection.connect()
        source = ReplayLocationSource([Fix(17.0, 78.0, 0, 0)], speed=0)

        async with console.trip(source):
            assert console.publisher.route_id == console.route.id
            await console.publisher.wait()

        assert not console.is_tracking
        assert [m["routeId"] for m in fake_socket.emitted_events(DRIVER_LOCATION_UPDATE)] == [1]

    @pytest.mark.asyncio
    async def test_trip_fixes_move_bus_marker(self, session, connection):
        console = DriverConsole(session)
        await console.load()
        scene = console.scene
        assert scene.bus is None
        await connection.connect()
        source = ReplayLocationSource([Fix(17.0, 78.0, 90.0, 0)], speed=0)

        async with console.trip(source):
            await console.publisher.wait()

        assert console.scene is scene
        assert (scene.bus.latitude, scene.bus.longitude, scene.bus.heading) == (17.0, 78.0, 90.0)
        assert len(scene.stop_markers) == 3

    @pytest.mark.asyncio
    async def test_trip_needs_route(self, session, notifier, fake_db):
        fake_db.driver_route_id = 404
        console = DriverConsole(session)
        await console.load()

        assert not await console.start_trip(ReplayLocationSource([], speed=0))
        assert console.publisher is None


@pytest.mark.integration
class TestAdminRoutesScreen:
    @pytest.mark.asyncio
    async def test_track_then_back(self, session):
        screen = AdminRoutesScreen(session)
        await screen.load()
        await screen.editor.open_route(screen.editor.routes[0])

        view = await screen.track(1)
        assert view is screen.tracking
        assert view.route.route_name == "North Loop"

        screen.back()
        assert screen.tracking is None
        assert screen.editor.route is not None

        screen.back()
        assert screen.editor.route is None

    @pytest.mark.asyncio
    async def test_tracked_bus_shown_on_route_map(self, session, connection, fake_socket):
        screen = AdminRoutesScreen(session)
        await screen.load()
        await screen.editor.open_route(screen.editor.routes[0])
        scene = screen.scene
        await connection.connect()

        view = await screen.track(1)
        async with view.live():
            await fake_socket.trigger(RECEIVE_LOCATION, {"lat": 17.40, "lng": 78.48, "bearing": 45})

        assert screen.scene is scene
        assert (scene.bus.latitude, scene.bus.longitude, scene.bus.heading) == (17.40, 78.48, 45.0)
        assert [m.stop.stop_name for m in scene.stop_markers] == ["A", "B", "C"]

        screen.back()
        assert screen.scene.bus is None

    @pytest.mark.asyncio
    async def test_route_map_follows_open_route(self, session):
        screen = AdminRoutesScreen(session)
        scene = screen.scene
        assert scene.stop_markers == []
        await screen.load()

        await screen.editor.open_route(screen.editor.routes[0])
        assert screen.scene is scene
        assert len(scene.stop_markers) == 3

        screen.back()
        assert screen.scene.stop_markers == []

    @pytest.mark.asyncio
    async def test_track_missing_route(self, session, notifier):
        screen = AdminRoutesScreen(session)

        assert await screen.track(999) is None
        assert notifier.alerts == [("Error", "Route not found")]
