"""
Pytest configuration and shared fixtures for transport client tests.
"""
import os
import sys
from typing import List, Tuple

import httpx
import pytest
import pytest_asyncio

# Allow running the suite from a source checkout without installing
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from transport_client.api import TransportApiClient
from transport_client.models import Stop
from transport_client.realtime import LiveConnection
from transport_client.services import RoadPathResolver
from transport_client.tests.doubles import FakeSocket, OSRMStub, RecordingNotifier, no_sleep
from transport_client.tests.fake_backend import FakeDatabase, create_app


# ============================================================
# FIXTURES FOR STOPS
# ============================================================

@pytest.fixture
def abc_stops() -> List[Stop]:
    """Three stops on a diagonal: A(0,0), B(1,1), C(2,2)."""
    return [
        Stop(id=11, route_id=1, stop_name="A", stop_lat=0.0, stop_lng=0.0, stop_order=1),
        Stop(id=12, route_id=1, stop_name="B", stop_lat=1.0, stop_lng=1.0, stop_order=2),
        Stop(id=13, route_id=1, stop_name="C", stop_lat=2.0, stop_lng=2.0, stop_order=3),
    ]


@pytest.fixture
def diagonal_path() -> List[Tuple[float, float]]:
    """Decoded OSRM geometry through A, B and C as (lat, lng)."""
    return [(0.0, 0.0), (0.5, 0.5), (1.0, 1.0), (1.5, 1.5), (2.0, 2.0)]


# ============================================================
# FIXTURES FOR OSRM
# ============================================================

@pytest.fixture
def osrm_stub(diagonal_path) -> OSRMStub:
    return OSRMStub(diagonal_path)


@pytest.fixture
def osrm_client(osrm_stub) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(osrm_stub))


@pytest.fixture
def resolver(osrm_client) -> RoadPathResolver:
    return RoadPathResolver(client=osrm_client)


# ============================================================
# FIXTURES FOR THE REST API
# ============================================================

@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase.seeded()


@pytest_asyncio.fixture
async def api(fake_db):
    client = TransportApiClient(
        base_url="http://testserver/api",
        token="test-token",
        transport=httpx.ASGITransport(app=create_app(fake_db)),
    )
    yield client
    await client.aclose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ============================================================
# FIXTURES FOR SOCKET.IO
# ============================================================

@pytest.fixture
def fake_socket() -> FakeSocket:
    return FakeSocket()


@pytest.fixture
def connection(fake_socket) -> LiveConnection:
    return LiveConnection(
        "http://relay.test",
        sio=fake_socket,
        token="",
        base_delay=0.01,
        max_delay=0.05,
        max_attempts=3,
        jitter=0,
        sleep=no_sleep,
    )


# ============================================================
# TEST CONFIGURATION
# ============================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: exercises the fake REST backend end to end")
