"""
Live tracking over Socket.IO.
"""

from transport_client.realtime.connection import (
    DRIVER_LOCATION_UPDATE,
    JOIN_ROUTE,
    RECEIVE_LOCATION,
    ConnectionState,
    LiveConnection,
    backoff_delay,
)
from transport_client.realtime.location_source import (
    Fix,
    FixFilter,
    LocationSource,
    ReplayLocationSource,
    haversine_m,
)
from transport_client.realtime.tracking import (
    LocationPublisher,
    LocationSubscriber,
    build_location_message,
)

__all__ = [
    "ConnectionState",
    "DRIVER_LOCATION_UPDATE",
    "Fix",
    "FixFilter",
    "JOIN_ROUTE",
    "LiveConnection",
    "LocationPublisher",
    "LocationSource",
    "LocationSubscriber",
    "RECEIVE_LOCATION",
    "ReplayLocationSource",
    "backoff_delay",
    "build_location_message",
    "haversine_m",
]
