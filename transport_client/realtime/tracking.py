"""
Live bus location: driver-side publishing and viewer-side subscription.

Both ends run on the same ``LiveConnection``. Each published update carries
a sequence number and a sender timestamp, and subscribers only apply
updates fresher than the position they already show. Watches and listeners
are scoped to ``async with`` blocks, so leaving a screen always releases
them.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from transport_client.api import TransportApiClient
from transport_client.config import config
from transport_client.errors import ApiError
from transport_client.models import LivePosition
from transport_client.realtime.connection import (
    DRIVER_LOCATION_UPDATE,
    RECEIVE_LOCATION,
    LiveConnection,
)
from transport_client.realtime.location_source import Fix, FixFilter, LocationSource, filtered
from transport_client.type_defs import EntityId, EventPayload

logger = logging.getLogger(__name__)


def build_location_message(route_id: EntityId, fix: Fix, seq: int, ts: int) -> EventPayload:
    return {
        "routeId": route_id,
        "lat": fix.latitude,
        "lng": fix.longitude,
        "bearing": fix.heading,
        "seq": seq,
        "ts": ts,
    }


class LocationPublisher:
    """Streams the driver's filtered GPS fixes to the route channel."""

    def __init__(
        self,
        connection: LiveConnection,
        route_id: EntityId,
        source: LocationSource,
        *,
        api: Optional[TransportApiClient] = None,
        fix_filter: Optional[FixFilter] = None,
        persist_interval: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.connection = connection
        self.route_id = route_id
        self.source = source
        self.api = api
        self.fix_filter = fix_filter or FixFilter()
        self.persist_interval = (
            config.TRACKING_PERSIST_INTERVAL if persist_interval is None else persist_interval
        )
        self._clock = clock
        self._monotonic = monotonic

        self.seq = 0
        self.sent_count = 0
        self.dropped_count = 0
        self.last_fix: Optional[Fix] = None
        self._last_persist: Optional[float] = None
        self._task: Optional[asyncio.Task] = None
        self._fix_callbacks: List[Callable[[Fix], Any]] = []

    def on_fix(self, callback: Callable[[Fix], Any]) -> None:
        """Called with every fix that passed the filter, sent or not."""
        self._fix_callbacks.append(callback)

    @property
    def is_tracking(self) -> bool:
        return self._task is not None and not self._task.done()

    async def publish(self, fix: Fix) -> bool:
        self.seq += 1
        payload = build_location_message(self.route_id, fix, self.seq, int(self._clock() * 1000))
        sent = await self.connection.emit(DRIVER_LOCATION_UPDATE, payload)
        self.last_fix = fix
        for callback in list(self._fix_callbacks):
            callback(fix)
        if sent:
            self.sent_count += 1
        else:
            self.dropped_count += 1
        await self._persist(fix)
        return sent

    async def _persist(self, fix: Fix, force: bool = False) -> None:
        if self.api is None:
            return
        now = self._monotonic()
        if (
            not force
            and self._last_persist is not None
            and now - self._last_persist < self.persist_interval
        ):
            return
        self._last_persist = now
        try:
            await self.api.update_route_location(self.route_id, fix.latitude, fix.longitude)
        except ApiError as e:
            logger.warning(f"[Tracking] Could not persist location for route {self.route_id}: {e.message}")

    async def _run(self) -> None:
        async for fix in filtered(self.source, self.fix_filter):
            await self.publish(fix)
        logger.info(f"[Tracking] Location source for route {self.route_id} finished")

    async def start(self) -> None:
        if self.is_tracking:
            return
        self.fix_filter.reset()
        logger.info(f"[Tracking] Trip started on route {self.route_id}")
        self._task = asyncio.create_task(self._run())

    async def wait(self) -> None:
        """Wait until the location source is exhausted."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception(f"[Tracking] Location source for route {self.route_id} failed")
        if self.last_fix is not None:
            await self._persist(self.last_fix, force=True)
        logger.info(
            f"[Tracking] Trip ended on route {self.route_id} "
            f"(sent={self.sent_count}, dropped={self.dropped_count})"
        )

    @asynccontextmanager
    async def trip(self) -> AsyncIterator["LocationPublisher"]:
        await self.start()
        try:
            yield self
        finally:
            await self.stop()


PositionCallback = Callable[[LivePosition], Any]


class LocationSubscriber:
    """Keeps the single freshest bus position for one route."""

    def __init__(
        self,
        connection: LiveConnection,
        *,
        stale_after: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.connection = connection
        self.stale_after = config.TRACKING_STALE_AFTER if stale_after is None else stale_after
        self._monotonic = monotonic

        self.route_id: Optional[EntityId] = None
        self.position: Optional[LivePosition] = None
        self.applied_count = 0
        self.discarded_count = 0
        self._callbacks: List[PositionCallback] = []

    def on_position(self, callback: PositionCallback) -> None:
        self._callbacks.append(callback)

    def seed(self, position: LivePosition) -> None:
        """Show a last persisted position before the first live update."""
        if self.position is None:
            self.position = position

    def handle_location(self, data: Any) -> bool:
        try:
            incoming = LivePosition.from_event(data, self._monotonic())
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[Tracking] Ignoring malformed location {data!r}: {e}")
            return False
        if not incoming.is_newer_than(self.position):
            self.discarded_count += 1
            logger.debug(f"[Tracking] Discarded stale update seq={incoming.seq} ts={incoming.ts}")
            return False
        self.position = incoming
        self.applied_count += 1
        for callback in list(self._callbacks):
            callback(incoming)
        return True

    @asynccontextmanager
    async def follow(self, route_id: EntityId) -> AsyncIterator["LocationSubscriber"]:
        self.route_id = route_id
        self.connection.add_listener(RECEIVE_LOCATION, self.handle_location)
        try:
            await self.connection.join_route(route_id)
            yield self
        finally:
            self.connection.remove_listener(RECEIVE_LOCATION, self.handle_location)
            self.connection.leave_route(route_id)

    def snapshot(self) -> Dict[str, Any]:
        """Last known position with its age, for the tracking status line."""
        position = self.position
        age = position.age(self._monotonic()) if position is not None else None
        return {
            "route_id": self.route_id,
            "position": position.coordinates if position is not None else None,
            "heading": position.heading if position is not None else None,
            "age_seconds": age,
            "stale": age is None or age > self.stale_after,
            "connection": self.connection.state.value,
        }
