"""
Device location sources for the driver console.

A source yields GPS fixes as an async iterator. ``FixFilter`` applies the
reporting thresholds (minimum distance moved and minimum time between
reports) before anything is published.
"""

import asyncio
import csv
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Union

from transport_client.config import config

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class Fix:
    latitude: float
    longitude: float
    heading: float = 0.0
    # Epoch seconds; stamped on creation when the device gives none
    timestamp: float = field(default_factory=lambda: time.time())


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlng / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class FixFilter:
    """Passes the first fix, then only fixes far enough and late enough."""

    def __init__(self, min_distance_m: Optional[float] = None, min_interval_s: Optional[float] = None):
        self.min_distance_m = (
            config.TRACKING_MIN_DISTANCE_M if min_distance_m is None else min_distance_m
        )
        self.min_interval_s = (
            config.TRACKING_MIN_INTERVAL_S if min_interval_s is None else min_interval_s
        )
        self._last: Optional[Fix] = None

    def accept(self, fix: Fix) -> bool:
        last = self._last
        if last is not None:
            if fix.timestamp - last.timestamp < self.min_interval_s:
                return False
            moved = haversine_m(last.latitude, last.longitude, fix.latitude, fix.longitude)
            if moved < self.min_distance_m:
                return False
        self._last = fix
        return True

    def reset(self) -> None:
        self._last = None


class LocationSource(ABC):
    @abstractmethod
    def watch(self) -> AsyncIterator[Fix]:
        """Yield fixes until the source is exhausted or the watch is cancelled."""


class ReplayLocationSource(LocationSource):
    """Replays recorded fixes, pacing them by their timestamps."""

    def __init__(
        self,
        fixes: Iterable[Fix],
        speed: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.fixes: List[Fix] = list(fixes)
        self.speed = speed
        self._sleep = sleep

    @classmethod
    def from_csv(cls, path: Union[str, Path], **kwargs) -> "ReplayLocationSource":
        """Load ``lat,lng[,heading][,timestamp]`` rows (header required)."""
        fixes: List[Fix] = []
        step = config.TRACKING_MIN_INTERVAL_S
        with open(path, "r", encoding="utf-8", newline="") as f:
            for i, row in enumerate(csv.DictReader(f)):
                timestamp = row.get("timestamp")
                fixes.append(
                    Fix(
                        latitude=float(row["lat"]),
                        longitude=float(row["lng"]),
                        heading=float(row.get("heading") or 0),
                        timestamp=float(timestamp) if timestamp else i * step,
                    )
                )
        return cls(fixes, **kwargs)

    async def watch(self) -> AsyncIterator[Fix]:
        previous: Optional[Fix] = None
        for fix in self.fixes:
            if previous is not None and self.speed > 0:
                gap = max(0.0, fix.timestamp - previous.timestamp)
                await self._sleep(gap / self.speed)
            yield fix
            previous = fix


async def filtered(source: LocationSource, fix_filter: FixFilter) -> AsyncIterator[Fix]:
    async for fix in source.watch():
        if fix_filter.accept(fix):
            yield fix
