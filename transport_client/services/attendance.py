"""
Stop-level attendance for drivers and conductors.

The driver picks a stop on the map; the collector lists the passengers
assigned to it and records one present/absent mark per button press.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from transport_client.api import TransportApiClient
from transport_client.errors import ApiError
from transport_client.models import AttendanceMark, AttendanceStatus, Passenger, Route, Stop
from transport_client.notifier import Notifier

logger = logging.getLogger(__name__)


@dataclass
class AttendanceRow:
    passenger: Passenger
    status: Optional[AttendanceStatus] = None


class AttendanceCollector:
    """Driver view state: roster, selected stop and the marks taken so far."""

    def __init__(
        self,
        api: TransportApiClient,
        notifier: Notifier,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self.api = api
        self.notifier = notifier
        self._today = today

        self.route: Optional[Route] = None
        self.students: List[Passenger] = []
        self.stop: Optional[Stop] = None
        # (stop_id, student_id) -> last status shown
        self._statuses: Dict[Tuple[int, int], AttendanceStatus] = {}

    async def load(self) -> bool:
        try:
            roster = await self.api.get_driver_roster()
        except ApiError as e:
            self.notifier.alert("Error", e.message)
            return False
        self.route = roster.route
        self.students = roster.students
        return True

    def select_stop(self, stop_id: int) -> bool:
        if self.route is None:
            return False
        for stop in self.route.stops:
            if stop.id == stop_id:
                self.stop = stop
                return True
        logger.debug(f"Stop {stop_id} is not on route {self.route.id}")
        return False

    def clear_stop(self) -> None:
        self.stop = None

    @property
    def passengers(self) -> List[Passenger]:
        if self.stop is None:
            return []
        return [p for p in self.students if p.stop_id == self.stop.id]

    def status_of(self, student_id: int) -> Optional[AttendanceStatus]:
        if self.stop is None:
            return None
        return self._statuses.get((self.stop.id, student_id))

    def rows(self) -> List[AttendanceRow]:
        return [AttendanceRow(p, self.status_of(p.id)) for p in self.passengers]

    async def mark(self, student_id: int, status: Union[AttendanceStatus, str]) -> bool:
        if self.stop is None or self.route is None:
            return False
        status = AttendanceStatus(status)
        stop_id = self.stop.id
        mark = AttendanceMark(
            student_id=student_id,
            stop_id=stop_id,
            route_id=self.route.id,
            status=status,
            date=self._today(),
        )
        try:
            saved = await self.api.mark_attendance(mark)
        except ApiError as e:
            self.notifier.alert("Error", e.message)
            return False

        if saved is not None and saved.student_id == student_id and saved.stop_id == stop_id:
            status = saved.status
        self._statuses[(stop_id, student_id)] = status
        return True
