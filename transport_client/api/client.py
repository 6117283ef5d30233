"""
REST client for the school transport API.

Every method either returns parsed models or raises ``ApiError``. Call sites
decide how to surface the error; nothing here retries or caches.
"""

import logging
from typing import Any, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from transport_client.config import config
from transport_client.errors import ApiError
from transport_client.models import (
    AttendanceMark,
    DriverRoster,
    Passenger,
    Route,
    RouteDraft,
    Stop,
    StopDraft,
)
from transport_client.type_defs import EntityId, JSONBody

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def extract_error_message(response: httpx.Response, fallback: str) -> str:
    """Use the backend's ``message`` field when it sent one."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return fallback


def parse_entity(body: JSONBody, model: Type[M], *wrapper_keys: str) -> Optional[M]:
    """
    Parse a write response into ``model`` if it carries the updated entity.

    Accepts the entity at the top level or under one of ``wrapper_keys``.
    Returns None for empty bodies and acknowledgements like ``{"message": ...}``.
    """
    if not isinstance(body, dict):
        return None
    candidates = [body[key] for key in wrapper_keys if isinstance(body.get(key), dict)]
    candidates.append(body)
    for candidate in candidates:
        try:
            return model.model_validate(candidate)
        except ValidationError:
            continue
    return None


class TransportApiClient:
    """Async client for the ``/transport`` endpoints and the student directory."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        token = token if token is not None else config.API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or config.API_BASE_URL,
            headers=headers,
            timeout=timeout if timeout is not None else config.HTTP_TIMEOUT,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        fallback_message: str,
        json: Any = None,
    ) -> JSONBody:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"[API] {method} {path} failed: {e}")
            raise ApiError(fallback_message) from e

        if response.is_error:
            message = extract_error_message(response, fallback_message)
            logger.warning(f"[API] {method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def _parse_list(self, body: JSONBody, model: Type[M], fallback_message: str) -> List[M]:
        try:
            return [model.model_validate(item) for item in (body or [])]
        except (ValidationError, TypeError) as e:
            logger.warning(f"[API] Unexpected list payload for {model.__name__}: {e}")
            raise ApiError(fallback_message) from e

    def _parse_one(self, body: JSONBody, model: Type[M], fallback_message: str) -> M:
        try:
            return model.model_validate(body)
        except ValidationError as e:
            logger.warning(f"[API] Unexpected payload for {model.__name__}: {e}")
            raise ApiError(fallback_message) from e

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    async def list_routes(self) -> List[Route]:
        msg = "Could not load routes."
        body = await self._request("GET", "/transport/routes", fallback_message=msg)
        return self._parse_list(body, Route, msg)

    async def get_route(self, route_id: EntityId) -> Route:
        msg = "Could not load route details."
        body = await self._request("GET", f"/transport/routes/{route_id}", fallback_message=msg)
        return self._parse_one(body, Route, msg)

    async def get_my_route(self) -> Route:
        msg = "Could not load route details."
        body = await self._request("GET", "/transport/student/my-route", fallback_message=msg)
        return self._parse_one(body, Route, msg)

    async def create_route(self, draft: RouteDraft) -> Optional[Route]:
        body = await self._request(
            "POST",
            "/transport/routes",
            json=draft.model_dump(),
            fallback_message="Failed to create route.",
        )
        return parse_entity(body, Route, "route")

    async def update_route(self, route_id: EntityId, draft: RouteDraft) -> Optional[Route]:
        body = await self._request(
            "PUT",
            f"/transport/routes/{route_id}",
            json=draft.model_dump(),
            fallback_message="Failed to update route.",
        )
        return parse_entity(body, Route, "route")

    async def delete_route(self, route_id: EntityId) -> None:
        await self._request(
            "DELETE", f"/transport/routes/{route_id}", fallback_message="Failed to delete route."
        )

    async def update_route_location(self, route_id: EntityId, lat: float, lng: float) -> None:
        await self._request(
            "PUT",
            f"/transport/routes/{route_id}/location",
            json={"lat": lat, "lng": lng},
            fallback_message="Failed to update bus location.",
        )

    # ------------------------------------------------------------------
    # Stops
    # ------------------------------------------------------------------

    async def list_stops(self, route_id: EntityId) -> List[Stop]:
        msg = "Could not load stops."
        body = await self._request("GET", f"/transport/routes/{route_id}/stops", fallback_message=msg)
        stops = self._parse_list(body, Stop, msg)
        return sorted(stops, key=lambda s: s.stop_order)

    async def create_stop(self, route_id: EntityId, draft: StopDraft) -> Optional[Stop]:
        body = await self._request(
            "POST",
            f"/transport/routes/{route_id}/stops",
            json=draft.model_dump(),
            fallback_message="Failed to save stop.",
        )
        return parse_entity(body, Stop, "stop")

    async def update_stop(self, stop_id: EntityId, draft: StopDraft) -> Optional[Stop]:
        body = await self._request(
            "PUT",
            f"/transport/stops/{stop_id}",
            json=draft.model_dump(exclude_none=True),
            fallback_message="Failed to save stop.",
        )
        return parse_entity(body, Stop, "stop")

    async def delete_stop(self, stop_id: EntityId) -> None:
        await self._request(
            "DELETE", f"/transport/stops/{stop_id}", fallback_message="Failed to delete stop."
        )

    # ------------------------------------------------------------------
    # Passengers
    # ------------------------------------------------------------------

    async def list_students(self) -> List[Passenger]:
        msg = "Could not fetch student list."
        body = await self._request("GET", "/students/all", fallback_message=msg)
        return self._parse_list(body, Passenger, msg)

    async def set_student_stop(
        self, student_id: EntityId, stop_id: Optional[EntityId]
    ) -> Optional[Passenger]:
        """Assign a student to ``stop_id``, or unassign with None."""
        body = await self._request(
            "PUT",
            f"/transport/students/{student_id}/stop",
            json={"stop_id": stop_id},
            fallback_message="Failed to update student stop.",
        )
        return parse_entity(body, Passenger, "student")

    # ------------------------------------------------------------------
    # Driver / attendance
    # ------------------------------------------------------------------

    async def get_driver_roster(self) -> DriverRoster:
        msg = "No route assigned to you."
        body = await self._request("GET", "/transport/conductor/students", fallback_message=msg)
        return self._parse_one(body, DriverRoster, msg)

    async def mark_attendance(self, mark: AttendanceMark) -> Optional[AttendanceMark]:
        body = await self._request(
            "POST",
            "/transport/attendance",
            json=mark.model_dump(mode="json"),
            fallback_message="Failed to mark attendance.",
        )
        return parse_entity(body, AttendanceMark, "attendance")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TransportApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
