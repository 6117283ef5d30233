"""
In-memory stand-in for the school transport REST API.

Served to ``TransportApiClient`` through ``httpx.ASGITransport`` so tests can
check behavior that depends on server state (assign then refetch, etc.).
Payload shapes copy the real backend's quirks: the route detail endpoint
sends stops as ``point``/``sno`` with string coordinates.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from fastapi import APIRouter, Body, FastAPI
from fastapi.responses import JSONResponse, Response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


@dataclass
class FakeDatabase:
    routes: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    stops: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    students: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    attendance: List[Dict[str, Any]] = field(default_factory=list)
    locations: List[Dict[str, Any]] = field(default_factory=list)
    failing_students: Set[int] = field(default_factory=set)
    driver_route_id: int = 1
    student_route_id: int = 1
    next_id: int = 100

    def new_id(self) -> int:
        self.next_id += 1
        return self.next_id

    def stops_of(self, route_id: int) -> List[Dict[str, Any]]:
        rows = [s for s in self.stops.values() if s["route_id"] == route_id]
        return sorted(rows, key=lambda s: s["stop_order"])

    def route_detail(self, route_id: int) -> Dict[str, Any]:
        route = deepcopy(self.routes[route_id])
        route["stops"] = [
            {
                "stop_id": s["id"],
                "point": s["stop_name"],
                "sno": s["stop_order"],
                "stop_lat": str(s["stop_lat"]),
                "stop_lng": str(s["stop_lng"]),
            }
            for s in self.stops_of(route_id)
        ]
        return route

    @classmethod
    def seeded(cls) -> "FakeDatabase":
        db = cls()
        db.routes[1] = {
            "route_id": 1,
            "route_name": "North Loop",
            "bus_number": "TS09 AB 1234",
            "driver_name": "Ravi",
            "vehicle_id": 7,
            "driver_id": 31,
            "conductor_id": 32,
            "current_lat": None,
            "current_lng": None,
        }
        db.routes[2] = {
            "route_id": 2,
            "route_name": "South Loop",
            "bus_number": None,
            "driver_name": None,
            "vehicle_id": None,
            "driver_id": None,
            "conductor_id": None,
            "current_lat": "17.3850",
            "current_lng": "78.4867",
        }
        for stop_id, name, lat, lng, order in [
            (11, "A", 0.0, 0.0, 1),
            (12, "B", 1.0, 1.0, 2),
            (13, "C", 2.0, 2.0, 3),
        ]:
            db.stops[stop_id] = {
                "id": stop_id,
                "route_id": 1,
                "stop_name": name,
                "stop_lat": lat,
                "stop_lng": lng,
                "stop_order": order,
            }
        for student_id, name, stop_id in [
            (201, "Asha", 11),
            (202, "Bilal", 11),
            (203, "Chen", None),
            (204, "Divya", 12),
        ]:
            db.students[student_id] = {
                "id": student_id,
                "full_name": name,
                "class_group": "5A",
                "roll_no": student_id - 200,
                "stop_id": stop_id,
            }
        return db


def create_app(db: FakeDatabase) -> FastAPI:
    app = FastAPI()
    app.state.db = db
    router = APIRouter(prefix="/api")

    # Routes -----------------------------------------------------------

    @router.get("/transport/routes")
    def list_routes():
        return [deepcopy(r) for r in sorted(db.routes.values(), key=lambda r: r["route_name"])]

    @router.get("/transport/routes/{route_id}")
    def get_route(route_id: int):
        if route_id not in db.routes:
            return _error(404, "Route not found")
        return db.route_detail(route_id)

    @router.get("/transport/student/my-route")
    def my_route():
        if db.student_route_id not in db.routes:
            return _error(404, "No route assigned")
        return db.route_detail(db.student_route_id)

    @router.post("/transport/routes", status_code=201)
    def create_route(body: Dict[str, Any] = Body(...)):
        route_id = db.new_id()
        db.routes[route_id] = {"route_id": route_id, "driver_name": None, "bus_number": None, **body}
        return {"message": "Route created", "route": db.routes[route_id]}

    @router.put("/transport/routes/{route_id}")
    def update_route(route_id: int, body: Dict[str, Any] = Body(...)):
        if route_id not in db.routes:
            return _error(404, "Route not found")
        db.routes[route_id].update(body)
        return {"message": "Route updated"}

    @router.delete("/transport/routes/{route_id}")
    def delete_route(route_id: int):
        if db.routes.pop(route_id, None) is None:
            return _error(404, "Route not found")
        for stop in db.stops_of(route_id):
            db.stops.pop(stop["id"])
        return Response(status_code=204)

    @router.put("/transport/routes/{route_id}/location")
    def update_location(route_id: int, body: Dict[str, Any] = Body(...)):
        if route_id not in db.routes:
            return _error(404, "Route not found")
        db.locations.append({"route_id": route_id, **body})
        db.routes[route_id]["current_lat"] = body["lat"]
        db.routes[route_id]["current_lng"] = body["lng"]
        return {"message": "Location updated"}

    # Stops ------------------------------------------------------------

    @router.get("/transport/routes/{route_id}/stops")
    def list_stops(route_id: int):
        if route_id not in db.routes:
            return _error(404, "Route not found")
        return db.stops_of(route_id)

    @router.post("/transport/routes/{route_id}/stops", status_code=201)
    def create_stop(route_id: int, body: Dict[str, Any] = Body(...)):
        stop_id = db.new_id()
        db.stops[stop_id] = {"id": stop_id, "route_id": route_id, **body}
        return db.stops[stop_id]

    @router.put("/transport/stops/{stop_id}")
    def update_stop(stop_id: int, body: Dict[str, Any] = Body(...)):
        if stop_id not in db.stops:
            return _error(404, "Stop not found")
        db.stops[stop_id].update(body)
        return {"message": "Stop updated"}

    @router.delete("/transport/stops/{stop_id}")
    def delete_stop(stop_id: int):
        if db.stops.pop(stop_id, None) is None:
            return _error(404, "Stop not found")
        for student in db.students.values():
            if student["stop_id"] == stop_id:
                student["stop_id"] = None
        return {"message": "Stop deleted"}

    # Students ---------------------------------------------------------

    @router.get("/students/all")
    def list_students():
        return [deepcopy(s) for s in db.students.values()]

    @router.put("/transport/students/{student_id}/stop")
    def set_student_stop(student_id: int, body: Dict[str, Any] = Body(...)):
        if student_id in db.failing_students:
            return _error(500, "Database error")
        if student_id not in db.students:
            return _error(404, "Student not found")
        db.students[student_id]["stop_id"] = body.get("stop_id")
        return {"message": "Student updated", "student": deepcopy(db.students[student_id])}

    # Driver -----------------------------------------------------------

    @router.get("/transport/conductor/students")
    def driver_roster():
        if db.driver_route_id not in db.routes:
            return _error(404, "No route assigned to you.")
        route = db.route_detail(db.driver_route_id)
        stop_ids = {s["stop_id"] for s in route["stops"]}
        students = [deepcopy(s) for s in db.students.values() if s["stop_id"] in stop_ids]
        return {"route": route, "students": students}

    @router.post("/transport/attendance", status_code=201)
    def mark_attendance(body: Dict[str, Any] = Body(...)):
        db.attendance = [
            a
            for a in db.attendance
            if not (
                a["student_id"] == body["student_id"]
                and a["stop_id"] == body["stop_id"]
                and a["date"] == body["date"]
            )
        ]
        db.attendance.append(dict(body))
        return {"message": "Attendance saved", "attendance": dict(body)}

    app.include_router(router)
    return app
