from __future__ import annotations
import logging
from typing import Any

from flask import Blueprint, abort, jsonify, request, url_for
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Room, RoomSchedule
from blueprints.timetable import services as timetable_svc
from .schemas import AvailabilityIn, RoomIn, RoomOut

log = logging.getLogger(__name__)

api_bp = Blueprint("rooms_api", __name__)

# ----------------------- Helpers -----------------------
def ok(data: Any, status: int = 200):
    return jsonify(data), status

def created(location: str, data: Any):
    resp = jsonify(data)
    resp.status_code = 201
    resp.headers["Location"] = location
    return resp

def error(msg: str, status: int = 400, code: str | None = None, field: str | None = None):
    payload: dict[str, Any] = {"ok": False, "errors": [{"code": code or "BAD_REQUEST", "details": msg}]}
    if field:
        payload["errors"][0]["field"] = field
    return jsonify(payload), status

def _handle_integrity_error(ex: IntegrityError):
    log.info("room integrity error", extra={"event": "integrity_error"})
    return error("Unique constraint violation", status=409, code="UNIQUE_CONSTRAINT", field="name")

def _room_out(room: Room, schedules_count: int | None = None) -> dict:
    return RoomOut.model_validate({
        "id": room.id, "name": room.name, "location": room.location,
        "capacity": room.capacity, "is_active": room.is_active,
        "schedules_count": schedules_count,
    }).model_dump(mode="json")

def _room_or_404(rid: int) -> Room:
    return db.session.get(Room, rid) or abort(404)

# ----------------------- CRUD JSON API -----------------------
@api_bp.get("/rooms")
def rooms_list():
    q = (request.args.get("q") or "").strip()
    page = max(1, int(request.args.get("page", 1)))
    per_page = max(1, min(100, int(request.args.get("per_page", 10))))

    counts = (db.session.query(RoomSchedule.room_id, func.count(RoomSchedule.id).label("cnt"))
              .group_by(RoomSchedule.room_id)
              .subquery())
    s = (db.session.query(Room, func.coalesce(counts.c.cnt, 0))
         .outerjoin(counts, counts.c.room_id == Room.id))
    if q:
        s = s.filter(or_(Room.name.like(f"%{q}%"), Room.location.like(f"%{q}%")))
    if request.args.get("active") in ("1", "true"):
        s = s.filter(Room.is_active.is_(True))
    s = s.order_by(Room.id.asc())

    total = s.count()
    rows = s.offset((page - 1) * per_page).limit(per_page).all()
    return ok({
        "items": [_room_out(room, cnt) for room, cnt in rows],
        "meta": {"page": page, "per_page": per_page, "total": total},
    })

@api_bp.post("/rooms")
def rooms_create():
    parsed = RoomIn.model_validate(request.get_json(silent=True) or {})
    room = Room(
        name=parsed.name.strip(),
        location=parsed.location,
        capacity=parsed.capacity,
        is_active=parsed.is_active,
    )
    db.session.add(room)
    try:
        db.session.commit()
    except IntegrityError as ex:
        db.session.rollback()
        return _handle_integrity_error(ex)
    log.info("room created", extra={"event": "room_created", "room_id": room.id})
    return created(url_for("rooms_api.rooms_get", rid=room.id), _room_out(room, 0))

@api_bp.get("/rooms/<int:rid>")
def rooms_get(rid: int):
    room = _room_or_404(rid)
    schedules = timetable_svc.get_room_timetable(room.id)
    data = _room_out(room, len(schedules))
    data["schedules"] = [timetable_svc.schedule_to_dict(rs) for rs in schedules]
    return ok(data)

@api_bp.put("/rooms/<int:rid>")
def rooms_update(rid: int):
    parsed = RoomIn.model_validate(request.get_json(silent=True) or {})
    room = _room_or_404(rid)
    room.name = parsed.name.strip()
    room.location = parsed.location
    room.capacity = parsed.capacity
    room.is_active = parsed.is_active
    try:
        db.session.commit()
    except IntegrityError as ex:
        db.session.rollback()
        return _handle_integrity_error(ex)
    return ok({"ok": True, "room": _room_out(room)})

@api_bp.delete("/rooms/<int:rid>")
def rooms_delete(rid: int):
    room = _room_or_404(rid)
    if db.session.query(RoomSchedule.id).filter(RoomSchedule.room_id == room.id).first():
        return error("Cannot delete a room with existing schedules.", status=409, code="ROOM_HAS_SCHEDULES")
    db.session.delete(room)
    db.session.commit()
    log.info("room deleted", extra={"event": "room_deleted", "room_id": rid})
    return "", 204

# ----------------------- Timetables -----------------------
@api_bp.get("/rooms/timetable")
def rooms_timetable():
    timetables = timetable_svc.get_all_room_timetables()
    return ok({"timetables": [
        {"room": _room_out(entry["room"], len(entry["schedules"])),
         "schedules": [timetable_svc.schedule_to_dict(rs) for rs in entry["schedules"]]}
        for entry in timetables.values()
    ]})

@api_bp.post("/rooms/check-availability")
def rooms_check_availability():
    parsed = AvailabilityIn.model_validate(request.get_json(silent=True) or {})
    rooms = timetable_svc.get_available_rooms(parsed.day_of_week, parsed.start_time, parsed.end_time)
    return ok({
        "available_rooms": [_room_out(r) for r in rooms],
        "has_available_rooms": bool(rooms),
    })
