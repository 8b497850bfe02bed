# blueprints/timetable/services.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from extensions import db
from models import Course, DayOfWeek, Room, RoomSchedule, TimetableOption
from .slots import as_day, fmt_hhmm, overlaps, parse_hhmm, slot_catalog

log = logging.getLogger(__name__)

NO_ROOMS_MESSAGE = "No available rooms for this day"
NO_ACTIVE_ROOMS_MESSAGE = "No active rooms available. Please create rooms first."
# name of the PostgreSQL exclusion constraint, see migrations/versions/0003
NO_OVERLAP_CONSTRAINT = "ex_room_schedule_no_overlap"

_DAY_VALUES = {d.value for d in DayOfWeek}

Trace = Callable[[str, Dict[str, Any]], None]

def log_trace(event: str, data: Dict[str, Any]) -> None:
    log.debug(event, extra={"event": event, **data})


# ===== errors =====
class TimetableError(Exception):
    code = "TIMETABLE_ERROR"
    status = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class RoomNotFound(TimetableError):
    code = "ROOM_NOT_FOUND"
    status = 404

class SlotTaken(TimetableError):
    """The room already has an overlapping booking on that day."""
    code = "SLOT_TAKEN"
    status = 409


# ===== DTO =====
@dataclass
class SlotResult:
    day: str
    room_id: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"day": self.day, "error": self.error}
        return {"day": self.day, "room_id": self.room_id,
                "start_time": self.start_time, "end_time": self.end_time}

@dataclass
class OptionsReport:
    options: List[TimetableOption] = field(default_factory=list)
    error: Optional[str] = None
    detailed_errors: List[Dict[str, Any]] = field(default_factory=list)
    room_conflicts: List[Dict[str, Any]] = field(default_factory=list)


# ===== helpers =====
def _room_id(room) -> int:
    return room.id if isinstance(room, Room) else int(room)

def _day_from(data: Dict[str, Any]) -> DayOfWeek:
    raw = data.get("day_of_week") or data.get("day")
    if not raw:
        raise ValueError("No day specified in schedule data")
    return as_day(raw)

def _overlapping_query(room_id: int, day: DayOfWeek, start: time, end: time,
                       exclude_course_id: Optional[int] = None):
    q = RoomSchedule.query.filter(
        RoomSchedule.room_id == room_id,
        RoomSchedule.day_of_week == day,
        RoomSchedule.start_time < end,
        RoomSchedule.end_time > start,
    )
    if exclude_course_id is not None:
        q = q.filter(RoomSchedule.course_id != exclude_course_id)
    return q

def _display_key(rs: RoomSchedule):
    return (rs.day_of_week.order, rs.start_time, rs.room_id, rs.id)

def active_rooms(min_capacity: Optional[int] = None) -> List[Room]:
    """Active rooms in ascending id order; capacity below max(1, min_capacity) is skipped."""
    need = max(1, min_capacity or 1)
    return (Room.query
            .filter(Room.is_active.is_(True), Room.capacity >= need)
            .order_by(Room.id.asc())
            .all())

def room_usage_counts() -> Dict[int, int]:
    rows = (db.session.query(RoomSchedule.room_id, func.count(RoomSchedule.id))
            .group_by(RoomSchedule.room_id).all())
    return {room_id: cnt for room_id, cnt in rows}


# ===== availability predicate =====
def is_available(room, day, start, end, *, exclude_course_id: Optional[int] = None,
                 trace: Optional[Trace] = None) -> bool:
    trace = trace or log_trace
    room_id = _room_id(room)
    d = as_day(day)
    start_t, end_t = parse_hhmm(start), parse_hhmm(end)
    trace("room_availability_check", {
        "room_id": room_id, "day": d.value,
        "start_time": fmt_hhmm(start_t), "end_time": fmt_hhmm(end_t),
    })
    count = _overlapping_query(room_id, d, start_t, end_t, exclude_course_id).count()
    available = count == 0
    trace("room_availability_result", {
        "room_id": room_id, "day": d.value, "available": available, "overlaps": count,
    })
    return available


# ===== allocator =====
def _first_fit(day: DayOfWeek, rooms: List[Room], slots, trace: Optional[Trace]) -> Optional[SlotResult]:
    for start, end in slots:
        for room in rooms:
            if is_available(room, day, start, end, trace=trace):
                return SlotResult(day=day.value, room_id=room.id,
                                  start_time=fmt_hhmm(start), end_time=fmt_hhmm(end))
    return None

def generate_timetable(course: Course, days: Iterable, *, slots=None,
                       trace: Optional[Trace] = None) -> List[SlotResult]:
    """
    Greedy first-fit: for each requested day, the first (slot, room) pair
    that is free wins. Slots are tried in catalog order, rooms by id.
    Days do not influence each other; a day with no free pair gets an error entry.
    """
    catalog = slot_catalog(slots)
    min_capacity = getattr(course, "max_enrollment", None)
    results: List[SlotResult] = []
    for raw in days:
        day = as_day(raw)
        rooms = active_rooms(min_capacity)
        hit = _first_fit(day, rooms, catalog, trace)
        results.append(hit or SlotResult(day=day.value, error=NO_ROOMS_MESSAGE))

    log.info("timetable generated", extra={
        "event": "timetable_generated",
        "course_id": getattr(course, "id", None),
        "days": [r.day for r in results],
        "unplaced": [r.day for r in results if not r.ok],
    })
    return results


# ===== commit =====
def schedule_room(course: Course, data: Dict[str, Any]) -> RoomSchedule:
    """
    Insert one weekly booking. The room row is locked and the overlap check
    repeated inside the caller's transaction; the caller commits.
    """
    day = _day_from(data)
    start, end = parse_hhmm(data["start_time"]), parse_hhmm(data["end_time"])
    if end <= start:
        raise ValueError("end_time must be > start_time")

    room_id = data.get("room_id")
    room = None
    if room_id is not None:
        room = (db.session.query(Room)
                .filter(Room.id == int(room_id))
                .with_for_update()
                .one_or_none())
    if room is None:
        raise RoomNotFound(f"Room {room_id} not found", {"room_id": room_id})

    clash = _overlapping_query(room.id, day, start, end).first()
    if clash is not None:
        raise SlotTaken(f"Room {room.name} is already booked", {
            "room_id": room.id, "day": day.value,
            "time": f"{fmt_hhmm(clash.start_time)} - {fmt_hhmm(clash.end_time)}",
            "schedule_id": clash.id,
        })

    rs = RoomSchedule(
        course_id=course.id,
        room_id=room.id,
        day_of_week=day,
        start_time=start,
        end_time=end,
        is_recurring=True,
    )
    # savepoint: a rejected insert must not discard the caller's pending work
    try:
        with db.session.begin_nested():
            db.session.add(rs)
            db.session.flush()
    except IntegrityError as ex:
        if NO_OVERLAP_CONSTRAINT in str(ex.orig):
            raise SlotTaken(f"Room {room.name} is already booked", {
                "room_id": room.id, "day": day.value,
                "time": f"{fmt_hhmm(start)} - {fmt_hhmm(end)}",
            }) from ex
        raise

    log.info("room scheduled", extra={
        "event": "room_scheduled", "course_id": course.id, "room_id": room.id,
        "day": day.value, "start_time": fmt_hhmm(start), "end_time": fmt_hhmm(end),
    })
    return rs


# ===== conflict report =====
def check_for_conflicts(data: Dict[str, Any], *, exclude_course_id: Optional[int] = None) -> List[Dict[str, Any]]:
    room_id = data.get("room_id")
    room = db.session.get(Room, int(room_id)) if room_id is not None else None
    if room is None:
        raise RoomNotFound(f"Room {room_id} not found", {"room_id": room_id})

    day = _day_from(data)
    start, end = parse_hhmm(data["start_time"]), parse_hhmm(data["end_time"])
    if is_available(room, day, start, end, exclude_course_id=exclude_course_id):
        return []

    rows = (_overlapping_query(room.id, day, start, end, exclude_course_id)
            .options(joinedload(RoomSchedule.course).joinedload(Course.teacher))
            .all())
    conflicts = []
    for rs in sorted(rows, key=_display_key):
        teacher = rs.course.teacher if rs.course else None
        conflicts.append({
            "message": f"Room {room.name} is already scheduled",
            "details": {
                "course": rs.course.title if rs.course else "Unknown course",
                "teacher": teacher.full_name if teacher else "Unknown",
                "time": f"{fmt_hhmm(rs.start_time)} - {fmt_hhmm(rs.end_time)}",
            },
        })
    return conflicts


# ===== read views =====
def get_available_rooms(day, start, end) -> List[Room]:
    return [r for r in active_rooms() if is_available(r, day, start, end)]

def get_course_timetable(course: Course) -> List[RoomSchedule]:
    rows = (RoomSchedule.query
            .options(joinedload(RoomSchedule.room))
            .filter(RoomSchedule.course_id == course.id)
            .all())
    return sorted(rows, key=_display_key)

def get_teacher_timetable(teacher_id: int) -> List[RoomSchedule]:
    rows = (RoomSchedule.query
            .join(Course, Course.id == RoomSchedule.course_id)
            .options(joinedload(RoomSchedule.course), joinedload(RoomSchedule.room))
            .filter(Course.teacher_id == teacher_id)
            .all())
    return sorted(rows, key=_display_key)

def get_room_timetable(room_id: int) -> List[RoomSchedule]:
    rows = (RoomSchedule.query
            .options(joinedload(RoomSchedule.course).joinedload(Course.teacher))
            .filter(RoomSchedule.room_id == room_id)
            .all())
    return sorted(rows, key=_display_key)

def get_all_room_timetables() -> Dict[int, Dict[str, Any]]:
    out: Dict[int, Dict[str, Any]] = {}
    for room in Room.query.filter(Room.is_active.is_(True)).order_by(Room.id.asc()).all():
        out[room.id] = {"room": room, "schedules": get_room_timetable(room.id)}
    return out

def schedule_to_dict(rs: RoomSchedule) -> Dict[str, Any]:
    course = rs.course
    teacher = course.teacher if course else None
    return {
        "id": rs.id,
        "course_id": rs.course_id,
        "course": course.title if course else None,
        "teacher": teacher.full_name if teacher else None,
        "room_id": rs.room_id,
        "room": rs.room.name if rs.room else None,
        "day_of_week": rs.day_of_week.value,
        "start_time": fmt_hhmm(rs.start_time),
        "end_time": fmt_hhmm(rs.end_time),
        "is_recurring": bool(rs.is_recurring),
    }


# ===== timetable options =====
def _teacher_bookings(teacher_id: int, exclude_course_id: Optional[int] = None) -> List[RoomSchedule]:
    q = (RoomSchedule.query
         .join(Course, Course.id == RoomSchedule.course_id)
         .filter(Course.teacher_id == teacher_id))
    if exclude_course_id is not None:
        q = q.filter(Course.id != exclude_course_id)
    return q.all()

def _schedule_days_for_course(course: Course) -> List[DayOfWeek]:
    if not isinstance(course.schedule, dict):
        return []
    days = [as_day(k) for k, v in course.schedule.items() if v and str(k).lower() in _DAY_VALUES]
    return sorted(set(days), key=lambda d: d.order)

def evaluate_room_utilization(schedule: List[Dict[str, Any]], usage: Optional[Dict[int, int]] = None) -> float:
    """Higher is better: rewards busy rooms and reusing the same room across days."""
    usage = room_usage_counts() if usage is None else usage
    score = 10.0
    room_ids: set[int] = set()
    for slot in schedule:
        room_ids.add(slot["room_id"])
        score += min(5, usage.get(slot["room_id"], 0) * 0.5)

    score -= len(room_ids) * 0.5
    for rid in room_ids:
        days_used = sum(1 for slot in schedule if slot["room_id"] == rid)
        score += days_used * 0.5

    return min(100.0, max(0.0, score * 5))

def generate_options(course: Course, count: int = 5, days: Optional[Iterable] = None, *, slots=None) -> OptionsReport:
    TimetableOption.query.filter_by(course_id=course.id).delete()

    # repeated days would yield options booking the same slot twice
    schedule_days = list(dict.fromkeys(as_day(d) for d in days)) if days else _schedule_days_for_course(course)
    if not schedule_days:
        schedule_days = [as_day(d) for d in current_app.config.get("TIMETABLE_DEFAULT_DAYS", [])]

    log.info("generating timetable options", extra={
        "event": "timetable_options", "course_id": course.id,
        "days": [d.value for d in schedule_days], "specific_days_provided": bool(days),
    })

    rooms = active_rooms(course.max_enrollment)
    if not rooms:
        return OptionsReport(error=NO_ACTIVE_ROOMS_MESSAGE)

    busy = _teacher_bookings(course.teacher_id, exclude_course_id=course.id) if course.teacher_id else []
    catalog = slot_catalog(slots)

    candidates: List[Dict[str, Any]] = []
    detailed: List[Dict[str, Any]] = []
    room_conflicts: List[Dict[str, Any]] = []

    for day in schedule_days:
        day_candidates = []
        for start, end in catalog:
            s, e = fmt_hhmm(start), fmt_hhmm(end)
            if any(b.day_of_week == day and overlaps(b.start_time, b.end_time, start, end) for b in busy):
                detailed.append({
                    "type": "teacher_conflict", "day": day.value, "start_time": s, "end_time": e,
                    "message": "The teacher is already scheduled during this time slot",
                })
                continue
            for room in rooms:
                slot = {"room_id": room.id, "day": day.value, "start_time": s, "end_time": e}
                if is_available(room, day, start, end, exclude_course_id=course.id):
                    day_candidates.append({**slot, "room_name": room.name})
                    continue
                for c in check_for_conflicts(slot, exclude_course_id=course.id):
                    room_conflicts.append({**c, "room_name": room.name, "day": day.value, "time": f"{s} - {e}"})
        if not day_candidates:
            detailed.append({
                "type": "no_slots_for_day", "day": day.value,
                "message": f"No available time slots found for {day.value.capitalize()}",
            })
        candidates.extend(day_candidates)

    if not candidates:
        msg = "No available slots found for the requested schedule."
        if any(e["type"] == "teacher_conflict" for e in detailed):
            msg += " The teacher has scheduling conflicts."
        if any(e["type"] == "no_slots_for_day" for e in detailed):
            msg += " Some days have no available time slots."
        if room_conflicts:
            msg += " All rooms are booked during the requested times."
        log.warning("no timetable options", extra={"event": "timetable_options", "course_id": course.id})
        return OptionsReport(error=msg, detailed_errors=detailed, room_conflicts=room_conflicts)

    usage = room_usage_counts()
    # busiest rooms first; sort is stable so day/slot/room order survives within a tie
    candidates.sort(key=lambda c: -usage.get(c["room_id"], 0))

    max_options = min(count, current_app.config.get("TIMETABLE_MAX_OPTIONS", 5))
    n = len(candidates)
    option_sets: List[Dict[str, Any]] = []
    seen: set[tuple] = set()
    for i in range(max_options):
        offset = (i * 10) % n
        rotated = candidates[offset:] + candidates[:offset]
        chosen: List[Dict[str, Any]] = []
        used: set[tuple] = set()
        for day in schedule_days:
            pick = next((c for c in rotated
                         if c["day"] == day.value and (c["room_id"], c["day"], c["start_time"]) not in used), None)
            if pick is None:
                pick = next((c for c in rotated if c["day"] == day.value), None)
            if pick is None:
                continue
            chosen.append(pick)
            used.add((pick["room_id"], pick["day"], pick["start_time"]))

        if len(chosen) != len(schedule_days):
            continue
        fingerprint = tuple((c["day"], c["room_id"], c["start_time"]) for c in chosen)
        if fingerprint in seen:
            continue
        seen.add(fingerprint)
        option_sets.append({"schedule": chosen, "utilization_score": evaluate_room_utilization(chosen, usage)})

    option_sets.sort(key=lambda o: -o["utilization_score"])

    stored: List[TimetableOption] = []
    for idx, opt in enumerate(option_sets, start=1):
        row = TimetableOption(
            course_id=course.id,
            schedule_data=[dict(c) for c in opt["schedule"]],
            utilization_score=opt["utilization_score"],
            option_number=idx,
        )
        db.session.add(row)
        stored.append(row)
    db.session.flush()

    if len(stored) == 0:
        return OptionsReport(
            error="No complete timetable could be built for the requested days.",
            detailed_errors=detailed, room_conflicts=room_conflicts,
        )
    return OptionsReport(options=stored, detailed_errors=detailed, room_conflicts=room_conflicts)

def option_to_dict(opt: TimetableOption) -> Dict[str, Any]:
    return {
        "id": opt.id,
        "course_id": opt.course_id,
        "option_number": opt.option_number,
        "utilization_score": opt.utilization_score,
        "schedule": opt.schedule_data,
        "created_at": opt.created_at.isoformat() if opt.created_at else None,
    }

_REQUIRED_SLOT_FIELDS = ("day", "room_id", "start_time", "end_time")

def apply_timetable_option(course: Course, option: TimetableOption) -> Dict[str, Any]:
    """
    Replace the course's bookings with the option's slots. Nothing is written
    when the teacher or a room is already taken by another course.
    """
    schedule = list(option.schedule_data or [])
    log.debug("applying timetable option", extra={"event": "timetable_apply", "course_id": course.id})

    broken = [slot for slot in schedule if any(slot.get(f) in (None, "") for f in _REQUIRED_SLOT_FIELDS)]
    if broken:
        log.error("missing required fields in slot", extra={"event": "timetable_apply", "course_id": course.id})
        return {"success": False, "error": "Invalid slot data: missing required fields", "conflicts": broken}

    teacher_conflicts: List[Dict[str, Any]] = []
    if course.teacher_id:
        busy = _teacher_bookings(course.teacher_id, exclude_course_id=course.id)
        for slot in schedule:
            day = as_day(slot["day"])
            start, end = parse_hhmm(slot["start_time"]), parse_hhmm(slot["end_time"])
            for b in busy:
                if b.day_of_week != day or not overlaps(b.start_time, b.end_time, start, end):
                    continue
                when = f"{fmt_hhmm(b.start_time)} - {fmt_hhmm(b.end_time)}"
                teacher_conflicts.append({
                    "day": day.value,
                    "start_time": fmt_hhmm(start),
                    "end_time": fmt_hhmm(end),
                    "conflict_course": b.course.title,
                    "conflict_time": when,
                    "message": f"Teacher already scheduled for {b.course.title} at {when}",
                })
    if teacher_conflicts:
        log.warning("teacher scheduling conflicts detected", extra={"event": "timetable_apply", "course_id": course.id})
        return {"success": False, "error": "Teacher scheduling conflicts detected", "conflicts": teacher_conflicts}

    room_conflicts: List[Dict[str, Any]] = []
    for slot in schedule:
        room_conflicts.extend(check_for_conflicts(slot, exclude_course_id=course.id))
    if room_conflicts:
        log.warning("room scheduling conflicts detected", extra={"event": "timetable_apply", "course_id": course.id})
        return {"success": False, "error": "Room scheduling conflicts detected", "conflicts": room_conflicts}

    replaced = RoomSchedule.query.filter_by(course_id=course.id).delete(synchronize_session="fetch")
    log.debug("deleted existing schedules", extra={"event": "timetable_apply", "course_id": course.id})

    results = []
    for slot in schedule:
        rs = schedule_room(course, slot)
        results.append({
            "success": True,
            "schedule_id": rs.id,
            "message": f"Scheduled for {slot['day']} at {slot['start_time']}-{slot['end_time']} in Room #{slot['room_id']}",
        })

    return {
        "success": True,
        "results": results,
        "summary": {
            "success": True,
            "success_count": len(results),
            "error_count": 0,
            "total": len(schedule),
            "replaced": replaced,
        },
    }
