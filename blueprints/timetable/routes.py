# blueprints/timetable/routes.py
from __future__ import annotations
from flask import Blueprint, abort, jsonify, request

from extensions import db
from models import Course, Teacher, TimetableOption
from . import services as svc
from .schemas import GenerateOptionsIn, GenerateTimetableIn, SlotIn

api_bp = Blueprint("timetable_api", __name__)

def _course_or_404(cid: int) -> Course:
    return db.session.get(Course, cid) or abort(404)

# ---------- course timetable ----------
@api_bp.get("/courses/<int:cid>/timetable")
def course_timetable(cid: int):
    course = _course_or_404(cid)
    rows = svc.get_course_timetable(course)
    return jsonify({
        "course": {"id": course.id, "title": course.title, "teacher_id": course.teacher_id},
        "timetable": [svc.schedule_to_dict(rs) for rs in rows],
    })

@api_bp.post("/courses/<int:cid>/generate-timetable")
def generate_timetable(cid: int):
    course = _course_or_404(cid)
    parsed = GenerateTimetableIn.model_validate(request.get_json(silent=True) or {})
    results = svc.generate_timetable(course, parsed.days)
    return jsonify({"timetable": [r.as_dict() for r in results]})

@api_bp.post("/courses/<int:cid>/schedules")
def create_schedule(cid: int):
    course = _course_or_404(cid)
    parsed = SlotIn.model_validate(request.get_json(silent=True) or {})
    rs = svc.schedule_room(course, parsed.as_service_data())
    db.session.commit()
    return jsonify({"ok": True, "schedule": svc.schedule_to_dict(rs)}), 201

@api_bp.post("/schedules/conflicts")
def schedule_conflicts():
    parsed = SlotIn.model_validate(request.get_json(silent=True) or {})
    conflicts = svc.check_for_conflicts(parsed.as_service_data())
    return jsonify({"ok": not conflicts, "conflicts": conflicts})

# ---------- options ----------
@api_bp.get("/courses/<int:cid>/timetable-options")
def list_options(cid: int):
    course = _course_or_404(cid)
    rows = (TimetableOption.query.filter_by(course_id=course.id)
            .order_by(TimetableOption.option_number.asc()).all())
    return jsonify({"ok": True, "options": [svc.option_to_dict(o) for o in rows]})

@api_bp.post("/courses/<int:cid>/timetable-options")
def generate_options(cid: int):
    course = _course_or_404(cid)
    parsed = GenerateOptionsIn.model_validate(request.get_json(silent=True) or {})
    report = svc.generate_options(course, count=parsed.count, days=parsed.days)
    db.session.commit()
    if report.error:
        return jsonify({
            "ok": False,
            "errors": [{"code": "NO_AVAILABILITY", "details": report.error}],
            "detailed_errors": report.detailed_errors,
            "room_conflicts": report.room_conflicts,
        }), 409
    return jsonify({
        "ok": True,
        "options": [svc.option_to_dict(o) for o in report.options],
        "detailed_errors": report.detailed_errors,
    })

@api_bp.post("/courses/<int:cid>/timetable-options/<int:oid>/apply")
def apply_option(cid: int, oid: int):
    course = _course_or_404(cid)
    option = TimetableOption.query.filter_by(id=oid, course_id=course.id).first() or abort(404)
    result = svc.apply_timetable_option(course, option)
    if not result["success"]:
        db.session.rollback()
        return jsonify({"ok": False, **result}), 409
    db.session.commit()
    return jsonify({"ok": True, **result})

# ---------- teacher ----------
@api_bp.get("/teachers/<int:tid>/timetable")
def teacher_timetable(tid: int):
    teacher = db.session.get(Teacher, tid) or abort(404)
    rows = svc.get_teacher_timetable(teacher.id)
    return jsonify({
        "teacher": {"id": teacher.id, "full_name": teacher.full_name},
        "timetable": [svc.schedule_to_dict(rs) for rs in rows],
    })
