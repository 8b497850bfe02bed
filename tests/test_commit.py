from __future__ import annotations
import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from app import create_app
from extensions import db
from models import Course, DayOfWeek, Room, RoomSchedule, Teacher
from blueprints.timetable import services as svc

@pytest.fixture()
def app():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture()
def data(app):
    teacher = Teacher(full_name="Jane Smith")
    room = Room(name="Room 101", location="Main Building, 1st Floor", capacity=25)
    db.session.add_all([teacher, room])
    db.session.flush()
    algebra = Course(title="Algebra", teacher_id=teacher.id)
    physics = Course(title="Physics")
    db.session.add_all([algebra, physics])
    db.session.commit()
    return {"teacher": teacher, "room": room, "algebra": algebra, "physics": physics}

def _slot(room, day="monday", start="09:00", end="10:30"):
    return {"room_id": room.id, "day": day, "start_time": start, "end_time": end}

def test_schedule_room_inserts(data):
    rs = svc.schedule_room(data["algebra"], _slot(data["room"]))
    db.session.commit()
    assert rs.id is not None
    row = db.session.get(RoomSchedule, rs.id)
    assert row.day_of_week is DayOfWeek.MONDAY
    assert row.is_recurring is True
    assert svc.schedule_to_dict(row)["start_time"] == "09:00"

def test_day_of_week_key_accepted(data):
    rs = svc.schedule_room(data["algebra"], {"room_id": data["room"].id, "day_of_week": "Friday",
                                             "start_time": "13:00", "end_time": "14:30"})
    assert rs.day_of_week is DayOfWeek.FRIDAY

def test_overlapping_insert_refused(data):
    svc.schedule_room(data["algebra"], _slot(data["room"]))
    db.session.commit()
    with pytest.raises(svc.SlotTaken) as exc:
        svc.schedule_room(data["physics"], _slot(data["room"], start="10:00", end="11:00"))
    assert exc.value.status == 409
    assert exc.value.details["time"] == "09:00 - 10:30"
    db.session.rollback()
    assert RoomSchedule.query.count() == 1

def test_back_to_back_insert_allowed(data):
    svc.schedule_room(data["algebra"], _slot(data["room"]))
    svc.schedule_room(data["physics"], _slot(data["room"], start="10:30", end="12:00"))
    db.session.commit()
    assert RoomSchedule.query.count() == 2

def test_unknown_room(data):
    with pytest.raises(svc.RoomNotFound):
        svc.schedule_room(data["algebra"], {"room_id": 999, "day": "monday",
                                            "start_time": "09:00", "end_time": "10:30"})
    with pytest.raises(svc.RoomNotFound):
        svc.schedule_room(data["algebra"], {"day": "monday", "start_time": "09:00", "end_time": "10:30"})

def test_missing_day(data):
    with pytest.raises(ValueError, match="No day specified in schedule data"):
        svc.schedule_room(data["algebra"], {"room_id": data["room"].id,
                                            "start_time": "09:00", "end_time": "10:30"})

def test_inverted_interval(data):
    with pytest.raises(ValueError):
        svc.schedule_room(data["algebra"], _slot(data["room"], start="11:00", end="10:00"))

def test_generate_then_commit_stays_consistent(data):
    second = Room(name="Room 102", capacity=20)
    db.session.add(second)
    db.session.commit()
    for course in (data["algebra"], data["physics"]):
        for hit in svc.generate_timetable(course, ["monday", "tuesday"]):
            svc.schedule_room(course, hit.as_dict())
        db.session.commit()
    rows = RoomSchedule.query.all()
    assert len(rows) == 4
    # physics lands in the second room at the same hour
    physics_rooms = {rs.room_id for rs in rows if rs.course_id == data["physics"].id}
    assert physics_rooms == {second.id}

def test_conflict_report(data):
    svc.schedule_room(data["algebra"], _slot(data["room"]))
    db.session.commit()
    conflicts = svc.check_for_conflicts(_slot(data["room"], start="10:00", end="11:30"))
    assert conflicts == [{
        "message": "Room Room 101 is already scheduled",
        "details": {"course": "Algebra", "teacher": "Jane Smith", "time": "09:00 - 10:30"},
    }]

def test_conflict_report_unknown_teacher_and_empty(data):
    svc.schedule_room(data["physics"], _slot(data["room"]))
    db.session.commit()
    [c] = svc.check_for_conflicts(_slot(data["room"]))
    assert c["details"]["teacher"] == "Unknown"
    assert svc.check_for_conflicts(_slot(data["room"], day="tuesday")) == []
    assert svc.check_for_conflicts(_slot(data["room"]), exclude_course_id=data["physics"].id) == []

def test_read_views_sorted(data):
    room = data["room"]
    algebra = data["algebra"]
    for day, start, end in (("friday", "09:00", "10:30"), ("monday", "13:00", "14:30"),
                            ("monday", "09:00", "10:30")):
        svc.schedule_room(algebra, _slot(room, day, start, end))
    db.session.commit()
    expected = [("monday", "09:00"), ("monday", "13:00"), ("friday", "09:00")]

    def keys(rows):
        return [(rs.day_of_week.value, rs.start_time.strftime("%H:%M")) for rs in rows]

    assert keys(svc.get_course_timetable(algebra)) == expected
    assert keys(svc.get_teacher_timetable(data["teacher"].id)) == expected
    assert keys(svc.get_room_timetable(room.id)) == expected
    timetables = svc.get_all_room_timetables()
    assert list(timetables) == [room.id]
    assert keys(timetables[room.id]["schedules"]) == expected

def _reject_inserts(message):
    db.session.execute(text(
        "CREATE TRIGGER reject_room_schedule BEFORE INSERT ON room_schedule "
        f"BEGIN SELECT RAISE(ABORT, '{message}'); END"
    ))

def test_exclusion_violation_becomes_slot_taken(data):
    _reject_inserts(f"conflicting key value violates exclusion constraint \"{svc.NO_OVERLAP_CONSTRAINT}\"")
    db.session.add(Room(name="Pending", capacity=10))
    db.session.flush()

    with pytest.raises(svc.SlotTaken) as exc:
        svc.schedule_room(data["algebra"], _slot(data["room"]))
    assert exc.value.details["time"] == "09:00 - 10:30"

    # only the rejected booking is undone
    assert Room.query.filter_by(name="Pending").count() == 1
    db.session.commit()
    assert Room.query.filter_by(name="Pending").count() == 1
    assert RoomSchedule.query.count() == 0

def test_other_integrity_errors_propagate(data):
    _reject_inserts("storage quota exceeded")
    with pytest.raises(IntegrityError) as exc:
        svc.schedule_room(data["algebra"], _slot(data["room"]))
    assert "storage quota exceeded" in str(exc.value.orig)

def test_unknown_day_rejected_by_database(data):
    with pytest.raises(IntegrityError):
        db.session.execute(text(
            "INSERT INTO room_schedule (course_id, room_id, day_of_week, start_time, end_time, is_recurring) "
            "VALUES (:cid, :rid, 'funday', '09:00:00.000000', '10:30:00.000000', 1)"
        ), {"cid": data["algebra"].id, "rid": data["room"].id})
    db.session.rollback()
