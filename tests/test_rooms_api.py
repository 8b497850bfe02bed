from __future__ import annotations
import pytest

from app import create_app
from extensions import db
from models import Course

@pytest.fixture()
def client():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        with app.test_client() as c:
            yield c
        db.session.remove()
        db.drop_all()

def _create(client, name, capacity=25, **extra):
    return client.post("/api/v1/rooms", json={"name": name, "location": "Main Building, 1st Floor",
                                              "capacity": capacity, **extra})

def test_room_crud_and_uniqueness(client):
    r = _create(client, "Room 101")
    assert r.status_code == 201
    rid = r.get_json()["id"]
    assert r.headers["Location"].endswith(f"/api/v1/rooms/{rid}")

    r = client.get(f"/api/v1/rooms/{rid}")
    assert r.status_code == 200
    body = r.get_json()
    assert body["name"] == "Room 101"
    assert body["schedules"] == []

    # unique name
    r = _create(client, "Room 101", capacity=10)
    assert r.status_code == 409
    assert r.get_json()["errors"][0]["code"] == "UNIQUE_CONSTRAINT"

    r = client.put(f"/api/v1/rooms/{rid}", json={"name": "Room 101", "capacity": 30, "is_active": False})
    assert r.status_code == 200
    assert r.get_json()["room"]["capacity"] == 30
    assert r.get_json()["room"]["is_active"] is False

    r = client.delete(f"/api/v1/rooms/{rid}")
    assert r.status_code == 204
    r = client.get(f"/api/v1/rooms/{rid}")
    assert r.status_code == 404
    assert r.get_json()["errors"][0]["code"] == "NOT_FOUND"

def test_room_validation(client):
    r = _create(client, "Tiny", capacity=0)
    assert r.status_code == 400
    assert r.get_json()["errors"][0]["code"] == "VALIDATION_ERROR"
    r = client.post("/api/v1/rooms", json={"capacity": 10})
    assert r.status_code == 400

def test_list_search_and_pagination(client):
    for n in range(1, 13):
        _create(client, f"Room {100 + n}")
    _create(client, "Lab", location="Science Wing", is_active=False)

    r = client.get("/api/v1/rooms")
    data = r.get_json()
    assert data["meta"] == {"page": 1, "per_page": 10, "total": 13}
    assert len(data["items"]) == 10

    r = client.get("/api/v1/rooms?page=2&per_page=10")
    assert len(r.get_json()["items"]) == 3

    r = client.get("/api/v1/rooms?q=Science")
    assert [i["name"] for i in r.get_json()["items"]] == ["Lab"]

    r = client.get("/api/v1/rooms?active=1")
    assert r.get_json()["meta"]["total"] == 12

    r = client.get("/api/v1/rooms?page=abc")
    assert r.status_code == 400

def test_delete_refused_while_booked(client):
    rid = _create(client, "Room 101").get_json()["id"]
    course = Course(title="Algebra")
    db.session.add(course)
    db.session.commit()
    r = client.post(f"/api/v1/courses/{course.id}/schedules",
                    json={"room_id": rid, "day": "monday", "start_time": "09:00", "end_time": "10:30"})
    assert r.status_code == 201

    r = client.delete(f"/api/v1/rooms/{rid}")
    assert r.status_code == 409
    assert r.get_json()["errors"][0]["code"] == "ROOM_HAS_SCHEDULES"

    r = client.get("/api/v1/rooms")
    assert r.get_json()["items"][0]["schedules_count"] == 1

def test_check_availability_and_room_timetables(client):
    r101 = _create(client, "Room 101").get_json()["id"]
    r102 = _create(client, "Room 102").get_json()["id"]
    course = Course(title="Algebra")
    db.session.add(course)
    db.session.commit()
    client.post(f"/api/v1/courses/{course.id}/schedules",
                json={"room_id": r101, "day_of_week": "tuesday", "start_time": "09:00", "end_time": "10:30"})

    r = client.post("/api/v1/rooms/check-availability",
                    json={"day_of_week": "Tuesday", "start_time": "10:00", "end_time": "11:00"})
    assert r.status_code == 200
    data = r.get_json()
    assert data["has_available_rooms"] is True
    assert [room["id"] for room in data["available_rooms"]] == [r102]

    r = client.post("/api/v1/rooms/check-availability",
                    json={"day": "tuesday", "start_time": "11:00", "end_time": "10:00"})
    assert r.status_code == 400

    r = client.get("/api/v1/rooms/timetable")
    timetables = r.get_json()["timetables"]
    assert [t["room"]["id"] for t in timetables] == [r101, r102]
    assert timetables[0]["schedules"][0]["course"] == "Algebra"
    assert timetables[1]["schedules"] == []

def test_per_page_has_lower_bound(client):
    for n in range(1, 4):
        _create(client, f"Room {100 + n}")
    for value in ("-1", "0"):
        data = client.get(f"/api/v1/rooms?per_page={value}").get_json()
        assert data["meta"]["per_page"] == 1
        assert len(data["items"]) == 1
