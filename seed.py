"""
Idempotent seed script.
Usage:
  python seed.py --reset   # drop and recreate tables, then load demo data
  python seed.py           # add whatever demo rows are missing
"""
import argparse

from extensions import db
from models import Course, Room, Teacher

DEMO_ROOMS = [
    {"name": "Room 101", "location": "Main Building, 1st Floor", "capacity": 25},
    {"name": "Room 102", "location": "Main Building, 1st Floor", "capacity": 20},
    {"name": "Room 103", "location": "Main Building, 1st Floor", "capacity": 30},
]

def get_or_create(model, defaults=None, **filters):
    inst = db.session.query(model).filter_by(**filters).first()
    if inst:
        return inst, False
    data = dict(filters)
    if defaults:
        data.update(defaults)
    inst = model(**data)
    db.session.add(inst)
    return inst, True

def seed_demo() -> dict:
    """Create demo rooms, a teacher and two courses; returns counts of new rows."""
    created = {"rooms": 0, "teachers": 0, "courses": 0}

    for row in DEMO_ROOMS:
        _, new = get_or_create(Room, name=row["name"], defaults={
            "location": row["location"], "capacity": row["capacity"], "is_active": True,
        })
        created["rooms"] += int(new)

    teacher, new = get_or_create(Teacher, full_name="Jane Smith")
    created["teachers"] += int(new)
    db.session.flush()

    for title, enrollment, days in (
        ("Introduction to Programming", 20, {"monday": True, "wednesday": True, "friday": False}),
        ("Databases", 25, {"tuesday": True, "thursday": True}),
    ):
        _, new = get_or_create(Course, title=title, defaults={
            "teacher_id": teacher.id, "max_enrollment": enrollment, "schedule": days,
        })
        created["courses"] += int(new)

    db.session.commit()
    return created

def main(argv=None):
    parser = argparse.ArgumentParser(description="Load demo rooms and courses")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args(argv)

    from app import create_app
    app = create_app("dev")
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
        created = seed_demo()
        print(f"Seed complete: {created}")

if __name__ == "__main__":
    main()
