from datetime import datetime, time
from enum import Enum as PyEnum

from sqlalchemy import (
    Enum, ForeignKey, UniqueConstraint, CheckConstraint, Index, Boolean, DateTime, Time,
    Integer, Float, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from extensions import db

# ---------- Enums ----------
class DayOfWeek(str, PyEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def order(self) -> int:
        return WEEKDAYS.index(self)

WEEKDAYS = list(DayOfWeek)

# stored as plain text ("monday"), not as a native DB enum
day_of_week_type = Enum(
    DayOfWeek,
    name="day_of_week",
    native_enum=False,
    length=9,
    values_callable=lambda e: [m.value for m in e],
    validate_strings=True,
    create_constraint=True,
)


# ---------- Collaborators ----------
class Teacher(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    full_name: Mapped[str] = mapped_column(db.String(255), nullable=False)

    courses = relationship("Course", back_populates="teacher")

    def __repr__(self):
        return f"<Teacher {self.full_name}>"


class Course(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teacher.id", ondelete="SET NULL"), index=True)
    max_enrollment: Mapped[int | None] = mapped_column(Integer)
    # {"monday": true, "tuesday": false, ...}
    schedule: Mapped[dict | None] = mapped_column(JSON)

    teacher = relationship("Teacher", back_populates="courses")
    room_schedules = relationship("RoomSchedule", back_populates="course", cascade="all, delete-orphan")
    timetable_options = relationship("TimetableOption", back_populates="course", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Course {self.title}>"


# ---------- Rooms & bookings ----------
class Room(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(db.String(255))
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    schedules = relationship("RoomSchedule", back_populates="room")

    __table_args__ = (
        UniqueConstraint("name", name="uq_room_name"),
        Index("ix_room_is_active", "is_active"),
    )

    def __repr__(self):
        return f"<Room {self.name}>"


class RoomSchedule(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("course.id", ondelete="CASCADE"), nullable=False, index=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("room.id", ondelete="RESTRICT"), nullable=False)
    day_of_week: Mapped[DayOfWeek] = mapped_column(day_of_week_type, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    # weekly recurrence is assumed, occurrences are not modelled
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    course = relationship("Course", back_populates="room_schedules")
    room = relationship("Room", back_populates="schedules")

    __table_args__ = (
        Index("ix_room_schedule_room_day", "room_id", "day_of_week"),
        CheckConstraint("end_time > start_time", name="ck_room_schedule_interval"),
    )

    def __repr__(self):
        return f"<RoomSchedule room={self.room_id} {self.day_of_week.value} {self.start_time}-{self.end_time}>"


class TimetableOption(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("course.id", ondelete="CASCADE"), nullable=False, index=True)
    # [{"day", "room_id", "room_name", "start_time", "end_time"}, ...]
    schedule_data: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    utilization_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    option_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    course = relationship("Course", back_populates="timetable_options")
