from __future__ import annotations
from datetime import time
from typing import Iterable, List, Sequence, Tuple

from flask import current_app, has_app_context

from config import DEFAULT_TIMETABLE_SLOTS
from models import DayOfWeek

Slot = Tuple[time, time]

def parse_hhmm(value) -> time:
    """'09:00' / '09:00:00' / time -> time (seconds dropped)."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str) or ":" not in value:
        raise ValueError(f"Bad time value: {value!r}")
    h, m = value.strip().split(":")[:2]
    return time(int(h), int(m))

def fmt_hhmm(t: time | None) -> str:
    if t is None:
        return ""
    return f"{t.hour:02d}:{t.minute:02d}"

def as_day(value) -> DayOfWeek:
    if isinstance(value, DayOfWeek):
        return value
    return DayOfWeek(str(value).strip().lower())

def overlaps(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    # half-open intervals: touching boundaries are not an overlap
    return a_start < b_end and a_end > b_start

def normalize_slots(raw: Iterable[Sequence]) -> List[Slot]:
    out: List[Slot] = []
    for start, end in raw:
        s, e = parse_hhmm(start), parse_hhmm(end)
        if e <= s:
            raise ValueError(f"Slot end must be after start: {start}-{end}")
        out.append((s, e))
    return out

def slot_catalog(slots: Iterable[Sequence] | None = None) -> List[Slot]:
    """Explicit slots win, then TIMETABLE_SLOTS from config, then the built-in five."""
    if slots is not None:
        return normalize_slots(slots)
    raw = DEFAULT_TIMETABLE_SLOTS
    if has_app_context():
        raw = current_app.config.get("TIMETABLE_SLOTS") or DEFAULT_TIMETABLE_SLOTS
    return normalize_slots(raw)
