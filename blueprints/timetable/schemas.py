from __future__ import annotations
from datetime import time
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from models import DayOfWeek

def _lower(v):
    return v.strip().lower() if isinstance(v, str) else v

# ---------- Allocator ----------
class GenerateTimetableIn(BaseModel):
    days: List[DayOfWeek] = Field(min_length=1, max_length=7)

    @field_validator("days", mode="before")
    @classmethod
    def lower_days(cls, v):
        return [_lower(x) for x in v] if isinstance(v, list) else v

# ---------- Single slot (commit / conflicts / availability) ----------
class SlotIn(BaseModel):
    room_id: int
    day: DayOfWeek = Field(validation_alias=AliasChoices("day", "day_of_week"))
    start_time: time
    end_time: time

    @field_validator("day", mode="before")
    @classmethod
    def lower_day(cls, v):
        return _lower(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be > start_time")
        return self

    def as_service_data(self) -> dict:
        return {"room_id": self.room_id, "day": self.day.value,
                "start_time": self.start_time, "end_time": self.end_time}

# ---------- Options ----------
class GenerateOptionsIn(BaseModel):
    days: Optional[List[DayOfWeek]] = Field(None, max_length=7)
    count: int = Field(5, ge=1, le=10)

    @field_validator("days", mode="before")
    @classmethod
    def lower_days(cls, v):
        return [_lower(x) for x in v] if isinstance(v, list) else v

    @field_validator("days")
    @classmethod
    def unique_days(cls, v):
        return list(dict.fromkeys(v)) if v else v
