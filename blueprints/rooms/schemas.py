from __future__ import annotations
from datetime import time
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from models import DayOfWeek

# ---------- Rooms ----------
class RoomIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    capacity: int = Field(ge=1, le=100)
    is_active: bool = True

class RoomOut(RoomIn):
    id: int
    # capacity is not range-checked on output: rows may predate validation
    capacity: int
    schedules_count: Optional[int] = None

# ---------- Availability ----------
class AvailabilityIn(BaseModel):
    day_of_week: DayOfWeek = Field(validation_alias=AliasChoices("day_of_week", "day"))
    start_time: time
    end_time: time

    @field_validator("day_of_week", mode="before")
    @classmethod
    def lower_day(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be > start_time")
        return self
