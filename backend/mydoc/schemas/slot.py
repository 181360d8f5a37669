from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SlotCreate(BaseModel):
    start_time: datetime
    end_time: datetime
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    note: Optional[str] = None


class SlotBlockCreate(BaseModel):
    date: date
    start_minute: int = Field(ge=0, le=24 * 60)
    end_minute: int = Field(ge=0, le=24 * 60)
    slot_duration_minutes: int = Field(default=30, gt=0, le=24 * 60)


class SlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    is_available: bool
    note: Optional[str] = None
    created_at: datetime


class SlotCreatedOut(BaseModel):
    success: bool = True
    slot_id: str


class SlotBlockOut(BaseModel):
    success: bool = True
    created: int
    skipped: int
