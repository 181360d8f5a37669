from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from mydoc.models.request import Urgency
from mydoc.schemas.patient import PatientSummary


class ScheduleRequestIn(BaseModel):
    slot_id: str


class RescheduleIn(BaseModel):
    slot_id: str


class AppointmentSlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int


class AppointmentRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    motivo: str
    urgenza: Urgency
    patient: PatientSummary


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: str
    slot_id: str
    note: Optional[str] = None
    created_at: datetime
    slot: AppointmentSlotOut
    request: AppointmentRequestOut


class BookingOut(BaseModel):
    success: bool = True
    appointment_id: Optional[str] = None


class ActionOut(BaseModel):
    success: bool = True
