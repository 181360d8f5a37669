from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mydoc.models.request import RequestStatus, Urgency
from mydoc.schemas.patient import PatientSummary


class RequestCreate(BaseModel):
    patient_id: str
    motivo: str = Field(min_length=1)
    urgenza: Urgency
    desired_date: Optional[datetime] = None
    note: Optional[str] = None


class RequestReject(BaseModel):
    note: Optional[str] = None


class RequestNoteUpdate(BaseModel):
    note: Optional[str] = None


class RequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    patient: PatientSummary
    motivo: str
    urgenza: Urgency
    stato: RequestStatus
    desired_date: Optional[datetime] = None
    note: Optional[str] = None
    created_at: datetime
