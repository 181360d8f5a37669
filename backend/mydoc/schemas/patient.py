from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class PatientBase(BaseModel):
    nome: str
    cognome: str
    telefono: str
    email: Optional[EmailStr] = None
    note: Optional[str] = None


class PatientCreate(PatientBase):
    pass


class PatientUpdate(PatientBase):
    pass


class PatientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    nome: str
    cognome: str


class PatientOut(PatientBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    created_at: datetime


class PatientDeleteOut(BaseModel):
    success: bool = True
    requests_deleted: int = 0
