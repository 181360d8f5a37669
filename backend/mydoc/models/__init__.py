from mydoc.models.base import Base
from mydoc.models.patient import Patient
from mydoc.models.request import Request, RequestStatus, Urgency
from mydoc.models.doctor_slot import DoctorSlot
from mydoc.models.appointment import Appointment

__all__ = [
    "Base",
    "Patient",
    "Request",
    "RequestStatus",
    "Urgency",
    "DoctorSlot",
    "Appointment",
]
