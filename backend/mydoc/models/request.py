from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mydoc.models.base import Base, CreatedAtMixin, UTCDateTime, new_id


class Urgency(str, enum.Enum):
    bassa = "bassa"
    media = "media"
    alta = "alta"


class RequestStatus(str, enum.Enum):
    waiting = "waiting"
    scheduled = "scheduled"
    rejected = "rejected"


URGENCY_ORDER = {Urgency.alta: 0, Urgency.media: 1, Urgency.bassa: 2}


class Request(Base, CreatedAtMixin):
    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id"), nullable=False, index=True
    )
    motivo: Mapped[str] = mapped_column(Text, nullable=False)
    urgenza: Mapped[Urgency] = mapped_column(
        Enum(Urgency, name="request_urgency"), nullable=False
    )
    stato: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status"),
        default=RequestStatus.waiting,
        nullable=False,
        index=True,
    )
    desired_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient = relationship("Patient", back_populates="requests", lazy="joined")
    appointment = relationship("Appointment", back_populates="request", uselist=False)
