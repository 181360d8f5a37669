from __future__ import annotations

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mydoc.models.base import Base, CreatedAtMixin, new_id


class Appointment(Base, CreatedAtMixin):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("request_id", name="uq_appointments_request_id"),
        UniqueConstraint("slot_id", name="uq_appointments_slot_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    request_id: Mapped[str] = mapped_column(ForeignKey("requests.id"), nullable=False)
    slot_id: Mapped[str] = mapped_column(ForeignKey("doctor_slots.id"), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    request = relationship("Request", back_populates="appointment", lazy="joined")
    slot = relationship("DoctorSlot", back_populates="appointment", lazy="joined")
