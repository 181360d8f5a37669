from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mydoc.models.base import Base, CreatedAtMixin, UTCDateTime, new_id


class DoctorSlot(Base, CreatedAtMixin):
    __tablename__ = "doctor_slots"
    __table_args__ = (
        UniqueConstraint("start_time", "end_time", name="uq_doctor_slots_window"),
        CheckConstraint("start_time < end_time", name="ck_doctor_slots_window_order"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    # Mirrors "no appointment references this slot"; only written together
    # with the appointment row change.
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    appointment = relationship("Appointment", back_populates="slot", uselist=False)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_time < end and self.end_time > start
