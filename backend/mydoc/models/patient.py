from __future__ import annotations

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mydoc.models.base import Base, CreatedAtMixin, new_id


class Patient(Base, CreatedAtMixin):
    __tablename__ = "patients"
    __table_args__ = (UniqueConstraint("telefono", name="uq_patients_telefono"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    cognome: Mapped[str] = mapped_column(String(120), nullable=False)
    telefono: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    requests = relationship("Request", back_populates="patient")

    @property
    def display_name(self) -> str:
        return f"{self.cognome} {self.nome}".strip()
