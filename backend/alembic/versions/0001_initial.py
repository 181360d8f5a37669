"""initial scheduling schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "patients",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("nome", sa.String(length=120), nullable=False),
        sa.Column("cognome", sa.String(length=120), nullable=False),
        sa.Column("telefono", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("telefono", name="uq_patients_telefono"),
    )

    op.create_table(
        "requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("patient_id", sa.String(length=36), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("motivo", sa.Text(), nullable=False),
        sa.Column(
            "urgenza",
            sa.Enum("bassa", "media", "alta", name="request_urgency"),
            nullable=False,
        ),
        sa.Column(
            "stato",
            sa.Enum("waiting", "scheduled", "rejected", name="request_status"),
            nullable=False,
            server_default="waiting",
        ),
        sa.Column("desired_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_requests_patient_id", "requests", ["patient_id"])
    op.create_index("ix_requests_stato", "requests", ["stato"])

    op.create_table(
        "doctor_slots",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("start_time", "end_time", name="uq_doctor_slots_window"),
        sa.CheckConstraint("start_time < end_time", name="ck_doctor_slots_window_order"),
    )
    op.create_index("ix_doctor_slots_start_time", "doctor_slots", ["start_time"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("request_id", sa.String(length=36), sa.ForeignKey("requests.id"), nullable=False),
        sa.Column("slot_id", sa.String(length=36), sa.ForeignKey("doctor_slots.id"), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("request_id", name="uq_appointments_request_id"),
        sa.UniqueConstraint("slot_id", name="uq_appointments_slot_id"),
    )


def downgrade() -> None:
    op.drop_table("appointments")
    op.drop_index("ix_doctor_slots_start_time", table_name="doctor_slots")
    op.drop_table("doctor_slots")
    op.drop_index("ix_requests_stato", table_name="requests")
    op.drop_index("ix_requests_patient_id", table_name="requests")
    op.drop_table("requests")
    op.drop_table("patients")
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS request_status")
        op.execute("DROP TYPE IF EXISTS request_urgency")
