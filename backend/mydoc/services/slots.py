from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import delete, exists, select
from sqlalchemy.orm import Session

from mydoc.core.clock import as_utc, display_zone, local_day_start, utcnow
from mydoc.models.appointment import Appointment
from mydoc.models.doctor_slot import DoctorSlot
from mydoc.services.results import ActionResult, ErrorKind, run_action

logger = logging.getLogger("mydoc.slots")

SLOT_WINDOW_REQUIRED = "Orario di inizio e fine sono obbligatori"
SLOT_END_BEFORE_START = "L'orario di fine deve essere successivo all'inizio"
SLOT_OVERLAP = "Lo slot si sovrappone a uno slot esistente"
SLOT_DUPLICATE = "Esiste già uno slot con questo orario"
BLOCK_EMPTY = "Nessuno slot può essere creato con questi parametri"
SLOT_NOT_FOUND = "Slot non trovato"
SLOT_HAS_APPOINTMENT = "Impossibile eliminare: slot con appuntamenti attivi"
MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class SlotRange:
    start_time: datetime
    end_time: datetime
    duration_minutes: int


def generate_slot_ranges(
    day: date,
    start_minute: int,
    end_minute: int,
    slot_duration_minutes: int,
    tz: ZoneInfo | None = None,
) -> list[SlotRange]:
    """Slice a same-day window (minutes from local midnight) into contiguous UTC ranges.

    A trailing fragment shorter than the slot length is dropped.
    """
    if slot_duration_minutes <= 0 or end_minute <= start_minute:
        return []
    if start_minute < 0 or end_minute > MINUTES_PER_DAY:
        return []
    midnight = local_day_start(day, tz)
    step = timedelta(minutes=slot_duration_minutes)
    # Window edges are local wall-clock times; slices step in elapsed UTC time.
    block_end = as_utc(midnight + timedelta(minutes=end_minute))
    current = as_utc(midnight + timedelta(minutes=start_minute))

    ranges: list[SlotRange] = []
    while current + step <= block_end:
        ranges.append(
            SlotRange(
                start_time=current,
                end_time=current + step,
                duration_minutes=slot_duration_minutes,
            )
        )
        current = current + step
    return ranges


def _overlapping_stmt(start: datetime, end: datetime):
    return (
        select(DoctorSlot)
        .where(DoctorSlot.start_time < end, DoctorSlot.end_time > start)
        .order_by(DoctorSlot.start_time.asc())
    )


def create_doctor_slot(
    db: Session,
    start: datetime | None,
    end: datetime | None,
    duration_minutes: int | None = None,
    note: str | None = None,
) -> ActionResult:
    if start is None or end is None:
        return ActionResult.fail(SLOT_WINDOW_REQUIRED)
    start = as_utc(start)
    end = as_utc(end)
    if end <= start:
        return ActionResult.fail(SLOT_END_BEFORE_START)
    if not duration_minutes or duration_minutes <= 0:
        duration_minutes = int((end - start).total_seconds() // 60)
    note = (note or "").strip() or None

    def _create() -> ActionResult:
        clash = db.scalars(_overlapping_stmt(start, end).limit(1)).first()
        if clash is not None:
            db.rollback()
            return ActionResult.fail(SLOT_OVERLAP, ErrorKind.conflict)
        slot = DoctorSlot(
            start_time=start,
            end_time=end,
            duration_minutes=duration_minutes,
            is_available=True,
            note=note,
        )
        db.add(slot)
        db.flush()
        slot_id = slot.id
        db.commit()
        logger.info("Slot %s created for %s - %s", slot_id, start.isoformat(), end.isoformat())
        return ActionResult.ok(slot_id=slot_id)

    return run_action(
        db,
        _create,
        action="createDoctorSlot",
        failure_message="Errore durante la creazione dello slot",
        conflict_message=SLOT_DUPLICATE,
        start=start.isoformat(),
        end=end.isoformat(),
    )


def create_doctor_slots_block(
    db: Session,
    day: date,
    start_minute: int,
    end_minute: int,
    slot_duration_minutes: int = 30,
    *,
    tz: ZoneInfo | None = None,
) -> ActionResult:
    """Create every non-overlapping sub-slot of a window; conflicting ones are skipped."""
    ranges = generate_slot_ranges(day, start_minute, end_minute, slot_duration_minutes, tz or display_zone())
    if not ranges:
        return ActionResult.fail(BLOCK_EMPTY)
    window_start = ranges[0].start_time
    window_end = ranges[-1].end_time

    def _create_block() -> ActionResult:
        taken = [
            (slot.start_time, slot.end_time)
            for slot in db.scalars(_overlapping_stmt(window_start, window_end))
        ]
        created = 0
        skipped = 0
        for candidate in ranges:
            if any(
                existing_start < candidate.end_time and existing_end > candidate.start_time
                for existing_start, existing_end in taken
            ):
                skipped += 1
                continue
            db.add(
                DoctorSlot(
                    start_time=candidate.start_time,
                    end_time=candidate.end_time,
                    duration_minutes=candidate.duration_minutes,
                    is_available=True,
                )
            )
            taken.append((candidate.start_time, candidate.end_time))
            created += 1
        db.commit()
        logger.info("Slot block on %s: %s created, %s skipped", day.isoformat(), created, skipped)
        return ActionResult.ok(created=created, skipped=skipped)

    return run_action(
        db,
        _create_block,
        action="createDoctorSlotsBlock",
        failure_message="Errore durante la creazione degli slot",
        conflict_message=SLOT_DUPLICATE,
        day=day.isoformat(),
    )


def delete_doctor_slot(db: Session, slot_id: str) -> ActionResult:
    def _delete() -> ActionResult:
        result = db.execute(
            delete(DoctorSlot)
            .where(
                DoctorSlot.id == slot_id,
                DoctorSlot.is_available.is_(True),
                ~exists().where(Appointment.slot_id == slot_id),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.commit()
            logger.info("Slot %s deleted", slot_id)
            return ActionResult.ok()
        db.rollback()
        try:
            found = db.scalar(select(exists().where(DoctorSlot.id == slot_id)))
        finally:
            db.rollback()
        if not found:
            return ActionResult.fail(SLOT_NOT_FOUND, ErrorKind.not_found)
        return ActionResult.fail(SLOT_HAS_APPOINTMENT, ErrorKind.conflict)

    return run_action(
        db,
        _delete,
        action="deleteDoctorSlot",
        failure_message="Errore durante l'eliminazione dello slot",
        slot_id=slot_id,
    )


def get_doctor_slot(db: Session, slot_id: str) -> DoctorSlot | None:
    return db.get(DoctorSlot, slot_id)


def list_slots(
    db: Session,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    only_available: bool = False,
) -> list[DoctorSlot]:
    stmt = select(DoctorSlot).order_by(DoctorSlot.start_time.asc())
    if start is not None:
        stmt = stmt.where(DoctorSlot.start_time >= as_utc(start))
    if end is not None:
        stmt = stmt.where(DoctorSlot.start_time <= as_utc(end))
    if only_available:
        stmt = stmt.where(DoctorSlot.is_available.is_(True))
    return list(db.scalars(stmt).unique())


def get_available_slots_in_range(db: Session, start: datetime, end: datetime) -> list[DoctorSlot]:
    """Every slot starting inside [start, end], booked or not; callers filter."""
    return list_slots(db, start=start, end=end)


def get_next_available_slot(
    db: Session, from_date: datetime | None = None, *, now: datetime | None = None
) -> DoctorSlot | None:
    reference = as_utc(from_date or now or utcnow())
    stmt = (
        select(DoctorSlot)
        .where(DoctorSlot.is_available.is_(True), DoctorSlot.start_time >= reference)
        .order_by(DoctorSlot.start_time.asc())
        .limit(1)
    )
    return db.scalars(stmt).unique().first()
