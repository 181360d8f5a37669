"""Guarded transactions that move a (request, slot) pair between states.

Every precondition is part of the write itself (``UPDATE ... WHERE``), so two
callers racing for the same slot or request cannot both pass the check. When
a guard matches no rows the transaction is rolled back and the current state
is re-read to report which precondition failed.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, exists, select, update
from sqlalchemy.orm import Session

from mydoc.core.clock import as_utc, utcnow
from mydoc.models.appointment import Appointment
from mydoc.models.base import new_id
from mydoc.models.doctor_slot import DoctorSlot
from mydoc.models.request import Request, RequestStatus
from mydoc.services.results import ActionResult, ErrorKind, run_action
from mydoc.services.slots import get_next_available_slot

logger = logging.getLogger("mydoc.booking")

REQUEST_NOT_FOUND = "Richiesta non trovata"
REQUEST_NOT_WAITING = "La richiesta non è in lista d'attesa"
REQUEST_HAS_APPOINTMENT = "La richiesta ha già un appuntamento"
SLOT_NOT_FOUND = "Slot non trovato"
SLOT_NOT_AVAILABLE = "Slot non disponibile"
APPOINTMENT_NOT_FOUND = "Appuntamento non trovato"
NO_SLOT_AVAILABLE = "Nessuno slot disponibile"
DOUBLE_BOOKING = "Slot già prenotato o richiesta già assegnata"
SLOT_ALREADY_BOOKED = "Slot già prenotato"


def claim_request(db: Session, request_id: str) -> bool:
    result = db.execute(
        update(Request)
        .where(
            Request.id == request_id,
            Request.stato == RequestStatus.waiting,
            ~exists().where(Appointment.request_id == request_id),
        )
        .values(stato=RequestStatus.scheduled)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def claim_slot(db: Session, slot_id: str) -> bool:
    result = db.execute(
        update(DoctorSlot)
        .where(
            DoctorSlot.id == slot_id,
            DoctorSlot.is_available.is_(True),
            ~exists().where(Appointment.slot_id == slot_id),
        )
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_slot(db: Session, slot_id: str) -> bool:
    result = db.execute(
        update(DoctorSlot)
        .where(
            DoctorSlot.id == slot_id,
            ~exists().where(Appointment.slot_id == slot_id),
        )
        .values(is_available=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _classify_slot_failure(db: Session, slot_id: str) -> ActionResult | None:
    is_available = db.scalar(select(DoctorSlot.is_available).where(DoctorSlot.id == slot_id))
    if is_available is None:
        return ActionResult.fail(SLOT_NOT_FOUND, ErrorKind.not_found)
    taken = db.scalar(select(exists().where(Appointment.slot_id == slot_id)))
    if not is_available or taken:
        return ActionResult.fail(SLOT_NOT_AVAILABLE, ErrorKind.conflict)
    return None


def _classify_schedule_failure(db: Session, request_id: str, slot_id: str) -> ActionResult:
    try:
        stato = db.scalar(select(Request.stato).where(Request.id == request_id))
        if stato is None:
            return ActionResult.fail(REQUEST_NOT_FOUND, ErrorKind.not_found)
        if db.scalar(select(exists().where(Appointment.request_id == request_id))):
            return ActionResult.fail(REQUEST_HAS_APPOINTMENT, ErrorKind.conflict)
        if stato != RequestStatus.waiting:
            return ActionResult.fail(REQUEST_NOT_WAITING, ErrorKind.conflict)
        slot_failure = _classify_slot_failure(db, slot_id)
        if slot_failure is not None:
            return slot_failure
        # Every precondition holds again: a concurrent cancel landed between
        # the guarded write and this read.
        return ActionResult.fail(DOUBLE_BOOKING, ErrorKind.conflict)
    finally:
        db.rollback()


def schedule_request(db: Session, request_id: str, slot_id: str) -> ActionResult:
    def _schedule() -> ActionResult:
        if not claim_request(db, request_id) or not claim_slot(db, slot_id):
            db.rollback()
            return _classify_schedule_failure(db, request_id, slot_id)
        appointment_id = new_id()
        db.add(Appointment(id=appointment_id, request_id=request_id, slot_id=slot_id))
        db.commit()
        logger.info("Request %s booked on slot %s (appointment %s)", request_id, slot_id, appointment_id)
        return ActionResult.ok(appointment_id=appointment_id)

    return run_action(
        db,
        _schedule,
        action="scheduleRequest",
        failure_message="Errore durante la prenotazione",
        conflict_message=DOUBLE_BOOKING,
        request_id=request_id,
        slot_id=slot_id,
    )


def schedule_request_at_next_available(
    db: Session, request_id: str, *, now: datetime | None = None
) -> ActionResult:
    current = as_utc(now) if now else utcnow()

    def _pick_slot() -> ActionResult:
        try:
            row = db.execute(
                select(Request.stato, Request.desired_date).where(Request.id == request_id)
            ).one_or_none()
            if row is None:
                return ActionResult.fail(REQUEST_NOT_FOUND, ErrorKind.not_found)
            if row.stato != RequestStatus.waiting:
                return ActionResult.fail(REQUEST_NOT_WAITING, ErrorKind.conflict)
            reference = row.desired_date if row.desired_date and row.desired_date > current else current
            slot = get_next_available_slot(db, reference, now=current)
            if slot is None:
                return ActionResult.fail(NO_SLOT_AVAILABLE, ErrorKind.conflict)
            return ActionResult.ok(slot_id=slot.id)
        finally:
            db.rollback()

    picked = run_action(
        db,
        _pick_slot,
        action="scheduleRequestAtNextAvailable",
        failure_message="Errore durante la prenotazione",
        request_id=request_id,
    )
    if not picked.success:
        return picked
    # The slot may be claimed by someone else before this call; the guarded
    # booking then reports it as unavailable.
    return schedule_request(db, request_id, picked.data["slot_id"])


def reschedule_appointment(db: Session, appointment_id: str, new_slot_id: str) -> ActionResult:
    def _reschedule() -> ActionResult:
        current = db.execute(
            select(Appointment.id, Appointment.slot_id)
            .where(Appointment.id == appointment_id)
            .with_for_update()
        ).one_or_none()
        if current is None:
            db.rollback()
            return ActionResult.fail(APPOINTMENT_NOT_FOUND, ErrorKind.not_found)
        old_slot_id = current.slot_id
        if old_slot_id == new_slot_id:
            db.rollback()
            return ActionResult.ok(appointment_id=appointment_id, changed=False)

        if not claim_slot(db, new_slot_id):
            db.rollback()
            try:
                failure = _classify_slot_failure(db, new_slot_id)
            finally:
                db.rollback()
            return failure or ActionResult.fail(SLOT_ALREADY_BOOKED, ErrorKind.conflict)

        db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.slot_id == old_slot_id)
            .values(slot_id=new_slot_id)
            .execution_options(synchronize_session=False)
        )
        release_slot(db, old_slot_id)
        db.commit()
        logger.info("Appointment %s moved from slot %s to %s", appointment_id, old_slot_id, new_slot_id)
        return ActionResult.ok(appointment_id=appointment_id, changed=True)

    return run_action(
        db,
        _reschedule,
        action="rescheduleAppointment",
        failure_message="Errore durante lo spostamento",
        conflict_message=SLOT_ALREADY_BOOKED,
        appointment_id=appointment_id,
        new_slot_id=new_slot_id,
    )


def cancel_appointment(db: Session, appointment_id: str) -> ActionResult:
    def _cancel() -> ActionResult:
        current = db.execute(
            select(Appointment.request_id, Appointment.slot_id)
            .where(Appointment.id == appointment_id)
            .with_for_update()
        ).one_or_none()
        if current is None:
            db.rollback()
            return ActionResult.fail(APPOINTMENT_NOT_FOUND, ErrorKind.not_found)

        db.execute(
            delete(Appointment)
            .where(Appointment.id == appointment_id)
            .execution_options(synchronize_session=False)
        )
        release_slot(db, current.slot_id)
        db.execute(
            update(Request)
            .where(Request.id == current.request_id)
            .values(stato=RequestStatus.waiting)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        logger.info("Appointment %s cancelled, slot %s released", appointment_id, current.slot_id)
        return ActionResult.ok()

    return run_action(
        db,
        _cancel,
        action="cancelAppointment",
        failure_message="Errore durante l'annullamento",
        appointment_id=appointment_id,
    )


def list_appointments(db: Session) -> list[Appointment]:
    stmt = select(Appointment).order_by(Appointment.created_at.desc())
    return list(db.scalars(stmt).unique())


def get_appointment_by_request(db: Session, request_id: str) -> Appointment | None:
    return db.scalars(
        select(Appointment).where(Appointment.request_id == request_id).limit(1)
    ).unique().first()
