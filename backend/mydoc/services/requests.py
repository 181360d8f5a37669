from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from mydoc.core.clock import as_utc
from mydoc.models.appointment import Appointment
from mydoc.models.patient import Patient
from mydoc.models.request import URGENCY_ORDER, Request, RequestStatus, Urgency
from mydoc.services.booking import REQUEST_NOT_FOUND, REQUEST_NOT_WAITING, release_slot
from mydoc.services.patients import PATIENT_NOT_FOUND
from mydoc.services.results import ActionResult, ErrorKind, run_action

logger = logging.getLogger("mydoc.requests")

REQUEST_FIELDS_REQUIRED = "Tutti i campi obbligatori devono essere compilati"


def list_requests(db: Session, stato: RequestStatus | str | None = None) -> list[Request]:
    stmt = select(Request).order_by(Request.created_at.desc())
    if stato and stato != "all":
        stmt = stmt.where(Request.stato == RequestStatus(stato))
    results = list(db.scalars(stmt).unique())
    # Stable sort keeps newest-first inside each urgency band.
    results.sort(key=lambda item: URGENCY_ORDER.get(item.urgenza, 2))
    return results


def list_patient_requests(db: Session, patient_id: str) -> list[Request]:
    stmt = (
        select(Request)
        .where(Request.patient_id == patient_id)
        .order_by(Request.created_at.desc())
    )
    return list(db.scalars(stmt).unique())


def get_request(db: Session, request_id: str) -> Request | None:
    return db.get(Request, request_id)


def create_request(
    db: Session,
    *,
    patient_id: str,
    motivo: str,
    urgenza: Urgency | str,
    desired_date: datetime | None = None,
    note: str | None = None,
) -> ActionResult:
    motivo = (motivo or "").strip()
    if not patient_id or not motivo or not urgenza:
        return ActionResult.fail(REQUEST_FIELDS_REQUIRED)

    def _create() -> ActionResult:
        if db.get(Patient, patient_id) is None:
            db.rollback()
            return ActionResult.fail(PATIENT_NOT_FOUND, ErrorKind.not_found)
        request = Request(
            patient_id=patient_id,
            motivo=motivo,
            urgenza=Urgency(urgenza),
            stato=RequestStatus.waiting,
            desired_date=as_utc(desired_date) if desired_date else None,
            note=(note or "").strip() or None,
        )
        db.add(request)
        db.flush()
        request_id = request.id
        db.commit()
        logger.info("Request %s added to the waiting list for patient %s", request_id, patient_id)
        return ActionResult.ok(request_id=request_id)

    return run_action(
        db,
        _create,
        action="createRequest",
        failure_message="Errore durante il salvataggio della richiesta",
        patient_id=patient_id,
    )


def reject_request(db: Session, request_id: str, note: str | None = None) -> ActionResult:
    def _reject() -> ActionResult:
        result = db.execute(
            update(Request)
            .where(Request.id == request_id, Request.stato == RequestStatus.waiting)
            .values(stato=RequestStatus.rejected, note=(note or "").strip() or None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.commit()
            return ActionResult.ok()
        db.rollback()
        try:
            found = db.scalar(select(Request.id).where(Request.id == request_id))
        finally:
            db.rollback()
        if found is None:
            return ActionResult.fail(REQUEST_NOT_FOUND, ErrorKind.not_found)
        return ActionResult.fail(REQUEST_NOT_WAITING, ErrorKind.conflict)

    return run_action(
        db,
        _reject,
        action="rejectRequest",
        failure_message="Errore durante l'aggiornamento della richiesta",
        request_id=request_id,
    )


def update_request_note(db: Session, request_id: str, note: str | None) -> ActionResult:
    def _update() -> ActionResult:
        result = db.execute(
            update(Request)
            .where(Request.id == request_id)
            .values(note=(note or "").strip() or None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            return ActionResult.fail(REQUEST_NOT_FOUND, ErrorKind.not_found)
        db.commit()
        return ActionResult.ok()

    return run_action(
        db,
        _update,
        action="updateRequestNote",
        failure_message="Errore durante l'aggiornamento della richiesta",
        request_id=request_id,
    )


def delete_request(db: Session, request_id: str) -> ActionResult:
    """Delete a request in any state, releasing its slot if it was booked."""

    def _delete() -> ActionResult:
        booked = db.execute(
            select(Appointment.id, Appointment.slot_id)
            .where(Appointment.request_id == request_id)
            .with_for_update()
        ).one_or_none()
        if booked is not None:
            db.execute(
                delete(Appointment)
                .where(Appointment.id == booked.id)
                .execution_options(synchronize_session=False)
            )
            release_slot(db, booked.slot_id)
        result = db.execute(
            delete(Request)
            .where(Request.id == request_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            return ActionResult.fail(REQUEST_NOT_FOUND, ErrorKind.not_found)
        db.commit()
        logger.info("Request %s deleted", request_id)
        return ActionResult.ok(released_slot_id=booked.slot_id if booked is not None else None)

    return run_action(
        db,
        _delete,
        action="deleteRequest",
        failure_message="Errore durante l'eliminazione della richiesta",
        request_id=request_id,
    )
