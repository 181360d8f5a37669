from __future__ import annotations

import logging

from sqlalchemy import delete, exists, select
from sqlalchemy.orm import Session

from mydoc.models.appointment import Appointment
from mydoc.models.patient import Patient
from mydoc.models.request import Request
from mydoc.services.results import ActionResult, ErrorKind, run_action

logger = logging.getLogger("mydoc.patients")

PATIENT_FIELDS_REQUIRED = "Nome, cognome e telefono sono obbligatori"
PHONE_DUPLICATE = "Esiste già un paziente con questo numero di telefono"
PATIENT_NOT_FOUND = "Paziente non trovato"
PATIENT_HAS_APPOINTMENTS = "Impossibile eliminare: il paziente ha appuntamenti attivi"


def _clean(value: str | None) -> str | None:
    return (value or "").strip() or None


def search_patients(db: Session, q: str | None = None) -> list[Patient]:
    patients = list(db.scalars(select(Patient).order_by(Patient.cognome, Patient.nome)))
    if not q or not q.strip():
        return patients
    words = q.lower().split()

    def _searchable(patient: Patient) -> str:
        return " ".join(
            [
                patient.nome.lower(),
                patient.cognome.lower(),
                patient.telefono.lower(),
                f"{patient.cognome} {patient.nome}".lower(),
                f"{patient.nome} {patient.cognome}".lower(),
            ]
        )

    return [patient for patient in patients if all(word in _searchable(patient) for word in words)]


def get_patient(db: Session, patient_id: str) -> Patient | None:
    return db.get(Patient, patient_id)


def phone_in_use(db: Session, telefono: str, exclude_id: str | None = None) -> bool:
    stmt = select(exists().where(Patient.telefono == telefono.strip()))
    if exclude_id:
        stmt = select(exists().where(Patient.telefono == telefono.strip(), Patient.id != exclude_id))
    return bool(db.scalar(stmt))


def create_patient(
    db: Session,
    *,
    nome: str,
    cognome: str,
    telefono: str,
    email: str | None = None,
    note: str | None = None,
) -> ActionResult:
    nome, cognome, telefono = _clean(nome), _clean(cognome), _clean(telefono)
    if not nome or not cognome or not telefono:
        return ActionResult.fail(PATIENT_FIELDS_REQUIRED)

    def _create() -> ActionResult:
        if phone_in_use(db, telefono):
            db.rollback()
            return ActionResult.fail(PHONE_DUPLICATE, ErrorKind.conflict)
        patient = Patient(nome=nome, cognome=cognome, telefono=telefono, email=_clean(email), note=_clean(note))
        db.add(patient)
        db.flush()
        patient_id = patient.id
        db.commit()
        return ActionResult.ok(patient_id=patient_id)

    return run_action(
        db,
        _create,
        action="createPatient",
        failure_message="Errore durante il salvataggio del paziente",
        conflict_message=PHONE_DUPLICATE,
    )


def update_patient(
    db: Session,
    patient_id: str,
    *,
    nome: str,
    cognome: str,
    telefono: str,
    email: str | None = None,
    note: str | None = None,
) -> ActionResult:
    nome, cognome, telefono = _clean(nome), _clean(cognome), _clean(telefono)
    if not nome or not cognome or not telefono:
        return ActionResult.fail(PATIENT_FIELDS_REQUIRED)

    def _update() -> ActionResult:
        patient = db.get(Patient, patient_id, with_for_update=True)
        if patient is None:
            db.rollback()
            return ActionResult.fail(PATIENT_NOT_FOUND, ErrorKind.not_found)
        if phone_in_use(db, telefono, exclude_id=patient_id):
            db.rollback()
            return ActionResult.fail(PHONE_DUPLICATE, ErrorKind.conflict)
        patient.nome = nome
        patient.cognome = cognome
        patient.telefono = telefono
        patient.email = _clean(email)
        patient.note = _clean(note)
        db.commit()
        return ActionResult.ok(patient_id=patient_id)

    return run_action(
        db,
        _update,
        action="updatePatient",
        failure_message="Errore durante il salvataggio del paziente",
        conflict_message=PHONE_DUPLICATE,
        patient_id=patient_id,
    )


def delete_patient(db: Session, patient_id: str) -> ActionResult:
    """Refuse while any request of the patient is booked; otherwise drop the patient's requests too."""

    def _delete() -> ActionResult:
        patient = db.get(Patient, patient_id, with_for_update=True)
        if patient is None:
            db.rollback()
            return ActionResult.fail(PATIENT_NOT_FOUND, ErrorKind.not_found)
        booked = db.scalar(
            select(
                exists().where(
                    Appointment.request_id == Request.id,
                    Request.patient_id == patient_id,
                )
            )
        )
        if booked:
            db.rollback()
            return ActionResult.fail(PATIENT_HAS_APPOINTMENTS, ErrorKind.conflict)
        removed = db.execute(
            delete(Request)
            .where(
                Request.patient_id == patient_id,
                ~exists().where(Appointment.request_id == Request.id).correlate(Request),
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if db.scalar(select(exists().where(Request.patient_id == patient_id))):
            db.rollback()
            return ActionResult.fail(PATIENT_HAS_APPOINTMENTS, ErrorKind.conflict)
        db.execute(
            delete(Patient)
            .where(Patient.id == patient_id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        logger.info("Patient %s deleted with %s requests", patient_id, removed)
        return ActionResult.ok(requests_deleted=removed)

    return run_action(
        db,
        _delete,
        action="deletePatient",
        failure_message="Errore durante l'eliminazione del paziente",
        patient_id=patient_id,
    )
