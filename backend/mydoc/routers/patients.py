from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from mydoc.db.session import get_db
from mydoc.deps import get_current_session, raise_for_result
from mydoc.schemas.patient import PatientCreate, PatientDeleteOut, PatientOut, PatientUpdate
from mydoc.schemas.request import RequestOut
from mydoc.services import patients as patient_service
from mydoc.services.requests import list_patient_requests

router = APIRouter(prefix="/patients", tags=["patients"])


def _get_or_404(db: Session, patient_id: str):
    patient = patient_service.get_patient(db, patient_id)
    if patient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=patient_service.PATIENT_NOT_FOUND)
    return patient


@router.get("", response_model=list[PatientOut])
def list_patients(
    q: str | None = Query(default=None),
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    return patient_service.search_patients(db, q)


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    result = raise_for_result(
        patient_service.create_patient(
            db,
            nome=payload.nome,
            cognome=payload.cognome,
            telefono=payload.telefono,
            email=str(payload.email) if payload.email else None,
            note=payload.note,
        )
    )
    return _get_or_404(db, result.data["patient_id"])


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    return _get_or_404(db, patient_id)


@router.patch("/{patient_id}", response_model=PatientOut)
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    raise_for_result(
        patient_service.update_patient(
            db,
            patient_id,
            nome=payload.nome,
            cognome=payload.cognome,
            telefono=payload.telefono,
            email=str(payload.email) if payload.email else None,
            note=payload.note,
        )
    )
    return _get_or_404(db, patient_id)


@router.delete("/{patient_id}", response_model=PatientDeleteOut)
def delete_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    result = raise_for_result(patient_service.delete_patient(db, patient_id))
    return PatientDeleteOut(requests_deleted=result.data.get("requests_deleted", 0))


@router.get("/{patient_id}/requests", response_model=list[RequestOut])
def patient_requests(
    patient_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    _get_or_404(db, patient_id)
    return list_patient_requests(db, patient_id)
