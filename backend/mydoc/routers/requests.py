from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from mydoc.db.session import get_db
from mydoc.deps import get_current_session, get_now, raise_for_result
from mydoc.models.request import RequestStatus
from mydoc.schemas.appointment import ActionOut, BookingOut, ScheduleRequestIn
from mydoc.schemas.request import RequestCreate, RequestNoteUpdate, RequestOut, RequestReject
from mydoc.services import booking
from mydoc.services import requests as request_service

router = APIRouter(prefix="/requests", tags=["requests"])


def _get_or_404(db: Session, request_id: str):
    request = request_service.get_request(db, request_id)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=booking.REQUEST_NOT_FOUND)
    return request


@router.get("", response_model=list[RequestOut])
def list_requests(
    stato: RequestStatus | None = Query(default=None),
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    return request_service.list_requests(db, stato)


@router.post("", response_model=RequestOut, status_code=status.HTTP_201_CREATED)
def create_request(
    payload: RequestCreate,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    result = raise_for_result(
        request_service.create_request(
            db,
            patient_id=payload.patient_id,
            motivo=payload.motivo,
            urgenza=payload.urgenza,
            desired_date=payload.desired_date,
            note=payload.note,
        )
    )
    return _get_or_404(db, result.data["request_id"])


@router.get("/{request_id}", response_model=RequestOut)
def get_request(
    request_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    return _get_or_404(db, request_id)


@router.post("/{request_id}/reject", response_model=RequestOut)
def reject_request(
    request_id: str,
    payload: RequestReject,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    raise_for_result(request_service.reject_request(db, request_id, payload.note))
    return _get_or_404(db, request_id)


@router.patch("/{request_id}/note", response_model=RequestOut)
def update_request_note(
    request_id: str,
    payload: RequestNoteUpdate,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    raise_for_result(request_service.update_request_note(db, request_id, payload.note))
    return _get_or_404(db, request_id)


@router.delete("/{request_id}", response_model=ActionOut)
def delete_request(
    request_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    raise_for_result(request_service.delete_request(db, request_id))
    return ActionOut()


@router.post("/{request_id}/schedule", response_model=BookingOut)
def schedule_request(
    request_id: str,
    payload: ScheduleRequestIn,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    result = raise_for_result(booking.schedule_request(db, request_id, payload.slot_id))
    return BookingOut(appointment_id=result.appointment_id)


@router.post("/{request_id}/schedule-next", response_model=BookingOut)
def schedule_request_at_next_available(
    request_id: str,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _session: str = Depends(get_current_session),
):
    result = raise_for_result(booking.schedule_request_at_next_available(db, request_id, now=now))
    return BookingOut(appointment_id=result.appointment_id)
