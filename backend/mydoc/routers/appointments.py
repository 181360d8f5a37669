from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from mydoc.db.session import get_db
from mydoc.deps import get_current_session, raise_for_result
from mydoc.schemas.appointment import ActionOut, AppointmentOut, RescheduleIn
from mydoc.services import booking

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=list[AppointmentOut])
def list_appointments(
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    return booking.list_appointments(db)


@router.get("/by-request/{request_id}", response_model=AppointmentOut)
def appointment_for_request(
    request_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    appointment = booking.get_appointment_by_request(db, request_id)
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=booking.APPOINTMENT_NOT_FOUND)
    return appointment


@router.post("/{appointment_id}/reschedule", response_model=ActionOut)
def reschedule_appointment(
    appointment_id: str,
    payload: RescheduleIn,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    raise_for_result(booking.reschedule_appointment(db, appointment_id, payload.slot_id))
    return ActionOut()


@router.post("/{appointment_id}/cancel", response_model=ActionOut)
def cancel_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    raise_for_result(booking.cancel_appointment(db, appointment_id))
    return ActionOut()
