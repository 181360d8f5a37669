from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from mydoc.db.session import get_db
from mydoc.deps import get_current_session, get_now, raise_for_result
from mydoc.schemas.appointment import ActionOut
from mydoc.schemas.slot import SlotBlockCreate, SlotBlockOut, SlotCreate, SlotCreatedOut, SlotOut
from mydoc.services import slots as slot_service

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=list[SlotOut])
def list_slots(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    only_available: bool = Query(default=False),
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    return slot_service.list_slots(db, start=start, end=end, only_available=only_available)


@router.get("/range", response_model=list[SlotOut])
def slots_in_range(
    start: datetime,
    end: datetime,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    return slot_service.get_available_slots_in_range(db, start, end)


@router.get("/next", response_model=SlotOut | None)
def next_available_slot(
    from_dt: datetime | None = Query(default=None, alias="from"),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _session: str = Depends(get_current_session),
):
    slot = slot_service.get_next_available_slot(db, from_dt, now=now)
    if slot is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return slot


@router.post("", response_model=SlotCreatedOut, status_code=status.HTTP_201_CREATED)
def create_slot(
    payload: SlotCreate,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    result = raise_for_result(
        slot_service.create_doctor_slot(
            db,
            payload.start_time,
            payload.end_time,
            payload.duration_minutes,
            payload.note,
        )
    )
    return SlotCreatedOut(slot_id=result.data["slot_id"])


@router.post("/block", response_model=SlotBlockOut, status_code=status.HTTP_201_CREATED)
def create_slot_block(
    payload: SlotBlockCreate,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    result = raise_for_result(
        slot_service.create_doctor_slots_block(
            db,
            payload.date,
            payload.start_minute,
            payload.end_minute,
            payload.slot_duration_minutes,
        )
    )
    return SlotBlockOut(created=result.data["created"], skipped=result.data["skipped"])


@router.get("/{slot_id}", response_model=SlotOut)
def get_slot(
    slot_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    slot = slot_service.get_doctor_slot(db, slot_id)
    if slot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=slot_service.SLOT_NOT_FOUND)
    return slot


@router.delete("/{slot_id}", response_model=ActionOut)
def delete_slot(
    slot_id: str,
    db: Session = Depends(get_db),
    _session: str = Depends(get_current_session),
):
    raise_for_result(slot_service.delete_doctor_slot(db, slot_id))
    return ActionOut()
