from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.context import RequestContext
from ..core.permissions import Action, Resource
from ..database import get_db
from ..deps import require_permission
from ..schemas.slot import (
    ActionResultOut,
    BlockIn,
    RescheduleResultOut,
    SlotAvailabilityOut,
    SlotCreatedOut,
    SlotIn,
    SlotOut,
    SlotUpdateIn,
)
from ..services.rescheduler import auto_reschedule_delayed
from ..services.slots import SlotService

router = APIRouter(prefix="/slots", tags=["slots"])

can_read = require_permission(Resource.SLOTS, Action.READ)
can_create = require_permission(Resource.SLOTS, Action.CREATE)
can_update = require_permission(Resource.SLOTS, Action.UPDATE)
can_delete = require_permission(Resource.SLOTS, Action.DELETE)


@router.get("", response_model=list[SlotAvailabilityOut])
def list_slots(
    date_from: date,
    date_to: date,
    warehouse_id: Optional[int] = None,
    slot_type: Optional[str] = None,
    is_blocked: Optional[bool] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(can_read),
):
    return SlotService(db).list_slots(date_from, date_to, warehouse_id, slot_type, is_blocked)


@router.get("/available", response_model=list[SlotAvailabilityOut])
def available_slots(
    warehouse_id: int,
    slot_date: date = Query(..., alias="date"),
    slot_type: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(can_read),
):
    return SlotService(db).get_available_slots(warehouse_id, slot_date, slot_type)


@router.post("/reschedule-delayed", response_model=RescheduleResultOut)
def reschedule_delayed(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_permission(Resource.BOOKINGS, Action.OVERRIDE_STATUS)),
):
    """Manual run of the periodic rescheduling job."""
    return auto_reschedule_delayed(db)


@router.get("/{slot_id}", response_model=SlotOut)
def get_slot(slot_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_read)):
    return SlotService(db).get_slot(slot_id)


@router.post("", response_model=SlotCreatedOut, status_code=201)
def create_slot(payload: SlotIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_create)):
    return SlotService(db).create_slot(payload, ctx)


@router.patch("/{slot_id}", response_model=ActionResultOut)
def update_slot(
    slot_id: int, payload: SlotUpdateIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_update)
):
    return SlotService(db).update_slot(slot_id, payload, ctx)


@router.delete("/{slot_id}", response_model=ActionResultOut)
def delete_slot(slot_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_delete)):
    return SlotService(db).delete_slot(slot_id, ctx)


@router.post("/{slot_id}/block", response_model=ActionResultOut)
def block_slot(
    slot_id: int, payload: BlockIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_update)
):
    return SlotService(db).block_slot(slot_id, payload.reason, ctx)


@router.post("/{slot_id}/unblock", response_model=ActionResultOut)
def unblock_slot(slot_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_update)):
    return SlotService(db).unblock_slot(slot_id, ctx)
