from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.context import RequestContext, can_access_company, can_modify_booking
from ..core.errors import AuthorizationError, ValidationError
from ..core.permissions import Action, Resource, Role
from ..database import get_db
from ..deps import get_context, require_permission
from ..models.booking import Booking
from ..schemas.booking import (
    BookingCreatedOut,
    BookingCreateIn,
    BookingDetailOut,
    BookingFeedOut,
    BookingListOut,
    BookingUpdateIn,
    CancelIn,
    ChangeStatusIn,
    DocumentOut,
    QrIn,
)
from ..schemas.slot import ActionResultOut
from ..services.bookings import BookingService, booking_row
from ..services.state_machine import BookingStateMachine

router = APIRouter(prefix="/bookings", tags=["bookings"])

can_read = require_permission(Resource.BOOKINGS, Action.READ)
can_create = require_permission(Resource.BOOKINGS, Action.CREATE)
can_update = require_permission(Resource.BOOKINGS, Action.UPDATE)


# -----------------------------------------
# Helpers
# -----------------------------------------
def _scope_company(ctx: RequestContext, requested: int | None) -> int | None:
    """Super admins may pick any company; everyone else is pinned to their own."""
    return requested if ctx.is_super_admin else ctx.company_id


def _check_visible(ctx: RequestContext, booking: Booking) -> None:
    if ctx.user_type == Role.DRIVER:
        ok = ctx.user_id in (booking.driver_id, booking.created_by)
    else:
        ok = can_access_company(ctx, booking.company_id)
    if not ok:
        raise AuthorizationError("booking not accessible")


def _writable(db: Session, ctx: RequestContext, booking_id: int) -> Booking:
    booking = BookingService(db).get_booking(booking_id)
    allowed = ctx.can(Resource.BOOKINGS, Action.UPDATE) or ctx.can(Resource.BOOKINGS, Action.UPDATE_OWN)
    if not allowed or not can_modify_booking(ctx, booking):
        raise AuthorizationError("booking cannot be modified by this user")
    return booking


def _detail(booking: Booking) -> dict:
    return {
        "success": True,
        "booking": booking_row(booking),
        "documents": [DocumentOut.model_validate(d) for d in booking.documents],
    }


# -----------------------------------------
# Reads
# -----------------------------------------
@router.get("", response_model=BookingListOut)
def list_bookings(
    status: Optional[str] = None,
    company_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(can_read),
):
    filters = {
        "status": status,
        "company_id": _scope_company(ctx, company_id),
        "warehouse_id": warehouse_id,
        "driver_id": ctx.user_id if ctx.user_type == Role.DRIVER else driver_id,
        "date_from": date_from,
        "date_to": date_to,
        "search": search,
    }
    return BookingService(db).get_bookings(filters, page, limit)


@router.get("/upcoming", response_model=BookingFeedOut)
def upcoming(
    limit: int = Query(10, ge=1, le=100),
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(can_read),
):
    rows = BookingService(db).get_upcoming_bookings(limit, _scope_company(ctx, company_id))
    return {"success": True, "bookings": rows, "count": len(rows)}


@router.get("/today", response_model=BookingFeedOut)
def today(
    company_id: Optional[int] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(can_read),
):
    rows = BookingService(db).get_todays_bookings(_scope_company(ctx, company_id))
    return {"success": True, "bookings": rows, "count": len(rows)}


@router.get("/qr/{qr_code}", response_model=BookingDetailOut)
def by_qr(qr_code: str, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_read)):
    booking = BookingService(db).get_booking_by_qr(qr_code)
    _check_visible(ctx, booking)
    return _detail(booking)


@router.get("/{booking_id}", response_model=BookingDetailOut)
def get_booking(booking_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_read)):
    booking = BookingService(db).get_booking(booking_id)
    _check_visible(ctx, booking)
    return _detail(booking)


# -----------------------------------------
# Writes
# -----------------------------------------
@router.post("", response_model=BookingCreatedOut, status_code=201)
def create_booking(payload: BookingCreateIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_create)):
    data = payload.model_copy(update={"company_id": _scope_company(ctx, payload.company_id)})
    if ctx.user_type == Role.DRIVER:
        data.driver_id = ctx.user_id
    return BookingService(db).create_booking(data, ctx)


@router.patch("/{booking_id}", response_model=ActionResultOut)
def update_booking(
    booking_id: int, payload: BookingUpdateIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)
):
    _writable(db, ctx, booking_id)
    if ctx.user_type == Role.DRIVER and payload.driver_id not in (None, ctx.user_id):
        raise ValidationError("drivers cannot reassign bookings")
    return BookingService(db).update_booking(booking_id, payload, ctx)


@router.post("/{booking_id}/approve", response_model=ActionResultOut)
def approve(booking_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_update)):
    _writable(db, ctx, booking_id)
    return BookingStateMachine(db).approve(booking_id, ctx)


@router.post("/check-in/qr", response_model=ActionResultOut)
def check_in_by_qr(payload: QrIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_update)):
    if not payload.qr_code:
        raise ValidationError("qr_code is required")
    booking = BookingService(db).get_booking_by_qr(payload.qr_code)
    _writable(db, ctx, booking.id)
    return BookingStateMachine(db).check_in(booking.id, ctx, payload.qr_code)


@router.post("/{booking_id}/check-in", response_model=ActionResultOut)
def check_in(booking_id: int, payload: QrIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_update)):
    _writable(db, ctx, booking_id)
    return BookingStateMachine(db).check_in(booking_id, ctx, payload.qr_code)


@router.post("/{booking_id}/check-out", response_model=ActionResultOut)
def check_out(booking_id: int, payload: QrIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(can_update)):
    _writable(db, ctx, booking_id)
    return BookingStateMachine(db).check_out(booking_id, ctx, payload.qr_code)


@router.post("/{booking_id}/cancel", response_model=ActionResultOut)
def cancel(booking_id: int, payload: CancelIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)):
    _writable(db, ctx, booking_id)
    return BookingStateMachine(db).cancel(booking_id, ctx, payload.reason)


@router.post("/{booking_id}/status", response_model=ActionResultOut)
def change_status(
    booking_id: int, payload: ChangeStatusIn, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)
):
    _writable(db, ctx, booking_id)
    return BookingStateMachine(db).change_status(booking_id, payload.status, ctx, payload.note)


@router.delete("/{booking_id}", response_model=ActionResultOut)
def delete_booking(booking_id: int, db: Session = Depends(get_db), ctx: RequestContext = Depends(get_context)):
    """Bookings are never removed; DELETE cancels."""
    _writable(db, ctx, booking_id)
    return BookingStateMachine(db).cancel(booking_id, ctx, "Deleted by user")
