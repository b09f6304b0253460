"""
Automatic rescheduling of delayed bookings.

A booking marked ``delayed`` whose slot has already ended is moved to the
earliest compatible slot of the same warehouse that starts after now. Each
move is its own transaction and goes through the same locked capacity check
as a manual slot change. Bookings without a free slot stay where they are.
"""
import logging
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime

from sqlalchemy import and_, or_, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.context import RequestContext
from ..core.errors import DockbookError, SlotUnavailableError
from ..database import atomic, is_postgres
from ..models.booking import Booking, BookingStatus
from ..models.slot import TimeSlot
from . import audit
from .bookings import BookingService
from .notifications import EmailNotifier
from .state_machine import append_note

logger = logging.getLogger(__name__)

# arbitrary constant shared by every process of the deployment
ADVISORY_LOCK_KEY = 7_310_542
_run_lock = threading.Lock()


def _delayed_and_past(db: Session, now: datetime) -> list[Booking]:
    return (
        db.query(Booking)
        .join(TimeSlot, TimeSlot.id == Booking.time_slot_id)
        .filter(
            Booking.status == BookingStatus.DELAYED,
            or_(
                TimeSlot.slot_date < now.date(),
                and_(TimeSlot.slot_date == now.date(), TimeSlot.time_end < now.time().replace(microsecond=0)),
            ),
        )
        .order_by(TimeSlot.slot_date.asc(), TimeSlot.time_start.asc(), Booking.id.asc())
        .all()
    )


@contextmanager
def _advisory_lock(bind):
    """
    Session-level PostgreSQL lock, taken and released on one connection that
    stays checked out for the whole run. Yields whether the lock was acquired.
    """
    with bind.connect() as conn:
        got = bool(conn.execute(text("SELECT pg_try_advisory_lock(:k)"), {"k": ADVISORY_LOCK_KEY}).scalar())
        conn.commit()
        try:
            yield got
        finally:
            if got:
                conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": ADVISORY_LOCK_KEY})
                conn.commit()


def _db_guard(db: Session):
    if is_postgres(db):
        return _advisory_lock(db.get_bind())
    return nullcontext(True)


def _move(db: Session, service: BookingService, booking_id: int, target_id: int, now: datetime) -> Booking | None:
    """Move one booking under lock; None when it is no longer delayed."""
    with atomic(db):
        booking = (
            db.query(Booking)
            .filter(Booking.id == booking_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not booking or booking.status != BookingStatus.DELAYED:
            return None
        slot = service.reserve_capacity(target_id)
        if not slot.accepts(booking.booking_type):
            raise SlotUnavailableError(f"slot {target_id} does not take {booking.booking_type.value} bookings")
        booking.time_slot_id = target_id
        booking.status = BookingStatus.RESCHEDULED
        booking.notes = append_note(booking.notes, f"automatically rescheduled to slot {target_id}", now)
    return booking


def auto_reschedule_delayed(db: Session, now: datetime | None = None, notifier=None) -> dict:
    """
    Returns ``{success, rescheduled_count, failed_booking_ids, skipped, message}``.
    A call made while another run is in progress returns ``skipped=True``.
    """
    if not _run_lock.acquire(blocking=False):
        logger.info("Reschedule run already in progress, skipping")
        return {
            "success": True, "rescheduled_count": 0, "failed_booking_ids": [], "skipped": True,
            "message": "Another run is in progress",
        }
    try:
        with _db_guard(db) as got:
            if not got:
                logger.info("Reschedule run holds the advisory lock elsewhere, skipping")
                return {
                    "success": True, "rescheduled_count": 0, "failed_booking_ids": [], "skipped": True,
                    "message": "Another run is in progress",
                }
            return _run(db, now or datetime.now(), notifier or EmailNotifier())
    finally:
        _run_lock.release()


def _run(db: Session, now: datetime, notifier) -> dict:
    ctx = RequestContext.system()
    service = BookingService(db)
    delayed = _delayed_and_past(db, now)
    db.commit()
    logger.info(f"Reschedule run: {len(delayed)} delayed booking(s) past their slot")

    moved, failed = 0, []
    for b in delayed:
        old_slot = b.slot
        target = service.slots.find_next_available_slot(
            old_slot.warehouse_id, b.booking_type, old_slot.slot_date, not_before=now, exclude_slot_id=old_slot.id
        )
        if not target:
            db.commit()
            logger.info(f"No free slot for booking {b.booking_number}, left as delayed")
            continue

        try:
            booking = _move(db, service, b.id, target.id, now)
        except (DockbookError, IntegrityError) as e:
            failed.append(b.id)
            logger.warning(f"Reschedule of booking {b.booking_number} to slot {target.id} failed: {e}")
            continue
        if booking is None:
            continue

        moved += 1
        logger.info(f"Booking {booking.booking_number} moved from slot {old_slot.id} to slot {target.id}")
        audit.record(
            db, ctx, "booking_rescheduled", "booking", booking.id,
            old_values={"time_slot_id": old_slot.id, "status": BookingStatus.DELAYED.value},
            new_values={"time_slot_id": target.id, "status": booking.status.value},
        )
        notifier.booking_rescheduled(db, booking, old_slot, target)

    return {
        "success": True,
        "rescheduled_count": moved,
        "failed_booking_ids": failed,
        "skipped": False,
        "message": f"Rescheduled {moved} booking(s)",
    }
