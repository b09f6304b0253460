"""
Booking store.

Occupancy of a slot is the number of its bookings that are not cancelled.
It never exceeds the slot capacity: every write that adds a booking to a slot
(creation, slot change, reschedule) locks the slot row first, then counts,
compares and writes inside the same transaction.
"""
import hashlib
import logging
import math
import secrets
from datetime import date, datetime

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from ..config import settings
from ..core.context import RequestContext
from ..core.errors import NotFoundError, SlotUnavailableError, ValidationError
from ..database import atomic
from ..models.booking import Booking, BookingStatus
from ..models.company import Company
from ..models.slot import TimeSlot
from ..models.user import User
from ..schemas.booking import BookingCreateIn, BookingUpdateIn
from . import audit
from .slots import SlotService, parse_slot_type

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("time_slot_id", "driver_id", "vehicle_id", "booking_type", "reference_number", "notes")
MAX_PAGE_SIZE = 100
BOOKING_NUMBER_ATTEMPTS = 5


# -----------------------------------------
# Helpers
# -----------------------------------------
def generate_booking_number(today: date | None = None) -> str:
    today = today or date.today()
    return f"{settings.BOOKING_NUMBER_PREFIX}{today:%Y%m%d}{secrets.randbelow(9999) + 1:04d}"


def generate_qr_code(booking_number: str) -> str:
    raw = f"{booking_number}{datetime.now().timestamp()}{secrets.token_hex(8)}"
    return hashlib.sha256(raw.encode()).hexdigest()


def booking_row(b: Booking) -> dict:
    """Flat dict of a booking with its slot and display names."""
    slot = b.slot
    return {
        "id": b.id,
        "booking_number": b.booking_number,
        "qr_code": b.qr_code,
        "time_slot_id": b.time_slot_id,
        "company_id": b.company_id,
        "driver_id": b.driver_id,
        "vehicle_id": b.vehicle_id,
        "booking_type": b.booking_type.value,
        "reference_number": b.reference_number,
        "notes": b.notes,
        "status": b.status.value,
        "check_in_time": b.check_in_time,
        "check_out_time": b.check_out_time,
        "approved_by": b.approved_by,
        "approved_at": b.approved_at,
        "cancelled_at": b.cancelled_at,
        "cancellation_reason": b.cancellation_reason,
        "created_by": b.created_by,
        "created_at": b.created_at,
        "slot_date": slot.slot_date if slot else None,
        "time_start": slot.time_start if slot else None,
        "time_end": slot.time_end if slot else None,
        "warehouse_id": slot.warehouse_id if slot else None,
        "warehouse_name": slot.warehouse.name if slot and slot.warehouse else None,
        "zone_name": slot.zone.name if slot and slot.zone else None,
        "driver_name": b.driver.full_name if b.driver else None,
        "company_name": b.company.name if b.company else None,
    }


class BookingService:
    def __init__(self, db: Session):
        self.db = db
        self.slots = SlotService(db)

    # ---------------------------------------------------------------------
    # capacity
    # ---------------------------------------------------------------------
    def reserve_capacity(self, slot_id: int) -> TimeSlot:
        """
        Lock the slot row and make sure one more booking fits.
        Must run inside the transaction that writes the booking.
        """
        slot = self.slots.lock_slot(slot_id)
        if not slot:
            raise SlotUnavailableError(f"slot {slot_id} does not exist")
        if slot.is_blocked:
            raise SlotUnavailableError(f"slot {slot_id} is blocked")
        if self.slots.occupancy(slot.id) >= slot.capacity:
            raise SlotUnavailableError(f"slot {slot_id} is full")
        return slot

    def _unique_booking_number(self) -> str:
        while True:
            number = generate_booking_number()
            if not self.db.query(Booking.id).filter(Booking.booking_number == number).first():
                return number

    def _unique_qr_code(self, booking_number: str) -> str:
        while True:
            code = generate_qr_code(booking_number)
            if not self.db.query(Booking.id).filter(Booking.qr_code == code).first():
                return code

    # ---------------------------------------------------------------------
    # create / update
    # ---------------------------------------------------------------------
    def create_booking(self, data: BookingCreateIn, ctx: RequestContext) -> dict:
        errors: list[str] = []
        if not data.time_slot_id:
            errors.append("time_slot_id is required")
        if not data.company_id:
            errors.append("company_id is required")
        booking_type = parse_slot_type(data.booking_type, errors, "booking_type")
        if errors:
            raise ValidationError(*errors)

        company = self.db.get(Company, data.company_id)
        if not company:
            raise ValidationError(f"company {data.company_id} does not exist")
        status = BookingStatus.PENDING if company.requires_approval else BookingStatus.CONFIRMED

        with atomic(self.db):
            self.reserve_capacity(data.time_slot_id)
            for attempt in range(1, BOOKING_NUMBER_ATTEMPTS + 1):
                number = self._unique_booking_number()
                booking = Booking(
                    booking_number=number,
                    qr_code=self._unique_qr_code(number),
                    time_slot_id=data.time_slot_id,
                    company_id=data.company_id,
                    driver_id=data.driver_id,
                    vehicle_id=data.vehicle_id,
                    booking_type=booking_type,
                    reference_number=data.reference_number,
                    notes=data.notes,
                    status=status,
                    created_by=ctx.user_id,
                )
                # another slot's writer may have drawn the same number since the check
                try:
                    with self.db.begin_nested():
                        self.db.add(booking)
                        self.db.flush()
                    break
                except IntegrityError:
                    if attempt == BOOKING_NUMBER_ATTEMPTS:
                        raise
                    logger.warning(f"Booking number {number} already taken, drawing another")

        logger.info(f"Booking {booking.booking_number} created on slot {booking.time_slot_id} ({status.value})")
        audit.record(self.db, ctx, "booking_created", "booking", booking.id, new_values=audit.snapshot(booking))
        return {
            "success": True,
            "booking_id": booking.id,
            "booking_number": booking.booking_number,
            "qr_code": booking.qr_code,
            "requires_approval": company.requires_approval,
            "message": "Booking awaiting approval" if company.requires_approval else "Booking confirmed",
        }

    def update_booking(self, booking_id: int, data: BookingUpdateIn, ctx: RequestContext) -> dict:
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if k in UPDATABLE_FIELDS and v is not None}
        if not fields:
            raise ValidationError("no fields to update")
        if "booking_type" in fields:
            errors: list[str] = []
            fields["booking_type"] = parse_slot_type(fields["booking_type"], errors, "booking_type")
            if errors:
                raise ValidationError(*errors)

        with atomic(self.db):
            booking = (
                self.db.query(Booking)
                .filter(Booking.id == booking_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not booking:
                raise NotFoundError(f"booking {booking_id} not found")
            old = audit.snapshot(booking)
            if "time_slot_id" in fields and fields["time_slot_id"] != booking.time_slot_id:
                self.reserve_capacity(fields["time_slot_id"])
            for key, value in fields.items():
                setattr(booking, key, value)

        audit.record(self.db, ctx, "booking_updated", "booking", booking.id, old, audit.snapshot(booking))
        return {"success": True, "message": "Booking updated"}

    # ---------------------------------------------------------------------
    # reads
    # ---------------------------------------------------------------------
    def get_booking(self, booking_id: int) -> Booking:
        booking = self.db.get(Booking, booking_id)
        if not booking:
            raise NotFoundError(f"booking {booking_id} not found")
        return booking

    def get_booking_by_qr(self, qr_code: str) -> Booking:
        booking = self.db.query(Booking).filter(Booking.qr_code == qr_code).first()
        if not booking:
            raise NotFoundError("no booking for this QR code")
        return booking

    def get_bookings(self, filters: dict | None = None, page: int = 1, limit: int = 20) -> dict:
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        driver = aliased(User)
        q = (
            self.db.query(Booking)
            .join(TimeSlot, TimeSlot.id == Booking.time_slot_id)
            .outerjoin(Company, Company.id == Booking.company_id)
            .outerjoin(driver, driver.id == Booking.driver_id)
        )
        if "status" in filters:
            try:
                q = q.filter(Booking.status == BookingStatus(filters["status"]))
            except ValueError:
                raise ValidationError(f"invalid status '{filters['status']}'")
        if "company_id" in filters:
            q = q.filter(Booking.company_id == filters["company_id"])
        if "warehouse_id" in filters:
            q = q.filter(TimeSlot.warehouse_id == filters["warehouse_id"])
        if "driver_id" in filters:
            q = q.filter(Booking.driver_id == filters["driver_id"])
        if "date_from" in filters:
            q = q.filter(TimeSlot.slot_date >= filters["date_from"])
        if "date_to" in filters:
            q = q.filter(TimeSlot.slot_date <= filters["date_to"])
        if "search" in filters:
            like = f"%{filters['search']}%"
            q = q.filter(
                or_(
                    Booking.booking_number.ilike(like),
                    Booking.reference_number.ilike(like),
                    driver.full_name.ilike(like),
                    Company.name.ilike(like),
                )
            )

        total = q.with_entities(func.count(Booking.id)).scalar() or 0
        rows = (
            q.order_by(TimeSlot.slot_date.desc(), TimeSlot.time_start.desc(), Booking.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "success": True,
            "bookings": [booking_row(b) for b in rows],
            "pagination": {"page": page, "pages": math.ceil(total / limit), "limit": limit, "total": total},
            "filters": filters,
        }

    def get_upcoming_bookings(self, limit: int = 10, company_id: int | None = None) -> list[dict]:
        q = (
            self.db.query(Booking)
            .join(TimeSlot, TimeSlot.id == Booking.time_slot_id)
            .filter(
                Booking.status.in_([BookingStatus.CONFIRMED, BookingStatus.APPROVED]),
                TimeSlot.slot_date >= date.today(),
            )
        )
        if company_id:
            q = q.filter(Booking.company_id == company_id)
        rows = q.order_by(TimeSlot.slot_date.asc(), TimeSlot.time_start.asc()).limit(limit).all()
        return [booking_row(b) for b in rows]

    def get_todays_bookings(self, company_id: int | None = None) -> list[dict]:
        q = (
            self.db.query(Booking)
            .join(TimeSlot, TimeSlot.id == Booking.time_slot_id)
            .filter(TimeSlot.slot_date == date.today(), Booking.status != BookingStatus.CANCELLED)
        )
        if company_id:
            q = q.filter(Booking.company_id == company_id)
        return [booking_row(b) for b in q.order_by(TimeSlot.time_start.asc()).all()]

