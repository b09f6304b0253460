"""
TimeSlot store: slot CRUD, blocking, availability listings.

Every write that can break the no-overlap invariant runs the conflict check
and the insert/update in one transaction holding a row lock on the
warehouse, so two concurrent writers for the same warehouse are serialized.
"""
import logging
from datetime import date, datetime

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from ..config import settings
from ..core.context import RequestContext
from ..core.errors import ConflictError, HasDependentsError, NotFoundError, ValidationError
from ..database import atomic
from ..models.booking import Booking, BookingStatus
from ..models.slot import RecurringPattern, SlotType, TimeSlot
from ..models.warehouse import Warehouse, WarehouseZone
from ..schemas.slot import SlotIn, SlotUpdateIn
from . import audit
from .conflicts import describe, find_conflicts
from .recurrence import occurrence_dates

logger = logging.getLogger(__name__)


# -----------------------------------------
# Helpers
# -----------------------------------------
def parse_slot_type(value, errors: list[str], field: str = "slot_type") -> SlotType | None:
    try:
        return SlotType(value)
    except ValueError:
        errors.append(f"invalid {field} '{value}' (allowed: {', '.join(t.value for t in SlotType)})")
        return None


def _occupancy_subquery(db: Session):
    """booking count per slot, cancelled bookings excluded"""
    return (
        db.query(Booking.time_slot_id.label("slot_id"), func.count(Booking.id).label("booked"))
        .filter(Booking.status != BookingStatus.CANCELLED)
        .group_by(Booking.time_slot_id)
        .subquery()
    )


def _slot_status(slot: TimeSlot, booked: int) -> str:
    if slot.is_blocked:
        return "blocked"
    if slot.capacity - booked <= 0:
        return "full"
    if booked > 0:
        return "partial"
    return "available"


def slot_row(slot: TimeSlot, booked: int) -> dict:
    return {
        "id": slot.id,
        "warehouse_id": slot.warehouse_id,
        "warehouse_name": slot.warehouse.name if slot.warehouse else None,
        "zone_id": slot.zone_id,
        "zone_name": slot.zone.name if slot.zone else None,
        "slot_date": slot.slot_date,
        "time_start": slot.time_start,
        "time_end": slot.time_end,
        "slot_type": slot.slot_type,
        "capacity": slot.capacity,
        "is_blocked": slot.is_blocked,
        "block_reason": slot.block_reason,
        "recurring_pattern": slot.recurring_pattern,
        "recurring_until": slot.recurring_until,
        "parent_slot_id": slot.parent_slot_id,
        "created_at": slot.created_at,
        "booking_count": booked,
        "available_capacity": max(slot.capacity - booked, 0),
        "status": _slot_status(slot, booked),
        "utilization": round(booked / slot.capacity * 100, 2) if slot.capacity else 0.0,
    }


class SlotService:
    """Slot inventory of the warehouses."""

    def __init__(self, db: Session):
        self.db = db

    # ---------------------------------------------------------------------
    # lookups
    # ---------------------------------------------------------------------
    def get_slot(self, slot_id: int) -> TimeSlot:
        slot = self.db.get(TimeSlot, slot_id)
        if not slot or slot.is_deleted:
            raise NotFoundError(f"slot {slot_id} not found")
        return slot

    def lock_slot(self, slot_id: int) -> TimeSlot | None:
        """SELECT ... FOR UPDATE on one live slot (None if missing/deleted)."""
        return (
            self.db.query(TimeSlot)
            .filter(TimeSlot.id == slot_id, TimeSlot.is_deleted == False)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def _lock_warehouse(self, warehouse_id: int) -> Warehouse:
        wh = self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).with_for_update().first()
        if not wh:
            raise NotFoundError(f"warehouse {warehouse_id} not found")
        return wh

    def occupancy(self, slot_id: int) -> int:
        return (
            self.db.query(func.count(Booking.id))
            .filter(Booking.time_slot_id == slot_id, Booking.status != BookingStatus.CANCELLED)
            .scalar()
            or 0
        )

    # ---------------------------------------------------------------------
    # validation
    # ---------------------------------------------------------------------
    def _rule_errors(self, values: dict) -> list[str]:
        errors: list[str] = []
        if not values.get("warehouse_id"):
            errors.append("warehouse_id is required")

        start, end = values.get("time_start"), values.get("time_end")
        if start is not None and end is not None and start >= end:
            errors.append("time_start must be earlier than time_end")

        capacity = values.get("capacity")
        if capacity is None or not (1 <= capacity <= settings.SLOT_CAPACITY_MAX):
            errors.append(f"capacity must be between 1 and {settings.SLOT_CAPACITY_MAX}")

        values["slot_type"] = parse_slot_type(values.get("slot_type"), errors)
        return errors

    def _check_zone(self, zone_id: int | None, warehouse_id: int) -> None:
        if zone_id is None:
            return
        zone = self.db.get(WarehouseZone, zone_id)
        if not zone or zone.warehouse_id != warehouse_id:
            raise ValidationError(f"zone {zone_id} does not belong to warehouse {warehouse_id}")

    # ---------------------------------------------------------------------
    # create / update / delete
    # ---------------------------------------------------------------------
    def create_slot(self, data: SlotIn, ctx: RequestContext) -> dict:
        values = data.model_dump()
        errors = self._rule_errors(values)

        try:
            pattern = RecurringPattern(values["recurring_pattern"])
        except ValueError:
            pattern = None
            errors.append(f"invalid recurring_pattern '{values['recurring_pattern']}'")

        dates: list[date] = []
        if pattern and pattern != RecurringPattern.NONE:
            until = values.get("recurring_until")
            if until is None:
                errors.append("recurring_until is required for recurring slots")
            elif until < values["slot_date"]:
                errors.append("recurring_until must not be before slot_date")
            else:
                try:
                    dates = occurrence_dates(values["slot_date"], pattern, until, settings.RECURRING_MAX_OCCURRENCES)
                except ValueError as e:
                    errors.append(str(e))
        if errors:
            raise ValidationError(*errors)

        values["recurring_pattern"] = pattern
        if pattern == RecurringPattern.NONE:
            values["recurring_until"] = None
        if not values["is_blocked"]:
            values["block_reason"] = None

        with atomic(self.db):
            self._lock_warehouse(values["warehouse_id"])
            self._check_zone(values["zone_id"], values["warehouse_id"])
            clash = find_conflicts(
                self.db, values["warehouse_id"], values["slot_date"], values["time_start"], values["time_end"]
            )
            if clash:
                raise ConflictError("time range overlaps existing slot " + ", ".join(describe(s) for s in clash))
            slot = TimeSlot(**values, created_by=ctx.user_id)
            self.db.add(slot)
            self.db.flush()

        created, skipped = 1, []
        # one transaction per occurrence: an interrupted series keeps what is done
        for d in dates:
            try:
                with atomic(self.db):
                    self._lock_warehouse(slot.warehouse_id)
                    if find_conflicts(self.db, slot.warehouse_id, d, slot.time_start, slot.time_end):
                        raise ConflictError(f"conflict on {d.isoformat()}")
                    self.db.add(
                        TimeSlot(**{**values, "slot_date": d}, parent_slot_id=slot.id, created_by=ctx.user_id)
                    )
                created += 1
            except ConflictError:
                skipped.append(d)
                logger.info(f"Recurring slot {slot.id}: {d.isoformat()} skipped (conflict)")

        audit.record(
            self.db, ctx, "slot_created", "time_slot", slot.id,
            new_values={**audit.snapshot(slot), "created_count": created, "skipped_dates": skipped},
        )
        return {
            "success": True,
            "slot_id": slot.id,
            "created_count": created,
            "skipped_dates": skipped,
            "message": f"Created {created} slot(s)" + (f", {len(skipped)} skipped" if skipped else ""),
        }

    def update_slot(self, slot_id: int, data: SlotUpdateIn, ctx: RequestContext) -> dict:
        fields = data.model_dump(exclude_unset=True)
        current = self.get_slot(slot_id)

        with atomic(self.db):
            # warehouse first, then the slot: same lock order as create_slot
            self._lock_warehouse(current.warehouse_id)
            slot = self.lock_slot(slot_id)
            if not slot:
                raise NotFoundError(f"slot {slot_id} not found")
            old = audit.snapshot(slot)

            merged = {
                "warehouse_id": slot.warehouse_id,
                "zone_id": fields.get("zone_id", slot.zone_id),
                "slot_date": fields.get("slot_date") or slot.slot_date,
                "time_start": fields.get("time_start") or slot.time_start,
                "time_end": fields.get("time_end") or slot.time_end,
                "slot_type": fields.get("slot_type") or slot.slot_type,
                "capacity": fields["capacity"] if fields.get("capacity") is not None else slot.capacity,
            }
            errors = self._rule_errors(merged)
            if "capacity" in fields and not errors:
                booked = self.occupancy(slot.id)
                if merged["capacity"] < booked:
                    errors.append(f"capacity cannot be lower than current occupancy ({booked})")
            if errors:
                raise ValidationError(*errors)
            self._check_zone(merged["zone_id"], slot.warehouse_id)

            clash = find_conflicts(
                self.db, slot.warehouse_id, merged["slot_date"], merged["time_start"], merged["time_end"],
                exclude_slot_id=slot.id,
            )
            if clash:
                raise ConflictError("time range overlaps existing slot " + ", ".join(describe(s) for s in clash))

            for key, value in merged.items():
                setattr(slot, key, value)
            if "is_blocked" in fields and fields["is_blocked"] is not None:
                slot.is_blocked = fields["is_blocked"]
            if "block_reason" in fields:
                slot.block_reason = fields["block_reason"]
            if not slot.is_blocked:
                slot.block_reason = None

        audit.record(self.db, ctx, "slot_updated", "time_slot", slot.id, old, audit.snapshot(slot))
        return {"success": True, "message": "Slot updated"}

    def delete_slot(self, slot_id: int, ctx: RequestContext) -> dict:
        with atomic(self.db):
            slot = self.lock_slot(slot_id)
            if not slot:
                raise NotFoundError(f"slot {slot_id} not found")
            booked = self.occupancy(slot.id)
            if booked:
                raise HasDependentsError(f"slot has {booked} active booking(s) and cannot be deleted")
            old = audit.snapshot(slot)
            slot.is_deleted = True

        audit.record(self.db, ctx, "slot_deleted", "time_slot", slot_id, old_values=old)
        return {"success": True, "message": "Slot deleted"}

    def block_slot(self, slot_id: int, reason: str | None, ctx: RequestContext) -> dict:
        with atomic(self.db):
            slot = self.lock_slot(slot_id)
            if not slot:
                raise NotFoundError(f"slot {slot_id} not found")
            slot.is_blocked = True
            slot.block_reason = reason

        audit.record(self.db, ctx, "slot_blocked", "time_slot", slot_id, new_values={"reason": reason})
        return {"success": True, "message": "Slot blocked"}

    def unblock_slot(self, slot_id: int, ctx: RequestContext) -> dict:
        with atomic(self.db):
            slot = self.lock_slot(slot_id)
            if not slot:
                raise NotFoundError(f"slot {slot_id} not found")
            slot.is_blocked = False
            slot.block_reason = None

        audit.record(self.db, ctx, "slot_unblocked", "time_slot", slot_id)
        return {"success": True, "message": "Slot unblocked"}

    # ---------------------------------------------------------------------
    # listings
    # ---------------------------------------------------------------------
    def _with_occupancy(self):
        occ = _occupancy_subquery(self.db)
        booked = func.coalesce(occ.c.booked, 0)
        q = (
            self.db.query(TimeSlot, booked.label("booked"))
            .outerjoin(occ, occ.c.slot_id == TimeSlot.id)
            .filter(TimeSlot.is_deleted == False)
        )
        return q, booked

    def _type_filter(self, q, slot_type):
        if slot_type is None:
            return q
        errors: list[str] = []
        wanted = parse_slot_type(slot_type, errors)
        if errors:
            raise ValidationError(*errors)
        return q.filter(or_(TimeSlot.slot_type == wanted, TimeSlot.slot_type == SlotType.UNIVERSAL))

    def get_available_slots(self, warehouse_id: int, slot_date: date, slot_type: str | None = None) -> list[dict]:
        """Unblocked slots with spare capacity; universal slots match every type."""
        q, booked = self._with_occupancy()
        q = q.filter(
            TimeSlot.warehouse_id == warehouse_id,
            TimeSlot.slot_date == slot_date,
            TimeSlot.is_blocked == False,
            TimeSlot.capacity - booked > 0,
        )
        q = self._type_filter(q, slot_type)
        return [slot_row(s, n) for s, n in q.order_by(TimeSlot.time_start.asc()).all()]

    def list_slots(
        self,
        date_from: date,
        date_to: date,
        warehouse_id: int | None = None,
        slot_type: str | None = None,
        is_blocked: bool | None = None,
    ) -> list[dict]:
        if date_to < date_from:
            raise ValidationError("date_to must not be before date_from")
        q, _ = self._with_occupancy()
        q = q.filter(TimeSlot.slot_date >= date_from, TimeSlot.slot_date <= date_to)
        if warehouse_id:
            q = q.filter(TimeSlot.warehouse_id == warehouse_id)
        if slot_type is not None:
            errors: list[str] = []
            wanted = parse_slot_type(slot_type, errors)
            if errors:
                raise ValidationError(*errors)
            q = q.filter(TimeSlot.slot_type == wanted)
        if is_blocked is not None:
            q = q.filter(TimeSlot.is_blocked == is_blocked)
        q = q.order_by(TimeSlot.slot_date.asc(), TimeSlot.time_start.asc())
        return [slot_row(s, n) for s, n in q.all()]

    def find_next_available_slot(
        self,
        warehouse_id: int,
        booking_type: SlotType | str,
        from_date: date,
        not_before: datetime | None = None,
        exclude_slot_id: int | None = None,
    ) -> TimeSlot | None:
        """Earliest compatible, unblocked slot with spare capacity on/after from_date."""
        q, booked = self._with_occupancy()
        q = q.filter(
            TimeSlot.warehouse_id == warehouse_id,
            TimeSlot.slot_date >= from_date,
            TimeSlot.is_blocked == False,
            TimeSlot.capacity - booked > 0,
        )
        q = self._type_filter(q, SlotType(booking_type).value)
        if not_before is not None:
            q = q.filter(
                or_(
                    TimeSlot.slot_date > not_before.date(),
                    and_(
                        TimeSlot.slot_date == not_before.date(),
                        TimeSlot.time_start >= not_before.time().replace(microsecond=0),
                    ),
                )
            )
        if exclude_slot_id is not None:
            q = q.filter(TimeSlot.id != exclude_slot_id)
        row = q.order_by(TimeSlot.slot_date.asc(), TimeSlot.time_start.asc()).first()
        return row[0] if row else None
