"""
Slot overlap detection.

Two slots of the same warehouse and date conflict when their half-open ranges
[start, end) intersect; touching boundaries (09:00-10:00 and 10:00-11:00) do
not. Deleted slots are ignored. Zones are not taken into account: two zones of
one warehouse share the same timeline.
"""
from datetime import date, time

from sqlalchemy.orm import Session

from ..models.slot import TimeSlot


def ranges_overlap(s1: time, e1: time, s2: time, e2: time) -> bool:
    return s1 < e2 and e1 > s2


def find_conflicts(
    db: Session,
    warehouse_id: int,
    slot_date: date,
    time_start: time,
    time_end: time,
    exclude_slot_id: int | None = None,
) -> list[TimeSlot]:
    q = db.query(TimeSlot).filter(
        TimeSlot.warehouse_id == warehouse_id,
        TimeSlot.slot_date == slot_date,
        TimeSlot.is_deleted == False,
        TimeSlot.time_start < time_end,
        TimeSlot.time_end > time_start,
    )
    if exclude_slot_id is not None:
        q = q.filter(TimeSlot.id != exclude_slot_id)
    return q.order_by(TimeSlot.time_start.asc()).all()


def has_conflict(
    db: Session,
    warehouse_id: int,
    slot_date: date,
    time_start: time,
    time_end: time,
    exclude_slot_id: int | None = None,
) -> bool:
    return bool(find_conflicts(db, warehouse_id, slot_date, time_start, time_end, exclude_slot_id))


def describe(slot: TimeSlot) -> str:
    return f"{slot.slot_date.isoformat()} {str(slot.time_start)[:5]}-{str(slot.time_end)[:5]} (slot {slot.id})"
