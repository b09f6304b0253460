from datetime import datetime, time, timedelta

import pytest

from dockbook.core.errors import ConflictError, HasDependentsError, NotFoundError, ValidationError
from dockbook.models.audit import AuditLog
from dockbook.models.booking import Booking, BookingStatus
from dockbook.models.slot import RecurringPattern, SlotType, TimeSlot
from dockbook.schemas.booking import BookingCreateIn
from dockbook.schemas.slot import SlotIn, SlotUpdateIn
from dockbook.services.bookings import BookingService
from dockbook.services.slots import SlotService


def slot_in(seed, day, **kw):
    data = {"warehouse_id": seed.wh.id, "slot_date": day, "time_start": "08:00", "time_end": "09:00"}
    data.update(kw)
    return SlotIn(**data)


def book(db, seed, slot_id, ctx, **kw):
    return BookingService(db).create_booking(
        BookingCreateIn(time_slot_id=slot_id, company_id=seed.acme.id, **kw), ctx
    )


def test_create_single_slot(db, seed, admin_ctx, day):
    res = SlotService(db).create_slot(slot_in(seed, day, capacity=3, slot_type="loading"), admin_ctx)
    assert res["success"] and res["created_count"] == 1 and res["skipped_dates"] == []

    slot = db.get(TimeSlot, res["slot_id"])
    assert slot.capacity == 3
    assert slot.slot_type == SlotType.LOADING
    assert slot.created_by == seed.admin.id
    assert db.query(AuditLog).filter(AuditLog.action == "slot_created").count() == 1


def test_create_collects_every_rule_violation(db, seed, admin_ctx, day):
    with pytest.raises(ValidationError) as e:
        SlotService(db).create_slot(
            slot_in(seed, day, time_start="10:00", time_end="09:00", capacity=0, slot_type="parking"), admin_ctx
        )
    assert len(e.value.errors) == 3


def test_create_capacity_upper_bound(db, seed, admin_ctx, day):
    with pytest.raises(ValidationError):
        SlotService(db).create_slot(slot_in(seed, day, capacity=101), admin_ctx)


def test_create_unknown_warehouse(db, seed, admin_ctx, day):
    with pytest.raises(NotFoundError):
        SlotService(db).create_slot(slot_in(seed, day, warehouse_id=9999), admin_ctx)


def test_create_zone_must_belong_to_warehouse(db, seed, admin_ctx, day):
    with pytest.raises(ValidationError):
        SlotService(db).create_slot(slot_in(seed, day, zone_id=seed.foreign_zone.id), admin_ctx)
    res = SlotService(db).create_slot(slot_in(seed, day, zone_id=seed.zone.id), admin_ctx)
    assert db.get(TimeSlot, res["slot_id"]).zone_id == seed.zone.id


def test_overlap_rejected_touching_accepted(db, seed, admin_ctx, day):
    svc = SlotService(db)
    svc.create_slot(slot_in(seed, day, time_start="09:00", time_end="10:00"), admin_ctx)

    with pytest.raises(ConflictError):
        svc.create_slot(slot_in(seed, day, time_start="09:30", time_end="10:30"), admin_ctx)

    res = svc.create_slot(slot_in(seed, day, time_start="10:00", time_end="11:00"), admin_ctx)
    assert res["success"]
    assert db.query(TimeSlot).count() == 2


def test_recurring_weekly_skips_conflicting_dates(db, seed, admin_ctx, make_slot, day):
    make_slot("08:30", "09:30", slot_date=day + timedelta(days=14))
    res = SlotService(db).create_slot(
        slot_in(seed, day, recurring_pattern="weekly", recurring_until=day + timedelta(days=21)), admin_ctx
    )
    assert res["created_count"] == 3
    assert res["skipped_dates"] == [day + timedelta(days=14)]

    children = db.query(TimeSlot).filter(TimeSlot.parent_slot_id == res["slot_id"]).all()
    assert sorted(c.slot_date for c in children) == [day + timedelta(days=7), day + timedelta(days=21)]
    assert all(c.recurring_pattern == RecurringPattern.WEEKLY for c in children)


def test_recurring_requires_until(db, seed, admin_ctx, day):
    with pytest.raises(ValidationError):
        SlotService(db).create_slot(slot_in(seed, day, recurring_pattern="daily"), admin_ctx)
    with pytest.raises(ValidationError):
        SlotService(db).create_slot(
            slot_in(seed, day, recurring_pattern="daily", recurring_until=day - timedelta(days=1)), admin_ctx
        )
    with pytest.raises(ValidationError):
        SlotService(db).create_slot(slot_in(seed, day, recurring_pattern="hourly"), admin_ctx)


def test_update_partial_and_conflict_excludes_self(db, seed, admin_ctx, make_slot):
    s = make_slot("08:00", "09:00")
    make_slot("10:00", "11:00")
    svc = SlotService(db)

    # moving within its own range is not a conflict with itself
    svc.update_slot(s.id, SlotUpdateIn(time_end="09:30"), admin_ctx)
    assert str(svc.get_slot(s.id).time_end) == "09:30:00"
    assert svc.get_slot(s.id).capacity == 1

    with pytest.raises(ConflictError):
        svc.update_slot(s.id, SlotUpdateIn(time_end="10:30"), admin_ctx)

    with pytest.raises(ValidationError):
        svc.update_slot(s.id, SlotUpdateIn(time_start="09:45"), admin_ctx)


def test_update_capacity_not_below_occupancy(db, seed, admin_ctx, make_slot):
    s = make_slot(capacity=3)
    book(db, seed, s.id, admin_ctx)
    book(db, seed, s.id, admin_ctx)
    svc = SlotService(db)

    with pytest.raises(ValidationError):
        svc.update_slot(s.id, SlotUpdateIn(capacity=1), admin_ctx)
    svc.update_slot(s.id, SlotUpdateIn(capacity=2), admin_ctx)
    assert svc.get_slot(s.id).capacity == 2


def test_update_unknown_slot(db, seed, admin_ctx):
    with pytest.raises(NotFoundError):
        SlotService(db).update_slot(4242, SlotUpdateIn(capacity=2), admin_ctx)


def test_delete_guarded_by_active_bookings(db, seed, admin_ctx, make_slot):
    s = make_slot(capacity=2)
    res = book(db, seed, s.id, admin_ctx)
    svc = SlotService(db)

    with pytest.raises(HasDependentsError):
        svc.delete_slot(s.id, admin_ctx)

    booking = db.get(Booking, res["booking_id"])
    booking.status = BookingStatus.CANCELLED
    db.commit()

    assert svc.delete_slot(s.id, admin_ctx)["success"]
    with pytest.raises(NotFoundError):
        svc.get_slot(s.id)
    # the cancelled booking still points at the row
    assert db.get(Booking, res["booking_id"]).time_slot_id == s.id


def test_delete_unknown(db, seed, admin_ctx):
    with pytest.raises(NotFoundError):
        SlotService(db).delete_slot(777, admin_ctx)


def test_block_and_unblock(db, seed, admin_ctx, make_slot):
    s = make_slot()
    svc = SlotService(db)
    svc.block_slot(s.id, "forklift maintenance", admin_ctx)
    slot = svc.get_slot(s.id)
    assert slot.is_blocked and slot.block_reason == "forklift maintenance"

    svc.unblock_slot(s.id, admin_ctx)
    slot = svc.get_slot(s.id)
    assert not slot.is_blocked and slot.block_reason is None

    with pytest.raises(NotFoundError):
        svc.block_slot(999, None, admin_ctx)


def test_available_slots_filters(db, seed, admin_ctx, make_slot, day):
    full = make_slot("06:00", "07:00", capacity=1)
    book(db, seed, full.id, admin_ctx)
    make_slot("07:00", "08:00", is_blocked=True)
    loading = make_slot("09:00", "10:00", capacity=2, slot_type=SlotType.LOADING)
    unloading = make_slot("10:00", "11:00", slot_type=SlotType.UNLOADING)
    universal = make_slot("08:00", "09:00", capacity=4)
    book(db, seed, universal.id, admin_ctx)

    svc = SlotService(db)
    rows = svc.get_available_slots(seed.wh.id, day)
    assert [r["id"] for r in rows] == [universal.id, loading.id, unloading.id]
    assert rows[0]["available_capacity"] == 3

    rows = svc.get_available_slots(seed.wh.id, day, "loading")
    assert [r["id"] for r in rows] == [universal.id, loading.id]


def test_list_slots_status_and_utilization(db, seed, admin_ctx, make_slot, day):
    free = make_slot("06:00", "07:00", capacity=2)
    partial = make_slot("07:00", "08:00", capacity=4)
    full = make_slot("08:00", "09:00", capacity=1)
    blocked = make_slot("09:00", "10:00", is_blocked=True)
    book(db, seed, partial.id, admin_ctx)
    book(db, seed, full.id, admin_ctx)

    rows = {r["id"]: r for r in SlotService(db).list_slots(day, day)}
    assert rows[free.id]["status"] == "available"
    assert rows[partial.id]["status"] == "partial"
    assert rows[partial.id]["utilization"] == 25.0
    assert rows[full.id]["status"] == "full"
    assert rows[blocked.id]["status"] == "blocked"

    only_blocked = SlotService(db).list_slots(day, day, is_blocked=True)
    assert [r["id"] for r in only_blocked] == [blocked.id]


def test_find_next_available_slot(db, seed, admin_ctx, make_slot, day):
    past = make_slot("06:00", "07:00")
    too_early = make_slot("10:00", "11:00")
    wrong_type = make_slot("13:00", "14:00", slot_type=SlotType.UNLOADING)
    target = make_slot("14:00", "15:00", slot_type=SlotType.LOADING)
    make_slot("08:00", "09:00", slot_date=day + timedelta(days=1))

    found = SlotService(db).find_next_available_slot(
        seed.wh.id, SlotType.LOADING, day,
        not_before=datetime.combine(day, time(12, 0)), exclude_slot_id=past.id,
    )
    assert found.id == target.id
    assert found.id not in (too_early.id, wrong_type.id)
