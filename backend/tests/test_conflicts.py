from datetime import time, timedelta

import pytest

from dockbook.services.conflicts import find_conflicts, has_conflict, ranges_overlap


def t(s):
    return time.fromisoformat(s)


@pytest.mark.parametrize(
    "a, b, expected",
    [
        (("09:00", "10:00"), ("10:00", "11:00"), False),  # touching
        (("10:00", "11:00"), ("09:00", "10:00"), False),
        (("09:00", "10:00"), ("09:30", "10:30"), True),
        (("09:00", "12:00"), ("10:00", "11:00"), True),  # containment
        (("09:00", "10:00"), ("09:00", "10:00"), True),
        (("07:00", "08:00"), ("09:00", "10:00"), False),
    ],
)
def test_ranges_overlap(a, b, expected):
    assert ranges_overlap(t(a[0]), t(a[1]), t(b[0]), t(b[1])) is expected


def test_touching_slots_do_not_conflict(db, seed, make_slot, day):
    make_slot("09:00", "10:00")
    assert not has_conflict(db, seed.wh.id, day, t("10:00"), t("11:00"))
    assert not has_conflict(db, seed.wh.id, day, t("08:00"), t("09:00"))
    assert has_conflict(db, seed.wh.id, day, t("09:59"), t("10:30"))


def test_conflict_scoped_to_warehouse_and_date(db, seed, make_slot, day):
    make_slot("09:00", "10:00")
    assert not has_conflict(db, seed.other_wh.id, day, t("09:00"), t("10:00"))
    assert not has_conflict(db, seed.wh.id, day + timedelta(days=1), t("09:00"), t("10:00"))


def test_exclude_self_and_deleted(db, seed, make_slot, day):
    s = make_slot("09:00", "10:00")
    assert not has_conflict(db, seed.wh.id, day, t("09:00"), t("10:00"), exclude_slot_id=s.id)

    s.is_deleted = True
    db.commit()
    assert find_conflicts(db, seed.wh.id, day, t("09:00"), t("10:00")) == []


def test_find_conflicts_ordered_by_start(db, seed, make_slot, day):
    late = make_slot("11:00", "12:00")
    early = make_slot("08:00", "09:00")
    found = find_conflicts(db, seed.wh.id, day, t("07:00"), t("13:00"))
    assert [s.id for s in found] == [early.id, late.id]
