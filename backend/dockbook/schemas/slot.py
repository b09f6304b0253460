from __future__ import annotations
from pydantic import BaseModel
from datetime import date, time, datetime
from typing import Optional

from ..models.slot import SlotType, RecurringPattern

# Enum-like fields stay plain strings here: the slot service validates them
# and reports one message per violated rule.


class SlotIn(BaseModel):
    """Single slot, optionally the first of a recurring series."""
    warehouse_id: Optional[int] = None
    zone_id: Optional[int] = None
    slot_date: date
    time_start: time
    time_end: time
    slot_type: str = "universal"
    capacity: int = 1
    is_blocked: bool = False
    block_reason: Optional[str] = None
    recurring_pattern: str = "none"
    recurring_until: Optional[date] = None


class SlotUpdateIn(BaseModel):
    """Partial update: only the fields that are sent are changed."""
    zone_id: Optional[int] = None
    slot_date: Optional[date] = None
    time_start: Optional[time] = None
    time_end: Optional[time] = None
    slot_type: Optional[str] = None
    capacity: Optional[int] = None
    is_blocked: Optional[bool] = None
    block_reason: Optional[str] = None


class BlockIn(BaseModel):
    reason: Optional[str] = None


class SlotOut(BaseModel):
    id: int
    warehouse_id: int
    zone_id: Optional[int] = None
    slot_date: date
    time_start: time
    time_end: time
    slot_type: SlotType
    capacity: int
    is_blocked: bool
    block_reason: Optional[str] = None
    recurring_pattern: RecurringPattern
    recurring_until: Optional[date] = None
    parent_slot_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SlotAvailabilityOut(SlotOut):
    warehouse_name: Optional[str] = None
    zone_name: Optional[str] = None
    booking_count: int = 0
    available_capacity: int = 0
    status: Optional[str] = None  # blocked / full / partial / available
    utilization: Optional[float] = None


class SlotCreatedOut(BaseModel):
    success: bool = True
    slot_id: int
    created_count: int
    skipped_dates: list[date] = []
    message: str


class ActionResultOut(BaseModel):
    success: bool = True
    message: str


class RescheduleResultOut(BaseModel):
    success: bool = True
    rescheduled_count: int
    failed_booking_ids: list[int] = []
    skipped: bool = False
    message: str
