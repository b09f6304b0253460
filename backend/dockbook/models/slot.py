from sqlalchemy import (
    Column, Integer, Date, Time, DateTime, Enum, ForeignKey, Boolean, String, Index, func,
)
from sqlalchemy.orm import relationship
import enum
from ..database import Base


class SlotType(str, enum.Enum):
    LOADING = "loading"
    UNLOADING = "unloading"
    UNIVERSAL = "universal"  # fits any booking type


class RecurringPattern(str, enum.Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    zone_id = Column(Integer, ForeignKey("warehouse_zones.id"), nullable=True)

    slot_date = Column(Date, nullable=False)
    time_start = Column(Time, nullable=False)
    time_end = Column(Time, nullable=False)
    slot_type = Column(Enum(SlotType), nullable=False, default=SlotType.UNIVERSAL)
    capacity = Column(Integer, nullable=False, default=1)

    is_blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(String(500), nullable=True)
    # deleted slots stay in the table: cancelled bookings keep pointing at them
    is_deleted = Column(Boolean, nullable=False, default=False)

    recurring_pattern = Column(Enum(RecurringPattern), nullable=False, default=RecurringPattern.NONE)
    recurring_until = Column(Date, nullable=True)
    # first slot of a recurring batch; NULL for the first slot itself
    parent_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    warehouse = relationship("Warehouse", back_populates="slots")
    zone = relationship("WarehouseZone")
    bookings = relationship("Booking", back_populates="slot")

    __table_args__ = (Index("ix_time_slots_warehouse_date", "warehouse_id", "slot_date"),)

    def accepts(self, booking_type: SlotType | str) -> bool:
        return self.slot_type == SlotType.UNIVERSAL or self.slot_type == SlotType(booking_type)
