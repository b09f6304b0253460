from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Text, func
from sqlalchemy.orm import relationship
import enum
from ..database import Base
from .slot import SlotType


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    # administrative states (set via override or by the rescheduler)
    DELAYED = "delayed"
    RESCHEDULED = "rescheduled"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    booking_number = Column(String(32), unique=True, nullable=False, index=True)
    qr_code = Column(String(64), unique=True, nullable=False, index=True)

    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    vehicle_id = Column(Integer, nullable=True)

    booking_type = Column(Enum(SlotType), nullable=False, default=SlotType.UNIVERSAL)
    reference_number = Column(String(100), nullable=True)
    # append-only log: status overrides and reschedules add timestamped lines
    notes = Column(Text, nullable=True)
    status = Column(Enum(BookingStatus), nullable=False, default=BookingStatus.CONFIRMED)

    check_in_time = Column(DateTime, nullable=True)
    check_out_time = Column(DateTime, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    slot = relationship("TimeSlot", back_populates="bookings")
    company = relationship("Company")
    driver = relationship("User", foreign_keys=[driver_id], back_populates="driver_bookings")
    documents = relationship("BookingDocument", back_populates="booking", order_by="BookingDocument.id.desc()")


class BookingDocument(Base):
    __tablename__ = "booking_documents"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    document_type = Column(String(50), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="documents")
