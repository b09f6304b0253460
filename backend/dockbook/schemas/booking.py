from __future__ import annotations
from pydantic import BaseModel, Field
from datetime import date, time, datetime
from typing import Optional


class BookingCreateIn(BaseModel):
    time_slot_id: Optional[int] = None
    # ignored unless the caller is a super admin (own company otherwise)
    company_id: Optional[int] = None
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    booking_type: str = "universal"
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class BookingUpdateIn(BaseModel):
    time_slot_id: Optional[int] = None
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    booking_type: Optional[str] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class QrIn(BaseModel):
    qr_code: Optional[str] = None


class CancelIn(BaseModel):
    reason: Optional[str] = None


class ChangeStatusIn(BaseModel):
    status: str
    note: Optional[str] = None


class BookingCreatedOut(BaseModel):
    success: bool = True
    booking_id: int
    booking_number: str
    qr_code: str
    requires_approval: bool
    message: str


class BookingOut(BaseModel):
    id: int
    booking_number: str
    qr_code: str
    time_slot_id: int
    company_id: int
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    booking_type: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    status: str
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    # slot / names, filled by joins
    slot_date: Optional[date] = None
    time_start: Optional[time] = None
    time_end: Optional[time] = None
    warehouse_id: Optional[int] = None
    warehouse_name: Optional[str] = None
    zone_name: Optional[str] = None
    driver_name: Optional[str] = None
    company_name: Optional[str] = None


class DocumentOut(BaseModel):
    id: int
    file_name: str
    document_type: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingDetailOut(BaseModel):
    success: bool = True
    booking: BookingOut
    documents: list[DocumentOut] = []


class PaginationOut(BaseModel):
    page: int
    pages: int
    limit: int
    total: int


class BookingListOut(BaseModel):
    success: bool = True
    bookings: list[BookingOut]
    pagination: PaginationOut
    filters: dict = {}


class BookingFeedOut(BaseModel):
    success: bool = True
    bookings: list[BookingOut]
    count: int
