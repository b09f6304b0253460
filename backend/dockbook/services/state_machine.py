"""
Booking status transitions.

    pending --approve--> confirmed --check_in--> checked_in --check_out--> completed
    any non-terminal --cancel--> cancelled

delayed / rescheduled / approved / checked_out are only reached through the
administrative override (change_status) or the rescheduler.
Each transition locks the booking row for the duration of the check and write.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..core.context import RequestContext
from ..core.errors import AuthorizationError, InvalidTransitionError, NotFoundError, ValidationError
from ..core.permissions import Action, Resource
from ..database import atomic
from ..models.booking import TERMINAL_STATUSES, Booking, BookingStatus
from . import audit

logger = logging.getLogger(__name__)


def append_note(notes: str | None, note: str, when: datetime | None = None) -> str:
    when = when or datetime.now()
    return f"{notes or ''}\n{when:%Y-%m-%d %H:%M:%S}: {note}"


class BookingStateMachine:
    def __init__(self, db: Session):
        self.db = db

    def _lock(self, booking_id: int) -> Booking:
        booking = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not booking:
            raise NotFoundError(f"booking {booking_id} not found")
        return booking

    def _done(self, ctx: RequestContext, action: str, booking: Booking, old_status: BookingStatus, message: str, **extra):
        logger.info(f"Booking {booking.booking_number}: {old_status.value} -> {booking.status.value}")
        audit.record(
            self.db, ctx, action, "booking", booking.id,
            old_values={"status": old_status.value},
            new_values={"status": booking.status.value, **extra},
        )
        return {"success": True, "message": message}

    def approve(self, booking_id: int, ctx: RequestContext) -> dict:
        with atomic(self.db):
            booking = self._lock(booking_id)
            if booking.status != BookingStatus.PENDING:
                raise InvalidTransitionError("booking is not pending approval")
            old = booking.status
            booking.status = BookingStatus.CONFIRMED
            booking.approved_by = ctx.user_id
            booking.approved_at = datetime.now()
        return self._done(ctx, "booking_approved", booking, old, "Booking approved")

    def check_in(self, booking_id: int, ctx: RequestContext, qr_code: str | None = None) -> dict:
        with atomic(self.db):
            booking = self._lock(booking_id)
            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidTransitionError("booking is not confirmed")
            if booking.check_in_time:
                raise InvalidTransitionError("check-in already performed")
            if qr_code and qr_code != booking.qr_code:
                raise InvalidTransitionError("invalid QR code")
            old = booking.status
            booking.status = BookingStatus.CHECKED_IN
            booking.check_in_time = datetime.now()
        return self._done(ctx, "booking_check_in", booking, old, "Check-in completed")

    def check_out(self, booking_id: int, ctx: RequestContext, qr_code: str | None = None) -> dict:
        with atomic(self.db):
            booking = self._lock(booking_id)
            if booking.status != BookingStatus.CHECKED_IN:
                raise InvalidTransitionError("booking is not checked in")
            if booking.check_out_time:
                raise InvalidTransitionError("check-out already performed")
            if qr_code and qr_code != booking.qr_code:
                raise InvalidTransitionError("invalid QR code")
            old = booking.status
            booking.status = BookingStatus.COMPLETED
            booking.check_out_time = datetime.now()
        return self._done(ctx, "booking_check_out", booking, old, "Check-out completed")

    def cancel(self, booking_id: int, ctx: RequestContext, reason: str | None = None) -> dict:
        with atomic(self.db):
            booking = self._lock(booking_id)
            if booking.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(f"booking is already {booking.status.value}")
            old = booking.status
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = datetime.now()
            booking.cancellation_reason = reason
        return self._done(ctx, "booking_cancelled", booking, old, "Booking cancelled", reason=reason)

    def change_status(self, booking_id: int, new_status: str, ctx: RequestContext, note: str | None = None) -> dict:
        """Administrative override: any defined status, no precondition."""
        if not ctx.can(Resource.BOOKINGS, Action.OVERRIDE_STATUS):
            raise AuthorizationError("status override not permitted")
        try:
            target = BookingStatus(new_status)
        except ValueError:
            raise ValidationError(f"invalid status '{new_status}'")

        with atomic(self.db):
            booking = self._lock(booking_id)
            old = booking.status
            booking.status = target
            if note:
                booking.notes = append_note(booking.notes, note)
        logger.warning(f"Status override on booking {booking.booking_number} by user {ctx.user_id}")
        return self._done(ctx, "booking_status_changed", booking, old, "Status changed", override=True, note=note)
