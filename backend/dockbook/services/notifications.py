import logging

from sqlalchemy.orm import Session

from ..models.booking import Booking
from ..models.slot import TimeSlot
from ..models.user import User
from .email_gmail import send_email_html

logger = logging.getLogger(__name__)


def _fmt_slot(s: TimeSlot) -> str:
    return f"{s.slot_date.isoformat()} • {str(s.time_start)[:5]}–{str(s.time_end)[:5]}"


def _dedup(addresses: list[str | None]) -> list[str]:
    seen = set()
    out: list[str] = []
    for a in addresses:
        key = (a or "").strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(a.strip())
    return out


class EmailNotifier:
    """Best-effort mail notifications; delivery failures are logged, never raised."""

    def _send_to_many(self, addresses: list[str], subject: str, html: str) -> None:
        for a in addresses:
            try:
                send_email_html(a, subject, html)
            except Exception as e:
                logger.warning(f"Email to {a} failed: {e}")

    def booking_rescheduled(self, db: Session, booking: Booking, old_slot: TimeSlot, new_slot: TimeSlot) -> None:
        users = [db.get(User, uid) for uid in (booking.driver_id, booking.created_by) if uid]
        to = _dedup([u.email for u in users if u and u.is_active])
        if not to:
            logger.info(f"No recipients for reschedule notice of booking {booking.booking_number}")
            return

        subject = f"Booking {booking.booking_number} rescheduled"
        html = f"""
        <div style="font-family:Inter,Arial,sans-serif;color:#111;font-size:15px">
          <p>Hello,</p>
          <p>booking <b>{booking.booking_number}</b> missed its slot and was moved automatically.</p>
          <p><b>Old slot:</b> {_fmt_slot(old_slot)}<br/>
             <b>New slot:</b> {_fmt_slot(new_slot)}</p>
          <hr><small>dockbook</small>
        </div>
        """
        self._send_to_many(to, subject, html)
