"""
Outgoing mail for dock bookings, sent through the Gmail API.

Messages carry the dockbook sender name and subject prefix so drivers and
carriers can filter them. Without Gmail credentials nothing is sent and the
mail is only logged.
"""
import base64
import logging
from email.mime.text import MIMEText
from email.utils import formataddr

from googleapiclient.discovery import build
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from ..config import settings

logger = logging.getLogger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


def gmail_configured() -> bool:
    return bool(
        settings.GOOGLE_CLIENT_ID
        and settings.GOOGLE_CLIENT_SECRET
        and settings.GOOGLE_REFRESH_TOKEN
        and settings.EMAIL_FROM
    )


def _gmail_service():
    creds = Credentials(
        token=None,
        refresh_token=settings.GOOGLE_REFRESH_TOKEN,
        token_uri=TOKEN_URI,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        scopes=GMAIL_SCOPES,
    )
    creds.refresh(Request())
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def dock_subject(subject: str) -> str:
    prefix = settings.EMAIL_SUBJECT_PREFIX
    if not prefix or subject.startswith(prefix):
        return subject
    return f"{prefix} {subject}"


def build_message(to: str, subject: str, html: str) -> dict:
    """Gmail ``users.messages.send`` body for one HTML mail."""
    msg = MIMEText(html, "html", "utf-8")
    msg["to"] = to
    msg["from"] = formataddr((settings.EMAIL_FROM_NAME, settings.EMAIL_FROM or ""))
    msg["subject"] = dock_subject(subject)
    return {"raw": base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")}


def send_email_html(to: str, subject: str, html: str) -> str | None:
    """Send the mail and return the Gmail message id (None when mail is off)."""
    if not gmail_configured():
        logger.info(f"Mail disabled (no Gmail credentials), not sending to {to}: {dock_subject(subject)}")
        return None

    svc = _gmail_service()
    sent = svc.users().messages().send(userId="me", body=build_message(to, subject, html)).execute()
    logger.info(f"Mail {sent.get('id')} sent to {to}: {dock_subject(subject)}")
    return sent.get("id")
