"""Webhook intake endpoint for scheduling (booking) events."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leadflow.adapters.email import send_email
from leadflow.api.health import WEBHOOK_REQUESTS, ERRORS
from leadflow.config import get_settings
from leadflow.database import get_db
from leadflow.schemas.webhook import BookingWebhookPayload, WebhookResponse
from leadflow.services.booking import BookingOutcome, handle_booking_event
from leadflow.services.notifications import Notifier

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_MESSAGES = {
    BookingOutcome.BOOKED: "Lead marked as booked",
    BookingOutcome.DUPLICATE: "Event already processed",
    BookingOutcome.CANCELED: "Cancellation logged",
    BookingOutcome.UNKNOWN_LEAD: "No lead matches this email",
    BookingOutcome.IGNORED: "Event acknowledged, no change",
}


def get_notifier() -> Notifier:
    settings = get_settings()

    async def _send(to_email: str, subject: str, body: str) -> bool:
        return await send_email(to_email, subject, body, settings)

    return Notifier(settings, _send)


@router.post("/booking", response_model=WebhookResponse)
async def receive_booking(
    payload: BookingWebhookPayload,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Apply a booking event to the matching lead. Duplicate deliveries are no-ops."""
    notice = payload.to_notice()
    try:
        outcome = await handle_booking_event(db, notice, notifier)
    except Exception:
        ERRORS.labels(type="booking").inc()
        logger.error("booking_webhook_failed", event_id=notice.event_id, exc_info=True)
        raise

    WEBHOOK_REQUESTS.labels(event=payload.event, outcome=outcome.value).inc()
    logger.info("booking_webhook_received", event_id=notice.event_id, outcome=outcome.value)
    return WebhookResponse(ok=True, id=notice.event_id, message=_MESSAGES[outcome])
