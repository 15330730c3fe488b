"""Booking events - maps a scheduling webhook delivery to the BOOKED transition.

Each delivery carries its own event id; ids already stored in
``booking_events`` are acknowledged without touching the lead again.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadflow.repositories import ActivityLog, BookingEventRepository, LeadRepository
from leadflow.services.lifecycle import LifecycleEvent, can_apply, transition

logger = structlog.get_logger()

EVENT_CREATED = "invitee.created"
EVENT_CANCELED = "invitee.canceled"


class BookingOutcome(str, enum.Enum):
    BOOKED = "booked"
    DUPLICATE = "duplicate"
    CANCELED = "canceled"
    UNKNOWN_LEAD = "unknown_lead"
    IGNORED = "ignored"


@dataclass(frozen=True)
class BookingNotice:
    event_id: str
    event_type: str
    email: str
    scheduled_at: datetime | None = None
    service: str | None = None


async def handle_booking_event(session: Session, notice: BookingNotice, notifier=None) -> BookingOutcome:
    bookings = BookingEventRepository(session)
    leads = LeadRepository(session)
    activity = ActivityLog(session)
    email = notice.email.strip().lower()

    if bookings.seen(notice.event_id):
        logger.info("booking_duplicate_ignored", event_id=notice.event_id, email=email)
        return BookingOutcome.DUPLICATE
    bookings.add(notice.event_id, email, notice.event_type, notice.scheduled_at)

    lead = None
    if notice.event_type == EVENT_CANCELED:
        outcome = BookingOutcome.CANCELED
        activity.record("booking_canceled", email=email, details=f"Booking canceled (event {notice.event_id}).")
    elif notice.event_type != EVENT_CREATED:
        outcome = BookingOutcome.IGNORED
        activity.record("booking_event_ignored", email=email,
                        details=f"Unhandled event type {notice.event_type}.", severity="DEBUG")
    else:
        lead = leads.find(email=email)
        if lead is None:
            outcome = BookingOutcome.UNKNOWN_LEAD
            activity.record("booking_unknown_lead", email=email,
                            details="Booking received for an email with no lead.", severity="WARNING")
        elif not can_apply(lead.status, LifecycleEvent.BOOKED):
            outcome = BookingOutcome.IGNORED
            activity.record("booking_ignored", lead.lead_id, email,
                            f"Booking received while lead is {lead.status.value}; no change.", "WARNING")
        else:
            transition(lead, LifecycleEvent.BOOKED, touch=False)
            outcome = BookingOutcome.BOOKED
            activity.record("lead_booked", lead.lead_id, email, f"Meeting booked for {notice.scheduled_at}.", "SUCCESS")

    try:
        session.commit()
    except IntegrityError:
        # concurrent delivery of the same event won the insert
        session.rollback()
        logger.info("booking_duplicate_ignored", event_id=notice.event_id, email=email)
        return BookingOutcome.DUPLICATE

    if outcome == BookingOutcome.BOOKED and notifier is not None:
        await notifier.notify_booking(lead, notice.service, notice.scheduled_at)
    return outcome
