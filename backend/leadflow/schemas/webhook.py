"""Webhook payload schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from leadflow.services.booking import BookingNotice


class ScheduledEvent(BaseModel):
    """The meeting an invitee booked."""
    name: Optional[str] = None  # event type name, e.g. "Google Ads Management call"
    start_time: Optional[datetime] = None


class BookingInvitee(BaseModel):
    uri: Optional[str] = None  # unique per invitee booking
    email: str = Field(..., min_length=3, max_length=255)  # EmailStr is too strict for webhooks
    name: Optional[str] = None
    scheduled_event: Optional[ScheduledEvent] = None


class BookingWebhookPayload(BaseModel):
    """Incoming scheduling webhook (Calendly-style envelope)."""
    event: str = Field(..., min_length=1, max_length=50)  # invitee.created, invitee.canceled
    created_at: Optional[datetime] = None
    payload: BookingInvitee

    def event_id(self) -> str:
        """Delivery identity: one booking can be created once and canceled once."""
        invitee = self.payload
        scheduled = invitee.scheduled_event
        anchor = invitee.uri or f"{invitee.email.lower()}:{scheduled.start_time.isoformat() if scheduled and scheduled.start_time else ''}"
        return f"{self.event}:{anchor}"

    def to_notice(self) -> BookingNotice:
        scheduled = self.payload.scheduled_event
        return BookingNotice(
            event_id=self.event_id(),
            event_type=self.event,
            email=self.payload.email,
            scheduled_at=scheduled.start_time if scheduled else None,
            service=scheduled.name if scheduled else None,
        )


class WebhookResponse(BaseModel):
    ok: bool
    id: Optional[str] = None
    message: str = ""
