"""Booking event store - remembers webhook deliveries already handled."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from leadflow.models.booking import BookingEvent


class BookingEventRepository:
    def __init__(self, session: Session):
        self.session = session

    def seen(self, event_id: str) -> bool:
        result = self.session.execute(select(BookingEvent.id).where(BookingEvent.event_id == event_id))
        return result.first() is not None

    def add(self, event_id: str, email: str, event_type: str, scheduled_at: datetime | None) -> BookingEvent:
        event = BookingEvent(
            event_id=event_id,
            email=email.strip().lower(),
            event_type=event_type,
            scheduled_at=scheduled_at,
        )
        self.session.add(event)
        return event
