"""Tests for booking webhook handling."""

import asyncio
from datetime import datetime, timezone

from leadflow.models.lead import LeadStatus
from leadflow.repositories import LeadRepository
from leadflow.schemas.webhook import BookingWebhookPayload
from leadflow.services.booking import (
    EVENT_CANCELED,
    EVENT_CREATED,
    BookingNotice,
    BookingOutcome,
    handle_booking_event,
)
from conftest import FakeNotifier

START = datetime(2025, 3, 14, 18, 0, tzinfo=timezone.utc)


def notice(event_id="invitee.created:uri-1", event_type=EVENT_CREATED, email="Ana@Example.com"):
    return BookingNotice(event_id=event_id, event_type=event_type, email=email,
                         scheduled_at=START, service="Google Ads Management call")


class TestHandleBookingEvent:
    def setup_method(self):
        self.notifier = FakeNotifier()

    def handle(self, session, n):
        return asyncio.run(handle_booking_event(session, n, self.notifier))

    def test_books_lead_and_alerts(self, session):
        last_contact = datetime(2025, 3, 10, tzinfo=timezone.utc)
        LeadRepository(session).add(email="ana@example.com", status=LeadStatus.HOT,
                                    lead_id="L-1", last_contact=last_contact)
        session.commit()

        assert self.handle(session, notice()) == BookingOutcome.BOOKED
        lead = LeadRepository(session).get("L-1")
        assert lead.status == LeadStatus.BOOKED
        assert lead.last_contact.replace(tzinfo=None) == last_contact.replace(tzinfo=None)
        assert self.notifier.bookings == [("ana@example.com", "Google Ads Management call", START)]

    def test_duplicate_delivery_is_noop(self, session):
        LeadRepository(session).add(email="ana@example.com", status=LeadStatus.SENT, lead_id="L-1")
        session.commit()

        assert self.handle(session, notice()) == BookingOutcome.BOOKED
        assert self.handle(session, notice()) == BookingOutcome.DUPLICATE
        assert len(self.notifier.bookings) == 1

    def test_unknown_lead(self, session):
        assert self.handle(session, notice()) == BookingOutcome.UNKNOWN_LEAD
        assert self.notifier.bookings == []

    def test_terminal_lead_ignored(self, session):
        LeadRepository(session).add(email="ana@example.com", status=LeadStatus.UNQUALIFIED, lead_id="L-1")
        session.commit()
        assert self.handle(session, notice()) == BookingOutcome.IGNORED
        assert LeadRepository(session).get("L-1").status == LeadStatus.UNQUALIFIED

    def test_cancellation_logged_only(self, session):
        LeadRepository(session).add(email="ana@example.com", status=LeadStatus.BOOKED, lead_id="L-1")
        session.commit()
        outcome = self.handle(session, notice(event_id="invitee.canceled:uri-1", event_type=EVENT_CANCELED))
        assert outcome == BookingOutcome.CANCELED
        assert LeadRepository(session).get("L-1").status == LeadStatus.BOOKED

    def test_other_event_types_ignored(self, session):
        assert self.handle(session, notice(event_type="routing_form_submission.created")) == BookingOutcome.IGNORED


class TestBookingPayload:
    def payload(self, uri="https://api.calendly.com/invitees/abc"):
        return BookingWebhookPayload.model_validate({
            "event": "invitee.created",
            "payload": {
                "uri": uri,
                "email": "ana@example.com",
                "scheduled_event": {"name": "Funnels call", "start_time": "2025-03-14T18:00:00Z"},
            },
        })

    def test_event_id_from_uri(self):
        assert self.payload().event_id() == "invitee.created:https://api.calendly.com/invitees/abc"

    def test_event_id_without_uri(self):
        assert self.payload(uri=None).event_id() == "invitee.created:ana@example.com:2025-03-14T18:00:00+00:00"

    def test_to_notice(self):
        n = self.payload().to_notice()
        assert n.event_type == EVENT_CREATED
        assert n.service == "Funnels call"
        assert n.scheduled_at == START
