"""Tests for reviewer and call alerts."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from leadflow.models.lead import Lead, LeadStatus
from leadflow.services.notifications import (
    Notifier,
    format_booking_time,
    format_call_alert,
    format_review_email,
)
from conftest import make_settings


def make_lead():
    return Lead(lead_id="L-1", email="ana@example.com", first_name="Ana", phone="555-0100",
                last_service="SEO", status=LeadStatus.NEEDS_MANUAL_REVIEW)


class TestFormatting:
    def test_review_email(self):
        subject, body = format_review_email(make_lead(), "Low confidence", "z" * 400, 300)
        assert subject == "Lead Needs Manual Review: Ana (L-1)"
        assert "Reason: Low confidence" in body
        assert body.endswith("z" * 300 + "...")

    def test_call_alert(self):
        subject, body, slack = format_call_alert(make_lead(), "Funnels", "Pending")
        assert subject == "NEW CALL - Ana"
        assert body == "Service: Funnels\nTime: Pending\nContact: ana@example.com | 555-0100"
        assert slack.startswith("New Call Alert!\nLead: Ana\n")

    def test_booking_time_in_local_zone(self):
        moment = datetime(2025, 3, 14, 18, 0, tzinfo=timezone.utc)
        assert format_booking_time(moment, "America/New_York") == "2025-03-14 14:00 EDT"

    def test_booking_time_missing_or_bad(self):
        assert format_booking_time(None, "America/New_York") == "Pending"
        assert format_booking_time("not a time", "America/New_York") == "Pending"


class TestNotifier:
    def setup_method(self):
        self.send_email = AsyncMock(return_value=True)

    def test_manual_review_email_and_slack(self):
        notifier = Notifier(make_settings(slack_webhook_url="https://hooks.slack.test/x"), self.send_email)
        with patch("leadflow.services.notifications.send_slack_message", new=AsyncMock(return_value=True)) as slack:
            assert asyncio.run(notifier.notify_manual_review(make_lead(), "Low confidence", "Maybe?"))
        to, subject, _ = self.send_email.call_args.args
        assert to == "owner@example.com"
        assert subject.startswith("Lead Needs Manual Review")
        assert slack.call_args.kwargs["blocks"]

    def test_no_review_email_configured(self):
        notifier = Notifier(make_settings(review_email=""), self.send_email)
        with patch("leadflow.services.notifications.send_slack_message", new=AsyncMock(return_value=False)):
            assert not asyncio.run(notifier.notify_manual_review(make_lead(), "x", "y"))
        self.send_email.assert_not_called()

    def test_channel_failure_never_raises(self):
        self.send_email.side_effect = ConnectionError("smtp down")
        notifier = Notifier(make_settings(), self.send_email)
        with patch("leadflow.services.notifications.send_slack_message", new=AsyncMock(side_effect=RuntimeError)):
            assert not asyncio.run(notifier.notify_hot_lead(make_lead(), ["Funnels"], "HOT"))

    def test_hot_lead_alert_body(self):
        notifier = Notifier(make_settings(), self.send_email)
        with patch("leadflow.services.notifications.send_slack_message", new=AsyncMock(return_value=False)):
            asyncio.run(notifier.notify_hot_lead(make_lead(), ["Funnels", "AI Automation"], "HOT - AI Classified"))
        _, subject, body = self.send_email.call_args.args
        assert subject == "NEW CALL - Ana"
        assert "Service: Funnels, AI Automation" in body
        assert "Time: Pending" in body
        assert body.endswith("Status: HOT - AI Classified")

    def test_booking_alert_uses_booking_time(self):
        notifier = Notifier(make_settings(), self.send_email)
        with patch("leadflow.services.notifications.send_slack_message", new=AsyncMock(return_value=True)):
            asyncio.run(notifier.notify_booking(make_lead(), None, datetime(2025, 3, 14, 18, 0, tzinfo=timezone.utc)))
        _, _, body = self.send_email.call_args.args
        assert "Service: SEO" in body
        assert "Time: 2025-03-14 14:00 EDT" in body
