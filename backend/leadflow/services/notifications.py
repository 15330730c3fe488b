"""Notification service - reviewer and call alerts over email + Slack.

Alerts are best-effort: every channel failure is logged and reported as
``False``, never raised into the job that triggered it.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog

from leadflow.adapters.slack import send_slack_message
from leadflow.config import Settings
from leadflow.models.lead import Lead
from leadflow.services.lifecycle import parse_last_contact

logger = structlog.get_logger()


def format_booking_time(value, tz: str) -> str:
    """Render a booking time as ``YYYY-MM-DD HH:MM TZ`` in ``tz``, else "Pending"."""
    if not value:
        return "Pending"
    try:
        moment = parse_last_contact(value)
    except (TypeError, ValueError):
        logger.warning("booking_time_unparseable", value=str(value)[:100])
        return "Pending"
    if moment is None:
        return "Pending"
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz)).strftime("%Y-%m-%d %H:%M %Z")


def format_review_email(lead: Lead, reason: str, reply_text: str, excerpt_chars: int) -> tuple[str, str]:
    subject = f"Lead Needs Manual Review: {lead.display_name} ({lead.lead_id})"
    body = (
        f"Lead: {lead.display_name} ({lead.email}, ID: {lead.lead_id}) has been flagged for manual review.\n\n"
        f"Reason: {reason}\n\n"
        f"Please review their status and follow up manually.\n\n"
        f"Original reply snippet (first {excerpt_chars} chars):\n"
        f"{(reply_text or '')[:excerpt_chars]}..."
    )
    return subject, body


def format_review_notification(lead: Lead, reason: str, reply_text: str, excerpt_chars: int) -> tuple[str, list]:
    """Format a manual review alert for Slack."""
    text = f"Lead needs manual review: {lead.display_name} ({lead.email})"
    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Lead Needs Manual Review"}
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Lead:* {lead.display_name}"},
                {"type": "mrkdwn", "text": f"*Email:* {lead.email}"},
                {"type": "mrkdwn", "text": f"*Lead ID:* {lead.lead_id or 'Unassigned'}"},
                {"type": "mrkdwn", "text": f"*Status:* {lead.status.value}"},
            ]
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Reason:* {reason}\n{(reply_text or '')[:excerpt_chars]}..."}
        },
    ]
    return text, blocks


def format_call_alert(lead: Lead, service: str, time_display: str) -> tuple[str, str, str]:
    """Subject, email body and Slack text for a "NEW CALL" alert."""
    contact = f"{lead.email} | {lead.phone or ''}"
    subject = f"NEW CALL - {lead.display_name}"
    body = f"Service: {service}\nTime: {time_display}\nContact: {contact}"
    slack_text = f"New Call Alert!\nLead: {lead.display_name}\nService: {service}\nTime: {time_display}\nContact: {contact}"
    return subject, body, slack_text


class Notifier:
    def __init__(self, settings: Settings, send_email):
        """``send_email(to, subject, body)`` is the outbound mail coroutine."""
        self.settings = settings
        self.send_email = send_email

    async def _email(self, subject: str, body: str, lead: Lead) -> bool:
        if not self.settings.review_email:
            logger.warning("notification_email_skipped_no_recipient", lead_id=lead.lead_id)
            return False
        try:
            return bool(await self.send_email(self.settings.review_email, subject, body))
        except Exception as e:
            logger.error("notification_email_failed", lead_id=lead.lead_id, error=str(e))
            return False

    async def _slack(self, text: str, lead: Lead, blocks: list | None = None) -> bool:
        try:
            return await send_slack_message(self.settings.slack_webhook_url, text, blocks=blocks)
        except Exception as e:
            logger.error("notification_slack_failed", lead_id=lead.lead_id, error=str(e))
            return False

    async def notify_manual_review(self, lead: Lead, reason: str, reply_text: str) -> bool:
        excerpt = self.settings.reply_excerpt_chars
        subject, body = format_review_email(lead, reason, reply_text, excerpt)
        emailed = await self._email(subject, body, lead)
        text, blocks = format_review_notification(lead, reason, reply_text, excerpt)
        posted = await self._slack(text, lead, blocks)
        logger.info("manual_review_notified", lead_id=lead.lead_id, emailed=emailed, slack=posted)
        return emailed or posted

    async def notify_hot_lead(self, lead: Lead, topics: list[str], status_line: str) -> bool:
        """Call alert for a qualified reply; the time slot shows the classification verdict."""
        subject, body, slack_text = format_call_alert(lead, ", ".join(topics) or lead.last_service, "Pending")
        body = f"{body}\nStatus: {status_line}"
        slack_text = f"{slack_text}\nStatus: {status_line}"
        emailed = await self._email(subject, body, lead)
        posted = await self._slack(slack_text, lead)
        logger.info("hot_lead_notified", lead_id=lead.lead_id, emailed=emailed, slack=posted)
        return emailed or posted

    async def notify_booking(self, lead: Lead, service: str | None, booking_time: datetime | str | None) -> bool:
        time_display = format_booking_time(booking_time, self.settings.timezone)
        subject, body, slack_text = format_call_alert(lead, service or lead.last_service, time_display)
        emailed = await self._email(subject, body, lead)
        posted = await self._slack(slack_text, lead)
        logger.info("booking_notified", lead_id=lead.lead_id, emailed=emailed, slack=posted)
        return emailed or posted
