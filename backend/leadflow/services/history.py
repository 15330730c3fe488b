"""Interaction history digest handed to the classifier and follow-up writer.

The digest combines the lead's current status, its most recent activity log
entries and the latest messages exchanged with it. Every lookup may fail
independently; a failure degrades the digest but never the caller, since the
reply job calls this while holding its lock.
"""

from datetime import datetime

import structlog

from leadflow.config import Settings
from leadflow.services.lifecycle import local_date
from leadflow.services.text import truncate

logger = structlog.get_logger()

MAX_LOG_ENTRIES = 3
LOG_DETAIL_CHARS = 70
MAX_MESSAGES = 2
MESSAGE_SNIPPET_CHARS = 100


class HistorySummarizer:
    def __init__(self, leads, activity, transport, settings: Settings):
        self.leads = leads
        self.activity = activity
        self.transport = transport
        self.settings = settings

    def _date(self, moment: datetime | None) -> str:
        if moment is None:
            return "Unknown date"
        return local_date(moment, self.settings.timezone).isoformat()

    def _log_lines(self, lead_id: str | None, email: str | None) -> list[str]:
        if not lead_id:
            return []
        try:
            entries = self.activity.recent_for_lead(lead_id, limit=MAX_LOG_ENTRIES)
        except Exception as e:
            logger.warning("history_logs_unavailable", lead_id=lead_id, email=email, error=str(e))
            return []
        # oldest of the selected entries first
        return [
            f"  - {self._date(entry.timestamp)}: {entry.action} - {(entry.details or '')[:LOG_DETAIL_CHARS]}..."
            for entry in reversed(entries)
        ]

    def _message_lines(self, lead_id: str | None, email: str | None) -> list[str]:
        if not email:
            return []
        try:
            thread = self.transport.thread_for(email)
        except Exception as e:
            logger.warning("history_messages_unavailable", lead_id=lead_id, email=email, error=str(e))
            return [f"(Warning: Could not retrieve message history due to error: {e})"]
        if thread is None or not thread.messages:
            return []

        lines = []
        for message in reversed(thread.messages[-MAX_MESSAGES:]):
            lines.append(f"  - Date: {self._date(message.sent_at)}, From: {message.sender}")
            lines.append(f'    Snippet: "{(message.body or "")[:MESSAGE_SNIPPET_CHARS]}..."')
        return lines

    def summarize(self, lead_id: str | None, email: str | None) -> str:
        """Multi-section digest, or a one-line note when there is nothing to show."""
        name = "Prospect"
        status = "Unknown"
        header: list[str] = []
        try:
            lead = self.leads.find(lead_id=lead_id, email=email)
            if lead:
                name = lead.display_name
                status = lead.status.value
            else:
                logger.warning("history_lead_not_found", lead_id=lead_id, email=email)
        except Exception as e:
            logger.warning("history_lead_lookup_failed", lead_id=lead_id, email=email, error=str(e))
            header.append("(Warning: Could not retrieve latest lead status/name details due to error.)")

        who = email or lead_id
        log_lines = self._log_lines(lead_id, email)
        message_lines = self._message_lines(lead_id, email)
        has_messages = any(not line.startswith("(Warning:") for line in message_lines)

        if not log_lines and not has_messages:
            summary = f"No significant prior interaction found for {name} ({who}). Current Status: {status}."
            warnings = header + message_lines
            return "\n".join(warnings + [summary]) if warnings else summary

        lines = header + [
            f"Interaction History with {name} ({who}):",
            f"- Current Lead Status: {status}.",
        ]
        if log_lines:
            lines.append("Recent Logs:")
            lines.extend(log_lines)
        if has_messages:
            lines.append(f"Last Email in Thread (up to {MAX_MESSAGES} most recent):")
        lines.extend(message_lines)
        return "\n".join(lines)

    def bounded(self, lead_id: str | None, email: str | None) -> str:
        """``summarize`` capped at ``max_history_chars``, marker included."""
        return truncate(
            self.summarize(lead_id, email),
            self.settings.max_history_chars,
            self.settings.history_truncation_marker,
        )
