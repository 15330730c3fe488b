"""Activity log store - append-only audit entries, mirrored to structlog."""

from sqlalchemy import select
from sqlalchemy.orm import Session

import structlog

from leadflow.models.audit import ActivityEntry

logger = structlog.get_logger()

_LEVELS = {
    "DEBUG": "debug",
    "INFO": "info",
    "SUCCESS": "info",
    "WARNING": "warning",
    "ERROR": "error",
    "CRITICAL": "critical",
}


class ActivityLog:
    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        action: str,
        lead_id: str | None = None,
        email: str | None = None,
        details: str | None = None,
        severity: str = "INFO",
    ) -> ActivityEntry:
        """Append an entry. It is committed with the caller's next flush."""
        entry = ActivityEntry(
            action=action,
            lead_id=lead_id,
            email=email,
            details=details[:2000] if details else None,
            severity=severity,
        )
        self.session.add(entry)
        log = getattr(logger, _LEVELS.get(severity, "info"))
        log(action, lead_id=lead_id, email=email, details=details[:300] if details else None, severity=severity)
        return entry

    def recent_for_lead(self, lead_id: str, limit: int = 3) -> list[ActivityEntry]:
        """Most recent entries for a lead, newest first."""
        if not lead_id:
            return []
        result = self.session.execute(
            select(ActivityEntry)
            .where(ActivityEntry.lead_id == lead_id)
            .order_by(ActivityEntry.timestamp.desc(), ActivityEntry.id.desc())
            .limit(limit)
        )
        return list(result.scalars())
