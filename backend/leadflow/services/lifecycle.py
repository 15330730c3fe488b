"""Lead lifecycle state machine.

Owns the legal status transitions and the staleness arithmetic used by the
follow-up and cleanup jobs. Staleness is measured in calendar days between
local midnights in the configured timezone, not in elapsed hours.
"""

import enum
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import structlog

from leadflow.models.lead import Lead, LeadStatus, TERMINAL_STATUSES

logger = structlog.get_logger()


class LifecycleEvent(str, enum.Enum):
    INITIAL_SENT = "initial_sent"
    INVALID_ADDRESS = "invalid_address"
    FOLLOW_UP_SENT = "follow_up_sent"
    DISQUALIFIED = "disqualified"  # opt-out or negative reply
    QUALIFIED = "qualified"
    NEEDS_REVIEW = "needs_review"
    ABANDONED = "abandoned"
    BOOKED = "booked"


_PRE_TERMINAL = frozenset(s for s in LeadStatus if s not in TERMINAL_STATUSES)
_AWAITING = frozenset({LeadStatus.SENT, LeadStatus.FOLLOW_UP_1})

# event -> (allowed source statuses, target status)
TRANSITIONS: dict[LifecycleEvent, tuple[frozenset[LeadStatus], LeadStatus]] = {
    LifecycleEvent.INITIAL_SENT: (frozenset({LeadStatus.PENDING}), LeadStatus.SENT),
    LifecycleEvent.INVALID_ADDRESS: (frozenset({LeadStatus.PENDING}), LeadStatus.INVALID_EMAIL),
    LifecycleEvent.FOLLOW_UP_SENT: (frozenset({LeadStatus.SENT}), LeadStatus.FOLLOW_UP_1),
    LifecycleEvent.DISQUALIFIED: (_AWAITING, LeadStatus.UNQUALIFIED),
    LifecycleEvent.QUALIFIED: (_AWAITING, LeadStatus.HOT),
    LifecycleEvent.NEEDS_REVIEW: (_AWAITING, LeadStatus.NEEDS_MANUAL_REVIEW),
    LifecycleEvent.ABANDONED: (frozenset({LeadStatus.FOLLOW_UP_1}), LeadStatus.ABANDONED),
    LifecycleEvent.BOOKED: (_PRE_TERMINAL, LeadStatus.BOOKED),
}

# Routing outcomes map onto lifecycle events one to one.
EVENT_FOR_STATUS = {
    LeadStatus.UNQUALIFIED: LifecycleEvent.DISQUALIFIED,
    LeadStatus.HOT: LifecycleEvent.QUALIFIED,
    LeadStatus.NEEDS_MANUAL_REVIEW: LifecycleEvent.NEEDS_REVIEW,
}


class IllegalTransitionError(Exception):
    def __init__(self, lead: Lead, event: LifecycleEvent):
        self.lead_id = lead.lead_id
        self.status = lead.status
        self.event = event
        super().__init__(f"Cannot apply {event.value} to lead {lead.lead_id or lead.email} in status {lead.status.value}")


def can_apply(status: LeadStatus, event: LifecycleEvent) -> bool:
    sources, _ = TRANSITIONS[event]
    return status in sources


def transition(lead: Lead, event: LifecycleEvent, now: datetime | None = None, touch: bool = True) -> LeadStatus:
    """Apply ``event`` to ``lead`` in place and return the new status.

    ``touch`` also stamps ``last_contact``; booking events leave it alone.
    """
    sources, target = TRANSITIONS[event]
    if lead.status not in sources:
        raise IllegalTransitionError(lead, event)
    previous = lead.status
    lead.status = target
    if touch:
        lead.last_contact = now or datetime.now(timezone.utc)
    logger.info("lead_transitioned", lead_id=lead.lead_id, lifecycle_event=event.value,
                from_status=previous.value, to_status=target.value)
    return target


def local_date(moment: datetime, tz: str) -> date:
    """Calendar date of ``moment`` in ``tz``. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz)).date()


def calendar_days_since(last_contact: datetime, now: datetime, tz: str) -> int:
    return (local_date(now, tz) - local_date(last_contact, tz)).days


def is_due(last_contact: datetime, now: datetime, days: int, tz: str) -> bool:
    return calendar_days_since(last_contact, now, tz) >= days


def parse_last_contact(value) -> datetime | None:
    """Coerce a stored or imported last-contact value to a datetime.

    Raises ValueError for values that are present but not a date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d", "%m/%d/%Y %H:%M:%S", "%m/%d/%Y"):
            try:
                return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
        return datetime.fromisoformat(text)
    raise ValueError(f"Invalid last contact value: {value!r}")
