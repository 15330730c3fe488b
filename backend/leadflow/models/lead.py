"""Outreach lead model and lifecycle status."""

import enum
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from leadflow.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeadStatus(str, enum.Enum):
    PENDING = "PENDING"  # not yet contacted
    SENT = "SENT"  # initial email sent
    FOLLOW_UP_1 = "FOLLOW_UP_1"  # one follow-up sent, awaiting reply
    HOT = "HOT"  # qualified by reply classification, contextual follow-up sent
    UNQUALIFIED = "UNQUALIFIED"  # opted out or negative reply
    BOOKED = "BOOKED"  # meeting booked
    ABANDONED = "ABANDONED"  # no reply after follow-up
    INVALID_EMAIL = "INVALID_EMAIL"
    NEEDS_MANUAL_REVIEW = "NEEDS_MANUAL_REVIEW"


TERMINAL_STATUSES = frozenset({
    LeadStatus.BOOKED,
    LeadStatus.UNQUALIFIED,
    LeadStatus.ABANDONED,
    LeadStatus.INVALID_EMAIL,
})

# Replies are only routed for leads still waiting on us.
AWAITING_REPLY_STATUSES = frozenset({LeadStatus.SENT, LeadStatus.FOLLOW_UP_1})


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)

    # Contact info
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)  # stored lower-case
    first_name: Mapped[str] = mapped_column(String(255), default="")
    last_service: Mapped[str] = mapped_column(String(255), default="")
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Lifecycle
    status: Mapped[LeadStatus] = mapped_column(
        Enum(LeadStatus, native_enum=False, length=30), default=LeadStatus.PENDING, index=True
    )
    last_contact: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def display_name(self) -> str:
        return self.first_name or "Prospect"

    def __repr__(self) -> str:
        return f"<Lead {self.lead_id or '-'} {self.email} {self.status.value}>"
