"""Activity log model - append-only audit trail of every action taken on a lead."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from leadflow.database import Base
from leadflow.models.lead import utcnow


class ActivityEntry(Base):
    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    lead_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # e.g.: initial_sent, follow_up_sent, reply_opt_out, reply_classified,
    #       manual_review, hot_lead, lead_abandoned, lead_booked, batch_flush
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String(20), default="INFO")  # DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL
