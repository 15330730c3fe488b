"""Batch job run tracking model."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from leadflow.database import Base
from leadflow.models.lead import utcnow


class JobRun(Base):
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    job: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # initial_outreach, follow_up, replies, cleanup
    status: Mapped[str] = mapped_column(String(30), default="running")  # running, completed, failed
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Progress
    processed: Mapped[int] = mapped_column(Integer, default=0)
    updated: Mapped[int] = mapped_column(Integer, default=0)
    emails_sent: Mapped[int] = mapped_column(Integer, default=0)

    # Timing
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
