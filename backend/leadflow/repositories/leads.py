"""Lead store - typed access to lead rows so the decision core never sees storage shape."""

import uuid
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from leadflow.models.lead import Lead, LeadStatus


class LeadNotFoundError(Exception):
    pass


def new_lead_id() -> str:
    return str(uuid.uuid4())


class LeadRepository:
    def __init__(self, session: Session):
        self.session = session

    def find(self, lead_id: str | None = None, email: str | None = None) -> Lead | None:
        """Find by lead id, falling back to a case-insensitive email match."""
        if lead_id:
            lead = self.session.execute(select(Lead).where(Lead.lead_id == lead_id)).scalar_one_or_none()
            if lead:
                return lead
        if email:
            return self.session.execute(
                select(Lead).where(func.lower(Lead.email) == email.strip().lower()).order_by(Lead.id).limit(1)
            ).scalar_one_or_none()
        return None

    def get(self, lead_id: str) -> Lead:
        lead = self.find(lead_id=lead_id)
        if not lead:
            raise LeadNotFoundError(f"Lead {lead_id} not found")
        return lead

    def all(self) -> list[Lead]:
        return list(self.session.execute(select(Lead).order_by(Lead.id)).scalars())

    def with_status(self, *statuses: LeadStatus) -> list[Lead]:
        return list(self.session.execute(
            select(Lead).where(Lead.status.in_(statuses)).order_by(Lead.id)
        ).scalars())

    def exists(self, lead_id: str | None = None, email: str | None = None) -> bool:
        query = select(Lead.id)
        clauses = []
        if lead_id:
            clauses.append(Lead.lead_id == lead_id)
        if email:
            clauses.append(func.lower(Lead.email) == email.strip().lower())
        if not clauses:
            return False
        return self.session.execute(query.where(or_(*clauses)).limit(1)).first() is not None

    def add(
        self,
        email: str,
        first_name: str = "",
        last_service: str = "",
        phone: str | None = None,
        status: LeadStatus = LeadStatus.PENDING,
        last_contact: datetime | None = None,
        lead_id: str | None = None,
    ) -> Lead:
        lead = Lead(
            lead_id=lead_id,
            email=email.strip().lower(),
            first_name=first_name or "",
            last_service=last_service or "",
            phone=phone or None,
            status=status,
            last_contact=last_contact,
        )
        self.session.add(lead)
        self.session.flush()
        return lead

    def assign_lead_id(self, lead: Lead) -> str:
        """Give a lead its permanent id. Existing ids are never replaced."""
        if not lead.lead_id:
            lead.lead_id = new_lead_id()
        return lead.lead_id

    def flush(self) -> None:
        """Persist pending changes."""
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
