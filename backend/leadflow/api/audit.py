"""Activity log viewer endpoint."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from leadflow.database import get_db
from leadflow.middleware.auth import verify_admin_token
from leadflow.models.audit import ActivityEntry
from leadflow.schemas.common import ActivityEntryResponse

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("", response_model=list[ActivityEntryResponse])
def list_activity(
    lead_id: str | None = None,
    email: str | None = None,
    action: str | None = None,
    severity: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_db),
):
    """List activity entries with filters, newest first."""
    query = select(ActivityEntry).order_by(ActivityEntry.timestamp.desc(), ActivityEntry.id.desc())

    if lead_id:
        query = query.where(ActivityEntry.lead_id == lead_id)
    if email:
        query = query.where(ActivityEntry.email == email.strip().lower())
    if action:
        query = query.where(ActivityEntry.action == action)
    if severity:
        query = query.where(ActivityEntry.severity == severity.upper())

    query = query.offset((page - 1) * per_page).limit(per_page)

    entries = db.execute(query).scalars().all()
    return [ActivityEntryResponse.model_validate(e) for e in entries]
