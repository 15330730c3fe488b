"""Job run history and lead listing endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from leadflow.database import get_db
from leadflow.middleware.auth import verify_admin_token
from leadflow.models.lead import Lead, LeadStatus
from leadflow.models.run import JobRun
from leadflow.schemas.common import JobRunResponse, LeadResponse, LeadStatusCount

router = APIRouter(tags=["runs"])


@router.get("/runs", response_model=list[JobRunResponse])
def list_runs(
    job: str | None = None,
    status: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_db),
):
    """List batch job runs, newest first."""
    query = select(JobRun).order_by(JobRun.started_at.desc())
    if job:
        query = query.where(JobRun.job == job)
    if status:
        query = query.where(JobRun.status == status)
    query = query.offset((page - 1) * per_page).limit(per_page)

    runs = db.execute(query).scalars().all()
    return [JobRunResponse.model_validate(r) for r in runs]


@router.get("/runs/{run_id}", response_model=JobRunResponse)
def get_run(
    run_id: int,
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_db),
):
    run = db.execute(select(JobRun).where(JobRun.id == run_id)).scalar_one_or_none()
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")
    return JobRunResponse.model_validate(run)


@router.get("/leads", response_model=list[LeadResponse])
def list_leads(
    status: LeadStatus | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_db),
):
    """List leads, optionally by lifecycle status."""
    query = select(Lead).order_by(Lead.updated_at.desc())
    if status:
        query = query.where(Lead.status == status)
    query = query.offset((page - 1) * per_page).limit(per_page)

    leads = db.execute(query).scalars().all()
    return [LeadResponse.model_validate(l) for l in leads]


@router.get("/leads/summary", response_model=list[LeadStatusCount])
def lead_status_summary(
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_db),
):
    """Lead counts per status."""
    rows = db.execute(select(Lead.status, func.count(Lead.id)).group_by(Lead.status)).all()
    return [LeadStatusCount(status=status, count=count) for status, count in rows]


@router.get("/leads/{lead_id}", response_model=LeadResponse)
def get_lead(
    lead_id: str,
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_db),
):
    lead = db.execute(select(Lead).where(Lead.lead_id == lead_id)).scalar_one_or_none()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return LeadResponse.model_validate(lead)
