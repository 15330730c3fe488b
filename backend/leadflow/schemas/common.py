"""Common response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from leadflow.models.lead import LeadStatus


class JobRunResponse(BaseModel):
    id: int
    job: str
    status: str
    error_message: Optional[str]
    processed: int
    updated: int
    emails_sent: int
    started_at: datetime
    completed_at: Optional[datetime]
    duration_seconds: Optional[float]

    model_config = {"from_attributes": True}


class ActivityEntryResponse(BaseModel):
    id: int
    timestamp: datetime
    lead_id: Optional[str]
    email: Optional[str]
    action: str
    details: Optional[str]
    severity: str

    model_config = {"from_attributes": True}


class LeadResponse(BaseModel):
    id: int
    lead_id: Optional[str]
    email: str
    first_name: str
    last_service: str
    phone: Optional[str]
    status: LeadStatus
    last_contact: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class JobEnqueuedResponse(BaseModel):
    ok: bool = True
    job: str
    queue_job_id: str


class LeadStatusCount(BaseModel):
    status: LeadStatus
    count: int


class HealthResponse(BaseModel):
    status: str
    version: str
    db: str
    redis: str
    inbox: str
    last_runs: dict[str, str] = {}
