"""Liveness of the stores the batch jobs depend on, plus Prometheus counters."""

import redis as redis_lib
from fastapi import APIRouter, Response
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from leadflow import __version__
from leadflow.config import settings
from leadflow.database import SessionLocal
from leadflow.models.run import JobRun
from leadflow.schemas.common import HealthResponse
from leadflow.services.quota import get_redis

router = APIRouter(tags=["health"])

WEBHOOK_REQUESTS = Counter("booking_webhook_requests_total", "Booking webhook deliveries", ["event", "outcome"])
JOBS_ENQUEUED = Counter("jobs_enqueued_total", "Batch jobs enqueued from the API", ["job"])
ERRORS = Counter("errors_total", "Total errors", ["type"])


def _last_runs(session) -> dict[str, str]:
    """Status of the most recent run of each job."""
    latest = (
        select(JobRun.job, func.max(JobRun.id).label("run_id"))
        .group_by(JobRun.job)
        .subquery()
    )
    rows = session.execute(select(JobRun.job, JobRun.status).join(latest, JobRun.id == latest.c.run_id))
    return {job: status for job, status in rows}


@router.get("/health", response_model=HealthResponse)
def health_check():
    db_status = "ok"
    redis_status = "ok"
    last_runs: dict[str, str] = {}

    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
            last_runs = _last_runs(session)
    except SQLAlchemyError:
        db_status = "error"

    try:
        get_redis(settings).ping()
    except redis_lib.RedisError:
        redis_status = "error"

    return HealthResponse(
        status="healthy" if db_status == redis_status == "ok" else "degraded",
        version=__version__,
        db=db_status,
        redis=redis_status,
        inbox="configured" if settings.imap_host else "not_configured",
        last_runs=last_runs,
    )


@router.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
