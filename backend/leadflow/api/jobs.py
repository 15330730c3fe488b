"""Manual job triggers - enqueue a batch job on the RQ worker queue."""

from fastapi import APIRouter, Depends, HTTPException
from rq import Queue

from leadflow.api.health import ERRORS, JOBS_ENQUEUED
from leadflow.config import get_settings
from leadflow.middleware.auth import verify_admin_token
from leadflow.schemas.common import JobEnqueuedResponse
from leadflow.services.quota import get_redis

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/jobs", tags=["jobs"])

JOB_TASKS = {
    "initial_outreach": "leadflow.workers.initial_outreach.send_initial_emails",
    "follow_up": "leadflow.workers.follow_up.send_follow_ups",
    "replies": "leadflow.workers.replies.process_replies",
    "cleanup": "leadflow.workers.follow_up.cleanup_stale_leads",
}


def _get_queue(name: str = "jobs") -> Queue:
    return Queue(name, connection=get_redis(get_settings()))


@router.post("/{job}", response_model=JobEnqueuedResponse, status_code=202)
def trigger_job(job: str, admin: str = Depends(verify_admin_token)):
    """Queue one run of ``job``. Overlapping runs are skipped by the job lock."""
    task = JOB_TASKS.get(job)
    if not task:
        raise HTTPException(status_code=404, detail=f"Unknown job '{job}'")
    try:
        queued = _get_queue().enqueue(task, job_timeout=1800)
    except Exception as e:
        logger.error("failed_to_enqueue_job", job=job, error=str(e))
        ERRORS.labels(type="queue").inc()
        raise HTTPException(status_code=503, detail="Job queue unavailable")

    JOBS_ENQUEUED.labels(job=job).inc()
    logger.info("job_enqueued", job=job, queue_job_id=queued.id, admin=admin)
    return JobEnqueuedResponse(job=job, queue_job_id=queued.id)
