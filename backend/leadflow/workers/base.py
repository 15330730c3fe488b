"""Base worker utilities shared by the four batch jobs.

Every job runs through ``run_batch``: a per-job Redis lock with a bounded wait
(the run is skipped if another run holds it), a ``JobRun`` record, periodic
commits every ``flush_batch_size`` updates, a top-level catch that logs at
critical level, and a lock release on every path.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable

import redis as redis_lib
import structlog
from redis.exceptions import LockError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadflow.config import Settings, get_settings
from leadflow.database import SessionLocal
from leadflow.models.run import JobRun
from leadflow.repositories import ActivityLog, LeadRepository
from leadflow.services.quota import get_redis, job_lock

logger = structlog.get_logger()


def run_async(coro):
    """Run an async coroutine from sync RQ worker context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_sync_session() -> Session:
    return SessionLocal()


class SendThrottle:
    """Keeps at least ``delay_seconds`` between consecutive outbound sends."""

    def __init__(self, delay_seconds: float, sleep: Callable[[float], None] = time.sleep):
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self._last_send: float | None = None

    def wait(self) -> None:
        if self._last_send is None or self.delay_seconds <= 0:
            return
        remaining = self.delay_seconds - (time.monotonic() - self._last_send)
        if remaining > 0:
            self.sleep(remaining)

    def mark(self) -> None:
        self._last_send = time.monotonic()


class BatchContext:
    """State handed to a job body for one locked run."""

    def __init__(
        self,
        job: str,
        session: Session,
        settings: Settings,
        r: redis_lib.Redis,
        now: datetime,
        throttle: SendThrottle | None = None,
    ):
        self.job = job
        self.session = session
        self.settings = settings
        self.redis = r
        self.now = now
        self.throttle = throttle or SendThrottle(settings.send_delay_seconds)
        self.leads = LeadRepository(session)
        self.activity = ActivityLog(session)

        self.processed = 0
        self.updated = 0
        self.emails_sent = 0
        self._pending = 0

    def record_update(self) -> None:
        """Count one persisted change; commit once a full batch is pending."""
        self.updated += 1
        self._pending += 1
        if self._pending >= self.settings.flush_batch_size:
            self.flush()

    def flush(self) -> None:
        if self._pending:
            logger.info("batch_flushed", job=self.job, updates=self._pending, total_updated=self.updated)
        self.session.commit()
        self._pending = 0

    def send(self, transport, to_email: str, subject: str, body: str) -> bool:
        """Throttled send through ``transport``; counts successful sends."""
        self.throttle.wait()
        try:
            sent = run_async(transport.send(to_email, subject, body))
        finally:
            self.throttle.mark()
        if sent:
            self.emails_sent += 1
        return bool(sent)


def run_batch(
    job: str,
    body: Callable[[BatchContext], None],
    settings: Settings | None = None,
    session_factory: Callable[[], Session] | None = None,
    redis_client: redis_lib.Redis | None = None,
    now: datetime | None = None,
    throttle: SendThrottle | None = None,
) -> JobRun | None:
    """Run ``body`` under the job lock. Returns the run record, or None if skipped."""
    settings = settings or get_settings()
    r = redis_client or get_redis(settings)
    lock = job_lock(r, job, settings)

    try:
        acquired = lock.acquire()
    except redis_lib.RedisError as e:
        logger.critical("job_lock_unavailable", job=job, error=str(e))
        return None
    if not acquired:
        logger.warning("lock_not_acquired", job=job, waited_seconds=settings.lock_wait_seconds)
        return None

    session = (session_factory or get_sync_session)()
    started = time.time()
    run = JobRun(job=job, status="running", started_at=now or datetime.now(timezone.utc))
    ctx = BatchContext(job, session, settings, r, run.started_at, throttle)
    logger.info("job_started", job=job)

    try:
        session.add(run)
        session.commit()
        body(ctx)
        run.status = "completed"
    except Exception as e:
        logger.critical("job_failed", job=job, error=str(e), exc_info=True)
        if isinstance(e, SQLAlchemyError):
            session.rollback()
        run.status = "failed"
        run.error_message = str(e)[:2000]
        ctx.activity.record(f"{job}_failed", details=str(e), severity="CRITICAL")
    finally:
        run.processed = ctx.processed
        run.updated = ctx.updated
        run.emails_sent = ctx.emails_sent
        run.completed_at = datetime.now(timezone.utc)
        run.duration_seconds = round(time.time() - started, 3)
        try:
            session.add(run)
            ctx.flush()
        except SQLAlchemyError as e:
            logger.critical("job_final_flush_failed", job=job, error=str(e))
            session.rollback()
        finally:
            session.close()
            try:
                lock.release()
            except LockError as e:
                logger.warning("job_lock_release_failed", job=job, error=str(e))

    logger.info("job_finished", job=job, status=run.status, processed=run.processed,
                updated=run.updated, emails_sent=run.emails_sent, duration=run.duration_seconds)
    return run
