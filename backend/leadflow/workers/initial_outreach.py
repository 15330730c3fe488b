"""Initial outreach job - first cold email to every PENDING lead.

Pipeline per lead:
1. Stop the run once today's initial-send quota is used up
2. Malformed address -> INVALID_EMAIL
3. Assign a permanent lead id if the lead has none
4. Write the email body (oracle), send it, PENDING -> SENT
"""

import structlog
from sqlalchemy.exc import SQLAlchemyError

from leadflow.adapters.email import MailTransport
from leadflow.models.lead import Lead, LeadStatus
from leadflow.services.classifier import OutreachWriter
from leadflow.services.lifecycle import LifecycleEvent, transition
from leadflow.services.oracle import CompletionOracle
from leadflow.services.quota import DailySendQuota, QuotaExceededError
from leadflow.services.text import format_plain_text_body, is_valid_email
from leadflow.workers.base import BatchContext, run_async, run_batch

logger = structlog.get_logger()

JOB_NAME = "initial_outreach"


def initial_subject(service: str) -> str:
    return f"Free Audit for {service or 'your business'}"


def with_footer(body: str, footer: str) -> str:
    formatted = format_plain_text_body(body)
    return f"{formatted}\n\n{footer}" if footer else formatted


def _send_one(ctx: BatchContext, lead: Lead, transport, writer: OutreachWriter, quota: DailySendQuota) -> None:
    if not is_valid_email(lead.email):
        transition(lead, LifecycleEvent.INVALID_ADDRESS, ctx.now)
        ctx.activity.record("invalid_email", lead.lead_id, lead.email, "Invalid email format.", "ERROR")
        ctx.record_update()
        return

    if not lead.lead_id:
        ctx.leads.assign_lead_id(lead)
        ctx.activity.record("lead_id_generated", lead.lead_id, lead.email, "Generated new Lead ID.")

    body = run_async(writer.initial(lead.display_name, lead.last_service))
    if not body:
        ctx.activity.record("initial_generation_failed", lead.lead_id, lead.email,
                            "Failed to generate AI content for initial email.", "ERROR")
        return

    subject = initial_subject(lead.last_service)
    if not ctx.send(transport, lead.email, subject, with_footer(body, ctx.settings.email_footer)):
        ctx.activity.record("initial_send_failed", lead.lead_id, lead.email,
                            "Failed to send initial email.", "WARNING")
        return

    transition(lead, LifecycleEvent.INITIAL_SENT, ctx.now)
    quota.increment()
    ctx.activity.record("initial_sent", lead.lead_id, lead.email, f"Initial email sent. Subject: {subject}", "SUCCESS")
    ctx.record_update()


def _run(ctx: BatchContext, transport, writer: OutreachWriter, quota: DailySendQuota) -> None:
    pending = ctx.leads.with_status(LeadStatus.PENDING)
    logger.info("initial_outreach_pending", count=len(pending), quota_remaining=quota.remaining())

    for lead in pending:
        try:
            quota.check()
        except QuotaExceededError as e:
            ctx.activity.record("daily_quota_reached", details=f"{e}. Stopping batch.")
            break
        ctx.processed += 1
        lead_id, email = lead.lead_id, lead.email
        try:
            _send_one(ctx, lead, transport, writer, quota)
        except Exception as e:
            if isinstance(e, SQLAlchemyError):
                ctx.session.rollback()
            logger.error("initial_outreach_lead_failed", lead_id=lead_id, email=email, error=str(e))
            ctx.activity.record("initial_send_error", lead_id, email, str(e), "ERROR")
            ctx.flush()


def send_initial_emails(settings=None, transport=None, writer=None, quota=None, **batch_options):
    """Entry point for the scheduled initial outreach job."""

    def body(ctx: BatchContext) -> None:
        _run(
            ctx,
            transport or MailTransport(ctx.settings),
            writer or OutreachWriter(CompletionOracle(ctx.settings), ctx.settings),
            quota or DailySendQuota(ctx.redis, ctx.settings.daily_email_quota, ctx.settings.timezone),
        )

    return run_batch(JOB_NAME, body, settings=settings, **batch_options)
