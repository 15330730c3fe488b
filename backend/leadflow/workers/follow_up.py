"""Timed lifecycle jobs - generic follow-up (SENT -> FOLLOW_UP_1) and cleanup
(FOLLOW_UP_1 -> ABANDONED).

Both measure staleness in calendar days from ``last_contact`` in the
configured timezone. Leads with a missing or unreadable last contact are
skipped with a warning.
"""

import structlog
from sqlalchemy.exc import SQLAlchemyError

from leadflow.adapters.email import MailTransport
from leadflow.models.lead import Lead, LeadStatus
from leadflow.services.classifier import OutreachWriter
from leadflow.services.lifecycle import LifecycleEvent, is_due, parse_last_contact, transition
from leadflow.services.oracle import CompletionOracle
from leadflow.workers.base import BatchContext, run_async, run_batch
from leadflow.workers.initial_outreach import with_footer

logger = structlog.get_logger()

FOLLOW_UP_JOB = "follow_up"
CLEANUP_JOB = "cleanup"


def follow_up_subject(service: str) -> str:
    return f"Following up on your Free Audit for {service or 'your business'}"


def _is_stale(ctx: BatchContext, lead: Lead, days: int) -> bool:
    try:
        last_contact = parse_last_contact(lead.last_contact)
    except (TypeError, ValueError):
        last_contact = None
    if last_contact is None:
        ctx.activity.record("last_contact_invalid", lead.lead_id, lead.email,
                            f"Missing or invalid last contact date: {lead.last_contact!r}", "WARNING")
        return False
    return is_due(last_contact, ctx.now, days, ctx.settings.timezone)


def _follow_up_one(ctx: BatchContext, lead: Lead, transport, writer: OutreachWriter) -> None:
    body = run_async(writer.follow_up(lead.display_name, lead.last_service))
    if not body:
        ctx.activity.record("follow_up_generation_failed", lead.lead_id, lead.email,
                            "Failed to generate AI content for follow-up email.", "ERROR")
        return

    subject = follow_up_subject(lead.last_service)
    if not ctx.send(transport, lead.email, subject, with_footer(body, ctx.settings.email_footer)):
        ctx.activity.record("follow_up_send_failed", lead.lead_id, lead.email,
                            "Failed to send follow-up email.", "WARNING")
        return

    transition(lead, LifecycleEvent.FOLLOW_UP_SENT, ctx.now)
    ctx.activity.record("follow_up_sent", lead.lead_id, lead.email, f"Follow-up email sent. Subject: {subject}", "SUCCESS")
    ctx.record_update()


def _lead_failed(ctx: BatchContext, action: str, lead_id, email, error: Exception) -> None:
    if isinstance(error, SQLAlchemyError):
        ctx.session.rollback()
    logger.error(f"{ctx.job}_lead_failed", lead_id=lead_id, email=email, error=str(error))
    ctx.activity.record(action, lead_id, email, str(error), "ERROR")
    ctx.flush()


def _run_follow_ups(ctx: BatchContext, transport, writer: OutreachWriter) -> None:
    for lead in ctx.leads.with_status(LeadStatus.SENT):
        ctx.processed += 1
        lead_id, email = lead.lead_id, lead.email
        try:
            if _is_stale(ctx, lead, ctx.settings.follow_up_after_days):
                _follow_up_one(ctx, lead, transport, writer)
        except Exception as e:
            _lead_failed(ctx, "follow_up_error", lead_id, email, e)


def _run_cleanup(ctx: BatchContext) -> None:
    for lead in ctx.leads.with_status(LeadStatus.FOLLOW_UP_1):
        ctx.processed += 1
        lead_id, email = lead.lead_id, lead.email
        try:
            if not _is_stale(ctx, lead, ctx.settings.abandon_after_days):
                continue
            transition(lead, LifecycleEvent.ABANDONED, ctx.now)
            ctx.activity.record("lead_abandoned", lead_id, email, "Lead status changed to ABANDONED.", "SUCCESS")
            ctx.record_update()
        except Exception as e:
            _lead_failed(ctx, "cleanup_error", lead_id, email, e)


def send_follow_ups(settings=None, transport=None, writer=None, **batch_options):
    """Entry point for the scheduled follow-up job. Not subject to the daily quota."""

    def body(ctx: BatchContext) -> None:
        _run_follow_ups(
            ctx,
            transport or MailTransport(ctx.settings),
            writer or OutreachWriter(CompletionOracle(ctx.settings), ctx.settings),
        )

    return run_batch(FOLLOW_UP_JOB, body, settings=settings, **batch_options)


def cleanup_stale_leads(settings=None, **batch_options):
    """Entry point for the scheduled cleanup job."""
    return run_batch(CLEANUP_JOB, _run_cleanup, settings=settings, **batch_options)
