"""Reply processing job - routes unread prospect replies.

Pipeline per unread thread:
1. Sender from the last message; unknown senders are acknowledged and skipped
2. Only leads in SENT / FOLLOW_UP_1 are routed; others are acknowledged
3. ReplyRouter decides (opt-out, classification, confidence, follow-up)
4. Apply: send the contextual follow-up (HOT) or transition directly
5. Commit the lead, then mark the thread read
6. Notify: reviewer alert for manual review, call alert for HOT

Each lead is its own unit of work; one lead failing never stops the run.
"""

import structlog

from leadflow.adapters.email import MailThread, MailTransport
from leadflow.config import load_service_catalog
from leadflow.models.lead import AWAITING_REPLY_STATUSES, Lead, LeadStatus
from leadflow.services.classifier import FollowUpWriter, ReplyClassifier
from leadflow.services.history import HistorySummarizer
from leadflow.services.lifecycle import EVENT_FOR_STATUS, LifecycleEvent, transition
from leadflow.services.notifications import Notifier
from leadflow.services.oracle import CompletionOracle
from leadflow.services.reply_router import ReplyRouter, RoutingAction, RoutingDecision
from leadflow.workers.base import BatchContext, run_async, run_batch

logger = structlog.get_logger()

JOB_NAME = "replies"


def build_router(ctx: BatchContext, transport) -> ReplyRouter:
    settings = ctx.settings
    catalog = load_service_catalog(settings.service_catalog_path or None)
    oracle = CompletionOracle(settings)
    return ReplyRouter(
        classifier=ReplyClassifier(oracle, catalog),
        writer=FollowUpWriter(oracle, catalog, settings),
        summarizer=HistorySummarizer(ctx.leads, ctx.activity, transport, settings),
        catalog=catalog,
        settings=settings,
    )


def _acknowledge(ctx: BatchContext, transport, thread: MailThread) -> None:
    if not transport.mark_read(thread):
        ctx.activity.record("mark_read_failed", email=thread.key,
                            details="Could not mark thread read; it may be scanned again.", severity="WARNING")


def _apply(ctx: BatchContext, lead: Lead, decision: RoutingDecision, transport) -> RoutingDecision:
    """Transition the lead per ``decision``; returns the decision actually applied."""
    if decision.action == RoutingAction.SEND_FOLLOW_UP and decision.email:
        outbound = decision.email
        if ctx.send(transport, outbound.to, outbound.subject, outbound.body):
            transition(lead, LifecycleEvent.QUALIFIED, ctx.now)
            ctx.activity.record("hot_lead", lead.lead_id, lead.email,
                                f"AI follow-up sent. {decision.reason}. Subject: {outbound.subject}", "SUCCESS")
            return decision
        decision = RoutingDecision(
            status=LeadStatus.NEEDS_MANUAL_REVIEW,
            reason=f"Follow-up send failed. {decision.reason}",
            action=RoutingAction.REVIEW,
            classification=decision.classification,
        )

    transition(lead, EVENT_FOR_STATUS[decision.status], ctx.now)
    if decision.status == LeadStatus.UNQUALIFIED:
        ctx.activity.record("lead_disqualified", lead.lead_id, lead.email, decision.reason, "SUCCESS")
    else:
        ctx.activity.record("manual_review", lead.lead_id, lead.email,
                            f"Lead flagged for manual review. Reason: {decision.reason}", "WARNING")
    return decision


def _notify(lead: Lead, decision: RoutingDecision, reply_text: str, notifier: Notifier) -> None:
    if decision.status == LeadStatus.NEEDS_MANUAL_REVIEW:
        run_async(notifier.notify_manual_review(lead, decision.reason, reply_text))
    elif decision.status == LeadStatus.HOT:
        topics = decision.classification.topics if decision.classification else []
        run_async(notifier.notify_hot_lead(lead, topics, decision.reason))


def process_thread(ctx: BatchContext, thread: MailThread, transport, router: ReplyRouter, notifier: Notifier) -> None:
    message = thread.last_message
    if message is None:
        return
    sender = message.sender_address
    if not sender:
        ctx.activity.record("reply_no_sender", details=f"Could not extract sender from: {message.sender}. "
                            f"Subject: {message.subject}", severity="WARNING")
        ctx.flush()
        _acknowledge(ctx, transport, thread)
        return

    lead = ctx.leads.find(email=sender)
    if lead is None:
        ctx.activity.record("reply_unknown_sender", email=sender,
                            details=f"No lead matches sender. Subject: {message.subject}")
        ctx.flush()
        _acknowledge(ctx, transport, thread)
        return

    if lead.status not in AWAITING_REPLY_STATUSES:
        ctx.activity.record("reply_ignored", lead.lead_id, sender,
                            f"Reply received while lead is {lead.status.value}; no change.")
        ctx.flush()
        _acknowledge(ctx, transport, thread)
        return

    decision = run_async(router.route(lead, message.body))
    applied = _apply(ctx, lead, decision, transport)
    ctx.record_update()
    ctx.flush()
    _acknowledge(ctx, transport, thread)
    logger.info("reply_processed", lead_id=lead.lead_id, status=applied.status.value, reason=applied.reason)
    _notify(lead, applied, message.body, notifier)


def _run(ctx: BatchContext, transport, router: ReplyRouter | None, notifier: Notifier | None) -> None:
    router = router or build_router(ctx, transport)
    notifier = notifier or Notifier(ctx.settings, transport.send)

    threads = transport.search_unread(ctx.settings.inbox_search_limit)
    logger.info("replies_found", threads=len(threads))
    for thread in threads:
        ctx.processed += 1
        try:
            process_thread(ctx, thread, transport, router, notifier)
        except Exception as e:
            ctx.session.rollback()
            logger.error("reply_processing_failed", thread=thread.key, error=str(e), exc_info=True)
            ctx.activity.record("reply_processing_error", email=thread.key, details=str(e), severity="ERROR")
            ctx.flush()


def process_replies(settings=None, transport=None, router=None, notifier=None, **batch_options):
    """Entry point for the hourly reply processing job."""

    def body(ctx: BatchContext) -> None:
        _run(ctx, transport or MailTransport(ctx.settings), router, notifier)

    return run_batch(JOB_NAME, body, settings=settings, **batch_options)
