"""Reply router - maps an inbound reply plus lead state to the next action.

Rules are evaluated in a fixed order and the first match wins:

1. opt-out phrase            -> UNQUALIFIED (no classification call)
2. classification failed     -> NEEDS_MANUAL_REVIEW
3. negative sentiment        -> UNQUALIFIED, silently
4. neutral, no specific topic -> NEEDS_MANUAL_REVIEW
5. confidence below threshold -> NEEDS_MANUAL_REVIEW
6. positive/neutral with a specific topic -> contextual follow-up, HOT
   (NEEDS_MANUAL_REVIEW if the follow-up cannot be written)
7. anything else             -> NEEDS_MANUAL_REVIEW

The router only decides. Sending, notifying and persisting are done by the
reply job from the returned ``RoutingDecision``.
"""

import enum
from dataclasses import dataclass

import structlog

from leadflow.config import ServiceCatalog, Settings
from leadflow.models.lead import Lead, LeadStatus
from leadflow.services.classifier import (
    ClassificationFailed,
    ClassificationResult,
    FollowUpWriter,
    ReplyClassifier,
)
from leadflow.services.history import HistorySummarizer
from leadflow.services.text import contains_opt_out, format_plain_text_body

logger = structlog.get_logger()

BOOKING_LINK_SENTENCE = "Here’s the link to book a meeting: {link}"


class RoutingAction(str, enum.Enum):
    NONE = "none"
    SEND_FOLLOW_UP = "send_follow_up"
    REVIEW = "review"


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    body: str


@dataclass(frozen=True)
class RoutingDecision:
    status: LeadStatus
    reason: str
    action: RoutingAction = RoutingAction.NONE
    email: OutboundEmail | None = None
    booking_link: str | None = None
    classification: ClassificationResult | None = None


def select_booking_link(topics: list[str], catalog: ServiceCatalog, default: str) -> str:
    """Pick the booking link for the identified topics.

    One specific topic uses its own link. Several use the first topic in the
    catalog priority order that has a link. Anything else gets ``default``.
    """
    specific = catalog.specific_topics(topics)
    if len(specific) == 1:
        return catalog.link_for(specific[0]) or default
    if len(specific) > 1:
        for topic in catalog.priority:
            if topic in specific and catalog.link_for(topic):
                return catalog.link_for(topic)
    return default


def compose_follow_up(raw_body: str, topics: list[str], link: str, footer: str) -> tuple[str, str]:
    """Subject and final body for the contextual follow-up."""
    subject = f"Re: Your Inquiry - {' & '.join(topics) or 'Following Up'}"
    parts = [format_plain_text_body(raw_body), BOOKING_LINK_SENTENCE.format(link=link)]
    if footer:
        parts.append(footer)
    return subject, "\n\n".join(parts)


def _describe(result: ClassificationResult) -> str:
    return (
        f"Sentiment: {result.sentiment}, Confidence: {result.confidence:.2f}. "
        f"Topics: {', '.join(result.topics) or 'N/A'}. "
        f"Summary: {result.summary_of_need or 'N/A'}"
    )


class ReplyRouter:
    def __init__(
        self,
        classifier: ReplyClassifier,
        writer: FollowUpWriter,
        summarizer: HistorySummarizer,
        catalog: ServiceCatalog,
        settings: Settings,
    ):
        self.classifier = classifier
        self.writer = writer
        self.summarizer = summarizer
        self.catalog = catalog
        self.settings = settings

    def _review(self, reason: str, result: ClassificationResult | None = None) -> RoutingDecision:
        return RoutingDecision(
            status=LeadStatus.NEEDS_MANUAL_REVIEW,
            reason=reason,
            action=RoutingAction.REVIEW,
            classification=result,
        )

    async def _classify(self, lead: Lead, reply_text: str, history: str):
        try:
            return await self.classifier.classify(reply_text, lead.display_name, history)
        except Exception as e:
            logger.error("classification_raised", lead_id=lead.lead_id, error=str(e))
            return ClassificationFailed(f"classifier error: {e}")

    async def _write_follow_up(self, result: ClassificationResult, lead: Lead, history: str) -> str | None:
        try:
            return await self.writer.write(result, lead.display_name, history)
        except Exception as e:
            logger.error("follow_up_writer_raised", lead_id=lead.lead_id, error=str(e))
            return None

    def _history(self, lead: Lead) -> str:
        try:
            return self.summarizer.bounded(lead.lead_id, lead.email)
        except Exception as e:
            logger.warning("history_unavailable", lead_id=lead.lead_id, error=str(e))
            return ""

    async def route(self, lead: Lead, reply_text: str) -> RoutingDecision:
        if contains_opt_out(reply_text):
            return RoutingDecision(status=LeadStatus.UNQUALIFIED, reason="Lead opted out via reply.")

        history = self._history(lead)
        outcome = await self._classify(lead, reply_text, history)
        if isinstance(outcome, ClassificationFailed):
            return self._review(f"AI classification failed: {outcome.reason}")

        result = outcome
        threshold = self.settings.confidence_threshold
        specific = self.catalog.specific_topics(result.topics)
        logger.info("reply_classified", lead_id=lead.lead_id, sentiment=result.sentiment,
                    confidence=result.confidence, topics=result.topics)

        if result.sentiment == "negative":
            return RoutingDecision(
                status=LeadStatus.UNQUALIFIED,
                reason=f"Negative sentiment detected (confidence {result.confidence:.2f}).",
                classification=result,
            )

        if result.sentiment == "neutral" and not specific:
            return self._review(
                f"Neutral sentiment for {self.catalog.generic_topic}. "
                f"Confidence: {result.confidence:.2f}. Summary: {result.summary_of_need or 'N/A'}",
                result,
            )

        if result.confidence < threshold:
            return self._review(
                f"Low AI classification confidence: {result.confidence:.2f} (threshold {threshold:.2f}). "
                f"Topics: {', '.join(result.topics) or 'N/A'}. Summary: {result.summary_of_need or 'N/A'}",
                result,
            )

        if result.sentiment in ("positive", "neutral") and specific:
            body = await self._write_follow_up(result, lead, history)
            if not body:
                return self._review(f"AI follow-up generation failed. {_describe(result)}", result)

            link = select_booking_link(result.topics, self.catalog, self.settings.default_booking_link)
            subject, final_body = compose_follow_up(body, specific, link, self.settings.email_footer)
            return RoutingDecision(
                status=LeadStatus.HOT,
                reason=f"HOT - AI Classified (Sentiment: {result.sentiment}, Confidence: {result.confidence:.2f})",
                action=RoutingAction.SEND_FOLLOW_UP,
                email=OutboundEmail(to=lead.email, subject=subject, body=final_body),
                booking_link=link,
                classification=result,
            )

        return self._review(f"Not proceeding with AI follow-up. {_describe(result)}", result)
