"""Reply classification and message writing on top of the completion oracle.

Classification returns a tagged outcome: a validated ``ClassificationResult``
or a ``ClassificationFailed`` carrying the reason. Writers return the body text
or ``None``.
"""

import json
import re
from dataclasses import dataclass
from typing import Literal

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from leadflow.config import ServiceCatalog, Settings
from leadflow.services.oracle import CompletionOracle, render_prompt

logger = structlog.get_logger()

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class ClassificationResult(BaseModel):
    """Structured reading of one prospect reply."""

    topics: list[str] = Field(default_factory=list, alias="identified_services")
    key_concerns: list[str] = Field(default_factory=list)
    summary_of_need: str = ""
    sentiment: Literal["positive", "neutral", "negative"]
    # Self-reported by the model; it gates routing, it never skips it.
    confidence: float = Field(0.0, ge=0.0, le=1.0, alias="classification_confidence")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("sentiment", mode="before")
    @classmethod
    def _normalize_sentiment(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("topics", "key_concerns", mode="before")
    @classmethod
    def _coerce_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [str(v).strip() for v in value if str(v).strip()]

    @field_validator("summary_of_need", mode="before")
    @classmethod
    def _coerce_summary(cls, value):
        return "" if value is None else str(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value):
        return 0.0 if value is None else value


@dataclass(frozen=True)
class ClassificationFailed:
    reason: str


ClassificationOutcome = ClassificationResult | ClassificationFailed


def _loads_object(text: str) -> dict | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def parse_classification(raw: str | None) -> ClassificationOutcome:
    """Parse oracle output into a classification.

    The raw text is tried first; if that fails and the payload sits inside a
    fenced code block, the block is extracted and parsed once more.
    """
    if not raw or not raw.strip():
        return ClassificationFailed("empty oracle response")

    data = _loads_object(raw.strip())
    if data is None:
        match = _FENCED_BLOCK_RE.search(raw)
        if not match:
            logger.warning("classification_unparseable", raw=raw[:300])
            return ClassificationFailed("unparseable oracle response")
        data = _loads_object(match.group(1))
        if data is None:
            logger.warning("classification_fenced_block_unparseable", raw=match.group(1)[:300])
            return ClassificationFailed("unparseable fenced block in oracle response")
        logger.info("classification_recovered_from_fenced_block")

    try:
        return ClassificationResult.model_validate(data)
    except ValidationError as e:
        logger.warning("classification_invalid", errors=e.error_count(), raw=str(data)[:300])
        return ClassificationFailed(f"invalid classification payload: {e.errors()[0]['msg']}")


def _history_section(history: str | None, intro: str) -> str:
    if history and history.strip():
        return f"{intro}\n{history}\n---\n"
    return ""


class ReplyClassifier:
    def __init__(self, oracle: CompletionOracle, catalog: ServiceCatalog):
        self.oracle = oracle
        self.catalog = catalog

    def build_prompt(self, reply_text: str, first_name: str, history: str | None) -> str:
        services_list = "\n".join(
            f"- {name}: {profile.description[:100]}..." if profile.description else f"- {name}: No description available."
            for name, profile in self.catalog.services.items()
        )
        return render_prompt(
            "reply_classify_v1",
            history_section=_history_section(
                history, f"Previous interaction summary with {first_name}:"
            ),
            first_name=first_name,
            reply_text=reply_text,
            services_list=services_list,
            generic_topic=self.catalog.generic_topic,
        )

    async def classify(self, reply_text: str, first_name: str, history: str | None) -> ClassificationOutcome:
        try:
            prompt = self.build_prompt(reply_text, first_name, history)
        except (FileNotFoundError, KeyError) as e:
            logger.error("classification_prompt_failed", error=str(e))
            return ClassificationFailed(f"prompt unavailable: {e}")

        raw = await self.oracle.complete(prompt, task_type="classify_reply", max_tokens=512)
        if raw is None:
            return ClassificationFailed("oracle returned no response")
        return parse_classification(raw)


class FollowUpWriter:
    """Writes the contextual follow-up for a qualified reply."""

    def __init__(self, oracle: CompletionOracle, catalog: ServiceCatalog, settings: Settings):
        self.oracle = oracle
        self.catalog = catalog
        self.settings = settings

    def build_prompt(self, result: ClassificationResult, first_name: str, history: str | None) -> str:
        sender = self.settings.sender_name
        details = "\n\n".join(
            f"Regarding {topic}: {self.catalog.services[topic].description}"
            for topic in result.topics
            if topic in self.catalog.services and self.catalog.services[topic].description
        )
        if history and history.strip():
            history_section = (
                f"My name is {sender}.\nHere's a summary of my past interactions with {first_name}:\n{history}\n---\n"
            )
        else:
            history_section = f"My name is {sender}.\nI previously sent a cold email to {first_name}.\n"
        return render_prompt(
            "followup_contextual_v1",
            history_section=history_section,
            first_name=first_name,
            topics=", ".join(result.topics) or "services I offer",
            key_concerns=", ".join(result.key_concerns) or "not explicitly stated, but they replied positively",
            summary_of_need=result.summary_of_need or "their general interest in my services.",
            service_details=details,
            sender_name=sender,
        )

    async def write(self, result: ClassificationResult, first_name: str, history: str | None) -> str | None:
        try:
            prompt = self.build_prompt(result, first_name, history)
        except (FileNotFoundError, KeyError) as e:
            logger.error("follow_up_prompt_failed", error=str(e))
            return None
        body = await self.oracle.complete(prompt, task_type="write_contextual_follow_up", max_tokens=768)
        if not body or not body.strip():
            logger.error("follow_up_generation_failed", first_name=first_name)
            return None
        return body


class OutreachWriter:
    """Writes the initial cold email and the generic no-reply nudge."""

    def __init__(self, oracle: CompletionOracle, settings: Settings):
        self.oracle = oracle
        self.settings = settings

    async def _write(self, template_id: str, task_type: str, first_name: str, service: str) -> str | None:
        try:
            prompt = render_prompt(
                template_id,
                first_name=first_name or "there",
                service=service or "your marketing",
                sender_name=self.settings.sender_name,
            )
        except (FileNotFoundError, KeyError) as e:
            logger.error("outreach_prompt_failed", template_id=template_id, error=str(e))
            return None
        body = await self.oracle.complete(prompt, task_type=task_type, max_tokens=300)
        return body if body and body.strip() else None

    async def initial(self, first_name: str, service: str) -> str | None:
        return await self._write("initial_email_v1", "write_initial", first_name, service)

    async def follow_up(self, first_name: str, service: str) -> str | None:
        return await self._write("followup_generic_v1", "write_follow_up", first_name, service)
