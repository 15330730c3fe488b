"""Completion oracle - one text-completion contract over Claude or a local model.

Every call returns the completion text or ``None``. Nothing here raises to the
caller: the reply-processing path runs under a batch lock and treats ``None``
as "oracle failed".
"""

import time
from pathlib import Path

import anthropic
import httpx
import structlog

from leadflow.config import Settings

logger = structlog.get_logger()

# Check multiple paths: local dev path and Docker mount path
_PROMPTS_CANDIDATES = [
    Path(__file__).parent.parent.parent.parent / "prompts",  # Local dev
    Path("/prompts"),  # Docker mount
]
PROMPTS_DIR = next((p for p in _PROMPTS_CANDIDATES if p.exists()), _PROMPTS_CANDIDATES[0])


def load_prompt_template(template_id: str) -> str:
    """Load a prompt template by ID (filename without extension)."""
    path = PROMPTS_DIR / f"{template_id}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {template_id} (searched {PROMPTS_DIR})")
    return path.read_text(encoding="utf-8")


def render_prompt(template_id: str, **template_vars) -> str:
    return load_prompt_template(template_id).format(**template_vars)


class CompletionOracle:
    """Routes completion requests to the local model or Claude based on task type."""

    # Tasks a small local model handles well
    LOCAL_TASKS = {"classify_reply"}
    # Tasks that need Claude
    CLAUDE_TASKS = {"write_initial", "write_follow_up", "write_contextual_follow_up"}

    def __init__(self, settings: Settings):
        self.settings = settings

    def _claude_client(self) -> anthropic.AsyncAnthropic:
        # One client per call: each run_async call gets a fresh event loop
        return anthropic.AsyncAnthropic(
            api_key=self.settings.anthropic_api_key,
            timeout=self.settings.oracle_timeout_seconds,
        )

    def model_for(self, task_type: str) -> str:
        if task_type in self.LOCAL_TASKS:
            return self.settings.classify_model
        return self.settings.writer_model

    async def call_local_model(self, prompt: str, task_type: str) -> str | None:
        """Call the local completion server (llama.cpp compatible)."""
        start = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.settings.oracle_timeout_seconds) as client:
                resp = await client.post(
                    self.settings.local_model_url,
                    json={
                        "prompt": prompt,
                        "n_predict": 512,
                        "temperature": 0.1,
                        "stop": ["</output>", "\n\n---"],
                    },
                )
                resp.raise_for_status()
                data = resp.json()
            content = data.get("content", data.get("text", ""))
            logger.info("local_model_completed", task_type=task_type, duration=round(time.time() - start, 3))
            return content or None
        except Exception as e:
            logger.warning("local_model_call_failed", error=str(e), task_type=task_type)
            return None

    async def call_claude(
        self,
        prompt: str,
        task_type: str,
        system_prompt: str = "",
        max_tokens: int = 1024,
    ) -> str | None:
        """Call the Claude Messages API."""
        if not self.settings.anthropic_api_key:
            logger.error("oracle_not_configured", task_type=task_type)
            return None

        model = self.model_for(task_type)
        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        start = time.time()
        try:
            async with self._claude_client() as client:
                response = await client.messages.create(**kwargs)
        except Exception as e:
            logger.error("claude_call_failed", error=str(e), task_type=task_type, model=model)
            return None

        text_blocks = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        if not text_blocks:
            logger.error("claude_response_missing_text", task_type=task_type, model=model)
            return None

        logger.info(
            "claude_completed",
            task_type=task_type,
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration=round(time.time() - start, 3),
        )
        return "".join(text_blocks)

    async def complete(
        self,
        prompt: str,
        task_type: str,
        system_prompt: str = "",
        max_tokens: int = 1024,
    ) -> str | None:
        """Return completion text for ``prompt`` or ``None`` on any failure."""
        try:
            if task_type in self.LOCAL_TASKS and self.settings.local_model_enabled:
                content = await self.call_local_model(prompt, task_type)
                if content:
                    return content
                logger.info("local_model_unavailable_using_claude", task_type=task_type)
            return await self.call_claude(prompt, task_type, system_prompt=system_prompt, max_tokens=max_tokens)
        except Exception as e:
            logger.error("oracle_unexpected_error", error=str(e), task_type=task_type)
            return None
