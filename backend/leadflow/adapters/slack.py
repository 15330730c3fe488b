"""Slack adapter - incoming webhook alerts."""

import httpx
import structlog

logger = structlog.get_logger()


async def send_slack_message(
    webhook_url: str,
    text: str,
    blocks: list | None = None,
    timeout: float = 10.0,
) -> bool:
    """Post ``text`` (and optional blocks) to a Slack incoming webhook.

    Returns False without raising when the URL is unset or the post fails.
    """
    if not webhook_url:
        logger.warning("slack_skipped_no_webhook")
        return False

    payload: dict = {"text": text}
    if blocks:
        payload["blocks"] = blocks

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(webhook_url, json=payload)
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error("slack_send_failed", status_code=e.response.status_code,
                     response=e.response.text[:500])
        return False
    except Exception as e:
        logger.error("slack_send_failed", error=str(e))
        return False

    logger.info("slack_message_sent", text=text[:100])
    return True
