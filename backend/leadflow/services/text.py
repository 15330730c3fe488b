"""String helpers shared by the summarizer, the router and the batch jobs."""

import re

OPT_OUT_PHRASES = ("stop", "unsubscribe", "remove me")

_ADDRESS_RE = re.compile(r"[\w.+-]+@[\w.-]+\.\w+")
_VALID_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_QUOTE_HEADER_RE = re.compile(r"^\s*(On\s.+\swrote:\s*$|-{2,}\s*Original Message\s*-{2,})", re.IGNORECASE)


def truncate(text, max_length: int, marker: str = "..."):
    """Cut ``text`` so that, marker included, it never exceeds ``max_length``.

    Strings already within the limit come back unchanged. Empty or non-string
    input is returned as is.
    """
    if not text or not isinstance(text, str):
        return text
    if len(text) <= max_length:
        return text
    if len(marker) >= max_length:
        return marker[:max_length]
    return text[: max_length - len(marker)] + marker


def format_plain_text_body(raw: str | None) -> str:
    """Normalize an AI-written body to paragraphs separated by one blank line."""
    if not raw:
        return ""
    text = raw.replace("\r\n", "\n").replace("\r", "\n").strip()
    paragraphs = [p.strip() for p in re.split(r"\n+", text) if p.strip()]
    return "\n\n".join(paragraphs)


def extract_sender_address(from_header: str | None) -> str | None:
    if not from_header:
        return None
    match = _ADDRESS_RE.search(from_header)
    return match.group(0).lower() if match else None


def is_valid_email(address: str | None) -> bool:
    if not address or not isinstance(address, str):
        return False
    return bool(_VALID_EMAIL_RE.match(address.strip()))


def strip_quoted_reply(text: str | None) -> str:
    """Keep only the text the sender wrote: drop ``>`` lines and everything
    from the client's quote header ("On ... wrote:", "Original Message") on."""
    if not text:
        return ""
    kept = []
    for line in text.replace("\r\n", "\n").split("\n"):
        if _QUOTE_HEADER_RE.match(line):
            break
        if line.lstrip().startswith(">"):
            continue
        kept.append(line)
    return "\n".join(kept).strip()


def contains_opt_out(text: str | None) -> bool:
    if not text:
        return False
    lowered = strip_quoted_reply(text).lower()
    return any(phrase in lowered for phrase in OPT_OUT_PHRASES)
