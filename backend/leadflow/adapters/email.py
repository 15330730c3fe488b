"""Email adapter - SMTP send and IMAP inbox access."""

import email
import imaplib
from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from email.mime.text import MIMEText
from email.utils import parsedate_to_datetime

import aiosmtplib
import structlog

from leadflow.config import Settings
from leadflow.services.text import extract_sender_address

logger = structlog.get_logger()


class MailTransportError(Exception):
    """Inbox could not be read."""


@dataclass
class MailMessage:
    uid: str
    sender: str
    subject: str
    body: str
    sent_at: datetime | None = None
    unread: bool = False

    @property
    def sender_address(self) -> str | None:
        return extract_sender_address(self.sender)


@dataclass
class MailThread:
    """Messages exchanged with one correspondent, oldest first."""
    key: str
    messages: list[MailMessage] = field(default_factory=list)

    @property
    def last_message(self) -> MailMessage | None:
        return self.messages[-1] if self.messages else None

    @property
    def uids(self) -> list[str]:
        return [m.uid for m in self.messages]


async def send_email(
    to_email: str,
    subject: str,
    body: str,
    settings: Settings,
    from_email: str | None = None,
) -> bool:
    """Send a plain-text email via SMTP.

    Args:
        to_email: Recipient address
        subject: Email subject
        body: Plain-text body
        settings: SMTP host and credentials
        from_email: Sender address (defaults to sender_email, then smtp_user)
    """
    sender = from_email or settings.sender_email or settings.smtp_user

    if not settings.smtp_host or settings.smtp_host == "localhost":
        logger.info("email_draft_mode_smtp_not_configured", to=to_email, subject=subject)
        return False

    msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = f"{settings.sender_name} <{sender}>" if settings.sender_name else sender
    msg["To"] = to_email

    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user or None,
            password=settings.smtp_password or None,
            use_tls=settings.smtp_use_tls,
        )
        logger.info("email_sent", to=to_email, subject=subject)
        return True
    except Exception as e:
        logger.error("email_send_failed", error=str(e), to=to_email)
        return False


def _plain_body(message) -> str:
    part = message.get_body(preferencelist=("plain", "html"))
    if part is None:
        return ""
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


class MailTransport:
    """Outbound mail over SMTP and inbox threads over IMAP.

    IMAP has no native threads: messages are grouped by correspondent address,
    which is how replies are matched to leads anyway. Reads use BODY.PEEK so
    scanning never changes the read state; only ``mark_read`` does.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    async def send(self, to_email: str, subject: str, body: str) -> bool:
        return await send_email(to_email, subject, body, self.settings)

    def _connect(self) -> imaplib.IMAP4_SSL:
        if not self.settings.imap_host:
            raise MailTransportError("IMAP host not configured")
        try:
            conn = imaplib.IMAP4_SSL(self.settings.imap_host, self.settings.imap_port)
            conn.login(self.settings.imap_user, self.settings.imap_password)
            conn.select(self.settings.imap_mailbox)
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailTransportError(f"IMAP connect failed: {e}") from e
        return conn

    @staticmethod
    def _logout(conn: imaplib.IMAP4_SSL) -> None:
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass

    def _search(self, conn: imaplib.IMAP4_SSL, *criteria: str) -> list[str]:
        status, data = conn.uid("SEARCH", None, *criteria)
        if status != "OK":
            raise MailTransportError(f"IMAP search failed: {status}")
        return data[0].decode().split() if data and data[0] else []

    def _fetch(self, conn: imaplib.IMAP4_SSL, uids: list[str]) -> list[MailMessage]:
        if not uids:
            return []
        status, data = conn.uid("FETCH", ",".join(uids), "(UID FLAGS BODY.PEEK[])")
        if status != "OK":
            raise MailTransportError(f"IMAP fetch failed: {status}")

        messages = []
        for item in data:
            if not isinstance(item, tuple):
                continue
            meta, raw = item
            meta_text = meta.decode(errors="replace")
            parsed = email.message_from_bytes(raw, policy=policy.default)
            uid = meta_text.split("UID ", 1)[1].split()[0].rstrip(")") if "UID " in meta_text else ""
            messages.append(MailMessage(
                uid=uid,
                sender=str(parsed.get("From", "")),
                subject=str(parsed.get("Subject", "")),
                body=_plain_body(parsed),
                sent_at=_parse_date(parsed.get("Date")),
                unread="\\Seen" not in meta_text,
            ))
        return messages

    def search_unread(self, limit: int) -> list[MailThread]:
        """Unread inbox messages grouped into one thread per sender.

        Raises MailTransportError when the inbox cannot be read.
        """
        conn = self._connect()
        try:
            uids = self._search(conn, "UNSEEN")
            # newest first, bounded per run
            uids = sorted(uids, key=int, reverse=True)[:limit]
            threads: dict[str, MailThread] = {}
            for message in self._fetch(conn, uids):
                key = message.sender_address or f"uid:{message.uid}"
                threads.setdefault(key, MailThread(key=key)).messages.append(message)
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailTransportError(f"IMAP search failed: {e}") from e
        finally:
            self._logout(conn)

        for thread in threads.values():
            thread.messages.sort(key=lambda m: int(m.uid or 0))
        logger.info("inbox_scanned", unread=len(uids), threads=len(threads))
        return list(threads.values())

    def thread_for(self, address: str, limit: int = 10) -> MailThread | None:
        """Most recent messages to or from ``address``, oldest first.

        Raises MailTransportError when the inbox cannot be read.
        """
        conn = self._connect()
        try:
            uids = self._search(conn, "OR", "FROM", f'"{address}"', "TO", f'"{address}"')
            uids = sorted(uids, key=int)[-limit:]
            messages = self._fetch(conn, uids)
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailTransportError(f"IMAP thread lookup failed: {e}") from e
        finally:
            self._logout(conn)

        if not messages:
            return None
        messages.sort(key=lambda m: int(m.uid or 0))
        return MailThread(key=address.lower(), messages=messages)

    def mark_read(self, thread: MailThread) -> bool:
        if not thread.uids:
            return True
        try:
            conn = self._connect()
        except MailTransportError as e:
            logger.error("mark_read_failed", thread=thread.key, error=str(e))
            return False
        try:
            status, _ = conn.uid("STORE", ",".join(thread.uids), "+FLAGS", "(\\Seen)")
            if status != "OK":
                logger.error("mark_read_failed", thread=thread.key, status=status)
                return False
            return True
        except (imaplib.IMAP4.error, OSError) as e:
            logger.error("mark_read_failed", thread=thread.key, error=str(e))
            return False
        finally:
            self._logout(conn)
