"""Tests for the mail transport with a mocked IMAP connection."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from leadflow.adapters.email import MailMessage, MailThread, MailTransport, MailTransportError, send_email
from conftest import make_settings


def raw_message(sender: str, subject: str, body: str) -> bytes:
    return (
        f"From: {sender}\r\nTo: jose@agency.com\r\nSubject: {subject}\r\n"
        f"Date: Tue, 11 Mar 2025 10:00:00 -0400\r\nContent-Type: text/plain; charset=utf-8\r\n\r\n{body}\r\n"
    ).encode()


def fake_uid(search_result: bytes, fetched: list):
    def uid(command, *args):
        if command == "SEARCH":
            return "OK", [search_result]
        if command == "FETCH":
            return "OK", fetched
        if command == "STORE":
            return "OK", [b""]
        raise AssertionError(command)
    return uid


def seen_pair():
    return [
        MailMessage(uid="3", sender="ana@example.com", subject="", body=""),
        MailMessage(uid="9", sender="ana@example.com", subject="", body=""),
    ]


class TestMailTransport:
    def setup_method(self):
        self.settings = make_settings(imap_host="imap.example.com", imap_user="jose", imap_password="pw")
        self.transport = MailTransport(self.settings)

    def test_unread_grouped_by_sender(self):
        conn = MagicMock()
        conn.uid.side_effect = fake_uid(b"3 7 9", [
            (b"9 (UID 9 FLAGS ())", raw_message("Ana <ana@example.com>", "Re: Free Audit", "Second")),
            b")",
            (b"7 (UID 7 FLAGS ())", raw_message("Bob <bob@example.com>", "Re: Free Audit", "Hi")),
            b")",
            (b"3 (UID 3 FLAGS ())", raw_message("Ana <ana@example.com>", "Re: Free Audit", "First")),
            b")",
        ])
        with patch("leadflow.adapters.email.imaplib.IMAP4_SSL", return_value=conn):
            threads = self.transport.search_unread(limit=50)

        by_key = {t.key: t for t in threads}
        assert set(by_key) == {"ana@example.com", "bob@example.com"}
        ana = by_key["ana@example.com"]
        assert ana.uids == ["3", "9"]
        assert ana.last_message.body.strip() == "Second"
        assert ana.last_message.unread
        fetch_args = [c.args for c in conn.uid.call_args_list if c.args[0] == "FETCH"][0]
        assert "BODY.PEEK[]" in fetch_args[2]
        conn.logout.assert_called_once()

    def test_connect_failure_raises_transport_error(self):
        with patch("leadflow.adapters.email.imaplib.IMAP4_SSL", side_effect=OSError("refused")):
            with pytest.raises(MailTransportError):
                self.transport.search_unread(limit=50)

    def test_unconfigured_host(self):
        with pytest.raises(MailTransportError):
            MailTransport(make_settings(imap_host="")).thread_for("ana@example.com")

    def test_thread_for_empty(self):
        conn = MagicMock()
        conn.uid.side_effect = fake_uid(b"", [])
        with patch("leadflow.adapters.email.imaplib.IMAP4_SSL", return_value=conn):
            assert self.transport.thread_for("ana@example.com") is None

    def test_mark_read_stores_seen_flag(self):
        conn = MagicMock()
        conn.uid.side_effect = fake_uid(b"", [])
        thread = MailThread(key="ana@example.com", messages=seen_pair())
        with patch("leadflow.adapters.email.imaplib.IMAP4_SSL", return_value=conn):
            assert self.transport.mark_read(thread)
        conn.uid.assert_called_once_with("STORE", "3,9", "+FLAGS", "(\\Seen)")

    def test_mark_read_failure_returns_false(self):
        thread = MailThread(key="ana@example.com", messages=seen_pair())
        with patch("leadflow.adapters.email.imaplib.IMAP4_SSL", side_effect=OSError("refused")):
            assert not self.transport.mark_read(thread)


class TestSendEmail:
    def test_draft_mode_without_smtp(self):
        assert asyncio.run(send_email("ana@example.com", "Hi", "Body", make_settings(smtp_host="localhost"))) is False

    def test_smtp_failure_returns_false(self):
        settings = make_settings(smtp_host="smtp.example.com", sender_email="jose@agency.com")
        with patch("leadflow.adapters.email.aiosmtplib.send", side_effect=OSError("refused")):
            assert asyncio.run(send_email("ana@example.com", "Hi", "Body", settings)) is False

    def test_sends_plain_text(self):
        settings = make_settings(smtp_host="smtp.example.com", sender_email="jose@agency.com")
        with patch("leadflow.adapters.email.aiosmtplib.send") as smtp_send:
            assert asyncio.run(send_email("ana@example.com", "Hi", "Body", settings)) is True
        msg = smtp_send.call_args.args[0]
        assert msg["To"] == "ana@example.com"
        assert msg["From"] == "Jose <jose@agency.com>"
