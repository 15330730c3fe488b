"""Tests for string helpers."""

from leadflow.services.text import (
    contains_opt_out,
    extract_sender_address,
    format_plain_text_body,
    is_valid_email,
    strip_quoted_reply,
    truncate,
)


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("hello", 10) == "hello"

    def test_exact_length_unchanged(self):
        assert truncate("abcde", 5) == "abcde"

    def test_marker_counts_toward_limit(self):
        result = truncate("abcdefghij", 8, "...")
        assert result == "abcde..."
        assert len(result) == 8

    def test_marker_longer_than_limit(self):
        assert truncate("abcdefghij", 2, "...") == ".."

    def test_empty_and_non_string_passthrough(self):
        assert truncate("", 5) == ""
        assert truncate(None, 5) is None


class TestFormatPlainTextBody:
    def test_collapses_blank_runs(self):
        raw = "Hi Ana,\r\n\r\n\r\nThanks for replying.\n   \nBest,\nJose"
        assert format_plain_text_body(raw) == "Hi Ana,\n\nThanks for replying.\n\nBest,\n\nJose"

    def test_empty(self):
        assert format_plain_text_body(None) == ""
        assert format_plain_text_body("   ") == ""


class TestSenderAddress:
    def test_display_name_form(self):
        assert extract_sender_address("Ana Ruiz <Ana.Ruiz@Example.com>") == "ana.ruiz@example.com"

    def test_bare_address(self):
        assert extract_sender_address("bob@shop.io") == "bob@shop.io"

    def test_no_address(self):
        assert extract_sender_address("Mailer Daemon") is None
        assert extract_sender_address(None) is None


class TestEmailValidity:
    def test_valid(self):
        assert is_valid_email("ana@example.com")

    def test_invalid(self):
        assert not is_valid_email("ana@example")
        assert not is_valid_email("ana example.com")
        assert not is_valid_email("")
        assert not is_valid_email(None)


class TestOptOut:
    def test_phrases_match_case_insensitively(self):
        assert contains_opt_out("Please STOP emailing me")
        assert contains_opt_out("unsubscribe")
        assert contains_opt_out("Can you Remove Me from this list?")

    def test_substring_match(self):
        # plain substring check: "nonstop" contains "stop"
        assert contains_opt_out("We run nonstop campaigns")

    def test_no_phrase(self):
        assert not contains_opt_out("Sounds interesting, tell me more")
        assert not contains_opt_out(None)

    def test_quoted_footer_ignored(self):
        reply = (
            "Yes, I'd like the audit for my funnels.\n\n"
            "On Mon, Mar 10, 2025 at 9:00 AM Jose <jose@example.com> wrote:\n"
            "> Hi Ana,\n"
            "> Reply STOP to unsubscribe"
        )
        assert not contains_opt_out(reply)

    def test_opt_out_above_quote_still_counts(self):
        assert contains_opt_out("Please remove me.\n\n> Reply STOP to unsubscribe")


class TestStripQuotedReply:
    def test_drops_quote_markers(self):
        assert strip_quoted_reply("Sounds good\n> earlier text\n>> older") == "Sounds good"

    def test_cuts_at_original_message_header(self):
        text = "Call me Tuesday.\n-----Original Message-----\nFrom: Jose\nReply STOP to unsubscribe"
        assert strip_quoted_reply(text) == "Call me Tuesday."

    def test_plain_reply_unchanged(self):
        assert strip_quoted_reply("Tell me more") == "Tell me more"
        assert strip_quoted_reply(None) == ""
