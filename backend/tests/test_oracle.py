"""Tests for the completion oracle's Claude path."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from leadflow.services.oracle import CompletionOracle
from leadflow.workers.base import run_async
from conftest import make_settings


def claude_response(text="hello"):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=12, output_tokens=3),
    )


class TestCompletionOracle:
    def setup_method(self):
        self.settings = make_settings(anthropic_api_key="sk-test")

    def patched_client(self, mock_cls, create):
        client = MagicMock()
        client.messages.create = create
        mock_cls.return_value.__aenter__ = AsyncMock(return_value=client)
        mock_cls.return_value.__aexit__ = AsyncMock(return_value=False)
        return client

    @patch("leadflow.services.oracle.anthropic.AsyncAnthropic")
    def test_new_client_for_each_event_loop(self, mock_cls):
        create = AsyncMock(return_value=claude_response())
        self.patched_client(mock_cls, create)
        oracle = CompletionOracle(self.settings)

        results = [run_async(oracle.complete("Say hello", "write_initial")) for _ in range(3)]

        assert results == ["hello", "hello", "hello"]
        assert mock_cls.call_count == 3
        assert mock_cls.return_value.__aexit__.await_count == 3

    @patch("leadflow.services.oracle.anthropic.AsyncAnthropic")
    def test_writer_model_and_system_prompt(self, mock_cls):
        create = AsyncMock(return_value=claude_response())
        self.patched_client(mock_cls, create)
        oracle = CompletionOracle(self.settings)

        run_async(oracle.complete("Write", "write_follow_up", system_prompt="Be brief", max_tokens=200))

        kwargs = create.await_args.kwargs
        assert kwargs["model"] == self.settings.writer_model
        assert kwargs["system"] == "Be brief"
        assert kwargs["max_tokens"] == 200

    @patch("leadflow.services.oracle.anthropic.AsyncAnthropic")
    def test_api_error_returns_none(self, mock_cls):
        self.patched_client(mock_cls, AsyncMock(side_effect=RuntimeError("Connection error.")))
        oracle = CompletionOracle(self.settings)
        assert run_async(oracle.complete("Classify", "classify_reply")) is None

    @patch("leadflow.services.oracle.anthropic.AsyncAnthropic")
    def test_missing_api_key_returns_none(self, mock_cls):
        oracle = CompletionOracle(make_settings(anthropic_api_key=""))
        assert run_async(oracle.complete("Classify", "classify_reply")) is None
        mock_cls.assert_not_called()
