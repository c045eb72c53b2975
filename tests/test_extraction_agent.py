"""
Tests for the transaction extraction agent.

The completion service is a scripted fake and sleeps are recorded rather
than awaited, so retry timing is asserted exactly.
"""

import asyncio

import pytest

from statement_ingest.agents.extraction_agent import (
    TRANSACTIONS_SCHEMA,
    TRUNCATION_MARKER,
    TransactionExtractionAgent,
    parse_transactions,
    strip_code_fences,
)
from statement_ingest.config import IngestionSettings
from statement_ingest.errors import (
    ConfigurationError,
    ExtractionFailedError,
    MalformedResponseError,
)
from statement_ingest.models.transaction import EncodedImage, ExtractedContent, FileKind
from tests.helpers.fakes import (
    FakeCompletionService,
    RecordingSleep,
    UnconfiguredCompletionService,
    transactions_json,
)


ROW = {"date": "2024-01-15", "description": "Coffee", "amount": -4.5, "category": "Dining"}


def make_agent(service, max_text_chars=50_000, attempts=3):
    sleep = RecordingSleep()
    settings = IngestionSettings(
        max_text_chars=max_text_chars,
        max_extraction_attempts=attempts,
        retry_delay_seconds=1.0,
    )
    return TransactionExtractionAgent(service, settings=settings, sleep=sleep), sleep


class TestParseTransactions:
    """Tests for response parsing."""

    def test_parses_rows(self):
        candidates = parse_transactions(transactions_json(ROW))
        assert len(candidates) == 1
        assert candidates[0].description == "Coffee"
        assert candidates[0].amount == -4.5

    def test_strips_markdown_fences(self):
        fenced = "```json\n" + transactions_json(ROW) + "\n```"
        assert len(parse_transactions(fenced)) == 1
        assert strip_code_fences("```\n{}\n```") == "{}"

    def test_missing_transactions_key_is_empty(self):
        assert parse_transactions('{"rows": []}') == []

    def test_non_array_transactions_rejected(self):
        with pytest.raises(MalformedResponseError, match="not an array"):
            parse_transactions('{"transactions": {"date": "2024-01-01"}}')

    def test_invalid_json_rejected(self):
        with pytest.raises(MalformedResponseError):
            parse_transactions("Here are your transactions!")

    def test_empty_response_rejected(self):
        with pytest.raises(MalformedResponseError):
            parse_transactions("   ")

    def test_top_level_array_rejected(self):
        with pytest.raises(MalformedResponseError):
            parse_transactions("[]")

    def test_non_object_rows_kept_as_empty_candidates(self):
        candidates = parse_transactions('{"transactions": [42, {"date": "2024-01-01"}]}')
        assert len(candidates) == 2
        assert candidates[0].date is None


class TestRetryPolicy:
    """Tests for bounded linear-backoff retries."""

    def test_succeeds_first_try_without_sleeping(self):
        service = FakeCompletionService(transactions_json(ROW))
        agent, sleep = make_agent(service)

        result = asyncio.run(agent.extract_from_text("a,b,c", "csv"))

        assert len(result.candidates) == 1
        assert len(service.calls) == 1
        assert sleep.delays == []

    def test_recovers_after_transient_failures(self):
        service = FakeCompletionService(
            ConnectionResetError("network down"),
            "not json",
            transactions_json(ROW, ROW),
        )
        agent, sleep = make_agent(service)

        result = asyncio.run(agent.extract_from_text("a,b,c", "csv"))

        assert len(result.candidates) == 2
        assert len(service.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    def test_gives_up_after_three_attempts(self):
        service = FakeCompletionService('{"transactions": "nope"}')
        agent, sleep = make_agent(service)

        with pytest.raises(ExtractionFailedError) as exc_info:
            asyncio.run(agent.extract_from_text("a,b,c", "csv"))

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, MalformedResponseError)
        assert isinstance(exc_info.value.__cause__, MalformedResponseError)
        assert len(service.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    def test_configuration_error_not_retried(self):
        service = UnconfiguredCompletionService()
        agent, sleep = make_agent(service)

        with pytest.raises(ConfigurationError):
            asyncio.run(agent.extract_from_text("a,b,c", "csv"))

        assert service.calls == 1
        assert sleep.delays == []


class TestTextMode:
    """Tests for text-mode prompts and truncation."""

    def test_truncates_long_text(self):
        service = FakeCompletionService(transactions_json(ROW))
        agent, _ = make_agent(service, max_text_chars=1_000)

        result = asyncio.run(agent.extract_from_text("x" * 1_500, "csv"))

        assert result.was_truncated is True
        prompt = service.calls[0]["user_prompt"]
        assert "x" * 1_000 + TRUNCATION_MARKER in prompt
        assert "x" * 1_001 not in prompt

    def test_short_text_not_truncated(self):
        service = FakeCompletionService(transactions_json(ROW))
        agent, _ = make_agent(service, max_text_chars=1_000)

        result = asyncio.run(agent.extract_from_text("x" * 1_000, "csv"))

        assert result.was_truncated is False

    def test_prompt_lists_caller_categories_and_other(self):
        service = FakeCompletionService(transactions_json(ROW))
        agent, _ = make_agent(service)

        asyncio.run(agent.extract_from_text("a,b", "tsv", ["Groceries", "Dining"]))

        call = service.calls[0]
        assert "Groceries, Dining, Other" in call["system_prompt"]
        assert "TSV" in call["user_prompt"]
        assert call["schema"] == TRANSACTIONS_SCHEMA
        assert call["images"] == []


class TestVisionMode:
    """Tests for image extraction."""

    def test_images_attached(self):
        service = FakeCompletionService(transactions_json(ROW))
        agent, _ = make_agent(service)
        content = ExtractedContent(
            kind=FileKind.IMAGE,
            source_format="png",
            images=[EncodedImage(data="aGVsbG8=", mime_type="image/png")],
        )

        result = asyncio.run(agent.extract(content, ["Other"]))

        assert result.was_truncated is False
        assert len(service.calls[0]["images"]) == 1
        assert "EVERY visible transaction" in service.calls[0]["user_prompt"]

    def test_pdf_content_goes_through_text_mode(self):
        service = FakeCompletionService(transactions_json(ROW))
        agent, _ = make_agent(service)
        content = ExtractedContent(kind=FileKind.PDF, source_format="pdf", text="statement text")

        asyncio.run(agent.extract(content))

        assert "PDF" in service.calls[0]["user_prompt"]
        assert "statement text" in service.calls[0]["user_prompt"]
