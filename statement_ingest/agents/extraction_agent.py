"""
Transaction Extraction Agent

DESIGN DECISION: The completion model is used as a READER, not a judge.
It turns statement text or page images into candidate rows and nothing
more. Everything it returns is treated as untrusted and goes through the
normalizer before anyone sees it.

CRITICAL BOUNDARIES:
- CAN: Read rows, infer signs from Debit/Credit columns, suggest a category
  from the caller's own list
- CANNOT: Invent rows, fill in missing dates or amounts, persist anything
- MUST: Return the fixed JSON shape {"transactions": [...]}

Retries live here and only here. Each call gets a bounded number of
sequential attempts with an increasing pause (attempt N waits N x delay).
A missing credential is not retried.
"""

import asyncio
import json
from typing import Awaitable, Callable, Optional, Sequence

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from statement_ingest.config import IngestionSettings, get_settings
from statement_ingest.errors import (
    ConfigurationError,
    ExtractionFailedError,
    MalformedResponseError,
)
from statement_ingest.models.transaction import (
    OTHER_CATEGORY,
    EncodedImage,
    ExtractedContent,
    ExtractionResult,
    RawCandidateTransaction,
)
from statement_ingest.services.storage.interface import CompletionServiceInterface


logger = structlog.get_logger(__name__)


TRUNCATION_MARKER = "\n... (truncated)"

TRANSACTIONS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "transactions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "date": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "amount": {"type": "NUMBER"},
                    "category": {"type": "STRING"},
                },
                "required": ["date", "description", "amount", "category"],
            },
        },
    },
    "required": ["transactions"],
}


TEXT_SYSTEM_PROMPT = """You are an expert financial data extraction system. Your job is to parse bank statements and extract transaction data with high accuracy.

CORE RULES:
1. SIGN CONVENTION (CRITICAL):
   - Debits/Expenses/Purchases = NEGATIVE amounts (money going OUT)
   - Credits/Income/Deposits = POSITIVE amounts (money coming IN)
   - If a column is labeled "Débito"/"Debit"/"Saída" -> use NEGATIVE
   - If a column is labeled "Crédito"/"Credit"/"Entrada" -> use POSITIVE

2. DATE FORMAT:
   - Always output dates as YYYY-MM-DD (ISO 8601)
   - European dates (DD/MM/YYYY): 15/01/2024 -> 2024-01-15
   - Handle various separators: /, -, .

3. DESCRIPTION CLEANING:
   - Combine multi-line descriptions into a single line
   - Remove excessive whitespace
   - Keep merchant/payee names clear and readable

4. CATEGORY ASSIGNMENT:
   Use ONLY these categories: {categories}
   If none fits, use "{other}".

5. IGNORE:
   - Running balances (Saldo)
   - Account numbers
   - Headers and footers

Never invent transactions. If a row has no amount or no date, leave it out."""


VISION_SYSTEM_PROMPT = """You are an expert at reading bank statements from images. Extract every visible transaction with high accuracy.

CRITICAL RULES:
1. SIGN CONVENTION:
   - Money OUT (Débito/Debit/Saída column) = NEGATIVE amount
   - Money IN (Crédito/Credit/Entrada column) = POSITIVE amount
   - Look at which column the amount appears in to determine sign

2. DATE FORMAT: Always output as YYYY-MM-DD

3. READ CAREFULLY:
   - Examine each row of the statement at full resolution
   - Look for amount columns (usually 2: debit and credit)
   - Combine multi-line descriptions

4. CATEGORIES: {categories}
   If none fits, use "{other}".

5. IGNORE: Balance columns (Saldo), account numbers, headers"""


TEXT_USER_PROMPT = """Parse this {source_kind} bank statement and extract all transactions.

Content:
{content}

Return JSON with this exact structure:
{{"transactions": [{{"date": "YYYY-MM-DD", "description": "Merchant or description", "amount": -99.99, "category": "category_name"}}]}}

Remember: Debits are NEGATIVE, Credits are POSITIVE."""


VISION_USER_PROMPT = """Extract ALL transactions from this bank statement image.

Return JSON:
{"transactions": [{"date": "YYYY-MM-DD", "description": "...", "amount": -99.99, "category": "..."}]}

IMPORTANT:
- Debit column amounts should be NEGATIVE
- Credit column amounts should be POSITIVE
- Extract EVERY visible transaction"""


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around a JSON payload."""
    cleaned = text.strip()
    if not cleaned.startswith("```"):
        return cleaned
    first_newline = cleaned.find("\n")
    if first_newline == -1:
        return cleaned.strip("`").strip()
    cleaned = cleaned[first_newline + 1:]
    if cleaned.rstrip().endswith("```"):
        cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def parse_transactions(raw: str) -> list[RawCandidateTransaction]:
    """
    Parse the completion service's JSON answer into raw candidates.

    A missing "transactions" key means no transactions. Anything else
    that does not have the expected shape is a MalformedResponseError.
    """
    if not raw or not raw.strip():
        raise MalformedResponseError("Empty response from completion service")

    try:
        parsed = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e.msg}") from e

    if not isinstance(parsed, dict):
        raise MalformedResponseError("Invalid response format: expected a JSON object")

    transactions = parsed.get("transactions")
    if transactions is None:
        return []
    if not isinstance(transactions, list):
        raise MalformedResponseError(
            "Invalid response format: transactions is not an array"
        )

    candidates = []
    for item in transactions:
        if isinstance(item, dict):
            candidates.append(RawCandidateTransaction.model_validate(item))
        else:
            # Keep it so the normalizer counts it as rejected
            candidates.append(RawCandidateTransaction())
    return candidates


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "extraction_attempt_failed",
        attempt=retry_state.attempt_number,
        error_type=type(error).__name__ if error else None,
        error=str(error) if error else None,
        next_wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


class TransactionExtractionAgent:
    """
    Extracts raw candidate transactions through the completion service.

    BOUNDARIES:
    - NEVER validates or persists (the normalizer and commit gate do)
    - NEVER retries a ConfigurationError
    - ALWAYS reports whether the input was truncated
    """

    def __init__(
        self,
        completion_service: CompletionServiceInterface,
        settings: Optional[IngestionSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._completion = completion_service
        self._settings = settings or get_settings().ingestion
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        delay = self._settings.retry_delay_seconds
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_extraction_attempts),
            wait=wait_incrementing(start=delay, increment=delay),
            retry=retry_if_not_exception_type(ConfigurationError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )

    async def _complete_with_retry(
        self,
        system_prompt: str,
        user_prompt: str,
        images: Optional[Sequence[EncodedImage]] = None,
    ) -> list[RawCandidateTransaction]:
        attempts = 0
        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    raw = await self._completion.complete(
                        system_prompt=system_prompt,
                        user_prompt=user_prompt,
                        schema=TRANSACTIONS_SCHEMA,
                        images=images,
                    )
                    return parse_transactions(raw)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(
                "extraction_failed",
                attempts=attempts,
                error_type=type(e).__name__,
            )
            raise ExtractionFailedError(attempts, e) from e

        # AsyncRetrying with reraise=True never falls through
        raise ExtractionFailedError(attempts, RuntimeError("no attempt was made"))

    @staticmethod
    def _category_list(category_names: Sequence[str]) -> str:
        names = [name for name in category_names if name and name.strip()]
        if not any(name.lower() == OTHER_CATEGORY.lower() for name in names):
            names.append(OTHER_CATEGORY)
        return ", ".join(names)

    def truncate(self, text: str) -> tuple[str, bool]:
        """Cut text to the configured maximum; returns (text, was_truncated)."""
        limit = self._settings.max_text_chars
        if len(text) <= limit:
            return text, False
        return text[:limit] + TRUNCATION_MARKER, True

    async def extract_from_text(
        self,
        text: str,
        source_kind: str,
        category_names: Sequence[str] = (),
    ) -> ExtractionResult:
        """
        Extract candidates from statement text (CSV, TSV or PDF text).

        Raises:
            ConfigurationError: Completion service has no credential
            ExtractionFailedError: Every attempt failed
        """
        content, was_truncated = self.truncate(text)
        if was_truncated:
            logger.info(
                "statement_text_truncated",
                original_chars=len(text),
                max_chars=self._settings.max_text_chars,
            )

        system_prompt = TEXT_SYSTEM_PROMPT.format(
            categories=self._category_list(category_names),
            other=OTHER_CATEGORY,
        )
        user_prompt = TEXT_USER_PROMPT.format(
            source_kind=source_kind.upper(),
            content=content,
        )

        candidates = await self._complete_with_retry(system_prompt, user_prompt)
        return ExtractionResult(candidates=candidates, was_truncated=was_truncated)

    async def extract_from_images(
        self,
        images: Sequence[EncodedImage],
        category_names: Sequence[str] = (),
    ) -> ExtractionResult:
        """Extract candidates from statement page images."""
        system_prompt = VISION_SYSTEM_PROMPT.format(
            categories=self._category_list(category_names),
            other=OTHER_CATEGORY,
        )
        candidates = await self._complete_with_retry(
            system_prompt,
            VISION_USER_PROMPT,
            images=list(images),
        )
        return ExtractionResult(candidates=candidates, was_truncated=False)

    async def extract(
        self,
        content: ExtractedContent,
        category_names: Sequence[str] = (),
    ) -> ExtractionResult:
        """Route extracted content to text or vision mode."""
        if content.is_vision:
            return await self.extract_from_images(content.images, category_names)
        return await self.extract_from_text(
            content.text or "",
            content.source_format,
            category_names,
        )
