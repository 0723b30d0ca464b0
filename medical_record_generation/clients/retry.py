"""
Retry Orchestrator - Bounded Attempts Yielding a JSON Object

This module turns one unreliable completion attempt into a bounded,
sequential pipeline that returns a parsed JSON object.

Why Tagged Outcomes:
    Each attempt is reduced to an AttemptOutcome (OK / RETRYABLE / FATAL)
    and the loop branches on the tag. Exceptions are only used at the
    edges: raised by the client, and raised to the caller at the end.

Pipeline Position:
    Generator → [RetryOrchestrator] → CompletionClient → model endpoint
                 ^^^^^^^^^^^^^^^^^
                 You are here

Attempt Classification:
    ConfigurationError                  → FATAL (surfaced immediately)
    TransportError, EmptyResponseError  → RETRYABLE
    empty / whitespace text             → RETRYABLE (EmptyResponseError)
    text is not JSON                    → RETRYABLE (ParseError)
    JSON is not an object               → RETRYABLE (StructuralError)
    JSON object                         → OK

Schema validation is NOT done here; generators own it.
"""

import asyncio
import json
import re
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from medical_record_generation.clients.completion_client import CompletionClientProtocol
from medical_record_generation.core.config import ConfigDefaults, ModelEndpointConfig
from medical_record_generation.core.enums import AttemptStatus
from medical_record_generation.core.exceptions import (
    CompletionError,
    ConfigurationError,
    EmptyResponseError,
    ParseError,
    RetryExhaustedError,
    StructuralError,
)
from medical_record_generation.core.models import AttemptOutcome, ChatMessage


_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    match = _FENCE_PATTERN.match(text.strip())
    return match.group(1) if match else text.strip()


def parse_json_object(text: Optional[str]) -> AttemptOutcome:
    """
    Classify raw response text.

    Returns:
        OK with the parsed dict, or RETRYABLE with the reason
    """
    if not text or not text.strip():
        return AttemptOutcome.retryable(EmptyResponseError("Empty response from Azure OpenAI"))

    body = strip_code_fence(text)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as e:
        return AttemptOutcome.retryable(
            ParseError(f"Response is not valid JSON: {e.msg}", preview=body[:80])
        )

    if not isinstance(parsed, dict):
        return AttemptOutcome.retryable(StructuralError(type(parsed).__name__))

    return AttemptOutcome.ok(parsed)


# =============================================================================
# STAGE 1: ORCHESTRATOR
# =============================================================================


class RetryOrchestrator:
    """
    Wraps a completion client with bounded retry and linear backoff.

    What it does:
        Calls the client up to ``max_attempts`` times, one attempt at a
        time, and returns the first response that parses to a JSON object.

    Why it exists:
        1. Model output is unreliable (malformed JSON, empty bodies)
        2. Transport failures are usually transient
        3. Configuration problems are not, and must not be retried

    How it works:
        for attempt in 1..max_attempts:
            outcome = attempt()
            OK        → return value
            FATAL     → raise error
            RETRYABLE → sleep(attempt * backoff) unless this was the last attempt
        raise RetryExhaustedError(max_attempts, last_error)

    Example:
        >>> orchestrator = RetryOrchestrator(AzureOpenAICompletionClient())
        >>> data = await orchestrator.generate_structured(
        ...     config, "Generate a patient as JSON", "You are a generator."
        ... )
    """

    def __init__(
        self,
        client: CompletionClientProtocol,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        backoff_seconds: float = ConfigDefaults.DEFAULT_BACKOFF_SECONDS,
    ):
        """
        Args:
            client: Completion client (protocol-compatible)
            sleep: Awaitable delay function; injectable for tests
            backoff_seconds: Base delay; attempt N waits N * backoff_seconds
        """
        self._client = client
        self._sleep = sleep
        self._backoff_seconds = backoff_seconds

    # =========================================================================
    # STAGE 1.1: PUBLIC API
    # =========================================================================

    async def generate_structured(
        self,
        config: ModelEndpointConfig,
        prompt: str,
        system_prompt: str,
        max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Obtain one JSON object from the model.

        Args:
            config: Endpoint configuration
            prompt: User message
            system_prompt: System message fixing tone and output format
            max_attempts: Attempt budget (at least 1)
            response_format: Sent with every attempt (client default: JSON object)

        Returns:
            The first parsed JSON object

        Raises:
            ConfigurationError: On the first attempt, without retrying
            RetryExhaustedError: When every attempt failed
        """
        max_attempts = max(1, max_attempts)
        messages = [ChatMessage.system(system_prompt), ChatMessage.user(prompt)]
        last_error: Optional[Exception] = None

        logger.debug(
            f"Structured generation started | max_attempts={max_attempts} | "
            f"prompt_chars={len(prompt)}"
        )

        for attempt in range(1, max_attempts + 1):
            outcome = await self._attempt(messages, config, response_format)

            if outcome.status == AttemptStatus.OK:
                logger.debug(f"Structured generation succeeded on attempt {attempt}")
                return outcome.value

            if outcome.status == AttemptStatus.FATAL:
                raise outcome.error

            last_error = outcome.error
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {last_error}")

            if attempt < max_attempts:
                wait_time = attempt * self._backoff_seconds
                logger.debug(f"Retrying in {wait_time:.1f}s")
                await self._sleep(wait_time)

        logger.error(f"All {max_attempts} attempts exhausted: {last_error}")
        raise RetryExhaustedError(max_attempts, last_error)

    # =========================================================================
    # STAGE 1.2: SINGLE ATTEMPT
    # =========================================================================

    async def _attempt(
        self,
        messages,
        config: ModelEndpointConfig,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> AttemptOutcome:
        """Run one client call and reduce it to a tagged outcome."""
        try:
            text = await self._client.complete(messages, config, response_format=response_format)
        except ConfigurationError as e:
            return AttemptOutcome.fatal(e)
        except CompletionError as e:
            return AttemptOutcome.retryable(e)
        return parse_json_object(text)


async def generate_structured(
    client: CompletionClientProtocol,
    config: ModelEndpointConfig,
    prompt: str,
    system_prompt: str,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
    response_format: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """One-off structured generation with a fresh orchestrator."""
    return await RetryOrchestrator(client).generate_structured(
        config, prompt, system_prompt, max_attempts, response_format
    )
