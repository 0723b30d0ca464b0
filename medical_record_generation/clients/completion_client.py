"""
Completion Client - Protocol, Base Class and Azure OpenAI Implementation

This module performs exactly one chat-completion request/response cycle
per call, in JSON-only output mode. It does not parse JSON and does not
retry; both belong to the Retry Orchestrator.

Protocol Pattern:
    - CompletionClientProtocol defines the interface generators depend on
    - BaseCompletionClient validates configuration and tracks call metrics
    - AzureOpenAICompletionClient talks to Azure OpenAI through the openai SDK

Failure Classification:
    ConfigurationError  → config invalid; raised before any network call
    TransportError      → non-2xx status, connection failure or timeout
    EmptyResponseError  → response carried no choices
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple, runtime_checkable

from loguru import logger
from openai import APIConnectionError, APIStatusError, AsyncAzureOpenAI

from medical_record_generation.core.config import ConfigDefaults, ModelEndpointConfig
from medical_record_generation.core.exceptions import (
    CompletionError,
    EmptyResponseError,
    TransportError,
)
from medical_record_generation.core.models import ChatMessage, CompletionResult, TokenUsage


JSON_OBJECT_FORMAT = {"type": "json_object"}


# =============================================================================
# STAGE 1: COMPLETION CLIENT PROTOCOL
# =============================================================================


@runtime_checkable
class CompletionClientProtocol(Protocol):
    """
    Protocol defining the interface for completion clients.

    What it does:
        Specifies the single coroutine the Retry Orchestrator calls, so a
        test stub or another provider can stand in for Azure OpenAI.

    Required Methods:
        complete(messages, config, temperature, max_tokens, response_format) → raw text
    """

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        config: ModelEndpointConfig,
        temperature: float = ConfigDefaults.DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Perform one completion request.

        ``response_format`` defaults to JSON-object mode; pass a
        ``json_schema`` format for deployments with structured outputs.

        Returns:
            Literal text content of the first choice (may be empty)

        Raises:
            ConfigurationError: If ``config`` is invalid
            TransportError: On non-success status or connection failure
            EmptyResponseError: If no choices were returned
        """
        ...


# =============================================================================
# STAGE 2: BASE COMPLETION CLIENT (ABSTRACT)
# =============================================================================


class BaseCompletionClient(ABC):
    """
    Abstract base class for completion clients.

    What it does:
        Validates configuration before every call and keeps call metrics,
        so concrete implementations only implement the API-specific call.

    What subclasses must implement:
        - _call_api(messages, config, temperature, max_tokens, response_format)
        - provider_name

    What base class provides:
        - Fail-fast configuration validation
        - Success/failure counters
        - Debug logging of finish reason and token usage
    """

    def __init__(self):
        self._total_calls = 0
        self._failed_calls = 0

    # =========================================================================
    # STAGE 2.1: PUBLIC API
    # =========================================================================

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        config: ModelEndpointConfig,
        temperature: float = ConfigDefaults.DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Return the raw text of one completion. See CompletionClientProtocol."""
        result = await self.complete_with_metadata(
            messages, config, temperature, max_tokens, response_format
        )
        return result.raw_text

    async def complete_with_metadata(
        self,
        messages: Sequence[ChatMessage],
        config: ModelEndpointConfig,
        temperature: float = ConfigDefaults.DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> CompletionResult:
        """
        Perform one completion and keep finish reason and usage.

        Algorithm:
            1. Validate configuration (no network on failure)
            2. Call the API
            3. Track metrics and log usage
        """
        # Step 1: Fail fast
        config.validate()

        # Step 2: Call
        try:
            result = await self._call_api(
                messages,
                config,
                temperature,
                max_tokens or config.max_tokens,
                response_format or JSON_OBJECT_FORMAT,
            )
        except CompletionError:
            self._failed_calls += 1
            raise

        # Step 3: Metrics
        self._total_calls += 1
        logger.debug(
            f"{self.provider_name} completion | finish_reason={result.finish_reason} | "
            f"tokens={result.usage.total} | chars={len(result.raw_text)}"
        )
        return result

    # =========================================================================
    # STAGE 2.2: ABSTRACT METHODS
    # =========================================================================

    @abstractmethod
    async def _call_api(
        self,
        messages: Sequence[ChatMessage],
        config: ModelEndpointConfig,
        temperature: float,
        max_tokens: int,
        response_format: Dict[str, Any],
    ) -> CompletionResult:
        """Make the actual API call. Must raise only CompletionError subclasses."""
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    # =========================================================================
    # STAGE 2.3: METRICS
    # =========================================================================

    @property
    def total_calls(self) -> int:
        """Number of successful API calls."""
        return self._total_calls

    @property
    def failed_calls(self) -> int:
        """Number of failed API calls."""
        return self._failed_calls


# =============================================================================
# STAGE 3: AZURE OPENAI IMPLEMENTATION
# =============================================================================


class AzureOpenAICompletionClient(BaseCompletionClient):
    """
    Azure OpenAI chat-completion client.

    What it does:
        Sends ``{messages, max_completion_tokens, response_format}`` to
        ``{endpoint}/openai/deployments/{deployment}/chat/completions`` and
        returns the first choice's text.

    Why it exists:
        1. Encapsulates the openai SDK behind the completion protocol
        2. Translates SDK errors to TransportError / EmptyResponseError
        3. Leaves retries to the orchestrator (SDK retries are disabled)

    Notes:
        - ``temperature`` is omitted when it equals the provider default of
          1.0; some deployments reject an explicit value.
        - One SDK client is kept per distinct endpoint configuration.

    Example:
        >>> client = AzureOpenAICompletionClient()
        >>> text = await client.complete(
        ...     [ChatMessage.system("Respond in JSON."), ChatMessage.user("{}")],
        ...     config,
        ... )
    """

    def __init__(self):
        super().__init__()
        self._sdk_clients: Dict[Tuple[str, str, str, float], AsyncAzureOpenAI] = {}

    # =========================================================================
    # STAGE 3.1: REQUEST CONSTRUCTION
    # =========================================================================

    @staticmethod
    def build_request(
        messages: Sequence[ChatMessage],
        config: ModelEndpointConfig,
        temperature: float,
        max_tokens: int,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Keyword arguments for ``chat.completions.create``."""
        request: Dict[str, Any] = {
            "model": config.deployment_name,
            "messages": [message.to_dict() for message in messages],
            "max_completion_tokens": max_tokens,
            "response_format": response_format or JSON_OBJECT_FORMAT,
        }
        if temperature != ConfigDefaults.DEFAULT_TEMPERATURE:
            request["temperature"] = temperature
        return request

    def _client_for(self, config: ModelEndpointConfig) -> AsyncAzureOpenAI:
        key = (
            config.endpoint.rstrip("/"),
            config.api_key,
            config.effective_api_version,
            config.timeout_seconds,
        )
        if key not in self._sdk_clients:
            self._sdk_clients[key] = AsyncAzureOpenAI(
                azure_endpoint=key[0],
                api_key=config.api_key,
                api_version=config.effective_api_version,
                timeout=config.timeout_seconds,
                max_retries=0,
            )
            logger.info(
                f"Azure OpenAI client created | Endpoint: {key[0]} | "
                f"API version: {config.effective_api_version}"
            )
        return self._sdk_clients[key]

    # =========================================================================
    # STAGE 3.2: API CALL IMPLEMENTATION
    # =========================================================================

    async def _call_api(
        self,
        messages: Sequence[ChatMessage],
        config: ModelEndpointConfig,
        temperature: float,
        max_tokens: int,
        response_format: Dict[str, Any],
    ) -> CompletionResult:
        request = self.build_request(messages, config, temperature, max_tokens, response_format)
        logger.debug(
            f"Azure OpenAI request | Deployment: {config.deployment_name} | "
            f"Max tokens: {max_tokens} | Messages: {len(request['messages'])}"
        )

        try:
            response = await self._client_for(config).chat.completions.create(**request)

        except APIStatusError as e:
            raise TransportError(
                f"Azure OpenAI API error: {e.status_code}",
                status_code=e.status_code,
                body=_error_body(e),
            )

        except APIConnectionError as e:
            # Includes APITimeoutError
            raise TransportError(f"Failed to call Azure OpenAI: {type(e).__name__}")

        if not response.choices:
            raise EmptyResponseError()

        choice = response.choices[0]
        usage = response.usage
        return CompletionResult(
            raw_text=choice.message.content or "",
            finish_reason=choice.finish_reason,
            usage=TokenUsage(
                prompt=usage.prompt_tokens if usage else 0,
                completion=usage.completion_tokens if usage else 0,
                total=usage.total_tokens if usage else 0,
            ),
        )

    @property
    def provider_name(self) -> str:
        return "azure-openai"

    async def aclose(self) -> None:
        """Close every underlying HTTP client."""
        for sdk_client in self._sdk_clients.values():
            await sdk_client.close()
        self._sdk_clients.clear()


def _error_body(error: APIStatusError) -> str:
    """Response body of a failed request as text."""
    if error.body is not None:
        try:
            return json.dumps(error.body)
        except (TypeError, ValueError):
            return str(error.body)
    return error.response.text
