"""
Domain Exceptions for Medical Record Generation

This module defines the exceptions raised throughout the generation
pipeline. Well-defined exceptions enable:
    1. Clear error categorization for debugging
    2. Retry decisions based on failure category
    3. Rich error context without leaking credentials

Exception Hierarchy:
    MedicalRecordGenerationError (base)
    ├── ConfigurationError          → Missing/malformed endpoint settings (fatal)
    ├── CompletionError             → One completion attempt failed
    │   ├── TransportError          → Non-2xx status or connection failure
    │   ├── EmptyResponseError      → No choices or empty text
    │   ├── ParseError              → Text is not valid JSON
    │   └── StructuralError         → JSON is not an object
    ├── RetryExhaustedError         → Every attempt failed
    ├── GenerationError             → Entity-level failures
    │   ├── SchemaValidationError   → Parsed object violates entity schema
    │   └── EntityGenerationError   → Wrapped failure naming the entity
    ├── CacheError                  → Cache backend failure (always swallowed)
    │   ├── CorruptCacheEntryError  → Stored entry cannot be decoded
    │   └── StorageQuotaExceededError
    ├── ConfigStorageError          → Saved model configuration unusable
    └── UnregisteredEntityError     → Entity kind missing from the registry

Usage:
    from medical_record_generation.core.exceptions import ConfigurationError

    try:
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Bad endpoint settings: {e}")
"""

from typing import List, Optional


# =============================================================================
# STAGE 1: BASE EXCEPTION
# =============================================================================


class MedicalRecordGenerationError(Exception):
    """
    Base exception for all medical record generation errors.

    What it does:
        Provides a common base class so callers can catch every domain
        failure with a single except clause.

    Attributes:
        message: Human-readable error description
        context: Dictionary of additional context for debugging
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format message with context for display."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


# =============================================================================
# STAGE 2: CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(MedicalRecordGenerationError):
    """
    Model endpoint configuration is missing or malformed.

    When raised:
        - Endpoint, API key or deployment name is empty
        - Endpoint is not a well-formed http(s) URL
        - Numeric settings are out of range

    Never retried. The offending setting is named in ``context["setting"]``.

    Example:
        >>> raise ConfigurationError(
        ...     "Endpoint is required",
        ...     context={"setting": "endpoint"}
        ... )
    """

    pass


# =============================================================================
# STAGE 3: COMPLETION ERRORS
# =============================================================================
# Failures of a single request/response cycle. All are retryable.


class CompletionError(MedicalRecordGenerationError):
    """Parent class for failures of one completion attempt."""

    pass


class TransportError(CompletionError):
    """
    The completion endpoint answered with a non-success status, or could
    not be reached at all.

    Attributes:
        status_code: HTTP status (None for connection failures and timeouts)
        body: Response body text, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        context = {}
        if status_code is not None:
            context["status"] = status_code
        if body:
            context["body"] = body[:500]
        super().__init__(message, context=context)


class EmptyResponseError(CompletionError):
    """The endpoint returned no choices, or the first choice had no text."""

    def __init__(self, message: str = "No response from Azure OpenAI"):
        super().__init__(message)


class ParseError(CompletionError):
    """
    Response text could not be parsed as JSON.

    Attributes:
        preview: First characters of the offending text
    """

    def __init__(self, message: str, preview: str = ""):
        self.preview = preview
        super().__init__(message, context={"preview": preview} if preview else None)


class StructuralError(CompletionError):
    """Response parsed as JSON but is not an object (array or scalar)."""

    def __init__(self, actual_type: str):
        self.actual_type = actual_type
        super().__init__(
            "AI response is not a valid JSON object", context={"type": actual_type}
        )


# =============================================================================
# STAGE 4: RETRY ERRORS
# =============================================================================


class RetryExhaustedError(MedicalRecordGenerationError):
    """
    Every attempt allowed by the retry budget failed.

    Attributes:
        attempts: Number of attempts made
        last_error: The failure observed on the final attempt
    """

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error else "unknown error"
        super().__init__(f"Failed to generate data after {attempts} attempts: {detail}")


# =============================================================================
# STAGE 5: GENERATION ERRORS
# =============================================================================


class GenerationError(MedicalRecordGenerationError):
    """Parent class for entity-level generation failures."""

    pass


class SchemaValidationError(GenerationError):
    """
    A parsed object does not satisfy its entity schema.

    Not retried by the generator. The caller may retry the whole call.

    Attributes:
        entity_kind: Value of the EntityKind that failed validation
        errors: "path: message" strings, one per violation
    """

    def __init__(self, entity_kind: str, errors: List[str], entity_name: Optional[str] = None):
        self.entity_kind = entity_kind
        self.entity_name = entity_name or entity_kind
        self.errors = list(errors)
        super().__init__(
            f"AI generated invalid {self.entity_name} data: {', '.join(self.errors)}"
        )


class EntityGenerationError(GenerationError):
    """
    Generation of a named entity failed.

    Attributes:
        entity_name: Display name of the entity (e.g. "Patient")
        cause: Underlying exception
    """

    def __init__(self, entity_name: str, cause: Exception):
        self.entity_name = entity_name
        self.cause = cause
        super().__init__(f"{entity_name} data generation failed: {cause}")


# =============================================================================
# STAGE 6: STORAGE ERRORS
# =============================================================================


class CacheError(MedicalRecordGenerationError):
    """A cache backend operation failed. Never propagated past the cache layer."""

    pass


class CorruptCacheEntryError(CacheError):
    """A stored entry is not a decodable cache entry and should be discarded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Corrupt cache entry: {reason}", context={"key": key[:8]})


class StorageQuotaExceededError(CacheError):
    """Writing an entry would exceed the key-value store's byte quota."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            "Storage quota exceeded",
            context={"requested_bytes": requested, "available_bytes": available},
        )


class ConfigStorageError(MedicalRecordGenerationError):
    """The persisted model configuration could not be written."""

    pass


class UnregisteredEntityError(MedicalRecordGenerationError):
    """A schema was requested for an entity kind the registry does not know."""

    def __init__(self, entity_kind: str):
        self.entity_kind = entity_kind
        super().__init__(f"No schema registered for entity kind: {entity_kind}")
