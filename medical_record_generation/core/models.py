"""
Pipeline Value Objects for Medical Record Generation

This module defines the internal data structures that flow between the
pipeline layers. Entity records (Patient, Provider, ...) live in
``medical_record_generation.schema.entities``; the types here describe the
machinery around them:
    1. What was asked for (GenerationRequest)
    2. What came back from the model (ChatMessage, CompletionResult)
    3. How one attempt ended (AttemptOutcome)
    4. What the cache stores and reports (CacheEntry, CacheStats)

Model Hierarchy:
    GenerationRequest  → Immutable description of one generation
    ChatMessage        → One message of a chat-completion request
    TokenUsage         → Token counts reported by the endpoint
    CompletionResult   → Raw text plus finish reason and usage
    AttemptOutcome     → Tagged Ok / Retryable / Fatal attempt result
    CacheEntry         → One stored generation with expiry
    CacheStats         → Aggregate counts over a cache backend
    ValidationOutcome  → Result of a schema validation
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from medical_record_generation.core.enums import AttemptStatus, ChatRole, EntityKind


# =============================================================================
# STAGE 1: REQUEST MODEL
# =============================================================================


@dataclass(frozen=True)
class GenerationRequest:
    """
    Immutable description of one generation.

    What it does:
        Records the entity kind and every option that influences the
        generated content. The ordered tuple returned by
        ``cache_key_material()`` is the memoization identity.

    Why it exists:
        1. Entity kind is always the first key element, so kinds never collide
        2. Frozen, so a request cannot drift between keying and generating

    Example:
        >>> request = GenerationRequest(
        ...     EntityKind.PATIENT, ({"min": 18, "max": 85}, None)
        ... )
        >>> request.cache_key_material()[0]
        'generatePatient'
    """

    entity_kind: EntityKind
    parameters: Tuple[Any, ...] = ()

    def cache_key_material(self) -> Tuple[Any, ...]:
        """Ordered tuple hashed into the cache key."""
        return (self.entity_kind.value,) + tuple(self.parameters)


# =============================================================================
# STAGE 2: COMPLETION MODELS
# =============================================================================


@dataclass(frozen=True)
class ChatMessage:
    """One message of a chat-completion request."""

    role: ChatRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        """Wire format accepted by the chat completions API."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(ChatRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(ChatRole.USER, content)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by the endpoint."""

    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass(frozen=True)
class CompletionResult:
    """
    One raw completion. Transient: consumed by the caller that issued the
    request and never persisted.
    """

    raw_text: str
    finish_reason: Optional[str] = None
    usage: TokenUsage = field(default_factory=TokenUsage)


# =============================================================================
# STAGE 3: ATTEMPT OUTCOME
# =============================================================================


@dataclass(frozen=True)
class AttemptOutcome:
    """
    Tagged result of a single completion attempt.

    Exactly one of ``value`` (for OK) or ``error`` (for RETRYABLE/FATAL)
    is set. The retry loop branches on ``status`` instead of on exception
    types.

    Example:
        >>> AttemptOutcome.ok({"a": 1}).is_ok
        True
    """

    status: AttemptStatus
    value: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, value: Dict[str, Any]) -> "AttemptOutcome":
        return cls(AttemptStatus.OK, value=value)

    @classmethod
    def retryable(cls, error: Exception) -> "AttemptOutcome":
        return cls(AttemptStatus.RETRYABLE, error=error)

    @classmethod
    def fatal(cls, error: Exception) -> "AttemptOutcome":
        return cls(AttemptStatus.FATAL, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status == AttemptStatus.OK


# =============================================================================
# STAGE 4: CACHE MODELS
# =============================================================================


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    """
    One stored generation.

    Timestamps are epoch milliseconds. ``expires_at`` of None means the
    entry never expires.
    """

    key: str
    data: Any
    created_at: int
    expires_at: Optional[int] = None

    def is_expired(self, now: Optional[int] = None) -> bool:
        """True once the current time has reached ``expires_at``."""
        if self.expires_at is None:
            return False
        return (now if now is not None else now_ms()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Serialized form written by every cache backend."""
        return {
            "key": self.key,
            "data": self.data,
            "timestamp": self.created_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CacheEntry":
        """
        Rebuild an entry from its serialized form.

        Raises:
            KeyError: If a required field is missing
            TypeError: If the payload is not a mapping
        """
        return cls(
            key=payload["key"],
            data=payload["data"],
            created_at=int(payload["timestamp"]),
            expires_at=payload.get("expiresAt"),
        )


@dataclass(frozen=True)
class CacheStats:
    """Aggregate counts over one cache backend."""

    total_entries: int = 0
    valid_entries: int = 0
    expired_entries: int = 0
    total_size_bytes: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalEntries": self.total_entries,
            "validEntries": self.valid_entries,
            "expiredEntries": self.expired_entries,
            "totalSize": self.total_size_bytes,
        }


# =============================================================================
# STAGE 5: VALIDATION OUTCOME
# =============================================================================


@dataclass(frozen=True)
class ValidationOutcome:
    """
    Result of validating a candidate object against an entity schema.

    Attributes:
        valid: Whether the candidate satisfied the schema
        data: The validated model instance (only when valid)
        errors: "path: message" strings (only when invalid)
    """

    valid: bool
    data: Any = None
    errors: List[str] = field(default_factory=list)
