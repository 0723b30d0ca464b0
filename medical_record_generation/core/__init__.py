"""
Core Layer - Value Objects, Enums, Configuration and Exceptions

This layer contains the foundation every other layer builds on. It performs
no network or cache I/O.

Submodules:
    models.py        → Pipeline value objects (GenerationRequest, CacheEntry, ...)
    enums.py         → Enumerations (EntityKind, Complexity, LabTestType, ...)
    config.py        → Endpoint and cache configuration dataclasses
    settings.py      → Environment-backed pipeline settings
    constants.py     → Prompts, lab catalogue, presets
    exceptions.py    → Domain-specific exceptions
    logging_setup.py → loguru sink setup for scripts

Dependency Rule:
    This layer depends on NOTHING else in the package.
    All other layers may depend on this layer.
"""

from medical_record_generation.core.models import (
    GenerationRequest,
    ChatMessage,
    CompletionResult,
    TokenUsage,
    AttemptOutcome,
    CacheEntry,
    CacheStats,
    ValidationOutcome,
)
from medical_record_generation.core.enums import (
    EntityKind,
    Complexity,
    LabTestType,
    ChatRole,
    AttemptStatus,
)
from medical_record_generation.core.config import (
    ModelEndpointConfig,
    CacheConfig,
    ConfigDefaults,
    DEFAULT_CACHE_CONFIG,
)
from medical_record_generation.core.settings import GenerationSettings
from medical_record_generation.core.exceptions import (
    MedicalRecordGenerationError,
    ConfigurationError,
    CompletionError,
    TransportError,
    EmptyResponseError,
    ParseError,
    StructuralError,
    RetryExhaustedError,
    GenerationError,
    SchemaValidationError,
    EntityGenerationError,
    CacheError,
    CorruptCacheEntryError,
    StorageQuotaExceededError,
    ConfigStorageError,
    UnregisteredEntityError,
)

__all__ = [
    # Models
    "GenerationRequest",
    "ChatMessage",
    "CompletionResult",
    "TokenUsage",
    "AttemptOutcome",
    "CacheEntry",
    "CacheStats",
    "ValidationOutcome",
    # Enums
    "EntityKind",
    "Complexity",
    "LabTestType",
    "ChatRole",
    "AttemptStatus",
    # Configuration
    "ModelEndpointConfig",
    "CacheConfig",
    "ConfigDefaults",
    "DEFAULT_CACHE_CONFIG",
    "GenerationSettings",
    # Exceptions
    "MedicalRecordGenerationError",
    "ConfigurationError",
    "CompletionError",
    "TransportError",
    "EmptyResponseError",
    "ParseError",
    "StructuralError",
    "RetryExhaustedError",
    "GenerationError",
    "SchemaValidationError",
    "EntityGenerationError",
    "CacheError",
    "CorruptCacheEntryError",
    "StorageQuotaExceededError",
    "ConfigStorageError",
    "UnregisteredEntityError",
]
