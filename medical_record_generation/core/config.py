"""
Configuration for Medical Record Generation

This module defines the configuration objects passed explicitly into every
generator call. Configuration is:
    1. Built by GenerationSettings from the environment, or in code
    2. Validated before any network call to fail fast on misconfiguration
    3. Immutable after creation so concurrent generators can share it

Configuration Hierarchy:
    ModelEndpointConfig  → Completion endpoint (URL, credential, deployment)
    CacheConfig          → Generation cache (backend location, TTL, quota)

Usage:
    from medical_record_generation.core.config import ModelEndpointConfig

    # Configure programmatically (GenerationSettings builds one from the environment)
    config = ModelEndpointConfig(
        endpoint="https://my-resource.openai.azure.com",
        api_key="your-key",
        deployment_name="gpt-4o",
    )
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from medical_record_generation.core.exceptions import ConfigurationError


# =============================================================================
# STAGE 1: DEFAULT VALUES
# =============================================================================


class ConfigDefaults:
    """Default configuration values."""

    # -------------------------------------------------------------------------
    # 1.1 Completion Endpoint Defaults
    # -------------------------------------------------------------------------
    DEFAULT_API_VERSION = "2024-02-15-preview"
    DEFAULT_TIMEOUT_SECONDS = 60.0
    DEFAULT_MAX_TOKENS = 20 * 1024
    DEFAULT_TEMPERATURE = 1.0  # provider default; omitted from requests
    DEFAULT_MAX_ATTEMPTS = 3
    DEFAULT_BACKOFF_SECONDS = 1.0  # multiplied by the attempt number

    # -------------------------------------------------------------------------
    # 1.2 Cache Defaults
    # -------------------------------------------------------------------------
    DEFAULT_CACHE_DIRECTORY = ".cache/ai-data"
    DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
    DEFAULT_STORAGE_PREFIX = "docgen-cache:"
    DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024

    # -------------------------------------------------------------------------
    # 1.3 Model Configuration Storage
    # -------------------------------------------------------------------------
    CONFIG_STORAGE_KEY = "azureOpenAIConfig"
    DEFAULT_CONFIG_STORE_PATH = Path.home() / ".medical_record_generation" / "model_config.json"


# =============================================================================
# STAGE 2: MODEL ENDPOINT CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class ModelEndpointConfig:
    """
    Connection settings for the chat-completion endpoint.

    What it does:
        Carries everything the Completion Client needs to reach one model
        deployment. Passed explicitly into every generator call; there is
        no module-level "current configuration".

    Why it exists:
        1. Single value object shared by concurrent generators
        2. Validated before use so a bad endpoint never reaches the network
        3. Credential kept out of repr() and error messages

    Example:
        >>> config = ModelEndpointConfig(
        ...     endpoint="https://example.openai.azure.com",
        ...     api_key="secret",
        ...     deployment_name="gpt-4o",
        ... )
        >>> config.validate()
        >>> config.to_dict()["api_key"]
        '***'
    """

    # -------------------------------------------------------------------------
    # 2.1 Required Settings
    # -------------------------------------------------------------------------
    endpoint: str
    """Base URL of the Azure OpenAI resource."""

    api_key: str = field(repr=False)
    """Credential sent in the api-key header. Never logged."""

    deployment_name: str
    """Model deployment identifier."""

    # -------------------------------------------------------------------------
    # 2.2 Optional Settings
    # -------------------------------------------------------------------------
    api_version: Optional[str] = None
    """API version query parameter. Defaults to DEFAULT_API_VERSION."""

    timeout_seconds: float = ConfigDefaults.DEFAULT_TIMEOUT_SECONDS
    """Per-request transport timeout."""

    max_tokens: int = ConfigDefaults.DEFAULT_MAX_TOKENS
    """Upper bound on completion tokens per request."""

    structured_outputs: bool = False
    """Send each entity's JSON schema as a json_schema response format."""

    # -------------------------------------------------------------------------
    # 2.3 Validation Methods
    # -------------------------------------------------------------------------

    @property
    def effective_api_version(self) -> str:
        """API version actually sent with requests."""
        return self.api_version or ConfigDefaults.DEFAULT_API_VERSION

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Checks:
            1. Endpoint, API key and deployment name are non-empty
            2. Endpoint parses as an http(s) URL with a host
            3. Timeout and token budget are positive

        Raises:
            ConfigurationError: Naming the first invalid setting
        """
        if not self.endpoint or not self.endpoint.strip():
            raise ConfigurationError("Endpoint is required", context={"setting": "endpoint"})

        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError("API Key is required", context={"setting": "api_key"})

        if not self.deployment_name or not self.deployment_name.strip():
            raise ConfigurationError(
                "Deployment Name is required", context={"setting": "deployment_name"}
            )

        parsed = urlparse(self.endpoint.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                "Invalid endpoint URL format",
                context={"setting": "endpoint", "endpoint": self.endpoint},
            )

        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"Timeout must be positive, got {self.timeout_seconds}",
                context={"setting": "timeout_seconds"},
            )

        if self.max_tokens <= 0:
            raise ConfigurationError(
                f"max_tokens must be positive, got {self.max_tokens}",
                context={"setting": "max_tokens"},
            )

    # -------------------------------------------------------------------------
    # 2.4 Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelEndpointConfig":
        """Build from the camelCase mapping used by the persisted config store."""
        return cls(
            endpoint=data.get("endpoint", ""),
            api_key=data.get("apiKey", ""),
            deployment_name=data.get("deploymentName", ""),
            api_version=data.get("apiVersion"),
        )

    def to_storage_dict(self) -> Dict[str, Any]:
        """Mapping written by the config store, credential included."""
        return {
            "endpoint": self.endpoint,
            "apiKey": self.api_key,
            "deploymentName": self.deployment_name,
            "apiVersion": self.api_version,
        }

    def to_dict(self) -> dict:
        """Convert configuration to dictionary (for logging/debugging)."""
        return {
            "endpoint": self.endpoint,
            "api_key": "***" if self.api_key else None,
            "deployment_name": self.deployment_name,
            "api_version": self.effective_api_version,
            "timeout_seconds": self.timeout_seconds,
            "max_tokens": self.max_tokens,
            "structured_outputs": self.structured_outputs,
        }


# =============================================================================
# STAGE 3: CACHE CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class CacheConfig:
    """
    Settings for the generation cache.

    Attributes:
        enabled: When False every read misses and every write is skipped
        directory: Filesystem backend location
        ttl_seconds: Entry lifetime; None means entries never expire
        storage_prefix: Key prefix for the key-value backend
        quota_bytes: Byte budget of the key-value backend
    """

    enabled: bool = True
    directory: str = ConfigDefaults.DEFAULT_CACHE_DIRECTORY
    ttl_seconds: Optional[float] = ConfigDefaults.DEFAULT_CACHE_TTL_SECONDS
    storage_prefix: str = ConfigDefaults.DEFAULT_STORAGE_PREFIX
    quota_bytes: int = ConfigDefaults.DEFAULT_QUOTA_BYTES

    def disabled(self) -> "CacheConfig":
        """Return a copy with caching turned off."""
        return replace(self, enabled=False)


DEFAULT_CACHE_CONFIG = CacheConfig()
