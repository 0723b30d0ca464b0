"""
Pipeline Settings
=================

WHAT THIS MODULE DOES:
Collects the process-wide knobs of the generation pipeline (retry budget,
cache location and lifetime, log level) in one typed settings object that
reads environment variables. A .env file is loaded into the process
environment first with python-dotenv (GenerationSettings.load), so there is
exactly one way settings reach the pipeline.

WHY WE NEED THIS:
1. **Single Source of Truth**: CLI scripts and the pipeline facade read the
   same values instead of parsing os.environ in several places.
2. **Type Safety**: Pydantic validates numbers and booleans at startup.
3. **Explicit Hand-off**: Settings are turned into the immutable
   CacheConfig and ModelEndpointConfig objects that generators receive as
   arguments. Nothing downstream reads the environment.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from medical_record_generation.core.config import (
    CacheConfig,
    ConfigDefaults,
    ModelEndpointConfig,
)


class GenerationSettings(BaseSettings):
    """
    Environment-backed settings for the generation pipeline.

    Variable names match field names case-insensitively
    (e.g. ``CACHE_TTL_SECONDS``, ``AZURE_OPENAI_ENDPOINT``).
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # COMPLETION ENDPOINT
    # ============================================================================

    azure_openai_endpoint: str = Field(default="", description="Azure OpenAI resource URL")
    azure_openai_api_key: str = Field(default="", repr=False, description="Azure OpenAI key")
    azure_openai_deployment: str = Field(default="", description="Model deployment name")
    azure_openai_api_version: Optional[str] = Field(default=None, description="API version")
    azure_openai_timeout: float = Field(
        default=ConfigDefaults.DEFAULT_TIMEOUT_SECONDS,
        description="Per-request timeout in seconds",
    )
    azure_openai_structured_outputs: bool = Field(
        default=False,
        description="Request json_schema structured outputs instead of JSON-object mode",
    )

    # ============================================================================
    # GENERATION
    # ============================================================================

    generation_max_attempts: int = Field(
        default=ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
        description="Attempts per structured generation before giving up",
    )

    # ============================================================================
    # CACHE
    # ============================================================================

    cache_enabled: bool = Field(default=True, description="Enable the generation cache")
    cache_directory: str = Field(
        default=ConfigDefaults.DEFAULT_CACHE_DIRECTORY,
        description="Directory for the filesystem cache backend",
    )
    cache_ttl_seconds: Optional[float] = Field(
        default=ConfigDefaults.DEFAULT_CACHE_TTL_SECONDS,
        description="Cache entry lifetime; empty for no expiry",
    )

    # ============================================================================
    # LOGGING
    # ============================================================================

    log_level: str = Field(default="INFO", description="loguru level for scripts")

    @field_validator("generation_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        """At least one attempt is always made."""
        if v < 1:
            raise ValueError("generation_max_attempts must be >= 1")
        return v

    @field_validator("cache_ttl_seconds", mode="before")
    @classmethod
    def empty_ttl_means_no_expiry(cls, v):
        """An empty CACHE_TTL_SECONDS disables expiry."""
        if v == "":
            return None
        return v

    def to_endpoint_config(self) -> ModelEndpointConfig:
        """Build the endpoint configuration passed to generators."""
        return ModelEndpointConfig(
            endpoint=self.azure_openai_endpoint,
            api_key=self.azure_openai_api_key,
            deployment_name=self.azure_openai_deployment,
            api_version=self.azure_openai_api_version,
            timeout_seconds=self.azure_openai_timeout,
            structured_outputs=self.azure_openai_structured_outputs,
        )

    def to_cache_config(self) -> CacheConfig:
        """Build the cache configuration passed to generators."""
        return CacheConfig(
            enabled=self.cache_enabled,
            directory=self.cache_directory,
            ttl_seconds=self.cache_ttl_seconds,
        )

    @classmethod
    def load(cls, env_file: Optional[str] = None) -> "GenerationSettings":
        """
        Load a .env file into the environment, then read settings from it.

        STAGE 1: Load ``env_file``, or ./.env when present
        STAGE 2: Read and validate variables

        Variables already set in the process environment take precedence
        over the file.

        Raises:
            pydantic.ValidationError: If a variable has an invalid value
        """
        # STAGE 1: Load .env file
        dotenv_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path)
            logger.debug(f"Loaded environment from: {dotenv_path}")
        elif env_file:
            logger.warning(f".env file not found at: {dotenv_path.absolute()}")

        # STAGE 2: Read environment variables
        return cls()
