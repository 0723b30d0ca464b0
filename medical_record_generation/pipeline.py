"""
Medical Record Generation Pipeline - Public API

This is the PUBLIC API entry point for the generation system. It exposes
one async function per entity kind plus a pipeline class that generates a
complete record from a preset.

Architecture Diagram:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       MedicalRecordPipeline                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  ┌──────────┐   ┌──────────┐   ┌──────────┐   ┌──────────────────┐  │
    │  │ Patient  │   │Insurance │   │ History  │   │                  │  │
    │  │ Provider │ → │          │ → │ Visits   │ → │    assemble()    │  │
    │  │(parallel)│   │          │   │ Labs     │   │                  │  │
    │  └──────────┘   └──────────┘   └──────────┘   └──────────────────┘  │
    │        │              │              │                              │
    │        └──────────────┴──────────────┴─▶ Generators ─▶ Orchestrator │
    │                                           │  ▲                      │
    │                                           ▼  │                      │
    │                                         Cache Layer                 │
    └─────────────────────────────────────────────────────────────────────┘

Usage:
    from medical_record_generation import MedicalRecordPipeline

    pipeline = MedicalRecordPipeline.from_environment()
    record = await pipeline.generate_complete_record("standard")

    # Or one entity at a time, passing configuration explicitly
    patient = await generate_patient_with_ai(config, PatientOptions(age_min=40))
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger

from medical_record_generation.cache import cache_layer
from medical_record_generation.clients.completion_client import (
    AzureOpenAICompletionClient,
    CompletionClientProtocol,
)
from medical_record_generation.clients.retry import RetryOrchestrator
from medical_record_generation.composition.assembler import AssembledRecord, assemble
from medical_record_generation.core.config import (
    DEFAULT_CACHE_CONFIG,
    CacheConfig,
    ConfigDefaults,
    ModelEndpointConfig,
)
from medical_record_generation.core.enums import Complexity, LabTestType
from medical_record_generation.core.models import CacheStats
from medical_record_generation.core.settings import GenerationSettings
from medical_record_generation.generation.entity_generator import EntityGenerators
from medical_record_generation.generation.lab_reports import (
    ProgressCallback,
    generate_laboratory_reports,
)
from medical_record_generation.generation.options import (
    BasicData,
    CMS1500Options,
    GenerationOptions,
    InsuranceOptions,
    InsurancePolicyOptions,
    MedicalHistoryOptions,
    PatientOptions,
    ProviderOptions,
    VisitReportOptions,
)
from medical_record_generation.schema.entities import (
    CMS1500Claim,
    InsuranceInfo,
    InsurancePolicy,
    LaboratoryReport,
    MedicalHistory,
    Patient,
    Provider,
    VisitReport,
)


# =============================================================================
# STAGE 1: SHARED CLIENT
# =============================================================================
# The module-level functions share one Azure OpenAI client unless a client is
# passed explicitly. It holds HTTP connections only, never configuration.

_default_client: Optional[AzureOpenAICompletionClient] = None


def _resolve_client(client: Optional[CompletionClientProtocol]) -> CompletionClientProtocol:
    global _default_client
    if client is not None:
        return client
    if _default_client is None:
        _default_client = AzureOpenAICompletionClient()
    return _default_client


def _generators(
    client: Optional[CompletionClientProtocol],
    cache_config: Optional[CacheConfig],
    max_attempts: int,
) -> EntityGenerators:
    return EntityGenerators(
        RetryOrchestrator(_resolve_client(client)),
        cache_config=cache_config or DEFAULT_CACHE_CONFIG,
        max_attempts=max_attempts,
    )


async def _gather_or_cancel(*coroutines: Awaitable[Any]) -> List[Any]:
    """
    Run ``coroutines`` concurrently and return their results in order.

    If one fails, the others are cancelled and awaited before the first
    failure is re-raised, so no task outlives the call.
    """
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


# =============================================================================
# STAGE 2: ENTITY FUNCTIONS
# =============================================================================


async def generate_patient_with_ai(
    config: ModelEndpointConfig,
    options: Optional[PatientOptions] = None,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> Patient:
    """
    Generate realistic patient demographics.

    Args:
        config: Endpoint configuration
        options: Age range and gender (defaults: 18-85, any gender)
        cache_config: Cache settings
        client: Completion client override (tests inject a stub here)
        max_attempts: Attempt budget

    Returns:
        Patient with age, display name, identifiers and pharmacy filled

    Raises:
        ConfigurationError: Endpoint configuration is unusable
        SchemaValidationError: Output does not satisfy the patient schema
        EntityGenerationError: Every attempt failed
    """
    generators = _generators(client, cache_config, max_attempts)
    return await generators.patient.generate(config, options)


async def generate_provider_with_ai(
    config: ModelEndpointConfig,
    options: Optional[ProviderOptions] = None,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> Provider:
    """Generate a provider with facility and billing details."""
    generators = _generators(client, cache_config, max_attempts)
    return await generators.provider.generate(config, options)


async def generate_insurance_info_with_ai(
    config: ModelEndpointConfig,
    patient: Patient,
    include_secondary: bool = False,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    patient_is_subscriber: Optional[bool] = None,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> InsuranceInfo:
    """
    Generate insurance for ``patient``.

    With ``patient_is_subscriber`` left as None the patient is the
    subscriber 70% of the time.
    """
    generators = _generators(client, cache_config, max_attempts)
    options = InsuranceOptions(
        patient=patient,
        include_secondary=include_secondary,
        patient_is_subscriber=patient_is_subscriber,
    )
    return await generators.insurance.generate(config, options)


async def generate_cms1500_with_ai(
    config: ModelEndpointConfig,
    patient: Patient,
    insurance: InsuranceInfo,
    provider: Provider,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> CMS1500Claim:
    """Generate a CMS-1500 claim with service lines for the given entities."""
    generators = _generators(client, cache_config, max_attempts)
    options = CMS1500Options(patient=patient, insurance=insurance, provider=provider)
    return await generators.cms1500.generate(config, options)


async def generate_insurance_policy_with_ai(
    config: ModelEndpointConfig,
    patient: Patient,
    include_secondary: bool = False,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> InsurancePolicy:
    """Generate a policy document with ``patient`` as the policyholder."""
    generators = _generators(client, cache_config, max_attempts)
    options = InsurancePolicyOptions(patient=patient, include_secondary=include_secondary)
    return await generators.insurance_policy.generate(config, options)


async def generate_visit_reports_with_ai(
    config: ModelEndpointConfig,
    patient: Patient,
    provider: Provider,
    number_of_visits: int = 1,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> List[VisitReport]:
    """
    Generate ``number_of_visits`` visits in one call.

    Returns:
        Visits ordered oldest first
    """
    generators = _generators(client, cache_config, max_attempts)
    options = VisitReportOptions(
        patient=patient, provider=provider, number_of_visits=number_of_visits
    )
    collection = await generators.visit_reports.generate(config, options)
    return list(collection.visits)


async def generate_visit_report_with_ai(
    config: ModelEndpointConfig,
    patient: Patient,
    provider: Provider,
    number_of_visits: int = 1,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> VisitReport:
    """The earliest visit of ``generate_visit_reports_with_ai``."""
    visits = await generate_visit_reports_with_ai(
        config,
        patient,
        provider,
        number_of_visits,
        cache_config,
        client=client,
        max_attempts=max_attempts,
    )
    return visits[0]


async def generate_medical_history_with_ai(
    config: ModelEndpointConfig,
    patient: Patient,
    complexity: Union[Complexity, str] = Complexity.MEDIUM,
    cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> MedicalHistory:
    """Generate a medical history sized by ``complexity`` (low/medium/high)."""
    if not isinstance(complexity, Complexity):
        complexity = Complexity.from_string(complexity)
    generators = _generators(client, cache_config, max_attempts)
    options = MedicalHistoryOptions(patient=patient, complexity=complexity)
    return await generators.medical_history.generate(config, options)


async def generate_laboratory_report_data_with_ai(
    config: ModelEndpointConfig,
    basic_data: BasicData,
    test_types: Iterable[Union[LabTestType, str]],
    cache_config: Optional[CacheConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    client: Optional[CompletionClientProtocol] = None,
    max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
) -> Dict[LabTestType, LaboratoryReport]:
    """
    Generate one laboratory report per test type.

    Failures and unknown test types are reported through ``on_progress``
    with a None report and skipped; only a ConfigurationError is raised.

    Example:
        >>> reports = await generate_laboratory_report_data_with_ai(
        ...     config, BasicData(patient), ["CBC", "BMP"],
        ...     on_progress=lambda t, r, i, n: print(f"{i}/{n} {t}: {r is not None}"),
        ... )
    """
    generators = _generators(client, cache_config, max_attempts)
    return await generate_laboratory_reports(
        generators.lab_report, config, basic_data, test_types, on_progress
    )


# =============================================================================
# STAGE 3: CACHE MAINTENANCE
# =============================================================================


def clear_cache(cache_config: CacheConfig = DEFAULT_CACHE_CONFIG) -> int:
    """Remove every cached generation. Returns the number removed."""
    return cache_layer.clear(cache_config)


def clear_expired_cache(cache_config: CacheConfig = DEFAULT_CACHE_CONFIG) -> int:
    """Remove expired and corrupt cached generations."""
    return cache_layer.clear_expired(cache_config)


def get_cache_stats(cache_config: CacheConfig = DEFAULT_CACHE_CONFIG) -> CacheStats:
    return cache_layer.get_stats(cache_config)


# =============================================================================
# STAGE 4: PIPELINE CLASS
# =============================================================================


class MedicalRecordPipeline:
    """
    Generates complete synthetic medical records.

    What it does:
        Runs every entity generator in dependency order and assembles the
        results into one AssembledRecord.

    Why it exists:
        1. Simple API: one call per complete record
        2. Configuration: endpoint, cache and retry budget set once
        3. Concurrency: independent entities are generated in parallel

    How it works:
        STAGE 4.1: Patient and provider, concurrently
        STAGE 4.2: Insurance for the patient
        STAGE 4.3: Medical history, visits and labs
        STAGE 4.4: assemble()

    Example:
        >>> pipeline = MedicalRecordPipeline.from_environment()
        >>> record = await pipeline.generate_complete_record("complex")
        >>> record.patient.name
        'Doe, Jane'
    """

    def __init__(
        self,
        endpoint_config: ModelEndpointConfig,
        cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
        client: Optional[CompletionClientProtocol] = None,
        max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Args:
            endpoint_config: Completion endpoint settings
            cache_config: Cache settings
            client: Completion client override (defaults to Azure OpenAI)
            max_attempts: Attempt budget per entity
            sleep: Backoff sleep override (for testing)
        """
        self._endpoint_config = endpoint_config
        self._cache_config = cache_config
        self._client = client or AzureOpenAICompletionClient()
        self._generators = EntityGenerators.create(
            self._client, sleep=sleep, cache_config=cache_config, max_attempts=max_attempts
        )
        self._records_generated = 0

        logger.debug(
            f"MedicalRecordPipeline initialized | "
            f"Deployment: {endpoint_config.deployment_name} | "
            f"Cache: {'on' if cache_config.enabled else 'off'} | "
            f"Max attempts: {max_attempts}"
        )

    # =========================================================================
    # STAGE 4.1: COMPLETE RECORD
    # =========================================================================

    async def generate_complete_record(
        self,
        options: Union[str, GenerationOptions] = "standard",
        on_lab_progress: Optional[ProgressCallback] = None,
        record_index: Optional[int] = None,
    ) -> AssembledRecord:
        """
        Generate and assemble a complete record.

        Args:
            options: Preset name ("simple", "standard", "complex") or options
            on_lab_progress: Progress callback for the lab batch
            record_index: Position in a batch; distinct positions never share
                a cached patient or provider

        Returns:
            AssembledRecord with every generated entity

        Raises:
            ValueError: Unknown preset name
            ConfigurationError: Endpoint configuration is unusable
            GenerationError: A required entity failed (labs never raise)
        """
        preset_name = options if isinstance(options, str) else None
        if isinstance(options, str):
            options = GenerationOptions.from_preset(options)
        if record_index is not None:
            options = options.for_record(record_index)

        config = self._endpoint_config
        config.validate()
        generators = self._generators
        started = datetime.now()

        logger.info(
            f"Generating complete record | Complexity: {options.complexity.value} | "
            f"Visits: {options.number_of_visits} | Labs: {options.number_of_lab_tests}"
        )

        patient, provider = await _gather_or_cancel(
            generators.patient.generate(config, options.patient),
            generators.provider.generate(config, options.provider),
        )

        insurance = await generators.insurance.generate(
            config,
            InsuranceOptions(patient=patient, include_secondary=options.include_secondary_insurance),
        )

        medical_history = await generators.medical_history.generate(
            config, MedicalHistoryOptions(patient=patient, complexity=options.complexity)
        )
        visits = await generators.visit_reports.generate(
            config,
            VisitReportOptions(
                patient=patient, provider=provider, number_of_visits=options.number_of_visits
            ),
        )
        lab_reports = await generate_laboratory_reports(
            generators.lab_report,
            config,
            BasicData(patient=patient, provider=provider),
            options.lab_test_types(),
            on_lab_progress,
        )

        record = assemble(
            patient,
            provider,
            insurance,
            medical_history=medical_history,
            visit_reports=visits.visits,
            lab_reports=lab_reports,
            metadata={
                "preset": preset_name,
                "recordIndex": record_index,
                "complexity": options.complexity.value,
                "requestedLabTests": [t.value for t in options.lab_test_types()],
                "durationSeconds": round((datetime.now() - started).total_seconds(), 3),
            },
        )
        self._records_generated += 1
        logger.info(
            f"Record complete | Patient: {record.patient.name} | "
            f"Visits: {len(record.visit_reports)} | Labs: {len(record.lab_reports)}"
        )
        return record

    # =========================================================================
    # STAGE 4.2: SAVE RECORDS
    # =========================================================================

    def save_record(
        self,
        record: AssembledRecord,
        output_dir: Union[str, Path] = "output",
        filename_prefix: str = "medical_record",
    ) -> str:
        """
        Save a record to a timestamped JSON file.

        Returns:
            Path to the saved file
        """
        dir_path = Path(output_dir)
        dir_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = dir_path / f"{filename_prefix}_{timestamp}.json"

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(record.to_json_dict(), f, indent=2, ensure_ascii=False)

        logger.info(f"Saved record to {filepath}")
        return str(filepath)

    # =========================================================================
    # STAGE 4.3: FACTORY METHODS
    # =========================================================================

    @classmethod
    def from_environment(
        cls,
        env_file: Optional[str] = None,
        client: Optional[CompletionClientProtocol] = None,
    ) -> "MedicalRecordPipeline":
        """
        Create a pipeline from environment variables (and ``.env``).

        Raises:
            ConfigurationError: If required endpoint settings are missing
        """
        settings = GenerationSettings.load(env_file)
        endpoint_config = settings.to_endpoint_config()
        endpoint_config.validate()
        return cls(
            endpoint_config,
            cache_config=settings.to_cache_config(),
            client=client,
            max_attempts=settings.generation_max_attempts,
        )

    # =========================================================================
    # STAGE 4.4: PROPERTIES
    # =========================================================================

    @property
    def records_generated(self) -> int:
        return self._records_generated

    @property
    def endpoint_config(self) -> ModelEndpointConfig:
        return self._endpoint_config

    @property
    def cache_config(self) -> CacheConfig:
        return self._cache_config

    async def aclose(self) -> None:
        """Close the underlying HTTP client, if it holds one."""
        close = getattr(self._client, "aclose", None)
        if close is not None:
            await close()
