"""
Entity Generators - One Generator per Record Kind

This module provides the generation template shared by every entity kind
and the concrete generators built on it.

Why a Template Base Class:
    1. Every entity follows the same cache → call → validate → normalize flow
    2. Error wrapping is identical, so failures always name the entity
    3. Subclasses only supply the prompt, candidate shaping and normalization

Pipeline Position:
    Options → PromptBuilder → [EntityGenerator] → Normalizers → caller
                               ^^^^^^^^^^^^^^^^^
                               You are here

Error policy:
    ConfigurationError      → propagates unchanged, before any cache or network use
    SchemaValidationError   → propagates unchanged (no corrective retry)
    anything else in-domain → EntityGenerationError("<Entity>", cause)
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError

from medical_record_generation.cache import cache_layer
from medical_record_generation.cache.backends import CacheBackend
from medical_record_generation.clients.completion_client import CompletionClientProtocol
from medical_record_generation.clients.retry import RetryOrchestrator
from medical_record_generation.core.config import (
    DEFAULT_CACHE_CONFIG,
    CacheConfig,
    ConfigDefaults,
    ModelEndpointConfig,
)
from medical_record_generation.core.constants import SYSTEM_PROMPTS
from medical_record_generation.core.enums import EntityKind
from medical_record_generation.core.exceptions import (
    ConfigurationError,
    EntityGenerationError,
    MedicalRecordGenerationError,
    SchemaValidationError,
)
from medical_record_generation.generation import normalizers
from medical_record_generation.generation.options import (
    CMS1500Options,
    InsuranceOptions,
    InsurancePolicyOptions,
    LabReportOptions,
    MedicalHistoryOptions,
    PatientOptions,
    ProviderOptions,
    VisitReportOptions,
)
from medical_record_generation.generation.prompt_builder import PromptBuilder
from medical_record_generation.schema.entities import (
    ClaimInfo,
    CMS1500Claim,
    InsurancePolicy,
    InsuranceInfo,
    LaboratoryReport,
    MedicalHistory,
    Patient,
    Provider,
    VisitReportCollection,
)
from medical_record_generation.schema.registry import (
    SchemaRegistry,
    default_registry,
    response_format_for_model,
)


# =============================================================================
# STAGE 1: GENERATION TEMPLATE
# =============================================================================


class BaseEntityGenerator(ABC):
    """
    Abstract generator implementing the shared generation flow.

    What it does:
        Turns an options object into a validated, normalized entity,
        consulting the cache first and storing the result afterwards.

    Why it exists:
        1. One place for the cache/call/validate/normalize sequence
        2. Consistent logging and error wrapping across entity kinds
        3. Subclasses stay small and declarative

    How it works:
        STAGE 1.1: Validate endpoint configuration (fail fast)
        STAGE 1.2: Resolve options and derive the cache key
        STAGE 1.3: Return a cached entity when one is present
        STAGE 1.4: Call the orchestrator with the entity prompt
        STAGE 1.5: Validate, normalize, cache and return

    Example:
        >>> generator = PatientGenerator(RetryOrchestrator(client))
        >>> patient = await generator.generate(config, PatientOptions(age_min=30))
    """

    entity_kind: EntityKind

    def __init__(
        self,
        orchestrator: RetryOrchestrator,
        cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
        max_attempts: int = ConfigDefaults.DEFAULT_MAX_ATTEMPTS,
        registry: SchemaRegistry = default_registry,
        prompt_builder: Optional[PromptBuilder] = None,
        cache_backend: Optional[CacheBackend] = None,
    ):
        """
        Args:
            orchestrator: Retry orchestrator wrapping a completion client
            cache_config: Cache settings (use ``CacheConfig.disabled()`` to bypass)
            max_attempts: Attempt budget passed to the orchestrator
            registry: Schema registry used for validation and prompt schemas
            prompt_builder: Prompt builder (defaults to one over ``registry``)
            cache_backend: Explicit cache backend; auto-selected when None
        """
        self._orchestrator = orchestrator
        self._cache_config = cache_config
        self._max_attempts = max_attempts
        self._registry = registry
        self._prompt_builder = prompt_builder or PromptBuilder(registry)
        self._cache_backend = cache_backend

    @property
    def display_name(self) -> str:
        return self.entity_kind.display_name

    # =========================================================================
    # STAGE 1.1: PUBLIC API
    # =========================================================================

    async def generate(self, config: ModelEndpointConfig, options: Any) -> BaseModel:
        """
        Generate one entity.

        Args:
            config: Endpoint configuration, validated before anything else
            options: The generator's options object

        Returns:
            Validated and normalized entity

        Raises:
            ConfigurationError: Endpoint configuration is unusable
            SchemaValidationError: Model output does not satisfy the schema
            EntityGenerationError: Retries exhausted or another domain failure
        """
        config.validate()

        options = self.resolve_options(options)
        request = options.to_request()
        cache_key = cache_layer.make_key(*request.cache_key_material())

        cached = self._from_cache(cache_key)
        if cached is not None:
            logger.info(f"{self.display_name} data retrieved from cache")
            return cached

        logger.info(f"Generating {self.display_name} data")
        try:
            data = await self._orchestrator.generate_structured(
                config,
                self.build_prompt(options),
                SYSTEM_PROMPTS[self.entity_kind],
                self._max_attempts,
                self.response_format() if config.structured_outputs else None,
            )
            outcome = self._registry.validate(
                self.entity_kind, self.prepare_candidate(data, options)
            )
        except (ConfigurationError, SchemaValidationError):
            raise
        except MedicalRecordGenerationError as e:
            logger.error(f"Failed to generate {self.display_name} data: {e}")
            raise EntityGenerationError(self.display_name, e) from e

        if not outcome.valid:
            logger.error(
                f"{self.display_name} data failed validation | errors={len(outcome.errors)}"
            )
            raise SchemaValidationError(
                self.entity_kind.value, outcome.errors, entity_name=self.display_name.lower()
            )

        entity = self.normalize(outcome.data, options)
        cache_layer.put(
            self._cache_config, cache_key, entity.to_json_dict(), backend=self._cache_backend
        )
        logger.info(f"{self.display_name} data validated successfully")
        return entity

    # =========================================================================
    # STAGE 1.2: SUBCLASS HOOKS
    # =========================================================================

    def resolve_options(self, options: Any) -> Any:
        """Finalize options before keying. Default: unchanged."""
        return options

    @abstractmethod
    def build_prompt(self, options: Any) -> str:
        """User prompt for ``options``."""
        pass

    def response_format(self) -> Dict[str, Any]:
        """Structured-output format matching the schema embedded in the prompt."""
        return self._registry.response_format_for(self.entity_kind)

    def prepare_candidate(self, data: Dict[str, Any], options: Any) -> Dict[str, Any]:
        """Shape raw model output into the registered schema. Default: unchanged."""
        return data

    def normalize(self, entity: BaseModel, options: Any) -> BaseModel:
        """Complete a validated entity. Default: unchanged."""
        return entity

    # =========================================================================
    # STAGE 1.3: CACHE REHYDRATION
    # =========================================================================

    def _from_cache(self, cache_key: str) -> Optional[BaseModel]:
        data = cache_layer.get(self._cache_config, cache_key, backend=self._cache_backend)
        if data is None:
            return None
        try:
            return self._registry.schema_for(self.entity_kind).model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring stale {self.display_name} cache entry: {e.error_count()} errors")
            return None


# =============================================================================
# STAGE 2: DEMOGRAPHIC GENERATORS
# =============================================================================


class PatientGenerator(BaseEntityGenerator):
    entity_kind = EntityKind.PATIENT

    def resolve_options(self, options: Optional[PatientOptions]) -> PatientOptions:
        return options or PatientOptions()

    def build_prompt(self, options: PatientOptions) -> str:
        return self._prompt_builder.patient_prompt(options)

    def normalize(self, entity: Patient, options: PatientOptions) -> Patient:
        return normalizers.normalize_patient(entity)


class ProviderGenerator(BaseEntityGenerator):
    entity_kind = EntityKind.PROVIDER

    def resolve_options(self, options: Optional[ProviderOptions]) -> ProviderOptions:
        return options or ProviderOptions()

    def build_prompt(self, options: ProviderOptions) -> str:
        return self._prompt_builder.provider_prompt(options)

    def normalize(self, entity: Provider, options: ProviderOptions) -> Provider:
        return normalizers.normalize_provider(entity)


class InsuranceGenerator(BaseEntityGenerator):
    """
    Insurance for a patient.

    The subscriber draw happens in ``resolve_options``, so it is part of
    the cache key and the prompt, and the normalizer enforces it.
    """

    entity_kind = EntityKind.INSURANCE

    def resolve_options(self, options: InsuranceOptions) -> InsuranceOptions:
        resolved = options.resolved()
        logger.debug(f"Patient is subscriber: {resolved.patient_is_subscriber}")
        return resolved

    def build_prompt(self, options: InsuranceOptions) -> str:
        return self._prompt_builder.insurance_prompt(options)

    def normalize(self, entity: InsuranceInfo, options: InsuranceOptions) -> InsuranceInfo:
        return normalizers.normalize_insurance(
            entity,
            normalizers.normalize_patient(options.patient),
            patient_is_subscriber=bool(options.patient_is_subscriber),
            include_secondary=options.include_secondary,
        )


# =============================================================================
# STAGE 3: DOCUMENT GENERATORS
# =============================================================================
# The model only writes the document-specific part; known entities are
# attached as snapshots before validation.


def _section(data: Dict[str, Any], key: str) -> Any:
    """``data[key]`` when the model wrapped its answer, else ``data`` itself."""
    inner = data.get(key)
    return inner if isinstance(inner, dict) else data


class CMS1500Generator(BaseEntityGenerator):
    entity_kind = EntityKind.CMS1500

    def build_prompt(self, options: CMS1500Options) -> str:
        return self._prompt_builder.cms1500_prompt(options)

    def response_format(self) -> Dict[str, Any]:
        # The model writes only the claim section
        return response_format_for_model(ClaimInfo)

    def prepare_candidate(self, data: Dict[str, Any], options: CMS1500Options) -> Dict[str, Any]:
        return {
            "patient": normalizers.normalize_patient(options.patient).to_json_dict(),
            "insuranceInfo": options.insurance.to_json_dict(),
            "provider": normalizers.normalize_provider(options.provider).to_json_dict(),
            "claimInfo": _section(data, "claimInfo"),
        }

    def normalize(self, entity: CMS1500Claim, options: CMS1500Options) -> CMS1500Claim:
        return normalizers.normalize_claim(entity)


class InsurancePolicyGenerator(BaseEntityGenerator):
    """Policy document: the patient is always the policyholder."""

    entity_kind = EntityKind.INSURANCE_POLICY

    def build_prompt(self, options: InsurancePolicyOptions) -> str:
        return self._prompt_builder.insurance_policy_prompt(options)

    def response_format(self) -> Dict[str, Any]:
        return self._registry.response_format_for(EntityKind.INSURANCE)

    def prepare_candidate(
        self, data: Dict[str, Any], options: InsurancePolicyOptions
    ) -> Dict[str, Any]:
        return {
            "patient": normalizers.normalize_patient(options.patient).to_json_dict(),
            "insuranceInfo": _section(data, "insuranceInfo"),
        }

    def normalize(
        self, entity: InsurancePolicy, options: InsurancePolicyOptions
    ) -> InsurancePolicy:
        insurance = normalizers.normalize_insurance(
            entity.insurance_info,
            entity.patient,
            patient_is_subscriber=True,
            include_secondary=options.include_secondary,
        )
        patient = entity.patient
        if patient.insurance is None:
            patient = patient.model_copy(
                update={"insurance": insurance.primary_insurance.model_copy(deep=True)}
            )
        return entity.model_copy(update={"patient": patient, "insurance_info": insurance})


# =============================================================================
# STAGE 4: CLINICAL GENERATORS
# =============================================================================


class VisitReportsGenerator(BaseEntityGenerator):
    """Visits in one call, returned as a chronologically ordered collection."""

    entity_kind = EntityKind.VISIT_REPORTS

    def build_prompt(self, options: VisitReportOptions) -> str:
        return self._prompt_builder.visit_reports_prompt(options)

    def prepare_candidate(
        self, data: Dict[str, Any], options: VisitReportOptions
    ) -> Dict[str, Any]:
        # A single visit answered without the envelope
        if "visits" not in data and "visit" in data:
            return {"visits": [data]}
        return data

    def normalize(
        self, entity: VisitReportCollection, options: VisitReportOptions
    ) -> VisitReportCollection:
        return normalizers.normalize_visit_reports(entity)


class MedicalHistoryGenerator(BaseEntityGenerator):
    entity_kind = EntityKind.MEDICAL_HISTORY

    def build_prompt(self, options: MedicalHistoryOptions) -> str:
        return self._prompt_builder.medical_history_prompt(options)

    def normalize(self, entity: MedicalHistory, options: MedicalHistoryOptions) -> MedicalHistory:
        return entity


class LabReportGenerator(BaseEntityGenerator):
    entity_kind = EntityKind.LAB_REPORT

    def build_prompt(self, options: LabReportOptions) -> str:
        return self._prompt_builder.lab_report_prompt(options)

    def normalize(self, entity: LaboratoryReport, options: LabReportOptions) -> LaboratoryReport:
        return normalizers.normalize_lab_report(entity, options.test_type)


# =============================================================================
# STAGE 5: GENERATOR SET
# =============================================================================


class EntityGenerators:
    """
    All generators sharing one orchestrator and cache configuration.

    Example:
        >>> generators = EntityGenerators.create(client, cache_config=CacheConfig())
        >>> patient = await generators.patient.generate(config, None)
    """

    def __init__(self, orchestrator: RetryOrchestrator, **kwargs: Any):
        self.patient = PatientGenerator(orchestrator, **kwargs)
        self.provider = ProviderGenerator(orchestrator, **kwargs)
        self.insurance = InsuranceGenerator(orchestrator, **kwargs)
        self.cms1500 = CMS1500Generator(orchestrator, **kwargs)
        self.insurance_policy = InsurancePolicyGenerator(orchestrator, **kwargs)
        self.visit_reports = VisitReportsGenerator(orchestrator, **kwargs)
        self.medical_history = MedicalHistoryGenerator(orchestrator, **kwargs)
        self.lab_report = LabReportGenerator(orchestrator, **kwargs)

    @classmethod
    def create(
        cls,
        client: CompletionClientProtocol,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        **kwargs: Any,
    ) -> "EntityGenerators":
        orchestrator = (
            RetryOrchestrator(client, sleep=sleep) if sleep else RetryOrchestrator(client)
        )
        return cls(orchestrator, **kwargs)
