"""
Medical Record Generation Module

Generates realistic, fully synthetic medical records (patients, providers,
insurance, CMS-1500 claims, visit reports, medical histories and laboratory
reports) with a chat-completion model, validating every entity against a
schema before it is cached or returned.

Architecture Overview:
    medical_record_generation/
    ├── core/           → Config, enums, value objects, exceptions (Layer 0 - Pure)
    ├── schema/         → Entity models and registry (Layer 1 - Pure)
    ├── clients/        → Completion client and retry orchestrator (Layer 2 - Infrastructure)
    ├── cache/          → Generation cache and config storage (Layer 2 - Infrastructure)
    ├── generation/     → Prompts, generators, normalizers (Layer 3 - Business Logic)
    ├── composition/    → Record assembly (Layer 4 - Business Logic)
    └── pipeline.py     → Public functions and pipeline (Layer 5 - Public API)

Quick Start:
    from medical_record_generation import MedicalRecordPipeline

    pipeline = MedicalRecordPipeline.from_environment()
    record = await pipeline.generate_complete_record("standard")
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================

# Main Entry Points
from medical_record_generation.pipeline import (
    MedicalRecordPipeline,
    generate_patient_with_ai,
    generate_provider_with_ai,
    generate_insurance_info_with_ai,
    generate_cms1500_with_ai,
    generate_insurance_policy_with_ai,
    generate_visit_report_with_ai,
    generate_visit_reports_with_ai,
    generate_medical_history_with_ai,
    generate_laboratory_report_data_with_ai,
    clear_cache,
    clear_expired_cache,
    get_cache_stats,
)

# Configuration
from medical_record_generation.core.config import (
    ModelEndpointConfig,
    CacheConfig,
    DEFAULT_CACHE_CONFIG,
)
from medical_record_generation.core.settings import GenerationSettings
from medical_record_generation.cache.config_storage import ModelConfigStore

# Enums
from medical_record_generation.core.enums import EntityKind, Complexity, LabTestType

# Options
from medical_record_generation.generation.options import (
    PatientOptions,
    ProviderOptions,
    BasicData,
    GenerationOptions,
)

# Entities
from medical_record_generation.schema.entities import (
    Patient,
    Provider,
    InsuranceInfo,
    CMS1500Claim,
    InsurancePolicy,
    VisitReport,
    MedicalHistory,
    LaboratoryReport,
)
from medical_record_generation.composition.assembler import AssembledRecord, assemble

# Exceptions
from medical_record_generation.core.exceptions import (
    MedicalRecordGenerationError,
    ConfigurationError,
    GenerationError,
    SchemaValidationError,
    EntityGenerationError,
)

__all__ = [
    # Main Entry Points
    "MedicalRecordPipeline",
    "generate_patient_with_ai",
    "generate_provider_with_ai",
    "generate_insurance_info_with_ai",
    "generate_cms1500_with_ai",
    "generate_insurance_policy_with_ai",
    "generate_visit_report_with_ai",
    "generate_visit_reports_with_ai",
    "generate_medical_history_with_ai",
    "generate_laboratory_report_data_with_ai",
    "clear_cache",
    "clear_expired_cache",
    "get_cache_stats",
    # Configuration
    "ModelEndpointConfig",
    "CacheConfig",
    "DEFAULT_CACHE_CONFIG",
    "GenerationSettings",
    "ModelConfigStore",
    # Enums
    "EntityKind",
    "Complexity",
    "LabTestType",
    # Options
    "PatientOptions",
    "ProviderOptions",
    "BasicData",
    "GenerationOptions",
    # Entities
    "Patient",
    "Provider",
    "InsuranceInfo",
    "CMS1500Claim",
    "InsurancePolicy",
    "VisitReport",
    "MedicalHistory",
    "LaboratoryReport",
    "AssembledRecord",
    "assemble",
    # Exceptions
    "MedicalRecordGenerationError",
    "ConfigurationError",
    "GenerationError",
    "SchemaValidationError",
    "EntityGenerationError",
]
