"""
Generation Layer - Options, Prompts, Generators and Normalizers

Submodules:
    options.py          → Frozen option objects and GenerationOptions presets
    prompt_builder.py   → User prompt templates per entity kind
    entity_generator.py → BaseEntityGenerator and concrete generators
    normalizers.py      → Deterministic completion of validated entities
    lab_reports.py      → Sequential lab batches with failure isolation
"""

from medical_record_generation.generation.options import (
    PatientOptions,
    ProviderOptions,
    InsuranceOptions,
    CMS1500Options,
    InsurancePolicyOptions,
    VisitReportOptions,
    MedicalHistoryOptions,
    LabReportOptions,
    BasicData,
    GenerationOptions,
)
from medical_record_generation.generation.prompt_builder import PromptBuilder
from medical_record_generation.generation.entity_generator import (
    BaseEntityGenerator,
    PatientGenerator,
    ProviderGenerator,
    InsuranceGenerator,
    CMS1500Generator,
    InsurancePolicyGenerator,
    VisitReportsGenerator,
    MedicalHistoryGenerator,
    LabReportGenerator,
    EntityGenerators,
)
from medical_record_generation.generation.lab_reports import (
    ProgressCallback,
    generate_laboratory_reports,
)

__all__ = [
    "PatientOptions",
    "ProviderOptions",
    "InsuranceOptions",
    "CMS1500Options",
    "InsurancePolicyOptions",
    "VisitReportOptions",
    "MedicalHistoryOptions",
    "LabReportOptions",
    "BasicData",
    "GenerationOptions",
    "PromptBuilder",
    "BaseEntityGenerator",
    "PatientGenerator",
    "ProviderGenerator",
    "InsuranceGenerator",
    "CMS1500Generator",
    "InsurancePolicyGenerator",
    "VisitReportsGenerator",
    "MedicalHistoryGenerator",
    "LabReportGenerator",
    "EntityGenerators",
    "ProgressCallback",
    "generate_laboratory_reports",
]
