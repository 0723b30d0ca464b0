"""
Schema Layer - Entity Models and Registry

Submodules:
    entities.py → Pydantic models for every generated record
    registry.py → SchemaRegistry mapping EntityKind to models
    dates.py    → Date parsing and age computation
"""

from medical_record_generation.schema.entities import (
    EntityModel,
    Address,
    Contact,
    Insurance,
    Pharmacy,
    Patient,
    SecondaryInsured,
    InsuranceInfo,
    ReferringProvider,
    Provider,
    ServiceLine,
    ClaimInfo,
    CMS1500Claim,
    InsurancePolicy,
    VisitVitals,
    VitalSigns,
    VisitNote,
    VisitReport,
    VisitReportCollection,
    Allergy,
    ChronicCondition,
    SurgicalHistory,
    FamilyHistory,
    CurrentMedication,
    DiscontinuedMedication,
    Medications,
    MedicalHistory,
    LabTestResult,
    PerformingLab,
    LaboratoryReport,
)
from medical_record_generation.schema.registry import (
    SchemaRegistry,
    default_registry,
    format_validation_errors,
    schema_for,
    validate,
)
from medical_record_generation.schema.dates import compute_age, parse_date

__all__ = [
    "EntityModel",
    "Address",
    "Contact",
    "Insurance",
    "Pharmacy",
    "Patient",
    "SecondaryInsured",
    "InsuranceInfo",
    "ReferringProvider",
    "Provider",
    "ServiceLine",
    "ClaimInfo",
    "CMS1500Claim",
    "InsurancePolicy",
    "VisitVitals",
    "VitalSigns",
    "VisitNote",
    "VisitReport",
    "VisitReportCollection",
    "Allergy",
    "ChronicCondition",
    "SurgicalHistory",
    "FamilyHistory",
    "CurrentMedication",
    "DiscontinuedMedication",
    "Medications",
    "MedicalHistory",
    "LabTestResult",
    "PerformingLab",
    "LaboratoryReport",
    "SchemaRegistry",
    "default_registry",
    "format_validation_errors",
    "schema_for",
    "validate",
    "compute_age",
    "parse_date",
]
