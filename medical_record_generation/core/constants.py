"""
Constants for Medical Record Generation

This module defines constant values used throughout the generation
pipeline. Constants are:
    1. Centralized for easy modification
    2. Type-hinted for IDE support
    3. Documented with usage context

Constant Categories:
    SYSTEM_PROMPTS          → Entity-specific system prompts
    LAB_TEST_DETAILS        → What each laboratory panel contains
    COMPLEXITY_DETAILS      → History size per complexity level
    GENERATION_PRESETS      → Named option bundles for full records
    PHARMACY_NAMES          → Chains used for the default pharmacy
"""

from typing import Any, Dict, List

from medical_record_generation.core.enums import Complexity, EntityKind, LabTestType


# =============================================================================
# STAGE 1: SYSTEM PROMPTS
# =============================================================================
# Each prompt fixes tone and domain. JSON mode requires the word "JSON" to
# appear in the conversation, which the default prompt and every user prompt
# guarantee.

DEFAULT_SYSTEM_PROMPT = (
    "You are a medical data generator that creates realistic, HIPAA-compliant "
    "synthetic medical records for educational purposes. Always respond with valid JSON."
)

_DEMOGRAPHICS_SUFFIX = (
    "for educational purposes. Generate completely fictional yet realistic data. "
    "Always respond with ONLY valid JSON."
)

SYSTEM_PROMPTS: Dict[EntityKind, str] = {
    # -------------------------------------------------------------------------
    # 1.1 Demographic Entities
    # -------------------------------------------------------------------------
    EntityKind.PATIENT: (
        "You are an expert medical data generator creating synthetic, realistic "
        f"patient demographics {_DEMOGRAPHICS_SUFFIX}"
    ),
    EntityKind.PROVIDER: (
        "You are an expert medical data generator creating synthetic provider and "
        f"facility information {_DEMOGRAPHICS_SUFFIX}"
    ),
    EntityKind.INSURANCE: (
        "You are an expert medical data generator creating synthetic insurance "
        f"information {_DEMOGRAPHICS_SUFFIX}"
    ),
    # -------------------------------------------------------------------------
    # 1.2 Documents
    # -------------------------------------------------------------------------
    EntityKind.CMS1500: (
        "You are a medical billing expert specializing in CMS-1500 forms. Generate "
        "realistic, compliant claims data. Always respond with ONLY valid JSON."
    ),
    EntityKind.INSURANCE_POLICY: (
        "You are an insurance documentation specialist creating synthetic policy "
        "documents for educational purposes. Always respond with ONLY valid JSON."
    ),
    # -------------------------------------------------------------------------
    # 1.3 Clinical Entities
    # -------------------------------------------------------------------------
    EntityKind.VISIT_REPORTS: (
        "You are an experienced physician creating synthetic medical visit "
        "documentation for educational purposes. Generate realistic, clinically "
        "accurate visit reports. Always respond with ONLY valid JSON."
    ),
    EntityKind.MEDICAL_HISTORY: (
        "You are an experienced physician creating comprehensive synthetic medical "
        "histories for educational purposes. Generate realistic, clinically coherent "
        "medical data. Always respond with ONLY valid JSON."
    ),
    EntityKind.LAB_REPORT: (
        "You are a clinical laboratory specialist. Generate realistic, clinically "
        "accurate laboratory test results. Always respond with ONLY valid JSON."
    ),
}
SYSTEM_PROMPTS[EntityKind.VISIT_REPORT] = SYSTEM_PROMPTS[EntityKind.VISIT_REPORTS]


# =============================================================================
# STAGE 2: LABORATORY TEST DETAILS
# =============================================================================

LAB_TEST_DETAILS: Dict[LabTestType, str] = {
    LabTestType.CBC: "Complete Blood Count (WBC, RBC, Hemoglobin, Hematocrit, Platelets, etc.)",
    LabTestType.BMP: (
        "Basic Metabolic Panel (Glucose, Calcium, Sodium, Potassium, CO2, Chloride, "
        "BUN, Creatinine)"
    ),
    LabTestType.CMP: "Comprehensive Metabolic Panel (includes BMP + liver enzymes)",
    LabTestType.URINALYSIS: (
        "Color, Clarity, pH, Specific Gravity, Protein, Glucose, Ketones, Blood, etc."
    ),
    LabTestType.LIPID: "Total Cholesterol, HDL, LDL, Triglycerides",
    LabTestType.LFT: "Liver Function Tests (ALT, AST, ALP, Bilirubin, Albumin, Total Protein)",
    LabTestType.THYROID: "TSH, T3, T4",
    LabTestType.HBA1C: "Hemoglobin A1c percentage",
    LabTestType.COAGULATION: "PT, PTT, INR",
    LabTestType.MICROBIOLOGY: "Culture results, organism identification, sensitivities",
    LabTestType.PATHOLOGY: "Tissue examination, diagnosis",
    LabTestType.HORMONE: "Various hormone levels",
    LabTestType.INFECTIOUS: "Disease markers, antibody tests",
}


# =============================================================================
# STAGE 3: COMPLEXITY DETAILS
# =============================================================================

COMPLEXITY_DETAILS: Dict[Complexity, str] = {
    Complexity.LOW: "1-2 chronic conditions, 2-3 current medications, 1 allergy, minimal history",
    Complexity.MEDIUM: (
        "2-4 chronic conditions, 4-6 current medications, 2-3 allergies, moderate history"
    ),
    Complexity.HIGH: "4+ chronic conditions, 7+ current medications, 3+ allergies, extensive history",
}


# =============================================================================
# STAGE 4: GENERATION PRESETS
# =============================================================================
# Named option bundles used by MedicalRecordPipeline.generate_complete_record.

GENERATION_PRESETS: Dict[str, Dict[str, Any]] = {
    "simple": {
        "name": "Simple Patient",
        "description": "Basic patient with minimal medical history",
        "complexity": Complexity.LOW,
        "number_of_visits": 1,
        "number_of_lab_tests": 1,
        "include_secondary_insurance": False,
    },
    "standard": {
        "name": "Standard Patient",
        "description": "Typical patient with moderate medical complexity",
        "complexity": Complexity.MEDIUM,
        "number_of_visits": 2,
        "number_of_lab_tests": 2,
        "include_secondary_insurance": True,
    },
    "complex": {
        "name": "Complex Patient",
        "description": "Patient with multiple conditions and extensive history",
        "complexity": Complexity.HIGH,
        "number_of_visits": 3,
        "number_of_lab_tests": 3,
        "include_secondary_insurance": True,
    },
}


# =============================================================================
# STAGE 5: NORMALIZATION DEFAULTS
# =============================================================================

# Share of insurance generations where the patient is also the subscriber
PATIENT_SUBSCRIBER_PROBABILITY = 0.7

PHARMACY_NAMES: List[str] = [
    "CVS Pharmacy",
    "Walgreens",
    "Rite Aid",
    "Walmart Pharmacy",
    "Target Pharmacy",
    "Kroger Pharmacy",
    "Safeway Pharmacy",
    "Community Pharmacy",
]

PATIENT_ID_PREFIX = "PAT-"
MRN_PREFIX = "MRN-"
