"""
Enumerations for Medical Record Generation

This module defines the enumeration types shared across the generation
pipeline. Enums provide:
    1. Type safety for categorical values
    2. Stable string values for cache keys and JSON payloads
    3. Clear domain semantics

Enumeration Categories:
    EntityKind      → Kinds of structured records the pipeline produces
    Complexity      → Medical history complexity levels
    LabTestType     → Laboratory panels a lab report can describe
    ChatRole        → Roles in a chat-completion message sequence
    AttemptStatus   → Outcome tags for a single completion attempt
"""

from enum import Enum
from typing import List


# =============================================================================
# STAGE 1: ENTITY KIND ENUMERATION
# =============================================================================
# Every generator, schema and cache key is scoped by one of these kinds.


class EntityKind(str, Enum):
    """
    Kinds of structured records that can be generated.

    What it does:
        Names each record type the Schema Registry knows about. The value
        is also the first element of every cache key, so two different
        kinds can never share a cache entry.

    When to use:
        - When looking up a schema in the registry
        - When deriving a cache key for a generation request
        - When reporting which entity failed to generate
    """

    # -------------------------------------------------------------------------
    # 1.1 Core Demographic Entities
    # -------------------------------------------------------------------------
    PATIENT = "generatePatient"
    PROVIDER = "generateProvider"
    INSURANCE = "generateInsuranceInfo"

    # -------------------------------------------------------------------------
    # 1.2 Document Entities
    # -------------------------------------------------------------------------
    CMS1500 = "generateCMS1500"
    INSURANCE_POLICY = "generateInsurancePolicy"

    # -------------------------------------------------------------------------
    # 1.3 Clinical Entities
    # -------------------------------------------------------------------------
    VISIT_REPORT = "generateVisitReport"
    VISIT_REPORTS = "generateVisitReports"
    MEDICAL_HISTORY = "generateMedicalHistory"
    LAB_REPORT = "generateLabReport"

    @property
    def display_name(self) -> str:
        """Human-readable entity name used in error messages."""
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    EntityKind.PATIENT: "Patient",
    EntityKind.PROVIDER: "Provider",
    EntityKind.INSURANCE: "Insurance",
    EntityKind.CMS1500: "CMS-1500",
    EntityKind.INSURANCE_POLICY: "Insurance policy",
    EntityKind.VISIT_REPORT: "Visit report",
    EntityKind.VISIT_REPORTS: "Visit reports",
    EntityKind.MEDICAL_HISTORY: "Medical history",
    EntityKind.LAB_REPORT: "Laboratory report",
}


# =============================================================================
# STAGE 2: COMPLEXITY ENUMERATION
# =============================================================================


class Complexity(str, Enum):
    """
    Medical history complexity level.

    Controls how many chronic conditions, medications and allergies the
    model is asked to produce for a patient.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_string(cls, value: str) -> "Complexity":
        """
        Convert string to Complexity with case-insensitive matching.

        Args:
            value: String representation of the level

        Returns:
            Matching Complexity member

        Raises:
            ValueError: If the value is not a known level
        """
        normalized = value.strip().lower()
        for level in cls:
            if level.value == normalized:
                return level
        raise ValueError(f"Unknown complexity: {value}. Valid levels: {[c.value for c in cls]}")


# =============================================================================
# STAGE 3: LABORATORY TEST TYPE ENUMERATION
# =============================================================================


class LabTestType(str, Enum):
    """
    Laboratory panels supported by the lab report generator.

    Values match the ``testType`` field of a generated report exactly.
    """

    # -------------------------------------------------------------------------
    # 3.1 Chemistry and Hematology
    # -------------------------------------------------------------------------
    CBC = "CBC"
    BMP = "BMP"
    CMP = "CMP"
    URINALYSIS = "Urinalysis"
    LIPID = "Lipid"
    LFT = "LFT"
    THYROID = "Thyroid"
    HBA1C = "HbA1c"
    COAGULATION = "Coagulation"

    # -------------------------------------------------------------------------
    # 3.2 Specialty Panels
    # -------------------------------------------------------------------------
    MICROBIOLOGY = "Microbiology"
    PATHOLOGY = "Pathology"
    HORMONE = "Hormone"
    INFECTIOUS = "Infectious"

    @classmethod
    def get_all_types(cls) -> List[str]:
        """Return all test type values as a list."""
        return [test_type.value for test_type in cls]

    @classmethod
    def default_panel(cls) -> List["LabTestType"]:
        """Tests ordered when the caller does not choose any."""
        return [cls.CBC, cls.BMP, cls.LIPID]


# =============================================================================
# STAGE 4: CHAT AND ATTEMPT ENUMERATIONS
# =============================================================================


class ChatRole(str, Enum):
    """Role of a message in a chat-completion request."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class AttemptStatus(str, Enum):
    """
    Tag carried by the outcome of one completion attempt.

    OK:        A JSON object was obtained; stop and return it
    RETRYABLE: Transient failure; back off and try again if budget remains
    FATAL:     Misconfiguration; stop immediately and surface the error
    """

    OK = "ok"
    RETRYABLE = "retryable"
    FATAL = "fatal"
