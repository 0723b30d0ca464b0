"""
Generation Options

Frozen option objects, one per generator. Each knows which of its values
are semantically relevant and returns them as the ordered parameter tuple
of a GenerationRequest, so every option that changes the prompt also
changes the cache key.
"""

import random
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from medical_record_generation.core.constants import (
    GENERATION_PRESETS,
    PATIENT_SUBSCRIBER_PROBABILITY,
)
from medical_record_generation.core.enums import Complexity, EntityKind, LabTestType
from medical_record_generation.core.models import GenerationRequest
from medical_record_generation.generation.normalizers import patient_identifier
from medical_record_generation.schema.entities import InsuranceInfo, Patient, Provider


# =============================================================================
# STAGE 1: DEMOGRAPHIC OPTIONS
# =============================================================================


@dataclass(frozen=True)
class PatientOptions:
    """
    Age range (inclusive) and optional fixed gender for a new patient.

    ``record_index`` is a batch position. Records generated in one batch
    carry distinct indexes so they never share a cached patient.
    """

    age_min: int = 18
    age_max: int = 85
    gender: Optional[str] = None
    record_index: Optional[int] = None

    def to_request(self) -> GenerationRequest:
        params: Tuple[Any, ...] = ({"min": self.age_min, "max": self.age_max}, self.gender)
        if self.record_index is not None:
            params += (self.record_index,)
        return GenerationRequest(EntityKind.PATIENT, params)


@dataclass(frozen=True)
class ProviderOptions:
    specialty: Optional[str] = None
    facility_type: str = "Medical Center"
    # Batch position, as for PatientOptions
    record_index: Optional[int] = None

    def to_request(self) -> GenerationRequest:
        params: Tuple[Any, ...] = (self.specialty, self.facility_type)
        if self.record_index is not None:
            params += (self.record_index,)
        return GenerationRequest(EntityKind.PROVIDER, params)


@dataclass(frozen=True)
class InsuranceOptions:
    """
    Insurance for ``patient``.

    ``patient_is_subscriber`` decides whether the subscriber fields are
    copied from the patient. Left as None, it is drawn once per generation
    (70% yes) by ``resolved()``, before the prompt and key are built.
    """

    patient: Patient
    include_secondary: bool = False
    patient_is_subscriber: Optional[bool] = None

    def resolved(self) -> "InsuranceOptions":
        if self.patient_is_subscriber is not None:
            return self
        return replace(
            self, patient_is_subscriber=random.random() < PATIENT_SUBSCRIBER_PROBABILITY
        )

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            EntityKind.INSURANCE,
            (patient_identifier(self.patient), self.include_secondary, self.patient_is_subscriber),
        )


# =============================================================================
# STAGE 2: DOCUMENT OPTIONS
# =============================================================================


@dataclass(frozen=True)
class CMS1500Options:
    patient: Patient
    insurance: InsuranceInfo
    provider: Provider

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            EntityKind.CMS1500,
            (
                patient_identifier(self.patient),
                self.provider.npi,
                self.insurance.primary_insurance.policy_number,
            ),
        )


@dataclass(frozen=True)
class InsurancePolicyOptions:
    patient: Patient
    include_secondary: bool = False

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            EntityKind.INSURANCE_POLICY,
            (patient_identifier(self.patient), self.include_secondary),
        )


# =============================================================================
# STAGE 3: CLINICAL OPTIONS
# =============================================================================


@dataclass(frozen=True)
class VisitReportOptions:
    patient: Patient
    provider: Provider
    number_of_visits: int = 1

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            EntityKind.VISIT_REPORTS,
            (patient_identifier(self.patient), self.provider.npi, self.number_of_visits),
        )


@dataclass(frozen=True)
class MedicalHistoryOptions:
    patient: Patient
    complexity: Complexity = Complexity.MEDIUM

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            EntityKind.MEDICAL_HISTORY, (patient_identifier(self.patient), self.complexity)
        )


@dataclass(frozen=True)
class LabReportOptions:
    patient: Patient
    test_type: LabTestType
    provider: Optional[Provider] = None

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            EntityKind.LAB_REPORT, (patient_identifier(self.patient), self.test_type)
        )


@dataclass(frozen=True)
class BasicData:
    """Entities a lab batch is generated for."""

    patient: Patient
    provider: Optional[Provider] = None


# =============================================================================
# STAGE 4: FULL RECORD OPTIONS
# =============================================================================

# Order in which panels are added as number_of_lab_tests grows
LAB_TEST_ORDER: List[LabTestType] = LabTestType.default_panel() + [
    test_type for test_type in LabTestType if test_type not in LabTestType.default_panel()
]


@dataclass(frozen=True)
class GenerationOptions:
    """
    Shape of a complete record.

    Example:
        >>> GenerationOptions.from_preset("simple").number_of_visits
        1
    """

    complexity: Complexity = Complexity.MEDIUM
    number_of_visits: int = 2
    number_of_lab_tests: int = 2
    include_secondary_insurance: bool = True
    patient: PatientOptions = field(default_factory=PatientOptions)
    provider: ProviderOptions = field(default_factory=ProviderOptions)

    def __post_init__(self):
        if self.number_of_visits < 1 or self.number_of_lab_tests < 1:
            raise ValueError("number_of_visits and number_of_lab_tests must be >= 1")

    @classmethod
    def from_preset(cls, name: str) -> "GenerationOptions":
        """
        Options for a named preset ("simple", "standard", "complex").

        Raises:
            ValueError: If the preset is unknown
        """
        preset: Dict[str, Any] = GENERATION_PRESETS.get(name.strip().lower())
        if preset is None:
            raise ValueError(
                f"Unknown preset: {name}. Valid presets: {list(GENERATION_PRESETS)}"
            )
        return cls(
            complexity=preset["complexity"],
            number_of_visits=preset["number_of_visits"],
            number_of_lab_tests=preset["number_of_lab_tests"],
            include_secondary_insurance=preset["include_secondary_insurance"],
        )

    def lab_test_types(self) -> Tuple[LabTestType, ...]:
        """The first ``number_of_lab_tests`` panels of LAB_TEST_ORDER."""
        return tuple(LAB_TEST_ORDER[: self.number_of_lab_tests])

    def for_record(self, record_index: int) -> "GenerationOptions":
        """Copy whose patient and provider are keyed to one position in a batch."""
        return replace(
            self,
            patient=replace(self.patient, record_index=record_index),
            provider=replace(self.provider, record_index=record_index),
        )
