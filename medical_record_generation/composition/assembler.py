"""
Record Assembler - Combining Generated Entities into One Record

Assembly is pure: it never calls generators, never mutates its inputs and
performs no I/O. It copies every entity and backfills the cross-entity
fields a complete record needs:

    1. Patient age from the date of birth
    2. Patient-level insurance mirrored from the primary insurance
    3. Patient id, MRN and account number
    4. A default pharmacy

Pipeline Position:
    Generators ──▶ [assemble] ──▶ AssembledRecord (JSON output)
                    ^^^^^^^^
                    You are here
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ConfigDict, Field

from medical_record_generation.core.enums import LabTestType
from medical_record_generation.generation.normalizers import normalize_patient
from medical_record_generation.schema.entities import (
    EntityModel,
    InsuranceInfo,
    LaboratoryReport,
    MedicalHistory,
    Patient,
    Provider,
    VisitReport,
)


class AssembledRecord(EntityModel):
    """
    A complete synthetic medical record.

    Frozen; ``to_json_dict()`` yields the camelCase output document with
    lab reports keyed by test type value.
    """

    model_config = ConfigDict(frozen=True)

    patient: Patient
    provider: Provider
    insurance: InsuranceInfo
    medical_history: Optional[MedicalHistory] = None
    visit_reports: List[VisitReport] = Field(default_factory=list)
    lab_reports: Dict[LabTestType, LaboratoryReport] = Field(default_factory=dict)
    generated_at: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


def assemble(
    patient: Patient,
    provider: Provider,
    insurance: InsuranceInfo,
    medical_history: Optional[MedicalHistory] = None,
    visit_reports: Iterable[VisitReport] = (),
    lab_reports: Optional[Mapping[LabTestType, LaboratoryReport]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AssembledRecord:
    """
    Combine generated entities into an AssembledRecord.

    Args:
        patient: Patient demographics
        provider: Treating provider
        insurance: Patient insurance
        medical_history: Optional history
        visit_reports: Visits in chronological order
        lab_reports: Reports keyed by test type
        metadata: Free-form annotations (preset name, timings)

    Returns:
        A new record; the arguments are left untouched
    """
    completed = normalize_patient(patient.model_copy(deep=True))
    if completed.insurance is None:
        completed = completed.model_copy(
            update={"insurance": insurance.primary_insurance.model_copy(deep=True)}
        )

    return AssembledRecord(
        patient=completed,
        provider=provider.model_copy(deep=True),
        insurance=insurance.model_copy(deep=True),
        medical_history=medical_history.model_copy(deep=True) if medical_history else None,
        visit_reports=[report.model_copy(deep=True) for report in visit_reports],
        lab_reports={
            test_type: report.model_copy(deep=True)
            for test_type, report in (lab_reports or {}).items()
        },
        generated_at=datetime.now(timezone.utc).isoformat(),
        metadata=dict(metadata or {}),
    )
