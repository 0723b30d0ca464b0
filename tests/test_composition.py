"""
Tests for record assembly.
"""

import pytest
from pydantic import ValidationError

from medical_record_generation.composition import AssembledRecord, assemble
from medical_record_generation.core.enums import LabTestType
from medical_record_generation.schema.entities import (
    InsuranceInfo,
    LaboratoryReport,
    MedicalHistory,
    Patient,
    Provider,
    VisitReportCollection,
)

from conftest import lab_report_payload


@pytest.fixture
def entities(patient_data, provider_data, insurance_data, medical_history_data, visit_reports_data):
    return {
        "patient": Patient.model_validate(patient_data),
        "provider": Provider.model_validate(provider_data),
        "insurance": InsuranceInfo.model_validate(insurance_data),
        "medical_history": MedicalHistory.model_validate(medical_history_data),
        "visit_reports": VisitReportCollection.model_validate(visit_reports_data).visits,
        "lab_reports": {LabTestType.CBC: LaboratoryReport.model_validate(lab_report_payload())},
    }


def test_assemble_backfills_patient(entities):
    record = assemble(**entities)

    assert record.patient.name == "Doe, Jane"
    assert record.patient.age is not None
    assert record.patient.id.startswith("PAT-")
    assert record.patient.insurance.policy_number == "BCB123456789"
    assert record.patient.pharmacy is not None


def test_assemble_does_not_mutate_inputs(entities):
    snapshot = {
        name: value.model_copy(deep=True)
        for name, value in entities.items()
        if name not in ("visit_reports", "lab_reports")
    }

    record = assemble(**entities)

    for name, before in snapshot.items():
        assert entities[name] == before
    assert entities["patient"].insurance is None
    assert record.visit_reports[0] is not entities["visit_reports"][0]
    assert record.lab_reports[LabTestType.CBC] is not entities["lab_reports"][LabTestType.CBC]


def test_existing_patient_insurance_is_kept(entities):
    own = entities["insurance"].secondary_insurance
    entities["patient"] = entities["patient"].model_copy(update={"insurance": own})

    record = assemble(**entities)

    assert record.patient.insurance.provider == "Aetna"


def test_record_is_frozen(entities):
    record = assemble(**entities)
    with pytest.raises(ValidationError):
        record.metadata = {}


def test_json_output_shape(entities):
    record = assemble(**entities, metadata={"preset": "standard"})
    output = record.to_json_dict()

    assert set(output) >= {
        "patient",
        "provider",
        "insurance",
        "medicalHistory",
        "visitReports",
        "labReports",
        "generatedAt",
        "metadata",
    }
    assert list(output["labReports"]) == ["CBC"]
    assert output["metadata"] == {"preset": "standard"}
    assert output["patient"]["dateOfBirth"] == "03/15/1985"


def test_optional_parts_default_empty(entities):
    record = assemble(entities["patient"], entities["provider"], entities["insurance"])

    assert isinstance(record, AssembledRecord)
    assert record.medical_history is None
    assert record.visit_reports == []
    assert record.lab_reports == {}
