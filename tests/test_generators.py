"""
Tests for the entity generators and the module-level generation functions.

Every test runs against StubCompletionClient; no network access.
"""

from dataclasses import replace
from datetime import date
from pathlib import Path

import pytest

from medical_record_generation import pipeline
from medical_record_generation.clients.completion_client import JSON_OBJECT_FORMAT
from medical_record_generation.core.constants import MRN_PREFIX, PATIENT_ID_PREFIX
from medical_record_generation.core.enums import Complexity, EntityKind, LabTestType
from medical_record_generation.core.exceptions import (
    ConfigurationError,
    EntityGenerationError,
    RetryExhaustedError,
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
    VisitReportOptions,
)
from medical_record_generation.schema.dates import compute_age
from medical_record_generation.schema.entities import (
    InsuranceInfo,
    Patient,
    Provider,
    VisitReportCollection,
)

from conftest import StubCompletionClient, make_generators, route_by_kind, user_prompt


@pytest.fixture
def patient(patient_data) -> Patient:
    return Patient.model_validate(patient_data)


@pytest.fixture
def provider(provider_data) -> Provider:
    return Provider.model_validate(provider_data)


@pytest.fixture
def insurance(insurance_data) -> InsuranceInfo:
    return InsuranceInfo.model_validate(insurance_data)


# =============================================================================
# PATIENT
# =============================================================================


async def test_patient_is_normalized(endpoint_config, cache_config, patient_data):
    client = StubCompletionClient([patient_data])
    generators = make_generators(client, cache_config)

    result = await generators.patient.generate(endpoint_config, PatientOptions(30, 50))

    assert result.name == "Doe, Jane"
    assert result.age == compute_age("03/15/1985")
    assert result.id.startswith(PATIENT_ID_PREFIX)
    assert result.medical_record_number.startswith(MRN_PREFIX)
    assert result.account_number == result.id
    assert result.pharmacy is not None
    assert "Age between 30-50 years" in user_prompt(client.calls[0])


async def test_invalid_config_fails_before_cache_and_network(endpoint_config, cache_config):
    client = StubCompletionClient([{}])
    generators = make_generators(client, cache_config)

    with pytest.raises(ConfigurationError):
        await generators.patient.generate(replace(endpoint_config, endpoint=""), None)

    assert client.call_count == 0


async def test_cache_hit_skips_the_model(endpoint_config, cache_config, patient_data):
    client = StubCompletionClient([patient_data])

    first = await make_generators(client, cache_config).patient.generate(endpoint_config, None)
    # A fresh generator set sharing the cache configuration
    second = await make_generators(client, cache_config).patient.generate(endpoint_config, None)

    assert client.call_count == 1
    assert second == first


async def test_garbled_cache_file_falls_back_to_the_model(
    endpoint_config, cache_config, patient_data
):
    client = StubCompletionClient([patient_data])
    await make_generators(client, cache_config).patient.generate(endpoint_config, None)
    for entry in Path(cache_config.directory).glob("*.json"):
        entry.write_bytes(b"\xff\xfe\x00garbage")

    result = await make_generators(client, cache_config).patient.generate(endpoint_config, None)

    assert result.name == "Doe, Jane"
    assert client.call_count == 2


async def test_different_options_use_different_entries(endpoint_config, cache_config, patient_data):
    client = StubCompletionClient([patient_data])
    generators = make_generators(client, cache_config)

    await generators.patient.generate(endpoint_config, PatientOptions(age_min=20))
    await generators.patient.generate(endpoint_config, PatientOptions(age_min=21))

    assert client.call_count == 2


async def test_disabled_cache_always_calls(endpoint_config, no_cache, patient_data):
    client = StubCompletionClient([patient_data])
    generators = make_generators(client, no_cache)

    await generators.patient.generate(endpoint_config, None)
    await generators.patient.generate(endpoint_config, None)

    assert client.call_count == 2


async def test_schema_violation_is_not_retried(endpoint_config, no_cache, provider_data):
    provider_data["npi"] = "123"
    client = StubCompletionClient([provider_data])
    generators = make_generators(client, no_cache)

    with pytest.raises(SchemaValidationError) as exc_info:
        await generators.provider.generate(endpoint_config, None)

    assert exc_info.value.entity_kind == EntityKind.PROVIDER.value
    assert any(error.startswith("npi:") for error in exc_info.value.errors)
    assert client.call_count == 1


async def test_exhausted_retries_name_the_entity(endpoint_config, no_cache):
    client = StubCompletionClient(["not json"])
    generators = make_generators(client, no_cache, max_attempts=2)

    with pytest.raises(EntityGenerationError) as exc_info:
        await generators.patient.generate(endpoint_config, None)

    assert str(exc_info.value).startswith("Patient data generation failed")
    assert isinstance(exc_info.value.cause, RetryExhaustedError)
    assert client.call_count == 2


# =============================================================================
# PROVIDER AND INSURANCE
# =============================================================================


async def test_provider_billing_defaults(endpoint_config, no_cache, provider_data):
    generators = make_generators(StubCompletionClient([provider_data]), no_cache)

    result = await generators.provider.generate(endpoint_config, None)

    assert result.signature == "Dr. Alan Grant, MD"
    assert result.billing_name == "Springfield Medical Center"
    assert result.billing_npi == "0987654321"
    assert result.billing_address == "100 Main St, Springfield, IL 62704"


async def test_patient_as_subscriber(endpoint_config, no_cache, patient, insurance_data):
    generators = make_generators(StubCompletionClient([insurance_data]), no_cache)

    result = await generators.insurance.generate(
        endpoint_config, InsuranceOptions(patient, patient_is_subscriber=True)
    )

    assert result.subscriber_name == "Doe, Jane"
    assert result.subscriber_dob == "03/15/1985"
    assert result.subscriber_gender == "Female"
    assert result.address.street == "742 Evergreen Terrace"
    assert result.phone == "(217) 555-0142"
    # Secondary coverage was not requested
    assert result.secondary_insurance is None


async def test_other_subscriber_keeps_model_values(endpoint_config, no_cache, patient, insurance_data):
    generators = make_generators(StubCompletionClient([insurance_data]), no_cache)

    result = await generators.insurance.generate(
        endpoint_config,
        InsuranceOptions(patient, include_secondary=True, patient_is_subscriber=False),
    )

    assert result.subscriber_name == "Doe, John"
    assert result.secondary_insurance.provider == "Aetna"


@pytest.mark.parametrize("draw, expected", [(0.1, True), (0.9, False)])
def test_subscriber_draw(monkeypatch, patient, draw, expected):
    monkeypatch.setattr("random.random", lambda: draw)
    assert InsuranceOptions(patient).resolved().patient_is_subscriber is expected


async def test_subscriber_draw_is_part_of_the_key(
    endpoint_config, cache_config, patient, insurance_data
):
    client = StubCompletionClient([insurance_data])
    generators = make_generators(client, cache_config)

    await generators.insurance.generate(endpoint_config, InsuranceOptions(patient, False, True))
    await generators.insurance.generate(endpoint_config, InsuranceOptions(patient, False, False))

    assert client.call_count == 2


# =============================================================================
# DOCUMENTS
# =============================================================================


async def test_cms1500_totals_and_snapshots(
    endpoint_config, no_cache, patient, insurance, provider, claim_info_data
):
    client = StubCompletionClient([{"claimInfo": claim_info_data}])
    generators = make_generators(client, no_cache)

    claim = await generators.cms1500.generate(
        endpoint_config, CMS1500Options(patient, insurance, provider)
    )

    assert claim.claim_info.total_charges == "195.50"
    assert claim.patient.name == "Doe, Jane"
    assert claim.provider.billing_npi == "0987654321"
    assert claim.insurance_info.primary_insurance.policy_number == "BCB123456789"
    assert "Blue Cross Blue Shield" in user_prompt(client.calls[0])


async def test_cms1500_keeps_model_total(
    endpoint_config, no_cache, patient, insurance, provider, claim_info_data
):
    claim_info_data["totalCharges"] = "200.00"
    generators = make_generators(StubCompletionClient([claim_info_data]), no_cache)

    claim = await generators.cms1500.generate(
        endpoint_config, CMS1500Options(patient, insurance, provider)
    )

    assert claim.claim_info.total_charges == "200.00"


async def test_insurance_policy_makes_patient_the_policyholder(
    endpoint_config, no_cache, patient, insurance_data
):
    generators = make_generators(
        StubCompletionClient([{"insuranceInfo": insurance_data}]), no_cache
    )

    policy = await generators.insurance_policy.generate(
        endpoint_config, InsurancePolicyOptions(patient)
    )

    assert policy.insurance_info.subscriber_name == "Doe, Jane"
    assert policy.insurance_info.secondary_insurance is None
    assert policy.patient.insurance.policy_number == "BCB123456789"


# =============================================================================
# STRUCTURED OUTPUTS
# =============================================================================


async def test_json_object_mode_unless_structured_outputs(endpoint_config, no_cache, patient_data):
    client = StubCompletionClient([patient_data])

    await make_generators(client, no_cache).patient.generate(endpoint_config, None)

    assert client.response_formats == [JSON_OBJECT_FORMAT]


async def test_structured_outputs_send_entity_schema(endpoint_config, no_cache, patient_data):
    client = StubCompletionClient([patient_data])
    config = replace(endpoint_config, structured_outputs=True)

    await make_generators(client, no_cache).patient.generate(config, None)

    response_format = client.response_formats[0]
    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "PatientResponse"
    assert "firstName" in response_format["json_schema"]["schema"]["properties"]


async def test_structured_outputs_match_prompt_schema_for_documents(
    endpoint_config, no_cache, patient, insurance, provider, claim_info_data, insurance_data
):
    client = StubCompletionClient([claim_info_data, {"insuranceInfo": insurance_data}])
    generators = make_generators(client, no_cache)
    config = replace(endpoint_config, structured_outputs=True)

    await generators.cms1500.generate(config, CMS1500Options(patient, insurance, provider))
    await generators.insurance_policy.generate(config, InsurancePolicyOptions(patient))

    names = [f["json_schema"]["name"] for f in client.response_formats]
    assert names == ["ClaimInfoResponse", "InsuranceInfoResponse"]


# =============================================================================
# CLINICAL RECORDS
# =============================================================================


async def test_visits_are_sorted_oldest_first(
    endpoint_config, no_cache, patient, provider, visit_reports_data
):
    client = StubCompletionClient([visit_reports_data])
    generators = make_generators(client, no_cache)

    collection = await generators.visit_reports.generate(
        endpoint_config, VisitReportOptions(patient, provider, number_of_visits=2)
    )

    assert [report.visit.date for report in collection.visits] == ["06/01/2026", "09/10/2026"]
    assert "Generate 2 realistic medical visit report(s)" in user_prompt(client.calls[0])


async def test_single_visit_without_envelope(
    endpoint_config, no_cache, patient, provider, visit_reports_data
):
    lone_visit = visit_reports_data["visits"][0]
    generators = make_generators(StubCompletionClient([lone_visit]), no_cache)

    collection = await generators.visit_reports.generate(
        endpoint_config, VisitReportOptions(patient, provider)
    )

    assert len(collection.visits) == 1


async def test_medical_history_prompt_carries_complexity(
    endpoint_config, no_cache, patient, medical_history_data
):
    client = StubCompletionClient([medical_history_data])
    generators = make_generators(client, no_cache)

    history = await generators.medical_history.generate(
        endpoint_config, MedicalHistoryOptions(patient, Complexity.HIGH)
    )

    assert history.medications.current[0].name == "Metformin"
    assert history.surgical_history == []
    assert "Complexity Level: high" in user_prompt(client.calls[0])


async def test_lab_report_test_type_is_filled(endpoint_config, no_cache, patient, lab_report_data):
    client = StubCompletionClient([lab_report_data])
    generators = make_generators(client, no_cache)

    report = await generators.lab_report.generate(
        endpoint_config, LabReportOptions(patient, LabTestType.CBC)
    )

    assert report.test_type == LabTestType.CBC
    assert 'testType must be exactly "CBC"' in user_prompt(client.calls[0])


# =============================================================================
# NORMALIZATION
# =============================================================================


def test_normalizers_are_idempotent(patient, insurance, visit_reports_data):
    today = date(2026, 10, 19)
    once = normalizers.normalize_patient(patient, today)
    assert normalizers.normalize_patient(once, today) == once
    assert once.age == 41

    covered = normalizers.normalize_insurance(insurance, once, True, False)
    assert normalizers.normalize_insurance(covered, once, True, False) == covered

    visits = normalizers.normalize_visit_reports(
        VisitReportCollection.model_validate(visit_reports_data)
    )
    assert normalizers.normalize_visit_reports(visits) == visits


def test_normalizers_do_not_mutate_inputs(patient, insurance):
    before_patient = patient.model_copy(deep=True)
    before_insurance = insurance.model_copy(deep=True)

    normalizers.normalize_insurance(insurance, normalizers.normalize_patient(patient), True, False)

    assert patient == before_patient
    assert insurance == before_insurance


def test_derived_identifiers_are_stable(patient):
    assert normalizers.derive_patient_id(patient) == normalizers.derive_patient_id(
        patient.model_copy(deep=True)
    )
    assert normalizers.patient_identifier(patient.model_copy(update={"id": "P-1"})) == "P-1"


def test_present_values_are_kept(patient):
    named = patient.model_copy(update={"name": "Doe, J.", "age": 30})
    result = normalizers.normalize_patient(named)
    assert (result.name, result.age) == ("Doe, J.", 30)


@pytest.mark.parametrize(
    "value, expected",
    [("$1,250.00", 1250.0), ("45.5", 45.5), ("N/A", None)],
)
def test_parse_amount(value, expected):
    assert normalizers.parse_amount(value) == expected


# =============================================================================
# MODULE-LEVEL FUNCTIONS
# =============================================================================


async def test_module_functions_accept_injected_client(
    endpoint_config, cache_config, patient_data, provider_data, visit_reports_data
):
    client = StubCompletionClient(
        route_by_kind(
            {
                EntityKind.PATIENT: patient_data,
                EntityKind.PROVIDER: provider_data,
                EntityKind.VISIT_REPORTS: visit_reports_data,
            }
        )
    )

    patient = await pipeline.generate_patient_with_ai(
        endpoint_config, cache_config=cache_config, client=client
    )
    provider = await pipeline.generate_provider_with_ai(
        endpoint_config, cache_config=cache_config, client=client
    )
    visit = await pipeline.generate_visit_report_with_ai(
        endpoint_config, patient, provider, 2, cache_config, client=client
    )

    assert patient.name == "Doe, Jane"
    assert provider.npi == "1234567890"
    assert visit.visit.date == "06/01/2026"
    assert pipeline.get_cache_stats(cache_config).valid_entries == 3

    assert pipeline.clear_cache(cache_config) == 3


async def test_medical_history_accepts_string_complexity(
    endpoint_config, no_cache, patient, medical_history_data
):
    client = StubCompletionClient([medical_history_data])

    await pipeline.generate_medical_history_with_ai(
        endpoint_config, patient, "HIGH", no_cache, client=client
    )

    with pytest.raises(ValueError):
        await pipeline.generate_medical_history_with_ai(
            endpoint_config, patient, "extreme", no_cache, client=client
        )
    assert client.call_count == 1
