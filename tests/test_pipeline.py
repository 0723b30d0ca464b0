"""
Tests for MedicalRecordPipeline and the command-line helpers.
"""

import asyncio
import json

import pytest

from medical_record_generation import MedicalRecordPipeline
from medical_record_generation.cache.config_storage import ModelConfigStore
from medical_record_generation.core.constants import SYSTEM_PROMPTS
from medical_record_generation.core.enums import EntityKind, LabTestType
from medical_record_generation.core.exceptions import ConfigurationError, EntityGenerationError
from medical_record_generation.core.settings import GenerationSettings
from medical_record_generation.generation.options import GenerationOptions

import generate_medical_record
from conftest import StubCompletionClient, lab_report_payload, no_sleep, route_by_kind


def lab_reply(prompt: str):
    if 'testType must be exactly "BMP"' in prompt:
        return lab_report_payload("Basic Metabolic Panel")
    return lab_report_payload()


@pytest.fixture
def record_client(
    patient_data, provider_data, insurance_data, medical_history_data, visit_reports_data
) -> StubCompletionClient:
    return StubCompletionClient(
        route_by_kind(
            {
                EntityKind.PATIENT: patient_data,
                EntityKind.PROVIDER: provider_data,
                EntityKind.INSURANCE: insurance_data,
                EntityKind.MEDICAL_HISTORY: medical_history_data,
                EntityKind.VISIT_REPORTS: visit_reports_data,
                EntityKind.LAB_REPORT: lab_reply,
            }
        )
    )


@pytest.fixture
def record_pipeline(endpoint_config, no_cache, record_client) -> MedicalRecordPipeline:
    return MedicalRecordPipeline(endpoint_config, no_cache, client=record_client, sleep=no_sleep)


async def test_complete_record(monkeypatch, record_pipeline, record_client):
    monkeypatch.setattr("random.random", lambda: 0.1)
    progress = []

    record = await record_pipeline.generate_complete_record(
        "standard", lambda t, r, i, n: progress.append((t, i, n))
    )

    assert record.patient.name == "Doe, Jane"
    assert record.patient.insurance.policy_number == "BCB123456789"
    assert record.insurance.subscriber_name == "Doe, Jane"
    assert record.insurance.secondary_insurance is not None
    assert [v.visit.date for v in record.visit_reports] == ["06/01/2026", "09/10/2026"]
    assert list(record.lab_reports) == [LabTestType.CBC, LabTestType.BMP]
    assert progress == [(LabTestType.CBC, 1, 2), (LabTestType.BMP, 2, 2)]
    assert record.metadata["preset"] == "standard"
    assert record.metadata["requestedLabTests"] == ["CBC", "BMP"]
    assert record_pipeline.records_generated == 1
    # patient, provider, insurance, history, visits and two labs
    assert record_client.call_count == 7


async def test_custom_options(record_pipeline):
    options = GenerationOptions(number_of_visits=1, number_of_lab_tests=1)

    record = await record_pipeline.generate_complete_record(options)

    assert record.metadata["preset"] is None
    assert list(record.lab_reports) == [LabTestType.CBC]


async def test_failed_required_entity_raises(endpoint_config, no_cache, patient_data):
    client = StubCompletionClient(
        route_by_kind({EntityKind.PATIENT: patient_data, EntityKind.PROVIDER: "not json"})
    )
    pipeline = MedicalRecordPipeline(endpoint_config, no_cache, client=client, sleep=no_sleep)

    with pytest.raises(EntityGenerationError, match="Provider data generation failed"):
        await pipeline.generate_complete_record("simple")

    assert pipeline.records_generated == 0


class SlowPatientClient(StubCompletionClient):
    """Patient requests wait until cancelled; provider answers are malformed."""

    def __init__(self):
        super().__init__(["not json"])
        self.patient_cancelled = False

    async def _call_api(self, messages, config, temperature, max_tokens, response_format):
        if messages[0].content == SYSTEM_PROMPTS[EntityKind.PATIENT]:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.patient_cancelled = True
                raise
        return await super()._call_api(messages, config, temperature, max_tokens, response_format)


async def test_failed_provider_cancels_patient(endpoint_config, no_cache):
    client = SlowPatientClient()
    pipeline = MedicalRecordPipeline(endpoint_config, no_cache, client=client, sleep=no_sleep)

    with pytest.raises(EntityGenerationError, match="Provider data generation failed"):
        await pipeline.generate_complete_record("simple")

    assert client.patient_cancelled


def patient_calls(client: StubCompletionClient) -> int:
    system = SYSTEM_PROMPTS[EntityKind.PATIENT]
    return sum(1 for messages in client.calls if messages[0].content == system)


async def test_batch_records_do_not_share_cached_patients(
    endpoint_config, cache_config, record_client, tmp_path
):
    pipeline = MedicalRecordPipeline(
        endpoint_config, cache_config, client=record_client, sleep=no_sleep
    )

    saved = await generate_medical_record.generate_records(
        pipeline, "simple", 2, str(tmp_path / "records")
    )

    assert patient_calls(record_client) == 2
    assert len(set(saved)) == 2


async def test_record_index_is_part_of_the_key(endpoint_config, cache_config, record_client):
    pipeline = MedicalRecordPipeline(
        endpoint_config, cache_config, client=record_client, sleep=no_sleep
    )

    first = await pipeline.generate_complete_record("simple", record_index=1)
    await pipeline.generate_complete_record("simple", record_index=1)
    await pipeline.generate_complete_record("simple", record_index=2)

    assert patient_calls(record_client) == 2
    assert first.metadata["recordIndex"] == 1


async def test_single_record_reuses_cached_patient(endpoint_config, cache_config, record_client):
    pipeline = MedicalRecordPipeline(
        endpoint_config, cache_config, client=record_client, sleep=no_sleep
    )

    await pipeline.generate_complete_record("simple")
    await pipeline.generate_complete_record("simple")

    assert patient_calls(record_client) == 1


async def test_unknown_preset(record_pipeline, record_client):
    with pytest.raises(ValueError, match="Unknown preset"):
        await record_pipeline.generate_complete_record("enormous")
    assert record_client.call_count == 0


def test_option_counts_must_be_positive():
    with pytest.raises(ValueError):
        GenerationOptions(number_of_visits=0)


def test_lab_test_types_follow_panel_order():
    assert GenerationOptions.from_preset("complex").lab_test_types() == (
        LabTestType.CBC,
        LabTestType.BMP,
        LabTestType.LIPID,
    )


async def test_save_record(monkeypatch, record_pipeline, tmp_path):
    monkeypatch.setattr("random.random", lambda: 0.9)
    record = await record_pipeline.generate_complete_record("simple")

    path = record_pipeline.save_record(record, output_dir=tmp_path, filename_prefix="jane")

    with open(path, encoding="utf-8") as f:
        saved = json.load(f)
    assert path.startswith(str(tmp_path / "jane_"))
    assert saved["patient"]["name"] == "Doe, Jane"
    assert saved["insurance"]["subscriberName"] == "Doe, John"
    assert "CBC" in saved["labReports"]


def test_from_environment_requires_endpoint(clean_environment, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("AZURE_OPENAI_API_KEY=key\nAZURE_OPENAI_DEPLOYMENT=gpt-4o\n")

    with pytest.raises(ConfigurationError):
        MedicalRecordPipeline.from_environment(str(env_file), client=StubCompletionClient([{}]))


def test_from_environment(clean_environment, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "AZURE_OPENAI_ENDPOINT=https://env-resource.openai.azure.com\n"
        "AZURE_OPENAI_API_KEY=key\n"
        "AZURE_OPENAI_DEPLOYMENT=gpt-4o\n"
        f"CACHE_DIRECTORY={tmp_path / 'cache'}\n"
    )

    pipeline = MedicalRecordPipeline.from_environment(
        str(env_file), client=StubCompletionClient([{}])
    )

    assert pipeline.endpoint_config.deployment_name == "gpt-4o"
    assert pipeline.cache_config.directory == str(tmp_path / "cache")


# =============================================================================
# COMMAND-LINE HELPERS
# =============================================================================


def test_cli_parser_defaults():
    args = generate_medical_record.create_argument_parser().parse_args([])
    assert args.preset == "standard"
    assert args.count == 1
    assert not args.no_cache


def test_cli_uses_saved_config_when_environment_is_empty(tmp_path, endpoint_config):
    store = ModelConfigStore(tmp_path / "model_config.json")
    store.save(endpoint_config)

    resolved = generate_medical_record.resolve_endpoint_config(
        GenerationSettings.model_construct(
            azure_openai_endpoint="",
            azure_openai_api_key="",
            azure_openai_deployment="",
            azure_openai_api_version=None,
            azure_openai_timeout=60.0,
        ),
        store,
    )

    assert resolved.deployment_name == "gpt-4o-test"


def test_cli_without_any_config_fails(tmp_path):
    store = ModelConfigStore(tmp_path / "missing.json")
    settings = GenerationSettings.model_construct(
        azure_openai_endpoint="",
        azure_openai_api_key="",
        azure_openai_deployment="",
        azure_openai_api_version=None,
        azure_openai_timeout=60.0,
    )

    with pytest.raises(ConfigurationError):
        generate_medical_record.resolve_endpoint_config(settings, store)
