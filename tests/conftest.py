"""
Shared fixtures: a stub completion client, endpoint/cache configurations
and sample model answers for every entity kind.
"""

import json
from typing import Any, Callable, Dict, List, Sequence, Union

import pytest

from medical_record_generation.clients.completion_client import BaseCompletionClient
from medical_record_generation.clients.retry import RetryOrchestrator
from medical_record_generation.core.config import CacheConfig, ModelEndpointConfig
from medical_record_generation.core.constants import SYSTEM_PROMPTS
from medical_record_generation.core.enums import EntityKind
from medical_record_generation.core.models import ChatMessage, CompletionResult, TokenUsage
from medical_record_generation.generation.entity_generator import EntityGenerators

Reply = Union[str, dict, Exception]


class StubCompletionClient(BaseCompletionClient):
    """
    Completion client answering from a script instead of the network.

    ``replies`` is either a list consumed in order (the last reply repeats)
    or a callable receiving the messages. A dict is sent as JSON text and
    an exception is raised.
    """

    def __init__(self, replies: Union[List[Reply], Callable[[Sequence[ChatMessage]], Reply]]):
        super().__init__()
        self._replies = replies
        self.calls: List[Sequence[ChatMessage]] = []
        self.response_formats: List[Dict[str, Any]] = []

    async def _call_api(self, messages, config, temperature, max_tokens, response_format):
        self.calls.append(messages)
        self.response_formats.append(response_format)
        if callable(self._replies):
            reply = self._replies(messages)
        else:
            reply = self._replies[min(len(self.calls), len(self._replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        text = json.dumps(reply) if isinstance(reply, dict) else reply
        return CompletionResult(raw_text=text, finish_reason="stop", usage=TokenUsage())

    @property
    def provider_name(self) -> str:
        return "stub"

    @property
    def call_count(self) -> int:
        return len(self.calls)


async def no_sleep(seconds: float) -> None:
    return None


def make_generators(
    client: StubCompletionClient, cache_config: CacheConfig, max_attempts: int = 3
) -> EntityGenerators:
    return EntityGenerators(
        RetryOrchestrator(client, sleep=no_sleep),
        cache_config=cache_config,
        max_attempts=max_attempts,
    )


def user_prompt(messages: Sequence[ChatMessage]) -> str:
    return messages[-1].content


def route_by_kind(replies: Dict[EntityKind, Any]) -> Callable[[Sequence[ChatMessage]], Reply]:
    """
    Reply function for StubCompletionClient that answers by entity kind.

    The kind is recognised from the system prompt. A callable answer is
    called with the user prompt.
    """

    def reply(messages: Sequence[ChatMessage]) -> Reply:
        system = messages[0].content
        for kind, answer in replies.items():
            if SYSTEM_PROMPTS[kind] == system:
                return answer(user_prompt(messages)) if callable(answer) else answer
        raise AssertionError(f"Unexpected system prompt: {system[:60]}")

    return reply


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================


@pytest.fixture
def endpoint_config() -> ModelEndpointConfig:
    return ModelEndpointConfig(
        endpoint="https://example-resource.openai.azure.com",
        api_key="test-api-key",
        deployment_name="gpt-4o-test",
    )


@pytest.fixture
def cache_config(tmp_path) -> CacheConfig:
    return CacheConfig(directory=str(tmp_path / "cache"))


@pytest.fixture
def no_cache() -> CacheConfig:
    return CacheConfig(enabled=False)


SETTINGS_VARIABLES = (
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_DEPLOYMENT",
    "AZURE_OPENAI_API_VERSION",
    "AZURE_OPENAI_TIMEOUT",
    "AZURE_OPENAI_STRUCTURED_OUTPUTS",
    "GENERATION_MAX_ATTEMPTS",
    "CACHE_ENABLED",
    "CACHE_DIRECTORY",
    "CACHE_TTL_SECONDS",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_environment(monkeypatch):
    """
    Unset every settings variable for the test.

    Setting before deleting makes monkeypatch restore the original state,
    which also drops anything a .env file loaded during the test.
    """
    for name in SETTINGS_VARIABLES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


# =============================================================================
# SAMPLE MODEL ANSWERS
# =============================================================================


def _address(street: str = "742 Evergreen Terrace") -> dict:
    return {"street": street, "city": "Springfield", "state": "IL", "zipCode": "62704"}


@pytest.fixture
def patient_data() -> dict:
    return {
        "firstName": "Jane",
        "lastName": "Doe",
        "dateOfBirth": "03/15/1985",
        "gender": "Female",
        "address": _address(),
        "contact": {
            "phone": "(217) 555-0142",
            "email": "jane.doe@example.com",
            "emergencyContact": "John Doe (Spouse) - (217) 555-0199",
        },
        "ssn": "123-45-6789",
    }


@pytest.fixture
def provider_data() -> dict:
    return {
        "name": "Dr. Alan Grant, MD",
        "npi": "1234567890",
        "specialty": "Family Medicine",
        "phone": "(217) 555-0100",
        "address": _address("100 Main St"),
        "taxId": "12-3456789",
        "taxIdType": "EIN",
        "facilityName": "Springfield Medical Center",
        "facilityAddress": _address("100 Main St"),
        "facilityPhone": "(217) 555-0101",
        "facilityFax": "(217) 555-0102",
        "facilityNPI": "0987654321",
    }


@pytest.fixture
def insurance_data() -> dict:
    return {
        "primaryInsurance": {
            "provider": "Blue Cross Blue Shield",
            "policyNumber": "BCB123456789",
            "groupNumber": "GRP-1001",
            "effectiveDate": "2026-01-01",
            "memberId": "MBR-55501",
            "copay": "$25",
            "deductible": "$1500",
        },
        "secondaryInsurance": {
            "provider": "Aetna",
            "policyNumber": "AET987654321",
            "effectiveDate": "2026-01-01",
        },
        "subscriberName": "Doe, John",
        "subscriberDOB": "07/04/1982",
        "subscriberGender": "Male",
        "type": "PPO",
        "phone": "(217) 555-0199",
        "address": _address("12 Oak Ave"),
    }


@pytest.fixture
def claim_info_data() -> dict:
    return {
        "patientRelationship": "self",
        "signatureDate": "09/20/2026",
        "providerSignatureDate": "09/20/2026",
        "serviceDate": "09/18/2026",
        "diagnosisCodes": ["E11.9", "I10"],
        "serviceLines": [
            {
                "dateFrom": "09/18/2026",
                "dateTo": "09/18/2026",
                "placeOfService": "11",
                "procedureCode": "99213",
                "diagnosisPointer": "A",
                "charges": "$150.00",
                "units": "1",
                "renderingProviderNPI": "1234567890",
            },
            {
                "dateFrom": "09/18/2026",
                "dateTo": "09/18/2026",
                "placeOfService": "11",
                "procedureCode": "85025",
                "diagnosisPointer": "B",
                "charges": "45.50",
                "units": "1",
                "renderingProviderNPI": "1234567890",
            },
        ],
    }


def _visit(visit_date: str, complaint: str) -> dict:
    return {
        "visit": {
            "date": visit_date,
            "type": "Office Visit",
            "chiefComplaint": complaint,
            "assessment": ["Type 2 diabetes, controlled"],
            "plan": ["Continue metformin"],
            "provider": "Dr. Alan Grant, MD",
            "duration": "20 minutes",
            "vitals": {
                "bloodPressure": "128/82",
                "heartRate": 72,
                "temperature": 98.4,
                "weight": 165,
                "height": "5'6\"",
                "oxygenSaturation": 98,
            },
        },
        "vitalSigns": {
            "date": visit_date,
            "time": "09:30",
            "bloodPressure": "128/82",
            "heartRate": "72",
            "temperature": "98.4",
            "weight": "165",
            "height": "5'6\"",
            "bmi": "26.6",
            "oxygenSaturation": "98",
            "respiratoryRate": "16",
        },
    }


@pytest.fixture
def visit_reports_data() -> dict:
    # Deliberately out of order
    return {
        "visits": [
            _visit("09/10/2026", "Diabetes follow-up"),
            _visit("06/01/2026", "Fatigue and increased thirst"),
        ]
    }


@pytest.fixture
def medical_history_data() -> dict:
    return {
        "medications": {
            "current": [
                {
                    "name": "Metformin",
                    "strength": "500mg",
                    "dosage": "Take 1 tablet twice daily",
                    "purpose": "Type 2 diabetes",
                    "prescribedBy": "Dr. Alan Grant, MD",
                    "startDate": "06/01/2026",
                }
            ]
        },
        "allergies": [
            {
                "allergen": "Penicillin",
                "reaction": "Rash",
                "severity": "Moderate",
                "dateIdentified": "04/12/2001",
            }
        ],
        "chronicConditions": [
            {"condition": "Type 2 diabetes", "diagnosedDate": "06/01/2026", "status": "Active"}
        ],
    }


def lab_report_payload(test_name: str = "Complete Blood Count") -> dict:
    return {
        "testName": test_name,
        "specimenType": "Blood",
        "specimenCollectionDate": "09/01/2026",
        "reportDate": "09/02/2026",
        "orderingPhysician": "Dr. Alan Grant, MD",
        "performingLab": {
            "name": "Springfield Reference Laboratory",
            "address": _address("9 Lab Way"),
            "phone": "(217) 555-0300",
            "cliaNumber": "14D0000001",
            "director": "Dr. Ellie Sattler, MD",
        },
        "results": [
            {
                "parameter": "WBC",
                "value": "6.2",
                "unit": "10^3/uL",
                "referenceRange": "4.5-11.0",
                "flag": "Normal",
            }
        ],
    }


@pytest.fixture
def lab_report_data() -> dict:
    return lab_report_payload()
