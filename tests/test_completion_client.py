"""
Tests for the completion client request construction and fail-fast checks.
"""

from dataclasses import replace

import pytest

from medical_record_generation.clients.completion_client import (
    JSON_OBJECT_FORMAT,
    AzureOpenAICompletionClient,
    CompletionClientProtocol,
)
from medical_record_generation.core.exceptions import ConfigurationError, TransportError
from medical_record_generation.core.models import ChatMessage

from conftest import StubCompletionClient


MESSAGES = [ChatMessage.system("Respond with JSON."), ChatMessage.user("Generate a patient")]


def test_build_request_omits_default_temperature(endpoint_config):
    request = AzureOpenAICompletionClient.build_request(MESSAGES, endpoint_config, 1.0, 20480)

    assert request["model"] == "gpt-4o-test"
    assert request["max_completion_tokens"] == 20480
    assert request["response_format"] == JSON_OBJECT_FORMAT
    assert "temperature" not in request
    assert request["messages"][0] == {"role": "system", "content": "Respond with JSON."}


def test_build_request_keeps_explicit_temperature(endpoint_config):
    request = AzureOpenAICompletionClient.build_request(MESSAGES, endpoint_config, 0.2, 100)
    assert request["temperature"] == 0.2


def test_clients_satisfy_protocol():
    assert isinstance(AzureOpenAICompletionClient(), CompletionClientProtocol)
    assert isinstance(StubCompletionClient([{}]), CompletionClientProtocol)


@pytest.mark.parametrize(
    "overrides, setting",
    [
        ({"endpoint": ""}, "endpoint"),
        ({"api_key": ""}, "api_key"),
        ({"deployment_name": ""}, "deployment_name"),
        ({"endpoint": "not-a-url"}, "endpoint"),
    ],
)
async def test_invalid_config_fails_before_any_call(endpoint_config, overrides, setting):
    client = StubCompletionClient([{"ok": True}])
    config = replace(endpoint_config, **overrides)

    with pytest.raises(ConfigurationError) as exc_info:
        await client.complete(MESSAGES, config)

    assert exc_info.value.context["setting"] == setting
    assert client.call_count == 0


def test_configuration_error_never_contains_api_key(endpoint_config):
    config = replace(endpoint_config, endpoint="", api_key="super-secret-key")
    with pytest.raises(ConfigurationError) as exc_info:
        config.validate()
    assert "super-secret-key" not in str(exc_info.value)
    assert "super-secret-key" not in repr(config)


async def test_metrics_track_success_and_failure(endpoint_config):
    client = StubCompletionClient([TransportError("boom", status_code=500), {"ok": True}])

    with pytest.raises(TransportError):
        await client.complete(MESSAGES, endpoint_config)
    text = await client.complete(MESSAGES, endpoint_config)

    assert text == '{"ok": true}'
    assert client.total_calls == 1
    assert client.failed_calls == 1


def test_transport_error_context():
    error = TransportError("Azure OpenAI API error: 429", status_code=429, body="rate limited")
    assert error.status_code == 429
    assert "status=429" in str(error)
