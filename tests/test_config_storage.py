"""
Tests for persisted endpoint configuration and environment settings.
"""

import json

import pytest
from pydantic import ValidationError

from medical_record_generation.cache.config_storage import ModelConfigStore
from medical_record_generation.core.config import ModelEndpointConfig
from medical_record_generation.core.exceptions import ConfigStorageError
from medical_record_generation.core.settings import GenerationSettings


@pytest.fixture
def store(tmp_path) -> ModelConfigStore:
    return ModelConfigStore(tmp_path / "settings" / "model_config.json")


def test_save_then_load(store, endpoint_config):
    assert not store.has()
    assert store.load() is None

    store.save(endpoint_config)

    assert store.has()
    loaded = store.load()
    assert loaded.endpoint == endpoint_config.endpoint
    assert loaded.api_key == endpoint_config.api_key
    assert loaded.deployment_name == endpoint_config.deployment_name


def test_file_layout(store, endpoint_config):
    store.save(endpoint_config)
    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["azureOpenAIConfig"]["deploymentName"] == "gpt-4o-test"
    assert raw["azureOpenAIConfig"]["apiKey"] == "test-api-key"


def test_clear(store, endpoint_config):
    store.save(endpoint_config)
    store.clear()
    assert not store.has()
    # Clearing twice is harmless
    store.clear()


def test_corrupt_file_loads_as_none(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{broken", encoding="utf-8")
    assert store.load() is None
    assert not store.has()


def test_other_storage_key_is_ignored(store, endpoint_config):
    store.save(endpoint_config)
    other = ModelConfigStore(store.path, storage_key="somethingElse")
    assert other.load() is None
    assert not other.has()


def test_save_failure_raises(tmp_path, endpoint_config):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = ModelConfigStore(blocker / "model_config.json")

    with pytest.raises(ConfigStorageError):
        store.save(endpoint_config)


def test_from_dict_round_trip(endpoint_config):
    rebuilt = ModelEndpointConfig.from_dict(endpoint_config.to_storage_dict())
    assert rebuilt.endpoint == endpoint_config.endpoint
    assert rebuilt.effective_api_version == "2024-02-15-preview"


# =============================================================================
# ENVIRONMENT SETTINGS
# =============================================================================


def test_settings_from_environment(clean_environment, tmp_path):
    clean_environment.setenv("AZURE_OPENAI_ENDPOINT", "https://env-resource.openai.azure.com")
    clean_environment.setenv("AZURE_OPENAI_API_KEY", "env-key")
    clean_environment.setenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o-env")
    clean_environment.setenv("CACHE_DIRECTORY", str(tmp_path))
    clean_environment.setenv("CACHE_TTL_SECONDS", "")

    settings = GenerationSettings()
    endpoint = settings.to_endpoint_config()
    cache = settings.to_cache_config()

    endpoint.validate()
    assert endpoint.deployment_name == "gpt-4o-env"
    assert cache.directory == str(tmp_path)
    assert cache.ttl_seconds is None


def test_settings_reject_zero_attempts(clean_environment):
    clean_environment.setenv("GENERATION_MAX_ATTEMPTS", "0")
    with pytest.raises(ValidationError):
        GenerationSettings()


def test_load_reads_env_file(clean_environment, tmp_path):
    env_file = tmp_path / "generation.env"
    env_file.write_text(
        "AZURE_OPENAI_DEPLOYMENT=gpt-4o-file\n"
        "GENERATION_MAX_ATTEMPTS=5\n"
        "CACHE_ENABLED=false\n"
    )

    settings = GenerationSettings.load(str(env_file))

    assert settings.azure_openai_deployment == "gpt-4o-file"
    assert settings.generation_max_attempts == 5
    assert settings.to_cache_config().enabled is False


def test_process_environment_wins_over_env_file(clean_environment, tmp_path):
    env_file = tmp_path / "generation.env"
    env_file.write_text("AZURE_OPENAI_DEPLOYMENT=gpt-4o-file\n")
    clean_environment.setenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o-process")

    assert GenerationSettings.load(str(env_file)).azure_openai_deployment == "gpt-4o-process"


def test_load_without_env_file(clean_environment, tmp_path):
    clean_environment.chdir(tmp_path)

    settings = GenerationSettings.load(str(tmp_path / "missing.env"))

    assert settings.azure_openai_endpoint == ""
    assert settings.generation_max_attempts == 3
