"""
Model Configuration Storage

Remembers the completion endpoint configuration across sessions, separate
from the generation cache. Persistence is explicit: callers load a
configuration, pass it to generators, and save it when it changes. Nothing
reads the stored file implicitly.

File layout:
    {"azureOpenAIConfig": {"endpoint": ..., "apiKey": ..., "deploymentName": ..., "apiVersion": ...}}
"""

import json
import os
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from medical_record_generation.core.config import ConfigDefaults, ModelEndpointConfig
from medical_record_generation.core.exceptions import ConfigStorageError


class ModelConfigStore:
    """
    Save/load/clear/has for a persisted ModelEndpointConfig.

    What it does:
        Keeps one endpoint configuration in a small JSON file under a fixed
        storage key.

    When to use:
        - A CLI or UI that should not ask for the endpoint every run

    Error policy:
        save() raises ConfigStorageError; load(), clear() and has() log
        and degrade (None / no-op / False).

    Example:
        >>> store = ModelConfigStore(tmp_path / "config.json")
        >>> store.save(config)
        >>> store.load() == config
        True
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        storage_key: str = ConfigDefaults.CONFIG_STORAGE_KEY,
    ):
        self._path = Path(path) if path else ConfigDefaults.DEFAULT_CONFIG_STORE_PATH
        self._storage_key = storage_key

    @property
    def path(self) -> Path:
        return self._path

    def save(self, config: ModelEndpointConfig) -> None:
        """
        Persist ``config``.

        Raises:
            ConfigStorageError: If the file cannot be written
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps({self._storage_key: config.to_storage_dict()}, indent=2),
                encoding="utf-8",
            )
            # Credential on disk: owner read/write only
            os.chmod(self._path, 0o600)
        except OSError as e:
            raise ConfigStorageError(
                "Failed to save model configuration", context={"path": str(self._path)}
            ) from e
        logger.info("Model configuration saved successfully")

    def load(self) -> Optional[ModelEndpointConfig]:
        """Stored configuration, or None if absent or unreadable."""
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.debug("No saved model configuration found")
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load model configuration: {e}")
            return None

        stored = raw.get(self._storage_key) if isinstance(raw, dict) else None
        if not isinstance(stored, dict):
            logger.debug("No saved model configuration found")
            return None

        config = ModelEndpointConfig.from_dict(stored)
        logger.info(
            f"Model configuration loaded | Endpoint: {config.endpoint} | "
            f"Deployment: {config.deployment_name}"
        )
        return config

    def clear(self) -> None:
        """Remove the stored configuration, if any."""
        try:
            self._path.unlink()
            logger.info("Model configuration cleared")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to clear model configuration: {e}")

    def has(self) -> bool:
        """True if a configuration is stored under the storage key."""
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return False
        return isinstance(raw, dict) and self._storage_key in raw
