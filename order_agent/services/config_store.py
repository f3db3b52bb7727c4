"""
Persisted agent configuration.
Stored as JSON under settings.data_dir. When config_encryption_key is set, the store password
is encrypted at rest with Fernet; plaintext passwords written before the key was set still load.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from cryptography.fernet import Fernet, InvalidToken

from order_agent.config import settings
from order_agent.errors import PersistenceError
from order_agent.models.agent import AgentConfig

logger = structlog.get_logger()

# Fernet tokens are urlsafe base64 of a 0x80 version byte
FERNET_TOKEN_PREFIX = "gAAAAA"


def get_fernet(key: Optional[str] = None) -> Fernet | None:
    """Return a Fernet instance if an encryption key is configured; else None."""
    key = (key if key is not None else settings.config_encryption_key or "").strip()
    if not key:
        return None
    if len(key) != 44:
        logger.warning("config_encryption_key must be a 44-char Fernet key; encryption disabled", key_len=len(key))
        return None
    try:
        return Fernet(key.encode("utf-8"))
    except ValueError as e:
        logger.warning("Invalid config_encryption_key; encryption disabled", error=str(e))
        return None


class ConfigStore:
    """Loads and saves the AgentConfig file."""

    def __init__(self, path: Optional[Path] = None, encryption_key: Optional[str] = None):
        self.path = Path(path) if path is not None else settings.config_path
        self._fernet = get_fernet(encryption_key)

    def _encrypt_password(self, data: Dict[str, Any]) -> Dict[str, Any]:
        password = data.get("password")
        if self._fernet and password:
            data["password"] = self._fernet.encrypt(password.encode("utf-8")).decode("ascii")
        return data

    def _decrypt_password(self, data: Dict[str, Any]) -> Dict[str, Any]:
        password = data.get("password")
        if not isinstance(password, str) or not password.startswith(FERNET_TOKEN_PREFIX):
            return data
        if not self._fernet:
            logger.warning("Stored password is encrypted but no config_encryption_key is set")
            return data
        try:
            data["password"] = self._fernet.decrypt(password.encode("ascii")).decode("utf-8")
        except InvalidToken:
            logger.warning("Stored password could not be decrypted with the configured key")
        return data

    def load(self) -> AgentConfig:
        """Read the config file; a missing or corrupt file yields an empty config."""
        if not self.path.exists():
            logger.info("Config file not found, using empty config", path=str(self.path))
            return AgentConfig()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("config file is not a JSON object")
        except (OSError, ValueError) as e:
            logger.error("Failed to load config, using empty config", path=str(self.path), error=str(e))
            return AgentConfig()

        config = AgentConfig.model_validate(self._decrypt_password(data))
        logger.info("Config loaded", api_url=config.api_url, vendor_id=config.vendor_id or None)
        return config

    def save(self, config: AgentConfig) -> None:
        """
        Write the config file atomically.

        Raises:
            PersistenceError: If the file cannot be written
        """
        data = self._encrypt_password(config.model_dump())
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

        logger.info(
            "Config saved",
            api_url=config.api_url,
            vendor_id=config.vendor_id or None,
            password_encrypted=self._fernet is not None,
        )
