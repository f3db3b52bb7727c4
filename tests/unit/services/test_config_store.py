"""
Unit tests for the persisted agent config.
"""

import json

from cryptography.fernet import Fernet

from order_agent.models.agent import AgentConfig
from order_agent.services.config_store import ConfigStore


def sample_config() -> AgentConfig:
    return AgentConfig(
        api_url="https://shop.example.com/",
        username="vendor@example.com",
        password="s3cret",
        vendor_id=7,
        printer_id="Receipt",
    )


class TestConfigStore:
    def test_missing_file_gives_empty_config(self, tmp_path) -> None:
        config = ConfigStore(tmp_path / "config.json", encryption_key="").load()
        assert config == AgentConfig()

    def test_corrupt_file_gives_empty_config(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text("not json")
        assert ConfigStore(path, encryption_key="").load() == AgentConfig()

    def test_round_trip_plaintext(self, tmp_path) -> None:
        store = ConfigStore(tmp_path / "config.json", encryption_key="")
        store.save(sample_config())

        loaded = store.load()
        assert loaded.api_url == "https://shop.example.com"
        assert loaded.vendor_id == "7"
        assert loaded.password == "s3cret"

    def test_password_encrypted_at_rest(self, tmp_path) -> None:
        key = Fernet.generate_key().decode()
        path = tmp_path / "config.json"
        store = ConfigStore(path, encryption_key=key)
        store.save(sample_config())

        on_disk = json.loads(path.read_text())
        assert on_disk["password"] != "s3cret"
        assert on_disk["password"].startswith("gAAAAA")
        assert store.load().password == "s3cret"

    def test_plaintext_password_still_loads_with_key(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        ConfigStore(path, encryption_key="").save(sample_config())

        key = Fernet.generate_key().decode()
        assert ConfigStore(path, encryption_key=key).load().password == "s3cret"

    def test_unknown_keys_in_file_are_ignored(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"api_url": "https://shop.example.com", "theme": "dark"}))

        config = ConfigStore(path, encryption_key="").load()
        assert config.api_url == "https://shop.example.com"
        assert not hasattr(config, "theme")
