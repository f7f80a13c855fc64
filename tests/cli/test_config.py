"""Tests for CLI configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError

from src.cli.config import (
    DaemonConfig,
    OrderDeskConfig,
    RemoteConfig,
    WorkflowConfig,
    load_config,
    resolve_env_vars,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run with no config file in cwd or home."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


class TestSections:
    """Tests for section defaults and validation."""

    def test_workflow_defaults(self):
        """Defaults are the production timing values."""
        cfg = WorkflowConfig()
        assert cfg.default_making_days == 7
        assert cfg.timezone_offset_hours == 3
        assert cfg.status_grace_seconds == 3.0
        assert cfg.refetch_debounce_seconds == 0.3

    def test_daemon_defaults(self):
        cfg = DaemonConfig()
        assert (cfg.host, cfg.port, cfg.log_level) == ("127.0.0.1", 8000, "info")

    def test_empty_api_key_is_none(self):
        assert RemoteConfig(api_key="").api_key is None

    def test_negative_grace_rejected(self):
        with pytest.raises(ValidationError):
            WorkflowConfig(status_grace_seconds=-1)

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValidationError):
            RemoteConfig(timeout_seconds=0)


class TestResolveEnvVars:
    """Tests for ${VAR} resolution in config values."""

    def test_resolves_env_var(self, monkeypatch):
        monkeypatch.setenv("TEST_SECRET", "my-secret-key")
        assert resolve_env_vars("${TEST_SECRET}") == "my-secret-key"

    def test_missing_env_var_returns_empty(self):
        assert resolve_env_vars("${DEFINITELY_NOT_SET_XYZ}") == ""

    def test_mixed_content(self, monkeypatch):
        monkeypatch.setenv("MY_HOST", "localhost")
        assert resolve_env_vars("http://${MY_HOST}:3000") == "http://localhost:3000"


class TestLoadConfig:
    """Tests for YAML config file loading."""

    def test_load_from_explicit_path(self, tmp_path):
        config_data = {
            "remote": {"base_url": "https://orders.example.com"},
            "workflow": {"default_making_days": 10},
        }
        config_file = tmp_path / "orderdesk.yaml"
        config_file.write_text(yaml.dump(config_data))

        cfg = load_config(config_path=str(config_file))
        assert cfg.remote.base_url == "https://orders.example.com"
        assert cfg.workflow.default_making_days == 10
        assert cfg.daemon.port == 8000

    def test_missing_explicit_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path=str(tmp_path / "missing.yaml"))

    def test_defaults_when_no_config(self, isolated):
        """No file anywhere yields the default configuration."""
        assert load_config() == OrderDeskConfig()

    def test_discovers_file_in_cwd(self, isolated):
        (isolated / "orderdesk.yaml").write_text(yaml.dump({"daemon": {"port": 9100}}))
        assert load_config().daemon.port == 9100

    def test_empty_file(self, isolated):
        (isolated / "orderdesk.yaml").write_text("")
        assert load_config() == OrderDeskConfig()

    def test_env_var_override(self, tmp_path, monkeypatch):
        """ORDERDESK_ env vars override YAML values."""
        config_file = tmp_path / "orderdesk.yaml"
        config_file.write_text(yaml.dump({"workflow": {"status_grace_seconds": 3}}))
        monkeypatch.setenv("ORDERDESK_WORKFLOW_STATUS_GRACE_SECONDS", "1.5")
        monkeypatch.setenv("ORDERDESK_DAEMON_PORT", "9999")

        cfg = load_config(config_path=str(config_file))
        assert cfg.workflow.status_grace_seconds == 1.5
        assert cfg.daemon.port == 9999

    def test_numeric_api_key_from_env(self, isolated, monkeypatch):
        monkeypatch.setenv("ORDERDESK_REMOTE_API_KEY", "12345")
        assert load_config().remote.api_key == "12345"

    def test_dollar_var_resolution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ORDERS_TOKEN", "secret-123")
        config_file = tmp_path / "orderdesk.yaml"
        config_file.write_text(yaml.dump({"remote": {"api_key": "${ORDERS_TOKEN}"}}))
        assert load_config(config_path=str(config_file)).remote.api_key == "secret-123"

    def test_invalid_value_raises(self, tmp_path):
        config_file = tmp_path / "orderdesk.yaml"
        config_file.write_text(yaml.dump({"workflow": {"default_making_days": -2}}))
        with pytest.raises(ValidationError):
            load_config(config_path=str(config_file))
