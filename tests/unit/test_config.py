"""
Unit tests for configuration loading and backend selection.
"""

import logging
from pathlib import Path

import pytest
import yaml

from apex.backend import RestBackend, SQLiteBackend, get_backend
from apex.core.config import Config
from apex.core.log_buffer import LogBuffer


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """A config directory with a default and a development layer."""
    monkeypatch.delenv("APEX_ENV", raising=False)
    (tmp_path / "default.yaml").write_text(
        yaml.safe_dump(
            {
                "backend": {"kind": "sqlite", "timeout": 10},
                "recording": {"max_lean": 70, "auto_pause_minutes": 5},
                "storage": {"exports_dir": "exports"},
            }
        )
    )
    (tmp_path / "development.yaml").write_text(yaml.safe_dump({"recording": {"max_lean": 65}}))
    (tmp_path / "production.yaml").write_text(yaml.safe_dump({"backend": {"kind": "rest"}}))
    return tmp_path


class TestConfig:
    """Tests for layered YAML and environment overrides."""

    def test_layers_merge(self, config_dir):
        config = Config(config_dir)
        assert config.env == "development"
        assert config.get("recording.max_lean") == 65
        assert config.get("recording.auto_pause_minutes") == 5

    def test_env_override_parsed(self, config_dir, monkeypatch):
        monkeypatch.setenv("APEX_RECORDING_AUTO_PAUSE_MINUTES", "3")
        monkeypatch.setenv("APEX_BACKEND_REST_URL", "https://example.supabase.co")
        monkeypatch.setenv("APEX_APP_DEBUG", "true")
        config = Config(config_dir)
        assert config.get("recording.auto_pause_minutes") == 3
        assert config.get("backend.rest_url") == "https://example.supabase.co"
        assert config.get("app.debug") is True

    def test_reload_picks_up_env(self, config_dir, monkeypatch):
        config = Config(config_dir)
        monkeypatch.setenv("APEX_ENV", "production")
        config.reload()
        assert config.env == "production"
        assert config.get("backend.kind") == "rest"
        assert config.get("recording.max_lean") == 70

    def test_get_defaults(self, config_dir):
        config = Config(config_dir)
        assert config.get("missing.key", "fallback") == "fallback"
        assert config.get("recording.max_lean.deeper", 1) == 1
        assert config["nothing"] == {}

    def test_from_dict(self, test_config):
        config = Config.from_dict(test_config)
        assert config.env == "test"
        assert config["web"]["port"] == 5000

    def test_paths(self, config):
        assert config.exports_dir == config.data_dir / "exports"
        assert config.preferences_path == config.data_dir / "preferences.json"

    def test_default_data_dir(self):
        assert Config.from_dict({}).data_dir == Path.home() / "Apex"

    def test_shipped_config_loads(self, monkeypatch):
        monkeypatch.delenv("APEX_ENV", raising=False)
        config = Config()
        assert config.get("app.name") == "Apex"
        assert config.get("logging.level") == "DEBUG"


class TestGetBackend:
    def test_sqlite(self, config):
        backend = get_backend(config)
        try:
            assert isinstance(backend, SQLiteBackend)
            assert backend.get_user_id() == "rider-1"
            assert (config.data_dir / "apex.db").exists()
        finally:
            backend.close()

    def test_rest_without_credentials_is_signed_out(self, test_config):
        test_config["backend"] = {"kind": "rest", "rest_url": "https://example.supabase.co/"}
        backend = get_backend(Config.from_dict(test_config))
        assert isinstance(backend, RestBackend)
        assert backend.url == "https://example.supabase.co"
        assert backend.get_user_id() is None

    def test_unknown_kind(self, test_config):
        test_config["backend"] = {"kind": "firebase"}
        with pytest.raises(ValueError):
            get_backend(Config.from_dict(test_config))


class TestLogBuffer:
    def test_keeps_last_records(self):
        buffer = LogBuffer(capacity=3)
        log = logging.getLogger("apex.tests.buffer")
        log.setLevel(logging.DEBUG)
        log.addHandler(buffer)
        try:
            for i in range(5):
                log.info(f"line {i}")
        finally:
            log.removeHandler(buffer)

        assert len(buffer) == 3
        lines = buffer.tail()
        assert lines[0].endswith("line 2")
        assert "[INFO] apex.tests.buffer" in lines[-1]
        assert buffer.tail(1) == lines[-1:]
        assert buffer.tail(0) == []

    def test_clear(self):
        buffer = LogBuffer()
        buffer.emit(logging.makeLogRecord({"msg": "hello", "levelname": "INFO", "name": "x"}))
        buffer.clear()
        assert buffer.tail() == []
