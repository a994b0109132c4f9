"""Tests for ConfigManager."""

import threading

import yaml
import pytest
from pathlib import Path

from twistsync.core.config_manager import ConfigManager, DEFAULT_CONFIG, is_valid_timezone
from twistsync.core.exceptions import ConfigError


def make_cm(config=None, config_path=Path("./settings.yaml")):
    """Build a ConfigManager around an in-memory config without touching disk."""
    ConfigManager.reset()
    cm = ConfigManager.__new__(ConfigManager)
    cm._initialized = True
    cm._config = ConfigManager._deep_copy(config if config is not None else DEFAULT_CONFIG)
    cm._instance_lock = threading.RLock()
    cm.CONFIG_PATH = config_path
    ConfigManager._instance = cm
    return cm


class TestConfigManagerInit:
    """Test configuration loading and creation."""

    def test_creates_default_config_when_missing(self, tmp_dir):
        """When no settings.yaml exists, should create one with defaults."""
        config_path = tmp_dir / "config" / "settings.yaml"

        cm = ConfigManager(config_path)

        assert config_path.exists()
        with open(config_path, 'r') as f:
            saved = yaml.safe_load(f)
        assert saved["sync"]["thread_limit"] == 20
        assert cm.get("twist.api_base_url") == "https://api.twist.com/api/v3/"

    def test_loads_existing_config(self, config_file, tmp_dir):
        """Should load values from existing settings.yaml."""
        cm = ConfigManager(config_file)

        assert cm.get("twist.token") == "test-token"
        assert cm.get("twist.workspace_id") == 42
        assert cm.get("sync.workspace_dir") == str(tmp_dir / "workspace")

    def test_uses_defaults_on_invalid_yaml(self, tmp_dir):
        """Should fall back to defaults when YAML is invalid."""
        config_path = tmp_dir / "settings.yaml"
        config_path.write_text("{{invalid yaml: [")

        cm = ConfigManager(config_path)

        assert cm.get("sync.timezone") == "UTC"
        assert config_path.read_text() == "{{invalid yaml: ["

    def test_path_from_environment(self, tmp_dir, monkeypatch):
        config_path = tmp_dir / "env" / "settings.yaml"
        monkeypatch.setenv("TWISTSYNC_CONFIG", str(config_path))

        cm = ConfigManager()

        assert cm.CONFIG_PATH == config_path
        assert config_path.exists()

    def test_singleton(self, tmp_dir):
        first = ConfigManager(tmp_dir / "a.yaml")
        second = ConfigManager(tmp_dir / "b.yaml")

        assert first is second
        assert second.CONFIG_PATH == tmp_dir / "a.yaml"


class TestConfigManagerGetSet:
    """Test get/set with dot notation."""

    def test_get_simple_key(self):
        cm = make_cm()
        assert cm.get("sync.timezone") == "UTC"

    def test_get_section(self):
        cm = make_cm()
        assert cm.get("security") == {"mask_logs": True}

    def test_get_missing_key_returns_default(self):
        cm = make_cm()
        assert cm.get("nonexistent.key") is None
        assert cm.get("nonexistent.key", "fallback") == "fallback"

    def test_set_updates_value(self):
        cm = make_cm()
        cm.set("sync.timezone", "Europe/Berlin")
        assert cm.get("sync.timezone") == "Europe/Berlin"

    def test_set_creates_nested_path(self):
        cm = make_cm()
        cm.set("new.nested.key", "value")
        assert cm.get("new.nested.key") == "value"

    def test_log_dir(self, tmp_dir):
        cm = make_cm()
        assert cm.get_log_dir() is None
        cm.set("app.log_dir", str(tmp_dir / "logs"))
        assert cm.get_log_dir() == tmp_dir / "logs"


class TestConfigManagerValidation:
    """Test validation rules applied when settings.yaml is loaded."""

    def _load(self, tmp_dir, section, values):
        config_path = tmp_dir / "settings.yaml"
        config_path.write_text(yaml.safe_dump({section: values}))
        return ConfigManager(config_path)

    def test_thread_limit_clamped_high(self, tmp_dir):
        cm = self._load(tmp_dir, "sync", {"thread_limit": 1000})
        assert cm.get("sync.thread_limit") == 500

    def test_thread_limit_clamped_low(self, tmp_dir):
        cm = self._load(tmp_dir, "sync", {"thread_limit": 0})
        assert cm.get("sync.thread_limit") == 1

    def test_numeric_string_thread_limit(self, tmp_dir):
        cm = self._load(tmp_dir, "sync", {"thread_limit": "50"})
        assert cm.get("sync.thread_limit") == 50

    def test_non_numeric_thread_limit_uses_default(self, tmp_dir, caplog):
        cm = self._load(tmp_dir, "sync", {"thread_limit": "lots"})
        assert cm.get("sync.thread_limit") == 20
        assert "Invalid thread_limit 'lots'" in caplog.text

    def test_invalid_timezone_uses_default(self, tmp_dir):
        cm = self._load(tmp_dir, "sync", {"timezone": "Mars/Olympus_Mons"})
        assert cm.get("sync.timezone") == "UTC"

    def test_valid_timezone_accepted(self, tmp_dir):
        cm = self._load(tmp_dir, "sync", {"timezone": "America/New_York"})
        assert cm.get("sync.timezone") == "America/New_York"

    def test_timeout_below_min_forced_to_5(self, tmp_dir):
        cm = self._load(tmp_dir, "twist", {"timeout": 1})
        assert cm.get("twist.timeout") == 5

    def test_non_numeric_timeout_uses_default(self, tmp_dir):
        cm = self._load(tmp_dir, "twist", {"timeout": "soon"})
        assert cm.get("twist.timeout") == 30

    def test_negative_request_interval_forced_to_0(self, tmp_dir):
        cm = self._load(tmp_dir, "twist", {"request_interval_sec": -1})
        assert cm.get("twist.request_interval_sec") == 0.0

    def test_invalid_max_retries_uses_default(self, tmp_dir):
        cm = self._load(tmp_dir, "twist", {"max_retries": [1]})
        assert cm.get("twist.max_retries") == 3

    def test_absent_keys_left_unset(self, tmp_dir):
        cm = self._load(tmp_dir, "twist", {"token": "abc"})
        assert cm.get("twist.token") == "abc"
        assert cm.get("sync.thread_limit") is None

    def test_file_not_rewritten(self, tmp_dir):
        cm = self._load(tmp_dir, "sync", {"thread_limit": "lots"})
        assert yaml.safe_load(cm.CONFIG_PATH.read_text()) == {"sync": {"thread_limit": "lots"}}

    def test_non_mapping_file_uses_defaults(self, tmp_dir):
        config_path = tmp_dir / "settings.yaml"
        config_path.write_text("- just\n- a list\n")

        cm = ConfigManager(config_path)

        assert cm.get("sync.thread_limit") == 20
        assert cm.get("twist.api_base_url") == "https://api.twist.com/api/v3/"

    def test_save_failure_raises(self, tmp_dir):
        blocker = tmp_dir / "file"
        blocker.write_text("")
        cm = make_cm(config_path=blocker / "settings.yaml")

        with pytest.raises(ConfigError, match="Failed to save configuration"):
            cm.save()


class TestResolveSettings:
    """Test explicit argument -> settings.yaml -> environment resolution."""

    def _configured(self, **values):
        cm = make_cm()
        for key, value in values.items():
            cm.set(key, value)
        return cm

    def test_from_config(self, config_file, tmp_dir):
        settings = ConfigManager(config_file).resolve_settings()

        assert settings.token == "test-token"
        assert settings.workspace_id == 42
        assert settings.workspace_dir == tmp_dir / "workspace"
        assert settings.timezone == "UTC"
        assert settings.api_base_url == "https://api.twist.com/api/v3/"

    def test_from_environment(self, tmp_dir, monkeypatch):
        monkeypatch.setenv("TWIST_TOKEN", "env-token")
        monkeypatch.setenv("TWIST_WORKSPACE_ID", "7")
        monkeypatch.setenv("TWIST_WORKSPACE_DIR", str(tmp_dir))

        settings = make_cm().resolve_settings()

        assert settings.token == "env-token"
        assert settings.workspace_id == 7
        assert settings.workspace_dir == tmp_dir

    def test_config_beats_environment(self, tmp_dir, monkeypatch):
        monkeypatch.setenv("TWIST_TOKEN", "env-token")
        cm = self._configured(**{
            "twist.token": "file-token", "twist.workspace_id": 1, "sync.workspace_dir": "w",
        })
        assert cm.resolve_settings().token == "file-token"

    def test_explicit_beats_config(self, tmp_dir):
        cm = self._configured(**{
            "twist.token": "file-token", "twist.workspace_id": 1, "sync.workspace_dir": "w",
        })

        settings = cm.resolve_settings(token="arg-token", workspace_id=9, workspace_dir=tmp_dir)

        assert settings.token == "arg-token"
        assert settings.workspace_id == 9
        assert settings.workspace_dir == tmp_dir

    def test_missing_token(self):
        with pytest.raises(ConfigError, match="No Twist API token found"):
            make_cm().resolve_settings()

    def test_missing_workspace_id(self, tmp_dir):
        cm = self._configured(**{"twist.token": "t"})
        with pytest.raises(ConfigError, match="No Twist workspace ID found"):
            cm.resolve_settings()

    def test_missing_workspace_dir(self, tmp_dir):
        cm = self._configured(**{"twist.token": "t", "twist.workspace_id": 1})
        with pytest.raises(ConfigError, match="No Twist workspace directory found"):
            cm.resolve_settings()

    def test_invalid_workspace_id(self, tmp_dir, monkeypatch):
        monkeypatch.setenv("TWIST_WORKSPACE_ID", "abc")
        cm = self._configured(**{"twist.token": "t"})
        with pytest.raises(ConfigError, match="Invalid Twist workspace ID"):
            cm.resolve_settings()

    def test_workspace_optional(self, tmp_dir):
        cm = self._configured(**{"twist.token": "t"})

        settings = cm.resolve_settings(require_workspace=False)

        assert settings.workspace_id == 0
        assert settings.workspace_dir == Path(".")

    def test_invalid_configured_timezone(self, tmp_dir):
        cm = self._configured(**{
            "twist.token": "t", "twist.workspace_id": 1, "sync.workspace_dir": "w",
            "sync.timezone": "Nowhere/Land",
        })
        with pytest.raises(ConfigError, match="Unknown timezone"):
            cm.resolve_settings()


class TestIsValidTimezone:

    @pytest.mark.parametrize("name,expected", [
        ("UTC", True), ("Europe/Berlin", True), ("Nowhere/Land", False),
        ("", False), (None, False), (5, False),
    ])
    def test_names(self, name, expected):
        assert is_valid_timezone(name) is expected
