"""Thread-safe singleton configuration manager for twistsync."""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from twistsync.core.exceptions import ConfigError
from twistsync.core.types import Settings

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "twistsync" / "settings.yaml"

# Default configuration template
DEFAULT_CONFIG = {
    "app": {
        "log_level": "INFO",
        "log_dir": "",
    },
    "twist": {
        "token": "",
        "workspace_id": None,
        "api_base_url": "https://api.twist.com/api/v3/",
        "web_base_url": "https://twist.com",
        "timeout": 30,
        "request_interval_sec": 0.5,
        "max_retries": 3,
    },
    "sync": {
        "workspace_dir": "",
        "thread_limit": 20,
        "timezone": "UTC",
    },
    "security": {
        "mask_logs": True,
    },
}

# Environment variables consulted after explicit arguments and settings.yaml
ENV_TOKEN = "TWIST_TOKEN"
ENV_WORKSPACE_ID = "TWIST_WORKSPACE_ID"
ENV_WORKSPACE_DIR = "TWIST_WORKSPACE_DIR"
ENV_CONFIG_PATH = "TWISTSYNC_CONFIG"

# Keys checked by _validate_key_value when settings.yaml is loaded
VALIDATED_KEYS = (
    "sync.thread_limit",
    "sync.timezone",
    "twist.timeout",
    "twist.request_interval_sec",
    "twist.max_retries",
)


class ConfigManager:
    """Thread-safe singleton configuration manager.

    Manages application configuration with:
    - Singleton pattern ensuring only one instance exists
    - Thread-safe operations using RLock
    - Automatic settings.yaml creation if missing
    - Dot-notation key access (e.g., "sync.timezone")
    - Validation rules for critical settings
    - One-shot resolution of credentials into a Settings object
    """

    _instance = None
    _lock = threading.RLock()

    def __new__(cls, config_path: Optional[Path] = None):
        """Ensure singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: settings.yaml location. Only used on first
                initialization; falls back to $TWISTSYNC_CONFIG, then
                ~/.config/twistsync/settings.yaml.
        """
        # Prevent re-initialization
        if hasattr(self, '_initialized'):
            return

        with self._lock:
            if hasattr(self, '_initialized'):
                return

            if config_path is None:
                env_path = os.environ.get(ENV_CONFIG_PATH)
                config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
            self.CONFIG_PATH = Path(config_path).expanduser()

            # Internal state
            self._config = {}
            self._instance_lock = threading.RLock()

            self._load_or_create_config()

            self._initialized = True

    def _load_or_create_config(self):
        """Load settings.yaml or create it from defaults."""
        if self.CONFIG_PATH.exists():
            try:
                with open(self.CONFIG_PATH, 'r', encoding='utf-8') as f:
                    loaded = yaml.safe_load(f) or {}
                if not isinstance(loaded, dict):
                    raise yaml.YAMLError("top level is not a mapping")
                self._config = loaded
                self._validate_loaded_config()
                logger.debug(f"Loaded configuration from {self.CONFIG_PATH}")
            except yaml.YAMLError as e:
                logger.error(f"Failed to parse YAML at {self.CONFIG_PATH}: {e}")
                logger.warning("Using DEFAULT_CONFIG due to parse error")
                self._config = self._deep_copy(DEFAULT_CONFIG)
            except OSError as e:
                logger.error(f"Unexpected error loading config: {e}")
                logger.warning("Using DEFAULT_CONFIG")
                self._config = self._deep_copy(DEFAULT_CONFIG)
        else:
            logger.debug(f"Config file not found at {self.CONFIG_PATH}")
            self._config = self._deep_copy(DEFAULT_CONFIG)
            try:
                self.save()
                logger.info(f"Created default configuration at {self.CONFIG_PATH}")
            except ConfigError:
                logger.warning("Continuing with in-memory defaults")

    def get(self, key: str, default=None) -> Any:
        """Get configuration value using dot-notation key.

        Args:
            key: Dot-separated key path (e.g., "sync.timezone")
            default: Value to return if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get("sync.thread_limit")
            20
        """
        with self._instance_lock:
            parts = key.split('.')
            value = self._config

            for part in parts:
                if isinstance(value, dict) and part in value:
                    value = value[part]
                else:
                    return default

            return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot-notation key.

        Note: This does NOT save to disk. Use save() to persist changes.
        """
        with self._instance_lock:
            parts = key.split('.')
            target = self._config

            for part in parts[:-1]:
                if not isinstance(target.get(part), dict):
                    target[part] = {}
                target = target[part]

            target[parts[-1]] = value

    def _validate_loaded_config(self) -> None:
        """Apply validation rules to values read from settings.yaml.

        Invalid values fall back to DEFAULT_CONFIG; out-of-range values are clamped.
        """
        with self._instance_lock:
            for key in VALIDATED_KEYS:
                value = self.get(key)
                if value is None:
                    continue
                validated_value = self._validate_key_value(key, value)
                if validated_value is None:
                    section, name = key.split('.')
                    validated_value = DEFAULT_CONFIG[section][name]
                if validated_value != value:
                    self.set(key, validated_value)

    def _validate_key_value(self, key: str, value: Any) -> Any:
        """Apply validation rules to key-value pair.

        Returns:
            Validated value, or None if invalid (the default is used instead)
        """
        if key == "sync.thread_limit":
            try:
                limit = int(value)
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Invalid thread_limit '{value}'. Must be int. Using default.")
                return None
            if limit < 1:
                logger.warning(f"thread_limit {limit} < 1. Forcing to 1.")
                return 1
            if limit > 500:
                logger.warning(f"thread_limit {limit} > 500. Forcing to 500.")
                return 500
            return limit

        if key == "sync.timezone":
            if not is_valid_timezone(value):
                logger.warning(f"Unknown timezone '{value}'. Using default.")
                return None
            return value

        if key == "twist.timeout":
            try:
                timeout = int(value)
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Invalid timeout '{value}'. Must be int. Using default.")
                return None
            if timeout < 5:
                logger.warning(f"timeout {timeout} < 5. Forcing to 5.")
                return 5
            return timeout

        if key == "twist.request_interval_sec":
            try:
                interval = float(value)
            except (TypeError, ValueError):
                logger.warning(
                    f"Invalid request_interval_sec '{value}'. Must be a number. Using default."
                )
                return None
            if interval < 0:
                logger.warning(f"request_interval_sec {interval} < 0. Forcing to 0.")
                return 0.0
            return interval

        if key == "twist.max_retries":
            try:
                retries = int(value)
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Invalid max_retries '{value}'. Must be int. Using default.")
                return None
            if retries < 0:
                logger.warning(f"max_retries {retries} < 0. Forcing to 0.")
                return 0
            return retries

        return value

    def save(self) -> None:
        """Write current configuration to settings.yaml."""
        with self._instance_lock:
            try:
                self.CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
                with open(self.CONFIG_PATH, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
                logger.debug(f"Saved configuration to {self.CONFIG_PATH}")
            except OSError as e:
                logger.error(f"Failed to save configuration: {e}")
                raise ConfigError(f"Failed to save configuration: {e}")

    def resolve_settings(
        self,
        token: Optional[str] = None,
        workspace_id: Optional[int] = None,
        workspace_dir: Optional[Path] = None,
        require_workspace: bool = True,
    ) -> Settings:
        """Resolve credentials once: explicit argument, then settings.yaml, then environment.

        Args:
            token: Explicit API token
            workspace_id: Explicit workspace id
            workspace_dir: Explicit local workspace directory
            require_workspace: When False, workspace id/dir may stay unset
                (commands that only touch a single thread)

        Raises:
            ConfigError: A required value could not be found anywhere
        """
        token = token or self.get("twist.token") or os.environ.get(ENV_TOKEN)
        if not token:
            raise ConfigError(
                "No Twist API token found. Set twist.token in settings.yaml "
                f"or the {ENV_TOKEN} environment variable."
            )

        workspace_id = (
            workspace_id
            or self.get("twist.workspace_id")
            or os.environ.get(ENV_WORKSPACE_ID)
        )
        if workspace_id:
            try:
                workspace_id = int(workspace_id)
            except (TypeError, ValueError):
                raise ConfigError(f"Invalid Twist workspace ID: {workspace_id!r}")
        elif require_workspace:
            raise ConfigError(
                "No Twist workspace ID found. Set twist.workspace_id in settings.yaml "
                f"or the {ENV_WORKSPACE_ID} environment variable."
            )

        workspace_dir = (
            workspace_dir
            or self.get("sync.workspace_dir")
            or os.environ.get(ENV_WORKSPACE_DIR)
        )
        if not workspace_dir and require_workspace:
            raise ConfigError(
                "No Twist workspace directory found. Set sync.workspace_dir in settings.yaml "
                f"or the {ENV_WORKSPACE_DIR} environment variable."
            )

        timezone = self.get("sync.timezone", "UTC")
        if not is_valid_timezone(timezone):
            raise ConfigError(f"Unknown timezone in settings: {timezone}")

        return Settings(
            token=token,
            workspace_id=workspace_id or 0,
            workspace_dir=Path(workspace_dir or ".").expanduser(),
            timezone=timezone,
            api_base_url=self.get("twist.api_base_url", "https://api.twist.com/api/v3/"),
            web_base_url=self.get("twist.web_base_url", "https://twist.com"),
        )

    def get_log_dir(self) -> Optional[Path]:
        """Configured log directory, or None to log to the console only."""
        with self._instance_lock:
            log_dir = self.get("app.log_dir")
            return Path(log_dir).expanduser() if log_dir else None

    @classmethod
    def reset(cls) -> None:
        """Reset singleton instance (for testing)."""
        with cls._lock:
            cls._instance = None

    @staticmethod
    def _deep_copy(obj):
        """Create a deep copy of nested dict/list structures."""
        if isinstance(obj, dict):
            return {k: ConfigManager._deep_copy(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [ConfigManager._deep_copy(item) for item in obj]
        else:
            return obj


def is_valid_timezone(name: Any) -> bool:
    """True if name is a timezone zoneinfo can load."""
    if not isinstance(name, str) or not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True
