"""Simple YAML configuration loader for Speak2Spend."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "speak2spend.yaml"
DEEPGRAM_PLACEHOLDER_KEY = "your_deepgram_api_key"
MIN_DEEPGRAM_KEY_LENGTH = 10

DEFAULTS: Dict[str, Any] = {
    "audio": {
        "sample_rate": 16000,
        "chunk_size": 1024,
        "channels": 1,
    },
    "recording": {
        "failsafe_seconds": 5.0,
        "level_interval_seconds": 1.0 / 60.0,
    },
    "transcription": {
        "backend": "auto",
        "timeout_seconds": 10.0,
    },
    "deepgram": {
        "api_key": None,
        "model": "nova-2",
    },
    "google_cloud": {
        "credentials_path": None,
        "language": "en-US",
    },
    "storage": {
        "data_directory": "data",
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/speak2spend.log",
        "console_output": True,
    },
}

ENV_OVERRIDES = {
    "DEEPGRAM_API_KEY": "deepgram.api_key",
    "GOOGLE_APPLICATION_CREDENTIALS": "google_cloud.credentials_path",
}

BACKEND_CHOICES = ("auto", "deepgram", "google", "none")


def is_valid_deepgram_key(api_key: Optional[str]) -> bool:
    """A key counts as configured when set, not the sample placeholder, and long enough."""
    return (
        bool(api_key)
        and api_key != DEEPGRAM_PLACEHOLDER_KEY
        and len(api_key) > MIN_DEEPGRAM_KEY_LENGTH
    )


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class Speak2SpendConfig:
    """Speak2Spend configuration loader."""

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, uses speak2spend.yaml
                        in the current directory when present, defaults otherwise.
            environ: Environment mapping for overrides (defaults to os.environ)
        """
        self.config = copy.deepcopy(DEFAULTS)

        if config_path is not None:
            self.config_file: Optional[Path] = Path(config_path)
            if not self.config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
        elif Path(DEFAULT_CONFIG_FILENAME).exists():
            self.config_file = Path(DEFAULT_CONFIG_FILENAME)
        else:
            self.config_file = None

        if self.config_file is not None:
            logger.info(f"Loading configuration from: {self.config_file}")
            _merge(self.config, self._load_config())
        else:
            logger.info("No configuration file found, using defaults")

        self._apply_environment(os.environ if environ is None else environ)
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}")

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (("google_cloud", "credentials_path"),
                             ("storage", "data_directory"),
                             ("logging", "file_path")):
            value = (config.get(section) or {}).get(key)
            if value and not os.path.isabs(value):
                config[section][key] = str(config_dir / value)

    def _apply_environment(self, environ: Dict[str, str]) -> None:
        for variable, key_path in ENV_OVERRIDES.items():
            value = environ.get(variable)
            if value:
                self.set(key_path, value)
                logger.debug(f"Configuration key '{key_path}' taken from ${variable}")

    def _validate(self) -> None:
        backend = str(self.get('transcription.backend', 'auto')).lower()
        if backend not in BACKEND_CHOICES:
            raise ValueError(f"transcription.backend must be one of {', '.join(BACKEND_CHOICES)}, got {backend!r}")
        self.set('transcription.backend', backend)

        for key_path in ('recording.failsafe_seconds', 'recording.level_interval_seconds',
                         'transcription.timeout_seconds'):
            value = self.get(key_path)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{key_path} must be a positive number, got {value!r}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'google_cloud.language').

        Args:
            key_path: Dot-separated key path (e.g., 'google_cloud.credentials_path')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'google_cloud.language')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if not isinstance(config_dict.get(key), dict):
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set")

    def get_deepgram_api_key(self) -> Optional[str]:
        """Deepgram key if one is genuinely configured, None otherwise."""
        api_key = self.get('deepgram.api_key')
        return api_key if is_valid_deepgram_key(api_key) else None

    def get_google_credentials_path(self) -> Optional[str]:
        """Absolute path of the Google credentials file if it exists, None otherwise."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            return None

        creds_file = Path(creds_path)
        if not creds_file.is_file():
            logger.warning(f"Google credentials file not found: {creds_path}")
            return None

        return str(creds_file.absolute())

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
