"""
Configuration Loader
Configuration management for LibreFollow
"""

import copy
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional

import yaml
from dotenv import load_dotenv


DEFAULT_CONFIG: Dict[str, Any] = {
    'server': {
        'base_url': '',
        'use_mmol': False,
        'request_timeout': 10,
        'verify_ssl': True,
        'max_workers': 3,
    },
    'display': {
        'time_format': '%H:%M:%S',
        'timezone': '',
    },
    'logging': {
        'level': 'INFO',
        'file': '',
        'max_size': '10MB',
        'backup_count': 5,
    },
}

# Environment variables that override YAML values
ENV_OVERRIDES = {
    'LIBRE_FOLLOW_SERVER_URL': 'server.base_url',
    'LIBRE_FOLLOW_USE_MMOL': 'server.use_mmol',
    'LIBRE_FOLLOW_LOG_LEVEL': 'logging.level',
}

_ENV_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')
_TRUE_STRINGS = {'1', 'true', 'yes', 'on'}


class ConfigError(Exception):
    """Configuration is missing, unreadable or invalid"""


@dataclass(frozen=True)
class FollowSettings:
    """
    Immutable per-session settings

    Attributes:
        server_url: Follow server base URL
        use_mmol: Show mmol/L instead of mg/dL
        request_timeout: HTTP timeout in seconds
        verify_ssl: Verify TLS certificates
        max_workers: Concurrent requests per session
        time_format: strftime pattern for the reading time
        timezone: IANA zone for the reading time, local zone when None
    """
    server_url: str
    use_mmol: bool = False
    request_timeout: float = 10.0
    verify_ssl: bool = True
    max_workers: int = 3
    time_format: str = '%H:%M:%S'
    timezone: Optional[str] = None


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """
    Configuration loader and manager

    Attributes:
        config_data (Dict): Loaded configuration data
        config_file (str): Path to configuration file
        env_file (str): Path to environment file
        logger (logging.Logger): Logger instance
    """

    def __init__(self, config_file: str = "config/app_config.yaml",
                 env_file: str = ".env"):
        """
        Initialize configuration loader

        Args:
            config_file: Path to YAML configuration file
            env_file: Path to environment variables file
        """
        self.logger = logging.getLogger(__name__)
        self.config_file = config_file
        self.env_file = env_file
        self.config_data: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)

    def load_config(self) -> bool:
        """
        Load configuration from files

        Order: built-in defaults, YAML file, then environment overrides.
        A missing YAML file is not an error, settings may come from the
        environment alone.

        Returns:
            bool: True if the YAML file was found and loaded

        Raises:
            ConfigError: YAML file exists but cannot be parsed
        """
        self._load_env_variables(self.env_file)

        file_data: Dict[str, Any] = {}
        loaded = False
        if self.config_file and Path(self.config_file).exists():
            file_data = self._load_yaml_file(self.config_file)
            loaded = True
        else:
            self.logger.warning(f"Configuration file not found: {self.config_file}, using defaults")

        merged = _deep_merge(DEFAULT_CONFIG, file_data)
        self.config_data = self._resolve_env_variables(merged)
        self._apply_env_overrides()
        return loaded

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._get_nested_value(self.config_data, key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> bool:
        """
        Set configuration value

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set

        Returns:
            bool: True if value set successfully
        """
        try:
            self._set_nested_value(self.config_data, key, value)
            return True
        except (TypeError, KeyError) as e:
            self.logger.error(f"Cannot set {key}: {e}")
            return False

    def _load_yaml_file(self, file_path: str) -> Dict[str, Any]:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read configuration file {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {file_path} must contain a mapping")
        return data

    def _load_env_variables(self, env_file: str):
        """Load environment variables from .env file, existing ones win"""
        if env_file and Path(env_file).exists():
            load_dotenv(env_file, override=False)
            self.logger.debug(f"Loaded environment from {env_file}")

    def _resolve_env_variables(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Resolve ${VAR} and ${VAR:-default} references in string values

        Args:
            config_dict: Configuration dictionary

        Returns:
            Configuration with resolved environment variables
        """
        def resolve(value):
            if isinstance(value, dict):
                return {k: resolve(v) for k, v in value.items()}
            if isinstance(value, list):
                return [resolve(v) for v in value]
            if isinstance(value, str):
                return _ENV_PATTERN.sub(
                    lambda m: os.environ.get(m.group(1), m.group(2) or ''), value
                )
            return value

        return resolve(config_dict)

    def _apply_env_overrides(self):
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self._set_nested_value(self.config_data, key, value)
                self.logger.debug(f"{key} overridden by {env_name}")

    def _get_nested_value(self, data: Dict[str, Any], key_path: str) -> Any:
        current: Any = data
        for part in key_path.split('.'):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current

    def _set_nested_value(self, data: Dict[str, Any], key_path: str, value: Any):
        parts = key_path.split('.')
        current = data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value

    def validate_config(self) -> bool:
        """
        Validate configuration structure and values

        Returns:
            bool: True if configuration is valid
        """
        valid = True

        base_url = str(self.get('server.base_url', '')).strip()
        if not base_url:
            self.logger.error("server.base_url is not set (or LIBRE_FOLLOW_SERVER_URL)")
            valid = False
        elif not base_url.lower().startswith(('http://', 'https://')):
            self.logger.error(f"server.base_url must start with http:// or https://: {base_url}")
            valid = False

        try:
            if float(self.get('server.request_timeout', 10)) <= 0:
                self.logger.error("server.request_timeout must be positive")
                valid = False
        except (TypeError, ValueError):
            self.logger.error("server.request_timeout must be a number")
            valid = False

        try:
            if int(self.get('server.max_workers', 3)) <= 0:
                self.logger.error("server.max_workers must be positive")
                valid = False
        except (TypeError, ValueError):
            self.logger.error("server.max_workers must be an integer")
            valid = False

        return valid

    def get_follow_settings(self) -> FollowSettings:
        """
        Build the immutable session settings

        Returns:
            FollowSettings

        Raises:
            ConfigError: configuration failed validation
        """
        if not self.validate_config():
            raise ConfigError("Invalid configuration, see log for details")

        timezone = str(self.get('display.timezone', '') or '').strip()
        return FollowSettings(
            server_url=str(self.get('server.base_url')).strip(),
            use_mmol=parse_bool(self.get('server.use_mmol', False)),
            request_timeout=float(self.get('server.request_timeout', 10)),
            verify_ssl=parse_bool(self.get('server.verify_ssl', True)),
            max_workers=int(self.get('server.max_workers', 3)),
            time_format=str(self.get('display.time_format', '%H:%M:%S')),
            timezone=timezone or None,
        )

    def get_logging_config(self) -> Dict[str, Any]:
        return dict(self.get('logging', {}))
