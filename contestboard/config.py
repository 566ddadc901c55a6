"""
Configuration management for the contest scoreboard.
Supports both JSON file configuration and environment variable overrides.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)


class ContestConfig:
    """Configuration management for the contest scoreboard."""

    DEFAULT_CONFIG = {
        "contest_name": "Contest Scoreboard",
        "submissions": {
            "page_size": 20,
            "admin_user_name": "admin",
        },
        "auth": {
            # Set by the authenticating reverse proxy in front of us
            "user_header": "X-Contest-User",
        },
        "database": {
            "busy_timeout_ms": 5000,
        },
        "ui": {
            "show_member_names": True,
        },
        "logging": {
            "level": "INFO",
        },
    }

    VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

    def __init__(
        self,
        config_path: str = "contest_config.json",
    ) -> None:
        """Initialize configuration from file, environment variables, or defaults."""
        self.config_path = Path(config_path)
        self.config = self._load_config()
        self._apply_env_overrides()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from JSON file or create default.

        @return: Dictionary containing the loaded configuration
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    loaded_config = json.load(f)

                # Merge with defaults to ensure all keys exist
                config = copy.deepcopy(self.DEFAULT_CONFIG)
                self._deep_merge(config, loaded_config)
                return config

            except (json.JSONDecodeError, IOError) as e:
                logger.error("Error loading config from %s: %s", self.config_path, e)
                logger.warning("Using default configuration")
                return copy.deepcopy(self.DEFAULT_CONFIG)
        else:
            self._create_default_config()
            return copy.deepcopy(self.DEFAULT_CONFIG)

    def _deep_merge(
        self,
        base_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
    ) -> None:
        """
        Recursively merge dictionaries.

        @param base_dict: Base dictionary to merge into
        @param update_dict: Dictionary with updates to merge
        """
        for key, value in update_dict.items():
            if (
                key in base_dict
                and isinstance(base_dict[key], dict)
                and isinstance(value, dict)
            ):
                self._deep_merge(base_dict[key], value)
            else:
                base_dict[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to configuration.

        Environment variables follow the pattern: SECTION_KEY (e.g., SUBMISSIONS_PAGE_SIZE)
        """
        env_mappings = {
            "CONTEST_NAME": ("contest_name",),

            # Submission history
            "SUBMISSIONS_PAGE_SIZE": ("submissions", "page_size"),
            "ADMIN_USER_NAME": ("submissions", "admin_user_name"),

            # Identity forwarded by the auth proxy
            "USER_HEADER": ("auth", "user_header"),

            "DB_BUSY_TIMEOUT_MS": ("database", "busy_timeout_ms"),
            "SHOW_MEMBER_NAMES": ("ui", "show_member_names"),
            "LOG_LEVEL": ("logging", "level"),
        }

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                converted_value = self._convert_env_value(env_value)
                self._set_nested_config(config_path, converted_value)

    def _convert_env_value(self, value: str) -> Any:
        """
        Convert environment variable string to appropriate type.

        @param value: String value from environment variable
        @return: Converted value (bool, int, or string)
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value

    def _set_nested_config(self, path: tuple, value: Any) -> None:
        """
        Set a nested configuration value using a path tuple.

        @param path: Tuple representing the nested path (e.g., ("database", "busy_timeout_ms"))
        @param value: Value to set
        """
        current = self.config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _create_default_config(self) -> None:
        """
        Create a default configuration file.

        Writes the default configuration to the configured file path.
        """
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.DEFAULT_CONFIG, f, indent=2)
            logger.info("Created default configuration file: %s", self.config_path)
        except IOError as e:
            logger.warning("Could not create config file %s: %s", self.config_path, e)

    def _validate_config(self) -> None:
        """
        Validate configuration values.

        Checks configuration values for validity and sets defaults for invalid values.
        """
        page_size = self.config["submissions"]["page_size"]
        if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size <= 0:
            logger.warning("Invalid submissions.page_size, using 20")
            self.config["submissions"]["page_size"] = 20

        if not self.config["submissions"]["admin_user_name"]:
            logger.warning("Empty submissions.admin_user_name, using 'admin'")
            self.config["submissions"]["admin_user_name"] = "admin"

        if not self.config["auth"]["user_header"]:
            logger.warning("Empty auth.user_header, using 'X-Contest-User'")
            self.config["auth"]["user_header"] = "X-Contest-User"

        busy_timeout = self.config["database"]["busy_timeout_ms"]
        if not isinstance(busy_timeout, int) or isinstance(busy_timeout, bool) or busy_timeout < 0:
            logger.warning("Invalid database.busy_timeout_ms, using 5000")
            self.config["database"]["busy_timeout_ms"] = 5000

        level = str(self.config["logging"]["level"]).upper()
        if level not in self.VALID_LOG_LEVELS:
            logger.warning("Invalid logging.level, using 'INFO'")
            level = "INFO"
        self.config["logging"]["level"] = level

    def get(
        self,
        *keys: str,
    ) -> Any:
        """
        Get nested configuration value.

        @param keys: Variable arguments representing nested keys to traverse
        @return: Configuration value at the specified path, None if not found
        """
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    @property
    def page_size(self) -> int:
        return self.get("submissions", "page_size")

    @property
    def admin_user_name(self) -> str:
        return self.get("submissions", "admin_user_name")

    @property
    def user_header(self) -> str:
        return self.get("auth", "user_header")
