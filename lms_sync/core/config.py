"""
Configuration management for the sync client.

Settings are passed explicitly to the client and stores; nothing reads
ambient global state.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lms_sync.core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


# Endpoint key -> REST route under the namespace
DEFAULT_ENDPOINTS: dict[str, str] = {
    "courses": "course",
    "lessons": "lesson",
    "quizzes": "quiz",
    "questions": "question",
    "books": "book",
    "categories": "qe_category",
    "topics": "qe_topic",
    "difficulties": "qe_difficulty",
    "course_types": "course_type",
    "media": "media",
    "users": "users",
}


class ConfigValidationError(ConfigurationError):
    """Raised when settings or a configuration file fail validation."""


class ApiSettings(BaseSettings):
    """Connection and behaviour settings for the collection API."""

    model_config = SettingsConfigDict(
        env_prefix="LMS_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="forbid",
    )

    # API Configuration
    api_url: str = "http://localhost:8080/wp-json"
    nonce: str = ""
    namespace: str = "wp/v2"
    endpoint_overrides: dict[str, str] = Field(default_factory=dict)
    request_timeout_seconds: float = 30.0

    # Store defaults
    default_per_page: int = 20
    debounce_ms: int = 500

    # Environment
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v.lower()

    @field_validator("default_per_page")
    @classmethod
    def validate_per_page(cls, v: int) -> int:
        # WordPress caps per_page at 100
        if not 1 <= v <= 100:
            raise ValueError("default_per_page must be between 1 and 100")
        return v

    @field_validator("debounce_ms")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        if v < 0:
            raise ValueError("debounce_ms must not be negative")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def endpoint(self, key: str) -> str:
        """Get the absolute collection URL for an endpoint key."""
        routes = {**DEFAULT_ENDPOINTS, **self.endpoint_overrides}
        if key not in routes:
            raise ConfigValidationError(f"Endpoint '{key}' not configured")
        return f"{self.api_url}/{self.namespace.strip('/')}/{routes[key]}"


class ConfigManager:
    """Loads ApiSettings from a JSON file, the environment and overrides."""

    def __init__(self, config_schema: type[ApiSettings] = ApiSettings):
        self.config_schema = config_schema
        self._config: ApiSettings | None = None

    def load_config(
        self,
        config_file: str | Path | None = None,
        **override_kwargs: Any,
    ) -> ApiSettings:
        """
        Load and validate configuration with priority order:
        1. Keyword arguments (highest priority)
        2. Environment variables (``LMS_SYNC_*``)
        3. Configuration file
        4. Default values (lowest priority)

        Args:
            config_file: Path to JSON configuration file
            **override_kwargs: Direct configuration overrides

        Returns:
            Validated settings object

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        try:
            config_data: dict[str, Any] = {}

            if config_file:
                config_data.update(self._load_from_file(config_file))

            # Environment wins over the file; pydantic-settings only fills
            # fields that are not passed explicitly, so drop file keys the
            # environment also sets.
            prefix = self.config_schema.model_config.get("env_prefix", "")
            for key in list(config_data):
                if os.getenv(f"{prefix}{key}".upper()) is not None:
                    config_data.pop(key)

            config_data.update(override_kwargs)

            self._config = self.config_schema(**config_data)

            logger.info("Configuration loaded successfully")
            logger.debug(f"Using API URL: {self._config.api_url}")

            return self._config

        except ValidationError as e:
            error_msg = f"Configuration validation failed: {e}"
            logger.error(error_msg)
            raise ConfigValidationError(error_msg) from e

    def _load_from_file(self, config_file: str | Path) -> dict[str, Any]:
        """Load configuration values from a JSON file."""
        config_path = Path(config_file)

        if not config_path.is_file():
            raise ConfigValidationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(
                f"Invalid JSON in configuration file {config_path}: {e}"
            ) from e

        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration file must contain a JSON object")

        logger.info(f"Loaded configuration from file: {config_path}")
        return config_data

    @property
    def config(self) -> ApiSettings | None:
        """Get the loaded configuration."""
        return self._config
