"""
settings_loader.py

Configuration management for the pekclient SDK.
Loads and validates settings from YAML configuration with environment variable substitution.

Features:
- YAML configuration loading with validation
- Environment variable substitution (${VAR_NAME} syntax)
- Singleton pattern for global settings access
- Type-safe configuration with Pydantic models
- Defaults when no configuration file is present
"""

import os
import re
import yaml
import logging
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator
from pathlib import Path

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models (Pydantic)
# =============================================================================

class ClientSettings(BaseModel):
    """General client settings."""
    name: str = Field(default="pekclient", description="Client name reported in logs")
    version: str = Field(default="1.0.0", description="Client version")


class RetrySettings(BaseModel):
    """Retry policy for establishing the connection."""
    max_attempts: int = Field(default=3, ge=1, description="Maximum connection attempts")
    initial_delay: float = Field(default=1.0, ge=0.0, description="Delay before the second attempt in seconds")
    backoff_factor: float = Field(default=2.0, ge=1.0, description="Backoff multiplier")
    max_delay: float = Field(default=30.0, ge=0.0, description="Maximum delay between attempts in seconds")


class ConnectionSettings(BaseModel):
    """Server connection configuration."""
    url: str = Field(default="http://localhost:3347", description="Clustering server URL")
    request_timeout: Optional[float] = Field(default=30.0, gt=0.0, description="Bound on every request/acknowledge round trip (null = wait forever)")
    connect_timeout: float = Field(default=10.0, gt=0.0, description="Connection handshake timeout in seconds")
    transports: List[str] = Field(default_factory=lambda: ["websocket", "polling"], description="socket.io transports in preference order")
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @field_validator("transports")
    @classmethod
    def validate_transports(cls, value: List[str]) -> List[str]:
        allowed = {"websocket", "polling"}
        unknown = [t for t in value if t not in allowed]
        if unknown:
            raise ValueError(f"Unknown transports {unknown}. Allowed values are {sorted(allowed)}.")
        return value


class CacheSettings(BaseModel):
    """Dataset attribute cache configuration."""
    backend: str = Field(default="memory", description="Cache backend (memory or redis)")
    redis_url: str = Field(default="redis://localhost:6379/7", description="Redis URL for the redis backend")
    ttl: int = Field(default=3600, ge=0, description="Cache TTL in seconds (0 = no expiry)")
    prefix: str = Field(default="pek:dataset:", description="Key prefix")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("memory", "redis"):
            raise ValueError(f"Invalid cache backend '{value}'. Must be 'memory' or 'redis'.")
        return value


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format (json or console)")


class Settings(BaseModel):
    """Root configuration model."""
    client: ClientSettings = Field(default_factory=ClientSettings)
    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# =============================================================================
# Configuration Manager (Singleton)
# =============================================================================

class ConfigManager:
    """
    Singleton configuration manager that loads and caches settings.

    Features:
    - Loads YAML configuration from file
    - Substitutes environment variables using ${VAR_NAME} syntax
    - Validates configuration using Pydantic models
    - Provides global access to settings
    """

    _instance: Optional['ConfigManager'] = None
    _settings: Optional[Settings] = None

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    @classmethod
    def load_config(cls, config_path: Optional[str] = None) -> Settings:
        """
        Load configuration from YAML file with environment variable substitution.

        Without an explicit path the default locations are searched; when none
        of them exists the built-in defaults are used.

        Args:
            config_path: Path to configuration file. If None, uses default path.

        Returns:
            Settings object with validated configuration

        Raises:
            FileNotFoundError: If an explicit configuration file is not found
            ValueError: If configuration is invalid
        """
        if cls._settings is not None:
            return cls._settings

        if config_path is None:
            possible_paths = [
                Path(os.getenv("PEK_CONFIG_PATH", "config/settings.yaml")),
                Path("config/settings.yaml"),
                Path.home() / ".config" / "pekclient" / "settings.yaml",
            ]

            config_path_obj = None
            for path in possible_paths:
                if path.exists():
                    config_path_obj = path
                    break

            if config_path_obj is None:
                logger.info("No configuration file found, using defaults")
                cls._settings = Settings()
                return cls._settings
        else:
            config_path_obj = Path(config_path)
            if not config_path_obj.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from: {config_path_obj}")

        try:
            with open(config_path_obj, 'r') as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to load YAML configuration: {e}")
            raise ValueError(f"Invalid YAML configuration: {e}")

        config_dict = cls._substitute_env_vars(raw_config)

        try:
            cls._settings = Settings(**config_dict)
            logger.info("Configuration loaded and validated successfully")
            return cls._settings
        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ValueError(f"Invalid configuration: {e}")

    @classmethod
    def get_settings(cls) -> Settings:
        """
        Get cached settings. Loads from default path if not already loaded.

        Returns:
            Settings object
        """
        if cls._settings is None:
            cls.load_config()
        return cls._settings

    @classmethod
    def _substitute_env_vars(cls, config: Any) -> Any:
        """
        Recursively substitute environment variables in configuration.

        Supports ${VAR_NAME} and ${VAR_NAME:default_value} syntax.
        """
        if isinstance(config, dict):
            return {k: cls._substitute_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [cls._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

            def replace_var(match):
                var_name = match.group(1)
                default_value = match.group(2) if match.group(2) is not None else ""
                return os.getenv(var_name, default_value)

            return re.sub(pattern, replace_var, config)
        else:
            return config

    @classmethod
    def reload_config(cls, config_path: Optional[str] = None) -> Settings:
        """Drop the cached settings and load them again."""
        cls._settings = None
        return cls.load_config(config_path)


def get_settings() -> Settings:
    """
    Get client settings (convenience function).

    Returns:
        Settings object
    """
    return ConfigManager.get_settings()
