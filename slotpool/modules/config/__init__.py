"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: get_config(), ConfigModule.get(), ConfigModule.set()
Hidden: Config sources, validation logic, environment parsing

Can be replaced with different config systems (Consul, etcd, AWS Parameter Store).
"""

import os
from typing import Any, Dict, Optional


# Configuration Contract: Required and Optional Keys
# This defines the black box interface - what the config module guarantees to provide

REQUIRED_CONFIG_KEYS = {
    "redis_host": "Redis server hostname",
    "redis_port": "Redis server port number",
    "redis_db": "Redis database number",
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "session_ttl": "Default session time-to-live in seconds",
    "audit_log_max_entries": "Maximum number of audit events retained",
    "strict_capacity": "Enforce capacity with an atomic Redis script",
    "cors_origins": "Allowed CORS origins",
}

OPTIONAL_CONFIG_KEYS = {
    "redis_password": {
        "description": "Redis authentication password",
        "default": None,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
    "seed_backend_id": {
        "description": "Backend registered at startup if missing",
        "default": None,
    },
    "seed_backend_credential": {
        "description": "Credential of the startup backend",
        "default": None,
    },
    "seed_backend_target_id": {
        "description": "Target id of the startup backend (defaults to the backend id)",
        "default": None,
    },
    "seed_backend_capacity": {
        "description": "Capacity of the startup backend",
        "default": 5,
    },
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


class ConfigModule:
    """Configuration management module."""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize with environment variables.

        Args:
            overrides: Optional values applied on top of the environment
        """
        self._config = self._load_from_env()
        if overrides:
            self._config.update(overrides)
        self._validate_required_keys()
        self._validate_values()

    def _validate_required_keys(self) -> None:
        """
        Validate that all required configuration keys are present.

        Raises:
            ValueError: If required keys are missing
        """
        missing_keys = []
        for key in REQUIRED_CONFIG_KEYS:
            if key not in self._config or self._config[key] is None:
                missing_keys.append(key)

        if missing_keys:
            raise ValueError(
                f"Missing required configuration keys: {', '.join(missing_keys)}. "
                f"Check environment variables and deployment configuration."
            )

    def _validate_values(self) -> None:
        """
        Validate value ranges.

        Raises:
            ValueError: If a value is out of range
        """
        for key in ("session_ttl", "audit_log_max_entries", "seed_backend_capacity"):
            if self._config[key] <= 0:
                raise ValueError(f"{key} must be positive, got {self._config[key]}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        # Parse Redis port (might be in tcp://host:port format from K8s)
        redis_port_env = os.getenv("REDIS_PORT", "6379")
        if redis_port_env.startswith("tcp://"):
            redis_port = _parse_int("REDIS_PORT", redis_port_env.split(":")[-1])
        else:
            redis_port = _parse_int("REDIS_PORT", redis_port_env)

        return {
            # Redis settings
            "redis_host": os.getenv("REDIS_HOST", "localhost"),
            "redis_port": redis_port,
            "redis_db": _parse_int("REDIS_DB", os.getenv("REDIS_DB", "0")),
            "redis_password": os.getenv("REDIS_PASSWORD"),  # Optional: for authenticated Redis
            # API settings
            "host": os.getenv("API_HOST", "0.0.0.0"),
            "port": _parse_int("API_PORT", os.getenv("API_PORT", "3006")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "debug": _parse_bool(os.getenv("DEBUG", "false")),
            "cors_origins": [
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ],
            # Session settings
            "session_ttl": _parse_int("SESSION_TTL", os.getenv("SESSION_TTL", "900")),
            "audit_log_max_entries": _parse_int(
                "AUDIT_LOG_MAX_ENTRIES", os.getenv("AUDIT_LOG_MAX_ENTRIES", "1000")
            ),
            "strict_capacity": _parse_bool(os.getenv("STRICT_CAPACITY", "false")),
            # Startup seeding
            "seed_backend_id": os.getenv("SEED_BACKEND_ID"),
            "seed_backend_credential": os.getenv("SEED_BACKEND_CREDENTIAL"),
            "seed_backend_target_id": os.getenv("SEED_BACKEND_TARGET_ID"),
            "seed_backend_capacity": _parse_int(
                "SEED_BACKEND_CAPACITY", os.getenv("SEED_BACKEND_CAPACITY", "5")
            ),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self._config[key] = value

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self._config.copy()

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Get the configuration schema (contract) for this module.

        Returns:
            Dictionary with 'required' and 'optional' key specifications

        Example:
            >>> schema = ConfigModule.get_config_schema()
            >>> print(schema['required']['redis_host'])
            'Redis server hostname'
        """
        return {
            "required": REQUIRED_CONFIG_KEYS.copy(),
            "optional": OPTIONAL_CONFIG_KEYS.copy(),
        }


# Singleton instance
_instance = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


def reset_config() -> None:
    """Drop the singleton so the next get_config() re-reads the environment."""
    global _instance
    _instance = None


__all__ = ["get_config", "reset_config", "ConfigModule"]
