"""
Valya - Configuration.

============================================================
CONFIGURABLE ORCHESTRATOR SETTINGS
============================================================

Settings shared by every orchestrator instance:
- Fallback message for failures without a message
- Size of the settled-run history
- Whether stale discards are logged
- Timeout for network-backed checks

Configuration can be loaded from:
- Default values
- Environment variables
- YAML config file

============================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(key: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Invalid boolean for {key}: {raw!r}",
        config_key=key,
        expected_value="true/false",
        actual_value=raw,
    )


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class OrchestratorSettings:
    """
    Process-wide settings for validation orchestrators.
    """
    # Message reported when a check fails without one
    fallback_message: str = "Validation failed"

    # Settled runs kept per orchestrator (0 disables history)
    history_size: int = 50

    # Logging
    log_stale_discards: bool = True

    # Network-backed checks
    remote_timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        """Validate settings."""
        if not isinstance(self.fallback_message, str) or not self.fallback_message:
            raise ConfigurationError(
                "fallback_message must be a non-empty string",
                config_key="fallback_message",
            )
        if self.history_size < 0:
            raise ConfigurationError(
                "history_size must be >= 0",
                config_key="history_size",
                actual_value=str(self.history_size),
            )
        if self.remote_timeout_seconds <= 0:
            raise ConfigurationError(
                "remote_timeout_seconds must be positive",
                config_key="remote_timeout_seconds",
                actual_value=str(self.remote_timeout_seconds),
            )

    @classmethod
    def from_env(cls) -> "OrchestratorSettings":
        """
        Load settings from environment variables.

        Environment variables:
        - VALYA_FALLBACK_MESSAGE
        - VALYA_HISTORY_SIZE
        - VALYA_LOG_STALE_DISCARDS
        - VALYA_REMOTE_TIMEOUT
        """
        kwargs: Dict[str, Any] = {}

        if os.getenv("VALYA_FALLBACK_MESSAGE"):
            kwargs["fallback_message"] = os.getenv("VALYA_FALLBACK_MESSAGE")
        try:
            if os.getenv("VALYA_HISTORY_SIZE"):
                kwargs["history_size"] = int(os.getenv("VALYA_HISTORY_SIZE"))
            if os.getenv("VALYA_REMOTE_TIMEOUT"):
                kwargs["remote_timeout_seconds"] = float(os.getenv("VALYA_REMOTE_TIMEOUT"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting in environment: {e}") from e
        if os.getenv("VALYA_LOG_STALE_DISCARDS"):
            kwargs["log_stale_discards"] = _parse_bool(
                "VALYA_LOG_STALE_DISCARDS", os.getenv("VALYA_LOG_STALE_DISCARDS")
            )

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "OrchestratorSettings":
        """Load settings from YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

        section = data.get("settings", data) if isinstance(data, dict) else {}
        if not isinstance(section, dict):
            logger.warning(f"Ignoring non-mapping settings section in {path}")
            return cls()

        try:
            history_size = int(section.get("history_size", 50))
            remote_timeout = float(section.get("remote_timeout_seconds", 5.0))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric setting in {path}: {e}") from e

        log_stale_discards = section.get("log_stale_discards", True)
        if isinstance(log_stale_discards, str):
            log_stale_discards = _parse_bool("log_stale_discards", log_stale_discards)
        elif not isinstance(log_stale_discards, bool):
            raise ConfigurationError(
                f"Invalid boolean for log_stale_discards in {path}: {log_stale_discards!r}",
                config_key="log_stale_discards",
                expected_value="true/false",
                actual_value=str(log_stale_discards),
            )

        return cls(
            fallback_message=section.get("fallback_message", "Validation failed"),
            history_size=history_size,
            log_stale_discards=log_stale_discards,
            remote_timeout_seconds=remote_timeout,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "fallback_message": self.fallback_message,
            "history_size": self.history_size,
            "log_stale_discards": self.log_stale_discards,
            "remote_timeout_seconds": self.remote_timeout_seconds,
        }


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[OrchestratorSettings] = None


def get_config() -> OrchestratorSettings:
    """Get the global orchestrator settings."""
    global _default_config
    if _default_config is None:
        _default_config = OrchestratorSettings.from_env()
    return _default_config


def set_config(config: Optional[OrchestratorSettings]) -> None:
    """Set the global orchestrator settings (None resets to environment defaults)."""
    global _default_config
    _default_config = config
