"""Application Settings.

Process-wide defaults read from ``TF_*`` environment variables. Values
describing one particular transfer (source, target, direction, tables)
live in the run configuration, see ``config_manager``.

Security Impact:
    - No credentials are held here; API keys belong to the run configuration
"""

import os
from typing import Optional

from transfair import __version__
from transfair.domain.guardrails import CircuitBreakerConfig
from transfair.infrastructure.config_manager import ConfigManager

APP_NAME = "TransFAIR"
APP_VERSION = __version__

DEFAULT_BATCH_SIZE = 100


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from the environment."""

    def __init__(self):
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("TF_APP_NAME", APP_NAME)
        self.batch_size = int(os.getenv("TF_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)))

        self.log_level = os.getenv("TF_LOG_LEVEL", "INFO")
        self.log_json = _flag("TF_LOG_JSON", "false")

        self.circuit_breaker_enabled = _flag("TF_CIRCUIT_BREAKER_ENABLED", "false")
        self.circuit_breaker_threshold = float(os.getenv("TF_CIRCUIT_BREAKER_THRESHOLD", "50"))
        self.circuit_breaker_window = int(os.getenv("TF_CIRCUIT_BREAKER_WINDOW", "20"))
        self.circuit_breaker_min_batches = int(os.getenv("TF_CIRCUIT_BREAKER_MIN_BATCHES", "5"))

    @property
    def config_manager(self) -> ConfigManager:
        """Run configuration from the environment, loaded on first access."""
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    def circuit_breaker_config(self) -> Optional[CircuitBreakerConfig]:
        """CircuitBreakerConfig from the environment, or None when disabled."""
        if not self.circuit_breaker_enabled:
            return None
        return CircuitBreakerConfig(
            failure_threshold_percent=self.circuit_breaker_threshold,
            window_size=self.circuit_breaker_window,
            min_batches_before_check=self.circuit_breaker_min_batches,
        )


# Global settings instance
settings = Settings()
