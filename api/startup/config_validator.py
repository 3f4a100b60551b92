"""
Configuration validator for startup checks.

Validates the loaded daemon configuration early so a bad hand-edited
config file fails startup with a clear message instead of failing later
at bind or request time.
"""
from typing import List

from config import DaemonConfiguration
from errors import StartupError


class ConfigValidator:
    """Validates a DaemonConfiguration on startup"""

    def __init__(self, config: DaemonConfiguration):
        self.config = config
        self.errors: List[str] = []

    def validate(self) -> None:
        """Validate all configuration settings

        Raises:
            StartupError: If validation fails
        """
        self._validate_token()
        self._validate_listener()
        self._validate_batch_size()

        if self.errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(
                f"  - {error}" for error in self.errors
            )
            raise StartupError(error_msg)

    def _validate_token(self) -> None:
        if not self.config.auth_token.strip():
            self.errors.append("authToken must not be empty")

    def _validate_listener(self) -> None:
        if not self.config.host:
            self.errors.append("host must not be empty")
        if not 0 < self.config.port < 65536:
            self.errors.append(f"port out of range: {self.config.port}")

    def _validate_batch_size(self) -> None:
        if self.config.queue_batch_size < 1:
            self.errors.append(f"queueBatchSize must be positive: {self.config.queue_batch_size}")
