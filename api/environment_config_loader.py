"""
Environment configuration loader.

Logic for reading environment variables lives with the data source
(environment) rather than in the Settings dataclass.
"""
import os
from pathlib import Path

from config import MAX_REQUEST_BODY_BYTES, MAX_UPLOAD_BYTES, PathConfig, ServerConfig, Settings


class EnvironmentConfigLoader:
    """Loads settings from RETRIEVALD_* environment variables.

    Single Responsibility: Environment access logic.
    """

    def load(self) -> Settings:
        """Create Settings from environment variables"""
        return Settings(
            paths=self._load_path_config(),
            server=self._load_server_config(),
        )

    def _load_path_config(self) -> PathConfig:
        """Load base directory from environment"""
        home = self._get_optional("RETRIEVALD_HOME", "")
        if home:
            return PathConfig(base_directory=Path(home).expanduser())
        return PathConfig()

    def _load_server_config(self) -> ServerConfig:
        """Load server limits from environment"""
        return ServerConfig(
            max_body_bytes=self._get_int("RETRIEVALD_MAX_BODY_BYTES", MAX_REQUEST_BODY_BYTES),
            max_upload_bytes=self._get_int("RETRIEVALD_MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES),
            log_level=self._get_optional("RETRIEVALD_LOG_LEVEL", "INFO").upper(),
        )

    def _get_optional(self, key: str, default: str) -> str:
        """Get optional string environment variable"""
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable"""
        value = os.getenv(key, str(default))
        return int(value)
