"""
Configuration for the retrieval daemon
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

DAEMON_VERSION = "0.1.0"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 46299
DEFAULT_INDEXING_PROFILE = "balanced"
DEFAULT_QUEUE_BATCH_SIZE = 24

AUTH_TOKEN_HEADER = "X-Retrieval-Token"
HEALTH_PATH = "/health"
RETRIEVAL_PREFIX = "/api/v1/retrieval"
TASKS_PREFIX = "/api/v1/tasks"

MAX_REQUEST_BODY_BYTES = 5 * 1024 * 1024
MAX_UPLOAD_BYTES = 100 * 1024 * 1024
MAX_FILES_PER_UPLOAD = 32
# multipart boundaries and part headers on top of the file bytes
MULTIPART_OVERHEAD_BYTES = 64 * 1024

CONFIG_FILENAME = "retrieval-daemon.json"


@dataclass(frozen=True)
class DaemonConfiguration:
    """Persisted daemon configuration (immutable after startup)

    Serialized as JSON with camelCase keys.
    """
    auth_token: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    indexing_profile: str = DEFAULT_INDEXING_PROFILE
    startup_allowlist_roots: List[str] = field(default_factory=list)
    queue_batch_size: int = DEFAULT_QUEUE_BATCH_SIZE

    @classmethod
    def from_dict(cls, data: dict) -> 'DaemonConfiguration':
        """Build from decoded JSON; only authToken is required"""
        return cls(
            auth_token=data["authToken"],
            host=data.get("host", DEFAULT_HOST),
            port=int(data.get("port", DEFAULT_PORT)),
            indexing_profile=data.get("indexingProfile", DEFAULT_INDEXING_PROFILE),
            startup_allowlist_roots=list(data.get("startupAllowlistRoots", [])),
            queue_batch_size=int(data.get("queueBatchSize", DEFAULT_QUEUE_BATCH_SIZE)),
        )

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "authToken": self.auth_token,
            "indexingProfile": self.indexing_profile,
            "startupAllowlistRoots": list(self.startup_allowlist_roots),
            "queueBatchSize": self.queue_batch_size,
        }

    @classmethod
    def load(cls, path: Path) -> 'DaemonConfiguration':
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


@dataclass
class PathConfig:
    """Well-known filesystem locations under the daemon base directory"""
    base_directory: Path = Path.home() / ".retrievald"

    @property
    def daemon_directory(self) -> Path:
        return self.base_directory / "daemon"

    @property
    def config_path(self) -> Path:
        return self.daemon_directory / CONFIG_FILENAME

    @property
    def storage_directory(self) -> Path:
        """Root of Uploads/ and Output/"""
        return self.base_directory

    @property
    def outbox_directory(self) -> Path:
        """External outboxes, one subdirectory per task"""
        return self.base_directory / "Outbox"

    @property
    def logs_directory(self) -> Path:
        return self.base_directory / "logs"

    def resolve(self) -> 'PathConfig':
        """Create every directory this config names (idempotent)"""
        for directory in (self.base_directory, self.daemon_directory,
                          self.outbox_directory, self.logs_directory):
            directory.mkdir(parents=True, exist_ok=True)
        return self


@dataclass
class ServerConfig:
    """HTTP server limits and logging"""
    max_body_bytes: int = MAX_REQUEST_BODY_BYTES
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    log_level: str = "INFO"


@dataclass
class Settings:
    """Process settings derived from the environment"""
    paths: PathConfig
    server: ServerConfig

    @classmethod
    def from_env(cls) -> 'Settings':
        """Create settings from environment - delegates to EnvironmentConfigLoader"""
        from environment_config_loader import EnvironmentConfigLoader
        return EnvironmentConfigLoader().load()
