# Copyright (c) 2024 RAG-KB Contributors
# SPDX-License-Identifier: MIT

"""Load the persisted daemon configuration, generating it on first run.

The generated file holds a fresh random token and the default allowlist
roots. It is written to a temp file in the same directory and moved into
place with os.replace, so a crash never leaves a half-written config.
"""
import json
import logging
import os
import secrets
import tempfile
from pathlib import Path
from typing import List, Optional

from config import DaemonConfiguration
from errors import StartupError

logger = logging.getLogger(__name__)

DEFAULT_ALLOWLIST_DIRS = ("Documents", "Desktop")


def default_allowlist_roots(home: Optional[Path] = None) -> List[str]:
    home = home or Path.home()
    return [str(home / name) for name in DEFAULT_ALLOWLIST_DIRS]


def generate_configuration(home: Optional[Path] = None) -> DaemonConfiguration:
    """Defaults plus a fresh 128-bit hex token"""
    return DaemonConfiguration(
        auth_token=secrets.token_hex(16),
        startup_allowlist_roots=default_allowlist_roots(home),
    )


def write_configuration(configuration: DaemonConfiguration, path: Path):
    """Atomically persist configuration as pretty-printed JSON

    Raises:
        OSError: if the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".retrieval-daemon-", suffix=".json", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(configuration.to_dict(), f, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def ensure_configuration(path: Path, home: Optional[Path] = None) -> DaemonConfiguration:
    """Load configuration from path, creating it once if absent

    Raises:
        StartupError: if an existing file cannot be parsed or a new one
            cannot be written
    """
    if path.exists():
        try:
            configuration = DaemonConfiguration.load(path)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise StartupError(f"Cannot read configuration {path}: {e}") from e
        logger.info(f"Loaded configuration from {path}")
        return configuration

    configuration = generate_configuration(home)
    try:
        write_configuration(configuration, path)
    except OSError as e:
        raise StartupError(f"Cannot write configuration {path}: {e}") from e
    logger.info(f"Generated configuration at {path}")
    return configuration
