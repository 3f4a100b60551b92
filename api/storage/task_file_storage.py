# Copyright (c) 2024 RAG-KB Contributors
# SPDX-License-Identifier: MIT

"""Task-scoped storage for uploaded inputs and produced outputs.

Layout under the base directory:
    Uploads/<task_id>/<file>
    Output/<task_id>/<file>

All operations on one TaskFileStorage instance are serialized through a
single re-entrant lock, so concurrent callers never race on directory
creation or same-name overwrites.
"""
import logging
import re
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple

from errors import InvalidTaskIdError, NotFoundError
from storage.filenames import mime_type_for, sanitize_filename
from value_objects import FileDirection, StoredFile

logger = logging.getLogger(__name__)

UPLOADS_DIRNAME = "Uploads"
OUTPUT_DIRNAME = "Output"

TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def validate_task_id(task_id: str) -> str:
    """Ensure a task id is usable as one path segment.

    Raises:
        InvalidTaskIdError: if the id could escape its task directory
    """
    if not TASK_ID_PATTERN.match(task_id or ""):
        raise InvalidTaskIdError(f"Invalid task id: {task_id!r}")
    return task_id


class TaskFileStorage:
    """Manages file storage for task uploads and task outputs

    Single Responsibility: filesystem layout for task files.
    Thread-safe via an internal RLock.
    """

    def __init__(self, base_directory: Path):
        self.base_directory = Path(base_directory)
        self._lock = threading.RLock()

    @property
    def uploads_root(self) -> Path:
        return self.base_directory / UPLOADS_DIRNAME

    @property
    def output_root(self) -> Path:
        return self.base_directory / OUTPUT_DIRNAME

    # ============ Directory Management ============

    def ensure_directories_exist(self):
        """Create the Uploads and Output roots (idempotent)"""
        with self._lock:
            self.uploads_root.mkdir(parents=True, exist_ok=True)
            self.output_root.mkdir(parents=True, exist_ok=True)

    def uploads_directory(self, task_id: str) -> Path:
        return self.uploads_root / validate_task_id(task_id)

    def output_directory(self, task_id: str) -> Path:
        return self.output_root / validate_task_id(task_id)

    def directory_for(self, task_id: str, direction: FileDirection) -> Path:
        if direction.is_input:
            return self.uploads_directory(task_id)
        return self.output_directory(task_id)

    # ============ Uploads ============

    def save_uploaded_file(self, data: bytes, filename: str, task_id: str) -> Path:
        """Write uploaded bytes for a task, overwriting a same-named file

        Returns:
            Full path of the saved file
        """
        with self._lock:
            task_dir = self.uploads_directory(task_id)
            task_dir.mkdir(parents=True, exist_ok=True)
            file_path = task_dir / sanitize_filename(filename)
            file_path.write_bytes(data)
            logger.debug("Saved upload %s (%d bytes) for task %s", file_path.name, len(data), task_id)
            return file_path

    def get_uploaded_files(self, task_id: str) -> List[StoredFile]:
        with self._lock:
            return self._list_files(self.uploads_directory(task_id), FileDirection.INPUT)

    def get_uploaded_file_paths(self, task_id: str) -> List[str]:
        """Absolute paths of every uploaded file, for handing to the service"""
        with self._lock:
            task_dir = self.uploads_directory(task_id)
            if not task_dir.exists():
                return []
            return [str(entry.absolute()) for entry in task_dir.iterdir()]

    # ============ Outputs ============

    def store_output_files(self, outbox_path: Path, task_id: str):
        """Copy every file from an outbox into the task's output directory

        A missing outbox is not an error: the task produced no output.
        The outbox itself is left untouched.
        """
        with self._lock:
            task_dir = self.output_directory(task_id)
            task_dir.mkdir(parents=True, exist_ok=True)

            outbox = Path(outbox_path)
            if not outbox.exists():
                return

            copied = 0
            for source in outbox.iterdir():
                destination = task_dir / source.name
                if destination.exists():
                    self._remove(destination)
                self._copy(source, destination)
                copied += 1
            logger.info("Stored %d output file(s) for task %s", copied, task_id)

    def get_output_files(self, task_id: str) -> List[StoredFile]:
        with self._lock:
            return self._list_files(self.output_directory(task_id), FileDirection.OUTPUT)

    # ============ Download ============

    def get_file_data(self, task_id: str, filename: str, direction: FileDirection) -> Tuple[bytes, str]:
        """Read a task file for download

        Returns:
            (data, mime_type)

        Raises:
            NotFoundError: if no such file exists for the task
        """
        with self._lock:
            file_path = self.directory_for(task_id, direction) / sanitize_filename(filename)
            if not file_path.is_file():
                raise NotFoundError(f"File '{filename}' not found")
            return file_path.read_bytes(), mime_type_for(filename)

    # ============ Cleanup ============

    def delete_task_files(self, task_id: str):
        """Remove both task directories; absence of either is fine"""
        with self._lock:
            for task_dir in (self.uploads_directory(task_id), self.output_directory(task_id)):
                if task_dir.exists():
                    shutil.rmtree(task_dir)
            logger.info("Deleted files for task %s", task_id)

    # ============ Helpers ============

    def _list_files(self, directory: Path, direction: FileDirection) -> List[StoredFile]:
        if not directory.exists():
            return []
        return [self._describe(entry, direction) for entry in directory.iterdir()]

    def _describe(self, path: Path, direction: FileDirection) -> StoredFile:
        stat = path.stat()
        created = getattr(stat, "st_birthtime", None) or stat.st_mtime
        return StoredFile.for_direction(
            name=path.name,
            size=stat.st_size,
            mime_type=mime_type_for(path.name),
            timestamp=datetime.fromtimestamp(created, tz=timezone.utc),
            direction=direction,
        )

    def _remove(self, path: Path):
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()

    def _copy(self, source: Path, destination: Path):
        if source.is_dir():
            shutil.copytree(source, destination)
        else:
            shutil.copy2(source, destination)
