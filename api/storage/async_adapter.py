"""
Async adapter for TaskFileStorage using thread pool execution.

Wraps the sync TaskFileStorage and exposes the same operations as
coroutines via asyncio.to_thread(), so route handlers never block the
event loop on disk I/O. Serialization is provided by the wrapped store's
internal lock.
"""

import asyncio
from pathlib import Path
from typing import List, Tuple

from storage.task_file_storage import TaskFileStorage
from value_objects import FileDirection, StoredFile


class AsyncTaskFileStorage:
    """Async adapter that wraps sync TaskFileStorage"""

    def __init__(self, storage: TaskFileStorage):
        self._storage = storage

    @property
    def storage(self) -> TaskFileStorage:
        return self._storage

    async def ensure_directories_exist(self):
        await asyncio.to_thread(self._storage.ensure_directories_exist)

    async def save_uploaded_file(self, data: bytes, filename: str, task_id: str) -> Path:
        return await asyncio.to_thread(self._storage.save_uploaded_file, data, filename, task_id)

    async def get_uploaded_files(self, task_id: str) -> List[StoredFile]:
        return await asyncio.to_thread(self._storage.get_uploaded_files, task_id)

    async def get_uploaded_file_paths(self, task_id: str) -> List[str]:
        return await asyncio.to_thread(self._storage.get_uploaded_file_paths, task_id)

    async def store_output_files(self, outbox_path: Path, task_id: str):
        await asyncio.to_thread(self._storage.store_output_files, outbox_path, task_id)

    async def get_output_files(self, task_id: str) -> List[StoredFile]:
        return await asyncio.to_thread(self._storage.get_output_files, task_id)

    async def get_file_data(self, task_id: str, filename: str,
                            direction: FileDirection) -> Tuple[bytes, str]:
        return await asyncio.to_thread(self._storage.get_file_data, task_id, filename, direction)

    async def delete_task_files(self, task_id: str):
        await asyncio.to_thread(self._storage.delete_task_files, task_id)
