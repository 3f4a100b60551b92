"""Task file storage: per-task upload and output directories"""
from storage.async_adapter import AsyncTaskFileStorage
from storage.filenames import mime_type_for, sanitize_filename
from storage.task_file_storage import TaskFileStorage, validate_task_id

__all__ = [
    'AsyncTaskFileStorage',
    'TaskFileStorage',
    'mime_type_for',
    'sanitize_filename',
    'validate_task_id',
]
