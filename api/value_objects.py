"""
Value objects for the retrieval daemon.

Principles:
- Immutable data structures
- Named instead of primitive types (no Primitive Obsession)
- Small, focused classes with single responsibility
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class FileDirection(str, Enum):
    """Selects which of a task's two sibling directories is addressed"""
    INPUT = "input"
    OUTPUT = "output"

    @property
    def is_input(self) -> bool:
        return self is FileDirection.INPUT


@dataclass(frozen=True)
class StoredFile:
    """Metadata for one file in a task directory.

    Inputs carry uploaded_at, outputs carry created_at; never both.
    """
    name: str
    size: int
    mime_type: str
    uploaded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def for_direction(cls, name: str, size: int, mime_type: str,
                      timestamp: Optional[datetime], direction: FileDirection) -> 'StoredFile':
        """Create metadata with the timestamp placed according to direction."""
        if direction.is_input:
            return cls(name=name, size=size, mime_type=mime_type, uploaded_at=timestamp)
        return cls(name=name, size=size, mime_type=mime_type, created_at=timestamp)


@dataclass(frozen=True)
class CatalogDocument:
    """A file discovered by backfill and known to the local catalogue.

    Replaces passing (id, path, mtime) as separate parameters.
    """
    id: str
    path: Path
    title: str
    size: int
    updated_at: datetime

    @property
    def path_text(self) -> str:
        return str(self.path)

    def __str__(self) -> str:
        return self.title
