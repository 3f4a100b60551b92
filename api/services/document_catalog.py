"""In-memory catalogue of files discovered by backfill"""
import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from value_objects import CatalogDocument

logger = logging.getLogger(__name__)


def document_id_for(path: Path) -> str:
    """Stable id for a catalogued path"""
    return hashlib.sha1(str(path).encode("utf-8")).hexdigest()


def describe_path(path: Path) -> Optional[CatalogDocument]:
    """Stat a path into a CatalogDocument; None if it disappeared

    Blocking; callers on the event loop run it in a worker thread.
    """
    try:
        stat = path.stat()
    except OSError as e:
        logger.debug(f"Skipping {path}: {e}")
        return None

    return CatalogDocument(
        id=document_id_for(path),
        path=path,
        title=path.name,
        size=stat.st_size,
        updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )


class DocumentCatalog:
    """Holds one CatalogDocument per path and answers name/path lookups"""

    def __init__(self):
        self._documents: Dict[str, CatalogDocument] = {}

    def add(self, document: CatalogDocument):
        self._documents[document.id] = document

    def get(self, document_id: str) -> Optional[CatalogDocument]:
        return self._documents.get(document_id)

    def remove_under(self, root: Path) -> int:
        """Forget every document below root; returns how many were dropped"""
        doomed = [doc_id for doc_id, doc in self._documents.items()
                  if doc.path == root or root in doc.path.parents]
        for doc_id in doomed:
            del self._documents[doc_id]
        return len(doomed)

    def search(self, tokens: Sequence[str]) -> List[Tuple[float, CatalogDocument]]:
        """Documents matching any token, most recently modified first

        Each result carries the share of tokens found; title hits weigh
        twice as much as path-only hits.
        """
        if not tokens:
            return []

        scored = []
        for document in self._documents.values():
            score = self._score(document, tokens)
            if score > 0:
                scored.append((score, document))
        scored.sort(key=lambda pair: pair[1].updated_at, reverse=True)
        return scored

    def _score(self, document: CatalogDocument, tokens: Sequence[str]) -> float:
        title = document.title.lower()
        path = document.path_text.lower()
        total = 0.0
        for token in tokens:
            if token in title:
                total += 1.0
            elif token in path:
                total += 0.5
        return total / len(tokens)

    def count(self) -> int:
        return len(self._documents)

    def last_updated_at(self) -> Optional[datetime]:
        if not self._documents:
            return None
        return max(doc.updated_at for doc in self._documents.values())
