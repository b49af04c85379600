from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

from .indexer import PathIndexer
from .log import get_logger
from .models import CatalogueEntry, DataSource

logger = get_logger(__name__)

Fetcher = Callable[[DataSource], Any]


class CatalogueCache:
    """Per-source catalogue store.

    Each source id has its own lock; a refresh indexes the new sample and
    swaps the whole catalogue in one assignment. Refreshes of different
    sources never wait on each other.
    """

    def __init__(self, indexer: Optional[PathIndexer] = None):
        self.indexer = indexer or PathIndexer()
        self._catalogues: Dict[str, Dict[str, CatalogueEntry]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, source_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(source_id)
            if lock is None:
                lock = self._locks[source_id] = threading.Lock()
            return lock

    def get(self, source_id: str) -> List[CatalogueEntry]:
        return list(self._catalogues.get(source_id, {}).values())

    def entry(self, source_id: str, path: str) -> Optional[CatalogueEntry]:
        return self._catalogues.get(source_id, {}).get(path)

    def source_ids(self) -> List[str]:
        return list(self._catalogues)

    def refresh(self, source: DataSource, document: Any = None, max_depth: Optional[int] = None) -> List[CatalogueEntry]:
        if document is None:
            document = source.sample_document
        with self._lock_for(source.id):
            entries = self.indexer.index(document, max_depth=max_depth, source_id=source.id, source_name=source.name)
            self._catalogues[source.id] = {e.path: e for e in entries}
        logger.debug("Catalogue for %s refreshed with %d paths", source.id, len(entries))
        return entries

    def invalidate(self, source_id: str) -> None:
        with self._lock_for(source_id):
            self._catalogues.pop(source_id, None)

    def acquire(self, sources: Iterable[DataSource], fetch: Fetcher, max_workers: Optional[int] = None) -> Dict[str, bool]:
        """Fetch a sample for each source concurrently and refresh its catalogue.

        A failed fetch is logged and leaves that source's catalogue as it was.
        Returns {source_id: succeeded}.
        """
        sources = list(sources)
        if not sources:
            return {}
        if max_workers is None:
            from .settings import get_settings
            max_workers = get_settings().acquisition_workers

        def run(source: DataSource) -> bool:
            try:
                document = fetch(source)
            except Exception as exc:
                logger.warning("Sample acquisition failed for %s: %s", source.id, exc)
                return False
            self.refresh(source, document)
            return True

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(run, sources))
        return {s.id: ok for s, ok in zip(sources, results)}
