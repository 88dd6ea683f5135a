"""Record store coupling storage, per-collection write exclusion and a snapshot cache."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .collection import Collection, Mutator, Record
from .config import StoreSettings
from .locking import WriteSerializer
from .storage import FileSignature, JSONStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordStore:
    """Entry point for every read and write against the collections.

    Each instance owns its own locks and cache, so two stores over two data
    directories never interfere. Two stores over the *same* files in one process
    (or several processes) are not coordinated.
    """

    def __init__(
        self,
        storage: JSONStorage,
        serializer: Optional[WriteSerializer] = None,
        *,
        cache: bool = True,
        cleanup: bool = True,
    ) -> None:
        self._storage = storage
        self._serializer = serializer or WriteSerializer()
        self._cache_enabled = cache
        self._cache: Dict[str, Tuple[FileSignature, List[Record]]] = {}
        self._generations: Dict[str, int] = {}
        self._cache_guard = threading.Lock()
        if cleanup:
            storage.cleanup_temp_files()

    @classmethod
    def from_settings(cls, settings: StoreSettings, *, cleanup: bool = True) -> "RecordStore":
        storage = JSONStorage(settings.data_dir, paths=settings.collection_paths)
        return cls(storage, cache=settings.cache, cleanup=cleanup)

    @property
    def storage(self) -> JSONStorage:
        return self._storage

    @property
    def serializer(self) -> WriteSerializer:
        return self._serializer

    # Reads ---------------------------------------------------------------
    def load(self, name: str) -> Collection:
        """Return a read-only snapshot reflecting the latest completed write."""
        return self._load(name, writable=False)

    def snapshot(self, name: str) -> List[Record]:
        return self.load(name).records

    # Writes --------------------------------------------------------------
    def with_exclusive_write(self, name: str, operation: Callable[[Collection], T]) -> T:
        """Run ``operation`` on a fresh writable snapshot while holding ``name``'s exclusion.

        A dirty snapshot is committed before the exclusion is released. If the
        operation raises, nothing is written and the error propagates.
        """
        with self._serializer.exclusive(name):
            collection = self._load(name, writable=True)
            try:
                result = operation(collection)
                if collection.dirty:
                    self._storage.commit(name, collection)
                    self._remember(name, collection.records)
                return result
            finally:
                collection.writable = False

    def commit(self, name: str, collection: Collection) -> None:
        """Persist ``collection`` as the new snapshot of ``name`` under its exclusion."""
        if self._serializer.lock_for(name).held_by_current_thread():
            self._storage.commit(name, collection)
            self._remember(name, collection.records)
            return
        with self._serializer.exclusive(name):
            self._storage.commit(name, collection)
            self._remember(name, collection.records)

    def insert(self, name: str, record: Dict[str, Any]) -> Record:
        return self.with_exclusive_write(name, lambda collection: collection.insert(record))

    def update(self, name: str, record_id: Any, mutator: Mutator) -> Record:
        return self.with_exclusive_write(name, lambda collection: collection.update(record_id, mutator))

    def mark_status(self, name: str, record_id: Any, field: str, value: Any) -> Record:
        return self.with_exclusive_write(
            name, lambda collection: collection.mark_status(record_id, field, value)
        )

    def remove(self, name: str, record_id: Any) -> bool:
        return self.with_exclusive_write(name, lambda collection: collection.remove(record_id))

    def invalidate(self, name: Optional[str] = None) -> None:
        with self._cache_guard:
            names = list(self._storage.collection_names) if name is None else [name]
            for item in names:
                self._generations[item] = self._generations.get(item, 0) + 1
                self._cache.pop(item, None)

    # Internal helpers ----------------------------------------------------
    def _load(self, name: str, *, writable: bool) -> Collection:
        if not self._cache_enabled:
            return self._storage.load(name, writable=writable)

        with self._cache_guard:
            generation = self._generations.get(name, 0)
            entry = self._cache.get(name)
        signature = self._storage.signature(name)
        if signature is not None:
            if entry is not None and entry[0] == signature:
                return Collection(
                    self._storage.schema_for(name),
                    copy.deepcopy(entry[1]),
                    path=self._storage.path_for(name),
                    writable=writable,
                )

        collection = self._storage.load(name, writable=writable)
        if signature is not None:
            with self._cache_guard:
                # A commit that landed while we were reading owns the cache entry.
                if self._generations.get(name, 0) == generation:
                    self._cache[name] = (signature, copy.deepcopy(collection.records))
        return collection

    def _remember(self, name: str, records: List[Record]) -> None:
        if not self._cache_enabled:
            return
        signature = self._storage.signature(name)
        with self._cache_guard:
            self._generations[name] = self._generations.get(name, 0) + 1
            if signature is None:
                self._cache.pop(name, None)
            else:
                # Swapped as one entry; readers see the old or the new snapshot.
                self._cache[name] = (signature, copy.deepcopy(records))
        logger.debug("Snapshot cache for %s replaced", name)
