"""In-memory snapshot of one record collection and the operations applied to it."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from .exceptions import RecordNotFoundError, ValidationError
from .models import CollectionSchema

Record = Dict[str, Any]
Predicate = Callable[[Record], bool]
Mutator = Union[Mapping[str, Any], Callable[[Record], Optional[Record]]]


def coerce_id(value: Any) -> int:
    """Return the integer form of a stored id, or 0 when it is not a usable id."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


def next_id(collection: "Collection") -> int:
    """Compute ``1 + max(existing ids)`` for the collection's current records.

    Only meaningful on a snapshot obtained inside the collection's exclusive
    write section; two stale snapshots would hand out the same id.
    """
    id_field = collection.schema.id_field
    return 1 + max((coerce_id(record.get(id_field)) for record in collection.records), default=0)


class RecordQuery:
    """Lazy, restartable filter over a snapshot's records.

    Each iteration walks the snapshot afresh and yields copies, so consuming a
    query never changes the collection.
    """

    def __init__(self, records: List[Record], predicate: Optional[Predicate] = None) -> None:
        self._records = records
        self._predicate = predicate

    def __iter__(self) -> Iterator[Record]:
        for record in self._records:
            if self._predicate is None or self._predicate(record):
                yield copy.deepcopy(record)

    def first(self) -> Optional[Record]:
        return next(iter(self), None)

    def count(self) -> int:
        return sum(1 for _ in self)


class Collection:
    """Ordered records of one entity type as loaded from a single file."""

    def __init__(
        self,
        schema: CollectionSchema,
        records: Optional[List[Record]] = None,
        *,
        path: Optional[Path] = None,
        writable: bool = False,
    ) -> None:
        self.schema = schema
        self.records: List[Record] = list(records or [])
        self.path = path
        self.writable = writable
        self.dirty = False

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"Collection({self.name!r}, records={len(self.records)}, dirty={self.dirty})"

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def id_field(self) -> str:
        return self.schema.id_field

    # Reads ---------------------------------------------------------------
    def find_all(self, predicate: Optional[Predicate] = None) -> RecordQuery:
        return RecordQuery(self.records, predicate)

    def get(self, record_id: Any) -> Record:
        index = self._index_of(record_id)
        if index is None:
            raise RecordNotFoundError(f"{self.name} record {record_id} not found")
        return copy.deepcopy(self.records[index])

    def contains(self, record_id: Any) -> bool:
        return self._index_of(record_id) is not None

    def to_dict(self) -> Dict[str, List[Record]]:
        return self.schema.wrap(copy.deepcopy(self.records))

    # Mutations -----------------------------------------------------------
    def insert(self, record: Mapping[str, Any]) -> Record:
        """Append ``record`` under a freshly allocated id and return the stored copy."""
        self._require_writable()
        if not isinstance(record, Mapping):
            raise ValidationError(f"{self.name} record must be a JSON object")
        stored = copy.deepcopy(dict(record))
        stored[self.id_field] = next_id(self)
        self.records.append(stored)
        self.dirty = True
        return copy.deepcopy(stored)

    def update(self, record_id: Any, mutator: Mutator) -> Record:
        """Apply field changes to one record, keeping its id and untouched fields.

        ``mutator`` is either a mapping merged into the record or a callable that
        edits a working copy in place (or returns a replacement dict).
        """
        self._require_writable()
        index = self._index_of(record_id)
        if index is None:
            raise RecordNotFoundError(f"{self.name} record {record_id} not found")
        current = self.records[index]
        working = copy.deepcopy(current)
        if callable(mutator):
            replacement = mutator(working)
            if replacement is not None:
                working = dict(replacement)
        else:
            working.update(copy.deepcopy(dict(mutator)))
        working[self.id_field] = current[self.id_field]
        self.records[index] = working
        self.dirty = True
        return copy.deepcopy(working)

    def mark_status(self, record_id: Any, field: str, value: Any) -> Record:
        """Flip a status field in place; the record stays in the collection."""
        if field == self.id_field:
            raise ValidationError(f"{field} is the record id and cannot be used as a status")
        return self.update(record_id, {field: value})

    def remove(self, record_id: Any) -> bool:
        """Physically drop the record; returns False when no record had that id."""
        self._require_writable()
        index = self._index_of(record_id)
        if index is None:
            return False
        del self.records[index]
        self.dirty = True
        return True

    # Internal helpers ----------------------------------------------------
    def _index_of(self, record_id: Any) -> Optional[int]:
        wanted = coerce_id(record_id)
        if wanted <= 0:
            return None
        for index, record in enumerate(self.records):
            if coerce_id(record.get(self.id_field)) == wanted:
                return index
        return None

    def _require_writable(self) -> None:
        if not self.writable:
            raise RuntimeError(
                f"{self.name} snapshot is read-only; mutate it inside an exclusive write section"
            )
