"""Persistence utilities for the rental record store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from .collection import Collection
from .exceptions import StorageUnavailableError, ValidationError
from .models import DEFAULT_SCHEMAS, CollectionSchema

logger = logging.getLogger(__name__)

FileSignature = Tuple[int, int, int]


class JSONStorage:
    """File-based JSON storage, one wrapped document per collection, crash-safe writes."""

    def __init__(
        self,
        base_path: Path,
        *,
        paths: Optional[Mapping[str, Path]] = None,
        schemas: Optional[Mapping[str, CollectionSchema]] = None,
    ) -> None:
        self._base_path = Path(base_path)
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"Unable to create data directory {self._base_path}") from exc
        self._schemas: Dict[str, CollectionSchema] = dict(schemas or DEFAULT_SCHEMAS)
        self._paths: Dict[str, Path] = {
            name: Path(path) for name, path in (paths or {}).items()
        }
        unknown = set(self._paths) - set(self._schemas)
        if unknown:
            raise ValueError(f"Paths given for unknown collections: {', '.join(sorted(unknown))}")

    @property
    def base_path(self) -> Path:
        return self._base_path

    @property
    def collection_names(self) -> List[str]:
        return list(self._schemas)

    def schema_for(self, name: str) -> CollectionSchema:
        try:
            return self._schemas[name]
        except KeyError as exc:
            raise KeyError(f"Unknown collection {name!r}") from exc

    def path_for(self, name: str) -> Path:
        schema = self.schema_for(name)
        return self._paths.get(name, self._base_path / schema.filename)

    def signature(self, name: str) -> Optional[FileSignature]:
        """Return a cheap fingerprint of the canonical file, or None when it is absent."""
        path = self.path_for(name)
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageUnavailableError(f"Unable to stat {path}") from exc
        return (stat.st_mtime_ns, stat.st_size, stat.st_ino)

    def load(self, name: str, *, writable: bool = False) -> Collection:
        """Read a collection snapshot, self-healing to empty on absent or malformed files.

        A malformed file is left as it is; the next commit replaces it.
        """
        schema = self.schema_for(name)
        path = self.path_for(name)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return Collection(schema, [], path=path, writable=writable)
        except OSError as exc:
            raise StorageUnavailableError(f"Unable to read from {path}") from exc

        if not raw.strip():
            return Collection(schema, [], path=path, writable=writable)

        try:
            payload = json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Corrupted JSON data in %s; treating %s as empty", path, name)
            return Collection(schema, [], path=path, writable=writable)

        records = schema.unwrap(payload)
        if records is None:
            logger.warning(
                "Unexpected payload shape in %s (expected {%r: [...]}); treating %s as empty",
                path,
                schema.key,
                name,
            )
            return Collection(schema, [], path=path, writable=writable)
        return Collection(schema, records, path=path, writable=writable)

    def commit(self, name: str, collection: Collection) -> None:
        """Atomically replace the canonical file with the collection's snapshot."""
        schema = self.schema_for(name)
        path = self.path_for(name)
        try:
            data = json.dumps(
                schema.wrap(collection.records), indent=2, ensure_ascii=False, allow_nan=False
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            # Rejected before any file is touched; NaN and Infinity are not JSON.
            raise ValidationError(f"Cannot store {name} records as JSON: {exc}") from exc

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Same directory as the target so os.replace never crosses filesystems.
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
        except OSError as exc:
            raise StorageUnavailableError(f"Unable to create a temporary file next to {path}") from exc

        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
        except OSError as exc:
            _discard(temp_path)
            logger.error("Commit of %s to %s failed: %s", name, path, exc)
            raise StorageUnavailableError(f"Unable to write to {path}") from exc
        except BaseException:
            _discard(temp_path)
            raise

        collection.dirty = False
        logger.debug("Committed %d %s record(s) to %s", len(collection.records), name, path)

    def cleanup_temp_files(self) -> int:
        """Delete temporary files left behind by interrupted commits."""
        removed = 0
        for name in self._schemas:
            path = self.path_for(name)
            if not path.parent.is_dir():
                continue
            for candidate in path.parent.glob(f".{path.name}.*.tmp"):
                if _discard(candidate):
                    removed += 1
        if removed:
            logger.info("Removed %d stale temporary file(s)", removed)
        return removed


def _discard(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("Could not remove temporary file %s: %s", path, exc)
        return False
    return True
