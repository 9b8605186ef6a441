import json
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterator

import pydantic

from classpoints.db.cache import TTLCache
from classpoints.db.documents import ALL_COLLECTIONS, Collection
from classpoints.models.common import StoredModel

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"


class JsonStore:
    """Whole-document JSON persistence with per-collection locks.

    Writes go through a temp file and ``os.replace`` so readers only ever see
    the previous or the next document. Every write first snapshots the prior
    file into ``backups/`` and bumps the collection version.
    """

    def __init__(
        self,
        data_dir: Path | str,
        backup_dir: Path | str | None = None,
        cache_ttl_seconds: float = 30.0,
        cache_size: int = 20,
        max_backups: int = 10,
        read_retry_delay_seconds: float = 0.05,
    ):
        self.data_dir = Path(data_dir)
        self.backup_dir = Path(backup_dir) if backup_dir else self.data_dir / "backups"
        self.max_backups = max_backups
        self.read_retry_delay_seconds = read_retry_delay_seconds
        self._cache = TTLCache(cache_ttl_seconds, cache_size)
        self._locks = {collection.name: threading.RLock() for collection in ALL_COLLECTIONS}
        self._versions = {collection.name: 0 for collection in ALL_COLLECTIONS}
        self._reads = 0
        self._writes = 0
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def path_of(self, collection: Collection) -> Path:
        return self.data_dir / collection.filename

    def version(self, collection: Collection) -> int:
        return self._versions[collection.name]

    def _lock(self, collection: Collection) -> threading.RLock:
        return self._locks[collection.name]

    @contextmanager
    def transaction(self, *collections: Collection) -> Iterator[None]:
        """Holds the write locks of ``collections`` in the global lock order."""
        ordered = sorted(set(collections), key=lambda collection: collection.order)
        acquired: list[threading.RLock] = []
        try:
            for collection in ordered:
                lock = self._lock(collection)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def read(self, collection: Collection) -> StoredModel:
        self._reads += 1
        cached = self._cache.get(collection.name)
        if cached is not None:
            return cached.model_copy(deep=True)

        with self._lock(collection):
            document = self._load(collection)
            self._cache.set(collection.name, document)
            return document.model_copy(deep=True)

    def write(self, collection: Collection, document: StoredModel) -> int:
        if not isinstance(document, collection.model):
            raise TypeError(f"{collection.name} expects {collection.model.__name__}, got {type(document).__name__}")

        with self._lock(collection):
            self._cache.invalidate(collection.name)
            self._persist(collection, document)
            self._versions[collection.name] += 1
            self._writes += 1
            self._cache.set(collection.name, document.model_copy(deep=True))
            return self._versions[collection.name]

    def warmup(self) -> None:
        for collection in ALL_COLLECTIONS:
            self.read(collection)
        logger.info("Store warmed up from %s", self.data_dir)

    def metrics(self) -> dict:
        return {
            "reads": self._reads,
            "writes": self._writes,
            "cacheHits": self._cache.hits,
            "cacheMisses": self._cache.misses,
            "cacheSize": len(self._cache),
            "versions": dict(self._versions),
        }

    def clear_cache(self) -> None:
        self._cache.clear()

    def backups_of(self, collection: Collection) -> list[Path]:
        """Backup files of ``collection``, newest first."""
        return sorted(self.backup_dir.glob(f"{collection.filename}.*.bak"), reverse=True)

    def _load(self, collection: Collection) -> StoredModel:
        path = self.path_of(collection)
        try:
            raw = self._read_bytes(path)
        except FileNotFoundError:
            document = collection.default()
            logger.info("Initialising missing collection %s at %s", collection.name, path)
            self._persist(collection, document, backup=False)
            return document

        try:
            return collection.model.model_validate(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError, pydantic.ValidationError) as exc:
            logger.error("Collection %s is corrupt (%s), attempting restore", collection.name, exc)
            return self._restore(collection)

    def _read_bytes(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as exc:
            logger.warning("Read of %s failed (%s), retrying once", path, exc)
            time.sleep(self.read_retry_delay_seconds)
            return path.read_bytes()

    def _restore(self, collection: Collection) -> StoredModel:
        for backup in self.backups_of(collection):
            try:
                document = collection.model.model_validate(json.loads(backup.read_bytes()))
            except (OSError, json.JSONDecodeError, UnicodeDecodeError, pydantic.ValidationError):
                logger.warning("Skipping unusable backup %s", backup.name)
                continue
            self._persist(collection, document, backup=False)
            self._versions[collection.name] += 1
            logger.warning("Restored collection %s from backup %s", collection.name, backup.name)
            return document

        document = collection.default()
        self._persist(collection, document, backup=False)
        self._versions[collection.name] += 1
        logger.error("No valid backup for %s, reset to default", collection.name)
        return document

    def _persist(self, collection: Collection, document: StoredModel, backup: bool = True) -> None:
        path = self.path_of(collection)
        if backup and path.exists():
            self._backup(collection, path)

        payload = json.dumps(document.to_json(), ensure_ascii=False, indent=2).encode("utf-8")
        fd, tmp_name = tempfile.mkstemp(prefix=f".{collection.filename}.", suffix=".tmp", dir=self.data_dir)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _backup(self, collection: Collection, path: Path) -> None:
        stamp = datetime.now(UTC).strftime(BACKUP_TIMESTAMP_FORMAT)
        target = self.backup_dir / f"{collection.filename}.{stamp}.bak"
        target.write_bytes(path.read_bytes())
        for stale in self.backups_of(collection)[self.max_backups:]:
            stale.unlink(missing_ok=True)
