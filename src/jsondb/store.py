"""Read and write <collection>.json files.

CollectionStore is the persistence layer:
    store = CollectionStore("/path/to/data")
    store.create("users")
    store.insert("users", {"name": "John Doe", "age": 30})
    docs = store.read("users")

Each collection is one file holding a JSON array of documents. Every mutation
is a whole-file read-modify-write; writes go to a uniquely named temp file that is
fsynced and renamed over the target, so readers never see a half-written
collection. Writers hold a per-collection thread lock plus an flock on
.<collection>.lock, so writers in other processes are serialized too.
"""

from __future__ import annotations

import contextlib
import json
import logging
import fcntl
import os
import tempfile
import threading
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, TypeVar

from jsondb.errors import InvalidDocument, InvalidName, PersistenceError
from jsondb.models import ID_FIELD, Document, prepare_document, sanitize_name

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger("jsondb.store")

EXTENSION = ".json"

T = TypeVar("T")


class CollectionStore:
    """JSON-array-per-file collection store."""

    def __init__(self, data_dir: Path | str, *, pretty: bool = True, strict_names: bool = False) -> None:
        self.data_dir = Path(data_dir)
        self.pretty = pretty
        self.strict_names = strict_names
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._lock_depth: dict[str, int] = {}

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError.from_os_error(
                "Could not create database directory", self.data_dir, exc,
            ) from exc
        if not os.access(self.data_dir, os.W_OK):
            raise PersistenceError(
                "Database directory is not writable", self.data_dir, "permission denied",
            )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def collection_name(self, raw: str) -> str:
        """Sanitized file stem for raw, or InvalidName."""
        name = sanitize_name(raw)
        if not name:
            msg = f"Invalid collection name: {raw!r}"
            raise InvalidName(msg)
        if self.strict_names and name != raw:
            msg = f"Collection name {raw!r} contains characters outside [A-Za-z0-9_]"
            raise InvalidName(msg)
        return name

    def path_for(self, raw: str) -> Path:
        return self.data_dir / (self.collection_name(raw) + EXTENSION)

    def exists(self, raw: str) -> bool:
        return self.path_for(raw).exists()

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def lock(self, raw: str) -> Iterator[str]:
        """Serialize read-compute-write cycles on one collection.

        Threads share a re-entrant lock per sanitized name. The outermost
        holder also takes an exclusive flock on .<name>.lock, so other
        processes using the same data_dir wait as well.
        """
        name = self.collection_name(raw)
        with self._locks_guard:
            lock = self._locks.setdefault(name, threading.RLock())
        with lock:
            depth = self._lock_depth.get(name, 0)
            handle = self._flock(name) if depth == 0 else None
            self._lock_depth[name] = depth + 1
            try:
                yield name
            finally:
                self._lock_depth[name] = depth
                if handle is not None:
                    handle.close()

    def _flock(self, name: str) -> IO[str]:
        path = self.data_dir / f".{name}.lock"
        try:
            handle = path.open("a")
        except OSError as exc:
            raise PersistenceError.from_os_error("Failed to lock collection", path, exc) from exc
        try:
            fcntl.flock(handle, fcntl.LOCK_EX)
        except OSError as exc:
            handle.close()
            raise PersistenceError.from_os_error("Failed to lock collection", path, exc) from exc
        return handle

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self) -> set[str]:
        """Names of all persisted collections."""
        return {p.stem for p in self.data_dir.glob("*" + EXTENSION) if p.is_file()}

    def read(self, raw: str) -> list[Document]:
        """Load a collection. Missing, unreadable or malformed files read as empty."""
        path = self.path_for(raw)
        if not path.exists():
            return []
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("unreadable collection %s treated as empty: %s", path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("collection %s is not a JSON array, treated as empty", path)
            return []

        docs = [d for d in data if isinstance(d, dict)]
        if len(docs) != len(data):
            logger.warning("skipped %d non-object entries in %s", len(data) - len(docs), path)
        return docs

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(self, raw: str, documents: list[Document]) -> None:
        """Replace a collection's contents atomically."""
        with self.lock(raw):
            path = self.path_for(raw)
            data = self._encode(documents)
            tmp: Path | None = None
            try:
                mode = path.stat().st_mode & 0o777 if path.exists() else 0o644
                fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{path.name}.", suffix=".tmp")
                tmp = Path(tmp_name)
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fchmod(f.fileno(), mode)
                    os.fsync(f.fileno())
                os.replace(tmp, path)
            except OSError as exc:
                if tmp is not None:
                    with contextlib.suppress(OSError):
                        tmp.unlink()
                raise PersistenceError.from_os_error("Failed to write to data store", path, exc) from exc
        logger.debug("wrote %d documents to %s", len(documents), path)

    def _encode(self, documents: list[Document]) -> bytes:
        try:
            payload = json.dumps(documents, indent=2 if self.pretty else None, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            msg = f"Document is not JSON-serializable: {exc}"
            raise InvalidDocument(msg) from exc
        try:
            return payload.encode("utf-8")
        except UnicodeEncodeError as exc:
            msg = f"Document contains text that cannot be stored as UTF-8: {exc.reason}"
            raise InvalidDocument(msg) from exc

    def create(self, raw: str) -> None:
        """Create an empty collection. Existing content is kept, only touched."""
        with self.lock(raw):
            path = self.path_for(raw)
            if not path.exists():
                self.write(raw, [])
                logger.info("created collection %s", path.stem)
                return
            try:
                path.touch()
            except OSError as exc:
                raise PersistenceError.from_os_error("Failed to touch collection", path, exc) from exc

    def insert(self, raw: str, document: Any) -> Document:
        """Append one document, assigning _id if absent. Returns the stored copy."""
        def _append(docs: list[Document]) -> tuple[list[Document], Document]:
            stored = prepare_document(document, {d[ID_FIELD] for d in docs if isinstance(d.get(ID_FIELD), str)})
            return [*docs, stored], stored

        return self.mutate(raw, _append)

    def mutate(
        self,
        raw: str,
        transform: Callable[[list[Document]], tuple[list[Document] | None, T]],
    ) -> T:
        """Read-modify-write under the collection lock.

        transform returns (new_documents, result); new_documents=None skips the write.
        """
        with self.lock(raw):
            new_docs, result = transform(self.read(raw))
            if new_docs is not None:
                self.write(raw, new_docs)
            return result

    def drop(self, raw: str) -> bool:
        """Remove a collection file. Returns whether it existed."""
        with self.lock(raw):
            path = self.path_for(raw)
            if not path.exists():
                return False
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise PersistenceError.from_os_error("Failed to delete collection", path, exc) from exc
            logger.info("dropped collection %s", path.stem)
            return True
